"""
Rides application.

Holds driver ride subscriptions and bookings, and the arrival credit
gate that meters one ride per booking when the driver reaches the
pickup point.

Usage:
    from rides.services import ArrivalCreditGate
"""
