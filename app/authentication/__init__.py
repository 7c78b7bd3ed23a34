"""
Authentication application.

This app provides the email-based User model shared by every party of
the custody engine (buyers, sellers, drivers, partners and operators).
API authentication is JWT (djangorestframework-simplejwt), wired in
config.urls.

Usage:
    from authentication.models import User
"""
