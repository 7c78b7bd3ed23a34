"""
State machine enums for custody models.
"""

from custody.state_machines.states import (
    AdminAction,
    DisputeResolution,
    EscrowStatus,
    MobileMoneyProvider,
    ReleaseReason,
    UserType,
    WithdrawalMethod,
    WithdrawalStatus,
)

__all__ = [
    "AdminAction",
    "DisputeResolution",
    "EscrowStatus",
    "MobileMoneyProvider",
    "ReleaseReason",
    "UserType",
    "WithdrawalMethod",
    "WithdrawalStatus",
]
