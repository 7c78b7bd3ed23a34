"""
Split policies: how an escrowed total is divided at creation time.

Every policy returns a Split whose parts add up to the total exactly, in
integer minor units. The seller share is always computed last as the
remainder, so whichever rounding rule is used for the fee and the driver
share, nothing is created or lost.

Usage:
    from custody.splits import PercentageSplitPolicy, default_split_policy

    policy = PercentageSplitPolicy(seller_percent=80, driver_percent=15, platform_percent=5)
    split = policy.split(100_001, has_driver=True)
    # Split(seller_amount=80001, driver_amount=15000, platform_fee=5000)

    split = default_split_policy().split(total_amount, has_driver=False)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from django.conf import settings

from custody.exceptions import InvalidSplit

if TYPE_CHECKING:
    from typing import Any

ROUNDING_MODES = {
    "truncate": ROUND_DOWN,
    "half_up": ROUND_HALF_UP,
}

HUNDRED = Decimal(100)


@dataclass(frozen=True)
class Split:
    """
    The three shares of an escrowed total.

    Attributes:
        seller_amount: Credited to the seller wallet on release
        driver_amount: Credited to the driver wallet on release (0 without driver)
        platform_fee: Credited to platform revenue on release
    """

    seller_amount: int
    driver_amount: int
    platform_fee: int

    @property
    def total(self) -> int:
        return self.seller_amount + self.driver_amount + self.platform_fee


def validate_split(total_amount: Any, split: Split, has_driver: bool) -> None:
    """
    Check the conservation rule for a split.

    Raises:
        InvalidSplit: If the total is not a positive integer, a part is
            negative, a driver share exists without a driver, or the parts
            don't add up to the total
    """
    details = {
        "total_amount": total_amount,
        "seller_amount": split.seller_amount,
        "driver_amount": split.driver_amount,
        "platform_fee": split.platform_fee,
    }

    if isinstance(total_amount, bool) or not isinstance(total_amount, int):
        raise InvalidSplit("Total amount must be an integer in minor units", details=details)
    if total_amount <= 0:
        raise InvalidSplit("Total amount must be positive", details=details)

    for part in (split.seller_amount, split.driver_amount, split.platform_fee):
        if isinstance(part, bool) or not isinstance(part, int):
            raise InvalidSplit("Split amounts must be integers in minor units", details=details)
        if part < 0:
            raise InvalidSplit("Split amounts cannot be negative", details=details)

    if split.driver_amount > 0 and not has_driver:
        raise InvalidSplit("Driver share given but escrow has no driver", details=details)

    if split.total != total_amount:
        details["sum"] = split.total
        raise InvalidSplit("Split does not add up to the total", details=details)


class SplitPolicy(ABC):
    """Contract for computing the shares of an escrow."""

    @abstractmethod
    def split(self, total_amount: int, has_driver: bool) -> Split:
        """Return a validated Split of ``total_amount``."""


class PercentageSplitPolicy(SplitPolicy):
    """
    Divide the total by percentages.

    The platform fee and the driver share are rounded with ``rounding``
    ("truncate" or "half_up"); the seller receives the remainder. Without
    a driver the driver share is 0 and the seller keeps it.
    """

    def __init__(
        self,
        seller_percent: Any,
        driver_percent: Any,
        platform_percent: Any,
        rounding: str = "truncate",
    ) -> None:
        percents = [Decimal(str(p)) for p in (seller_percent, driver_percent, platform_percent)]
        if any(p < 0 for p in percents) or sum(percents) != HUNDRED:
            raise InvalidSplit(
                "Split percentages must be non-negative and add up to 100",
                details={
                    "seller_percent": str(percents[0]),
                    "driver_percent": str(percents[1]),
                    "platform_percent": str(percents[2]),
                },
            )
        if rounding not in ROUNDING_MODES:
            raise InvalidSplit(
                f"Unknown rounding mode '{rounding}'",
                details={"rounding": rounding, "allowed": sorted(ROUNDING_MODES)},
            )

        self.seller_percent, self.driver_percent, self.platform_percent = percents
        self.rounding = rounding

    def _share(self, total_amount: int, percent: Decimal) -> int:
        raw = Decimal(total_amount) * percent / HUNDRED
        return int(raw.quantize(Decimal(1), rounding=ROUNDING_MODES[self.rounding]))

    def split(self, total_amount: int, has_driver: bool) -> Split:
        if isinstance(total_amount, bool) or not isinstance(total_amount, int) or total_amount <= 0:
            raise InvalidSplit(
                "Total amount must be a positive integer in minor units",
                details={"total_amount": total_amount},
            )

        platform_fee = self._share(total_amount, self.platform_percent)
        driver_amount = self._share(total_amount, self.driver_percent) if has_driver else 0
        result = Split(
            seller_amount=total_amount - platform_fee - driver_amount,
            driver_amount=driver_amount,
            platform_fee=platform_fee,
        )
        validate_split(total_amount, result, has_driver)
        return result

    def __repr__(self) -> str:
        return (
            f"PercentageSplitPolicy({self.seller_percent}/{self.driver_percent}/"
            f"{self.platform_percent}, rounding={self.rounding!r})"
        )


class FixedSplitPolicy(SplitPolicy):
    """Explicit amounts, e.g. a delivery fee agreed at checkout."""

    def __init__(self, seller_amount: int, driver_amount: int = 0, platform_fee: int = 0) -> None:
        self.amounts = Split(
            seller_amount=seller_amount,
            driver_amount=driver_amount,
            platform_fee=platform_fee,
        )

    def split(self, total_amount: int, has_driver: bool) -> Split:
        validate_split(total_amount, self.amounts, has_driver)
        return self.amounts


def default_split_policy() -> PercentageSplitPolicy:
    """Build the percentage policy configured in settings."""
    percentages = settings.ESCROW_SPLIT_PERCENTAGES
    return PercentageSplitPolicy(
        seller_percent=percentages["seller"],
        driver_percent=percentages["driver"],
        platform_percent=percentages["platform"],
        rounding=settings.ESCROW_FEE_ROUNDING,
    )


__all__ = [
    "Split",
    "SplitPolicy",
    "PercentageSplitPolicy",
    "FixedSplitPolicy",
    "default_split_policy",
    "validate_split",
]
