"""
Base service layer patterns for business logic encapsulation.

Services encapsulate business logic separate from views and models.
Views handle HTTP concerns, models handle data, services handle logic.

Error Handling:
    Services raise subclasses of core.exceptions.BaseApplicationError for
    every expected failure (validation, business rules, lost races). Views
    translate them with ``exc.to_dict()`` and ``exc.http_status``. Nothing
    in the service layer swallows a domain error.

Usage:
    from core.services import BaseService

    class WalletService(BaseService):
        @classmethod
        def credit(cls, user_id, amount):
            cls.require(user_id=user_id, amount=amount)
            with cls.atomic():
                ...
            cls.get_logger().info("Wallet credited", extra={"user_id": str(user_id)})

Related:
    - core.exceptions: Exception hierarchy and HTTP mapping
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

from django.db import transaction

from core.exceptions import ValidationError

if TYPE_CHECKING:
    from collections.abc import Generator


class BaseService:
    """
    Base class for service layer classes.

    Provides common utilities for services:
    - Logging setup per service
    - Database transaction management
    - Required-argument validation

    Design Notes:
        - Use @staticmethod or @classmethod (no instance state)
        - Services should be stateless
        - Raise typed exceptions for expected failures
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns a logger named after the service class for
        easy filtering in logs.
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        All database operations within this context manager are wrapped
        in a transaction. If any operation raises, all changes are rolled
        back. Nested use creates a savepoint.

        Example:
            with cls.atomic():
                escrow = EscrowTransaction.objects.select_for_update().get(pk=pk)
                escrow.release()
                escrow.save()
        """
        with transaction.atomic():
            yield

    @classmethod
    def require(cls, **kwargs) -> None:
        """
        Validate that required arguments are provided.

        None and blank strings count as missing.

        Raises:
            ValidationError: Listing every missing field in ``details``

        Example:
            cls.require(admin_reference=admin_reference)
        """
        errors = {}
        for field_name, value in kwargs.items():
            if value is None or (isinstance(value, str) and not value.strip()):
                errors[field_name] = ["This field is required."]

        if errors:
            raise ValidationError(
                "Required fields missing",
                error_code="VALIDATION_ERROR",
                details=errors,
            )
