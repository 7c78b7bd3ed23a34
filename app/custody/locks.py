"""
Concurrency helpers for custody operations.

Two tools live here:

1. **DistributedLock**
   - Redis-based mutual exclusion across worker processes
   - TTL so a crashed worker never blocks the sweep forever
   - Used by the periodic timeout sweep to avoid duplicate scans.
     Correctness never depends on it: every escrow or withdrawal
     transition is also guarded by its row lock and status filter.

2. **check_version**
   - Lock a row and verify the version the caller read
   - Used by admin actions that were decided on a screen showing an
     older copy of the record

Usage:

    from custody.locks import DistributedLock, check_version

    with DistributedLock("custody:escrow-sweep", ttl=300, blocking=False):
        EscrowService.sweep_timeouts()

    with transaction.atomic():
        escrow = check_version(EscrowTransaction, escrow_id, expected_version=3)
"""

from __future__ import annotations

import time
import uuid as uuid_module
from typing import TYPE_CHECKING, TypeVar

from django.db import models, transaction

from django_redis import get_redis_connection

from core.exceptions import NotFoundError
from custody.exceptions import LockAcquisitionError, StaleRecordError

if TYPE_CHECKING:
    from typing import Any

    from redis import Redis

T = TypeVar("T", bound=models.Model)


class DistributedLock:
    """
    Redis-based distributed lock with TTL.

    Ownership is tracked with a random token, so a worker can only release
    a lock it acquired itself.

    Example:
        # Skip the run when another worker is already sweeping
        try:
            with DistributedLock("custody:escrow-sweep", ttl=300, blocking=False):
                sweep()
        except LockAcquisitionError:
            return {"status": "skipped"}

    Args:
        key: Lock identifier (prefixed with "lock:")
        ttl: Lock TTL in seconds
        blocking: If True, acquire() polls until the lock is free or timeout
        timeout: Maximum wait in seconds (blocking mode only)
    """

    RELEASE_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    POLL_INTERVAL = 0.05

    def __init__(
        self,
        key: str,
        ttl: int = 30,
        blocking: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self.key = f"lock:{key}"
        self.ttl = ttl
        self.blocking = blocking
        self.timeout = timeout
        self._token: str | None = None
        self._redis: Redis | None = None

    def _get_redis(self) -> Redis:
        if self._redis is None:
            self._redis = get_redis_connection("default")
        return self._redis

    def acquire(self) -> bool:
        """
        Acquire the lock.

        Returns:
            True once the lock is held

        Raises:
            LockAcquisitionError: If the lock is held elsewhere (non-blocking)
                or could not be taken within ``timeout`` (blocking)
        """
        self._token = str(uuid_module.uuid4())
        redis = self._get_redis()

        if self.blocking:
            deadline = time.monotonic() + self.timeout
            while time.monotonic() < deadline:
                if self._try_acquire(redis):
                    return True
                time.sleep(self.POLL_INTERVAL)

            self._token = None
            raise LockAcquisitionError(
                f"Failed to acquire lock '{self.key}' within {self.timeout}s",
                details={"key": self.key, "timeout": self.timeout},
            )

        if not self._try_acquire(redis):
            self._token = None
            raise LockAcquisitionError(
                f"Lock '{self.key}' is already held",
                details={"key": self.key},
            )
        return True

    def _try_acquire(self, redis: Redis) -> bool:
        return bool(redis.set(self.key, self._token, nx=True, ex=self.ttl))

    def release(self) -> bool:
        """
        Release the lock if this instance holds it.

        Returns:
            True if the key was deleted, False if we did not own it
        """
        if self._token is None:
            return False

        redis = self._get_redis()
        result = redis.eval(self.RELEASE_SCRIPT, 1, self.key, self._token)
        self._token = None
        return bool(result)

    @property
    def is_held(self) -> bool:
        return self._token is not None

    def __enter__(self) -> DistributedLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> bool:
        self.release()
        return False


def check_version(
    model_class: type[T],
    pk: Any,
    expected_version: int,
) -> T:
    """
    Lock a row and verify it still has the version the caller read.

    Args:
        model_class: Model with a ``version`` field
        pk: Primary key of the record
        expected_version: Version the caller based its decision on

    Returns:
        The row, locked with SELECT ... FOR UPDATE until the surrounding
        transaction ends

    Raises:
        NotFoundError: If the row doesn't exist
        StaleRecordError: If the row was modified since it was read

    Note:
        Call inside ``transaction.atomic()``; the lock is released at the
        end of the outermost transaction.
    """
    with transaction.atomic():
        instance = (
            model_class.objects.select_for_update()
            .filter(pk=pk, version=expected_version)
            .first()
        )

        if instance is None:
            model_name = model_class.__name__
            current_version = (
                model_class.objects.filter(pk=pk)
                .values_list("version", flat=True)
                .first()
            )
            if current_version is None:
                raise NotFoundError(
                    f"{model_name} {pk} not found",
                    error_code=f"{model_name.upper()}_NOT_FOUND",
                    details={"pk": str(pk)},
                )

            raise StaleRecordError(
                f"{model_name} {pk} has been modified "
                f"(expected version {expected_version}, current {current_version})",
                details={
                    "pk": str(pk),
                    "expected_version": expected_version,
                    "current_version": current_version,
                },
            )

        return instance


__all__ = [
    "DistributedLock",
    "check_version",
]
