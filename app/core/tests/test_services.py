"""
Tests for BaseService helpers.
"""

import pytest

from authentication.models import User
from core.exceptions import ValidationError
from core.services import BaseService


class SampleService(BaseService):
    pass


class TestRequire:
    def test_passes_when_all_present(self):
        SampleService.require(reference="MP-1", amount=0)

    def test_lists_every_missing_field(self):
        with pytest.raises(ValidationError) as exc_info:
            SampleService.require(reference="  ", reason=None, amount=5)

        assert exc_info.value.error_code == "VALIDATION_ERROR"
        assert set(exc_info.value.details) == {"reference", "reason"}


class TestLogger:
    def test_logger_named_after_service(self):
        logger = SampleService.get_logger()

        assert logger.name == f"{__name__}.SampleService"


@pytest.mark.django_db
class TestAtomic:
    def test_rolls_back_on_error(self):
        with pytest.raises(RuntimeError):
            with SampleService.atomic():
                User.objects.create_user(email="rollback@example.com")
                raise RuntimeError("abort")

        assert not User.objects.filter(email="rollback@example.com").exists()
