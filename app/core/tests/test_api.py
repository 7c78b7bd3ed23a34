"""
Tests for DomainErrorMixin and the health check endpoint.
"""

import pytest
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.test import APIRequestFactory
from rest_framework.views import APIView

from core.api import DomainErrorMixin
from core.exceptions import BusinessRuleError


class RaisingView(DomainErrorMixin, APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request):
        if request.query_params.get("fail") == "domain":
            raise BusinessRuleError(
                "No rides left",
                error_code="NO_CREDITS_REMAINING",
                details={"rides_remaining": 0},
            )
        if request.query_params.get("fail") == "other":
            raise KeyError("unexpected")
        return Response({"ok": True})


class TestDomainErrorMixin:
    def test_domain_error_rendered_with_status(self):
        request = APIRequestFactory().get("/", {"fail": "domain"})

        response = RaisingView.as_view()(request)

        assert response.status_code == 422
        assert response.data == {
            "error": "No rides left",
            "error_code": "NO_CREDITS_REMAINING",
            "details": {"rides_remaining": 0},
        }

    def test_other_errors_propagate(self):
        request = APIRequestFactory().get("/", {"fail": "other"})

        with pytest.raises(KeyError):
            RaisingView.as_view()(request)

    def test_success_untouched(self):
        request = APIRequestFactory().get("/")

        response = RaisingView.as_view()(request)

        assert response.status_code == 200


@pytest.mark.django_db
class TestHealthCheck:
    def test_healthy_with_database(self, client, settings):
        settings.CACHES = {
            "default": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache"}
        }

        response = client.get("/health/")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert body["cache"] == "connected"
