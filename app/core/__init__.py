"""
Core Application - Infrastructure & Base Classes

Generic, reusable building blocks shared by the custody, rides and
notifications apps. Nothing in here knows about escrows or wallets.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID as primary key
    - VersionedModelMixin: Optimistic locking version counter

Services (import from core.services):
    - BaseService: Base class for service layer (logging, atomic, require)

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes and HTTP status
    - ValidationError, PermissionDeniedError, NotFoundError
    - ConflictError, BusinessRuleError, ExternalServiceError

API helpers (import from core.api):
    - DomainErrorMixin: Renders BaseApplicationError raised by a view

Views (import from core.views):
    - health_check: Liveness/readiness probe
"""
