"""Domain exceptions raised by Duely services.

Routes let these propagate; the handlers in ``duely.api.middleware.error_handler``
turn them into the standard error envelope.
"""


class DuelyError(Exception):
    """Base class for expected, user-facing failures."""

    error_type = "duely_error"
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class DomainValidationError(DuelyError):
    """Input passed schema validation but violates a business rule."""

    error_type = "validation_error"
    status_code = 400


class NotFoundError(DuelyError):
    """The requested row does not exist."""

    error_type = "not_found"
    status_code = 404


class OwnershipError(DuelyError, PermissionError):
    """The row exists but belongs to someone else."""

    error_type = "permission_denied"
    status_code = 403


class PlanLimitError(DuelyError):
    """The user's plan does not allow the operation."""

    error_type = "plan_limit"
    status_code = 403


class ConflictError(DuelyError):
    """A uniqueness rule would be broken."""

    error_type = "conflict"
    status_code = 409


class ExternalServiceError(DuelyError):
    """A third-party API call failed."""

    error_type = "external_service_error"
    status_code = 502
