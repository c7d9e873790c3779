from typing import Optional


class ServiceError(Exception):
    status = 500
    default_detail = "internal error"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class Unauthorized(ServiceError):
    status = 401
    default_detail = "unauthorized"


class Forbidden(ServiceError):
    status = 403
    default_detail = "Insufficient role"


class NotFound(ServiceError):
    status = 404
    default_detail = "not found"


class ValidationError(ServiceError):
    status = 400
    default_detail = "invalid input"


class ConstraintViolation(ValidationError):
    default_detail = "constraint violation"


class UpstreamError(ServiceError):
    status = 500
    default_detail = "upstream service error"


__all__ = [
    "ServiceError",
    "Unauthorized",
    "Forbidden",
    "NotFound",
    "ValidationError",
    "ConstraintViolation",
    "UpstreamError",
]
