# Error taxonomy shared by the services, the HTTP layer and the feed client.
# Services raise these; app.main turns them into JSON error responses and
# app.client.session turns error responses back into them.

from typing import Dict, List, Optional


class AppError(Exception):
    """Base class for every error the API reports to its callers"""

    status_code = 500

    def __init__(self, message: str = "An unexpected error occurred"):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict:
        return {"message": self.message}


class ValidationError(AppError):
    """Bad input shape or size. Carries per-field messages."""

    status_code = 422

    def __init__(
        self,
        message: str = "The given data was invalid.",
        field: Optional[str] = None,
        errors: Optional[Dict[str, List[str]]] = None,
    ):
        super().__init__(message)
        self.field = field
        self.errors = dict(errors or {})
        if field and field not in self.errors:
            self.errors[field] = [message]

    def to_dict(self) -> Dict:
        return {"message": self.message, "errors": self.errors}


class NotFoundError(AppError):
    status_code = 404

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message)


class UnauthorizedError(AppError):
    """Action attempted by someone who is not the owner/author"""

    status_code = 403

    def __init__(self, message: str = "Not enough permissions"):
        super().__init__(message)


class UnauthenticatedError(UnauthorizedError):
    status_code = 401

    def __init__(self, message: str = "Unauthenticated"):
        super().__init__(message)


class TransientIOError(AppError):
    """Storage or network failure; the operation may succeed if retried"""

    status_code = 503

    def __init__(self, message: str = "Service temporarily unavailable"):
        super().__init__(message)


_ERRORS_BY_STATUS = {
    401: UnauthenticatedError,
    403: UnauthorizedError,
    404: NotFoundError,
    422: ValidationError,
    502: TransientIOError,
    503: TransientIOError,
    504: TransientIOError,
}


def error_from_response(status_code: int, body: Optional[Dict]) -> AppError:
    """Rebuild the matching error from a JSON error response"""
    body = body or {}
    message = body.get("message") or body.get("detail") or f"Request failed with status {status_code}"
    error_cls = _ERRORS_BY_STATUS.get(status_code)
    if error_cls is ValidationError:
        return ValidationError(message, errors=body.get("errors"))
    if error_cls is None:
        error = AppError(message)
        error.status_code = status_code
        return error
    return error_cls(message)
