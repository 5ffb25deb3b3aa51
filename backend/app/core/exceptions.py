class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class ValidationError(AppError):
    """Raised when caller input is malformed. Never retried."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=400, details=details)

class ForbiddenError(AppError):
    """Raised when the authorization policy denies an action."""
    def __init__(self, message: str = "Insufficient permissions", details: dict = None):
        super().__init__(message, status_code=403, details=details)

class NotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} with id {resource_id} not found",
            status_code=404,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )

class InvalidStateError(AppError):
    """Raised when a status transition is not permitted from the current state."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=409, details=details)

class PersistenceError(AppError):
    """Raised when the record store is unavailable. Callers may retry with backoff."""
    def __init__(self, message: str = "Record store unavailable", details: dict = None):
        super().__init__(message, status_code=503, details=details)
