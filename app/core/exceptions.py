"""
Custom exception hierarchy for the payment backend.

All application-level exceptions inherit from AppException so they can be
caught by a single global handler.
"""


class AppException(Exception):
    """Base for all app exceptions."""

    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        details: dict | None = None,
    ):
        self.status_code = status_code
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        super().__init__(message)


class UnauthorizedError(AppException):
    """Raised when no valid user session is attached to the request."""

    def __init__(self, message: str = "Yetkisiz erişim"):
        super().__init__(
            status_code=401,
            error_code="UNAUTHORIZED",
            message=message,
        )


class ValidationError(AppException):
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(
            status_code=400,
            error_code="VALIDATION_ERROR",
            message=message,
            details=details,
        )


class NotFoundError(AppException):
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(
            status_code=404,
            error_code="NOT_FOUND",
            message=message,
            details=details,
        )


class InsufficientStockError(AppException):
    """Raised when a requested quantity exceeds what the product has left."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(
            status_code=400,
            error_code="INSUFFICIENT_STOCK",
            message=message,
            details=details,
        )


class PaymentGatewayError(AppException):
    """Raised when the gateway answered but rejected the payment."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(
            status_code=400,
            error_code="PAYMENT_GATEWAY_ERROR",
            message=message,
            details=details,
        )

