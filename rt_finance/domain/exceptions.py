"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    code = "DOMAIN_ERROR"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ValidationError(DomainException):
    """Required field missing or malformed"""

    code = "VALIDATION_ERROR"


class InvalidAmount(ValidationError):
    """Subscription total is not an exact multiple of the monthly amount"""

    code = "INVALID_AMOUNT"


class MissingRange(ValidationError):
    """Subscription start or end month is absent"""

    code = "MISSING_RANGE"


class NotFoundError(DomainException):
    """Requested record does not exist"""

    code = "NOT_FOUND"


class ConflictError(DomainException):
    """Operation conflicts with existing state"""

    code = "CONFLICT"


class AlreadySubmitted(ConflictError):
    """A monthly fee already exists for this house and period"""

    code = "MONTHLY_FEE_ALREADY_SUBMITTED"


class DeferredActive(ConflictError):
    """Period is already covered by a prepaid subscription"""

    code = "DEFERRED_ACTIVE"


class BackdatedEntry(ConflictError):
    """Cash entry dated before the latest cash entry"""

    code = "BACKDATED_ENTRY"


class InsufficientBalance(ConflictError):
    """Posting would drive the cash balance below zero"""

    code = "INSUFFICIENT_BALANCE"


class ConcurrentUpdate(ConflictError):
    """Another transaction kept winning the race for the same rows"""

    code = "CONCURRENT_UPDATE"


class UnsupportedAmount(DomainException):
    """Fee total has no entry in the breakdown table"""

    code = "UNSUPPORTED_AMOUNT"


class ExternalServiceError(DomainException):
    """External dependency failed or is unavailable"""

    code = "EXTERNAL_SERVICE_ERROR"


class OCRError(ExternalServiceError):
    """Image could not be read by the OCR engine"""

    code = "OCR_ERROR"


class ImageStoreError(ExternalServiceError):
    """Receipt image upload or download failed"""

    code = "IMAGE_STORE_ERROR"


class NotificationError(ExternalServiceError):
    """Approval channel rejected or dropped a message"""

    code = "NOTIFICATION_ERROR"
