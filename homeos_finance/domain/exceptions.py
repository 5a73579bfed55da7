"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class DomainValidationError(DomainException):
    """Input rejected at definition time, never silently corrected"""

    pass


class InvalidRecurrenceError(DomainValidationError):
    """Recurring transaction definition is malformed"""

    pass


class InvalidDebtTermsError(DomainValidationError):
    """Debt terms cannot produce an amortization schedule"""

    pass


class InvalidHorizonError(DomainValidationError):
    """Forecast horizon is out of range"""

    pass


class DataIntegrityError(DomainException):
    """Persisted data references something missing or is internally inconsistent"""

    pass


class ScheduleRegenerationError(DomainException):
    """Schedule cannot be replaced because some installments are already paid"""

    pass


class InstallmentStateError(DomainException):
    """Installment payment is not valid for the debt's current state"""

    pass


class GenerationLimitError(DomainException):
    """A recurrence produced more occurrences in one run than the configured cap"""

    pass


class EntityNotFoundError(DomainException):
    """Requested entity does not exist for this user"""

    pass
