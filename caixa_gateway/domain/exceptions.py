"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class InvalidCountError(DomainException):
    """Schedule split requested with fewer than one installment"""

    pass


class ReadFailureError(DomainException):
    """Store is unreachable, timed out or denied the read"""

    pass


class InvalidRowError(ReadFailureError):
    """Row from the store failed validation at the read boundary"""

    pass


class NotAuthenticatedError(DomainException):
    """No caller identity available for a scoped computation"""

    pass


class PermissionDeniedError(DomainException):
    """Caller is not allowed to perform the requested write"""

    pass


class NotFoundError(DomainException):
    """Requested entry, schedule or profile does not exist"""

    pass


class InvalidTransitionError(DomainException):
    """Requested status change is not allowed from the current status"""

    pass


class ScheduleConflictError(DomainException):
    """Entry already owns a schedule batch"""

    pass


class TotalMismatchError(DomainException):
    """Requested schedule total differs from the entry's value"""

    pass
