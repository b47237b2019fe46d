"""Domain Exceptions"""


class DomainError(Exception):
    """Base class for errors raised by the reservation engine"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    """Malformed or contradictory input"""


class ConflictError(DomainError):
    """Room unavailable, overlapping block/reservation, duplicate key or stale write"""


class NotFoundError(DomainError):
    """Entity missing by id"""


class ForbiddenError(DomainError):
    """Cross-tenant or cross-user access"""


class ExternalServiceDegradation(DomainError):
    """A collaborator (coupons, notifications, cache) failed.

    Never surfaced to callers: services catch it, log it and carry on
    without the degraded feature.
    """
