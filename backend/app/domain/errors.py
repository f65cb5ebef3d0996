class BookingDomainError(Exception):
    """Base for business-rule failures surfaced to the caller as 4xx/5xx."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInputError(BookingDomainError):
    status_code = 400


class NotFoundError(BookingDomainError):
    status_code = 404


class SlotUnavailableError(BookingDomainError):
    status_code = 400


class ServiceUnavailableError(BookingDomainError):
    status_code = 400


class InsufficientCapacityError(BookingDomainError):
    status_code = 409

    def __init__(self, remaining: int) -> None:
        super().__init__(f"only {remaining} spot(s) left on this time slot")
        self.remaining = remaining


class CapacityExceededError(BookingDomainError):
    status_code = 400


class ForbiddenError(BookingDomainError):
    status_code = 403


class AlreadyCancelledError(BookingDomainError):
    status_code = 409


class PastBookingError(BookingDomainError):
    status_code = 400


class CapacityIntegrityError(BookingDomainError):
    """Restoring spots would push a slot above its total capacity."""

    status_code = 500
