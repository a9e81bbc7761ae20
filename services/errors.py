class BookingError(Exception):
    """A declined booking operation. Nothing was mutated."""

    status_code = 400
    default_message = "Booking operation declined"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidDuration(BookingError):
    status_code = 400
    default_message = "Invalid duration"


class SlotUnavailable(BookingError):
    status_code = 400
    default_message = "Slot not available"


class NotFound(BookingError):
    status_code = 404
    default_message = "Booking not found"


class AlreadyResolved(BookingError):
    status_code = 409
    default_message = "Booking already resolved"
