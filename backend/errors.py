"""Exceptions raised by the booking components and mapped to HTTP answers by the routes."""


class BookingError(Exception):
    """Base class for errors that should reach the caller as a client error."""

    status_code = 400
    code = "booking_error"

    def __init__(self, message, code=None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def to_dict(self):
        return {"success": False, "message": self.message, "code": self.code}


class InvalidRequestError(BookingError):
    """A required field is missing or could not be understood."""

    code = "invalid_request"


class EndTimeOverflowError(InvalidRequestError):
    """The appointment would end after midnight."""

    code = "end_time_overflow"


class SlotConflictError(BookingError):
    """The requested slot is already taken for that professional."""

    code = "slot_unavailable"
