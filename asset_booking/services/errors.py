class BookingServiceError(Exception):
    pass


class NotFound(BookingServiceError):
    pass


class ValidationError(BookingServiceError, ValueError):
    pass
