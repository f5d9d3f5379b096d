class BookingError(RuntimeError):
    """Base class for errors surfaced to the booking UI."""
    pass


class BookingValidationError(BookingError):
    """Raised when a draft is missing or carries an invalid field. Never reaches the backend."""
    pass


class StaleSlotError(BookingError):
    """Raised when the selected slot elapsed between availability fetch and submit."""
    pass


class BackendError(BookingError):
    """Raised when the backend answers with an error (4xx/5xx, ok=false) or is unreachable."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SeriesConflictError(BackendError):
    """Raised when a recurring series cannot be booked as a whole. Nothing is left booked."""

    def __init__(self, message: str, conflicts: tuple[str, ...] = ()) -> None:
        super().__init__(message, status_code=409)
        self.conflicts = conflicts
