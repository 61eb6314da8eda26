class ValidationError(Exception):
    """Raised when a summary request fails validation (report type, dates, ranges)."""
    def __init__(self, message):
        super().__init__(message)
        self.message = message


class RecordSourceError(Exception):
    """Raised when reading issue, mixing, lot or variety records fails."""
    def __init__(self, message):
        super().__init__(message)
        self.message = message
