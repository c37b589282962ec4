from pymongo.errors import ExecutionTimeout

# Server error code for MaxTimeMSExpired.
_MAX_TIME_MS_EXPIRED = 50


class DeadlineExceeded(ExecutionTimeout):
    """Raised when a store operation does not finish within its bounded deadline."""

    def __init__(self, operation: str = "operation", deadline: float = 0.0):
        self.operation = operation
        self.deadline = deadline
        super().__init__(
            f"MongoDB {operation} did not complete within {deadline:g} seconds.",
            _MAX_TIME_MS_EXPIRED,
        )
