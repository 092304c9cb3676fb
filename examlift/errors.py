"""Error taxonomy shared by the ExamLift modules."""


class ExamLiftError(Exception):
    """Base class for errors raised by ExamLift code."""


class ValidationError(ExamLiftError):
    """Missing or malformed user input; shown inline next to the form."""


class NotFoundError(ExamLiftError):
    """A session, topic, exam or attempt does not exist (or is not visible)."""


class PersistenceError(ExamLiftError):
    """A remote write failed after all retry attempts."""

    def __init__(self, operation: str, cause: Exception | None = None):
        self.operation = operation
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Could not save {operation}{detail}")
