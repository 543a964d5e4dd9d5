"""Error taxonomy shared by ingestion, persistence and briefings.

Every error carries a stable ``kind`` so callers at the boundary (CLI, API)
can report a structured error without inspecting the message.
"""

from typing import Any


class GroveError(Exception):
    """Base class for all errors raised by grove."""

    kind = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        """Return the structured form reported to callers."""
        return {"error": self.kind, "message": self.message}


class ValidationError(GroveError):
    """Raised when input is malformed or a mandatory field is missing."""

    kind = "validation"


class NotFoundError(GroveError):
    """Raised when a referenced contact or child record does not exist."""

    kind = "not_found"


class PersistenceError(GroveError):
    """Raised when a transactional write failed and was rolled back."""

    kind = "persistence"


class CollaboratorError(GroveError):
    """Raised when the extraction or narration model call failed."""

    kind = "collaborator"
