"""
Error taxonomy for QRM.

    QuestionnaireFormatException
        Malformed definition. Fatal to the affected item only; the
        response tree turns it into a broken-item placeholder.

    AnswerValidationError
        Input out of range or unparsable. Local and recoverable. Most
        callers receive the diagnostic as a string from validate_input();
        the exception exists for strict commits.

    QuestionnaireStateError
        An operation incompatible with the item's declared type. This is
        a contract violation and is never caught by the engine.
"""

from typing import Any, Optional


class QuestionnaireFormatException(Exception):
    """Raised when a definition lacks required structural data."""

    def __init__(self, message: str, element: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.element = element


class AnswerValidationError(ValueError):
    """Raised when strict input validation fails."""

    def __init__(self, message: str, link_id: Optional[str] = None):
        super().__init__(message)
        self.link_id = link_id


class QuestionnaireStateError(RuntimeError):
    """Raised when an operation does not fit the item's declared type."""
    pass


__all__ = [
    "QuestionnaireFormatException",
    "AnswerValidationError",
    "QuestionnaireStateError",
]
