"""
XP System - Error Types
Structured errors raised by the core and mapped to HTTP responses in main.py
"""

from typing import Any, Dict, Optional


class XPSystemError(Exception):
    """
    Base error for the XP core.

    Args:
        message: Human-readable error message
        details: Additional structured data for logging
        error_code: Optional code for programmatic handling
    """

    status_code: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message = message
        self.details = details or {}
        self.error_code = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"


class NotFoundError(XPSystemError):
    """Raised when a quest, completion or profile does not exist."""

    status_code = 404

    def __init__(self, entity: str, entity_id: Any) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            f"{entity.capitalize()} not found",
            details={"entity": entity, "id": str(entity_id)},
            error_code="NOT_FOUND",
        )


class InvalidInputError(XPSystemError):
    """Raised when a required field is missing or malformed."""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        self.field = field
        super().__init__(
            message,
            details={"field": field} if field else None,
            error_code="INVALID_INPUT",
        )


class DuplicateCompletionError(InvalidInputError):
    """Raised under the once-per-day policy when a quest is already done that day."""

    status_code = 409

    def __init__(self, quest_id: Any, completion_date: Any) -> None:
        super().__init__("Quest already completed for this date", field="quest_id")
        self.error_code = "DUPLICATE_COMPLETION"
        self.details = {"quest_id": str(quest_id), "date": str(completion_date)}


class UnauthorizedError(XPSystemError):
    """Raised when an identity-scoped operation has no identity."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message, error_code="UNAUTHORIZED")


class PersistenceError(XPSystemError):
    """
    Raised when the underlying store fails.

    The original driver error is kept for logging; clients only see a
    generic message.
    """

    status_code = 500

    def __init__(self, operation: str, original_error: Exception) -> None:
        self.operation = operation
        self.original_error = original_error
        super().__init__(
            f"Database error during {operation}",
            details={
                "operation": operation,
                "error": str(original_error),
                "error_type": type(original_error).__name__,
            },
            error_code="PERSISTENCE_ERROR",
        )
