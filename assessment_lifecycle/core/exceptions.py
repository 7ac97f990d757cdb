"""Custom exceptions for the application."""

from typing import Any, Dict, Optional


class ApplicationError(Exception):
    """Base exception for all application errors."""
    
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(ApplicationError):
    """Raised when validation fails."""
    
    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.field = field
        if field:
            self.details["field"] = field


class NotFoundError(ApplicationError):
    """Raised when a requested resource is not found."""
    pass


class ConflictError(ApplicationError):
    """Raised when there's a conflict with existing data."""
    pass


class BusinessLogicError(ApplicationError):
    """Raised when business logic constraints are violated."""
    pass


class InvalidStateError(BusinessLogicError):
    """Raised when an operation's precondition on the workflow state is not met.

    Always raised before any mutation, so the failed operation has no side effects.
    """
    pass
