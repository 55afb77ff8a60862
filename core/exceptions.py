"""
Custom exceptions for better error handling.
"""
from typing import Any, Dict, Optional


class ScheduleCException(Exception):
    """Base exception for all Schedule C tracker errors."""
    
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize exception.
        
        Args:
            message: Error message
            details: Additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ParsingError(ScheduleCException):
    """Raised when a CSV file cannot be read."""
    pass


class FileProcessingError(ScheduleCException):
    """Raised when ingesting an uploaded file fails."""
    pass


class ValidationError(ScheduleCException):
    """Raised when user-supplied input is invalid."""
    pass


class StorageError(ScheduleCException):
    """Raised when the persistence layer cannot be read or written."""
    pass


class LLMError(ScheduleCException):
    """Raised when the classification service call fails."""
    pass


class ConfigurationError(ScheduleCException):
    """Raised when configuration or a required credential is missing."""
    pass


class ExportError(ScheduleCException):
    """Raised when an export cannot be rendered."""
    pass
