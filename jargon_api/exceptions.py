"""
Custom exceptions for the Jargon Lookup API.

Services raise these; the handlers registered in main.py map each one to an
HTTP status and the {success, error} response envelope.
"""
from typing import Optional


class JargonAPIError(Exception):
    """Base exception for all service errors."""
    status_code = 500
    public_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.public_message
        super().__init__(self.message)


class ValidationError(JargonAPIError):
    """Raised when required fields are missing or a value is out of range."""
    status_code = 400
    public_message = "Invalid request"


class UpstreamError(JargonAPIError):
    """Raised when the language-model API call fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.upstream_status = status_code
        # Only forward real HTTP error statuses; anything else is ours to report as 500
        self.status_code = status_code if status_code and 400 <= status_code < 600 else 500
        super().__init__(f"OpenAI API error: {message}")


class PersistenceError(JargonAPIError):
    """Raised when a database operation fails. The message is safe to show clients."""

    def __init__(self, message: str = "Database error"):
        super().__init__(message)
