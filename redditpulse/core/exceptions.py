# redditpulse/core/exceptions.py

class AppException(Exception):
    """Base exception for the whole project."""

class ConfigError(AppException):
    """Invalid configuration or taxonomy definition."""

class FeedFetchError(AppException):
    """The feed source answered with a non-success response."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code

class StoreWriteError(AppException):
    """Insert/update failure on a single entity."""

class ClassificationParseError(AppException):
    """Model output did not contain a usable JSON object."""

class RateLimitedError(AppException):
    """The LLM provider reported quota or rate exhaustion. Halts the batch."""
