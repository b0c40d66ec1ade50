"""Error types for the DocuVision AI gateway."""

from typing import Optional


class DocuVisionError(Exception):
    """Base class for all gateway errors."""


class ConfigurationError(DocuVisionError, ValueError):
    """No usable API key is configured."""


class GenerationError(DocuVisionError):
    """A call to the generative-AI API failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class QuotaExceeded(GenerationError):
    """The API answered 429 for a specific key."""

    def __init__(
        self,
        message: str,
        api_key: str,
        retry_after: Optional[int] = None,
        quota_metric: Optional[str] = None,
    ):
        super().__init__(message, status_code=429)
        self.api_key = api_key
        self.retry_after = retry_after
        self.quota_metric = quota_metric


class TransientServiceError(GenerationError):
    """5xx answer, timeout or network failure."""


class FatalError(GenerationError):
    """Any other failure. Never retried."""


class AllCredentialsExhausted(DocuVisionError):
    """Every key rotation attempt ended in a quota error."""

    def __init__(self, message: str, retry_after: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.retry_after = retry_after


class ParseError(DocuVisionError):
    """Model output could not be parsed into the expected shape."""

    def __init__(self, message: str, raw_text: str):
        super().__init__(message)
        self.message = message
        self.raw_text = raw_text
