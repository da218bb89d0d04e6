"""
Exceptions raised by the external-service layer.

Routes and the background processor catch these and decide the user-facing
wording; they never reach the client as-is.
"""


class ServiceError(Exception):
    """Base class for failures of an external provider."""

    def __init__(self, message: str, provider: str = None):
        self.provider = provider
        super().__init__(message)


class TranscriptionError(ServiceError):
    """Speech-to-text failed or returned nothing usable."""


class TranslationError(ServiceError):
    """Translation failed at every provider in the chain."""


class StorageError(ServiceError):
    """Object storage upload, download or delete failed."""


class LLMError(ServiceError):
    """The LLM endpoint could not be reached or returned an empty answer."""
