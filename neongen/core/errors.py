"""
Error Taxonomy
Domain exceptions and fal.ai provider error translation.

Every exception carries the HTTP status the API answers with, so routes never
have to map errors themselves.
"""

from typing import Optional, Type

import httpx


class StudioError(Exception):
    """Base exception for all studio errors."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}


class ValidationError(StudioError):
    """Bad input shape, size or count. Raised before any remote call."""
    status_code = 400


class NotFoundError(StudioError):
    """Referenced job id is unknown."""
    status_code = 404


class NotReadyError(StudioError):
    """Referenced style has not finished training."""
    status_code = 409


class ArchiveError(StudioError):
    """Training archive could not be built."""
    status_code = 500


class UploadError(StudioError):
    """Archive upload to remote storage failed."""
    status_code = 502


class RemoteSubmissionError(StudioError):
    """Training request was rejected by the remote queue."""
    status_code = 502


class RemotePollError(StudioError):
    """Remote queue status could not be read or had an unexpected shape."""
    status_code = 502


class GenerationError(StudioError):
    """Image generation failed on the provider side."""
    status_code = 502


class ProviderInsufficientCredits(StudioError):
    status_code = 402


class ProviderRateLimited(StudioError):
    status_code = 429


class ProviderUnavailable(StudioError):
    """Provider timed out or could not be reached."""
    status_code = 503


class TrainingTimeoutError(StudioError):
    """Watcher gave up waiting for a terminal training state."""
    status_code = 504


class FalAPIError(Exception):
    """Non-2xx response from a fal.ai endpoint."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"fal.ai request failed ({status_code}): {message}")
        self.status_code = status_code
        self.provider_message = message


TIMEOUT_EXCEPTIONS = (httpx.TimeoutException, httpx.ConnectError, TimeoutError)

# Messages shown to users for known provider failures during training
TRAINING_ERROR_MESSAGES = {
    402: "Insufficient fal.ai credits. Please add credits to your account.",
    429: "Rate limit exceeded. Please retry in 60 seconds.",
    422: "Invalid training data - check image formats (JPEG/PNG/WEBP only).",
}
TRAINING_UNAVAILABLE_MESSAGE = "Training service unavailable. Please try again later."

GENERATION_ERROR_MESSAGES = {
    402: "Insufficient fal.ai credits.",
    429: "Rate limit exceeded. Retry in 60 seconds.",
}
GENERATION_UNAVAILABLE_MESSAGE = "Image generation service unavailable. Please try again later."


def describe_training_error(error: BaseException) -> Optional[str]:
    """
    Map a provider failure to a user-facing message.

    Returns None when the error is not a known provider condition.
    """
    if isinstance(error, FalAPIError):
        return TRAINING_ERROR_MESSAGES.get(error.status_code)
    if isinstance(error, TIMEOUT_EXCEPTIONS):
        return TRAINING_UNAVAILABLE_MESSAGE
    return None


def translate_training_error(
    error: BaseException,
    fallback: Type[StudioError] = RemoteSubmissionError,
    context: str = "Training request failed",
) -> StudioError:
    """
    Translate any exception raised while talking to the trainer into a StudioError.

    Args:
        error: The caught exception
        fallback: Error class used when the failure is not a known provider condition
        context: Prefix put in front of raw provider messages

    Returns:
        StudioError carrying a user-facing message
    """
    if isinstance(error, StudioError):
        return error

    if isinstance(error, FalAPIError):
        if error.status_code == 402:
            return ProviderInsufficientCredits(TRAINING_ERROR_MESSAGES[402])
        if error.status_code == 429:
            return ProviderRateLimited(TRAINING_ERROR_MESSAGES[429])
        if error.status_code == 422:
            return fallback(TRAINING_ERROR_MESSAGES[422], status_code=422)
        return fallback(f"{context}: {error.provider_message}")

    if isinstance(error, TIMEOUT_EXCEPTIONS):
        return ProviderUnavailable(TRAINING_UNAVAILABLE_MESSAGE)

    return fallback(f"{context}: {error}")


def translate_generation_error(error: BaseException) -> StudioError:
    """Translate a generation failure. Only credits and rate limits get dedicated messages."""
    if isinstance(error, StudioError):
        return error

    if isinstance(error, FalAPIError):
        if error.status_code == 402:
            return ProviderInsufficientCredits(GENERATION_ERROR_MESSAGES[402])
        if error.status_code == 429:
            return ProviderRateLimited(GENERATION_ERROR_MESSAGES[429])
        return GenerationError(f"fal.ai generation error: {error.provider_message}")

    if isinstance(error, TIMEOUT_EXCEPTIONS):
        return ProviderUnavailable(GENERATION_UNAVAILABLE_MESSAGE)

    return GenerationError(f"fal.ai generation error: {error}")


__all__ = [
    "StudioError",
    "ValidationError",
    "NotFoundError",
    "NotReadyError",
    "ArchiveError",
    "UploadError",
    "RemoteSubmissionError",
    "RemotePollError",
    "GenerationError",
    "ProviderInsufficientCredits",
    "ProviderRateLimited",
    "ProviderUnavailable",
    "TrainingTimeoutError",
    "FalAPIError",
    "describe_training_error",
    "translate_training_error",
    "translate_generation_error",
]
