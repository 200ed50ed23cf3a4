"""Error taxonomy and classification of service failures."""

import socket
from enum import Enum
from typing import Any

import httpx
import openai

from .logging_utils import get_logger

logger = get_logger(__name__)

# errno-style codes that mean the host could not be resolved or reached in time
NETWORK_ERROR_CODES = frozenset({"ENOTFOUND", "ETIMEDOUT", "EAI_AGAIN"})

# How deep to follow __cause__/__context__ when looking for network signals
MAX_CAUSE_DEPTH = 10

RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please wait a moment and try again."
SERVICE_UNAVAILABLE_MESSAGE = (
    "OpenAI service is temporarily unavailable. Please try again later."
)
INVALID_MODEL_MESSAGE = "Invalid chat model. Please check your settings."
NETWORK_UNREACHABLE_MESSAGE = (
    "Unable to reach OpenAI servers. Please check your internet connection."
)


class ErrorKind(str, Enum):
    """Closed set of user-facing error kinds."""

    NO_MICROPHONE = "NO_MICROPHONE"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    INVALID_API_KEY = "INVALID_API_KEY"
    API_ERROR = "API_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    POST_PROCESSING_ERROR = "POST_PROCESSING_ERROR"


class VoiceMDError(Exception):
    """Base exception for Voice MD errors.

    A classified error carries an :class:`ErrorKind`; ``code`` is only set for
    ``API_ERROR``. Instances are not meant to be modified once raised.
    """

    def __init__(
        self, message: str, kind: ErrorKind | None = None, code: str | None = None
    ) -> None:
        super().__init__(message)
        self._message = message
        self._kind = kind
        self._code = code

    @property
    def message(self) -> str:
        return self._message

    @property
    def kind(self) -> ErrorKind | None:
        return self._kind

    @property
    def code(self) -> str | None:
        return self._code

    @property
    def user_message(self) -> str:
        """Text suitable for showing to the user."""
        if self._kind is ErrorKind.NO_MICROPHONE:
            return "No microphone found. Please connect a microphone and try again."
        if self._kind is ErrorKind.PERMISSION_DENIED:
            return (
                "Microphone access denied. "
                "Please grant microphone permission in your system settings."
            )
        if self._kind is ErrorKind.INVALID_API_KEY:
            return "Invalid OpenAI API key. Please check your settings and try again."
        if self._kind is ErrorKind.API_ERROR:
            return f"OpenAI API error ({self._code}): {self._message}"
        if self._kind is ErrorKind.NETWORK_ERROR:
            return (
                f"Network error: {self._message}. "
                "Please check your internet connection."
            )
        if self._kind is ErrorKind.POST_PROCESSING_ERROR:
            return (
                f"Post-processing failed: {self._message}. "
                "Inserted raw transcription only."
            )
        return self._message or "An unknown error occurred"

    def __repr__(self) -> str:
        kind = self._kind.value if self._kind else None
        return f"{type(self).__name__}(kind={kind!r}, code={self._code!r}, message={self._message!r})"


class AudioCaptureError(VoiceMDError):
    """Exception raised for audio capture related errors."""

    pass


class MicrophoneNotFoundError(AudioCaptureError):
    """Exception raised when no microphone is found."""

    def __init__(self, message: str = "No microphone found") -> None:
        super().__init__(message, kind=ErrorKind.NO_MICROPHONE)


class MicrophonePermissionError(AudioCaptureError):
    """Exception raised when the platform denies microphone access."""

    def __init__(self, message: str = "Permission denied") -> None:
        super().__init__(message, kind=ErrorKind.PERMISSION_DENIED)


def _status_of(error: Any) -> int | None:
    """Extract an HTTP-like status from an SDK error or a plain object."""
    for attr in ("status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def _is_network_signal(error: Any) -> bool:
    """Check the error and its cause chain for DNS or connect-timeout signals."""
    current = error
    for _ in range(MAX_CAUSE_DEPTH):
        if current is None:
            return False
        if getattr(current, "code", None) in NETWORK_ERROR_CODES:
            return True
        if isinstance(
            current,
            (
                socket.gaierror,
                httpx.ConnectTimeout,
                openai.APITimeoutError,
                TimeoutError,
            ),
        ):
            return True
        current = getattr(current, "__cause__", None) or getattr(
            current, "__context__", None
        )
    return False


def _message_of(error: Any) -> str | None:
    message = getattr(error, "message", None)
    if isinstance(message, str) and message:
        return message
    if isinstance(error, BaseException) and str(error):
        return str(error)
    return None


def classify(error: Any, post_processing: bool = False) -> VoiceMDError:
    """
    Map a transport or service failure onto a classified VoiceMDError.

    Status checks run before network checks, so an error carrying both a 429
    status and a timeout code is classified by its status. The
    ``post_processing`` flag only changes which kind is produced.

    Args:
        error: Exception (or any object with status/code attributes)
        post_processing: Whether the failure came from the chat completion call

    Returns:
        Classified VoiceMDError (never raised here)
    """
    if isinstance(error, VoiceMDError) and error.kind is not None:
        if post_processing and error.kind is ErrorKind.API_ERROR:
            return VoiceMDError(error.message, ErrorKind.POST_PROCESSING_ERROR)
        if not post_processing and error.kind is ErrorKind.POST_PROCESSING_ERROR:
            return VoiceMDError(error.message, ErrorKind.API_ERROR, code="UNKNOWN")
        return error

    status = _status_of(error)

    if status in (401, 403):
        return VoiceMDError("Invalid or missing API key", ErrorKind.INVALID_API_KEY)

    if status == 429:
        if post_processing:
            return VoiceMDError(RATE_LIMIT_MESSAGE, ErrorKind.POST_PROCESSING_ERROR)
        return VoiceMDError(RATE_LIMIT_MESSAGE, ErrorKind.API_ERROR, code="429")

    if status == 404 and post_processing:
        return VoiceMDError(INVALID_MODEL_MESSAGE, ErrorKind.POST_PROCESSING_ERROR)

    if status is not None and status >= 500:
        if post_processing:
            return VoiceMDError(
                SERVICE_UNAVAILABLE_MESSAGE, ErrorKind.POST_PROCESSING_ERROR
            )
        return VoiceMDError(
            SERVICE_UNAVAILABLE_MESSAGE, ErrorKind.API_ERROR, code=str(status)
        )

    if _is_network_signal(error):
        return VoiceMDError(NETWORK_UNREACHABLE_MESSAGE, ErrorKind.NETWORK_ERROR)

    message = _message_of(error)
    if post_processing:
        return VoiceMDError(
            message or "An error occurred while structuring text",
            ErrorKind.POST_PROCESSING_ERROR,
        )
    return VoiceMDError(
        message or "An error occurred while transcribing audio",
        ErrorKind.API_ERROR,
        code=str(status) if status is not None else "UNKNOWN",
    )


def describe_error(error: BaseException) -> str:
    """
    Render any exception as a user-facing message.

    Classified errors use their kind's wording; anything else falls back to
    its message so raw exception objects never reach the user.
    """
    if isinstance(error, VoiceMDError):
        return error.user_message
    return str(error) or "An unknown error occurred"
