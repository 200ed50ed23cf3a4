"""Client for the remote speech-to-text endpoint."""

import time
from typing import Any

import openai

from ..errors import classify
from ..logging_utils import get_logger
from ..recording.formats import silent_wav
from ..recording.models import AudioArtifact
from .config import (
    CONNECTION_TEST_DURATION,
    CONNECTION_TEST_SAMPLE_RATE,
    DEFAULT_MAX_RETRIES,
    DEFAULT_REQUEST_TIMEOUT,
    DIARIZATION_CHUNKING_STRATEGY,
    DIARIZATION_RESPONSE_FORMAT,
    DIARIZATION_TIMESTAMP_GRANULARITIES,
    DIARIZATION_TRANSCRIPTION_MODEL,
    STANDARD_RESPONSE_FORMAT,
    STANDARD_TRANSCRIPTION_MODEL,
)
from .models import TranscriptionOptions, TranscriptionResult, TranscriptSegment

logger = get_logger(__name__)


def create_openai_client(
    api_key: str,
    timeout: float = DEFAULT_REQUEST_TIMEOUT,
    max_retries: int = DEFAULT_MAX_RETRIES,
) -> openai.AsyncOpenAI:
    """Create the shared async client used for transcription and chat calls."""
    return openai.AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=max_retries)


def _field(obj: Any, name: str, default: Any = None) -> Any:
    """Read a response field from either an SDK model or a plain mapping."""
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _optional_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class TranscriptionClient:
    """Sends finished recordings to the transcription service."""

    def __init__(
        self,
        api_key: str | None = None,
        client: openai.AsyncOpenAI | None = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> None:
        """
        Initialize the transcription client.

        Args:
            api_key: OpenAI API key (ignored when ``client`` is given)
            client: Existing AsyncOpenAI client to share with post-processing
            timeout: Request timeout in seconds
            max_retries: SDK-level retry attempts
        """
        if client is None:
            if not api_key:
                raise ValueError("An API key or a client is required")
            client = create_openai_client(api_key, timeout, max_retries)
        self._client = client

    @property
    def client(self) -> openai.AsyncOpenAI:
        return self._client

    def build_request(
        self,
        artifact: AudioArtifact,
        options: TranscriptionOptions | None = None,
        diarization: bool = False,
    ) -> dict[str, Any]:
        """
        Build the keyword arguments for ``audio.transcriptions.create``.

        Args:
            artifact: Finished recording
            options: Optional language and prompt hints
            diarization: Request per-speaker segments

        Returns:
            Request keyword arguments
        """
        request: dict[str, Any] = {
            "file": (artifact.filename, artifact.data, artifact.mime_type),
        }

        if diarization:
            request["model"] = DIARIZATION_TRANSCRIPTION_MODEL
            request["response_format"] = DIARIZATION_RESPONSE_FORMAT
            request["timestamp_granularities"] = list(DIARIZATION_TIMESTAMP_GRANULARITIES)
            request["chunking_strategy"] = DIARIZATION_CHUNKING_STRATEGY
        else:
            request["model"] = STANDARD_TRANSCRIPTION_MODEL
            request["response_format"] = STANDARD_RESPONSE_FORMAT

        if options is not None:
            if options.language:
                request["language"] = options.language
            if options.prompt:
                request["prompt"] = options.prompt

        return request

    async def transcribe(
        self,
        artifact: AudioArtifact,
        options: TranscriptionOptions | None = None,
        diarization: bool = False,
    ) -> TranscriptionResult:
        """
        Transcribe a finished recording.

        Args:
            artifact: Finished recording
            options: Optional language and prompt hints
            diarization: Request per-speaker segments

        Returns:
            Normalized TranscriptionResult

        Raises:
            VoiceMDError: Classified failure; raw transport and parse errors
                never escape
        """
        request = self.build_request(artifact, options, diarization)
        start_time = time.time()
        logger.debug(
            f"Transcribing {artifact.size} bytes ({artifact.mime_type}) "
            f"with {request['model']}"
        )

        try:
            response = await self._client.audio.transcriptions.create(**request)
            result = self.normalize_response(response, diarization)
        except Exception as e:
            error = classify(e, post_processing=False)
            logger.error(f"❌ Transcription failed: {error!r}", exc_info=e)
            raise error from e

        logger.info(
            f"✅ Transcription complete: {len(result.text)} chars, "
            f"time={time.time() - start_time:.2f}s"
        )
        return result

    @staticmethod
    def normalize_response(response: Any, diarization: bool) -> TranscriptionResult:
        """
        Convert a service response into a TranscriptionResult.

        Segments are kept only in diarization mode and only when the
        service returned a segment list.
        """
        if isinstance(response, str):
            return TranscriptionResult(text=response)

        segments: list[TranscriptSegment] | None = None
        raw_segments = _field(response, "segments")
        if diarization and raw_segments is not None:
            segments = [
                TranscriptSegment(
                    text=str(_field(segment, "text") or ""),
                    start=_optional_float(_field(segment, "start")) or 0.0,
                    end=_optional_float(_field(segment, "end")) or 0.0,
                    speaker=_field(segment, "speaker"),
                )
                for segment in raw_segments
            ]

        return TranscriptionResult(
            text=_field(response, "text") or "",
            language=_field(response, "language"),
            duration=_optional_float(_field(response, "duration")),
            segments=segments,
        )

    async def test_connection(self) -> bool:
        """
        Validate credentials and connectivity with a short silent recording.

        Returns:
            True only when a full transcription round trip succeeds
        """
        artifact = AudioArtifact(
            data=silent_wav(CONNECTION_TEST_DURATION, CONNECTION_TEST_SAMPLE_RATE),
            mime_type="audio/wav",
            extension="wav",
            sample_rate=CONNECTION_TEST_SAMPLE_RATE,
            duration_seconds=CONNECTION_TEST_DURATION,
        )
        try:
            await self.transcribe(artifact)
        except Exception as e:
            logger.warning(f"⚠️ Connection test failed: {e}")
            return False
        logger.info("✅ Connection test succeeded")
        return True
