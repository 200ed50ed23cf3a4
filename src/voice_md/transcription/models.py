"""Data models for transcription requests and results."""

from dataclasses import dataclass


@dataclass(frozen=True)
class TranscriptionOptions:
    """Optional hints forwarded with a transcription request."""

    language: str | None = None
    prompt: str | None = None  # context for better accuracy


@dataclass
class TranscriptSegment:
    """A timed span of transcript, optionally attributed to a speaker."""

    text: str
    start: float
    end: float
    speaker: str | None = None


@dataclass
class TranscriptionResult:
    """Normalized transcription returned by the service."""

    text: str
    language: str | None = None
    duration: float | None = None
    # None when segments were not requested or not returned
    segments: list[TranscriptSegment] | None = None

    @property
    def is_empty(self) -> bool:
        return not self.text or not self.text.strip()
