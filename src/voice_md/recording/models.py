"""Data models for audio recording."""

from dataclasses import dataclass


@dataclass(frozen=True)
class AudioArtifact:
    """A finished, immutable audio recording ready for transmission."""

    data: bytes
    mime_type: str
    extension: str
    sample_rate: int
    duration_seconds: float

    @property
    def filename(self) -> str:
        """Upload file name; the service infers the container from it."""
        return f"recording.{self.extension}"

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class RecordingState:
    """Snapshot of the capture engine's recording state."""

    is_recording: bool = False
    is_paused: bool = False
    duration_seconds: int = 0
    artifact: AudioArtifact | None = None


@dataclass(frozen=True)
class RecordingModes:
    """Per-session choices handed to the completion callback."""

    diarization: bool = False
    post_processing: bool = False
