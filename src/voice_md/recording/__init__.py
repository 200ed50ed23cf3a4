"""Audio recording: capture engine and user-facing session."""

from .audio_capture import AudioCapture
from .models import AudioArtifact, RecordingModes, RecordingState
from .session import RecordingSession, SessionState

__all__ = [
    "AudioArtifact",
    "AudioCapture",
    "RecordingModes",
    "RecordingSession",
    "RecordingState",
    "SessionState",
]
