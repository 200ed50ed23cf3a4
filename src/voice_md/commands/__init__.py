"""Voice command orchestration and host interfaces."""

from .interfaces import Editor, Notice, NoteStorage, Notifier, RecordingView
from .voice_command import PipelineResult, VoiceCommand

__all__ = [
    "Editor",
    "Notice",
    "NoteStorage",
    "Notifier",
    "PipelineResult",
    "RecordingView",
    "VoiceCommand",
]
