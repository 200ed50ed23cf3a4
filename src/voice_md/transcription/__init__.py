"""Remote transcription and post-processing clients."""

from .client import TranscriptionClient, create_openai_client
from .models import TranscriptionOptions, TranscriptionResult, TranscriptSegment
from .post_processor import PostProcessor

__all__ = [
    "PostProcessor",
    "TranscriptionClient",
    "TranscriptionOptions",
    "TranscriptionResult",
    "TranscriptSegment",
    "create_openai_client",
]
