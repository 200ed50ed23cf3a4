"""Configuration constants for the remote transcription and chat services."""

# Transcription profiles
STANDARD_TRANSCRIPTION_MODEL = "gpt-4o-mini-transcribe"
STANDARD_RESPONSE_FORMAT = "json"
DIARIZATION_TRANSCRIPTION_MODEL = "gpt-4o-transcribe-diarize"
DIARIZATION_RESPONSE_FORMAT = "diarized_json"
DIARIZATION_TIMESTAMP_GRANULARITIES = ["segment"]
DIARIZATION_CHUNKING_STRATEGY = "auto"

# Client behaviour
DEFAULT_REQUEST_TIMEOUT = 120.0  # seconds
DEFAULT_MAX_RETRIES = 2

# Connection test
CONNECTION_TEST_DURATION = 1.0  # seconds of silence
CONNECTION_TEST_SAMPLE_RATE = 44100  # Hz

# Post-processing
DEFAULT_CHAT_MODEL = "gpt-4o-mini"
DEFAULT_POST_PROCESSING_TEMPERATURE = 0.3  # low randomness, single-pass rewrite
DEFAULT_POST_PROCESSING_MAX_TOKENS = 4096

DEFAULT_POST_PROCESSING_PROMPT = """You format raw voice transcriptions into clean, readable markdown.

Rules:
- Organize the content under markdown headings (##, ###) by topic
- Use bullet or numbered lists for enumerations, steps and action items
- Keep every piece of the original content; do not summarize or drop details
- Fix obvious punctuation and paragraph breaks only; keep the speaker's wording
- Preserve speaker labels and any markup around them exactly as written (for example "**Speaker A:**")
- Output only the formatted markdown, with no commentary or preamble
"""
