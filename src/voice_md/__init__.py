"""Voice MD: record, transcribe and structure voice notes."""

__version__ = "0.1.0"
