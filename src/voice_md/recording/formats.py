"""Container/codec negotiation and encoding of captured PCM audio."""

import io
import wave
from dataclasses import dataclass

import numpy as np
import soundfile as sf

from ..logging_utils import get_logger
from .config import OPUS_SAMPLE_RATES, SAMPLE_WIDTH_BYTES

logger = get_logger(__name__)


@dataclass(frozen=True)
class ContainerFormat:
    """A container/codec combination the recorder may produce."""

    mime_type: str
    extension: str
    sf_format: str | None = None
    sf_subtype: str | None = None
    sample_rates: tuple[int, ...] | None = None

    def supports_rate(self, sample_rate: int) -> bool:
        return self.sample_rates is None or sample_rate in self.sample_rates


# Ordered by preference: compact desktop codecs first, mobile-friendly AAC,
# then Ogg/Opus, with PCM WAV as the universal fallback. libsndfile has no
# WEBM or MP4 major format, so those rows always fail the probe and
# negotiation effectively starts at Ogg/Opus.
PREFERRED_FORMATS: tuple[ContainerFormat, ...] = (
    ContainerFormat("audio/webm;codecs=opus", "webm", "WEBM", "OPUS", OPUS_SAMPLE_RATES),
    ContainerFormat("audio/webm", "webm", "WEBM", None),
    ContainerFormat("audio/mp4", "m4a", "MP4", None),
    ContainerFormat("audio/mp4;codecs=mp4a.40.2", "m4a", "MP4", "AAC"),
    ContainerFormat("audio/ogg;codecs=opus", "ogg", "OGG", "OPUS", OPUS_SAMPLE_RATES),
    ContainerFormat("audio/wav", "wav", "WAV", "PCM_16"),
)

# Written with the standard wave module when libsndfile offers nothing usable
PLATFORM_DEFAULT_FORMAT = ContainerFormat("audio/wav", "wav")


def is_format_supported(fmt: ContainerFormat, sample_rate: int) -> bool:
    """
    Probe whether libsndfile can write the given container at this rate.

    Args:
        fmt: Candidate container format
        sample_rate: Negotiated capture sample rate

    Returns:
        True if the format can be encoded on this platform
    """
    if fmt.sf_format is None or not fmt.supports_rate(sample_rate):
        return False
    try:
        if fmt.sf_format not in sf.available_formats():
            return False
        if fmt.sf_subtype is None:
            return sf.check_format(fmt.sf_format)
        return sf.check_format(fmt.sf_format, fmt.sf_subtype)
    except (ValueError, TypeError) as e:
        logger.trace(f"Format probe failed for {fmt.mime_type}: {e}")
        return False


def negotiate_format(
    sample_rate: int,
    preferences: tuple[ContainerFormat, ...] = PREFERRED_FORMATS,
) -> ContainerFormat:
    """
    Pick the first supported container from the preference list.

    Falls back to the platform default (PCM WAV) when none match.
    """
    for fmt in preferences:
        if is_format_supported(fmt, sample_rate):
            logger.debug(f"🎚️ Negotiated audio container: {fmt.mime_type}")
            return fmt

    logger.debug("🎚️ No preferred container supported, using platform default")
    return PLATFORM_DEFAULT_FORMAT


def encode_wav(pcm: bytes, sample_rate: int, channels: int = 1) -> bytes:
    """Wrap 16-bit PCM samples in a WAV container."""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav_file:
        wav_file.setnchannels(channels)
        wav_file.setsampwidth(SAMPLE_WIDTH_BYTES)
        wav_file.setframerate(sample_rate)
        wav_file.writeframes(pcm)
    return buffer.getvalue()


def encode_pcm16(
    pcm: bytes, fmt: ContainerFormat, sample_rate: int, channels: int = 1
) -> bytes:
    """
    Encode raw 16-bit PCM into the negotiated container.

    Args:
        pcm: Little-endian 16-bit interleaved samples
        fmt: Container chosen by negotiate_format
        sample_rate: Sample rate of the PCM data
        channels: Number of interleaved channels

    Returns:
        Encoded container bytes
    """
    if fmt.sf_format is None:
        return encode_wav(pcm, sample_rate, channels)

    samples = np.frombuffer(pcm, dtype=np.int16)
    if channels > 1:
        samples = samples.reshape(-1, channels)

    buffer = io.BytesIO()
    sf.write(
        buffer,
        samples,
        sample_rate,
        format=fmt.sf_format,
        subtype=fmt.sf_subtype,
    )
    return buffer.getvalue()


def silent_wav(duration_seconds: float, sample_rate: int = 44100) -> bytes:
    """Build a WAV container holding digital silence."""
    num_samples = int(sample_rate * duration_seconds)
    return encode_wav(b"\x00" * (num_samples * SAMPLE_WIDTH_BYTES), sample_rate)
