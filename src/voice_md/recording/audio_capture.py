"""Microphone capture engine producing finished audio artifacts."""

import asyncio
import errno
import time
from dataclasses import replace
from typing import Any

import pyaudio

from ..errors import AudioCaptureError, MicrophoneNotFoundError, MicrophonePermissionError
from ..logging_utils import get_logger
from .config import (
    DEFAULT_CHANNELS,
    DEFAULT_ECHO_CANCELLATION,
    DEFAULT_NOISE_SUPPRESSION,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_SAMPLE_RATE,
    SAMPLE_WIDTH_BYTES,
)
from .formats import ContainerFormat, encode_pcm16, negotiate_format
from .models import AudioArtifact, RecordingState

logger = get_logger(__name__)

PERMISSION_ERRNOS = (errno.EACCES, errno.EPERM)


class AudioCapture:
    """Owns the microphone stream and the buffered chunks of one recording."""

    def __init__(
        self,
        sample_rate: int | None = None,
        channels: int = DEFAULT_CHANNELS,
        poll_interval: float | None = None,
        echo_cancellation: bool = DEFAULT_ECHO_CANCELLATION,
        noise_suppression: bool = DEFAULT_NOISE_SUPPRESSION,
    ) -> None:
        """
        Initialize the capture engine.

        Args:
            sample_rate: Preferred sample rate in Hz (device default is used
                when the device rejects it)
            channels: Number of input channels
            poll_interval: Seconds between chunk collection ticks
            echo_cancellation: Echo-cancellation hint
            noise_suppression: Noise-suppression hint
        """
        self.preferred_sample_rate = (
            sample_rate if sample_rate is not None else DEFAULT_SAMPLE_RATE
        )
        self.poll_interval = (
            poll_interval if poll_interval is not None else DEFAULT_POLL_INTERVAL
        )
        self.channels = channels
        self.echo_cancellation = echo_cancellation
        self.noise_suppression = noise_suppression

        if self.preferred_sample_rate <= 0:
            raise ValueError("Sample rate must be positive")
        if self.poll_interval <= 0:
            raise ValueError("Poll interval must be positive")
        if self.channels <= 0:
            raise ValueError("Channels must be positive")

        self.sample_rate = self.preferred_sample_rate
        self._format: ContainerFormat | None = None
        self._state = RecordingState()
        self._pyaudio: Any = None
        self._stream: Any = None
        self._poll_task: asyncio.Task | None = None
        self._chunks: list[bytes] = []
        self._start_time = 0.0

    @property
    def mime_type(self) -> str | None:
        """MIME type negotiated for the current or last recording."""
        return self._format.mime_type if self._format else None

    def is_recording(self) -> bool:
        return self._state.is_recording

    def get_state(self) -> RecordingState:
        """Return a snapshot of the recording state with a live duration."""
        if self._state.is_recording and self._start_time > 0:
            self._state.duration_seconds = int(time.monotonic() - self._start_time)
        return replace(self._state)

    async def start(self) -> None:
        """
        Acquire the microphone and begin buffering audio.

        Raises:
            AudioCaptureError: If already recording or the stream cannot open
            MicrophoneNotFoundError: If no capture device exists
            MicrophonePermissionError: If the platform denies access
        """
        if self._state.is_recording:
            raise AudioCaptureError("Recording is already in progress")

        try:
            self._pyaudio = pyaudio.PyAudio()
            logger.debug("PyAudio initialized successfully")

            try:
                device_info = self._pyaudio.get_default_input_device_info()
            except OSError as e:
                logger.error("❌ No default input device found")
                raise MicrophoneNotFoundError("No microphone found") from e

            device_index = device_info.get("index")
            logger.debug(
                f"🎤 Default input device: {device_info.get('name', 'Unknown')} "
                f"(echo_cancellation={self.echo_cancellation}, "
                f"noise_suppression={self.noise_suppression})"
            )

            self.sample_rate = self._negotiate_sample_rate(device_info)
            self._format = negotiate_format(self.sample_rate)

            try:
                self._stream = self._pyaudio.open(
                    format=pyaudio.paInt16,
                    channels=self.channels,
                    rate=self.sample_rate,
                    input=True,
                    input_device_index=device_index,
                    frames_per_buffer=int(self.sample_rate * self.poll_interval),
                )
                self._stream.start_stream()
            except OSError as e:
                if _is_permission_error(e):
                    logger.error("❌ Microphone permission denied")
                    raise MicrophonePermissionError("Permission denied") from e
                logger.error(f"❌ Failed to open audio stream: {e}")
                raise AudioCaptureError(f"Failed to open audio stream: {e}") from e

        except Exception:
            self.cleanup()
            raise

        self._chunks = []
        self._start_time = time.monotonic()
        self._state = RecordingState(is_recording=True)
        self._poll_task = asyncio.create_task(self._collect_chunks())
        logger.debug(
            f"✅ Recording started (sample_rate: {self.sample_rate}, "
            f"format: {self.mime_type})"
        )

    async def stop(self) -> AudioArtifact:
        """
        Finalize the recording and return the assembled artifact.

        Raises:
            AudioCaptureError: If no recording is in progress or no audio
                could be assembled
        """
        if not self._state.is_recording or self._stream is None:
            raise AudioCaptureError("No recording in progress")

        await self._cancel_poll_task()
        self._read_available()

        pcm = b"".join(self._chunks)
        sample_rate = self.sample_rate
        fmt = self._format

        if not pcm or fmt is None:
            self.cleanup()
            raise AudioCaptureError("Failed to create audio artifact")

        try:
            data = encode_pcm16(pcm, fmt, sample_rate, self.channels)
        except (RuntimeError, ValueError, TypeError) as e:
            logger.error(f"❌ Failed to encode audio as {fmt.mime_type}: {e}")
            self.cleanup()
            raise AudioCaptureError("Failed to create audio artifact") from e

        duration = len(pcm) / (sample_rate * self.channels * SAMPLE_WIDTH_BYTES)
        artifact = AudioArtifact(
            data=data,
            mime_type=fmt.mime_type,
            extension=fmt.extension,
            sample_rate=sample_rate,
            duration_seconds=duration,
        )

        self.cleanup()
        self._state.duration_seconds = int(duration)
        self._state.artifact = artifact
        logger.info(
            f"✅ Recording finished: {duration:.1f}s, {artifact.size} bytes "
            f"({artifact.mime_type})"
        )
        return artifact

    def cleanup(self) -> None:
        """Release the device stream and clear buffers. Safe to call repeatedly."""
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None

        if self._stream is not None:
            stream, self._stream = self._stream, None
            try:
                stream.stop_stream()
                stream.close()
            except OSError as e:
                logger.warning(f"⚠️ Error closing audio stream: {e}")

        if self._pyaudio is not None:
            audio, self._pyaudio = self._pyaudio, None
            audio.terminate()

        self._chunks = []
        self._start_time = 0.0
        self._state.is_recording = False
        self._state.is_paused = False

    async def _collect_chunks(self) -> None:
        """Poll the stream for buffered audio until cancelled."""
        while True:
            await asyncio.sleep(self.poll_interval)
            if not self._read_available():
                return

    def _read_available(self) -> bool:
        """
        Move every frame the stream has buffered into the chunk list.

        Returns:
            False if the stream failed and polling should end
        """
        if self._stream is None:
            return False
        try:
            available = self._stream.get_read_available()
            if available > 0:
                data = self._stream.read(available, exception_on_overflow=False)
                if data:
                    self._chunks.append(data)
                    logger.trace(f"🔊 Buffered {len(data)} bytes ({len(self._chunks)} chunks)")
        except OSError as e:
            logger.error(f"❌ Failed to read audio from stream: {e}")
            return False
        return True

    async def _cancel_poll_task(self) -> None:
        task, self._poll_task = self._poll_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def _negotiate_sample_rate(self, device_info: dict[str, Any]) -> int:
        """Use the preferred rate when the device accepts it, else its default."""
        try:
            self._pyaudio.is_format_supported(
                self.preferred_sample_rate,
                input_device=device_info.get("index"),
                input_channels=self.channels,
                input_format=pyaudio.paInt16,
            )
            return self.preferred_sample_rate
        except ValueError:
            fallback = int(device_info.get("defaultSampleRate", self.preferred_sample_rate))
            logger.debug(
                f"Device rejected {self.preferred_sample_rate} Hz, using {fallback} Hz"
            )
            return fallback

    def get_debug_stats(self) -> dict[str, Any]:
        """
        Get debug statistics about audio capture.

        Returns:
            Dictionary with debug information
        """
        return {
            "recording": self._state.is_recording,
            "sample_rate": self.sample_rate,
            "mime_type": self.mime_type,
            "chunks_buffered": len(self._chunks),
            "stream_open": self._stream is not None,
            "pyaudio_initialized": self._pyaudio is not None,
            "echo_cancellation": self.echo_cancellation,
            "noise_suppression": self.noise_suppression,
        }


def _is_permission_error(error: OSError) -> bool:
    return error.errno in PERMISSION_ERRNOS or "Permission denied" in str(error)
