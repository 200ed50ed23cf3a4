"""User-facing recording session with auto-stop and completion callback."""

import asyncio
import inspect
import time
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

from ..errors import AudioCaptureError, ErrorKind, VoiceMDError
from ..logging_utils import get_logger
from .audio_capture import AudioCapture
from .config import (
    DEFAULT_MAX_RECORDING_DURATION,
    STATUS_NO_MICROPHONE,
    STATUS_PERMISSION_DENIED,
    STATUS_PROCESSING,
    STATUS_READY,
    STATUS_RECORDING,
    STATUS_START_FAILED,
    STATUS_STOP_FAILED,
    TIMER_TICK_INTERVAL,
)
from .models import AudioArtifact, RecordingModes

logger = get_logger(__name__)

CompletionCallback = Callable[[AudioArtifact, RecordingModes], Awaitable[Any] | Any]
StatusCallback = Callable[[str], None]
ElapsedCallback = Callable[[int], None]
StateCallback = Callable[["SessionState", "SessionState"], None]
ToggleCallback = Callable[[bool], Awaitable[Any] | Any]


class SessionState(str, Enum):
    """Lifecycle of a recording session."""

    READY = "ready"
    RECORDING = "recording"
    PROCESSING = "processing"
    CLOSED = "closed"


def format_elapsed(seconds: int) -> str:
    """Format seconds as mm:ss."""
    mins, secs = divmod(max(seconds, 0), 60)
    return f"{mins:02d}:{secs:02d}"


class RecordingSession:
    """Drives an AudioCapture through one user-visible recording."""

    def __init__(
        self,
        capture: AudioCapture,
        on_complete: CompletionCallback,
        max_duration: int = DEFAULT_MAX_RECORDING_DURATION,
        auto_start: bool = False,
        post_processing_default: bool = False,
        on_post_processing_default_changed: ToggleCallback | None = None,
        on_status: StatusCallback | None = None,
        on_elapsed: ElapsedCallback | None = None,
        on_state_change: StateCallback | None = None,
        tick_interval: float = TIMER_TICK_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the session.

        Args:
            capture: Capture engine owned by this session
            on_complete: Called once with the artifact and the chosen modes
            max_duration: Seconds after which recording stops automatically
            auto_start: Start recording as soon as the session opens
            post_processing_default: Initial state of the post-processing toggle
            on_post_processing_default_changed: Receives the toggle's new value
                so the host can persist it as the next default
            on_status: Receives status text for the recording view
            on_elapsed: Receives elapsed whole seconds on every tick
            on_state_change: Receives (old, new) on every transition
            tick_interval: Seconds between timer ticks
            clock: Monotonic time source
        """
        if max_duration <= 0:
            raise ValueError("Max duration must be positive")

        self._capture = capture
        self._on_complete = on_complete
        self.max_duration = max_duration
        self.auto_start = auto_start
        self._on_default_changed = on_post_processing_default_changed
        self._on_status = on_status
        self._on_elapsed = on_elapsed
        self._on_state_change = on_state_change
        self._tick_interval = tick_interval
        self._clock = clock

        self._state = SessionState.READY
        self._error: VoiceMDError | None = None
        self._status = ""
        self._diarization = False
        self._post_processing = post_processing_default
        self._timer_task: asyncio.Task | None = None
        self._started_at = 0.0
        self._closed = asyncio.Event()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def error(self) -> VoiceMDError | None:
        """Error overlay from the last failed start or stop."""
        return self._error

    @property
    def status(self) -> str:
        return self._status

    @property
    def diarization_enabled(self) -> bool:
        return self._diarization

    @property
    def post_processing_enabled(self) -> bool:
        return self._post_processing

    def set_diarization(self, enabled: bool) -> None:
        self._diarization = enabled

    async def set_post_processing(self, enabled: bool) -> None:
        """
        Toggle post-processing for this session.

        The last choice also becomes the persisted default for future
        sessions, so the change is forwarded to the host.
        """
        if enabled == self._post_processing:
            return
        self._post_processing = enabled
        if self._on_default_changed is not None:
            result = self._on_default_changed(enabled)
            if inspect.isawaitable(result):
                await result

    async def open(self) -> None:
        """Show the ready state and start immediately when auto-start is set."""
        self._set_status(STATUS_READY)
        if self.auto_start:
            await self.start_recording()

    async def start_recording(self) -> bool:
        """
        Start capturing audio.

        Returns:
            True if recording started; False if the session was not ready or
            the device could not be acquired (see ``error``)
        """
        if self._state != SessionState.READY:
            logger.debug(f"Ignoring start request in state {self._state.value}")
            return False

        try:
            await self._capture.start()
        except AudioCaptureError as e:
            logger.error(f"❌ Failed to start recording: {e}", exc_info=True)
            self._error = e
            if e.kind is ErrorKind.PERMISSION_DENIED:
                self._set_status(STATUS_PERMISSION_DENIED)
            elif e.kind is ErrorKind.NO_MICROPHONE:
                self._set_status(STATUS_NO_MICROPHONE)
            else:
                self._set_status(STATUS_START_FAILED)
            return False

        self._error = None
        self._transition(SessionState.RECORDING)
        self._set_status(STATUS_RECORDING)
        self._started_at = self._clock()
        self._timer_task = asyncio.create_task(self._run_timer())
        logger.info("🎤 Recording...")
        return True

    async def stop_recording(self) -> bool:
        """
        Stop recording, hand the artifact to the completion callback and close.

        Returns:
            True if the callback was invoked
        """
        if self._state != SessionState.RECORDING:
            return False

        self._transition(SessionState.PROCESSING)
        self._set_status(STATUS_PROCESSING)
        await self._cancel_timer()

        try:
            artifact = await self._capture.stop()
        except AudioCaptureError as e:
            logger.error(f"❌ Failed to stop recording: {e}", exc_info=True)
            self._error = e
            self._set_status(STATUS_STOP_FAILED)
            await self.close()
            return False

        modes = RecordingModes(
            diarization=self._diarization, post_processing=self._post_processing
        )
        try:
            result = self._on_complete(artifact, modes)
            if inspect.isawaitable(result):
                await result
        finally:
            await self.close()
        return True

    async def close(self) -> None:
        """Close the session. Never invokes the completion callback."""
        if self._state == SessionState.CLOSED:
            return
        if self._state == SessionState.RECORDING:
            logger.info("Recording cancelled")
        await self._cancel_timer()
        self._capture.cleanup()
        self._transition(SessionState.CLOSED)
        self._closed.set()

    async def wait_closed(self) -> None:
        await self._closed.wait()

    def elapsed_seconds(self) -> int:
        if self._state != SessionState.RECORDING:
            return 0
        return int(self._clock() - self._started_at)

    async def _run_timer(self) -> None:
        """Tick once per interval and stop when the maximum is reached."""
        while True:
            await asyncio.sleep(self._tick_interval)
            if self._state != SessionState.RECORDING:
                return
            elapsed = self.elapsed_seconds()
            if self._on_elapsed is not None:
                self._on_elapsed(elapsed)
            if elapsed >= self.max_duration:
                logger.info(
                    f"⏱️ Max duration reached ({format_elapsed(self.max_duration)}), "
                    "stopping"
                )
                break

        # Detach so stop_recording does not cancel the task it runs in
        self._timer_task = None
        try:
            await self.stop_recording()
        except Exception as e:
            # Nobody awaits this task, so the failure ends here
            logger.error(f"❌ Auto-stop failed: {e}", exc_info=True)

    async def _cancel_timer(self) -> None:
        task, self._timer_task = self._timer_task, None
        if task is None or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def _set_status(self, status: str) -> None:
        self._status = status
        if self._on_status is not None:
            self._on_status(status)

    def _transition(self, to_state: SessionState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        logger.debug(f"Session {from_state.value} -> {to_state.value}")
        if self._on_state_change is not None:
            self._on_state_change(from_state, to_state)
