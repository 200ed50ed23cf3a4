"""Tests for RecordingSession lifecycle, auto-stop and toggles."""

import asyncio
import logging
from unittest.mock import AsyncMock, Mock

import pytest

from voice_md.errors import (
    AudioCaptureError,
    ErrorKind,
    MicrophoneNotFoundError,
    MicrophonePermissionError,
)
from voice_md.recording.config import (
    STATUS_NO_MICROPHONE,
    STATUS_PERMISSION_DENIED,
    STATUS_PROCESSING,
    STATUS_READY,
    STATUS_RECORDING,
    STATUS_START_FAILED,
    STATUS_STOP_FAILED,
)
from voice_md.recording.models import AudioArtifact, RecordingModes
from voice_md.recording.session import RecordingSession, SessionState, format_elapsed

ARTIFACT = AudioArtifact(
    data=b"RIFF....WAVE",
    mime_type="audio/wav",
    extension="wav",
    sample_rate=48000,
    duration_seconds=1.0,
)


class FakeClock:
    """Monotonic clock the test advances by hand."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def make_capture(artifact: AudioArtifact = ARTIFACT) -> Mock:
    capture = Mock()
    capture.start = AsyncMock()
    capture.stop = AsyncMock(return_value=artifact)
    capture.cleanup = Mock()
    return capture


@pytest.mark.unit
def test_format_elapsed() -> None:
    assert format_elapsed(0) == "00:00"
    assert format_elapsed(65) == "01:05"
    assert format_elapsed(300) == "05:00"
    assert format_elapsed(-3) == "00:00"


@pytest.mark.unit
class TestSessionLifecycle:
    """READY -> RECORDING -> PROCESSING -> CLOSED."""

    def test_invalid_max_duration(self) -> None:
        with pytest.raises(ValueError, match="Max duration must be positive"):
            RecordingSession(make_capture(), Mock(), max_duration=0)

    @pytest.mark.asyncio
    async def test_open_shows_ready(self) -> None:
        on_status = Mock()
        session = RecordingSession(make_capture(), Mock(), on_status=on_status)

        await session.open()

        assert session.state == SessionState.READY
        on_status.assert_called_once_with(STATUS_READY)

    @pytest.mark.asyncio
    async def test_auto_start(self) -> None:
        capture = make_capture()
        session = RecordingSession(capture, Mock(), auto_start=True)

        await session.open()

        try:
            assert session.state == SessionState.RECORDING
            assert session.status == STATUS_RECORDING
            capture.start.assert_awaited_once()
        finally:
            await session.close()

    @pytest.mark.asyncio
    async def test_start_and_stop_invokes_callback_once(self) -> None:
        """Stop hands the artifact and modes to the callback, then closes."""
        capture = make_capture()
        on_complete = AsyncMock()
        transitions = []
        session = RecordingSession(
            capture,
            on_complete,
            on_state_change=lambda old, new: transitions.append((old, new)),
        )
        await session.open()

        assert await session.start_recording() is True
        assert await session.stop_recording() is True

        on_complete.assert_awaited_once_with(
            ARTIFACT, RecordingModes(diarization=False, post_processing=False)
        )
        assert session.state == SessionState.CLOSED
        assert transitions == [
            (SessionState.READY, SessionState.RECORDING),
            (SessionState.RECORDING, SessionState.PROCESSING),
            (SessionState.PROCESSING, SessionState.CLOSED),
        ]
        capture.cleanup.assert_called_once()

    @pytest.mark.asyncio
    async def test_callback_runs_while_processing(self) -> None:
        seen_states = []
        statuses = []

        def on_complete(artifact, modes):
            seen_states.append(session.state)

        session = RecordingSession(make_capture(), on_complete, on_status=statuses.append)
        await session.start_recording()
        await session.stop_recording()

        assert seen_states == [SessionState.PROCESSING]
        assert STATUS_PROCESSING in statuses

    @pytest.mark.asyncio
    async def test_session_closes_when_callback_fails(self) -> None:
        session = RecordingSession(
            make_capture(), AsyncMock(side_effect=RuntimeError("pipeline crashed"))
        )
        await session.start_recording()

        with pytest.raises(RuntimeError, match="pipeline crashed"):
            await session.stop_recording()

        assert session.state == SessionState.CLOSED

    @pytest.mark.asyncio
    async def test_stop_when_not_recording(self) -> None:
        on_complete = Mock()
        session = RecordingSession(make_capture(), on_complete)

        assert await session.stop_recording() is False
        on_complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_start_when_not_ready(self) -> None:
        capture = make_capture()
        session = RecordingSession(capture, Mock())
        await session.start_recording()

        try:
            assert await session.start_recording() is False
            capture.start.assert_awaited_once()
        finally:
            await session.close()


@pytest.mark.unit
class TestSessionErrors:
    """Device and stop failures surface as error overlays."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error, status, kind",
        [
            (MicrophonePermissionError(), STATUS_PERMISSION_DENIED, ErrorKind.PERMISSION_DENIED),
            (MicrophoneNotFoundError(), STATUS_NO_MICROPHONE, ErrorKind.NO_MICROPHONE),
            (AudioCaptureError("Failed to open audio stream"), STATUS_START_FAILED, None),
        ],
    )
    async def test_start_failure(self, error, status, kind) -> None:
        capture = make_capture()
        capture.start.side_effect = error
        session = RecordingSession(capture, Mock())

        assert await session.start_recording() is False

        assert session.state == SessionState.READY
        assert session.status == status
        assert session.error is error
        assert session.error.kind is kind

    @pytest.mark.asyncio
    async def test_retry_after_start_failure_clears_error(self) -> None:
        capture = make_capture()
        capture.start.side_effect = [MicrophoneNotFoundError(), None]
        session = RecordingSession(capture, Mock())

        await session.start_recording()
        started = await session.start_recording()

        try:
            assert started is True
            assert session.error is None
        finally:
            await session.close()

    @pytest.mark.asyncio
    async def test_stop_failure_closes_without_callback(self) -> None:
        """A failed artifact assembly never reaches the completion callback."""
        capture = make_capture()
        capture.stop.side_effect = AudioCaptureError("Failed to create audio artifact")
        on_complete = Mock()
        session = RecordingSession(capture, on_complete)
        await session.start_recording()

        assert await session.stop_recording() is False

        on_complete.assert_not_called()
        assert session.state == SessionState.CLOSED
        assert session.status == STATUS_STOP_FAILED
        assert "Failed to create audio artifact" in session.error.message
        capture.cleanup.assert_called_once()


@pytest.mark.unit
class TestSessionCancel:
    """Closing without stopping discards the recording."""

    @pytest.mark.asyncio
    async def test_close_while_recording(self) -> None:
        capture = make_capture()
        on_complete = Mock()
        session = RecordingSession(capture, on_complete)
        await session.start_recording()

        await session.close()

        assert session.state == SessionState.CLOSED
        on_complete.assert_not_called()
        capture.stop.assert_not_called()
        capture.cleanup.assert_called_once()

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self) -> None:
        capture = make_capture()
        session = RecordingSession(capture, Mock())

        await session.close()
        await session.close()

        capture.cleanup.assert_called_once()
        await asyncio.wait_for(session.wait_closed(), timeout=1)

    @pytest.mark.asyncio
    async def test_stop_after_close_does_nothing(self) -> None:
        on_complete = Mock()
        session = RecordingSession(make_capture(), on_complete)
        await session.start_recording()
        await session.close()

        assert await session.stop_recording() is False
        on_complete.assert_not_called()


@pytest.mark.unit
class TestAutoStop:
    """The timer stops the recording at the maximum duration exactly once."""

    @pytest.mark.asyncio
    async def test_auto_stop_at_max_duration(self) -> None:
        clock = FakeClock()
        capture = make_capture()
        on_complete = AsyncMock()
        session = RecordingSession(
            capture, on_complete, max_duration=3, tick_interval=0.001, clock=clock
        )
        await session.start_recording()

        clock.now = 2.9
        await asyncio.sleep(0.02)
        assert session.state == SessionState.RECORDING
        on_complete.assert_not_called()

        clock.now = 3.0
        await asyncio.wait_for(session.wait_closed(), timeout=1)

        on_complete.assert_awaited_once()
        capture.stop.assert_awaited_once()
        assert session.state == SessionState.CLOSED

    @pytest.mark.asyncio
    async def test_manual_stop_after_auto_stop_is_ignored(self) -> None:
        clock = FakeClock()
        on_complete = AsyncMock()
        session = RecordingSession(
            make_capture(), on_complete, max_duration=1, tick_interval=0.001, clock=clock
        )
        await session.start_recording()
        clock.now = 5.0
        await asyncio.wait_for(session.wait_closed(), timeout=1)

        assert await session.stop_recording() is False
        on_complete.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_auto_stop_callback_failure_is_logged(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        """A callback failure during auto-stop is logged and the session still closes."""
        clock = FakeClock()
        capture = make_capture()
        on_complete = AsyncMock(side_effect=OSError("note path is a directory"))
        session = RecordingSession(
            capture, on_complete, max_duration=1, tick_interval=0.001, clock=clock
        )
        await session.start_recording()

        with caplog.at_level(logging.ERROR, logger="voice_md.recording.session"):
            clock.now = 2.0
            await asyncio.wait_for(session.wait_closed(), timeout=1)
            await asyncio.sleep(0.01)

        on_complete.assert_awaited_once()
        assert session.state == SessionState.CLOSED
        capture.cleanup.assert_called_once()
        assert "Auto-stop failed: note path is a directory" in caplog.text

    @pytest.mark.asyncio
    async def test_elapsed_ticks(self) -> None:
        clock = FakeClock()
        on_elapsed = Mock()
        session = RecordingSession(
            make_capture(),
            Mock(),
            on_elapsed=on_elapsed,
            tick_interval=0.001,
            clock=clock,
        )
        await session.start_recording()

        clock.now = 1.5
        await asyncio.sleep(0.01)

        try:
            on_elapsed.assert_called_with(1)
            assert session.elapsed_seconds() == 1
        finally:
            await session.close()

    @pytest.mark.asyncio
    async def test_manual_stop_cancels_timer(self) -> None:
        clock = FakeClock()
        on_complete = AsyncMock()
        session = RecordingSession(
            make_capture(), on_complete, max_duration=2, tick_interval=0.001, clock=clock
        )
        await session.start_recording()
        await session.stop_recording()

        clock.now = 10.0
        await asyncio.sleep(0.01)

        on_complete.assert_awaited_once()


@pytest.mark.unit
class TestSessionToggles:
    """Diarization and post-processing choices."""

    @pytest.mark.asyncio
    async def test_modes_reach_callback(self) -> None:
        on_complete = Mock()
        session = RecordingSession(make_capture(), on_complete)
        session.set_diarization(True)
        await session.set_post_processing(True)

        await session.start_recording()
        await session.stop_recording()

        on_complete.assert_called_once_with(
            ARTIFACT, RecordingModes(diarization=True, post_processing=True)
        )

    @pytest.mark.asyncio
    async def test_post_processing_default_from_settings(self) -> None:
        session = RecordingSession(make_capture(), Mock(), post_processing_default=True)

        assert session.post_processing_enabled is True
        assert session.diarization_enabled is False

    @pytest.mark.asyncio
    async def test_post_processing_change_is_forwarded(self) -> None:
        """The last toggle choice is handed to the host for persistence."""
        on_changed = AsyncMock()
        session = RecordingSession(
            make_capture(), Mock(), on_post_processing_default_changed=on_changed
        )

        await session.set_post_processing(True)
        await session.set_post_processing(True)
        await session.set_post_processing(False)

        assert [c.args for c in on_changed.await_args_list] == [(True,), (False,)]

    @pytest.mark.asyncio
    async def test_sync_toggle_callback(self) -> None:
        on_changed = Mock()
        session = RecordingSession(
            make_capture(), Mock(), on_post_processing_default_changed=on_changed
        )

        await session.set_post_processing(True)

        on_changed.assert_called_once_with(True)
