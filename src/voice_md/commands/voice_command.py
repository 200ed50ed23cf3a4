"""Voice command: recording -> transcription -> post-processing -> insertion."""

from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime

import openai

from ..errors import ErrorKind, VoiceMDError, describe_error
from ..logging_utils import get_logger
from ..recording.audio_capture import AudioCapture
from ..recording.models import AudioArtifact, RecordingModes
from ..recording.session import RecordingSession, SessionState
from ..settings import Settings, SettingsStore
from ..transcription.client import TranscriptionClient, create_openai_client
from ..transcription.models import TranscriptionOptions, TranscriptionResult
from ..transcription.post_processor import PostProcessor
from .interfaces import Editor, NoteStorage, Notifier, RecordingView

logger = get_logger(__name__)

DEFAULT_OUTPUT_FOLDER = "Voice Transcriptions"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H-%M-%S"

# Notice timeouts in seconds
SUCCESS_NOTICE_TIMEOUT = 3.0
WARNING_NOTICE_TIMEOUT = 6.0
ERROR_NOTICE_TIMEOUT = 6.0

MISSING_API_KEY_MESSAGE = (
    "OpenAI API key not configured. Please set it in Voice MD settings."
)
ALREADY_ACTIVE_MESSAGE = "A voice recording is already in progress."
TRANSCRIBING_MESSAGE = "Transcribing audio..."
STRUCTURING_MESSAGE = "Structuring transcription..."
EMPTY_TRANSCRIPTION_MESSAGE = "Empty transcription: no speech was detected."
COMPLETE_MESSAGE = "✓ Transcription complete!"
SAVE_FAILED_MESSAGE = "Could not save transcription notes; text was inserted only."
RAW_ONLY_SAVED_MESSAGE = (
    "Could not save the structured note; only the raw transcription was saved "
    "to {path}."
)


@dataclass
class PipelineResult:
    """Outcome of one recording's trip through the pipeline."""

    text: str | None = None
    raw_path: str | None = None
    structured_path: str | None = None
    warning: VoiceMDError | None = None
    error: VoiceMDError | None = None
    empty: bool = False

    @property
    def success(self) -> bool:
        return self.text is not None and self.error is None


def render_transcript(result: TranscriptionResult) -> str:
    """
    Render a transcription as insertable text.

    Diarized results become speaker-labelled paragraphs, merging consecutive
    segments from the same speaker.
    """
    if not result.segments or not any(s.speaker for s in result.segments):
        return result.text.strip()

    paragraphs: list[tuple[str | None, list[str]]] = []
    for segment in result.segments:
        text = segment.text.strip()
        if not text:
            continue
        if paragraphs and paragraphs[-1][0] == segment.speaker:
            paragraphs[-1][1].append(text)
        else:
            paragraphs.append((segment.speaker, [text]))

    lines = []
    for speaker, texts in paragraphs:
        body = " ".join(texts)
        lines.append(f"**Speaker {speaker}:** {body}" if speaker else body)
    return "\n\n".join(lines)


class VoiceCommand:
    """Orchestrates a voice recording from session open to text insertion."""

    def __init__(
        self,
        settings_store: SettingsStore,
        editor: Editor,
        notifier: Notifier,
        storage: NoteStorage,
        view: RecordingView | None = None,
        capture_factory: Callable[[], AudioCapture] = AudioCapture,
        client_factory: Callable[[str], openai.AsyncOpenAI] = create_openai_client,
        output_folder: str = DEFAULT_OUTPUT_FOLDER,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """
        Initialize the command.

        Args:
            settings_store: Source of settings, reloaded on every execute()
            editor: Receives the primary result text
            notifier: Shows progress, warnings and errors
            storage: Writes the linked raw/structured notes
            view: Optional recording view for status and timer updates
            capture_factory: Builds a fresh capture engine per session
            client_factory: Builds the OpenAI client from an API key
            output_folder: Folder for transcription notes
            clock: Time source for note names
        """
        self._settings_store = settings_store
        self._editor = editor
        self._notifier = notifier
        self._storage = storage
        self._view = view
        self._capture_factory = capture_factory
        self._client_factory = client_factory
        self.output_folder = output_folder
        self._clock = clock

        self._settings: Settings | None = None
        self._session: RecordingSession | None = None
        self.last_result: PipelineResult | None = None

    @property
    def settings(self) -> Settings | None:
        return self._settings

    @property
    def is_active(self) -> bool:
        return self._session is not None and self._session.state != SessionState.CLOSED

    async def execute(self, diarization: bool = False) -> RecordingSession | None:
        """
        Validate configuration and open a recording session.

        Args:
            diarization: Initial state of the speaker-identification toggle

        Returns:
            The opened session, or None if the command could not start
        """
        if self.is_active:
            self._notifier.notify(ALREADY_ACTIVE_MESSAGE, WARNING_NOTICE_TIMEOUT)
            return None

        settings = self._settings_store.load()
        if not settings.has_api_key:
            logger.warning("⚠️ No API key configured")
            self._notifier.notify(MISSING_API_KEY_MESSAGE, ERROR_NOTICE_TIMEOUT)
            return None
        self._settings = settings

        session = RecordingSession(
            capture=self._capture_factory(),
            on_complete=self.handle_recording,
            max_duration=settings.max_recording_duration,
            auto_start=settings.auto_start_recording,
            post_processing_default=settings.enable_post_processing,
            on_post_processing_default_changed=self._persist_post_processing_default,
            on_status=self._view.show_status if self._view else None,
            on_elapsed=self._view.show_elapsed if self._view else None,
            on_state_change=self._view.show_state if self._view else None,
        )
        session.set_diarization(diarization)
        self._session = session
        await session.open()
        return session

    async def handle_recording(
        self, artifact: AudioArtifact, modes: RecordingModes
    ) -> PipelineResult:
        """
        Transcribe a finished recording and surface the result.

        Args:
            artifact: Finished recording
            modes: Diarization and post-processing choices for this recording

        Returns:
            PipelineResult describing what was inserted and saved
        """
        try:
            result = await self._run_pipeline(artifact, modes)
        except Exception as e:
            # Host collaborators (editor, storage) may fail in their own ways
            logger.error(f"❌ Voice command failed: {e}", exc_info=True)
            message = describe_error(e)
            self._notifier.notify(message, ERROR_NOTICE_TIMEOUT)
            result = PipelineResult(error=VoiceMDError(message))
        self.last_result = result
        return result

    async def _run_pipeline(
        self, artifact: AudioArtifact, modes: RecordingModes
    ) -> PipelineResult:
        settings = self._settings or self._settings_store.load()
        client = self._client_factory(settings.api_key)
        transcriber = TranscriptionClient(client=client)

        notice = self._notifier.notify(TRANSCRIBING_MESSAGE, None)
        try:
            result = await transcriber.transcribe(
                artifact,
                TranscriptionOptions(language=settings.language),
                diarization=modes.diarization,
            )
        except VoiceMDError as e:
            notice.hide()
            logger.error(f"❌ Transcription aborted: {e!r}")
            self._notifier.notify(e.user_message, ERROR_NOTICE_TIMEOUT)
            return PipelineResult(error=e)
        notice.hide()

        if result.is_empty:
            logger.warning("⚠️ Transcription returned no text")
            self._notifier.notify(EMPTY_TRANSCRIPTION_MESSAGE, WARNING_NOTICE_TIMEOUT)
            return PipelineResult(empty=True)

        raw_text = render_transcript(result)

        if not modes.post_processing:
            self._editor.insert_text(raw_text)
            self._notifier.notify(COMPLETE_MESSAGE, SUCCESS_NOTICE_TIMEOUT)
            return PipelineResult(text=raw_text)

        return await self._post_process(client, settings, raw_text)

    async def _post_process(
        self, client: openai.AsyncOpenAI, settings: Settings, raw_text: str
    ) -> PipelineResult:
        post_processor = PostProcessor(client)
        notice = self._notifier.notify(STRUCTURING_MESSAGE, None)
        try:
            structured = await post_processor.structure_text(
                raw_text, settings.chat_model, settings.post_processing_prompt
            )
        except VoiceMDError as e:
            notice.hide()
            warning = e
            if e.kind is not ErrorKind.POST_PROCESSING_ERROR:
                # Keep the warning within the post-processing kind
                warning = VoiceMDError(e.message, ErrorKind.POST_PROCESSING_ERROR)
            logger.warning(f"⚠️ Post-processing failed, using raw text: {e!r}")
            self._editor.insert_text(raw_text)
            self._notifier.notify(warning.user_message, WARNING_NOTICE_TIMEOUT)
            return PipelineResult(text=raw_text, warning=warning)
        notice.hide()

        raw_path, structured_path = await self._save_notes(raw_text, structured)
        self._editor.insert_text(structured)
        self._notifier.notify(COMPLETE_MESSAGE, SUCCESS_NOTICE_TIMEOUT)
        return PipelineResult(
            text=structured, raw_path=raw_path, structured_path=structured_path
        )

    async def _save_notes(
        self, raw_text: str, structured: str
    ) -> tuple[str | None, str | None]:
        """Write the raw note and the structured note that links back to it."""
        stamp = self._clock().strftime(TIMESTAMP_FORMAT)
        raw_name = f"transcription-{stamp}-raw"
        raw_path = f"{self.output_folder}/{raw_name}.md"
        structured_path = f"{self.output_folder}/transcription-{stamp}.md"
        structured_content = f"> Raw transcription: [[{raw_name}]]\n\n{structured}"

        saved_raw_path = None
        try:
            await self._storage.ensure_folder(self.output_folder)
            await self._storage.create_file(raw_path, raw_text)
            saved_raw_path = raw_path
            await self._storage.create_file(structured_path, structured_content)
        except OSError as e:
            logger.error(f"❌ Failed to save transcription notes: {e}", exc_info=True)
            if saved_raw_path is not None:
                message = RAW_ONLY_SAVED_MESSAGE.format(path=saved_raw_path)
            else:
                message = SAVE_FAILED_MESSAGE
            self._notifier.notify(message, WARNING_NOTICE_TIMEOUT)
            return saved_raw_path, None

        logger.info(f"✅ Saved {raw_path} and {structured_path}")
        return raw_path, structured_path

    async def _persist_post_processing_default(self, enabled: bool) -> None:
        """The last post-processing choice becomes the saved default."""
        settings = self._settings or self._settings_store.load()
        self._settings = replace(settings, enable_post_processing=enabled)
        self._settings_store.save(self._settings)
        logger.debug(f"Post-processing default set to {enabled}")
