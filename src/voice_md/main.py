"""Command-line host for the voice recording workflow."""

import argparse
import asyncio
import sys
from dataclasses import fields
from pathlib import Path
from typing import Any

from .commands.interfaces import Editor, Notice, NoteStorage, Notifier, RecordingView
from .commands.voice_command import VoiceCommand
from .errors import describe_error
from .logging_utils import configure_logging, get_logger
from .recording.session import RecordingSession, SessionState, format_elapsed
from .settings import JsonSettingsStore, Settings, SettingsStore
from .transcription.client import TranscriptionClient

logger = get_logger(__name__)


class ConsoleNotice(Notice):
    def hide(self) -> None:
        pass


class ConsoleNotifier(Notifier):
    """Prints notifications to the terminal."""

    def notify(self, message: str, timeout: float | None = None) -> Notice:
        print(message)
        return ConsoleNotice()


class ConsoleEditor(Editor):
    """Prints inserted text, optionally appending it to a note on disk."""

    def __init__(self, note_path: Path | None = None) -> None:
        self._note_path = note_path
        self.inserted: list[str] = []

    def insert_text(self, text: str) -> None:
        self.inserted.append(text)
        print()
        print(text)
        print()
        if self._note_path is not None:
            self._note_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._note_path, "a", encoding="utf-8") as f:
                f.write(text + "\n")


class FileNoteStorage(NoteStorage):
    """Stores notes as files below a root directory."""

    def __init__(self, root: Path) -> None:
        self.root = root

    async def ensure_folder(self, path: str) -> None:
        (self.root / path).mkdir(parents=True, exist_ok=True)

    async def create_file(self, path: str, content: str) -> None:
        # "x" refuses to overwrite an existing note
        with open(self.root / path, "x", encoding="utf-8") as f:
            f.write(content)


class ConsoleRecordingView(RecordingView):
    """Shows session status and a running timer on one terminal line."""

    def __init__(self, max_duration: int | None = None) -> None:
        self._max_duration = max_duration

    def show_status(self, status: str) -> None:
        print(f"\n{status}", flush=True)

    def show_elapsed(self, seconds: int) -> None:
        limit = f" / {format_elapsed(self._max_duration)}" if self._max_duration else ""
        print(f"\r⏺  {format_elapsed(seconds)}{limit}", end="", flush=True)

    def show_state(self, old: SessionState, new: SessionState) -> None:
        # The timer line has no trailing newline while recording
        if old == SessionState.RECORDING:
            print(flush=True)


class VoiceMDCLI:
    """Runs one recording through the voice command in a terminal."""

    def __init__(
        self,
        command: VoiceCommand,
        diarization: bool = False,
        post_processing: bool | None = None,
    ) -> None:
        """
        Initialize the CLI.

        Args:
            command: Voice command wired to console collaborators
            diarization: Enable speaker identification for this recording
            post_processing: Override the post-processing toggle (the choice
                is remembered as the new default); None keeps the default
        """
        self._command = command
        self._diarization = diarization
        self._post_processing = post_processing

    async def run(self) -> int:
        """
        Record until Enter is pressed or the maximum duration is reached.

        Returns:
            Process exit code
        """
        session = await self._command.execute(diarization=self._diarization)
        if session is None:
            return 1

        try:
            if self._post_processing is not None:
                await session.set_post_processing(self._post_processing)

            if session.state == SessionState.READY:
                # A failed auto-start already reported its status
                if session.error is not None or not await session.start_recording():
                    return 1

            print("   Press Enter to stop, Ctrl+C to cancel.")
            await self._wait_for_stop(session)
        finally:
            await session.close()

        result = self._command.last_result
        return 0 if result is not None and result.success else 1

    async def _wait_for_stop(self, session: RecordingSession) -> None:
        """Stop on Enter; auto-stop closes the session on its own."""
        loop = asyncio.get_running_loop()
        enter_pressed = asyncio.Event()
        try:
            loop.add_reader(sys.stdin.fileno(), enter_pressed.set)
            reading_stdin = True
        except (NotImplementedError, ValueError, OSError):
            logger.debug("stdin reader unavailable, waiting for auto-stop")
            reading_stdin = False

        try:
            enter_task = asyncio.create_task(enter_pressed.wait())
            closed_task = asyncio.create_task(session.wait_closed())
            done, pending = await asyncio.wait(
                {enter_task, closed_task}, return_when=asyncio.FIRST_COMPLETED
            )
            for task in pending:
                task.cancel()
            if enter_task in done:
                sys.stdin.readline()
                await session.stop_recording()
        finally:
            if reading_stdin:
                loop.remove_reader(sys.stdin.fileno())


def _coerce_setting(name: str, raw: str) -> Any:
    """Convert a --set value to the type of the named Settings field."""
    field_types = {f.name: f.type for f in fields(Settings)}
    if name not in field_types:
        raise ValueError(f"Unknown setting '{name}'")
    field_type = str(field_types[name])
    if "bool" in field_type:
        lowered = raw.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        raise ValueError(f"Setting '{name}' expects true/false, got '{raw}'")
    if "int" in field_type:
        try:
            return int(raw)
        except ValueError as e:
            raise ValueError(f"Setting '{name}' expects an integer, got '{raw}'") from e
    if "None" in field_type and not raw:
        return None
    return raw


def apply_settings(store: SettingsStore, assignments: list[str]) -> Settings:
    """
    Apply KEY=VALUE assignments to the stored settings and save them.

    Raises:
        ValueError: If an assignment is malformed or names an unknown setting
    """
    data = store.load().to_dict()
    for assignment in assignments:
        name, sep, raw = assignment.partition("=")
        if not sep:
            raise ValueError(f"Expected KEY=VALUE, got '{assignment}'")
        name = name.strip()
        data[name] = _coerce_setting(name, raw.strip())
    settings = Settings.from_dict(data)
    store.save(settings)
    return settings


def format_settings(settings: Settings) -> str:
    """Render settings for display with the API key masked."""
    lines = []
    for name, value in settings.to_dict().items():
        if name == "api_key":
            value = f"{value[:3]}...{value[-4:]}" if len(value) > 8 else ("set" if value else "")
        lines.append(f"{name} = {value!r}")
    return "\n".join(lines)


async def check_connection(store: SettingsStore) -> bool:
    """Run the connection test against the configured API key."""
    settings = store.load()
    if not settings.has_api_key:
        print("❌ OpenAI API key not configured.")
        return False
    client = TranscriptionClient(api_key=settings.api_key)
    ok = await client.test_connection()
    print("✅ Connection successful." if ok else "❌ Connection failed. Check your API key.")
    return ok


async def main(
    settings_path: str | None = None,
    output_dir: str | None = None,
    note_path: str | None = None,
    diarization: bool = False,
    post_processing: bool | None = None,
) -> int:
    """Main entry point for a recording run."""
    store = JsonSettingsStore(settings_path)
    settings = store.load()
    command = VoiceCommand(
        settings_store=store,
        editor=ConsoleEditor(Path(note_path) if note_path else None),
        notifier=ConsoleNotifier(),
        storage=FileNoteStorage(Path(output_dir) if output_dir else Path.cwd()),
        view=ConsoleRecordingView(settings.max_recording_duration),
    )
    cli = VoiceMDCLI(command, diarization=diarization, post_processing=post_processing)
    return await cli.run()


def create_argument_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="voice-md",
        description="Voice MD - Record voice notes and turn them into markdown",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  voice-md                                   # Record, transcribe, print
  voice-md --post-process                    # Also structure into markdown notes
  voice-md --diarize                         # Identify speakers
  voice-md --output-dir ~/notes              # Where structured notes are saved
  voice-md --set api_key=sk-... --set language=en
  voice-md --show-settings
  voice-md --test-connection                 # Validate the API key

Controls:
  Enter     - Stop recording and transcribe
  Ctrl+C    - Cancel without transcribing
        """,
    )

    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument(
        "--trace",
        action="store_true",
        help="Enable trace logging (most verbose, includes all debug info)",
    )
    parser.add_argument(
        "--settings",
        type=str,
        default=None,
        metavar="PATH",
        help="Settings file (default: ~/.voice-md/settings.json)",
    )
    parser.add_argument(
        "--set",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Update a setting and save it (repeatable)",
    )
    parser.add_argument(
        "--show-settings", action="store_true", help="Print the current settings"
    )
    parser.add_argument(
        "--test-connection",
        action="store_true",
        help="Validate the API key with a short silent transcription",
    )
    parser.add_argument(
        "--post-process",
        dest="post_process",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Structure the transcript with the chat model (remembered as default)",
    )
    parser.add_argument(
        "--diarize", action="store_true", help="Enable speaker identification"
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default=None,
        metavar="PATH",
        help="Root folder for saved transcription notes (default: current directory)",
    )
    parser.add_argument(
        "--note",
        type=str,
        default=None,
        metavar="PATH",
        help="Append the inserted text to this note file",
    )

    return parser


def handle_arguments(args: argparse.Namespace) -> tuple[bool, bool]:
    """
    Handle settings-related arguments.

    Returns:
        Tuple of (success, should_continue)
    """
    configure_logging(verbose=args.verbose, trace=args.trace)
    store = JsonSettingsStore(args.settings)
    settings_operation = False

    if args.set:
        try:
            apply_settings(store, args.set)
        except ValueError as e:
            print(f"❌ {e}")
            return False, False
        except OSError as e:
            print(f"❌ Could not save settings: {e}")
            return False, False
        print(f"✅ Settings saved to {store.path}")
        settings_operation = True

    if args.show_settings:
        print(format_settings(store.load()))
        settings_operation = True

    if args.test_connection:
        return asyncio.run(check_connection(store)), False

    if settings_operation:
        return True, False

    return True, True


def cli_entry_with_args() -> None:
    """CLI entry point with argument parsing."""
    parser = create_argument_parser()

    try:
        args = parser.parse_args()

        success, should_continue = handle_arguments(args)
        if not success:
            sys.exit(1)
        if not should_continue:
            sys.exit(0)

        sys.exit(
            asyncio.run(
                main(
                    settings_path=args.settings,
                    output_dir=args.output_dir,
                    note_path=args.note,
                    diarization=args.diarize,
                    post_processing=args.post_process,
                )
            )
        )

    except KeyboardInterrupt:
        print("\n👋 Cancelled.")
        sys.exit(130)
    except SystemExit:
        raise
    except Exception as e:
        logger.error(f"❌ Unexpected error: {e}", exc_info=True)
        print(f"❌ {describe_error(e)}")
        sys.exit(1)


if __name__ == "__main__":
    cli_entry_with_args()
