"""Abstract interfaces for the host application's collaborators."""

from abc import ABC, abstractmethod

from ..recording.session import SessionState


class Notice(ABC):
    """A notification that can be dismissed early."""

    @abstractmethod
    def hide(self) -> None:
        pass


class Notifier(ABC):
    """Shows status and error messages to the user."""

    @abstractmethod
    def notify(self, message: str, timeout: float | None = None) -> Notice:
        """
        Show a message.

        Args:
            message: Text to display
            timeout: Seconds before auto-dismiss; None keeps it until hidden

        Returns:
            Handle for hiding the notice
        """
        pass


class Editor(ABC):
    """The active note editor."""

    @abstractmethod
    def insert_text(self, text: str) -> None:
        """Insert text at the cursor, replacing any selection."""
        pass


class NoteStorage(ABC):
    """Note storage used for the linked raw/structured transcription notes."""

    @abstractmethod
    async def ensure_folder(self, path: str) -> None:
        """Create the folder if it does not exist."""
        pass

    @abstractmethod
    async def create_file(self, path: str, content: str) -> None:
        """Create a note at ``path`` with the given content."""
        pass


class RecordingView(ABC):
    """Visual feedback for a recording session."""

    @abstractmethod
    def show_status(self, status: str) -> None:
        pass

    @abstractmethod
    def show_elapsed(self, seconds: int) -> None:
        pass

    def show_state(self, old: SessionState, new: SessionState) -> None:
        """Called on every session transition; views may ignore it."""
        pass
