"""User settings and their persistence."""

import json
import os
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

from .logging_utils import get_logger
from .recording.config import DEFAULT_MAX_RECORDING_DURATION
from .transcription.config import DEFAULT_CHAT_MODEL

logger = get_logger(__name__)

DEFAULT_SETTINGS_PATH = os.path.expanduser("~/.voice-md/settings.json")
API_KEY_ENV_VAR = "OPENAI_API_KEY"


@dataclass
class Settings:
    """Process-wide configuration, reloaded whenever a session opens."""

    api_key: str = ""
    chat_model: str = DEFAULT_CHAT_MODEL
    enable_post_processing: bool = False
    post_processing_prompt: str | None = None
    language: str | None = None
    max_recording_duration: int = DEFAULT_MAX_RECORDING_DURATION
    auto_start_recording: bool = False

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Settings":
        """
        Build settings from persisted data, ignoring unknown keys and
        replacing invalid values with defaults.
        """
        known = {f.name for f in fields(cls)}
        settings = cls(**{k: v for k, v in data.items() if k in known})

        if not isinstance(settings.api_key, str):
            settings.api_key = ""
        if not isinstance(settings.chat_model, str) or not settings.chat_model.strip():
            settings.chat_model = DEFAULT_CHAT_MODEL
        # Blank optional strings mean "not set"
        if not settings.post_processing_prompt:
            settings.post_processing_prompt = None
        if not settings.language:
            settings.language = None
        if (
            isinstance(settings.max_recording_duration, bool)
            or not isinstance(settings.max_recording_duration, int)
            or settings.max_recording_duration <= 0
        ):
            logger.warning(
                f"⚠️ Invalid max_recording_duration {settings.max_recording_duration!r}, "
                f"using {DEFAULT_MAX_RECORDING_DURATION}"
            )
            settings.max_recording_duration = DEFAULT_MAX_RECORDING_DURATION
        settings.enable_post_processing = bool(settings.enable_post_processing)
        settings.auto_start_recording = bool(settings.auto_start_recording)
        return settings

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class SettingsStore(ABC):
    """Host capability for reading and writing settings."""

    @abstractmethod
    def load(self) -> Settings:
        """Load the current settings, falling back to defaults."""
        pass

    @abstractmethod
    def save(self, settings: Settings) -> None:
        """Persist settings."""
        pass


class JsonSettingsStore(SettingsStore):
    """Settings persisted as a JSON document on disk."""

    def __init__(self, path: str | Path | None = None, use_env: bool = True) -> None:
        """
        Initialize the store.

        Args:
            path: Settings file location
            use_env: Fall back to OPENAI_API_KEY when no key is stored
        """
        self._path = Path(path) if path is not None else Path(DEFAULT_SETTINGS_PATH)
        self._use_env = use_env
        self._env_api_key: str | None = None

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Settings:
        settings = Settings.from_dict(self._read_all())
        self._env_api_key = None
        if self._use_env and not settings.has_api_key:
            self._env_api_key = os.environ.get(API_KEY_ENV_VAR) or None
            settings.api_key = self._env_api_key or ""
        return settings

    def save(self, settings: Settings) -> None:
        data = settings.to_dict()
        # Keys picked up from the environment stay out of the file
        if self._env_api_key and data["api_key"] == self._env_api_key:
            data["api_key"] = ""

        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            json.dumps(data, ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
        logger.debug(f"Settings saved to {self._path}")

    def _read_all(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"⚠️ Could not read settings from {self._path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}
