"""Tests for settings and the JSON settings store."""

import json
from pathlib import Path

import pytest

from voice_md.settings import API_KEY_ENV_VAR, JsonSettingsStore, Settings


@pytest.fixture(autouse=True)
def no_env_api_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(API_KEY_ENV_VAR, raising=False)


@pytest.mark.unit
class TestSettings:
    def test_defaults(self) -> None:
        settings = Settings()

        assert settings.has_api_key is False
        assert settings.chat_model == "gpt-4o-mini"
        assert settings.enable_post_processing is False
        assert settings.max_recording_duration == 300
        assert settings.auto_start_recording is False

    def test_from_dict_ignores_unknown_keys(self) -> None:
        settings = Settings.from_dict({"api_key": "sk-abc", "theme": "dark"})

        assert settings.api_key == "sk-abc"

    def test_from_dict_replaces_invalid_values(self) -> None:
        """Invalid persisted values fall back to defaults."""
        settings = Settings.from_dict(
            {
                "chat_model": "  ",
                "max_recording_duration": -5,
                "post_processing_prompt": "",
                "language": "",
            }
        )

        assert settings.chat_model == "gpt-4o-mini"
        assert settings.max_recording_duration == 300
        assert settings.post_processing_prompt is None
        assert settings.language is None

    def test_boolean_duration_is_invalid(self) -> None:
        assert Settings.from_dict({"max_recording_duration": True}).max_recording_duration == 300

    def test_whitespace_key_is_not_configured(self) -> None:
        assert Settings(api_key="   ").has_api_key is False


@pytest.mark.unit
class TestJsonSettingsStore:
    """Persistence under a temporary directory."""

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        store = JsonSettingsStore(tmp_path / "settings.json")

        assert store.load() == Settings()

    def test_save_and_load(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "settings.json"
        store = JsonSettingsStore(path)
        settings = Settings(api_key="sk-abc", enable_post_processing=True, language="en")

        store.save(settings)

        assert path.exists()
        assert JsonSettingsStore(path).load() == settings

    def test_corrupt_file_gives_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.json"
        path.write_text("{not json", encoding="utf-8")

        assert JsonSettingsStore(path).load() == Settings()

    def test_non_object_file_gives_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.json"
        path.write_text("[1, 2, 3]", encoding="utf-8")

        assert JsonSettingsStore(path).load() == Settings()

    def test_env_api_key_fallback(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(API_KEY_ENV_VAR, "sk-from-env")
        store = JsonSettingsStore(tmp_path / "settings.json")

        assert store.load().api_key == "sk-from-env"

    def test_stored_key_wins_over_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(API_KEY_ENV_VAR, "sk-from-env")
        store = JsonSettingsStore(tmp_path / "settings.json")
        store.save(Settings(api_key="sk-stored"))

        assert store.load().api_key == "sk-stored"

    def test_env_key_is_not_written(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Saving settings loaded from the environment keeps the key out of the file."""
        monkeypatch.setenv(API_KEY_ENV_VAR, "sk-from-env")
        path = tmp_path / "settings.json"
        store = JsonSettingsStore(path)
        settings = store.load()
        settings.enable_post_processing = True

        store.save(settings)

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["api_key"] == ""
        assert data["enable_post_processing"] is True

    def test_env_disabled(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(API_KEY_ENV_VAR, "sk-from-env")
        store = JsonSettingsStore(tmp_path / "settings.json", use_env=False)

        assert store.load().has_api_key is False
