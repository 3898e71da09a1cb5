"""Tests for Settings configuration model."""

from pathlib import Path

import pytest

from recallbot.config import DEFAULT_SYSTEM_PROMPT, Settings, default_database_path


class TestDefaults:
    def test_memory_defaults(self):
        s = Settings()
        assert s.memory_similarity_floor == 0.75
        assert s.memory_query_limit == 10
        assert s.memorize_default_exchanges == 2

    def test_provider_defaults(self):
        s = Settings()
        assert s.completion_provider == "openai"
        assert s.embedding_model == "text-embedding-ada-002"

    def test_default_system_prompt(self):
        assert Settings().system_prompt == DEFAULT_SYSTEM_PROMPT


class TestCompletionProvider:
    def test_normalizes_case_and_whitespace(self):
        s = Settings(completion_provider=" Anthropic ")
        assert s.get_completion_provider() == "anthropic"

    def test_unknown_provider_raises(self):
        s = Settings(completion_provider="llama")
        with pytest.raises(ValueError, match="llama"):
            s.get_completion_provider()


class TestDatabasePath:
    def test_dev_env_uses_local_data_dir(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("ENV", "dev")
        assert default_database_path() == Path("data/recallbot.db")

    def test_linux_uses_dot_dir(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
        monkeypatch.delenv("ENV", raising=False)
        monkeypatch.setattr("sys.platform", "linux")
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))
        assert default_database_path() == tmp_path / ".recallbot" / "recallbot.db"

    def test_macos_uses_application_support(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
        monkeypatch.delenv("ENV", raising=False)
        monkeypatch.setattr("sys.platform", "darwin")
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))
        expected = tmp_path / "Library" / "Application Support" / "Recallbot" / "recallbot.db"
        assert default_database_path() == expected

    def test_explicit_path_wins(self, tmp_path: Path):
        s = Settings(database_path=tmp_path / "x.db")
        assert s.database_path == tmp_path / "x.db"


class TestExtraForbidden:
    def test_unknown_env_var_raises(self):
        with pytest.raises(ValueError, match="extra_forbidden"):
            Settings(**{"nonexistent_field": "value"})
