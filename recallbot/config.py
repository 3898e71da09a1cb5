"""Application settings loaded from environment variables."""

import os
import sys
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


def default_database_path() -> Path:
    """Per-platform location of the memory database.

    ``ENV=dev`` keeps the database inside the working tree.
    """
    if os.getenv("ENV") == "dev":
        return Path("data/recallbot.db")

    home = Path.home()
    if sys.platform == "win32":
        base = Path(os.getenv("LOCALAPPDATA") or home / "AppData" / "Local")
        return base / "Recallbot" / "recallbot.db"
    if sys.platform == "darwin":
        return home / "Library" / "Application Support" / "Recallbot" / "recallbot.db"
    return home / ".recallbot" / "recallbot.db"


DEFAULT_SYSTEM_PROMPT = (
    "Assistant, the following is a conversation between you and a user. "
    "If you know the user's name, address them with it. "
    "If you don't know the answer to a question, let the user know."
)


class Settings(BaseSettings):
    """Recallbot configuration. All values come from environment variables."""

    # Providers
    openai_api_key: str = Field(default="")
    anthropic_api_key: str = Field(default="")
    completion_provider: str = Field(default="openai")
    chat_model: str = Field(default="gpt-3.5-turbo-16k")
    claude_model: str = Field(default="claude-sonnet-4-5-20250929")
    embedding_model: str = Field(default="text-embedding-ada-002")
    max_tokens: int = Field(default=4096)

    # Database
    database_path: Path = Field(default_factory=default_database_path)

    # Memory recall
    memory_similarity_floor: float = Field(default=0.75)
    memory_query_limit: int = Field(default=10)
    memorize_default_exchanges: int = Field(default=2)

    # Conversation
    system_prompt: str = Field(default=DEFAULT_SYSTEM_PROMPT)

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    def get_completion_provider(self) -> str:
        """Normalized provider name: ``"openai"`` or ``"anthropic"``."""
        provider = self.completion_provider.strip().lower()
        if provider not in ("openai", "anthropic"):
            raise ValueError(f"Unknown completion provider: {self.completion_provider!r}")
        return provider


settings = Settings()
