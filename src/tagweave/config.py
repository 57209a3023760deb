"""Configuration settings for tagweave."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TAGWEAVE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///tagweave.sqlite3"

    # Language stored with each tagging when no translation namespace matches
    default_language: str = "en"
    # Language codes recognised as a leading namespace (e.g. "de:start")
    translations: list[str] = []

    # Store and read every tagging under the shared "auto" tagger
    single_user_mode: bool = False

    # Tags starting with this prefix are hidden from clouds for non-editors
    hidden_prefix: str = ""

    # Tag clouds
    cloud_levels: int = 10

    # Prepended to search URLs built by build_search_url()
    search_base_url: str = ""

    @property
    def sync_database_url(self) -> str:
        """Database URL with the async driver stripped (for Alembic)."""
        return self.database_url.replace("+aiosqlite", "")


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
