"""Configuration loaded from DOSSIER_* environment variables."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DossierSettings(BaseSettings):
    """Workspace layer settings.

    All fields are read from environment variables with the ``DOSSIER_``
    prefix.  For example, ``DOSSIER_LOG_LEVEL=DEBUG`` maps to ``log_level``.
    """

    model_config = SettingsConfigDict(
        env_prefix="DOSSIER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- Logging ---------------------------------------------------------------
    log_level: str = "INFO"

    log_file: str | None = None
    """Optional rotating log file, in addition to stderr."""

    # -- Local workspace -------------------------------------------------------
    workspace_root: str | None = None
    """Workspace root used by the CLI when no path is given."""

    config_path: str = "~/.config/dossier/config.json"
    """Where the last selected workspace is remembered between runs."""

    # -- Remote profile service ------------------------------------------------
    profile_service_url: str | None = None
    """Base URL of the PostgREST-style profile service.  Sync is off when unset."""

    profile_service_key: SecretStr | None = None
    profile_table: str = "clients"
    profile_timeout: float = 10.0

    # -- Helpers ---------------------------------------------------------------

    def resolved_config_path(self) -> Path:
        return Path(self.config_path).expanduser()

    @property
    def profiles_configured(self) -> bool:
        return bool(self.profile_service_url)


def get_settings() -> DossierSettings:
    """Return a cached settings instance.

    Call ``_get_settings_cached.cache_clear()`` in tests to force a re-read
    after overriding env vars.
    """
    return _get_settings_cached()


@lru_cache(maxsize=1)
def _get_settings_cached() -> DossierSettings:
    return DossierSettings()
