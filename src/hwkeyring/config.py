"""Keyring configuration using pydantic-settings.

Values are read from HWKEYRING_* environment variables or a local .env file.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from hwkeyring.paths import HD_PATH_BASE, PathType


class Settings(BaseSettings):
    """Keyring settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="HWKEYRING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # HD paths
    # ======================
    default_hd_path_type: PathType = Field(
        default=PathType.BIP44, description="Path convention used when no session is restored"
    )
    default_page_size: int = Field(default=5, ge=1, description="Accounts per page")
    max_index: int = Field(
        default=1000, ge=1, description="Upper bound for the address-to-index fallback scan"
    )
    current_accounts_unlock_range: int = Field(
        default=51,
        ge=1,
        description="Indices unlocked before reconciling historical accounts",
    )

    # ======================
    # Bridge
    # ======================
    manifest_email: str = Field(default="support@debank.com/", description="Connect manifest email")
    manifest_app_url: str = Field(default="https://debank.com/", description="Connect manifest app URL")
    lazy_load: bool = Field(default=True, description="Defer bridge resources until first request")
    device_lock_timeout: Optional[float] = Field(
        default=None, description="Seconds to wait for the device lock (None = wait forever)"
    )

    # ======================
    # Software device (development only)
    # ======================
    device_seed_phrase: Optional[str] = Field(
        default=None, description="BIP39 mnemonic backing the software bridge"
    )

    @property
    def default_hd_path(self) -> str:
        """Base path for the default path type."""
        return HD_PATH_BASE[self.default_hd_path_type]

    @property
    def manifest(self) -> dict:
        """Bridge init manifest."""
        return {"email": self.manifest_email, "appUrl": self.manifest_app_url}

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "default_hd_path_type": self.default_hd_path_type.value,
            "default_page_size": self.default_page_size,
            "max_index": self.max_index,
            "current_accounts_unlock_range": self.current_accounts_unlock_range,
            "manifest": self.manifest,
            "lazy_load": self.lazy_load,
            "device_lock_timeout": self.device_lock_timeout,
            "device_seed_phrase": "***" if self.device_seed_phrase else "(not set)",
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
