from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator, model_validator
from typing import Optional

from .commands import PROJECTS


class Settings(BaseSettings):
    # --- Project Settings ---
    PROJECT_NAME: str = "GitHub Maintenance Exporter"
    API_PORT: str = "9999"
    LOG_LEVEL: str = "INFO"

    # --- M-Lab Settings ---
    PROJECT: str

    @field_validator("PROJECT")
    @classmethod
    def validate_project(cls, v: str) -> str:
        if v not in PROJECTS:
            raise ValueError(f"Unknown project: {v}")
        return v

    # --- Storage Settings ---
    STATE_FILE: Path = Path("/tmp/gmx-state")

    # --- GitHub Settings ---
    GITHUB_WEBHOOK_SECRET: str = ""
    GITHUB_SECRET_PATH: Optional[Path] = None

    def github_secret(self) -> bytes:
        """shared webhook secret, from GITHUB_SECRET_PATH if set, else the environment"""
        if self.GITHUB_SECRET_PATH:
            secret = self.GITHUB_SECRET_PATH.read_bytes()
        else:
            secret = self.GITHUB_WEBHOOK_SECRET.encode("utf-8")

        secret = secret.strip()
        if not secret:
            raise RuntimeError("GitHub webhook secret is empty")
        return secret

    # --- Siteinfo Settings ---
    SITEINFO_URL: str = "https://siteinfo.{project}.measurementlab.net/v2/sites/sites.json"
    SITEINFO_TIMEOUT: float = 30.0

    # seconds between siteinfo reloads
    RELOAD_MIN: int = 60 * 60
    RELOAD_TIME: int = 60 * 60 * 5
    RELOAD_MAX: int = 60 * 60 * 24

    @model_validator(mode="after")
    def check_reload_bounds(self):
        if not 0 < self.RELOAD_MIN <= self.RELOAD_TIME <= self.RELOAD_MAX:
            raise ValueError("Reload intervals must satisfy 0 < RELOAD_MIN <= RELOAD_TIME <= RELOAD_MAX")
        return self

    model_config = SettingsConfigDict(case_sensitive=True, env_file=".env")


settings = Settings()
