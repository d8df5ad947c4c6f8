"""Environment settings for the ceteris command line."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CeterisSettings(BaseSettings):
    config_path: Path | None = Field(default=None, description="Default pipeline YAML config")
    output_dir: Path = Field(default=Path("artifacts/profiles"), description="Profile store directory")
    workers: int = Field(default=1, ge=1, description="Thread pool size for profiling")
    log_level: str = Field(default="WARNING", description="Logging level for library modules")

    model_config = SettingsConfigDict(env_prefix="CETERIS_", env_file=".env", env_file_encoding="utf-8")


def get_settings() -> CeterisSettings:
    return CeterisSettings()
