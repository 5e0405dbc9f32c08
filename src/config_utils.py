"""Helpers for working with the project configuration file."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from src.errors import ConfigurationError

CONFIG_PATH = Path("config.yaml")
APP_DIR_NAME = "screenshot-triage"
STORE_FILE_NAME = "screenshots.json"
UNPROCESSED_LOG_NAME = "unprocessed_files.csv"

DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_FILE_EXTENSIONS = (".png",)
DEFAULT_OCR_LANGUAGES = ("eng", "deu")
DEFAULT_MAX_WORKERS = 4

ENV_WATCHED_FOLDER = "SCREENSHOT_TRIAGE_WATCHED_FOLDER"
ENV_CLOUD_ANALYSIS = "SCREENSHOT_TRIAGE_CLOUD_ANALYSIS"
ENV_DATA_DIR = "SCREENSHOT_TRIAGE_DATA_DIR"
_TRUTHY = {"1", "true", "yes", "on"}


def default_data_dir() -> Path:
    """Return the application-data directory for the store and logs."""
    env_dir = os.getenv(ENV_DATA_DIR)
    if env_dir:
        return Path(env_dir).expanduser()
    xdg_data_home = os.getenv("XDG_DATA_HOME")
    base = Path(xdg_data_home) if xdg_data_home else Path.home() / ".local" / "share"
    return base / APP_DIR_NAME


class Settings(BaseModel):
    """Externally supplied configuration for the pipeline."""

    watched_folder: Path | None = None
    cloud_analysis_enabled: bool = False
    store_path: Path = Field(
        default_factory=lambda: default_data_dir() / STORE_FILE_NAME
    )
    unprocessed_log_path: Path = Field(
        default_factory=lambda: default_data_dir() / UNPROCESSED_LOG_NAME
    )
    poll_interval: float = Field(default=DEFAULT_POLL_INTERVAL, gt=0)
    file_extensions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_FILE_EXTENSIONS)
    )
    ocr_languages: list[str] = Field(
        default_factory=lambda: list(DEFAULT_OCR_LANGUAGES), min_length=1
    )
    max_workers: int = Field(default=DEFAULT_MAX_WORKERS, ge=1)

    @field_validator("watched_folder", "store_path", "unprocessed_log_path")
    @classmethod
    def _expand_user(cls, value: Path | None) -> Path | None:
        return value.expanduser() if value is not None else None

    @field_validator("file_extensions")
    @classmethod
    def _normalize_extensions(cls, value: list[str]) -> list[str]:
        normalized = []
        for extension in value:
            extension = extension.strip().lower()
            if not extension:
                continue
            if not extension.startswith("."):
                extension = f".{extension}"
            normalized.append(extension)
        if not normalized:
            raise ValueError("At least one file extension is required")
        return normalized


def load_config(path: Path | str = CONFIG_PATH) -> dict[str, Any]:
    """Load the YAML configuration."""
    with Path(path).open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def _apply_env_overrides(values: dict[str, Any]) -> dict[str, Any]:
    overrides = dict(values)
    watched_folder = os.getenv(ENV_WATCHED_FOLDER)
    if watched_folder:
        overrides["watched_folder"] = watched_folder
    cloud_analysis = os.getenv(ENV_CLOUD_ANALYSIS)
    if cloud_analysis is not None:
        overrides["cloud_analysis_enabled"] = cloud_analysis.strip().lower() in _TRUTHY
    return overrides


def load_settings(
    path: Path | str | None = CONFIG_PATH,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Build ``Settings`` from the YAML file, environment, then explicit overrides.

    A missing configuration file is not an error; defaults apply.
    """
    values: dict[str, Any] = {}
    if path is not None and Path(path).exists():
        loaded = load_config(path)
        if not isinstance(loaded, Mapping):
            raise ConfigurationError(f"Configuration in {path} must be a mapping")
        values.update(loaded)

    values = _apply_env_overrides(values)
    if overrides:
        values.update({key: value for key, value in overrides.items() if value is not None})

    try:
        return Settings.model_validate(values)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc
