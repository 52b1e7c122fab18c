from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources import TomlConfigSettingsSource

from .config import HOME_CONFIG_PATH, ConfigError


class RelaybotSettings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="allow",
        env_prefix="RELAYBOT__",
        env_nested_delimiter="__",
    )

    prefix: str = "!"
    modules: list[str] = Field(default_factory=list)
    unknown_command_reply: str = "Unknown command."
    failure_reply: str = "Something went wrong while running that command."
    buffer_size: int = Field(default=64, ge=0)
    scheduled: bool = True
    timezone: str = "UTC"

    @field_validator("prefix", mode="before")
    @classmethod
    def _validate_prefix(cls, value: Any) -> Any:
        if not isinstance(value, str):
            raise ValueError("prefix must be a string")
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("prefix must be a non-empty string")
        return cleaned

    @field_validator("modules", mode="before")
    @classmethod
    def _validate_modules(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = [item for item in value.split(",")]
        if not isinstance(value, list):
            raise ValueError("modules must be a list of package names")
        cleaned: list[str] = []
        for item in value:
            if not isinstance(item, str) or not item.strip():
                raise ValueError("modules entries must be non-empty strings")
            cleaned.append(item.strip())
        return cleaned

    @field_validator("timezone", mode="before")
    @classmethod
    def _validate_timezone(cls, value: Any) -> Any:
        from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

        if not isinstance(value, str) or not value.strip():
            raise ValueError("timezone must be a non-empty string")
        try:
            ZoneInfo(value.strip())
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"unknown timezone {value!r}") from None
        return value.strip()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )


def load_settings(path: str | Path | None = None) -> tuple[RelaybotSettings, Path]:
    cfg_path = _resolve_config_path(path)
    if cfg_path.exists() and not cfg_path.is_file():
        raise ConfigError(f"Config path {cfg_path} exists but is not a file.") from None
    if not cfg_path.exists():
        if path is not None:
            raise ConfigError(f"Missing config file {cfg_path}.") from None
        try:
            return RelaybotSettings(), cfg_path
        except ValidationError as exc:
            raise ConfigError(f"Invalid settings: {exc}") from exc
    return _load_settings_from_path(cfg_path), cfg_path


def validate_settings_data(
    data: dict[str, Any], *, config_path: Path
) -> RelaybotSettings:
    try:
        return RelaybotSettings.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config in {config_path}: {exc}") from exc


def _resolve_config_path(path: str | Path | None) -> Path:
    return Path(path).expanduser() if path else HOME_CONFIG_PATH


def _load_settings_from_path(cfg_path: Path) -> RelaybotSettings:
    cfg = dict(RelaybotSettings.model_config)
    cfg["toml_file"] = cfg_path
    Bound = type(
        "RelaybotSettingsBound",
        (RelaybotSettings,),
        {"model_config": SettingsConfigDict(**cfg)},
    )
    try:
        return Bound()
    except ValidationError as exc:
        raise ConfigError(f"Invalid config in {cfg_path}: {exc}") from exc
    except Exception as exc:  # pragma: no cover - safety net
        raise ConfigError(f"Failed to load config {cfg_path}: {exc}") from exc
