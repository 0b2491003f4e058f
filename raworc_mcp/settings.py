from typing import Optional, Any, Dict
from pydantic import Field, ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict, PydanticBaseSettingsSource
import os
import json
import tomllib
from pathlib import Path

import yaml

from .errors import ConfigError

DEFAULT_API_URL = "https://api.remoteagent.com/api/v0"


class Settings(BaseSettings):
    # Upstream API
    RAWORC_API_URL: str = DEFAULT_API_URL
    RAWORC_AUTH_TOKEN: Optional[str] = None
    RAWORC_USERNAME: Optional[str] = None
    RAWORC_PASSWORD: Optional[str] = None
    RAWORC_DEFAULT_SPACE: Optional[str] = None
    # Per-request timeout in seconds
    RAWORC_TIMEOUT: float = Field(default=30.0, gt=0)

    # Logging. LOG_DIR enables rotating file output next to stderr.
    LOG_LEVEL: str = "info"
    LOG_DIR: Optional[str] = None

    # Do NOT auto-load .env; prefer environment variables and an optional config file.
    # A config file path can be provided via APP_CONFIG_FILE (JSON/TOML/YAML). Env vars override file.
    model_config = SettingsConfigDict(case_sensitive=True)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,  # environment has priority over file
            _FileConfigSource(settings_cls),
            file_secret_settings,
        )

    @property
    def has_credentials(self) -> bool:
        return bool(self.RAWORC_USERNAME and self.RAWORC_PASSWORD)


def _config_path() -> Optional[Path]:
    cfg = os.environ.get("APP_CONFIG_FILE") or os.environ.get("CONFIG_FILE")
    if cfg:
        return Path(cfg).expanduser().resolve()
    for name in ("config.toml", "config.json", "config.yaml", "config.yml"):
        p = Path.cwd() / name
        if p.exists():
            return p.resolve()
    return None


def _load_config_file(path: Path) -> Dict[str, Any]:
    suffix = path.suffix.lower()
    try:
        if suffix == ".json":
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f) or {}
        elif suffix == ".toml":
            with path.open("rb") as f:
                data = tomllib.load(f) or {}
        elif suffix in (".yaml", ".yml"):
            with path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        else:
            raise ConfigError(f"unsupported config file type: {path.name}")
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise ConfigError(f"cannot read config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    # Normalize to uppercase keys
    return {str(k).upper(): v for k, v in data.items()}


class _FileConfigSource(PydanticBaseSettingsSource):
    def __init__(self, settings_cls: type[BaseSettings]) -> None:
        super().__init__(settings_cls)
        self._data: Dict[str, Any] = {}
        path = _config_path()
        if path is None:
            return
        if not path.exists():
            raise ConfigError(f"config file not found: {path}")
        self._data = _load_config_file(path)

    def get_field_value(self, field, field_name: str) -> tuple[Any, str, bool]:
        if field_name in self._data:
            return self._data[field_name], field_name, False
        return None, field_name, False

    def __call__(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for name, field in self.settings_cls.model_fields.items():
            value, key, _ = self.get_field_value(field, name)
            if value is not None:
                out[key] = value
        return out


def load_settings(**overrides: Any) -> Settings:
    """Build settings from env/config file, with explicit overrides on top.

    Overrides whose value is None are dropped so unset CLI flags fall through
    to the environment.
    """
    values = {k: v for k, v in overrides.items() if v is not None}
    try:
        return Settings(**values)
    except PydanticValidationError as exc:
        raise ConfigError(str(exc)) from exc
