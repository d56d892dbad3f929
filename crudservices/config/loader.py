"""Profile-based configuration loader for the CRUD services layer.

A profile is ``<config_dir>/<profile>.yaml`` (or ``.yml``). Any section the
profile leaves out keeps its default; ``DATABASE_URL`` overrides the
profile's database URL.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

import yaml

CONFIG_PROFILE_ENV = "CRUDSERVICES_CONFIG_PROFILE"
CONFIG_DIR_ENV = "CRUDSERVICES_CONFIG_DIR"
DATABASE_URL_ENV = "DATABASE_URL"
DEFAULT_PROFILE = "dev"
DEFAULT_CONFIG_ROOT = Path(__file__).resolve().parents[2] / "config" / "profiles"
CONFIG_EXTENSIONS = (".yaml", ".yml")

DEFAULT_ENVIRONMENT = "dev"
DEFAULT_DATABASE_URL = "sqlite+pysqlite:///:memory:"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


@dataclass
class DatabaseConfig:
    url: str = DEFAULT_DATABASE_URL
    echo: bool = False


@dataclass
class LoggingConfig:
    level: str = DEFAULT_LOG_LEVEL
    format: str = DEFAULT_LOG_FORMAT


@dataclass
class CrudSettings:
    """Validation switches and message template overrides."""

    validate_on_create: bool = True
    validate_on_update: bool = True
    validate_dto: bool = True
    messages: Dict[str, str] = field(default_factory=dict)


@dataclass
class Settings:
    environment: str = DEFAULT_ENVIRONMENT
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    crud: CrudSettings = field(default_factory=CrudSettings)
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def database_url(self) -> str:
        return self.database.url


def load_settings(
    profile: str | None = None, config_dir: str | Path | None = None
) -> Settings:
    """Read the selected profile; a missing profile yields the defaults."""

    profile_name = profile or os.getenv(CONFIG_PROFILE_ENV, DEFAULT_PROFILE)
    root = Path(config_dir or os.getenv(CONFIG_DIR_ENV) or DEFAULT_CONFIG_ROOT)
    path = _profile_path(root.expanduser(), profile_name)
    data = _read_profile(path) if path is not None else {}

    return Settings(
        environment=str(data.get("environment", DEFAULT_ENVIRONMENT)),
        database=_build_database(data.get("database")),
        logging=_build_logging(data.get("logging")),
        crud=_build_crud_settings(data.get("crud")),
        raw=data,
    )


def _profile_path(root: Path, profile_name: str) -> Path | None:
    for extension in CONFIG_EXTENSIONS:
        candidate = root / f"{profile_name}{extension}"
        if candidate.is_file():
            return candidate
    return None


def _read_profile(path: Path) -> dict[str, Any]:
    try:
        loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise RuntimeError(f"Failed to parse config profile {path}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise RuntimeError(f"Config profile {path} must be a mapping at the root")
    return loaded


def _build_database(section: dict[str, Any] | None) -> DatabaseConfig:
    section = section or {}
    url = os.getenv(DATABASE_URL_ENV) or section.get("url") or DEFAULT_DATABASE_URL
    return DatabaseConfig(url=str(url), echo=bool(section.get("echo", False)))


def _build_logging(section: dict[str, Any] | None) -> LoggingConfig:
    section = section or {}
    return LoggingConfig(
        level=str(section.get("level", DEFAULT_LOG_LEVEL)).upper(),
        format=str(section.get("format", DEFAULT_LOG_FORMAT)),
    )


def _build_crud_settings(section: dict[str, Any] | None) -> CrudSettings:
    section = section or {}
    messages = section.get("messages") or {}
    if not isinstance(messages, dict):
        raise RuntimeError("crud.messages must be a mapping of message templates")
    return CrudSettings(
        validate_on_create=bool(section.get("validate_on_create", True)),
        validate_on_update=bool(section.get("validate_on_update", True)),
        validate_dto=bool(section.get("validate_dto", True)),
        messages={str(key): str(value) for key, value in messages.items()},
    )
