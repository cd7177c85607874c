"""Service settings read from the environment."""

from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass
from typing import Any


def _getenv_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _getenv_list(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(name)
    if raw is None:
        return default
    return tuple(item.strip() for item in raw.split(",") if item.strip())


_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _normalize_level(raw: str | None) -> str:
    value = (raw or "INFO").strip().upper()
    return value if value in _LEVELS else "INFO"


@dataclass(frozen=True)
class Settings:
    data_dir: str
    log_level: str
    precision: int
    host: str
    port: int
    cors_origins: tuple[str, ...]


def load_settings() -> Settings:
    return Settings(
        data_dir=os.getenv("TALLY_DATA_DIR", "data"),
        log_level=_normalize_level(os.getenv("TALLY_LOG_LEVEL")),
        precision=max(1, _getenv_int("TALLY_PRECISION", 12)),
        host=os.getenv("TALLY_HOST", "127.0.0.1"),
        port=_getenv_int("TALLY_PORT", 8000),
        cors_origins=_getenv_list("TALLY_CORS_ORIGINS", ("http://localhost:5173",)),
    )


settings = load_settings()

_RUNTIME_OVERRIDES: dict[str, Any] = {}


def get_settings() -> Settings:
    if not _RUNTIME_OVERRIDES:
        return settings
    return dataclasses.replace(settings, **_RUNTIME_OVERRIDES)


def update_settings(overrides: dict[str, Any]) -> Settings:
    normalized: dict[str, Any] = {}
    for key, value in overrides.items():
        if value is None:
            continue
        if key == "log_level":
            normalized[key] = _normalize_level(str(value))
        elif key in {"precision", "port"}:
            normalized[key] = int(value)
        elif key == "cors_origins":
            normalized[key] = tuple(value)
        elif key in {"data_dir", "host"}:
            normalized[key] = str(value)
        else:
            raise KeyError(f"Unknown setting {key!r}")
    _RUNTIME_OVERRIDES.update(normalized)
    return get_settings()


def reset_settings() -> None:
    _RUNTIME_OVERRIDES.clear()


def configure_logging(level: str | None = None) -> None:
    """Set up root logging once for the service process."""
    logging.basicConfig(
        level=level or get_settings().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("tally").setLevel(level or get_settings().log_level)
