from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from binwatch.exceptions import ConfigError

ROOT_DIR = Path(__file__).resolve().parents[1]


@dataclass(slots=True)
class DatabaseConfig:
    path: Path


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(slots=True)
class DashboardConfig:
    api_base: str = "http://localhost:8000"
    ws_url: str = "ws://localhost:8000/ws/bins"
    request_timeout_seconds: float = 5.0
    reconnect_delay_seconds: float = 5.0


@dataclass(slots=True)
class AppConfig:
    database: DatabaseConfig
    logging: LoggingConfig
    dashboard: DashboardConfig


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected mapping in {path}")
    return data


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"{name} must be a dictionary")
    return value


def _seconds(section: dict[str, Any], key: str, default: float) -> float:
    value = section.get(key, default)
    if isinstance(value, bool):
        raise ConfigError(f"dashboard.{key} must be a number")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"dashboard.{key} must be a number") from exc


def _resolve_config_dir() -> Path:
    env_dir = os.getenv("BINWATCH_CONFIG_DIR")
    if env_dir:
        return Path(env_dir).expanduser().resolve()
    return (ROOT_DIR / "config").resolve()


def load_config(config_dir: Path | None = None) -> AppConfig:
    directory = config_dir or _resolve_config_dir()
    if not directory.exists():
        raise ConfigError(f"Config directory not found: {directory}")

    raw = _read_yaml(directory / "service.yaml")

    db_path = Path(_section(raw, "database").get("path", "./data/binwatch.db"))
    if not db_path.is_absolute():
        db_path = (ROOT_DIR / db_path).resolve()

    level = str(_section(raw, "logging").get("level", "INFO")).strip().upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ConfigError(f"Invalid logging.level `{level}`")

    dashboard_raw = _section(raw, "dashboard")
    dashboard = DashboardConfig(
        api_base=str(dashboard_raw.get("api_base", "http://localhost:8000")).rstrip("/"),
        ws_url=str(dashboard_raw.get("ws_url", "ws://localhost:8000/ws/bins")),
        request_timeout_seconds=_seconds(dashboard_raw, "request_timeout_seconds", 5.0),
        reconnect_delay_seconds=_seconds(dashboard_raw, "reconnect_delay_seconds", 5.0),
    )

    return AppConfig(
        database=DatabaseConfig(path=db_path),
        logging=LoggingConfig(level=level),
        dashboard=dashboard,
    )
