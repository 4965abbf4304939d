# triage_engine/config_loader.py

"""
Utility helpers for loading conn-triage configuration and ensuring runtime
directories exist. Resolves the suspicious-port set from defaults, the shared
~/.conn-triage settings file, an explicit config file and CLI overrides.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, Tuple, Union

from .models import DEFAULT_SUSPICIOUS_PORTS, ClassifierConfig

APP_ROOT = Path.home() / ".conn-triage"
DATA_DIR = APP_ROOT / "data"
LOG_DIR = APP_ROOT / "logs"
REPORT_DIR = APP_ROOT / "reports"
DEFAULT_SETTINGS_FILE = DATA_DIR / "settings.json"

EXPORT_FORMATS = ("csv", "json", "none")

DEFAULT_SETTINGS: Dict[str, Any] = {
    "suspicious_ports": sorted(DEFAULT_SUSPICIOUS_PORTS),
    "report_dir": None,
    "export_format": "csv",
    "top_flagged": 5,
    "workers": 1,
    "log_max_bytes": 5 * 1024 * 1024,
    "log_backup_count": 5,
}


def ensure_runtime_dirs() -> None:
    """Ensure ~/.conn-triage data/log/report directories exist."""
    for path in (DATA_DIR, LOG_DIR, REPORT_DIR):
        path.mkdir(parents=True, exist_ok=True)


def _load_json(path: Path) -> Dict[str, Any]:
    with open(path, "r") as handle:
        return json.load(handle)


def parse_ports(value: Union[str, Iterable[Any], None]) -> FrozenSet[int]:
    """
    Accept ``"4444, 5555"`` or ``[4444, "5555"]`` and return a frozenset of ints.
    Raises ValueError on anything that is not a port number.
    """
    if value is None:
        return frozenset()
    if isinstance(value, str):
        items = [item.strip() for item in value.split(",") if item.strip()]
    else:
        items = list(value)

    ports = set()
    for item in items:
        if isinstance(item, bool):
            raise ValueError(f"Invalid port: {item!r}")
        try:
            port = int(item)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid port: {item!r}") from None
        if not 0 <= port <= 65535:
            raise ValueError(f"Port out of range: {port}")
        ports.add(port)
    return frozenset(ports)


def _int_setting(settings: Dict[str, Any], key: str, minimum: int) -> int:
    value = settings.get(key)
    if value is None:
        value = DEFAULT_SETTINGS[key]
    if isinstance(value, bool):
        raise ValueError(f"Invalid {key}: {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid {key}: {value!r}") from None
    if number < minimum:
        raise ValueError(f"{key} must be at least {minimum}, got {number}")
    return number


def load_settings(defaults: Dict[str, Any] | None = None) -> Dict[str, Any]:
    """
    Load shared settings from ~/.conn-triage/data/settings.json.
    Returns defaults merged with file contents when available.
    """
    config = defaults.copy() if defaults else {}
    if DEFAULT_SETTINGS_FILE.exists():
        try:
            config.update(_load_json(DEFAULT_SETTINGS_FILE))
        except Exception as exc:
            print(f"⚠️ Failed to read settings.json: {exc}")
    return config


def load_triage_config(
    config_path: str | None = None,
    overrides: Dict[str, Any] | None = None,
) -> Tuple[ClassifierConfig, Dict[str, Any]]:
    """
    Merge defaults, shared settings, an optional config file and overrides.
    Returns a tuple of (classifier_config, settings).
    """
    settings = load_settings(defaults=DEFAULT_SETTINGS)

    if config_path:
        resolved = Path(config_path).expanduser()
        try:
            settings.update(_load_json(resolved))
        except Exception as exc:
            raise RuntimeError(f"Failed to load config '{config_path}': {exc}") from exc

    for key, value in (overrides or {}).items():
        if value is not None:
            settings[key] = value

    ports = parse_ports(settings.get("suspicious_ports"))
    settings["suspicious_ports"] = sorted(ports)
    settings["workers"] = _int_setting(settings, "workers", minimum=1)
    settings["top_flagged"] = _int_setting(settings, "top_flagged", minimum=0)
    settings["log_backup_count"] = _int_setting(settings, "log_backup_count", minimum=0)
    if settings.get("log_max_bytes") is not None:
        settings["log_max_bytes"] = _int_setting(settings, "log_max_bytes", minimum=0)
    settings["export_format"] = settings.get("export_format") or "none"
    if settings["export_format"] not in EXPORT_FORMATS:
        raise ValueError(f"Invalid export_format: {settings.get('export_format')!r}")
    return ClassifierConfig(suspicious_ports=ports), settings


__all__ = [
    "APP_ROOT",
    "DATA_DIR",
    "LOG_DIR",
    "REPORT_DIR",
    "DEFAULT_SETTINGS",
    "EXPORT_FORMATS",
    "ensure_runtime_dirs",
    "load_settings",
    "load_triage_config",
    "parse_ports",
]
