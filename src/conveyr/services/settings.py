# src/conveyr/services/settings.py
from __future__ import annotations
from dataclasses import dataclass, fields, replace
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import dotenv_values

from conveyr.config import const
from conveyr.core.errors import ConfigError

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ConfigError("config_file", str(path), message=f"{path} must contain a mapping at the top level")
    return data


def _as_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigError(key, value)


def _as_positive_float(key: str, value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigError(key, value) from None
    if number <= 0:
        raise ConfigError(key, value, message=f"setting '{key}' must be positive, got {value!r}")
    return number


@dataclass(frozen=True, slots=True)
class Settings:
    handler_timeout_ms: float = float(const.HANDLER_TIMEOUT_MS)
    log_level: str = const.LOG_LEVEL
    log_file: Optional[Path] = None
    json_logs: bool = True
    profile: str = const.PROFILE

    @staticmethod
    def from_mapping(data: Mapping[str, Any]) -> "Settings":
        """Build from plain keys (``handler_timeout_ms`` ...); unknown keys are ignored."""
        return Settings().with_overrides(**{k: v for k, v in data.items() if k in _FIELDS})

    @staticmethod
    def from_sources(env_file: Optional[str] = ".env", config_file: Optional[str] = None) -> "Settings":
        """
        Порядок (каждый следующий перекрывает предыдущий):
          значения по умолчанию < conveyr.yaml < .env < переменные окружения
        """
        env_file_vars = {k: v for k, v in (dotenv_values(env_file) if env_file else {}).items() if v is not None}

        def pick_env(key: str) -> Optional[str]:
            return os.environ.get(const.ENV_PREFIX + key) or env_file_vars.get(const.ENV_PREFIX + key)

        config_path = config_file or pick_env("CONFIG") or const.CONFIG_FILE_NAME
        merged: Dict[str, Any] = dict(_read_yaml(Path(config_path)))
        for name in _FIELDS:
            value = pick_env(name.upper())
            if value:
                merged[name] = value
        return Settings.from_mapping(merged)

    def with_overrides(self, **kw: Any) -> "Settings":
        safe: Dict[str, Any] = {}
        for key, value in kw.items():
            if key not in _FIELDS or value is None:
                continue
            if key == "handler_timeout_ms":
                value = _as_positive_float(key, value)
            elif key == "json_logs":
                value = _as_bool(key, value)
            elif key == "log_file":
                value = Path(value).expanduser()
            elif key == "log_level":
                value = str(value).upper()
            else:
                value = str(value)
            safe[key] = value
        return replace(self, **safe)

    def as_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


_FIELDS = frozenset(f.name for f in fields(Settings))
