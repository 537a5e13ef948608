"""
config — Loads trackshape.yaml with env var overrides.

Precedence: env vars > trackshape.yaml (or the per-user config.yaml) > defaults
"""
from __future__ import annotations
import logging
import os
from pathlib import Path
from dataclasses import dataclass, field, fields
import yaml

from .errors import ConfigError
from .paths import user_config_file


@dataclass
class Config:
    # External tools (name on PATH or absolute path)
    mkvmerge: str = "mkvmerge"
    mkvpropedit: str = "mkvpropedit"
    rsync: str = "rsync"

    # Discovery
    default_extension: str = "mkv"

    # Remux
    template_name: str = "options.json"
    remux_dir: str = "remuxed"
    extra_per_file_flags: list[str] = field(default_factory=list)

    # Seconds before `mkvmerge -J` is considered hung
    identify_timeout: int = 300

    log_level: str = "INFO"


def _coerce(cfg: Config, attr: str, value, source: str):
    """Convert value to the type of attr's default; ConfigError if it does not fit."""
    default = getattr(cfg, attr)
    if isinstance(default, list):
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ConfigError(source, f"{attr} must be a list of strings")
        return value
    if isinstance(default, int):
        if isinstance(value, bool):
            raise ConfigError(source, f"{attr} must be an integer, got {value!r}")
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ConfigError(source, f"{attr} must be an integer, got {value!r}") from None
    if not isinstance(value, (str, int, float)):
        raise ConfigError(source, f"{attr} must be a string, got {value!r}")
    return str(value)


def load_config(config_path: str | Path | None = None) -> Config:
    """Load config from YAML file, then override with env vars."""
    cfg = Config()
    known = {f.name for f in fields(Config)}

    # 1. Load from YAML if available (env path, then ./trackshape.yaml, then user config dir)
    if config_path is None:
        config_path = os.environ.get("TRACKSHAPE_CONFIG", "trackshape.yaml")
        if not Path(config_path).exists():
            config_path = user_config_file()
    path = Path(config_path)
    if path.exists():
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(str(path), f"not valid YAML ({e})") from e
        except OSError as e:
            raise ConfigError(str(path), str(e)) from e
        if not isinstance(data, dict):
            raise ConfigError(str(path), "expected a mapping of settings")
        for key, value in data.items():
            key_norm = str(key).replace("-", "_")
            if key_norm in known and value is not None:
                setattr(cfg, key_norm, _coerce(cfg, key_norm, value, str(path)))

    # 2. Override with env vars (TRACKSHAPE_ prefix)
    env_map = {
        "TRACKSHAPE_MKVMERGE": "mkvmerge",
        "TRACKSHAPE_MKVPROPEDIT": "mkvpropedit",
        "TRACKSHAPE_RSYNC": "rsync",
        "TRACKSHAPE_EXT": "default_extension",
        "TRACKSHAPE_TEMPLATE": "template_name",
        "TRACKSHAPE_REMUX_DIR": "remux_dir",
        "TRACKSHAPE_IDENTIFY_TIMEOUT": "identify_timeout",
        "TRACKSHAPE_LOG_LEVEL": "log_level",
    }
    for env_key, attr in env_map.items():
        val = os.environ.get(env_key)
        if val is not None:
            setattr(cfg, attr, _coerce(cfg, attr, val, env_key))

    if cfg.identify_timeout <= 0:
        raise ConfigError("identify_timeout", "must be a positive number of seconds")
    cfg.log_level = cfg.log_level.upper()
    if not isinstance(logging.getLevelName(cfg.log_level), int):
        raise ConfigError("log_level", f"unknown level {cfg.log_level!r}")
    cfg.default_extension = cfg.default_extension.lstrip(".")
    return cfg
