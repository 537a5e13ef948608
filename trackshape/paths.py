from __future__ import annotations
from pathlib import Path
from platformdirs import PlatformDirs

APP = "trackshape"

CONFIG_FILENAME = "config.yaml"


def _platform_dirs() -> PlatformDirs:
    return PlatformDirs(appname=APP, appauthor=False)


def get_dirs() -> dict[str, Path]:
    d = _platform_dirs()
    paths = {
        "config": Path(d.user_config_dir), # config.yaml
        "cache": Path(d.user_cache_dir),
        "state": Path(d.user_state_dir),
        "logs": Path(d.user_log_dir),      # trackshape.log
    }
    for p in paths.values():
        p.mkdir(parents=True, exist_ok=True)
    return paths


def user_config_file() -> Path:
    """Per-user config, used when no trackshape.yaml sits in the working directory."""
    return Path(_platform_dirs().user_config_dir) / CONFIG_FILENAME
