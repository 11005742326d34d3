"""Pre-DB bootstrap configuration. Zero imports from the rest of the app.

Holds what must be known before the database is opened: where the database
lives and how verbose logging is. Config lives in ~/.budget-timeline/config.json;
environment variables override the file.
"""
import json
import os
from pathlib import Path

CONFIG_DIR = Path.home() / ".budget-timeline"
CONFIG_FILE = CONFIG_DIR / "config.json"

DB_PATH_ENV = "BUDGET_TIMELINE_DB"
LOG_LEVEL_ENV = "BUDGET_TIMELINE_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "INFO"


def load_config(path: Path | None = None) -> dict:
    """Returns {} on a missing or corrupt file; never raises."""
    try:
        with open(path or CONFIG_FILE, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


def save_config(config: dict, path: Path | None = None) -> None:
    """Creates the config dir if needed; atomic write via .tmp + os.replace()."""
    target = path or CONFIG_FILE
    target.parent.mkdir(parents=True, exist_ok=True)
    tmp = target.with_suffix(".tmp")
    try:
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)
        os.replace(tmp, target)
    finally:
        tmp.unlink(missing_ok=True)


def get_db_path(default: str) -> str:
    """Environment override, then config["db_path"], then default."""
    return os.environ.get(DB_PATH_ENV) or load_config().get("db_path") or default


def set_db_path(path: str | None) -> None:
    config = load_config()
    if path is None:
        config.pop("db_path", None)
    else:
        config["db_path"] = path
    save_config(config)


def get_log_level() -> str:
    level = os.environ.get(LOG_LEVEL_ENV) or load_config().get("log_level") or DEFAULT_LOG_LEVEL
    return str(level).upper()
