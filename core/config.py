import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


CONFIG_PATH = Path(__file__).parent.parent / "config.json"


@dataclass
class Config:
    """Process configuration, created once at startup and passed explicitly."""
    db_path: Path = Path("data/resurface.db")
    log_level: str = "WARNING"
    busy_timeout: float = 5.0


def _load_file(config_path: Path) -> dict:
    """Load configuration from config.json."""
    if not config_path.exists():
        return {}
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


def load_config(config_path: Optional[Path] = None, environ: Optional[dict] = None) -> Config:
    """Build the configuration from config.json and environment overrides.

    Args:
        config_path: JSON file to read, defaults to config.json at the project root
        environ: Mapping used for overrides, defaults to os.environ

    Returns:
        Config with file values applied over the defaults, then
        RESURFACE_DB / RESURFACE_LOG_LEVEL applied over those
    """
    data = _load_file(config_path or CONFIG_PATH)
    env = os.environ if environ is None else environ
    config = Config()

    if data.get("db_path"):
        config.db_path = Path(data["db_path"])
    if data.get("log_level"):
        config.log_level = str(data["log_level"]).upper()
    try:
        config.busy_timeout = float(data.get("busy_timeout", config.busy_timeout))
    except (TypeError, ValueError):
        pass

    if env.get("RESURFACE_DB"):
        config.db_path = Path(env["RESURFACE_DB"])
    if env.get("RESURFACE_LOG_LEVEL"):
        config.log_level = env["RESURFACE_LOG_LEVEL"].upper()
    return config
