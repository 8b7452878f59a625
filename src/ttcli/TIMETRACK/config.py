# TIMETRACK/config.py
import logging
import os
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

CONFIG_DIR_ENV = "TT_CONFIG_DIR"
DEFAULT_CONFIG_DIR = Path.home() / ".timetracker"

STATE_FILE = "state.json"
LOG_FILE = "timetracker.csv"
CSV_HEADER = "project,date,duration_minutes,description,session_id"


def get_config_dir(override: Optional[str] = None) -> Path:
    """Return the data directory. An explicit override wins, then $TT_CONFIG_DIR, then ~/.timetracker."""
    if override:
        return Path(override).expanduser()
    env = os.environ.get(CONFIG_DIR_ENV)
    if env:
        return Path(env).expanduser()
    return DEFAULT_CONFIG_DIR


def setup_logging(verbose: bool = False):
    # Diagnostics go to stderr so stdout stays clean for --json and export.
    handler = RichHandler(console=Console(stderr=True), show_path=False)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )
