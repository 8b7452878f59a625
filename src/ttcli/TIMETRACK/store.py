# TIMETRACK/store.py
"""
File storage for the tracker.

Two files live in the data directory:

- timetracker.csv: header plus one row per finished entry, appended to in the
  common case and rewritten in full for deletions.
- state.json: the running session, present only while tracking.

A missing file reads as empty/absent. Any other OS error is raised as
StorageError with the original exception chained.
"""
import json
import logging
from pathlib import Path
from typing import List, Optional, TextIO

from .config import CSV_HEADER, LOG_FILE, STATE_FILE, get_config_dir
from .errors import StorageError
from .model import LogEntry, SessionState

logger = logging.getLogger(__name__)


class EntryStore:
    def __init__(self, config_dir: Optional[Path] = None):
        self.config_dir = Path(config_dir) if config_dir is not None else get_config_dir()
        self.state_file = self.config_dir / STATE_FILE
        self.log_file = self.config_dir / LOG_FILE

    def __repr__(self):
        return f"<EntryStore(config_dir='{self.config_dir}')>"

    # --- Setup ---

    def ensure_config_dir(self):
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Failed to create config directory: {exc}") from exc

    def initialize_log_file(self):
        """Create a header-only log if none exists yet."""
        self.ensure_config_dir()
        if self.log_file.exists():
            return
        try:
            with open(self.log_file, "w", encoding="utf-8", newline="") as f:
                f.write(CSV_HEADER + "\n")
        except OSError as exc:
            raise StorageError(f"Failed to initialize log file: {exc}") from exc
        logger.debug("Created log file %s", self.log_file)

    # --- Session state ---

    def read_state(self) -> Optional[SessionState]:
        try:
            with open(self.state_file, "r", encoding="utf-8") as f:
                raw = f.read()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(f"Failed to read state file: {exc}") from exc

        try:
            return SessionState.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.warning("Ignoring unreadable state file %s: %s", self.state_file, exc)
            return None

    def save_state(self, state: SessionState):
        self.ensure_config_dir()
        try:
            with open(self.state_file, "w", encoding="utf-8") as f:
                json.dump(state.to_dict(), f, indent=2)
        except OSError as exc:
            raise StorageError(f"Failed to save state file: {exc}") from exc

    def clear_state(self):
        try:
            self.state_file.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise StorageError(f"Failed to clear state file: {exc}") from exc

    # --- Log entries ---

    def read_all_entries(self) -> List[LogEntry]:
        """
        All valid entries, oldest date first. Rows that fail to parse are skipped.

        Undecodable bytes are replaced with U+FFFD instead of failing the read.
        """
        try:
            f = open(self.log_file, "r", encoding="utf-8", errors="replace", newline="")
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise StorageError(f"Failed to read log file: {exc}") from exc

        with f:
            try:
                lines = list(f)
            except OSError as exc:
                raise StorageError(f"Failed to read log file: {exc}") from exc

        entries: List[LogEntry] = []
        for lineno, line in enumerate(lines[1:], start=2):
            if not line.strip():
                continue
            entry = LogEntry.from_csv_line(line)
            if entry is None:
                logger.debug("Skipping malformed line %d of %s: %r", lineno, self.log_file, line)
                continue
            entries.append(entry)

        # sort() is stable: same-day entries keep file order
        entries.sort(key=lambda e: e.date)
        return entries

    def append_entry(self, entry: LogEntry):
        self.initialize_log_file()
        try:
            with open(self.log_file, "a", encoding="utf-8", newline="") as f:
                f.write(entry.to_csv_line() + "\n")
        except OSError as exc:
            raise StorageError(f"Failed to append log entry: {exc}") from exc
        logger.debug("Appended %s", entry)

    def write_all_entries(self, entries: List[LogEntry]):
        """
        Replace the whole log with `entries`, in the given order.

        Rows read from disk are written back verbatim. The new content goes to
        a temp file that is then renamed over the log, so a failed write
        leaves the old log in place.
        """
        self.ensure_config_dir()
        lines = [CSV_HEADER] + [entry.original_line or entry.to_csv_line() for entry in entries]
        tmp_path = self.log_file.with_suffix(".csv.tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8", newline="") as f:
                f.write("\n".join(lines) + "\n")
            tmp_path.replace(self.log_file)
        except OSError as exc:
            try:
                tmp_path.unlink()
            except OSError:
                pass
            raise StorageError(f"Failed to write log entries: {exc}") from exc
        logger.debug("Rewrote %s with %d entries", self.log_file, len(entries))

    def export(self, sink: TextIO) -> int:
        """Write header plus every entry, normalised to the current row shape. Returns the row count."""
        entries = self.read_all_entries()
        sink.write(CSV_HEADER + "\n")
        for entry in entries:
            sink.write(entry.to_csv_line() + "\n")
        return len(entries)
