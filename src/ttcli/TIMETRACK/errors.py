# TIMETRACK/errors.py


class TimeTrackerError(Exception):
    """Base class for every error the tracker reports to its caller."""


class ValidationError(TimeTrackerError):
    """Bad user input: project name, duration, date/time, period or index."""


class NotFoundError(TimeTrackerError):
    """Something the operation strictly needs is absent (session, project, entries)."""


class StorageError(TimeTrackerError):
    """Reading or writing the data directory failed for a reason other than a missing file."""
