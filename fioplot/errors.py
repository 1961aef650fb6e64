"""Exception types raised by the fioplot pipeline."""

from __future__ import annotations

from pathlib import Path


class FioplotError(Exception):
    """Base class for all fioplot errors."""


class MalformedInput(FioplotError, ValueError):
    """A result document has no JSON object span or does not match the schema."""


class NoComparableData(FioplotError, ValueError):
    """No job pattern is present in every run of a batch."""


class MissingLogGroup(FioplotError, LookupError):
    """A job declares a time-series log that has no files on disk."""


class DuplicateRunLabel(FioplotError, ValueError):
    """Two result documents in one batch resolve to the same run label."""


class IOFailure(FioplotError, OSError):
    """Reading or writing a file failed.

    The originating `OSError` is available as `__cause__`.

    Attributes:
        path: The file or directory the operation was acting on.
    """

    def __init__(self, message: str, path: str | Path | None = None) -> None:
        super().__init__(message)
        self.path = Path(path) if path is not None else None
