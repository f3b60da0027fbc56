"""Spreadsheet reading errors."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    from pathlib import Path


class SpreadsheetReadError(OSError):
    """Raised when a spreadsheet cannot be opened or its container is corrupt."""

    def __init__(self, message: str, *, path: Path, transient: bool = True) -> None:
        """Record the failing path and whether a retry could succeed."""
        self.path = path
        self.transient = transient
        super().__init__(message)

    @classmethod
    def missing(cls, path: Path) -> SpreadsheetReadError:
        """Return an error for a file that does not exist."""
        return cls(f"spreadsheet {path} does not exist", path=path, transient=False)

    @classmethod
    def unreadable(cls, path: Path, cause: BaseException) -> SpreadsheetReadError:
        """Return an error for a file that could not be opened or decoded."""
        return cls(f"failed to read spreadsheet {path}: {cause}", path=path)
