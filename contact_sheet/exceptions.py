"""Exceptions raised by the contact sheet pipeline."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence


class ContactSheetError(Exception):
    """Base exception for contact sheet generation."""


class InvalidInput(ContactSheetError, ValueError):
    """Bad arguments detected before (or instead of) doing any work."""


class InvalidDuration(InvalidInput):
    """Video duration is missing, invalid or consumed by the ignore window."""


class ToolFailure(ContactSheetError):
    """An external tool exited with a non-zero status."""

    def __init__(
        self,
        tool: str,
        returncode: Optional[int],
        stderr: str,
        *,
        args: Sequence[str] = (),
        context: str = "",
    ) -> None:
        self.tool = tool
        self.returncode = returncode
        self.stderr = stderr
        self.command = list(args)
        self.context = context
        headline = f"{tool} {context} failed" if context else f"{tool} failed"
        if returncode is not None:
            headline = f"{headline} (exit status {returncode})"
        super().__init__(f"{headline}\n---stderr---\n{stderr.strip()}\n------")


class CaptureFailed(ToolFailure):
    """Extraction for a single timepoint failed."""

    def __init__(self, timepoint, failure: ToolFailure) -> None:
        self.timepoint = timepoint
        super().__init__(
            failure.tool,
            failure.returncode,
            failure.stderr,
            args=failure.command,
            context=f"capture at {timepoint.start_seconds:.3f}s (#{timepoint.index})",
        )


class ExtractionMissing(ContactSheetError):
    """The first frame of a capture was not produced, nothing to duplicate from."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Failed to extract: {path}")


class TooManyMissingFrames(ContactSheetError):
    """A capture is missing more frames than the repair limit allows."""

    def __init__(self, path: Path, repairs: int) -> None:
        self.path = path
        self.repairs = repairs
        super().__init__(
            f"Failed to extract (too many to fix, {repairs} already duplicated): {path}"
        )


class CompositionError(ContactSheetError):
    """Grid composition could not be performed."""


class EmptyInput(CompositionError):
    """No tiles were supplied to compose."""


class DimensionMismatch(CompositionError):
    """Tiles supplied to the composer are not uniformly sized."""


class WorkspaceError(ContactSheetError):
    """The scratch workspace could not be created or removed."""


__all__ = [
    "CaptureFailed",
    "CompositionError",
    "ContactSheetError",
    "DimensionMismatch",
    "EmptyInput",
    "ExtractionMissing",
    "InvalidDuration",
    "InvalidInput",
    "TooManyMissingFrames",
    "ToolFailure",
    "WorkspaceError",
]
