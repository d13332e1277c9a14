"""Data models shared across the contact sheet pipeline."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Tuple

from contact_sheet.exceptions import InvalidInput

CAPTURE_EXTENSION = "bmp"

_DURATION_UNITS = {
    "ms": 0.001,
    "msec": 0.001,
    "s": 1.0,
    "sec": 1.0,
    "secs": 1.0,
    "second": 1.0,
    "seconds": 1.0,
    "m": 60.0,
    "min": 60.0,
    "mins": 60.0,
    "minute": 60.0,
    "minutes": 60.0,
    "h": 3600.0,
    "hr": 3600.0,
    "hour": 3600.0,
    "hours": 3600.0,
}
_DURATION_TOKEN = re.compile(r"(\d+(?:\.\d+)?)\s*([a-z]*)")


def parse_duration(value: str) -> float:
    """Parse a human duration such as ``1500ms``, ``2m30s`` or ``1h 5m`` into seconds.

    A bare number is read as seconds.
    """
    text = str(value).strip().lower()
    if not text:
        raise InvalidInput("Duration value is empty")

    try:
        return float(text)
    except ValueError:
        pass

    total = 0.0
    position = 0
    for match in _DURATION_TOKEN.finditer(text):
        if text[position:match.start()].strip():
            raise InvalidInput(f"Invalid duration: {value!r}")
        amount, unit = match.groups()
        multiplier = _DURATION_UNITS.get(unit or "s")
        if multiplier is None:
            raise InvalidInput(f"Unknown duration unit {unit!r} in {value!r}")
        total += float(amount) * multiplier
        position = match.end()

    if position == 0 or text[position:].strip():
        raise InvalidInput(f"Invalid duration: {value!r}")
    return total


@dataclass(frozen=True)
class DurationOrPercent:
    """Absolute seconds or a percentage of the total video duration."""

    value: float = 0.0
    is_percent: bool = False

    @classmethod
    def parse(cls, text: str) -> "DurationOrPercent":
        stripped = str(text).strip()
        if stripped.endswith("%"):
            try:
                return cls(float(stripped[:-1]), is_percent=True)
            except ValueError as exc:
                raise InvalidInput(f"Invalid percentage: {text!r}") from exc
        return cls(parse_duration(stripped))

    def to_seconds(self, total_seconds: float) -> float:
        if self.is_percent:
            return total_seconds * self.value * 0.01
        return self.value

    def __str__(self) -> str:
        return f"{self.value:g}%" if self.is_percent else f"{self.value:g}s"


@dataclass(frozen=True)
class SampleWindow:
    """Portions at the start and end of the video excluded from sampling."""

    ignore_start: DurationOrPercent = field(default_factory=DurationOrPercent)
    ignore_end: DurationOrPercent = field(default_factory=DurationOrPercent)

    def resolve(self, duration: float) -> Tuple[float, float]:
        return self.ignore_start.to_seconds(duration), self.ignore_end.to_seconds(duration)


@dataclass(frozen=True)
class VideoSource:
    path: Path
    duration: float

    @property
    def stem(self) -> str:
        return self.path.with_suffix("").name


@dataclass(frozen=True)
class Timepoint:
    index: int
    start_seconds: float


@dataclass(frozen=True, order=True)
class OutputTemplate:
    """Naming contract for the frames extracted at one timepoint.

    Files are named ``<prefix>-<seconds>s-<frame>.bmp`` where both numbers are
    zero padded to widths fixed when the template is built, so every file of a
    run shares the same name length.
    """

    prefix: str
    seconds: int
    seconds_width: int = field(default=1, compare=False)
    frame_width: int = field(default=1, compare=False)

    @classmethod
    def build(
        cls,
        prefix: str,
        seconds: int,
        max_seconds: int,
        max_frames: int,
    ) -> "OutputTemplate":
        # '%' would be read as a placeholder by the extractor's output template.
        return cls(
            prefix=prefix.replace("%", ""),
            seconds=int(seconds),
            seconds_width=len(str(max(0, int(max_seconds)))),
            frame_width=len(str(max(1, int(max_frames)))),
        )

    def _stem(self) -> str:
        return f"{self.prefix}-{self.seconds:0{self.seconds_width}d}s"

    def with_frame(self, frame: int) -> str:
        """Return the file name of the given 1-based frame."""
        return f"{self._stem()}-{frame:0{self.frame_width}d}.{CAPTURE_EXTENSION}"

    @property
    def pattern(self) -> str:
        """printf-style template passed to the extractor."""
        return f"{self._stem()}-%0{self.frame_width}d.{CAPTURE_EXTENSION}"

    def __str__(self) -> str:
        return self.pattern


@dataclass
class CaptureSet:
    """Templates produced by one extraction run and the repair warnings raised on them."""

    templates: List[OutputTemplate]
    frames_per_capture: int
    directory: Path
    warnings: List[str] = field(default_factory=list)

    def frame_paths(self, frame: int) -> List[Path]:
        """Paths of the given 1-based frame for every capture, in timepoint order."""
        return [self.directory / template.with_frame(frame) for template in self.templates]


@dataclass(frozen=True)
class Grid:
    columns: int
    rows: int

    @classmethod
    def for_tiles(cls, tile_count: int, column_request: int) -> "Grid":
        if column_request <= 0 or tile_count <= column_request:
            return cls(columns=tile_count, rows=1)
        return cls(columns=column_request, rows=math.ceil(tile_count / column_request))

    def cell_origin(self, index: int, tile_width: int, tile_height: int) -> Tuple[int, int]:
        """Top-left pixel (x, y) of the cell for tile ``index`` in row-major order."""
        return (index % self.columns) * tile_width, (index // self.columns) * tile_height


@dataclass(frozen=True)
class JoinedImage:
    """One composed grid image written to disk."""

    path: Path
    grid: Grid
    width: int
    height: int


@dataclass
class SheetResult:
    """Summary of a finished contact sheet run."""

    output_path: Path
    captures: int
    frames: int
    grid: Grid
    width: int
    height: int
    warnings: List[str] = field(default_factory=list)


__all__ = [
    "CAPTURE_EXTENSION",
    "CaptureSet",
    "DurationOrPercent",
    "Grid",
    "JoinedImage",
    "OutputTemplate",
    "SampleWindow",
    "SheetResult",
    "Timepoint",
    "VideoSource",
    "parse_duration",
]
