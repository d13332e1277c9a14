"""Bounded-parallel extraction of frames at every planned timepoint."""

from __future__ import annotations

import logging
import os
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from contact_sheet.exceptions import CaptureFailed, InvalidInput, ToolFailure
from contact_sheet.models import OutputTemplate, Timepoint, VideoSource
from contact_sheet.process import ExtractJob, FfmpegExtractor
from contact_sheet.progress import ProgressLogger


def default_workers() -> int:
    """Worker count used when zero is requested."""
    return max(1, min(4, os.cpu_count() or 1))


def resolve_workers(requested: int) -> int:
    if requested < 0:
        raise InvalidInput("thread count must not be negative")
    return requested or default_workers()


@dataclass(frozen=True)
class CaptureOptions:
    """Per-run extraction parameters shared by every timepoint."""

    frames_per_capture: int = 1
    capture_window: float = 1.5
    vfilter: Optional[str] = None

    def validate(self) -> None:
        if self.frames_per_capture <= 0:
            raise InvalidInput("invalid capture-frames must be non-zero")
        if self.capture_window <= 0:
            raise InvalidInput("invalid capture-time must be non-zero")


def build_templates(
    source: VideoSource,
    timepoints: Sequence[Timepoint],
    frames_per_capture: int,
) -> List[OutputTemplate]:
    """Create one output template per timepoint with consistent zero padding.

    Timepoints clamped to the same start share a single template. Two
    different starts landing on the same whole second would write the same
    files, so that is rejected before anything runs.
    """
    max_seconds = int(source.duration)
    templates: List[OutputTemplate] = []
    seen: Dict[str, Tuple[Timepoint, OutputTemplate]] = {}
    for timepoint in timepoints:
        template = OutputTemplate.build(
            source.stem,
            int(timepoint.start_seconds),
            max_seconds,
            frames_per_capture,
        )
        previous = seen.get(template.pattern)
        if previous is None:
            seen[template.pattern] = (timepoint, template)
        elif previous[0].start_seconds == timepoint.start_seconds:
            template = previous[1]
        else:
            raise InvalidInput(
                f"captures #{previous[0].index} and #{timepoint.index} both start at second "
                f"{template.seconds}; reduce the number of captures for this video"
            )
        templates.append(template)
    return templates


class CaptureScheduler:
    """Run one extractor call per timepoint on a fixed-size thread pool.

    Results keep timepoint order. The first failing extraction stops any job
    that has not started yet and is re-raised once running jobs finish.
    """

    def __init__(
        self,
        extractor: FfmpegExtractor,
        *,
        workers: int = 0,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.extractor = extractor
        self.workers = resolve_workers(workers)
        self.logger = logger or logging.getLogger(__name__)

    def capture(
        self,
        source: VideoSource,
        timepoints: Sequence[Timepoint],
        templates: Sequence[OutputTemplate],
        options: CaptureOptions,
        directory: Path,
    ) -> List[OutputTemplate]:
        options.validate()
        if len(timepoints) != len(templates):
            raise InvalidInput("every timepoint needs exactly one output template")
        if not timepoints:
            return []

        directory.mkdir(parents=True, exist_ok=True)
        # Clamped timepoints can share a template; each one is extracted once.
        first_use: Dict[str, int] = {}
        for position, template in enumerate(templates):
            first_use.setdefault(template.pattern, position)

        total = len(first_use)
        captured: Dict[str, OutputTemplate] = {}
        progress = ProgressLogger(self.logger, f"Capture of '{source.path.name}'", total)

        self.logger.info(
            "Capturing %s x %s frame(s) from '%s' with %s worker(s)",
            total,
            options.frames_per_capture,
            source.path,
            self.workers,
        )

        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="capture") as executor:
            futures: Dict[Future, int] = {
                executor.submit(
                    self._capture_one,
                    source,
                    timepoints[position],
                    templates[position],
                    options,
                    directory,
                ): position
                for position in first_use.values()
            }

            for future in as_completed(futures):
                error = future.exception()
                if error is not None:
                    cancelled = sum(1 for other in futures if other.cancel())
                    self.logger.error(
                        "Capture failed; cancelled %s pending capture(s)",
                        cancelled,
                    )
                    raise error
                template = future.result()
                captured[template.pattern] = template
                progress.advance()

        return [captured[template.pattern] for template in templates]

    def _capture_one(
        self,
        source: VideoSource,
        timepoint: Timepoint,
        template: OutputTemplate,
        options: CaptureOptions,
        directory: Path,
    ) -> OutputTemplate:
        job = ExtractJob(
            video=source.path,
            start_seconds=timepoint.start_seconds,
            capture_window=options.capture_window,
            frames=options.frames_per_capture,
            output_pattern=directory / template.pattern,
            vfilter=options.vfilter,
        )
        try:
            self.extractor.extract(job)
        except ToolFailure as exc:
            raise CaptureFailed(timepoint, exc) from exc
        self.logger.debug(
            "Captured %s frame(s) at %.3fs into %s",
            options.frames_per_capture,
            timepoint.start_seconds,
            template.pattern,
        )
        return template


def scale_filter(width: Optional[int] = None, height: Optional[int] = None) -> Optional[str]:
    """ffmpeg scale filter that resizes captures preserving aspect ratio."""
    if width and height:
        raise InvalidInput("capture width and capture height are mutually exclusive")
    if height:
        return f"scale=-1:{int(height)}:flags=bicubic"
    if width:
        return f"scale={int(width)}:-1:flags=bicubic"
    return None


def combine_filters(*filters: Optional[str]) -> Optional[str]:
    joined = ",".join(item for item in filters if item)
    return joined or None


def frame_number_width(frames_per_capture: int) -> int:
    return len(str(max(1, frames_per_capture)))


__all__ = [
    "CaptureOptions",
    "CaptureScheduler",
    "build_templates",
    "combine_filters",
    "default_workers",
    "frame_number_width",
    "resolve_workers",
    "scale_filter",
]
