"""Contact sheet pipeline: extract captures, join them per frame and encode the result."""

from __future__ import annotations

import logging
import shutil
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from contact_sheet.capture import (
    CaptureOptions,
    CaptureScheduler,
    build_templates,
    combine_filters,
    frame_number_width,
    resolve_workers,
    scale_filter,
)
from contact_sheet.config import Settings
from contact_sheet.exceptions import InvalidInput
from contact_sheet.grid import GridComposer
from contact_sheet.labels import seconds_text
from contact_sheet.models import (
    CaptureSet,
    JoinedImage,
    SampleWindow,
    SheetResult,
    VideoSource,
)
from contact_sheet.process import (
    EncodeJob,
    FfmpegEncoder,
    FfmpegExtractor,
    ProcessRunner,
    SubprocessRunner,
    probe_duration,
)
from contact_sheet.progress import ProgressLogger
from contact_sheet.repair import repair_missing_frames
from contact_sheet.timepoints import plan_timepoints
from contact_sheet.workspace import Workspace

OUTPUT_EXTENSION = ".avif"


@dataclass(frozen=True)
class ExtractRequest:
    """Where and how to sample a video."""

    video: Path
    number: int
    window: SampleWindow = field(default_factory=SampleWindow)
    capture_frames: int = 1
    capture_time: float = 1.5
    vfilter: Optional[str] = None
    threads: int = 3
    output_dir: Optional[Path] = None

    def validate(self) -> None:
        if self.number <= 0:
            raise InvalidInput("number of captures must be greater than zero")
        CaptureOptions(self.capture_frames, self.capture_time, self.vfilter).validate()
        resolve_workers(self.threads)


@dataclass(frozen=True)
class SheetRequest:
    """A full contact sheet run on top of an extraction."""

    capture: ExtractRequest
    columns: int
    output: Optional[Path] = None
    crf: int = 30
    preset: Optional[int] = None
    fps: float = 20.0
    capture_width: Optional[int] = None
    capture_height: Optional[int] = None
    labels: bool = True
    temp_dir: Optional[Path] = None
    keep_temp: bool = False

    def validate(self) -> None:
        self.capture.validate()
        if self.output is not None and self.output.suffix.lower() != OUTPUT_EXTENSION:
            raise InvalidInput("output must be avif")
        if self.capture_width and self.capture_height:
            raise InvalidInput("capture width and capture height are mutually exclusive")
        if self.columns < 0:
            raise InvalidInput("columns must not be negative")
        if self.fps <= 0:
            raise InvalidInput("output fps must be greater than zero")

    def output_path(self) -> Path:
        if self.output is not None:
            return self.output
        parent = self.capture.output_dir or Path(".")
        return parent / f"{self.capture.video.with_suffix('').name}{OUTPUT_EXTENSION}"

    def preset_value(self) -> int:
        if self.preset is not None:
            return self.preset
        return 1 if self.capture.capture_frames == 1 else 5


class ContactSheet:
    """Facade over the extraction, repair, join and encode steps."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        runner: Optional[ProcessRunner] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.runner = runner or SubprocessRunner()
        self.logger = logger or logging.getLogger("contact_sheet")

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    def _capture(
        self,
        request: ExtractRequest,
        directory: Path,
        *,
        vfilter: Optional[str],
        max_repairs: Optional[int],
    ) -> CaptureSet:
        duration = probe_duration(request.video, self.runner)
        source = VideoSource(path=request.video, duration=duration)
        self.logger.info("Video '%s' duration %.3fs", request.video, duration)

        timepoints = plan_timepoints(
            duration,
            request.number,
            request.window,
            request.capture_time,
        )
        templates = build_templates(source, timepoints, request.capture_frames)

        scheduler = CaptureScheduler(
            FfmpegExtractor(self.runner),
            workers=request.threads,
            logger=self.logger,
        )
        captured = scheduler.capture(
            source,
            timepoints,
            templates,
            CaptureOptions(
                frames_per_capture=request.capture_frames,
                capture_window=request.capture_time,
                vfilter=vfilter,
            ),
            directory,
        )

        warnings = repair_missing_frames(
            captured,
            directory,
            request.capture_frames,
            max_repairs=max_repairs,
            logger=self.logger,
        )
        return CaptureSet(
            templates=captured,
            frames_per_capture=request.capture_frames,
            directory=directory,
            warnings=warnings,
        )

    def extract(self, request: ExtractRequest) -> CaptureSet:
        """Write capture images into ``request.output_dir`` (default: working directory).

        Missing frames are always covered by duplicates here; only a missing first
        frame is fatal.
        """
        request.validate()
        directory = request.output_dir or Path(".")
        directory.mkdir(parents=True, exist_ok=True)
        return self._capture(request, directory, vfilter=request.vfilter, max_repairs=None)

    # ------------------------------------------------------------------
    # Joining
    # ------------------------------------------------------------------

    def join(
        self,
        images: Sequence[Path],
        output: Path,
        *,
        columns: int,
        labels: Sequence[str] = (),
        width: Optional[int] = None,
        height: Optional[int] = None,
        workers: int = 0,
    ) -> JoinedImage:
        """Join same-sized images into a single grid image."""
        composer = GridComposer(
            label_settings=self.settings.labels,
            workers=resolve_workers(workers),
            logger=self.logger,
        )
        joined = composer.join(
            images,
            output,
            columns=columns,
            labels=labels,
            width=width,
            height=height,
        )
        self.logger.info(
            "Arranged %s image(s) in %sx%s grid -> %sx%spx %s",
            len(images),
            joined.grid.columns,
            joined.grid.rows,
            joined.width,
            joined.height,
            output,
        )
        return joined

    def _join_frames(
        self,
        capture_set: CaptureSet,
        directory: Path,
        prefix: str,
        *,
        columns: int,
        labels: Sequence[str],
        workers: int,
    ) -> List[JoinedImage]:
        """Compose one grid per frame index; frame ``f`` uses every capture's frame ``f``."""
        frames = capture_set.frames_per_capture
        width = frame_number_width(frames)
        composer = GridComposer(label_settings=self.settings.labels, logger=self.logger)
        joined: List[Optional[JoinedImage]] = [None] * frames
        progress = ProgressLogger(self.logger, "Joining", frames)

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="join") as executor:
            futures: Dict[Future, int] = {
                executor.submit(
                    composer.join,
                    capture_set.frame_paths(index + 1),
                    directory / f"{prefix}-{index:0{width}d}.bmp",
                    columns=columns,
                    labels=labels,
                ): index
                for index in range(frames)
            }
            for future in as_completed(futures):
                error = future.exception()
                if error is not None:
                    for other in futures:
                        other.cancel()
                    raise error
                joined[futures[future]] = future.result()
                progress.advance()

        return [image for image in joined if image is not None]

    # ------------------------------------------------------------------
    # Full pipeline
    # ------------------------------------------------------------------

    def create(self, request: SheetRequest) -> SheetResult:
        """Build the contact sheet and move it to its final location.

        All intermediate files live in a scratch workspace which is removed on
        success, on failure and on SIGINT/SIGTERM unless ``keep_temp`` is set.
        """
        request.validate()
        output_path = request.output_path()
        workspace = Workspace(
            request.temp_dir,
            auto_clean=not request.keep_temp,
            logger=self.logger,
        )
        scratch = workspace.acquire()
        workspace.install_signal_handlers()
        try:
            capture_set = self._capture(
                request.capture,
                scratch,
                vfilter=combine_filters(
                    request.capture.vfilter,
                    scale_filter(request.capture_width, request.capture_height),
                ),
                max_repairs=self.settings.capture.max_repairs,
            )
            if not capture_set.templates:
                raise InvalidInput("no captures were produced")

            prefix = capture_set.templates[0].prefix
            labels = (
                [seconds_text(template.seconds) for template in capture_set.templates]
                if request.labels
                else []
            )
            joined = self._join_frames(
                capture_set,
                scratch,
                prefix,
                columns=request.columns,
                labels=labels,
                workers=resolve_workers(request.capture.threads),
            )

            first = joined[0]
            self.logger.info(
                "Encoding %s frame(s) of %sx%spx (%sx%s grid) into %s",
                len(joined),
                first.width,
                first.height,
                first.grid.columns,
                first.grid.rows,
                output_path,
            )
            encoded = scratch / f"{prefix}{OUTPUT_EXTENSION}"
            width = frame_number_width(capture_set.frames_per_capture)
            FfmpegEncoder(self.runner).encode(
                EncodeJob(
                    input_pattern=scratch / f"{prefix}-%0{width}d.bmp",
                    output_path=encoded,
                    fps=request.fps,
                    crf=request.crf,
                    preset=request.preset_value(),
                )
            )

            output_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(encoded), str(output_path))

            self.logger.info("Wrote %s", output_path)

            return SheetResult(
                output_path=output_path,
                captures=len(capture_set.templates),
                frames=len(joined),
                grid=first.grid,
                width=first.width,
                height=first.height,
                warnings=list(capture_set.warnings),
            )
        finally:
            try:
                workspace.release()
            finally:
                workspace.restore_signal_handlers()


__all__ = ["ContactSheet", "ExtractRequest", "OUTPUT_EXTENSION", "SheetRequest"]
