"""External tool invocation: process runner, ffprobe probe, ffmpeg extractor and encoder."""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

from contact_sheet.exceptions import InvalidDuration, ToolFailure

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessResult:
    args: List[str]
    returncode: int
    stdout: bytes
    stderr: bytes

    @property
    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace")

    def check(self, context: str = "") -> "ProcessResult":
        """Raise ``ToolFailure`` carrying stderr when the process did not succeed."""
        if self.returncode != 0:
            tool = Path(self.args[0]).name if self.args else "process"
            raise ToolFailure(
                tool,
                self.returncode,
                self.stderr_text,
                args=self.args,
                context=context,
            )
        return self


class ProcessRunner(Protocol):
    def run(self, args: Sequence[str]) -> ProcessResult:
        ...


class SubprocessRunner:
    """Run commands synchronously, capturing stdout and stderr."""

    def run(self, args: Sequence[str]) -> ProcessResult:
        cmd = [str(arg) for arg in args]
        if shutil.which(cmd[0]) is None:
            raise ToolFailure(
                cmd[0],
                None,
                f"{cmd[0]} not found on PATH. Install ffmpeg (with ffprobe and libaom-av1).",
                args=cmd,
            )
        LOGGER.debug("Running %s", " ".join(cmd))
        completed = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
        return ProcessResult(
            args=cmd,
            returncode=completed.returncode,
            stdout=completed.stdout or b"",
            stderr=completed.stderr or b"",
        )


def _format_number(value: float) -> str:
    return f"{value:.3f}".rstrip("0").rstrip(".")


# ----------------------------------------------------------------------
# Probe
# ----------------------------------------------------------------------


def probe_duration(video: Path, runner: ProcessRunner) -> float:
    """Return the container duration of ``video`` in seconds using ffprobe."""
    result = runner.run(
        [
            "ffprobe",
            "-v",
            "error",
            "-show_entries",
            "format=duration",
            "-of",
            "json",
            str(video),
        ]
    ).check("probe")

    try:
        payload = json.loads(result.stdout.decode("utf-8", errors="replace") or "{}")
    except json.JSONDecodeError as exc:
        raise InvalidDuration(f"invalid video duration: unreadable ffprobe output for {video}") from exc

    raw = (payload.get("format") or {}).get("duration")
    if raw is None:
        raise InvalidDuration(f"invalid video duration: ffprobe reported none for {video}")
    try:
        duration = float(raw)
    except (TypeError, ValueError) as exc:
        raise InvalidDuration(f"invalid video duration {raw!r} for {video}") from exc
    if duration <= 0:
        raise InvalidDuration(f"invalid video duration {raw!r} for {video}")
    return duration


# ----------------------------------------------------------------------
# Extraction
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class ExtractJob:
    video: Path
    start_seconds: float
    capture_window: float
    frames: int
    output_pattern: Path
    vfilter: Optional[str] = None

    @property
    def frame_rate(self) -> str:
        return f"{self.frames}/{_format_number(self.capture_window)}"


class FfmpegExtractor:
    """Write a short burst of still frames starting at a given offset."""

    def __init__(self, runner: ProcessRunner, *, binary: str = "ffmpeg") -> None:
        self.runner = runner
        self.binary = binary

    def command(self, job: ExtractJob) -> List[str]:
        cmd = [
            self.binary,
            "-ss",
            _format_number(job.start_seconds),
            "-t",
            _format_number(job.capture_window),
            "-i",
            str(job.video),
            "-r",
            job.frame_rate,
            "-fps_mode",
            "cfr",
        ]
        if job.vfilter:
            cmd.extend(["-vf", job.vfilter])
        cmd.extend(["-vframes", str(job.frames), "-y", str(job.output_pattern)])
        return cmd

    def extract(self, job: ExtractJob) -> ProcessResult:
        return self.runner.run(self.command(job)).check("capture")


# ----------------------------------------------------------------------
# Encoding
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class EncodeJob:
    input_pattern: Path
    output_path: Path
    fps: float
    crf: int
    preset: int
    pixel_format: str = "yuv420p10le"
    codec: str = "libaom-av1"


class FfmpegEncoder:
    """Encode a numbered image sequence into a single (possibly animated) AVIF."""

    def __init__(self, runner: ProcessRunner, *, binary: str = "ffmpeg") -> None:
        self.runner = runner
        self.binary = binary

    def command(self, job: EncodeJob) -> List[str]:
        return [
            self.binary,
            "-r",
            _format_number(job.fps),
            "-i",
            str(job.input_pattern),
            "-c:v",
            job.codec,
            "-cpu-used",
            str(job.preset),
            "-crf",
            str(job.crf),
            "-pix_fmt",
            job.pixel_format,
            "-y",
            str(job.output_path),
        ]

    def encode(self, job: EncodeJob) -> ProcessResult:
        return self.runner.run(self.command(job)).check("convert-to-avif")


__all__ = [
    "EncodeJob",
    "ExtractJob",
    "FfmpegEncoder",
    "FfmpegExtractor",
    "ProcessResult",
    "ProcessRunner",
    "SubprocessRunner",
    "probe_duration",
]
