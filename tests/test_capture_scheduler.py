import sys
import threading
import time
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from contact_sheet.capture import (
    CaptureOptions,
    CaptureScheduler,
    build_templates,
    combine_filters,
    resolve_workers,
    scale_filter,
)
from contact_sheet.exceptions import CaptureFailed, InvalidInput
from contact_sheet.models import SampleWindow, Timepoint, VideoSource
from contact_sheet.process import FfmpegExtractor, ProcessResult
from contact_sheet.timepoints import plan_timepoints
from fakes import FakeRunner


def plan(duration: float = 100.0, count: int = 4):
    source = VideoSource(path=Path("movie.mkv"), duration=duration)
    timepoints = plan_timepoints(duration, count, SampleWindow(), 1.5)
    return source, timepoints, build_templates(source, timepoints, 3)


def test_capture_writes_all_frames_and_keeps_timepoint_order(tmp_path):
    source, timepoints, templates = plan()
    runner = FakeRunner()
    scheduler = CaptureScheduler(FfmpegExtractor(runner), workers=3)

    captured = scheduler.capture(
        source,
        timepoints,
        templates,
        CaptureOptions(frames_per_capture=3),
        tmp_path,
    )

    assert captured == templates
    assert [t.seconds for t in captured] == [12, 37, 62, 87]
    for template in captured:
        for frame in (1, 2, 3):
            assert (tmp_path / template.with_frame(frame)).is_file()
    assert len(runner.extraction_calls()) == 4


def test_results_keep_order_when_jobs_finish_out_of_order(tmp_path):
    source, timepoints, templates = plan()

    class SlowFirstRunner(FakeRunner):
        def run(self, args):
            if "-ss" in args and str(args[args.index("-ss") + 1]) == "12.5":
                time.sleep(0.05)
            return super().run(args)

    scheduler = CaptureScheduler(FfmpegExtractor(SlowFirstRunner()), workers=4)
    captured = scheduler.capture(source, timepoints, templates, CaptureOptions(3), tmp_path)

    assert [t.seconds for t in captured] == [12, 37, 62, 87]


def test_extraction_command_shape(tmp_path):
    source, timepoints, templates = plan(count=1)
    runner = FakeRunner()
    scheduler = CaptureScheduler(FfmpegExtractor(runner), workers=1)

    scheduler.capture(
        source,
        timepoints,
        templates,
        CaptureOptions(frames_per_capture=3, capture_window=1.5, vfilter="scale=320:-1:flags=bicubic"),
        tmp_path,
    )

    (cmd,) = runner.extraction_calls()
    assert cmd[:7] == ["ffmpeg", "-ss", "50", "-t", "1.5", "-i", "movie.mkv"]
    assert cmd[cmd.index("-r") + 1] == "3/1.5"
    assert cmd[cmd.index("-vf") + 1] == "scale=320:-1:flags=bicubic"
    assert cmd[cmd.index("-vframes") + 1] == "3"
    assert cmd[-1] == str(tmp_path / "movie-050s-%01d.bmp")


def test_failed_extraction_propagates_stderr(tmp_path):
    source, timepoints, templates = plan()
    runner = FakeRunner(fail_at="62.5")
    scheduler = CaptureScheduler(FfmpegExtractor(runner), workers=2)

    with pytest.raises(CaptureFailed) as excinfo:
        scheduler.capture(source, timepoints, templates, CaptureOptions(3), tmp_path)

    error = excinfo.value
    assert error.timepoint == Timepoint(index=2, start_seconds=62.5)
    assert error.returncode == 1
    assert "simulated decode error" in str(error)
    assert "capture at 62.500s (#2)" in str(error)


def test_first_failure_stops_pending_jobs(tmp_path):
    source = VideoSource(path=Path("movie.mkv"), duration=1000.0)
    timepoints = plan_timepoints(1000.0, 20, SampleWindow(), 1.5)
    templates = build_templates(source, timepoints, 1)
    started = []
    lock = threading.Lock()

    class FailingRunner:
        def run(self, args):
            with lock:
                started.append(args)
            time.sleep(0.01)
            return ProcessResult(list(args), 1, b"", b"boom")

    scheduler = CaptureScheduler(FfmpegExtractor(FailingRunner()), workers=1)

    with pytest.raises(CaptureFailed):
        scheduler.capture(source, timepoints, templates, CaptureOptions(1), tmp_path)

    assert len(started) < len(timepoints)


def test_empty_timepoints_capture_nothing(tmp_path):
    runner = FakeRunner()
    scheduler = CaptureScheduler(FfmpegExtractor(runner), workers=1)

    assert scheduler.capture(VideoSource(Path("a.mkv"), 10.0), [], [], CaptureOptions(), tmp_path) == []
    assert runner.calls == []


def test_colliding_whole_seconds_are_rejected():
    source = VideoSource(path=Path("short.mkv"), duration=3.0)
    timepoints = plan_timepoints(3.0, 10, SampleWindow(), 0.1)

    with pytest.raises(InvalidInput, match="both start at second"):
        build_templates(source, timepoints, 1)


def test_options_and_workers_validation():
    with pytest.raises(InvalidInput):
        CaptureOptions(frames_per_capture=0).validate()
    with pytest.raises(InvalidInput):
        CaptureOptions(capture_window=0).validate()
    with pytest.raises(InvalidInput):
        resolve_workers(-1)
    assert resolve_workers(0) >= 1
    assert resolve_workers(5) == 5


def test_scale_and_filter_helpers():
    assert scale_filter() is None
    assert scale_filter(width=320) == "scale=320:-1:flags=bicubic"
    assert scale_filter(height=240) == "scale=-1:240:flags=bicubic"
    with pytest.raises(InvalidInput):
        scale_filter(320, 240)
    assert combine_filters("yadif", None, "scale=320:-1") == "yadif,scale=320:-1"
    assert combine_filters(None, None) is None


def test_clamped_timepoints_share_one_extraction(tmp_path):
    source = VideoSource(path=Path("short.mkv"), duration=10.0)
    timepoints = plan_timepoints(10.0, 10, SampleWindow(), 1.5)
    templates = build_templates(source, timepoints, 1)
    runner = FakeRunner(duration=10.0)

    captured = CaptureScheduler(FfmpegExtractor(runner), workers=3).capture(
        source,
        timepoints,
        templates,
        CaptureOptions(frames_per_capture=1),
        tmp_path,
    )

    assert [t.seconds for t in captured] == [0, 1, 2, 3, 4, 5, 6, 7, 8, 8]
    assert captured[8] is captured[9]
    assert len(runner.extraction_calls()) == 9
