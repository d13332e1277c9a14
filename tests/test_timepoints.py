import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from contact_sheet.exceptions import InvalidDuration, InvalidInput
from contact_sheet.models import DurationOrPercent, SampleWindow
from contact_sheet.timepoints import effective_duration, plan_timepoints


def starts(timepoints):
    return [round(tp.start_seconds, 6) for tp in timepoints]


def test_timepoints_sit_in_the_middle_of_each_slice():
    timepoints = plan_timepoints(100.0, 4, SampleWindow(), 1.5)

    assert starts(timepoints) == [12.5, 37.5, 62.5, 87.5]
    assert [tp.index for tp in timepoints] == [0, 1, 2, 3]


def test_ignore_window_shifts_and_shrinks_sampling_range():
    window = SampleWindow(
        ignore_start=DurationOrPercent.parse("10s"),
        ignore_end=DurationOrPercent.parse("10%"),
    )

    timepoints = plan_timepoints(100.0, 2, window, 1.0)

    # 100 - 10 - 10 = 80 seconds of range, 40 per slice.
    assert starts(timepoints) == [30.0, 70.0]


def test_timepoints_are_clamped_so_capture_stays_inside_video():
    timepoints = plan_timepoints(2.0, 1, SampleWindow(), 1.5)

    assert starts(timepoints) == [0.5]

    late = plan_timepoints(
        10.0,
        1,
        SampleWindow(ignore_start=DurationOrPercent.parse("9.5s")),
        3.0,
    )
    assert starts(late) == [7.0]


def test_capture_window_longer_than_video_starts_at_zero():
    timepoints = plan_timepoints(1.0, 1, SampleWindow(), 5.0)

    assert starts(timepoints) == [0.0]


def test_timepoints_are_monotonic():
    timepoints = plan_timepoints(3600.0, 50, SampleWindow(), 1.5)

    values = starts(timepoints)
    assert all(earlier < later for earlier, later in zip(values, values[1:]))
    assert all(0.0 <= value <= 3600.0 - 1.5 for value in values)


@pytest.mark.parametrize("duration", [0.0, -1.0, float("nan"), float("inf")])
def test_invalid_durations_are_rejected(duration):
    with pytest.raises(InvalidDuration):
        plan_timepoints(duration, 3, SampleWindow(), 1.5)


def test_ignore_window_consuming_everything_is_rejected():
    window = SampleWindow(
        ignore_start=DurationOrPercent.parse("60%"),
        ignore_end=DurationOrPercent.parse("40%"),
    )

    with pytest.raises(InvalidDuration, match="minus offsets"):
        effective_duration(100.0, window)


def test_non_positive_count_and_window_are_invalid_input():
    with pytest.raises(InvalidInput):
        plan_timepoints(100.0, 0, SampleWindow(), 1.5)
    with pytest.raises(InvalidInput):
        plan_timepoints(100.0, 3, SampleWindow(), 0.0)
