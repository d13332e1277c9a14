import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from contact_sheet.exceptions import ExtractionMissing, TooManyMissingFrames
from contact_sheet.models import OutputTemplate
from contact_sheet.repair import repair_missing_frames, repair_template


def make_template() -> OutputTemplate:
    return OutputTemplate.build("clip", 12, max_seconds=99, max_frames=5)


def write_frames(directory: Path, template: OutputTemplate, frames) -> None:
    for frame in frames:
        (directory / template.with_frame(frame)).write_bytes(f"frame-{frame}".encode())


def test_missing_trailing_frames_duplicate_previous_frame(tmp_path):
    template = make_template()
    write_frames(tmp_path, template, [1, 2])

    repairs = repair_template(template, tmp_path, 4)

    assert repairs == 2
    for frame in (3, 4):
        assert (tmp_path / template.with_frame(frame)).read_bytes() == b"frame-2"


def test_gap_is_filled_from_repaired_predecessor(tmp_path):
    template = make_template()
    write_frames(tmp_path, template, [1, 2, 5])

    assert repair_template(template, tmp_path, 5) == 2
    assert (tmp_path / template.with_frame(3)).read_bytes() == b"frame-2"
    assert (tmp_path / template.with_frame(4)).read_bytes() == b"frame-2"
    assert (tmp_path / template.with_frame(5)).read_bytes() == b"frame-5"


def test_complete_capture_needs_no_repair(tmp_path):
    template = make_template()
    write_frames(tmp_path, template, [1, 2, 3])

    assert repair_template(template, tmp_path, 3) == 0


def test_missing_first_frame_is_fatal_and_creates_nothing(tmp_path):
    template = make_template()
    write_frames(tmp_path, template, [2, 3])

    with pytest.raises(ExtractionMissing) as excinfo:
        repair_template(template, tmp_path, 3)

    assert excinfo.value.path == tmp_path / template.with_frame(1)
    assert not (tmp_path / template.with_frame(1)).exists()
    assert sorted(p.name for p in tmp_path.iterdir()) == [
        template.with_frame(2),
        template.with_frame(3),
    ]


def test_repairs_beyond_cap_fail(tmp_path):
    template = make_template()
    write_frames(tmp_path, template, [1])

    with pytest.raises(TooManyMissingFrames) as excinfo:
        repair_template(template, tmp_path, 5, max_repairs=2)

    assert excinfo.value.repairs == 2
    assert excinfo.value.path == tmp_path / template.with_frame(4)


def test_uncapped_repair_fills_everything(tmp_path):
    template = make_template()
    write_frames(tmp_path, template, [1])

    assert repair_template(template, tmp_path, 5, max_repairs=None) == 4


def test_repair_missing_frames_reports_one_warning_per_repaired_capture(tmp_path, caplog):
    complete = OutputTemplate.build("clip", 10, 99, 3)
    partial = OutputTemplate.build("clip", 50, 99, 3)
    write_frames(tmp_path, complete, [1, 2, 3])
    write_frames(tmp_path, partial, [1])

    with caplog.at_level("WARNING"):
        warnings = repair_missing_frames([complete, partial], tmp_path, 3)

    assert warnings == ["Duplicated 2 captures to cover missing clip-50s-%01d.bmp frames"]
    assert warnings[0] in caplog.text
