"""Verification and bounded repair of frames the extractor failed to write."""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import List, Optional, Sequence

from contact_sheet.exceptions import ExtractionMissing, TooManyMissingFrames
from contact_sheet.models import OutputTemplate

DEFAULT_MAX_REPAIRS = 6

LOGGER = logging.getLogger(__name__)


def duplicate_file(source: Path, target: Path) -> None:
    """Hard link ``source`` to ``target``, copying when linking is not possible."""
    try:
        os.link(source, target)
    except OSError:
        shutil.copyfile(source, target)


def repair_template(
    template: OutputTemplate,
    directory: Path,
    frames_per_capture: int,
    *,
    max_repairs: Optional[int] = DEFAULT_MAX_REPAIRS,
) -> int:
    """Fill gaps in one capture's frame sequence and return how many frames were duplicated.

    Missing frames are covered by the closest earlier frame, which may itself be
    a duplicate. The first frame has no predecessor so its absence is fatal.
    """
    first = directory / template.with_frame(1)
    if not first.is_file():
        raise ExtractionMissing(first)

    previous = first
    repairs = 0
    for frame in range(2, frames_per_capture + 1):
        current = directory / template.with_frame(frame)
        if not current.is_file():
            if max_repairs is not None and repairs >= max_repairs:
                raise TooManyMissingFrames(current, repairs)
            duplicate_file(previous, current)
            repairs += 1
        previous = current
    return repairs


def repair_missing_frames(
    templates: Sequence[OutputTemplate],
    directory: Path,
    frames_per_capture: int,
    *,
    max_repairs: Optional[int] = DEFAULT_MAX_REPAIRS,
    logger: Optional[logging.Logger] = None,
) -> List[str]:
    """Check every capture and return one warning per capture that needed duplicates."""
    log = logger or LOGGER
    warnings: List[str] = []
    for template in templates:
        repairs = repair_template(
            template,
            directory,
            frames_per_capture,
            max_repairs=max_repairs,
        )
        if repairs:
            message = f"Duplicated {repairs} captures to cover missing {template} frames"
            log.warning(message)
            warnings.append(message)
    return warnings


__all__ = [
    "DEFAULT_MAX_REPAIRS",
    "duplicate_file",
    "repair_missing_frames",
    "repair_template",
]
