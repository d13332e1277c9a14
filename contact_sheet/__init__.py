"""
Video contact sheets: sample a video at evenly spaced points with ffmpeg, join
the captures into a (optionally animated and timestamped) grid and encode it
as AVIF.
"""

from .exceptions import ContactSheetError
from .grid import GridComposer, compose_grid
from .labels import LabelSettings, draw_label, seconds_text
from .models import Grid, OutputTemplate, SampleWindow, Timepoint
from .sheet import ContactSheet, ExtractRequest, SheetRequest
from .timepoints import plan_timepoints
from .workspace import Workspace

__all__ = [
    "ContactSheet",
    "ContactSheetError",
    "ExtractRequest",
    "Grid",
    "GridComposer",
    "LabelSettings",
    "OutputTemplate",
    "SampleWindow",
    "SheetRequest",
    "Timepoint",
    "Workspace",
    "compose_grid",
    "draw_label",
    "plan_timepoints",
    "seconds_text",
]
