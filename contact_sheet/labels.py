"""Timestamp labels drawn in the bottom-right corner of a capture tile."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Tuple

import cv2
import numpy as np

LABEL_FONT = cv2.FONT_HERSHEY_SIMPLEX


@dataclass(frozen=True)
class LabelSettings:
    """Label geometry expressed as fractions of the tile's shorter side."""

    scale_percent: float = 0.06
    margin_percent: float = 0.01
    padding_percent: float = 0.01
    background_opacity: float = 0.7


def seconds_text(seconds: int) -> str:
    """Format whole seconds as ``MM:SS``, or ``H:MM:SS`` from one hour up."""
    seconds = max(0, int(seconds))
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def _text_geometry(text: str, pixel_height: float) -> Tuple[float, int, Tuple[int, int], int]:
    thickness = max(1, int(round(pixel_height / 12.0)))
    font_scale = cv2.getFontScaleFromHeight(LABEL_FONT, max(1, int(round(pixel_height))), thickness)
    (text_width, text_height), baseline = cv2.getTextSize(text, LABEL_FONT, font_scale, thickness)
    return font_scale, thickness, (text_width, text_height), baseline


def render_coverage(
    text: str,
    shape: Tuple[int, int],
    settings: LabelSettings,
) -> Tuple[np.ndarray, Tuple[float, float, float, float]]:
    """Rasterise ``text`` into an 8-bit coverage mask of ``shape`` (height, width).

    Returns the mask and the layout bounds ``(min_x, min_y, max_x, max_y)``: the
    area a right/bottom aligned single line anchored at ``(w - 2*margin, h - margin)``
    is allowed to occupy.
    """
    height, width = shape
    min_dim = float(min(width, height))
    margin = min_dim * settings.margin_percent
    anchor_x = width - margin * 2.0
    anchor_y = height - margin

    font_scale, thickness, (text_width, _), baseline = _text_geometry(
        text,
        min_dim * settings.scale_percent,
    )
    origin = (int(round(anchor_x - text_width)), int(round(anchor_y - baseline)))

    coverage = np.zeros((height, width), dtype=np.uint8)
    cv2.putText(coverage, text, origin, LABEL_FONT, font_scale, 255, thickness, cv2.LINE_AA)

    layout_bounds = (anchor_x - width, anchor_y - height, anchor_x, anchor_y)
    return coverage, layout_bounds


def plate_bounds(
    coverage: np.ndarray,
    layout_bounds: Tuple[float, float, float, float],
    padding: float,
) -> Optional[Tuple[int, int, int, int]]:
    """Inclusive pixel rectangle of the background plate, or ``None`` without glyphs."""
    coords = cv2.findNonZero(coverage)
    if coords is None:
        return None

    x, y, w, h = cv2.boundingRect(coords)
    layout_min_x, layout_min_y, layout_max_x, layout_max_y = layout_bounds

    min_x = max(float(x), layout_min_x) - padding
    min_y = max(float(y), layout_min_y) - padding
    max_x = min(float(x + w), layout_max_x) + padding
    max_y = min(float(y + h), layout_max_y) + padding

    height, width = coverage.shape[:2]
    return (
        max(0, int(min_x)),
        max(0, int(min_y)),
        min(width - 1, int(math.ceil(max_x))),
        min(height - 1, int(math.ceil(max_y))),
    )


def draw_label(
    tile: np.ndarray,
    text: str,
    settings: Optional[LabelSettings] = None,
) -> np.ndarray:
    """Return a copy of ``tile`` with ``text`` over a translucent black plate.

    The plate and the white glyphs are both alpha blended onto the existing
    pixels. An empty label returns ``tile`` untouched.
    """
    if not text:
        return tile

    conf = settings or LabelSettings()
    height, width = tile.shape[:2]
    min_dim = float(min(width, height))
    padding = min_dim * conf.padding_percent

    coverage, layout_bounds = render_coverage(text, (height, width), conf)
    bounds = plate_bounds(coverage, layout_bounds, padding)
    if bounds is None:
        return tile

    min_x, min_y, max_x, max_y = bounds
    plate_alpha = np.zeros((height, width), dtype=np.float32)
    plate_alpha[min_y : max_y + 1, min_x : max_x + 1] = float(conf.background_opacity)
    # Rounded look: leave the four corner pixels of the plate alone.
    for corner_y in (min_y, max_y):
        for corner_x in (min_x, max_x):
            plate_alpha[corner_y, corner_x] = 0.0

    color = tile.astype(np.float32)
    color *= (1.0 - plate_alpha)[..., None]

    glyph_alpha = coverage.astype(np.float32) / 255.0
    color = color * (1.0 - glyph_alpha)[..., None] + 255.0 * glyph_alpha[..., None]

    return np.clip(np.round(color), 0, 255).astype(np.uint8)


__all__ = [
    "LabelSettings",
    "draw_label",
    "plate_bounds",
    "render_coverage",
    "seconds_text",
]
