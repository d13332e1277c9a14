"""Grid composition of equally sized capture tiles."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np

from contact_sheet.exceptions import (
    CompositionError,
    DimensionMismatch,
    EmptyInput,
    InvalidInput,
)
from contact_sheet.labels import LabelSettings, draw_label
from contact_sheet.models import Grid, JoinedImage


def _ensure_bgr(tile: Optional[np.ndarray]) -> Optional[np.ndarray]:
    if tile is None:
        return None
    if tile.ndim == 2 or tile.shape[2] == 1:
        return cv2.cvtColor(tile, cv2.COLOR_GRAY2BGR)
    if tile.shape[2] == 4:
        return cv2.cvtColor(tile, cv2.COLOR_BGRA2BGR)
    if tile.shape[2] != 3:
        return None
    return tile


def resize_preserving_aspect(
    tile: np.ndarray,
    width: Optional[int] = None,
    height: Optional[int] = None,
) -> np.ndarray:
    """Scale ``tile`` to the given width or height, keeping its aspect ratio."""
    if width and height:
        raise InvalidInput("capture width and capture height are mutually exclusive")
    if not width and not height:
        return tile

    tile_height, tile_width = tile.shape[:2]
    if width:
        target = (int(width), max(1, int(round(tile_height * width / tile_width))))
    else:
        target = (max(1, int(round(tile_width * height / tile_height))), int(height))
    if target == (tile_width, tile_height):
        return tile
    return cv2.resize(tile, target, interpolation=cv2.INTER_CUBIC)


def load_tile(
    path: Path,
    *,
    width: Optional[int] = None,
    height: Optional[int] = None,
) -> np.ndarray:
    """Decode an image file as a BGR tile, optionally resized."""
    tile = _ensure_bgr(cv2.imread(str(path), cv2.IMREAD_COLOR))
    if tile is None:
        raise CompositionError(f"{path}: failed to decode image")
    return resize_preserving_aspect(tile, width, height)


def compose_grid(tiles: Sequence[np.ndarray], column_request: int) -> Tuple[np.ndarray, Grid]:
    """Paint ``tiles`` row-major onto a single canvas and return it with its layout."""
    if not tiles:
        raise EmptyInput("no capture images to join")

    tile_height, tile_width = tiles[0].shape[:2]
    for index, tile in enumerate(tiles):
        if tile.shape[:2] != (tile_height, tile_width):
            raise DimensionMismatch(
                f"capture #{index} is {tile.shape[1]}x{tile.shape[0]}, "
                f"expected {tile_width}x{tile_height}"
            )

    grid = Grid.for_tiles(len(tiles), column_request)
    canvas = np.zeros((grid.rows * tile_height, grid.columns * tile_width, 3), dtype=np.uint8)

    for index, tile in enumerate(tiles):
        bgr = _ensure_bgr(tile)
        if bgr is None:
            raise CompositionError(f"capture #{index} has unsupported shape {tile.shape}")
        start_x, start_y = grid.cell_origin(index, tile_width, tile_height)
        canvas[start_y : start_y + tile_height, start_x : start_x + tile_width] = bgr

    return canvas, grid


def write_image(image: np.ndarray, output: Path) -> None:
    """Encode ``image`` using the format implied by ``output``'s extension."""
    suffix = output.suffix or ".bmp"
    success, buffer = cv2.imencode(suffix, image)
    if not success:
        raise CompositionError(f"Failed to encode joined image {output}")
    output.write_bytes(buffer.tobytes())


class GridComposer:
    """Load, label and join capture images into grid frames."""

    def __init__(
        self,
        *,
        label_settings: Optional[LabelSettings] = None,
        workers: int = 1,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.label_settings = label_settings or LabelSettings()
        self.workers = max(1, workers)
        self.logger = logger or logging.getLogger(__name__)

    def load_tiles(
        self,
        paths: Sequence[Path],
        *,
        width: Optional[int] = None,
        height: Optional[int] = None,
    ) -> List[np.ndarray]:
        if width and height:
            raise InvalidInput("capture width and capture height are mutually exclusive")
        if len(paths) <= 1 or self.workers == 1:
            return [load_tile(path, width=width, height=height) for path in paths]
        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            return list(
                executor.map(lambda path: load_tile(path, width=width, height=height), paths)
            )

    def join(
        self,
        paths: Sequence[Path],
        output: Path,
        *,
        columns: int,
        labels: Sequence[str] = (),
        width: Optional[int] = None,
        height: Optional[int] = None,
    ) -> JoinedImage:
        """Join the images at ``paths`` into ``output``; label ``i`` goes on tile ``i``."""
        if not paths:
            raise EmptyInput("no capture images to join")

        tiles = self.load_tiles(paths, width=width, height=height)
        padded_labels = list(labels)[: len(tiles)]
        padded_labels.extend([""] * (len(tiles) - len(padded_labels)))
        tiles = [
            draw_label(tile, label, self.label_settings)
            for tile, label in zip(tiles, padded_labels)
        ]

        canvas, grid = compose_grid(tiles, columns)
        write_image(canvas, output)
        self.logger.debug(
            "Joined %s capture(s) in %sx%s grid -> %sx%spx %s",
            len(tiles),
            grid.columns,
            grid.rows,
            canvas.shape[1],
            canvas.shape[0],
            output.name,
        )
        return JoinedImage(path=output, grid=grid, width=canvas.shape[1], height=canvas.shape[0])


__all__ = [
    "GridComposer",
    "compose_grid",
    "load_tile",
    "resize_preserving_aspect",
    "write_image",
]
