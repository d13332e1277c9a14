import sys
from pathlib import Path

import cv2
import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from contact_sheet.exceptions import CompositionError, DimensionMismatch, EmptyInput, InvalidInput
from contact_sheet.grid import GridComposer, compose_grid, load_tile, resize_preserving_aspect
from contact_sheet.models import Grid
from fakes import write_bmp


def solid(width: int, height: int, value: int) -> np.ndarray:
    return np.full((height, width, 3), value, dtype=np.uint8)


def test_compose_grid_places_tiles_row_major():
    tiles = [solid(4, 2, value) for value in (10, 20, 30, 40, 50)]

    canvas, grid = compose_grid(tiles, 2)

    assert grid == Grid(columns=2, rows=3)
    assert canvas.shape == (6, 8, 3)
    assert canvas[0, 0, 0] == 10
    assert canvas[0, 4, 0] == 20
    assert canvas[2, 0, 0] == 30
    assert canvas[4, 0, 0] == 50
    # Last row has an unused cell.
    assert canvas[4, 4, 0] == 0


def test_compose_grid_with_zero_columns_is_single_row():
    canvas, grid = compose_grid([solid(3, 3, 1)] * 3, 0)

    assert grid == Grid(columns=3, rows=1)
    assert canvas.shape == (3, 9, 3)


def test_compose_grid_rejects_empty_and_mismatched_input():
    with pytest.raises(EmptyInput):
        compose_grid([], 2)
    with pytest.raises(DimensionMismatch, match="capture #1"):
        compose_grid([solid(4, 4, 0), solid(4, 5, 0)], 2)


def test_resize_preserving_aspect():
    tile = solid(64, 48, 0)

    assert resize_preserving_aspect(tile, width=32).shape == (24, 32, 3)
    assert resize_preserving_aspect(tile, height=96).shape == (96, 128, 3)
    assert resize_preserving_aspect(tile) is tile
    with pytest.raises(InvalidInput):
        resize_preserving_aspect(tile, 10, 10)


def test_load_tile_decodes_bmp_and_rejects_garbage(tmp_path):
    path = write_bmp(tmp_path / "a.bmp", 8, 6, 77)
    broken = tmp_path / "broken.bmp"
    broken.write_bytes(b"not an image")

    tile = load_tile(path)

    assert tile.shape == (6, 8, 3)
    assert int(tile[0, 0, 0]) == 77
    with pytest.raises(CompositionError):
        load_tile(broken)


def test_composer_join_writes_bmp_with_grid_dimensions(tmp_path):
    paths = [write_bmp(tmp_path / f"{i}.bmp", 16, 12, 40 * i) for i in range(4)]
    output = tmp_path / "joined.bmp"

    joined = GridComposer(workers=2).join(paths, output, columns=3)

    assert joined.grid == Grid(columns=3, rows=2)
    assert (joined.width, joined.height) == (48, 24)
    image = cv2.imread(str(output), cv2.IMREAD_COLOR)
    assert image.shape == (24, 48, 3)
    assert int(image[0, 16, 0]) == 40
    assert int(image[12, 0, 0]) == 120


def test_composer_join_resizes_before_composing(tmp_path):
    paths = [write_bmp(tmp_path / f"{i}.bmp", 64, 48) for i in range(2)]

    joined = GridComposer().join(paths, tmp_path / "out.bmp", columns=0, height=24)

    assert (joined.width, joined.height) == (64, 24)


def test_composer_join_labels_only_listed_tiles(tmp_path):
    paths = [write_bmp(tmp_path / f"{i}.bmp", 400, 240, 128) for i in range(2)]
    output = tmp_path / "labelled.bmp"

    GridComposer().join(paths, output, columns=2, labels=["01:05"])

    image = cv2.imread(str(output), cv2.IMREAD_COLOR)
    first, second = image[:, :400], image[:, 400:]
    assert not np.all(first == 128)
    assert np.all(second == 128)


def test_composer_join_rejects_empty_input(tmp_path):
    with pytest.raises(EmptyInput):
        GridComposer().join([], tmp_path / "out.bmp", columns=2)
