from __future__ import annotations

from pathlib import Path
import re
import sys

import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from qr_vectorize.optimize import SPACING_CANDIDATES, THRESHOLD_CANDIDATES
from qr_vectorize.pipeline import auto_optimize, convert, convert_to_svg
from qr_vectorize.schema import ConversionParameters, InvalidParameterError, ModuleStyle
from synthetic import (
    cells_to_gray,
    corner_finder_gray,
    finder_gray,
    rgba_from_gray,
    solid_rgba,
    striped_cells,
)

SHAPE_PATTERN = re.compile(r"<(rect|circle|polygon)\b")


def test_white_image_end_to_end() -> None:
    params = ConversionParameters(threshold_factor=0.5, spacing=0.08, style=ModuleStyle.ROUNDED)
    svg = convert_to_svg(solid_rgba(100, 100, 255), params)

    assert 'width="100" height="100"' in svg
    assert len(SHAPE_PATTERN.findall(svg)) == 1


def test_black_image_fills_every_module() -> None:
    result = convert(solid_rgba(100, 100, 0))

    assert np.all(result.binary == 0)
    assert result.grid is not None
    assert result.grid.on_count == result.grid.rows * result.grid.columns
    assert len(result.document.shapes) == result.grid.on_count


def test_pattern_round_trips_through_pipeline() -> None:
    cells = striped_cells(30, 30)
    result = convert(rgba_from_gray(cells_to_gray(cells, 5)), ConversionParameters(module_size=5))

    assert result.module_size == 5
    assert np.array_equal(result.grid.cells, cells)
    assert len(result.document.shapes) == int(cells.sum())


def test_finder_image_uses_structural_size() -> None:
    result = convert(rgba_from_gray(finder_gray(210, 6)))
    assert abs(result.module_size - 6) <= 1
    assert result.width == 210 and result.height == 210


def test_corner_finder_image_gives_module_size_six() -> None:
    result = convert(rgba_from_gray(corner_finder_gray(210, 6)))
    assert abs(result.module_size - 6) <= 1
    assert result.module_size <= min(6, 210 / 20)
    assert result.grid is not None and result.grid.is_usable


@pytest.mark.parametrize(
    "params",
    [
        ConversionParameters(threshold_factor=0.3),
        ConversionParameters(threshold_factor=0.75),
        ConversionParameters(spacing=0.01),
        ConversionParameters(spacing=0.2),
        ConversionParameters(module_size=1),
    ],
)
def test_invalid_parameters_are_rejected(params: ConversionParameters) -> None:
    with pytest.raises(InvalidParameterError):
        convert(solid_rgba(100, 100, 255), params)


def test_invalid_parameters_rejected_before_pixel_work() -> None:
    with pytest.raises(InvalidParameterError):
        convert(None, ConversionParameters(spacing=0.5))  # type: ignore[arg-type]


def test_empty_buffer_gives_background_only_document() -> None:
    result = convert(np.zeros((0, 0, 4), dtype=np.uint8))

    assert result.is_empty
    assert result.document.shapes == []
    assert len(SHAPE_PATTERN.findall(result.svg)) == 1


def test_conversion_is_deterministic() -> None:
    rng = np.random.default_rng(5)
    noisy = cells_to_gray(striped_cells(40, 40), 4).astype(np.int16)
    noisy += rng.integers(-40, 40, size=noisy.shape, dtype=np.int16)
    pixels = rgba_from_gray(np.clip(noisy, 0, 255))
    params = ConversionParameters(style=ModuleStyle.CIRCLE)

    assert convert_to_svg(pixels, params) == convert_to_svg(pixels.copy(), params)


def test_large_images_are_downscaled() -> None:
    result = convert(solid_rgba(1600, 1200, 255), max_dim=800)
    assert (result.width, result.height) == (800, 600)
    assert 'width="800" height="600"' in result.svg


def test_auto_optimize_keeps_style_and_candidate_values() -> None:
    pixels = rgba_from_gray(cells_to_gray(striped_cells(30, 30), 5))
    best, result = auto_optimize(pixels, ConversionParameters(style=ModuleStyle.DIAMOND))

    assert best.threshold in THRESHOLD_CANDIDATES
    assert best.spacing in SPACING_CANDIDATES
    assert result.parameters.style is ModuleStyle.DIAMOND
    assert result.module_size == best.module_size
    assert result.grid.is_usable
    assert "<polygon" in result.svg
