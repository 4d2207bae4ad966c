from __future__ import annotations

from pathlib import Path
import sys

import numpy as np

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from qr_vectorize.detect import (
    detect_module_size,
    detect_optimal_module_size,
    find_finder_patterns,
    module_size_from_finders,
    score_module_size,
)
from qr_vectorize.preprocess import preprocess
from qr_vectorize.schema import FinderCandidate
from synthetic import checkerboard_gray, corner_finder_gray, finder_gray, rgba_from_gray


def _binary(gray: np.ndarray) -> np.ndarray:
    return preprocess(rgba_from_gray(gray), 0.5).binary


def test_checkerboard_module_size_is_recovered() -> None:
    binary = _binary(checkerboard_gray(200, 5))

    assert detect_optimal_module_size(binary) == 5
    assert abs(detect_module_size(binary) - 5) <= 1


def test_out_of_bounds_sizes_score_zero() -> None:
    binary = _binary(checkerboard_gray(200, 5))
    # 200 / 2 = 100 cells per axis, above the 80 cell limit
    assert score_module_size(binary, 2) == 0.0
    assert score_module_size(binary, 5) > score_module_size(binary, 4)


def test_finder_markers_are_found_and_merged() -> None:
    binary = _binary(finder_gray(210, 6))

    candidates = find_finder_patterns(binary)

    assert len(candidates) >= 3
    assert all(candidate.confidence >= 40 / 49 for candidate in candidates)


def test_structural_stage_recovers_module_size() -> None:
    binary = _binary(finder_gray(210, 6))
    assert abs(detect_module_size(binary) - 6) <= 1


def test_structural_stage_honours_size_cap() -> None:
    binary = _binary(finder_gray(210, 6))
    assert detect_module_size(binary, size_cap=4) == 4


def test_module_size_from_finder_distances() -> None:
    candidates = [
        FinderCandidate(x=0, y=0, size=42, confidence=1.0),
        FinderCandidate(x=126, y=0, size=42, confidence=1.0),
        FinderCandidate(x=0, y=126, size=42, confidence=1.0),
    ]
    assert module_size_from_finders(candidates) == 6
    assert module_size_from_finders(candidates[:1]) == 0


def test_blank_image_falls_back_to_density_search() -> None:
    binary = np.full((100, 100), 255, dtype=np.uint8)
    assert find_finder_patterns(binary) == []
    assert 3 <= detect_module_size(binary) <= 5


def test_tiny_image_never_returns_less_than_two() -> None:
    binary = np.full((12, 12), 255, dtype=np.uint8)
    assert detect_module_size(binary) >= 2


def test_corner_markers_give_module_size_six() -> None:
    binary = _binary(corner_finder_gray(210, 6))

    assert len(find_finder_patterns(binary)) >= 3
    size = detect_module_size(binary)
    assert abs(size - 6) <= 1
    assert 2 <= size <= min(6, 210 / 20)


def test_structural_size_never_exceeds_grid_bound() -> None:
    # markers 21 modules of 10 px apart would otherwise suggest a size of 10
    binary = _binary(finder_gray(420, 10))
    assert 2 <= detect_module_size(binary) <= 6


def test_wide_image_nudges_size_up_then_clamps() -> None:
    binary = np.full((100, 500), 255, dtype=np.uint8)
    # size 3 leaves 166 columns; the nudge asks for ceil(500 / 80) = 7, capped at 100 / 20 = 5
    assert detect_optimal_module_size(binary) == 5


def test_tall_image_clamps_to_fractional_bound() -> None:
    binary = np.full((400, 90), 255, dtype=np.uint8)
    # nudge to ceil(400 / 80) = 5, then capped at floor(90 / 20) = 4
    assert detect_optimal_module_size(binary) == 4


def test_small_image_nudges_down_to_minimum() -> None:
    binary = np.full((50, 50), 255, dtype=np.uint8)
    # 16 columns at size 3 asks for floor(50 / 20) = 2, raised back to the minimum of 3
    assert detect_optimal_module_size(binary) == 3
