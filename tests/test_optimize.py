from __future__ import annotations

from pathlib import Path
import sys

import numpy as np

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from qr_vectorize.optimize import (
    SPACING_CANDIDATES,
    THRESHOLD_CANDIDATES,
    OptimizationResult,
    candidate_module_sizes,
    evaluate_parameter_set,
    find_optimal_parameters,
)
from qr_vectorize.preprocess import preprocess
from qr_vectorize.quantize import grid_dimensions
from synthetic import cells_to_gray, rgba_from_gray, solid_rgba, striped_cells


def _pattern_pixels() -> np.ndarray:
    return rgba_from_gray(cells_to_gray(striped_cells(30, 30), 5))


def test_candidate_sizes_respect_grid_bounds() -> None:
    assert candidate_module_sizes(150, 150) == [3, 4, 5, 6]
    # 60 / 20 caps the size at 3, which gives a 20 x 20 grid
    assert candidate_module_sizes(60, 60) == [3]
    assert candidate_module_sizes(40, 40) == []
    for size in candidate_module_sizes(400, 300):
        columns, rows = grid_dimensions(400, 300, size)
        assert 20 <= columns <= 80 and 20 <= rows <= 80


def test_spacing_does_not_change_trial_score() -> None:
    binary = preprocess(_pattern_pixels(), 0.5).binary
    scores = {evaluate_parameter_set(binary, 0.5, 5, spacing) for spacing in SPACING_CANDIDATES}
    assert len(scores) == 1


def test_optimizer_returns_values_from_candidate_sets() -> None:
    best = find_optimal_parameters(_pattern_pixels())

    assert best.threshold in THRESHOLD_CANDIDATES
    assert best.spacing in SPACING_CANDIDATES
    assert best.module_size in candidate_module_sizes(150, 150)
    columns, rows = grid_dimensions(150, 150, best.module_size)
    assert 20 <= columns <= 80 and 20 <= rows <= 80
    assert best.score > 0.0
    assert best.trials == 3 * 4 * 4


def test_spacing_ties_keep_first_candidate() -> None:
    best = find_optimal_parameters(_pattern_pixels())
    assert best.spacing == SPACING_CANDIDATES[0]


def test_parallel_search_matches_serial_search() -> None:
    pixels = _pattern_pixels()
    serial = find_optimal_parameters(pixels)
    parallel = find_optimal_parameters(pixels, max_workers=4)
    assert serial == parallel


def test_small_image_returns_documented_default() -> None:
    best = find_optimal_parameters(solid_rgba(40, 40, 255))
    assert best == OptimizationResult()
    assert (best.threshold, best.module_size, best.spacing) == (0.5, 4, 0.08)
    assert best.is_default


def test_detect_per_trial_stays_within_candidates() -> None:
    best = find_optimal_parameters(_pattern_pixels(), detect_per_trial=True)
    assert best.threshold in THRESHOLD_CANDIDATES
    assert best.spacing in SPACING_CANDIDATES
    assert best.module_size in candidate_module_sizes(150, 150)
