"""
Grid search over binarisation threshold, module size and spacing.

Every trial is a pure function of its inputs, so trials can be evaluated on a
thread pool. The best trial is picked with a max-reduce whose tie-break is the
canonical (threshold, size, spacing) order, which keeps the outcome independent
of completion order.
"""
from __future__ import annotations

import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from itertools import product
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .detect import MIN_FALLBACK_SIZE, MAX_FALLBACK_SIZE, detect_module_size
from .preprocess import image_size, preprocess
from .quantize import grid_dimensions, quantize
from .schema import GRID_MAX, GRID_MIN
from .scoring import grid_quality

THRESHOLD_CANDIDATES: Tuple[float, ...] = (0.4, 0.5, 0.6)
SPACING_CANDIDATES: Tuple[float, ...] = (0.05, 0.08, 0.10, 0.12)
DEFAULT_THRESHOLD = 0.5
DEFAULT_MODULE_SIZE = 4
DEFAULT_SPACING = 0.08


@dataclass(frozen=True)
class OptimizationResult:
    threshold: float = DEFAULT_THRESHOLD
    module_size: int = DEFAULT_MODULE_SIZE
    spacing: float = DEFAULT_SPACING
    score: float = 0.0
    trials: int = 0

    @property
    def is_default(self) -> bool:
        return self.score <= 0.0

    def to_dict(self) -> Dict[str, object]:
        return {
            "threshold": self.threshold,
            "module_size": self.module_size,
            "spacing": self.spacing,
            "score": self.score,
            "trials": self.trials,
        }


def candidate_module_sizes(width: int, height: int) -> List[int]:
    max_size = min(MAX_FALLBACK_SIZE, int(math.floor(min(width, height) / float(GRID_MIN))))
    sizes: List[int] = []
    for size in range(MIN_FALLBACK_SIZE, max_size + 1):
        columns, rows = grid_dimensions(width, height, size)
        if GRID_MIN <= columns <= GRID_MAX and GRID_MIN <= rows <= GRID_MAX:
            sizes.append(size)
    return sizes


def evaluate_parameter_set(
    binary: np.ndarray,
    threshold: float,
    module_size: int,
    spacing: float,
    *,
    detect_per_trial: bool = False,
) -> float:
    """
    Score one (threshold, module size, spacing) combination.

    ``binary`` must already be binarised with ``threshold``. Spacing only
    affects rendering and does not change the score. With
    ``detect_per_trial`` the candidate size only caps the detector instead of
    being forced into the quantizer.
    """
    size = module_size
    if detect_per_trial:
        size = detect_module_size(binary, size_cap=module_size)
    grid = quantize(binary, size, threshold)
    if not grid.is_usable:
        return 0.0
    return grid_quality(grid, size)


def find_optimal_parameters(
    pixels: np.ndarray,
    *,
    thresholds: Sequence[float] = THRESHOLD_CANDIDATES,
    spacings: Sequence[float] = SPACING_CANDIDATES,
    module_sizes: Optional[Sequence[int]] = None,
    max_workers: Optional[int] = None,
    detect_per_trial: bool = False,
) -> OptimizationResult:
    width, height = image_size(pixels)
    sizes = list(module_sizes) if module_sizes is not None else candidate_module_sizes(width, height)
    if not sizes or width == 0 or height == 0:
        return OptimizationResult()

    binaries = {threshold: preprocess(pixels, threshold).binary for threshold in thresholds}
    combos = list(product(thresholds, sizes, spacings))
    if not combos:
        return OptimizationResult()

    def _run(combo: Tuple[float, int, float]) -> float:
        threshold, size, spacing = combo
        return evaluate_parameter_set(
            binaries[threshold],
            threshold,
            size,
            spacing,
            detect_per_trial=detect_per_trial,
        )

    if max_workers is not None and max_workers > 1:
        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="grid_search") as executor:
            scores = list(executor.map(_run, combos))
    else:
        scores = [_run(combo) for combo in combos]

    best_index, best_score = max(
        enumerate(scores),
        key=lambda item: (item[1], -item[0]),
    )
    if best_score <= 0.0:
        return OptimizationResult(trials=len(combos))

    threshold, size, spacing = combos[best_index]
    return OptimizationResult(
        threshold=threshold,
        module_size=size,
        spacing=spacing,
        score=float(best_score),
        trials=len(combos),
    )


__all__ = [
    "OptimizationResult",
    "candidate_module_sizes",
    "evaluate_parameter_set",
    "find_optimal_parameters",
]
