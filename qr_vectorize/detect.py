"""
Module (cell) size inference for scanned module grids.

Two strategies are combined. The structural search looks for the 7x7
concentric finder markers and derives the module pitch from the distance
between them. When fewer than three markers are found, a density search
partitions the image with every plausible module size and keeps the one
whose cells are most decisively dark or light.
"""
from __future__ import annotations

import math
from itertools import combinations
from typing import List, Optional, Tuple

import numpy as np

from .preprocess import dark_mask
from .schema import GRID_MAX, GRID_MIN, FinderCandidate

FINDER_LAYOUT = np.array(
    [
        [1, 1, 1, 1, 1, 1, 1],
        [1, 0, 0, 0, 0, 0, 1],
        [1, 0, 1, 1, 1, 0, 1],
        [1, 0, 1, 1, 1, 0, 1],
        [1, 0, 1, 1, 1, 0, 1],
        [1, 0, 0, 0, 0, 0, 1],
        [1, 1, 1, 1, 1, 1, 1],
    ],
    dtype=bool,
)
FINDER_MIN_MATCHES = 40
# Centre-to-centre pitch between finder markers, in modules.
FINDER_SEPARATION = 21
MIN_FALLBACK_SIZE = 3
MAX_FALLBACK_SIZE = 6
PREFERRED_GRID = 40


def _append_candidate(candidates: List[FinderCandidate], candidate: FinderCandidate) -> None:
    """
    Append a finder candidate unless it overlaps one already recorded.

    Overlapping windows describe the same marker; the more confident one is kept.
    """
    for idx, existing in enumerate(candidates):
        if existing.contains(candidate.center) or candidate.contains(existing.center):
            if candidate.confidence > existing.confidence:
                candidates[idx] = candidate
            return
    candidates.append(candidate)


def find_finder_patterns(binary: np.ndarray, step: int = 2) -> List[FinderCandidate]:
    """
    Scan square windows for the finder layout.

    Parameters
    ----------
    binary:
        Binarised image (0 = dark, 255 = light).
    step:
        Stride, in pixels, of both the window positions and the window sizes.
    """
    h, w = binary.shape[:2]
    short_side = min(w, h)
    if short_side == 0:
        return []

    dark = dark_mask(binary)
    min_size = short_side / 20.0
    max_size = short_side / 3.0
    xs = np.arange(0, max(0.0, w - min_size), step, dtype=np.int64)
    ys = np.arange(0, max(0.0, h - min_size), step, dtype=np.int64)

    raw: List[FinderCandidate] = []
    size = min_size
    while size <= max_size:
        module = int(size // 7)
        if module < 1:
            size += step
            continue
        valid_x = xs[xs + size < w]
        valid_y = ys[ys + size < h]
        if len(valid_x) == 0 or len(valid_y) == 0:
            size += step
            continue

        matches = np.zeros((len(valid_y), len(valid_x)), dtype=np.int32)
        for py in range(7):
            row_start = py * module
            row_slice = slice(row_start, row_start + step * len(valid_y), step)
            for px in range(7):
                col_start = px * module
                col_slice = slice(col_start, col_start + step * len(valid_x), step)
                matches += dark[row_slice, col_slice] == FINDER_LAYOUT[py, px]

        for iy, ix in np.argwhere(matches >= FINDER_MIN_MATCHES):
            raw.append(
                FinderCandidate(
                    x=int(valid_x[ix]),
                    y=int(valid_y[iy]),
                    size=float(size),
                    confidence=float(matches[iy, ix]) / FINDER_LAYOUT.size,
                )
            )
        size += step

    raw.sort(key=lambda cand: (cand.y, cand.x, cand.size))
    merged: List[FinderCandidate] = []
    for candidate in raw:
        _append_candidate(merged, candidate)
    return merged


def module_size_from_finders(candidates: List[FinderCandidate]) -> int:
    if len(candidates) < 2:
        return 0
    distances = [
        math.hypot(a.center[0] - b.center[0], a.center[1] - b.center[1])
        for a, b in combinations(candidates, 2)
    ]
    average = sum(distances) / len(distances)
    return int(math.floor(average / FINDER_SEPARATION))


def fallback_size_bounds(width: int, height: int) -> Tuple[int, float]:
    return MIN_FALLBACK_SIZE, min(float(MAX_FALLBACK_SIZE), min(width, height) / 20.0)


def _grid_within_bounds(columns: int, rows: int) -> bool:
    return GRID_MIN <= columns <= GRID_MAX and GRID_MIN <= rows <= GRID_MAX


def score_module_size(binary: np.ndarray, size: int) -> float:
    """Composite plausibility score for partitioning ``binary`` into ``size`` pixel cells."""
    h, w = binary.shape[:2]
    columns = w // size
    rows = h // size
    if not _grid_within_bounds(columns, rows):
        return 0.0

    dark = dark_mask(binary)
    blocks = dark[: rows * size, : columns * size].reshape(rows, size, columns, size)
    density = blocks.mean(axis=(1, 3))

    uniformity = float(np.mean((density > 0.8) | (density < 0.2)))
    avg_contrast = float(np.mean(np.abs(density - 0.5) * 2.0))
    size_score = min(1.0, size / 5.0)
    grid_score = max(0.0, 1.0 - abs(columns - PREFERRED_GRID) / PREFERRED_GRID) * max(
        0.0, 1.0 - abs(rows - PREFERRED_GRID) / PREFERRED_GRID
    )
    return uniformity * 0.3 + avg_contrast * 0.3 + size_score * 0.2 + grid_score * 0.2


def detect_optimal_module_size(binary: np.ndarray) -> int:
    h, w = binary.shape[:2]
    min_size, max_size = fallback_size_bounds(w, h)

    best_size = min_size
    best_score = 0.0
    for size in range(min_size, int(math.floor(max_size)) + 1):
        score = score_module_size(binary, size)
        if score > best_score:
            best_score = score
            best_size = size

    columns = w // best_size
    rows = h // best_size
    if columns > GRID_MAX or rows > GRID_MAX:
        best_size = max(best_size, int(math.ceil(max(w, h) / float(GRID_MAX))))
    elif columns < GRID_MIN or rows < GRID_MIN:
        best_size = min(best_size, int(math.floor(min(w, h) / float(GRID_MIN))))

    return int(max(min_size, min(max_size, best_size)))


def detect_module_size(binary: np.ndarray, size_cap: Optional[int] = None) -> int:
    """
    Finder-based module size when three markers are found, density search otherwise.

    The structural estimate is capped at min(6, min(w, h) / 20) and at ``size_cap``,
    and is never below 2.
    """
    candidates = find_finder_patterns(binary)
    if len(candidates) >= 3:
        size = module_size_from_finders(candidates)
        if size > 0:
            h, w = binary.shape[:2]
            limit = fallback_size_bounds(w, h)[1]
            if size_cap is not None:
                limit = min(limit, float(size_cap))
            return max(2, min(size, int(math.floor(limit))))

    return max(2, detect_optimal_module_size(binary))


__all__ = [
    "detect_module_size",
    "detect_optimal_module_size",
    "fallback_size_bounds",
    "find_finder_patterns",
    "module_size_from_finders",
    "score_module_size",
]
