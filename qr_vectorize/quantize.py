from __future__ import annotations

import math
from typing import Tuple

import numpy as np

from .preprocess import dark_mask
from .schema import ModuleGrid

MEDIAN_SHIFT_SCALE = 0.3
CELL_THRESHOLD_CLAMP: Tuple[float, float] = (0.1, 0.9)


def grid_dimensions(width: int, height: int, module_size: int) -> Tuple[int, int]:
    """Return ``(columns, rows)`` covering the image, partial edge cells included."""
    if module_size <= 0:
        return 0, 0
    return int(math.ceil(width / float(module_size))), int(math.ceil(height / float(module_size)))


def cell_densities(binary: np.ndarray, module_size: int) -> np.ndarray:
    """Dark-pixel fraction of every cell; edge cells are clipped to the image."""
    h, w = binary.shape[:2]
    columns, rows = grid_dimensions(w, h, module_size)
    if columns == 0 or rows == 0:
        return np.zeros((rows, columns), dtype=np.float64)

    dark = dark_mask(binary).astype(np.int64)
    row_starts = np.arange(rows) * module_size
    col_starts = np.arange(columns) * module_size
    counts = np.add.reduceat(np.add.reduceat(dark, row_starts, axis=0), col_starts, axis=1)

    row_heights = np.minimum(row_starts + module_size, h) - row_starts
    col_widths = np.minimum(col_starts + module_size, w) - col_starts
    areas = np.outer(row_heights, col_widths)
    return counts / areas.astype(np.float64)


def cell_threshold(densities: np.ndarray, threshold_factor: float) -> float:
    low, high = CELL_THRESHOLD_CLAMP
    if densities.size == 0:
        return 0.5
    ordered = np.sort(densities, axis=None)
    median = float(ordered[len(ordered) // 2])
    adjusted = median + (threshold_factor - 0.5) * MEDIAN_SHIFT_SCALE
    return max(low, min(high, adjusted))


def quantize(binary: np.ndarray, module_size: int, threshold_factor: float = 0.5) -> ModuleGrid:
    h, w = binary.shape[:2]
    densities = cell_densities(binary, module_size)
    threshold = cell_threshold(densities, threshold_factor)
    return ModuleGrid(
        cells=densities > threshold,
        module_size=int(module_size),
        image_width=int(w),
        image_height=int(h),
    )


__all__ = ["cell_densities", "cell_threshold", "grid_dimensions", "quantize"]
