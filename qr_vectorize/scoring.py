from __future__ import annotations

from .schema import ModuleGrid

TARGET_MODULE_COUNT = 400
TARGET_MODULE_SIZE = 5


def grid_quality(grid: ModuleGrid, module_size: int | None = None) -> float:
    """Plausibility of a quantized grid, roughly in [0, 1]; 0 for an empty grid."""
    total = grid.rows * grid.columns
    if total == 0:
        return 0.0
    size = grid.module_size if module_size is None else module_size

    module_count_score = max(0.0, 1.0 - abs(total - TARGET_MODULE_COUNT) / TARGET_MODULE_COUNT)
    contrast_score = max(0.0, 1.0 - abs(grid.on_ratio - 0.5) * 2.0)
    size_score = max(0.0, 1.0 - abs(size - TARGET_MODULE_SIZE) / TARGET_MODULE_SIZE)
    return module_count_score * 0.3 + contrast_score * 0.4 + size_score * 0.3


__all__ = ["grid_quality"]
