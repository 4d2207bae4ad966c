from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np

from .detect import detect_module_size
from .optimize import OptimizationResult, find_optimal_parameters
from .preprocess import image_size, preprocess, resize_for_processing
from .quantize import quantize
from .render import VectorDocument, render_grid
from .schema import ConversionParameters, ModuleGrid

DEFAULT_MAX_DIM = 800


@dataclass
class ConversionResult:
    """Everything produced by one conversion; nothing is shared between runs."""

    parameters: ConversionParameters
    width: int
    height: int
    binary: np.ndarray
    threshold: float
    module_size: int
    grid: Optional[ModuleGrid]
    document: VectorDocument

    @property
    def svg(self) -> str:
        return self.document.to_svg()

    @property
    def is_empty(self) -> bool:
        return self.grid is None

    def summary(self) -> Dict[str, object]:
        grid = self.grid
        return {
            "parameters": self.parameters.to_dict(),
            "width": self.width,
            "height": self.height,
            "global_threshold": self.threshold,
            "module_size": self.module_size,
            "grid_columns": grid.columns if grid is not None else 0,
            "grid_rows": grid.rows if grid is not None else 0,
            "modules_on": grid.on_count if grid is not None else 0,
            "grid_usable": bool(grid.is_usable) if grid is not None else False,
            "shapes": len(self.document.shapes),
        }


def convert(
    pixels: np.ndarray,
    params: Optional[ConversionParameters] = None,
    *,
    max_dim: int = DEFAULT_MAX_DIM,
) -> ConversionResult:
    params = (params or ConversionParameters()).validate()
    working, _ = resize_for_processing(pixels, max_dim=max_dim)
    width, height = image_size(working)
    prepared = preprocess(working, params.threshold_factor)

    if width == 0 or height == 0:
        return ConversionResult(
            parameters=params,
            width=width,
            height=height,
            binary=prepared.binary,
            threshold=prepared.threshold,
            module_size=0,
            grid=None,
            document=VectorDocument(width=width, height=height),
        )

    if params.module_size is not None:
        module_size = int(params.module_size)
    else:
        module_size = detect_module_size(prepared.binary)

    grid = quantize(prepared.binary, module_size, params.threshold_factor)
    document = render_grid(grid, width, height, spacing=params.spacing, style=params.style)
    return ConversionResult(
        parameters=params,
        width=width,
        height=height,
        binary=prepared.binary,
        threshold=prepared.threshold,
        module_size=module_size,
        grid=grid,
        document=document,
    )


def convert_to_svg(
    pixels: np.ndarray,
    params: Optional[ConversionParameters] = None,
    *,
    max_dim: int = DEFAULT_MAX_DIM,
) -> str:
    return convert(pixels, params, max_dim=max_dim).svg


def auto_optimize(
    pixels: np.ndarray,
    params: Optional[ConversionParameters] = None,
    *,
    max_dim: int = DEFAULT_MAX_DIM,
    max_workers: Optional[int] = None,
    detect_per_trial: bool = False,
) -> Tuple[OptimizationResult, ConversionResult]:
    """Search the parameter grid, then run the final conversion with the winner."""
    params = (params or ConversionParameters()).validate()
    working, _ = resize_for_processing(pixels, max_dim=max_dim)
    best = find_optimal_parameters(
        working,
        max_workers=max_workers,
        detect_per_trial=detect_per_trial,
    )
    tuned = params.with_overrides(
        threshold_factor=best.threshold,
        spacing=best.spacing,
        module_size=best.module_size,
    )
    return best, convert(working, tuned, max_dim=max_dim)


__all__ = ["ConversionResult", "auto_optimize", "convert", "convert_to_svg"]
