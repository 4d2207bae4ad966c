from .detect import detect_module_size, detect_optimal_module_size, find_finder_patterns
from .optimize import OptimizationResult, find_optimal_parameters
from .pipeline import ConversionResult, auto_optimize, convert, convert_to_svg
from .preprocess import preprocess
from .quantize import quantize
from .render import VectorDocument, render_grid
from .runner import main as cli_main, process_directory
from .schema import (
    ConversionParameters,
    InvalidParameterError,
    ModuleGrid,
    ModuleStyle,
    from_json_file,
)
from .scoring import grid_quality

__all__ = [
    "preprocess",
    "detect_module_size",
    "detect_optimal_module_size",
    "find_finder_patterns",
    "quantize",
    "grid_quality",
    "find_optimal_parameters",
    "OptimizationResult",
    "render_grid",
    "VectorDocument",
    "convert",
    "convert_to_svg",
    "auto_optimize",
    "ConversionResult",
    "ConversionParameters",
    "InvalidParameterError",
    "ModuleGrid",
    "ModuleStyle",
    "from_json_file",
    "process_directory",
    "cli_main",
]
