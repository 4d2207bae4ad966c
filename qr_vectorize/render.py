from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple, Union

import numpy as np

from .schema import ModuleGrid, ModuleStyle

SVG_NAMESPACE = "http://www.w3.org/2000/svg"
ROUNDED_CORNER_RATIO = 0.15


def format_number(value: float) -> str:
    text = f"{float(value):.4f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


@dataclass(frozen=True)
class RectShape:
    x: float
    y: float
    width: float
    height: float
    rx: Optional[float] = None
    fill: str = "black"

    def to_svg(self) -> str:
        corner = ""
        if self.rx is not None:
            corner = f' rx="{format_number(self.rx)}" ry="{format_number(self.rx)}"'
        return (
            f'<rect x="{format_number(self.x)}" y="{format_number(self.y)}" '
            f'width="{format_number(self.width)}" height="{format_number(self.height)}"'
            f'{corner} fill="{self.fill}"/>'
        )


@dataclass(frozen=True)
class CircleShape:
    cx: float
    cy: float
    r: float
    fill: str = "black"

    def to_svg(self) -> str:
        return (
            f'<circle cx="{format_number(self.cx)}" cy="{format_number(self.cy)}" '
            f'r="{format_number(self.r)}" fill="{self.fill}"/>'
        )


@dataclass(frozen=True)
class PolygonShape:
    points: Tuple[Tuple[float, float], ...]
    fill: str = "black"

    def to_svg(self) -> str:
        coords = " ".join(f"{format_number(x)},{format_number(y)}" for x, y in self.points)
        return f'<polygon points="{coords}" fill="{self.fill}"/>'


Shape = Union[RectShape, CircleShape, PolygonShape]


@dataclass(frozen=True)
class GridLayout:
    module_size: float
    gap: float
    offset_x: float
    offset_y: float
    content_width: float
    content_height: float

    def origin(self, column: int, row: int) -> Tuple[float, float]:
        pitch = self.module_size + self.gap
        return self.offset_x + column * pitch, self.offset_y + row * pitch


@dataclass
class VectorDocument:
    width: int
    height: int
    background: str = "white"
    shapes: List[Shape] = field(default_factory=list)

    def to_svg(self) -> str:
        w = format_number(self.width)
        h = format_number(self.height)
        parts = [
            f'<svg width="{w}" height="{h}" viewBox="0 0 {w} {h}" xmlns="{SVG_NAMESPACE}">',
            RectShape(0, 0, self.width, self.height, fill=self.background).to_svg(),
        ]
        parts.extend(shape.to_svg() for shape in self.shapes)
        parts.append("</svg>")
        return "\n".join(parts)


def _rounded_module(x: float, y: float, size: float) -> Shape:
    return RectShape(x, y, size, size, rx=max(1.0, size * ROUNDED_CORNER_RATIO))


def _circle_module(x: float, y: float, size: float) -> Shape:
    return CircleShape(x + size / 2.0, y + size / 2.0, size / 2.0)


def _square_module(x: float, y: float, size: float) -> Shape:
    return RectShape(x, y, size, size)


def _diamond_module(x: float, y: float, size: float) -> Shape:
    cx = x + size / 2.0
    cy = y + size / 2.0
    return PolygonShape(((cx, y), (x + size, cy), (cx, y + size), (x, cy)))


MODULE_RENDERERS: Dict[ModuleStyle, Callable[[float, float, float], Shape]] = {
    ModuleStyle.ROUNDED: _rounded_module,
    ModuleStyle.CIRCLE: _circle_module,
    ModuleStyle.SQUARE: _square_module,
    ModuleStyle.DIAMOND: _diamond_module,
}


def compute_layout(columns: int, rows: int, width: float, height: float, spacing: float) -> GridLayout:
    """Module size, gap and centring offsets for a ``columns`` x ``rows`` grid."""
    if columns == 0 or rows == 0:
        return GridLayout(0.0, 0.0, width / 2.0, height / 2.0, 0.0, 0.0)

    module_size = min(width / float(columns), height / float(rows)) * (1.0 - spacing)
    gap = module_size * spacing
    content_width = columns * module_size + (columns - 1) * gap
    content_height = rows * module_size + (rows - 1) * gap
    return GridLayout(
        module_size=module_size,
        gap=gap,
        offset_x=(width - content_width) / 2.0,
        offset_y=(height - content_height) / 2.0,
        content_width=content_width,
        content_height=content_height,
    )


def render_cells(
    cells: np.ndarray,
    width: int,
    height: int,
    spacing: float = 0.08,
    style: "ModuleStyle | str" = ModuleStyle.ROUNDED,
) -> VectorDocument:
    document = VectorDocument(width=int(width), height=int(height))
    if cells.ndim != 2 or cells.size == 0:
        return document

    rows, columns = cells.shape
    layout = compute_layout(columns, rows, width, height, spacing)
    draw = MODULE_RENDERERS[ModuleStyle.parse(style)]
    for row, column in np.argwhere(cells):
        x, y = layout.origin(int(column), int(row))
        document.shapes.append(draw(x, y, layout.module_size))
    return document


def render_grid(
    grid: ModuleGrid,
    width: Optional[int] = None,
    height: Optional[int] = None,
    spacing: float = 0.08,
    style: "ModuleStyle | str" = ModuleStyle.ROUNDED,
) -> VectorDocument:
    return render_cells(
        grid.cells,
        grid.image_width if width is None else width,
        grid.image_height if height is None else height,
        spacing=spacing,
        style=style,
    )


__all__ = [
    "CircleShape",
    "GridLayout",
    "MODULE_RENDERERS",
    "PolygonShape",
    "RectShape",
    "VectorDocument",
    "compute_layout",
    "format_number",
    "render_cells",
    "render_grid",
]
