from __future__ import annotations

import json
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Tuple

import numpy as np

THRESHOLD_RANGE: Tuple[float, float] = (0.4, 0.7)
SPACING_RANGE: Tuple[float, float] = (0.05, 0.15)
GRID_MIN = 20
GRID_MAX = 80


class InvalidParameterError(ValueError):
    """Raised when conversion parameters fall outside their safe range."""


class ModuleStyle(Enum):
    ROUNDED = "rounded"
    CIRCLE = "circle"
    SQUARE = "square"
    DIAMOND = "diamond"

    @classmethod
    def parse(cls, value: "ModuleStyle | str | None") -> "ModuleStyle":
        if isinstance(value, ModuleStyle):
            return value
        if value is None:
            return cls.ROUNDED
        token = str(value).strip().lower()
        for style in cls:
            if style.value == token:
                return style
        return cls.ROUNDED


@dataclass(frozen=True)
class ConversionParameters:
    threshold_factor: float = 0.5
    spacing: float = 0.08
    style: ModuleStyle = ModuleStyle.ROUNDED
    module_size: Optional[int] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "style", ModuleStyle.parse(self.style))

    def validate(self) -> "ConversionParameters":
        low, high = THRESHOLD_RANGE
        if not low <= self.threshold_factor <= high:
            raise InvalidParameterError(
                f"threshold_factor {self.threshold_factor} outside safe range [{low}, {high}]"
            )
        low, high = SPACING_RANGE
        if not low <= self.spacing <= high:
            raise InvalidParameterError(
                f"spacing {self.spacing} outside safe range [{low}, {high}]"
            )
        if self.module_size is not None and int(self.module_size) < 2:
            raise InvalidParameterError(
                f"module_size {self.module_size} must be at least 2 pixels"
            )
        return self

    def with_overrides(self, **changes: object) -> "ConversionParameters":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, object]:
        return {
            "threshold_factor": self.threshold_factor,
            "spacing": self.spacing,
            "style": self.style.value,
            "module_size": self.module_size,
        }


@dataclass(frozen=True)
class FinderCandidate:
    """A window that matched the 7x7 concentric finder layout."""

    x: int
    y: int
    size: float
    confidence: float

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.size / 2.0, self.y + self.size / 2.0)

    def contains(self, point: Tuple[float, float]) -> bool:
        px, py = point
        return self.x <= px <= self.x + self.size and self.y <= py <= self.y + self.size


@dataclass
class ModuleGrid:
    """Boolean module matrix; ``cells[row, column]`` is True for a dark module."""

    cells: np.ndarray
    module_size: int
    image_width: int
    image_height: int

    @property
    def rows(self) -> int:
        return int(self.cells.shape[0]) if self.cells.ndim == 2 else 0

    @property
    def columns(self) -> int:
        return int(self.cells.shape[1]) if self.cells.ndim == 2 else 0

    @property
    def on_count(self) -> int:
        return int(np.count_nonzero(self.cells))

    @property
    def on_ratio(self) -> float:
        total = self.rows * self.columns
        return self.on_count / float(total) if total else 0.0

    @property
    def is_usable(self) -> bool:
        return GRID_MIN <= self.rows <= GRID_MAX and GRID_MIN <= self.columns <= GRID_MAX


def _coerce(payload: Dict[str, object], key: str, kind: type, default: object) -> object:
    value = payload.get(key, default)
    if value is None:
        return default
    try:
        return kind(value)  # type: ignore[call-arg]
    except (TypeError, ValueError) as exc:
        raise InvalidParameterError(f"{key} must be a number, got {value!r}") from exc


def from_dict(payload: Dict[str, object]) -> ConversionParameters:
    defaults = ConversionParameters()
    return ConversionParameters(
        threshold_factor=_coerce(payload, "threshold_factor", float, defaults.threshold_factor),  # type: ignore[arg-type]
        spacing=_coerce(payload, "spacing", float, defaults.spacing),  # type: ignore[arg-type]
        style=ModuleStyle.parse(payload.get("style")),  # type: ignore[arg-type]
        module_size=_coerce(payload, "module_size", int, None),  # type: ignore[arg-type]
    )


def from_json_file(path: str | Path) -> ConversionParameters:
    file_path = Path(path)
    with file_path.open("r", encoding="utf-8") as fp:
        payload = json.load(fp)
    return from_dict(payload)


__all__ = [
    "ConversionParameters",
    "FinderCandidate",
    "InvalidParameterError",
    "ModuleGrid",
    "ModuleStyle",
    "from_dict",
    "from_json_file",
]
