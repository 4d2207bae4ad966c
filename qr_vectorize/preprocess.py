from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import cv2
import numpy as np

GAUSSIAN_KERNEL = np.array(
    [
        [1, 2, 1],
        [2, 4, 2],
        [1, 2, 1],
    ],
    dtype=np.float32,
)
GAUSSIAN_KERNEL_SUM = 16
THRESHOLD_CLAMP: Tuple[int, int] = (30, 220)
DARK_LEVEL = 128


@dataclass
class PreprocessResult:
    gray: np.ndarray
    smoothed: np.ndarray
    binary: np.ndarray
    threshold: float

    @property
    def height(self) -> int:
        return int(self.binary.shape[0])

    @property
    def width(self) -> int:
        return int(self.binary.shape[1])


def image_size(pixels: np.ndarray) -> Tuple[int, int]:
    """Return ``(width, height)`` of a pixel buffer, ``(0, 0)`` for degenerate input."""
    if pixels is None or pixels.ndim < 2:
        return 0, 0
    return int(pixels.shape[1]), int(pixels.shape[0])


def resize_for_processing(
    pixels: np.ndarray,
    max_dim: int = 800,
) -> Tuple[np.ndarray, float]:
    width, height = image_size(pixels)
    if max_dim <= 0 or width == 0 or height == 0 or max(width, height) <= max_dim:
        return pixels, 1.0

    scale = min(max_dim / float(width), max_dim / float(height))
    new_w = max(1, int(width * scale))
    new_h = max(1, int(height * scale))
    resized = cv2.resize(pixels, (new_w, new_h), interpolation=cv2.INTER_AREA)
    return resized, float(scale)


def to_grayscale(pixels: np.ndarray) -> np.ndarray:
    # Luma weights with round-half-up, matching canvas pixel rounding.
    if pixels.ndim == 2:
        return pixels.astype(np.uint8, copy=True)
    if pixels.shape[2] == 1:
        return pixels[:, :, 0].astype(np.uint8, copy=True)
    rgb = pixels[:, :, :3].astype(np.float64)
    luminance = 0.299 * rgb[:, :, 0] + 0.587 * rgb[:, :, 1] + 0.114 * rgb[:, :, 2]
    return np.clip(np.floor(luminance + 0.5), 0, 255).astype(np.uint8)


def smooth(gray: np.ndarray) -> np.ndarray:
    """3x3 Gaussian on interior pixels; the 1-pixel border keeps its gray value."""
    smoothed = gray.copy()
    h, w = gray.shape[:2]
    if h < 3 or w < 3:
        return smoothed

    sums = cv2.filter2D(
        gray.astype(np.float32),
        cv2.CV_32F,
        GAUSSIAN_KERNEL,
        borderType=cv2.BORDER_REPLICATE,
    )
    interior = np.rint(sums[1:-1, 1:-1]).astype(np.int32)
    smoothed[1:-1, 1:-1] = ((interior + GAUSSIAN_KERNEL_SUM // 2) // GAUSSIAN_KERNEL_SUM).astype(
        np.uint8
    )
    return smoothed


def global_threshold(smoothed: np.ndarray, threshold_factor: float) -> float:
    low, high = THRESHOLD_CLAMP
    if smoothed.size == 0:
        return float(low)
    values = smoothed.astype(np.float64)
    mean = float(values.mean())
    std_dev = float(values.std())
    return float(min(high, max(low, mean - threshold_factor * std_dev)))


def binarize(smoothed: np.ndarray, threshold: float) -> np.ndarray:
    return np.where(smoothed < threshold, 0, 255).astype(np.uint8)


def dark_mask(binary: np.ndarray) -> np.ndarray:
    return binary < DARK_LEVEL


def preprocess(pixels: np.ndarray, threshold_factor: float = 0.5) -> PreprocessResult:
    width, height = image_size(pixels)
    if width == 0 or height == 0:
        empty = np.zeros((height, width), dtype=np.uint8)
        return PreprocessResult(
            gray=empty,
            smoothed=empty.copy(),
            binary=empty.copy(),
            threshold=float(THRESHOLD_CLAMP[0]),
        )

    gray = to_grayscale(pixels)
    smoothed = smooth(gray)
    threshold = global_threshold(smoothed, threshold_factor)
    binary = binarize(smoothed, threshold)
    return PreprocessResult(gray=gray, smoothed=smoothed, binary=binary, threshold=threshold)


__all__ = [
    "PreprocessResult",
    "binarize",
    "dark_mask",
    "global_threshold",
    "image_size",
    "preprocess",
    "resize_for_processing",
    "smooth",
    "to_grayscale",
]
