"""
Screenshot decoding and perceptual diffing.

The colour distance follows pixelmatch: both pixels are blended onto white,
converted to YIQ, and compared with a weighted squared distance. A pixel
counts as changed when that distance exceeds ``35215 * threshold**2``, so
small anti-aliasing and compression noise is ignored.
"""

from __future__ import annotations

import base64
import io
from dataclasses import dataclass
from pathlib import Path

import numpy as np
from PIL import Image, UnidentifiedImageError

from gofer.exceptions import CaptureError

MAX_YIQ_DELTA = 35215.0


@dataclass(frozen=True, eq=False)
class Frame:
    """A decoded screenshot plus its base64 transport copy."""

    pixels: np.ndarray  # (height, width, 4) uint8 RGBA
    encoded: str

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @classmethod
    def from_bytes(cls, data: bytes) -> "Frame":
        try:
            with Image.open(io.BytesIO(data)) as image:
                pixels = np.asarray(image.convert("RGBA"), dtype=np.uint8)
        except (UnidentifiedImageError, OSError, ValueError) as exc:
            raise CaptureError(f"Could not decode screenshot: {exc}") from exc
        return cls(pixels=pixels, encoded=base64.b64encode(data).decode("ascii"))


def load_frame(path: Path) -> Frame:
    """Read and decode a screenshot file.

    Raises:
        CaptureError: If the file is missing or not a readable image.
    """
    try:
        data = Path(path).read_bytes()
    except FileNotFoundError as exc:
        raise CaptureError(f"Screenshot file not found: {path}") from exc
    except OSError as exc:
        raise CaptureError(f"Could not read screenshot {path}: {exc}") from exc
    return Frame.from_bytes(data)


def _blend_on_white(pixels: np.ndarray) -> np.ndarray:
    rgba = pixels.astype(np.float64)
    alpha = rgba[..., 3:4] / 255.0
    return 255.0 + (rgba[..., :3] - 255.0) * alpha


def _yiq(rgb: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]
    y = r * 0.29889531 + g * 0.58662247 + b * 0.11448223
    i = r * 0.59597799 - g * 0.27417610 - b * 0.32180189
    q = r * 0.21147017 - g * 0.52261711 + b * 0.31114694
    return y, i, q


def count_changed_pixels(before: np.ndarray, after: np.ndarray, threshold: float = 0.1) -> int:
    """Count pixels whose colour distance exceeds ``threshold`` (0..1).

    Raises:
        ValueError: If the arrays have different shapes.
    """
    if before.shape != after.shape:
        raise ValueError(f"Image shapes differ: {before.shape} vs {after.shape}")

    y1, i1, q1 = _yiq(_blend_on_white(before))
    y2, i2, q2 = _yiq(_blend_on_white(after))
    dy, di, dq = y1 - y2, i1 - i2, q1 - q2
    delta = 0.5053 * dy * dy + 0.299 * di * di + 0.1957 * dq * dq
    return int(np.count_nonzero(delta > MAX_YIQ_DELTA * threshold * threshold))


def change_percentage(before: Frame, after: Frame, threshold: float = 0.1) -> float:
    """Percentage of pixels that changed between two same-sized frames."""
    total = before.width * before.height
    if total == 0:
        return 0.0
    changed = count_changed_pixels(before.pixels, after.pixels, threshold)
    return (changed / total) * 100
