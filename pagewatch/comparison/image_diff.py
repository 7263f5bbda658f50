"""Pixel-level screenshot comparison.

Screenshots of different sizes are not rejected: both are placed top-left on
a transparent canvas of the larger width and height, so extra page length is
compared as additional area. Pixel comparison follows the pixelmatch
algorithm: YIQ-weighted colour distance with anti-aliasing detection.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)

DEFAULT_COLOR_THRESHOLD = 0.01

# Largest possible YIQ distance (black vs white)
MAX_YIQ_DELTA = 35215

DIFF_COLOR = (255, 0, 0)
AA_COLOR = (255, 255, 0)

# Candidate pixels are checked for anti-aliasing in chunks to bound memory
_AA_CHUNK = 1 << 18

# x-major order, matching the reference scan so ties pick the same neighbour
_NEIGHBOURS = [(dx, dy) for dx in (-1, 0, 1) for dy in (-1, 0, 1) if (dx, dy) != (0, 0)]


class ImageComparisonError(RuntimeError):
    """Raised when two images cannot be decoded or compared."""


@dataclass
class ImageComparison:
    diff_pixels: int
    total_pixels: int
    width: int  # normalised canvas size
    height: int


def load_rgba(path: str | Path) -> np.ndarray:
    """Decode an image file into an (H, W, 4) uint8 RGBA array."""
    with Image.open(path) as img:
        return np.array(img.convert("RGBA"), dtype=np.uint8)


def pad_to(pixels: np.ndarray, width: int, height: int) -> np.ndarray:
    """Copy pixels into the top-left of a transparent width x height canvas."""
    h, w = pixels.shape[:2]
    if (w, h) == (width, height):
        return pixels
    canvas = np.zeros((height, width, 4), dtype=np.uint8)
    canvas[:h, :w] = pixels
    return canvas


def _blend_white(pixels: np.ndarray) -> np.ndarray:
    rgb = pixels[..., :3].astype(np.float32)
    alpha = pixels[..., 3:4].astype(np.float32) / 255.0
    return 255.0 + (rgb - 255.0) * alpha


def _rgb2y(rgb: np.ndarray) -> np.ndarray:
    return rgb[..., 0] * 0.29889531 + rgb[..., 1] * 0.58662247 + rgb[..., 2] * 0.11448223


def _rgb2i(rgb: np.ndarray) -> np.ndarray:
    return rgb[..., 0] * 0.59597799 - rgb[..., 1] * 0.27417610 - rgb[..., 2] * 0.32180189


def _rgb2q(rgb: np.ndarray) -> np.ndarray:
    return rgb[..., 0] * 0.21147017 - rgb[..., 1] * 0.52261711 + rgb[..., 2] * 0.31114694


def _color_delta(blended1: np.ndarray, blended2: np.ndarray) -> np.ndarray:
    y = _rgb2y(blended1) - _rgb2y(blended2)
    i = _rgb2i(blended1) - _rgb2i(blended2)
    q = _rgb2q(blended1) - _rgb2q(blended2)
    return 0.5053 * y * y + 0.299 * i * i + 0.1957 * q * q


def _pack(pixels: np.ndarray) -> np.ndarray:
    """View RGBA pixels as one uint32 per pixel for exact equality tests."""
    return np.ascontiguousarray(pixels).view(np.uint32)[..., 0]


def _is_edge(ys: np.ndarray, xs: np.ndarray, height: int, width: int) -> np.ndarray:
    return (xs == 0) | (xs == width - 1) | (ys == 0) | (ys == height - 1)


def _has_many_siblings(packed: np.ndarray, ys: np.ndarray, xs: np.ndarray) -> np.ndarray:
    """True where more than two neighbours (edges count as one) are identical."""
    h, w = packed.shape
    zeroes = _is_edge(ys, xs, h, w).astype(np.int32)
    centre = packed[ys, xs]
    for dx, dy in _NEIGHBOURS:
        nx, ny = xs + dx, ys + dy
        valid = (nx >= 0) & (nx < w) & (ny >= 0) & (ny < h)
        same = packed[np.clip(ny, 0, h - 1), np.clip(nx, 0, w - 1)] == centre
        zeroes += valid & same
    return zeroes > 2


def _antialiased(
    lum: np.ndarray,
    packed: np.ndarray,
    other_packed: np.ndarray,
    ys: np.ndarray,
    xs: np.ndarray,
) -> np.ndarray:
    """Detect pixels that sit on an anti-aliased edge in ``lum``'s image."""
    h, w = lum.shape
    n = len(ys)
    rows = np.arange(n)
    deltas = np.zeros((n, len(_NEIGHBOURS)), dtype=np.float32)
    valid = np.zeros((n, len(_NEIGHBOURS)), dtype=bool)
    nys = np.zeros((n, len(_NEIGHBOURS)), dtype=np.intp)
    nxs = np.zeros((n, len(_NEIGHBOURS)), dtype=np.intp)

    centre = lum[ys, xs]
    for k, (dx, dy) in enumerate(_NEIGHBOURS):
        nx, ny = xs + dx, ys + dy
        valid[:, k] = (nx >= 0) & (nx < w) & (ny >= 0) & (ny < h)
        nys[:, k] = np.clip(ny, 0, h - 1)
        nxs[:, k] = np.clip(nx, 0, w - 1)
        deltas[:, k] = centre - lum[nys[:, k], nxs[:, k]]

    zeroes = _is_edge(ys, xs, h, w).astype(np.int32) + np.sum(valid & (deltas == 0), axis=1)

    low = np.where(valid, deltas, np.inf)
    high = np.where(valid, deltas, -np.inf)
    min_k = np.argmin(low, axis=1)
    max_k = np.argmax(high, axis=1)
    has_gradient = (zeroes <= 2) & (low[rows, min_k] < 0) & (high[rows, max_k] > 0)

    min_y, min_x = nys[rows, min_k], nxs[rows, min_k]
    max_y, max_x = nys[rows, max_k], nxs[rows, max_k]
    darkest = _has_many_siblings(packed, min_y, min_x) & _has_many_siblings(other_packed, min_y, min_x)
    brightest = _has_many_siblings(packed, max_y, max_x) & _has_many_siblings(other_packed, max_y, max_x)
    return has_gradient & (darkest | brightest)


def _gray_background(pixels: np.ndarray, alpha: float) -> np.ndarray:
    rgb = pixels[..., :3].astype(np.float32)
    opacity = pixels[..., 3].astype(np.float32) / 255.0
    value = 255.0 + (_rgb2y(rgb) - 255.0) * alpha * opacity
    out = np.empty(pixels.shape, dtype=np.uint8)
    out[..., :3] = np.clip(value, 0, 255).astype(np.uint8)[..., None]
    out[..., 3] = 255
    return out


def pixelmatch(
    img1: np.ndarray,
    img2: np.ndarray,
    threshold: float = 0.1,
    include_aa: bool = False,
    alpha: float = 0.1,
) -> tuple[int, np.ndarray]:
    """Count perceptually different pixels between two same-sized RGBA arrays.

    Returns the diff count and a visualisation: differing pixels red,
    anti-aliased pixels yellow, everything else a faded greyscale of ``img1``.
    """
    if img1.shape != img2.shape:
        raise ValueError(f"Image sizes do not match: {img1.shape} vs {img2.shape}")

    output = _gray_background(img1, alpha)
    if np.array_equal(img1, img2):
        return 0, output

    max_delta = MAX_YIQ_DELTA * threshold * threshold
    blended1 = _blend_white(img1)
    blended2 = _blend_white(img2)
    ys, xs = np.nonzero(_color_delta(blended1, blended2) > max_delta)

    if not include_aa and len(ys):
        lum1, lum2 = _rgb2y(blended1), _rgb2y(blended2)
        packed1, packed2 = _pack(img1), _pack(img2)
        aa = np.zeros(len(ys), dtype=bool)
        for start in range(0, len(ys), _AA_CHUNK):
            chunk = slice(start, start + _AA_CHUNK)
            aa[chunk] = (
                _antialiased(lum1, packed1, packed2, ys[chunk], xs[chunk])
                | _antialiased(lum2, packed2, packed1, ys[chunk], xs[chunk])
            )
        output[ys[aa], xs[aa], :3] = AA_COLOR
        ys, xs = ys[~aa], xs[~aa]

    output[ys, xs, :3] = DIFF_COLOR
    return int(len(ys)), output


def compare_image_arrays(
    img1: np.ndarray,
    img2: np.ndarray,
    threshold: float = DEFAULT_COLOR_THRESHOLD,
) -> tuple[ImageComparison, np.ndarray]:
    """Compare two RGBA arrays, padding to the larger canvas when sizes differ."""
    h1, w1 = img1.shape[:2]
    h2, w2 = img2.shape[:2]
    width, height = max(w1, w2), max(h1, h2)
    if (w1, h1) != (w2, h2):
        logger.debug("Normalising %dx%d and %dx%d to %dx%d", w1, h1, w2, h2, width, height)
        img1 = pad_to(img1, width, height)
        img2 = pad_to(img2, width, height)

    diff_pixels, diff = pixelmatch(img1, img2, threshold=threshold)
    return ImageComparison(
        diff_pixels=diff_pixels,
        total_pixels=width * height,
        width=width,
        height=height,
    ), diff


def compare_images(
    path1: str | Path,
    path2: str | Path,
    output_diff_path: str | Path | None = None,
    threshold: float = DEFAULT_COLOR_THRESHOLD,
) -> ImageComparison:
    """Compare two image files; writes the diff PNG only when pixels differ.

    Raises ImageComparisonError if either image cannot be decoded. Callers
    treat that as "comparison unavailable" for the page.
    """
    try:
        img1 = load_rgba(path1)
        img2 = load_rgba(path2)
        result, diff = compare_image_arrays(img1, img2, threshold=threshold)
        if result.diff_pixels > 0 and output_diff_path:
            out = Path(output_diff_path)
            out.parent.mkdir(parents=True, exist_ok=True)
            Image.fromarray(diff).save(out)
    except Exception as e:
        raise ImageComparisonError(f"Failed to compare images: {e}") from e
    return result
