"""
pixels.py — Pixel statistics used by the brand-mark and hero scorers.

Every function takes an RGB uint8 numpy array of shape (h, w, 3) produced by
`to_array(thumbnail(...))` and returns a plain number. Typical ranges on a
50×50 thumbnail:

    signal             photo        logo-on-white   text banner
    edge_density       15–40+       2–6             8–14
    spatial_spread     0.72–1.0     0.12–0.32       0.40–0.56
    low_gradient_ratio 0.05–0.15    0.60–0.90       0.40–0.70
"""

from __future__ import annotations

from typing import Tuple

import numpy as np
from PIL import Image

from . import imaging

# ── Thresholds ────────────────────────────────────────────────────────────────

LOW_GRADIENT_THRESHOLD  = 10     # summed RGB diff below this is "flat"
SPREAD_GRID             = 5
SPREAD_ACTIVITY         = 10     # mean abs deviation above this is an active cell
FLOOD_TOLERANCE         = 20     # per channel, summed over 3 channels
HIGH_CONTRAST_GRADIENT  = 40
BORDER_FRACTION         = 0.10
EDGE_SAMPLE_STRIP       = 0.05
DEFAULT_EDGE_COLOR      = "#f5f5f5"

MONOGRAM_SIZE           = 64
MONOGRAM_THRESHOLD      = 128
MONOGRAM_FG_CEILING     = 0.35
MONOGRAM_BBOX_CEILING   = 0.50
MONOGRAM_LIKELY         = 0.45

PHOTO_COLOR_FLOOR       = 80
PHOTO_COLOR_RANGE       = 120
PHOTO_GRAD_CEILING      = 0.40
PHOTO_GRAD_RANGE        = 0.30


# ── Conversion ────────────────────────────────────────────────────────────────

def thumbnail(img: Image.Image, width: int, height: int, fit: str = "cover") -> Image.Image:
    """Alpha-free RGB thumbnail. Transparent areas become white."""
    return imaging.flatten(imaging.resize(imaging.flatten(img), width, height, fit=fit))


def to_array(img: Image.Image) -> np.ndarray:
    return np.asarray(img.convert("RGB"), dtype=np.uint8)


def _clamp01(v: float) -> float:
    return max(0.0, min(1.0, v))


# ── Colour count ──────────────────────────────────────────────────────────────

def quantize(arr: np.ndarray, step: int) -> np.ndarray:
    # half-up, not Python's half-to-even
    return (np.floor(arr.astype(np.float64) / step + 0.5) * step).astype(np.int32)


def quantized_color_count(arr: np.ndarray, step: int = 16) -> int:
    q = quantize(arr, step).reshape(-1, 3)
    return int(np.unique(q, axis=0).shape[0])


# ── Gradients ─────────────────────────────────────────────────────────────────

def _diffs(arr: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    a = arr.astype(np.int16)
    horiz = np.abs(a[:, 1:] - a[:, :-1])    # (h, w-1, 3)
    vert  = np.abs(a[1:, :] - a[:-1, :])    # (h-1, w, 3)
    return horiz, vert


def edge_density(arr: np.ndarray) -> float:
    """Mean per-pixel gradient against right and bottom neighbours (0–255)."""
    h, w = arr.shape[:2]
    if h == 0 or w == 0:
        return 0.0
    horiz, vert = _diffs(arr)
    edge = np.zeros((h, w), dtype=np.float64)
    n = np.zeros((h, w), dtype=np.float64)
    edge[:, :-1] += horiz.sum(axis=2)
    n[:, :-1] += 3
    edge[:-1, :] += vert.sum(axis=2)
    n[:-1, :] += 3
    has = n > 0
    if not has.any():
        return 0.0
    return float((edge[has] / n[has]).sum() / (h * w))


def low_gradient_ratio(arr: np.ndarray, threshold: int = LOW_GRADIENT_THRESHOLD) -> float:
    """Fraction of neighbour pairs whose summed RGB difference is below threshold."""
    horiz, vert = _diffs(arr)
    pairs = np.concatenate([horiz.sum(axis=2).ravel(), vert.sum(axis=2).ravel()])
    if pairs.size == 0:
        return 1.0
    return float((pairs < threshold).mean())


def high_contrast_edge_ratio(arr: np.ndarray, threshold: float = HIGH_CONTRAST_GRADIENT) -> float:
    h, w = arr.shape[:2]
    if h < 2 or w < 2:
        return 0.0
    a = arr.astype(np.int16)
    hg = np.abs(a[:-1, :-1] - a[:-1, 1:]).sum(axis=2) / 3
    vg = np.abs(a[:-1, :-1] - a[1:, :-1]).sum(axis=2) / 3
    return float((np.maximum(hg, vg) > threshold).mean())


def edge_orientation_bias(arr: np.ndarray) -> float:
    """|H − V| / (H + V) over summed horizontal and vertical gradients."""
    h, w = arr.shape[:2]
    if h < 2 or w < 2:
        return 0.0
    a = arr.astype(np.int16)
    h_sum = float((np.abs(a[:-1, :-1] - a[:-1, 1:]).sum(axis=2) / 3).sum())
    v_sum = float((np.abs(a[:-1, :-1] - a[1:, :-1]).sum(axis=2) / 3).sum())
    total = h_sum + v_sum
    return abs(h_sum - v_sum) / total if total > 0 else 0.0


# ── Layout ────────────────────────────────────────────────────────────────────

def spatial_spread(arr: np.ndarray, grid: int = SPREAD_GRID,
                   activity: float = SPREAD_ACTIVITY) -> float:
    """Fraction of grid cells that contain detail rather than flat background."""
    h, w = arr.shape[:2]
    cell_w, cell_h = w // grid, h // grid
    if cell_w == 0 or cell_h == 0:
        return 0.0
    a = arr.astype(np.float64)
    active = 0
    for gy in range(grid):
        for gx in range(grid):
            cell = a[gy * cell_h:(gy + 1) * cell_h, gx * cell_w:(gx + 1) * cell_w].reshape(-1, 3)
            dev = np.abs(cell - cell.mean(axis=0)).sum(axis=1) / 3
            if dev.mean() > activity:
                active += 1
    return active / (grid * grid)


def background_uniformity(arr: np.ndarray, tolerance: int = FLOOD_TOLERANCE) -> float:
    """Share of pixels reachable by a 4-connected flood fill from the four corners."""
    h, w = arr.shape[:2]
    total = h * w
    if total == 0:
        return 0.0
    a = arr.astype(np.int16)
    visited = np.zeros((h, w), dtype=bool)
    limit = tolerance * 3
    filled = 0
    for cx, cy in ((0, 0), (w - 1, 0), (0, h - 1), (w - 1, h - 1)):
        seed = a[cy, cx]
        stack = [(cx, cy)]
        while stack:
            px, py = stack.pop()
            if px < 0 or px >= w or py < 0 or py >= h or visited[py, px]:
                continue
            if int(np.abs(a[py, px] - seed).sum()) > limit:
                continue
            visited[py, px] = True
            filled += 1
            stack.extend(((px + 1, py), (px - 1, py), (px, py + 1), (px, py - 1)))
    return filled / total


def saturation_spread(arr: np.ndarray) -> Tuple[float, float]:
    """Mean and population standard deviation of HSL saturation."""
    f = arr.reshape(-1, 3).astype(np.float64) / 255
    mx, mn = f.max(axis=1), f.min(axis=1)
    l = (mx + mn) / 2
    delta = mx - mn
    denom = np.where(l > 0.5, 2 - mx - mn, mx + mn)
    s = np.where(delta == 0, 0.0, delta / np.where(denom == 0, 1, denom))
    mean = float(s.mean())
    std = float(np.sqrt(max(0.0, float((s * s).mean()) - mean * mean)))
    return mean, std


def border_center_activity_ratio(arr: np.ndarray, fraction: float = BORDER_FRACTION) -> float:
    """Mean colourfulness of the border band divided by that of the centre."""
    h, w = arr.shape[:2]
    band = int(round(w * fraction))
    a = arr.astype(np.float64)
    gray = a.mean(axis=2, keepdims=True)
    dev = np.abs(a - gray).sum(axis=2) / 3
    ys, xs = np.mgrid[0:h, 0:w]
    border = (xs < band) | (xs >= w - band) | (ys < band) | (ys >= h - band)
    if not border.any() or border.all():
        return 1.0
    center_mean = dev[~border].mean()
    if center_mean == 0:
        return float("inf")
    return float(dev[border].mean() / center_mean)


def border_mean_color(arr: np.ndarray, strip: float = EDGE_SAMPLE_STRIP) -> str:
    """Average colour of a thin strip around all four edges, as hex."""
    h, w = arr.shape[:2]
    if h == 0 or w == 0:
        return DEFAULT_EDGE_COLOR
    s = max(1, int(round(w * strip)))
    ys, xs = np.mgrid[0:h, 0:w]
    border = (xs < s) | (xs >= w - s) | (ys < s) | (ys >= h - s)
    px = arr[border].astype(np.float64)
    if px.size == 0:
        return DEFAULT_EDGE_COLOR
    r, g, b = (int(np.floor(v + 0.5)) for v in px.mean(axis=0))
    return "#{:02x}{:02x}{:02x}".format(r, g, b)


# ── Brand-mark signals ────────────────────────────────────────────────────────

def monogram_signal(img: Image.Image) -> Tuple[bool, float]:
    """
    Detect a single-letter / text-only mark.

    Renders the image contain-fit on white at 64×64, thresholds at 128 and
    measures how much of the canvas the foreground covers and how much of
    the frame its bounding box spans. A lone glyph scores low on both.
    Returns (is_likely_monogram, confidence 0–1).
    """
    canvas = imaging.resize(img.convert("RGBA"), MONOGRAM_SIZE, MONOGRAM_SIZE,
                            fit="contain", background=(255, 255, 255, 255))
    gray = np.asarray(imaging.flatten(canvas).convert("L"), dtype=np.uint8)
    fg = gray < MONOGRAM_THRESHOLD
    count = int(fg.sum())
    if count == 0:
        return False, 0.0
    fg_ratio = count / fg.size
    coords = np.argwhere(fg)
    y1, x1 = coords.min(axis=0)
    y2, x2 = coords.max(axis=0)
    bbox_fill = (y2 - y1 + 1) * (x2 - x1 + 1) / float(fg.size)

    fg_signal = (MONOGRAM_FG_CEILING - fg_ratio) / MONOGRAM_FG_CEILING if fg_ratio < MONOGRAM_FG_CEILING else 0.0
    bbox_signal = (MONOGRAM_BBOX_CEILING - bbox_fill) / MONOGRAM_BBOX_CEILING if bbox_fill < MONOGRAM_BBOX_CEILING else 0.0
    confidence = min(1.0, (fg_signal + bbox_signal) / 1.4)
    return confidence > MONOGRAM_LIKELY, confidence


def photo_signal(arr: np.ndarray, step: int = 16) -> Tuple[float, float]:
    """
    Photographic-ness of a would-be icon. Returns (smooth_ratio, penalty).

    Icons are mostly flat with few colours; photos have many colours and
    few flat neighbour pairs.
    """
    unique = quantized_color_count(arr, step)
    low = low_gradient_ratio(arr)
    color_signal = _clamp01((unique - PHOTO_COLOR_FLOOR) / PHOTO_COLOR_RANGE)
    grad_signal = _clamp01((PHOTO_GRAD_CEILING - low) / PHOTO_GRAD_RANGE)
    smooth = (color_signal + grad_signal) / 2
    if smooth < 0.45:
        penalty = 1.0
    elif smooth <= 0.65:
        penalty = 0.7
    else:
        penalty = 0.35
    return smooth, penalty
