"""
color_math.py — Hex/RGB/HSL/Lab conversions, WCAG contrast and perceptual adjustments.

All public helpers take and return lowercase '#rrggbb' strings. Darken,
brighten and saturate work in CIE Lab / LCh (D65) so a step of 1.0 moves
the color by a perceptually similar amount regardless of hue.

Usage:
    from brand_assets.color_math import contrast_ratio, darken, hex_to_hsl
    contrast_ratio("#ffffff", "#1e293b")   # → 14.6
    darken("#3b82f6", 0.3)
"""

from __future__ import annotations

import colorsys
import math
import re
from typing import Optional, Tuple

_HEX_RE = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

# Lab step used by darken / brighten / saturate
LAB_STEP = 18

# D65 reference white
_XN, _YN, _ZN = 0.950470, 1.0, 1.088830
_T0 = 4 / 29
_T1 = 6 / 29
_T2 = 3 * _T1 ** 2
_T3 = _T1 ** 3


# ── Parsing ───────────────────────────────────────────────────────────────────

def normalize_hex(value: str) -> str:
    """'#ABC' / 'aabbcc' / '#AABBCC' → '#aabbcc'. Raises ValueError on anything else."""
    m = _HEX_RE.match(value.strip()) if isinstance(value, str) else None
    if not m:
        raise ValueError(f"not a hex color: {value!r}")
    h = m.group(1).lower()
    if len(h) == 3:
        h = "".join(c * 2 for c in h)
    return "#" + h


def is_valid_hex(value: str) -> bool:
    try:
        normalize_hex(value)
    except ValueError:
        return False
    return True


def hex_to_rgb(hex_str: str) -> Tuple[int, int, int]:
    h = normalize_hex(hex_str)[1:]
    return int(h[0:2], 16), int(h[2:4], 16), int(h[4:6], 16)


def rgb_to_hex(r: float, g: float, b: float) -> str:
    def _c(v: float) -> int:
        return max(0, min(255, int(round(v))))
    return "#{:02x}{:02x}{:02x}".format(_c(r), _c(g), _c(b))


# ── HSL ───────────────────────────────────────────────────────────────────────

def rgb_to_hsl(r: int, g: int, b: int) -> Tuple[float, float, float]:
    """RGB (0-255) → HSL (H: 0–360, S: 0–1, L: 0–1). Achromatic hue is 0."""
    h, l, s = colorsys.rgb_to_hls(r / 255, g / 255, b / 255)
    return h * 360, s, l


def hex_to_hsl(hex_str: str) -> Tuple[float, float, float]:
    return rgb_to_hsl(*hex_to_rgb(hex_str))


def hsl_to_hex(h: float, s: float, l: float) -> str:
    s = max(0.0, min(1.0, s))
    l = max(0.0, min(1.0, l))
    r, g, b = colorsys.hls_to_rgb((h % 360) / 360, l, s)
    return rgb_to_hex(r * 255, g * 255, b * 255)


def saturation(hex_str: str) -> float:
    return hex_to_hsl(hex_str)[1]


def lightness(hex_str: str) -> float:
    return hex_to_hsl(hex_str)[2]


def hue(hex_str: str) -> float:
    return hex_to_hsl(hex_str)[0]


def hue_difference(h1: float, h2: float) -> float:
    """Circular hue distance, 0–180°."""
    d = abs(h1 - h2) % 360
    return 360 - d if d > 180 else d


def is_neutral(hex_str: str, min_saturation: float = 0.08,
               light: float = 0.95, dark: float = 0.05) -> bool:
    """Near-white, near-black or gray."""
    _, s, l = hex_to_hsl(hex_str)
    if l > light or l < dark:
        return True
    return s < min_saturation


def perceived_luminance(hex_str: str) -> float:
    """ITU-R BT.601 weighted luma on the 0–255 scale."""
    r, g, b = hex_to_rgb(hex_str)
    return 0.299 * r + 0.587 * g + 0.114 * b


# ── WCAG contrast ─────────────────────────────────────────────────────────────

def _linear(c: float) -> float:
    c = c / 255
    return c / 12.92 if c <= 0.03928 else ((c + 0.055) / 1.055) ** 2.4


def relative_luminance(hex_str: str) -> float:
    r, g, b = hex_to_rgb(hex_str)
    return 0.2126 * _linear(r) + 0.7152 * _linear(g) + 0.0722 * _linear(b)


def contrast_ratio(foreground: str, background: str) -> float:
    a = relative_luminance(foreground)
    b = relative_luminance(background)
    lighter, darker = max(a, b), min(a, b)
    return (lighter + 0.05) / (darker + 0.05)


def find_accessible_text(background: str, min_ratio: float = 4.5) -> str:
    """White if it reaches min_ratio, else black, else a near-white/near-black by luminance."""
    if contrast_ratio("#ffffff", background) >= min_ratio:
        return "#ffffff"
    if contrast_ratio("#000000", background) >= min_ratio:
        return "#000000"
    return "#1a1a1a" if relative_luminance(background) > 0.5 else "#f5f5f5"


# ── Lab / LCh ─────────────────────────────────────────────────────────────────

def _rgb_to_xyz_channel(c: float) -> float:
    c = c / 255
    return c / 12.92 if c <= 0.04045 else ((c + 0.055) / 1.055) ** 2.4


def _xyz_to_lab_f(t: float) -> float:
    return t ** (1 / 3) if t > _T3 else t / _T2 + _T0


def _lab_to_xyz_f(t: float) -> float:
    return t ** 3 if t > _T1 else _T2 * (t - _T0)


def _xyz_to_rgb_channel(c: float) -> float:
    v = 12.92 * c if c <= 0.0031308 else 1.055 * c ** (1 / 2.4) - 0.055
    return 255 * v


def hex_to_lab(hex_str: str) -> Tuple[float, float, float]:
    r, g, b = (_rgb_to_xyz_channel(c) for c in hex_to_rgb(hex_str))
    x = (0.4124564 * r + 0.3575761 * g + 0.1804375 * b) / _XN
    y = (0.2126729 * r + 0.7151522 * g + 0.0721750 * b) / _YN
    z = (0.0193339 * r + 0.1191920 * g + 0.9503041 * b) / _ZN
    fx, fy, fz = _xyz_to_lab_f(x), _xyz_to_lab_f(y), _xyz_to_lab_f(z)
    L = 116 * fy - 16
    return (max(L, 0.0), 500 * (fx - fy), 200 * (fy - fz))


def lab_to_hex(L: float, a: float, b: float) -> str:
    fy = (L + 16) / 116
    fx = fy + a / 500
    fz = fy - b / 200
    x = _XN * _lab_to_xyz_f(fx)
    y = _YN * _lab_to_xyz_f(fy)
    z = _ZN * _lab_to_xyz_f(fz)
    r = 3.2404542 * x - 1.5371385 * y - 0.4985314 * z
    g = -0.9692660 * x + 1.8760108 * y + 0.0415560 * z
    bl = 0.0556434 * x - 0.2040259 * y + 1.0572252 * z
    return rgb_to_hex(*(_xyz_to_rgb_channel(max(0.0, min(1.0, c))) for c in (r, g, bl)))


def hex_to_lch(hex_str: str) -> Tuple[float, float, float]:
    L, a, b = hex_to_lab(hex_str)
    c = math.hypot(a, b)
    h = math.degrees(math.atan2(b, a)) % 360
    return L, c, h


def lch_to_hex(L: float, c: float, h: float) -> str:
    rad = math.radians(h)
    return lab_to_hex(L, c * math.cos(rad), c * math.sin(rad))


# ── Adjustments ───────────────────────────────────────────────────────────────

def darken(hex_str: str, amount: float = 1.0) -> str:
    L, a, b = hex_to_lab(hex_str)
    return lab_to_hex(max(0.0, L - LAB_STEP * amount), a, b)


def brighten(hex_str: str, amount: float = 1.0) -> str:
    return darken(hex_str, -amount)


def saturate(hex_str: str, amount: float = 1.0) -> str:
    L, c, h = hex_to_lch(hex_str)
    return lch_to_hex(L, max(0.0, c + LAB_STEP * amount), h)


def boost_saturation(hex_str: str, min_saturation: float, default_hue: float = 220) -> str:
    """Raise HSL saturation to at least min_saturation, keeping hue and lightness."""
    h, s, l = hex_to_hsl(hex_str)
    if s >= min_saturation:
        return normalize_hex(hex_str)
    return hsl_to_hex(h if s > 0 else default_hue, min_saturation, l)


def shift_hue_toward(hex_str: str, target_hue: float, max_shift: float) -> str:
    """Rotate hue along the shorter arc toward target_hue, by at most max_shift degrees."""
    h, s, l = hex_to_hsl(hex_str)
    diff = ((target_hue - h + 540) % 360) - 180
    shift = math.copysign(min(abs(diff), max_shift), diff)
    return hsl_to_hex((h + shift + 360) % 360, s, l)


def desaturate_to_neutral(hex_str: str) -> str:
    """Same HSL lightness, zero saturation."""
    return hsl_to_hex(0, 0, lightness(hex_str))


def derive_sidebar(brand_hex: Optional[str], min_saturation: float = 0.3,
                   target_lightness: float = 0.2, default_hue: float = 220) -> str:
    """Dark, saturated surface in the brand's hue family."""
    if not brand_hex:
        return "#1e293b"
    h, s, _ = hex_to_hsl(brand_hex)
    return hsl_to_hex(h if s > 0 else default_hue, max(s, min_saturation), target_lightness)
