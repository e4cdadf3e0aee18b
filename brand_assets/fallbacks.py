"""
fallbacks.py — Deterministic stand-ins when no scraped asset is good enough.

Nothing here is random: every "choice" is `hash_string(domain) % n`, so the
same site always gets the same gradient angle, the same preset and the same
variant.

Usage:
    from brand_assets.fallbacks import render_flat_hero, render_gradient_hero, score_palette_diversity
    div = score_palette_diversity(["#635bff", "#00d4ff", "#0a2540"])
    if div["use_gradient"]:
        url = render_gradient_hero(["#635bff", "#00d4ff"], "stripe.com")
    else:
        url = render_flat_hero("#0a2540")
"""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple
from urllib.parse import urlparse

import numpy as np
from PIL import Image

from . import color_math, imaging

GRADIENT_SIZE        = 1200
GRADIENT_MAX_STOPS   = 4
GRADIENT_ANGLES      = [120, 135, 150, 160, 200, 225, 315]
DIVERSITY_THRESHOLD  = 0.45
PRESET_PENALTY       = 0.15
GRAY_SATURATION      = 0.10

# Used when the page gives us fewer than two usable colours
PRESET_PALETTES: List[List[str]] = [
    ["#6366f1", "#8b5cf6"],
    ["#0ea5e9", "#6366f1"],
    ["#14b8a6", "#0ea5e9"],
    ["#f97316", "#ec4899"],
    ["#1e293b", "#3b82f6"],
]


# ── Hashing ───────────────────────────────────────────────────────────────────

def hash_string(s: str) -> int:
    """djb2, unsigned 32-bit. Same string, same number, on every platform."""
    h = 5381
    for ch in s:
        h = ((h << 5) + h + ord(ch)) & 0xFFFFFFFF
    return h


def extract_domain(url: str) -> str:
    """'https://www.stripe.com/pricing' → 'stripe.com'"""
    raw = url if "://" in url else "http://" + url
    host = (urlparse(raw).hostname or url).lower()
    return host[4:] if host.startswith("www.") else host


def pick_for_domain(domain: str, options: Sequence):
    if not options:
        raise ValueError("no options to pick from")
    return options[hash_string(domain) % len(options)]


# ── Palette diversity ─────────────────────────────────────────────────────────

def score_palette_diversity(stops: List[str], used_preset: bool = False) -> Dict[str, object]:
    """
    How rich a set of gradient stops is, 0 (flat wash) to 1 (multi-hue).

    hue spread 30%, luminance range 30%, mean saturation 20%, stop count 20%,
    minus 0.15 when the stops came from a preset.
    """
    parsed: List[Tuple[float, float, float]] = []
    for hex_str in stops:
        if not color_math.is_valid_hex(hex_str):
            continue
        h, s, _ = color_math.hex_to_hsl(hex_str)
        parsed.append((h, s, color_math.relative_luminance(hex_str)))
    if not parsed:
        return {"score": 0.0, "use_gradient": False, "reason": "no valid color stops"}

    hue_score = 0.0
    if len(parsed) >= 2 and not all(s < GRAY_SATURATION for _, s, _ in parsed):
        max_diff = 0.0
        for i in range(len(parsed)):
            for j in range(i + 1, len(parsed)):
                if parsed[i][1] < GRAY_SATURATION or parsed[j][1] < GRAY_SATURATION:
                    continue
                max_diff = max(max_diff, color_math.hue_difference(parsed[i][0], parsed[j][0]))
        hue_score = min(max_diff / 120, 1.0)

    lums = [lum for _, _, lum in parsed]
    lum_score = min((max(lums) - min(lums)) / 0.45, 1.0)
    sat_score = min(sum(s for _, s, _ in parsed) / len(parsed) / 0.40, 1.0)
    count_score = (len(parsed) - 1) / 3

    raw = 0.30 * hue_score + 0.30 * lum_score + 0.20 * sat_score + 0.20 * count_score
    penalty = PRESET_PENALTY if used_preset else 0.0
    score = max(0.0, round((raw - penalty) * 100) / 100)
    use_gradient = score >= DIVERSITY_THRESHOLD
    reason = (
        f"score={score:.2f} (hue={hue_score:.2f} lum={lum_score:.2f} "
        f"sat={sat_score:.2f} count={count_score:.2f}"
        f"{' preset=-0.15' if used_preset else ''}) → {'gradient' if use_gradient else 'flat'}"
    )
    return {"score": score, "use_gradient": use_gradient, "reason": reason}


# ── Gradient hero ─────────────────────────────────────────────────────────────

def gradient_stops(colors: List[str], domain: str) -> Tuple[List[str], bool]:
    """Up to four valid, distinct stops; a domain-picked preset when fewer than two."""
    stops: List[str] = []
    for c in colors:
        if color_math.is_valid_hex(c):
            hx = color_math.normalize_hex(c)
            if hx not in stops:
                stops.append(hx)
        if len(stops) == GRADIENT_MAX_STOPS:
            break
    if len(stops) >= 2:
        return stops, False
    return list(pick_for_domain(domain, PRESET_PALETTES)), True


def render_gradient(stops: List[str], angle: float, size: int = GRADIENT_SIZE) -> Image.Image:
    """Linear gradient across the square at the given CSS-style angle."""
    rgb = np.array([color_math.hex_to_rgb(s) for s in stops], dtype=np.float64)
    positions = np.linspace(0.0, 1.0, len(stops))
    rad = np.radians(angle)
    dx, dy = np.sin(rad), -np.cos(rad)
    ys, xs = np.mgrid[0:size, 0:size].astype(np.float64)
    last = max(size - 1, 1)
    xs = xs / last - 0.5
    ys = ys / last - 0.5
    proj = xs * dx + ys * dy
    span = (abs(dx) + abs(dy)) / 2
    t = np.clip((proj + span) / (2 * span), 0.0, 1.0)
    out = np.empty((size, size, 3), dtype=np.float64)
    for ch in range(3):
        out[:, :, ch] = np.interp(t, positions, rgb[:, ch])
    return Image.fromarray(np.round(out).astype(np.uint8), "RGB")


def render_gradient_hero(colors: List[str], domain: str, size: int = GRADIENT_SIZE,
                         quality: int = 82) -> str:
    stops, _ = gradient_stops(colors, domain)
    angle = pick_for_domain(domain, GRADIENT_ANGLES)
    img = render_gradient(stops, angle, size)
    return imaging.to_data_url(imaging.encode(img, "JPEG", quality=quality), "image/jpeg")


def render_flat_hero(color: str, size: int = GRADIENT_SIZE, quality: int = 82) -> str:
    """Single-colour square for palettes too flat to carry a gradient."""
    img = Image.new("RGB", (size, size), color_math.hex_to_rgb(color))
    return imaging.to_data_url(imaging.encode(img, "JPEG", quality=quality), "image/jpeg")
