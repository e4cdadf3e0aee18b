"""
accent.py — Pick the accent and sidebar colours for a scraped site.

Accent priority: favicon → logo → first colourful link/button colour.
Sidebar: the nav/header background when it is dark or colourful, otherwise
the accent, otherwise a default slate. The naive scheme then goes through
the quality gate.

Usage:
    from brand_assets.accent import select_accent_with_context, generate_validated_color_scheme
    sel = select_accent_with_context(favicon_url, logo_url, ["#635bff", "#0a2540"])
    validated = generate_validated_color_scheme(nav_bg, sel.result, sel.favicon_saturation,
                                                sel.logo_saturation, link_colors, all_colors)
"""

from __future__ import annotations

import math
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np
from PIL import Image, ImageColor
from rich.console import Console

from . import color_math as cm
from . import imaging, pixels
from .config import DEFAULT_CONFIG, AssetGateConfig
from .models import AccentResult, ColorContext, ColorScheme, ValidatedColorScheme
from .quality_gate import validate_and_fix

console = Console()

DEFAULT_SIDEBAR_BACKGROUND = "#1e293b"
DEFAULT_ACCENT             = "#3b82f6"

EXTRACT_SIZE          = 100
EXTRACT_STEP          = 16
MIN_ACCENT_SATURATION = 0.12
HIGH_CONFIDENCE_SAT   = 0.3
NEUTRAL_SATURATION    = 0.1
LIGHT_NAV_LUMA        = 186

_SVG_HEX_RE   = re.compile(r"#[0-9a-fA-F]{3,6}(?![0-9a-fA-F])")
_SVG_RGB_RE   = re.compile(r"rgb\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)\s*\)")
_SVG_NAMED_RE = re.compile(r"(?:fill|stroke|color)\s*[=:]\s*[\"']?([a-zA-Z]+)[\"']?", re.I)
_SVG_SKIP     = {"none", "transparent", "inherit", "currentcolor", "initial"}


@dataclass
class ExtractedColor:
    color: str
    pixel_count: int
    saturation: float
    is_high_confidence: bool


@dataclass
class AccentSelection:
    result: AccentResult
    favicon_saturation: Optional[float] = None
    logo_saturation: Optional[float] = None


def is_neutral_color(hex_str: str) -> bool:
    return cm.is_neutral(hex_str, min_saturation=NEUTRAL_SATURATION)


def _rank(counts: Dict[str, int]) -> List[ExtractedColor]:
    out = []
    for hex_str, count in counts.items():
        if is_neutral_color(hex_str):
            continue
        sat = cm.saturation(hex_str)
        out.append(ExtractedColor(hex_str, count, sat, sat > HIGH_CONFIDENCE_SAT))
    out.sort(key=lambda c: c.saturation * math.sqrt(c.pixel_count), reverse=True)
    return out


# ── Extraction ────────────────────────────────────────────────────────────────

def extract_colors_with_details(img: Image.Image) -> List[ExtractedColor]:
    """Non-neutral colours of an image, most vibrant-and-frequent first."""
    arr = pixels.to_array(pixels.thumbnail(img, EXTRACT_SIZE, EXTRACT_SIZE, fit="cover"))
    q = pixels.quantize(arr, EXTRACT_STEP).reshape(-1, 3)
    colors, counts = np.unique(q, axis=0, return_counts=True)
    tally = {}
    for (r, g, b), n in zip(colors.tolist(), counts.tolist()):
        hx = cm.rgb_to_hex(r, g, b)
        tally[hx] = tally.get(hx, 0) + n
    return _rank(tally)


def extract_colors_from_svg(svg: str) -> List[ExtractedColor]:
    """fill / stroke / inline colours referenced by an SVG document."""
    tally: Dict[str, int] = {}

    def add(hex_str: str) -> None:
        tally[hex_str] = tally.get(hex_str, 0) + 1

    for m in _SVG_NAMED_RE.finditer(svg):
        name = m.group(1).lower()
        if name in _SVG_SKIP:
            continue
        try:
            add(cm.rgb_to_hex(*ImageColor.getrgb(name)[:3]))
        except ValueError:
            continue
    for m in _SVG_HEX_RE.finditer(svg):
        if cm.is_valid_hex(m.group(0)):
            add(cm.normalize_hex(m.group(0)))
    for m in _SVG_RGB_RE.finditer(svg):
        add(cm.rgb_to_hex(*(int(v) for v in m.groups())))
    return _rank(tally)


def extract_accent_from_url(url: str, timeout: float = 5.0) -> Optional[ExtractedColor]:
    """Top accent candidate of an image URL (raster or SVG), or None."""
    try:
        raw = imaging.fetch_bytes(url, timeout=timeout)
    except imaging.ImageFetchError as e:
        console.print(f"  [dim]accent: fetch failed for {url[:80]} ({e})[/dim]")
        return None
    try:
        if imaging.is_svg(raw):
            colors = extract_colors_from_svg(raw.decode("utf-8", errors="replace"))
        else:
            colors = extract_colors_with_details(imaging.decode(raw))
    except imaging.ImageDecodeError as e:
        console.print(f"  [dim]accent: skipping undecodable image ({e})[/dim]")
        return None
    except Exception as e:
        console.print(f"  [red]✗ accent extraction failed for {url[:80]}: {e}[/red]")
        return None
    return colors[0] if colors else None


# ── Selection ─────────────────────────────────────────────────────────────────

def select_accent_with_context(
    favicon: Optional[str],
    logo: Optional[str],
    link_button_colors: Optional[List[str]] = None,
    config: AssetGateConfig = DEFAULT_CONFIG,
) -> AccentSelection:
    """
    Accent from favicon, then logo, then link/button colours.

    Favicon and logo are both extracted (concurrently) because the quality
    gate needs both saturations even when the favicon already wins.
    """
    timeout = config.brand_mark.fetch_timeout
    with ThreadPoolExecutor(max_workers=2) as executor:
        fav_future = executor.submit(extract_accent_from_url, favicon, timeout) if favicon else None
        logo_future = executor.submit(extract_accent_from_url, logo, timeout) if logo else None
        fav = fav_future.result() if fav_future else None
        logo_color = logo_future.result() if logo_future else None

    selection = AccentSelection(result=AccentResult())
    if fav is not None:
        selection.favicon_saturation = fav.saturation
        if fav.saturation >= MIN_ACCENT_SATURATION:
            selection.result = AccentResult(
                color=fav.color, source="squareIcon",
                is_high_confidence=fav.is_high_confidence, saturation=fav.saturation,
            )
    if logo_color is not None:
        selection.logo_saturation = logo_color.saturation
        if logo_color.saturation >= MIN_ACCENT_SATURATION and selection.result.color is None:
            selection.result = AccentResult(
                color=logo_color.color, source="logo",
                is_high_confidence=logo_color.is_high_confidence, saturation=logo_color.saturation,
            )

    if selection.result.color is None:
        valid = [c for c in (link_button_colors or []) if cm.is_valid_hex(c) and not is_neutral_color(c)]
        if valid:
            sat = cm.saturation(valid[0])
            selection.result = AccentResult(
                color=cm.normalize_hex(valid[0]), source="linkButton",
                is_high_confidence=sat > HIGH_CONFIDENCE_SAT, saturation=sat,
            )

    r = selection.result
    console.print(
        f"  [dim]accent: {r.color or 'none'} (source: {r.source}, "
        f"confidence: {'high' if r.is_high_confidence else 'low'})[/dim]"
    )
    return selection


def select_sidebar_colors(nav_header_background: Optional[str],
                          accent_color: Optional[str]) -> Dict[str, str]:
    """Sidebar background + text from the nav colour, falling back to the accent."""
    nav = nav_header_background if nav_header_background and cm.is_valid_hex(nav_header_background) else None
    if nav is not None and (cm.perceived_luminance(nav) <= LIGHT_NAV_LUMA
                            or cm.saturation(nav) >= MIN_ACCENT_SATURATION):
        background, source = cm.normalize_hex(nav), "navHeader"
    elif accent_color:
        background, source = cm.normalize_hex(accent_color), "accent"
    else:
        background, source = DEFAULT_SIDEBAR_BACKGROUND, "default"
    text = "#1a1a1a" if cm.perceived_luminance(background) > LIGHT_NAV_LUMA else "#ffffff"
    return {"sidebar_background": background, "sidebar_text": text, "source": source}


def generate_color_scheme(nav_header_background: Optional[str],
                          accent_color: Optional[str]) -> ColorScheme:
    sidebar = select_sidebar_colors(nav_header_background, accent_color)
    return ColorScheme(
        sidebar_background=sidebar["sidebar_background"],
        sidebar_text=sidebar["sidebar_text"],
        accent=accent_color or DEFAULT_ACCENT,
    )


def generate_validated_color_scheme(
    nav_header_background: Optional[str],
    accent_result: AccentResult,
    favicon_saturation: Optional[float] = None,
    logo_saturation: Optional[float] = None,
    link_button_colors: Optional[List[str]] = None,
    all_extracted_colors: Optional[List[str]] = None,
    config: AssetGateConfig = DEFAULT_CONFIG,
) -> ValidatedColorScheme:
    accent_color = accent_result.color if accent_result.color and cm.is_valid_hex(accent_result.color) else None
    naive = generate_color_scheme(nav_header_background, accent_color)
    saturation = cm.saturation(accent_color) if accent_color else 0.0
    context = ColorContext(
        accent_result=accent_result.model_copy(update={"saturation": saturation}),
        nav_header_background=nav_header_background,
        favicon_saturation=favicon_saturation,
        logo_saturation=logo_saturation,
        link_button_colors=list(link_button_colors or []),
        all_extracted_colors=list(all_extracted_colors or []),
    )
    return validate_and_fix(naive, context, config)
