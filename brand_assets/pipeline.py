"""
pipeline.py — Run all three asset gates for one scraped page.

Pipeline steps:
  1. Brand mark   (favicon / manifest / logo → square PNG or initials fallback)
  2. Colours      (accent selection → naive scheme → quality gate)
  3. Hero image   (OG image → scraped heroes → deterministic gradient)

Steps 1–3 are independent and run side by side in a thread pool. The hero
gradient fallback needs the final colours, so it is rendered after step 2.

Usage:
    from brand_assets.pipeline import build_preview_assets, run_page_file
    assets = build_preview_assets(ScrapedPage(**page_json))
    result = run_page_file(Path("page.json"), Path("assets.json"))
"""

from __future__ import annotations

import json
import time
import traceback
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from rich.console import Console

from . import fallbacks
from .accent import generate_validated_color_scheme, select_accent_with_context
from .brand_mark import select_brand_mark
from .config import DEFAULT_CONFIG, AssetGateConfig
from .hero import select_hero
from .models import HeroSelection, PreviewAssets, ScrapedPage, SelectionResult, ValidatedColorScheme

console = Console()

ProgressCallback = Callable[[str], None]


# ── Result model ──────────────────────────────────────────────────────────────

@dataclass
class PipelineResult:
    """Output from one page run."""
    success: bool
    assets: Optional[PreviewAssets] = None
    output_path: Optional[Path] = None
    error: str = ""
    elapsed_seconds: float = 0.0


# ── Steps ─────────────────────────────────────────────────────────────────────

def all_extracted_colors(page: ScrapedPage) -> List[str]:
    seen = set()
    out: List[str] = []
    for c in page.colors + [u.color for u in page.colors_with_usage] + page.link_button_colors:
        key = c.lower()
        if key not in seen:
            seen.add(key)
            out.append(c)
    return out


def run_colors(page: ScrapedPage, config: AssetGateConfig = DEFAULT_CONFIG) -> ValidatedColorScheme:
    selection = select_accent_with_context(page.favicon, page.logo, page.link_button_colors, config)
    return generate_validated_color_scheme(
        page.nav_header_background,
        selection.result,
        favicon_saturation=selection.favicon_saturation,
        logo_saturation=selection.logo_saturation,
        link_button_colors=page.link_button_colors,
        all_extracted_colors=all_extracted_colors(page),
        config=config,
    )


def gradient_hero(page: ScrapedPage, colors: ValidatedColorScheme,
                  selection: Optional[HeroSelection] = None) -> HeroSelection:
    """
    Deterministic hero from the validated accent and sidebar: a gradient when
    the stops are diverse enough, otherwise a flat sidebar-colour fill.
    """
    domain = fallbacks.extract_domain(page.url)
    stops = [colors.colors.accent, colors.colors.sidebar_background]
    stop_list, used_preset = fallbacks.gradient_stops(stops, domain)
    diversity = fallbacks.score_palette_diversity(stop_list, used_preset)
    log = list(selection.log) if selection else []
    log.append(f"gradient: {diversity['reason']}")
    if diversity["use_gradient"]:
        style, data_url = "gradient", fallbacks.render_gradient_hero(stop_list, domain)
    else:
        style, data_url = "flat", fallbacks.render_flat_hero(colors.colors.sidebar_background)
    return HeroSelection(
        source="gradient",
        fallback_style=style,
        gradient_data_url=data_url,
        log=log,
    )


def build_preview_assets(
    page: ScrapedPage,
    config: AssetGateConfig = DEFAULT_CONFIG,
    skip_hero: bool = False,
    on_progress: Optional[ProgressCallback] = None,
) -> PreviewAssets:
    start = time.time()
    _progress(on_progress, f"Evaluating assets for {page.url}")

    with ThreadPoolExecutor(max_workers=3) as executor:
        mark_future = executor.submit(
            select_brand_mark, page.favicon, page.logo, page.manifest_icons, config
        )
        colors_future = executor.submit(run_colors, page, config)
        hero_future = None if skip_hero else executor.submit(
            select_hero, page.og_image, page.images, config
        )
        brand_mark: SelectionResult = mark_future.result()
        _progress(on_progress, "Brand mark selected")
        colors: ValidatedColorScheme = colors_future.result()
        _progress(on_progress, "Colour scheme validated")
        hero: Optional[HeroSelection] = hero_future.result() if hero_future else None

    if hero is not None and hero.source == "gradient":
        hero = gradient_hero(page, colors, hero)
    if hero is not None:
        _progress(on_progress, f"Hero: {hero.source}")

    return PreviewAssets(
        url=page.url,
        brand_mark=brand_mark,
        hero=hero,
        colors=colors,
        elapsed_seconds=round(time.time() - start, 3),
    )


def run_page_file(
    page_path: Path,
    output_path: Optional[Path] = None,
    config: AssetGateConfig = DEFAULT_CONFIG,
    skip_hero: bool = False,
    on_progress: Optional[ProgressCallback] = None,
) -> PipelineResult:
    """Load a scraped-page JSON document, build its assets, optionally write them out."""
    start = time.time()
    try:
        page = ScrapedPage(**json.loads(Path(page_path).read_text(encoding="utf-8")))
        assets = build_preview_assets(page, config, skip_hero, on_progress)
        if output_path is not None:
            output_path = Path(output_path)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_text(assets.model_dump_json(indent=2), encoding="utf-8")
        return PipelineResult(
            success=True,
            assets=assets,
            output_path=output_path,
            elapsed_seconds=time.time() - start,
        )
    except Exception as e:
        return PipelineResult(
            success=False,
            error=f"{e}\n\n{traceback.format_exc()}",
            elapsed_seconds=time.time() - start,
        )


def _progress(cb: Optional[ProgressCallback], message: str) -> None:
    if cb is not None:
        cb(message)
    else:
        console.print(f"  [dim]{message}[/dim]")
