"""
brand_mark.py — Pick the best square brand mark from favicon / manifest / logo.

Every candidate is fetched, decoded and scored (aspect, resolution, colour
complexity, source trust, monogram penalty, photo penalty). The highest
admissible score wins, except that the favicon is kept when it trails the
leader by less than the preference buffer. If nothing clears the minimum
viable score the caller is told to fall back to an initials avatar.

Usage:
    from brand_assets.brand_mark import select_brand_mark
    result = select_brand_mark(
        favicon="https://acme.com/favicon.ico",
        logo="https://acme.com/logo.png",
        manifest_icons=["https://acme.com/icon-192.png"],
    )
    if not result.fallback:
        result.mark_image          # data:image/png;base64,... (≤300×300 square)
"""

from __future__ import annotations

import re
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from PIL import Image
from rich.console import Console

from . import imaging, pixels
from .config import DEFAULT_CONFIG, AssetGateConfig, BrandMarkConfig
from .models import AnalysisResult, Candidate, SelectionResult

console = Console()

COMPLEXITY_THUMB = 50
COMPLEXITY_STEP  = 16

# Generic favicons shipped by site builders. Matched against favicon URLs only.
PLATFORM_DEFAULT_FAVICONS = [
    re.compile(r"/img/webclip\.png$", re.I),                           # Webflow
    re.compile(r"wp-includes/images/w-logo", re.I),                    # WordPress
    re.compile(r"wp-content/themes/flavor/favicon", re.I),
    re.compile(r"fav-icon\.ico$", re.I),                               # Wix
    re.compile(r"wixstatic\.com/.*/favicon\.ico$", re.I),
    re.compile(r"static1\.squarespace\.com/static/.*/favicon\.ico$", re.I),
    re.compile(r"cdn\.shopify\.com/s/files/.*/favicon", re.I),
    re.compile(r"img\.websitebuilder\.com/.*favicon", re.I),           # GoDaddy
    re.compile(r"weebly\.com/.*/favicon", re.I),
    re.compile(r"sites\.google\.com/.*/favicon", re.I),
]


def platform_default_match(url: str) -> Optional[str]:
    for pattern in PLATFORM_DEFAULT_FAVICONS:
        if pattern.search(url):
            return pattern.pattern
    return None


# ── Candidate gathering ───────────────────────────────────────────────────────

def gather_candidates(
    favicon: Optional[str],
    logo: Optional[str],
    manifest_icons: Optional[List[str]] = None,
    max_manifest: int = 2,
) -> List[Candidate]:
    """favicon, then up to max_manifest manifest icons, then logo. Deduplicated by URL."""
    seen = set()
    out: List[Candidate] = []

    def add(url: Optional[str], source: str) -> None:
        if not url or url in seen:
            return
        seen.add(url)
        out.append(Candidate(url=url, source=source))

    add(favicon, "favicon")
    for icon in (manifest_icons or [])[:max_manifest]:
        add(icon, "manifest")
    add(logo, "logo")
    return out


# ── Sub-scores ────────────────────────────────────────────────────────────────

def score_resolution(max_dim: int) -> float:
    if max_dim >= 192:
        return 100
    if max_dim >= 128:
        return 80 + (max_dim - 128) / 64 * 20
    if max_dim >= 64:
        return 50 + (max_dim - 64) / 64 * 30
    if max_dim >= 32:
        return 25 + (max_dim - 32) / 32 * 25
    if max_dim >= 16:
        return (max_dim - 16) / 16 * 25
    return 0


def score_aspect(width: int, height: int) -> float:
    ratio = width / height
    r = ratio if ratio >= 1 else 1 / ratio
    if r <= 1.05:
        return 100
    if r <= 1.2:
        return 100 - (r - 1.05) / 0.15 * 30
    if r <= 2.0:
        return 70 - (r - 1.2) / 0.8 * 30
    if r <= 3.5:
        return 40 - (r - 2.0) / 1.5 * 25
    return max(0.0, 15 - (r - 3.5) * 4)


def score_complexity(unique_colors: int) -> float:
    n = unique_colors
    if n <= 1:
        return 0
    if n <= 3:
        return 30
    if n <= 10:
        return 60 + (n - 3) / 7 * 40
    return 100


def score_source(source: str, cfg: BrandMarkConfig) -> float:
    return cfg.source_scores.get(source, 0)


def score_monogram(likely: bool, confidence: float) -> float:
    return (1 - confidence) * 100 if likely else 100


# ── Evaluation ────────────────────────────────────────────────────────────────

@dataclass
class _Decoded:
    """Working record: one candidate's pixels, owned for one evaluation."""
    candidate: Candidate
    image: Image.Image


def analyze_image(candidate: Candidate, img: Image.Image,
                  cfg: BrandMarkConfig = DEFAULT_CONFIG.brand_mark) -> AnalysisResult:
    """Score an already-decoded image. Pure: same pixels, same result."""
    width, height = img.size
    if max(width, height) < cfg.min_icon_size:
        return AnalysisResult.rejected(
            candidate,
            f"Too small: {width}×{height} (min {cfg.min_icon_size}px)",
            cfg.weights, width, height,
        )

    thumb = pixels.to_array(pixels.thumbnail(img, COMPLEXITY_THUMB, COMPLEXITY_THUMB, fit="cover"))
    unique = pixels.quantized_color_count(thumb, COMPLEXITY_STEP)
    likely, mono_conf = pixels.monogram_signal(img)
    smooth, penalty = pixels.photo_signal(thumb, COMPLEXITY_STEP)

    sub = {
        "aspect": round(score_aspect(width, height)),
        "resolution": round(score_resolution(max(width, height))),
        "complexity": round(score_complexity(unique)),
        "source": round(score_source(candidate.source, cfg)),
        "monogram": round(score_monogram(likely, mono_conf)),
    }
    base = sum(sub[k] * w for k, w in cfg.weights.items())
    return AnalysisResult(
        candidate=candidate,
        width=width,
        height=height,
        sub_scores=sub,
        total_score=round(base * penalty),
        unique_colors=unique,
        monogram_confidence=round(mono_conf, 3),
        smooth_ratio=round(smooth, 3),
        photo_penalty=penalty,
    )


def _fetch_and_decode(candidate: Candidate, cfg: BrandMarkConfig) -> _Decoded:
    raw = imaging.fetch_bytes(candidate.url, timeout=cfg.fetch_timeout)
    return _Decoded(candidate=candidate, image=imaging.decode(raw))


def evaluate_candidate(candidate: Candidate,
                       cfg: BrandMarkConfig = DEFAULT_CONFIG.brand_mark
                       ) -> Tuple[AnalysisResult, Optional[Image.Image]]:
    """Fetch, decode and score one candidate. Never raises for candidate-local failures."""
    if candidate.source == "favicon":
        matched = platform_default_match(candidate.url)
        if matched:
            return AnalysisResult.rejected(
                candidate, f"Platform default favicon (matched: {matched})", cfg.weights
            ), None
    try:
        decoded = _fetch_and_decode(candidate, cfg)
    except (imaging.ImageFetchError, imaging.ImageDecodeError) as e:
        return AnalysisResult.rejected(candidate, str(e), cfg.weights), None
    return analyze_image(candidate, decoded.image, cfg), decoded.image


def evaluate_all(candidates: List[Candidate],
                 cfg: BrandMarkConfig = DEFAULT_CONFIG.brand_mark,
                 max_workers: int = 4) -> Tuple[List[AnalysisResult], Dict[str, Image.Image]]:
    """Evaluate every candidate concurrently. Results keep the input order."""
    results: Dict[int, AnalysisResult] = {}
    images: Dict[str, Image.Image] = {}
    if not candidates:
        return [], images

    with ThreadPoolExecutor(max_workers=min(max_workers, len(candidates))) as executor:
        futures = {
            executor.submit(evaluate_candidate, c, cfg): i
            for i, c in enumerate(candidates)
        }
        for future in as_completed(futures):
            i = futures[future]
            cand = candidates[i]
            try:
                analysis, img = future.result()
            except Exception as exc:
                console.print(f"  [red]✗ {cand.source} evaluation failed: {exc}[/red]")
                analysis, img = AnalysisResult.rejected(
                    cand, f"Evaluation failed: {exc}", cfg.weights
                ), None
            results[i] = analysis
            if img is not None:
                images[cand.url] = img
    return [results[i] for i in range(len(candidates))], images


# ── Selection ─────────────────────────────────────────────────────────────────

def choose_winner(evaluated: List[AnalysisResult],
                  cfg: BrandMarkConfig = DEFAULT_CONFIG.brand_mark
                  ) -> Tuple[Optional[AnalysisResult], List[str]]:
    """Apply threshold and favicon tie-break to scored candidates."""
    log: List[str] = []
    admissible = [e for e in evaluated if not e.disqualified]
    if not admissible:
        log.append("All candidates disqualified")
        return None, log

    ranked = sorted(admissible, key=lambda e: e.total_score, reverse=True)
    best = ranked[0]
    if best.total_score < cfg.minimum_viable_score:
        log.append(
            f"Best score {best.total_score} below minimum {cfg.minimum_viable_score:g}"
        )
        return None, log

    if best.candidate.source != "favicon":
        favicon = next((e for e in ranked if e.candidate.source == "favicon"), None)
        if favicon is not None and favicon.total_score >= cfg.minimum_viable_score:
            diff = best.total_score - favicon.total_score
            if diff < cfg.favicon_preference_buffer:
                log.append(
                    f"Favicon preferred: {favicon.total_score} vs {best.candidate.source} "
                    f"{best.total_score} (diff {diff:g} < buffer {cfg.favicon_preference_buffer:g})"
                )
                return favicon, log
    log.append(f"Winner: {best.candidate.source} ({best.total_score})")
    return best, log


def select_brand_mark(
    favicon: Optional[str],
    logo: Optional[str],
    manifest_icons: Optional[List[str]] = None,
    config: AssetGateConfig = DEFAULT_CONFIG,
) -> SelectionResult:
    cfg = config.brand_mark
    candidates = gather_candidates(favicon, logo, manifest_icons, cfg.max_manifest_icons)
    if not candidates:
        return SelectionResult(fallback=True, log=["No candidates available"])

    evaluated, images = evaluate_all(candidates, cfg)
    log: List[str] = []
    for e in evaluated:
        if e.disqualified:
            log.append(f"{e.candidate.source}: disqualified ({e.disqualify_reason})")
            console.print(f"  [dim]{e.candidate.source}: ✗ {e.disqualify_reason}[/dim]")
        else:
            log.append(
                f"{e.candidate.source}: {e.total_score} {e.width}×{e.height} "
                f"scores={e.sub_scores} penalty={e.photo_penalty}"
            )
            console.print(
                f"  [dim]{e.candidate.source}: {e.total_score} ({e.width}×{e.height})[/dim]"
            )

    winner, decision_log = choose_winner(evaluated, cfg)
    log.extend(decision_log)
    if winner is None:
        console.print("  [yellow]⚠ No usable brand mark — falling back to initials[/yellow]")
        return SelectionResult(evaluated=evaluated, fallback=True, log=log)

    mark = ""
    img = images.get(winner.candidate.url)
    if img is not None:
        mark = normalize_mark(img, cfg)
    console.print(f"  [green]✓[/green] brand mark: {winner.candidate.source} ({winner.total_score})")
    return SelectionResult(winner=winner, evaluated=evaluated, fallback=False, log=log, mark_image=mark)


# ── Post-processing ───────────────────────────────────────────────────────────

def square_up(img: Image.Image, cfg: BrandMarkConfig = DEFAULT_CONFIG.brand_mark) -> Image.Image:
    """Crop very wide lockups to their leftmost mark, pad anything non-square."""
    rgba = img.convert("RGBA")
    w, h = rgba.size
    ratio = w / h
    if ratio <= cfg.square_tolerance and ratio >= 1 / cfg.square_tolerance:
        return rgba
    if ratio > cfg.wide_crop_ratio:
        crop_w = min(round(h * 1.5), round(w * 0.4))
        rgba = rgba.crop((0, 0, max(1, crop_w), h))
        w, h = rgba.size
    side = max(w, h)
    return imaging.resize(rgba, side, side, fit="contain")


def normalize_mark(img: Image.Image, cfg: BrandMarkConfig = DEFAULT_CONFIG.brand_mark) -> str:
    """Winner → square PNG data URL; resized to resize_target when large enough."""
    w, h = img.size
    if max(w, h) < cfg.min_icon_size:
        return ""
    square = square_up(img, cfg)
    if max(square.size) >= cfg.resize_threshold:
        square = imaging.resize(square, cfg.resize_target, cfg.resize_target, fit="contain")
    return imaging.to_data_url(imaging.encode(square, "PNG"), "image/png")
