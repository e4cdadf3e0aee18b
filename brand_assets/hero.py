"""
hero.py — Hero-image quality gate, photo/text classifier and fallback search.

A hero must be big, landscape-ish and visually busy across the whole frame;
logos on solid backgrounds and marketing banners are what the gate is there
to keep out.

Gate (all must hold, plus weighted total ≥ pass_threshold):
    long side ≥ 400, short side ≥ 300, not portrait (h > 1.2·w),
    ≥ 8 quantized colours, edge density ≥ 8, spatial spread ≥ 40%

Usage:
    from brand_assets.hero import evaluate_hero, evaluate_fallback_heroes, select_hero
    ev = evaluate_hero("https://acme.com/og.jpg")
    if ev.passed:
        ev.image.data_url        # JPEG, long side ≤ 1200
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, List, Optional, Tuple

from PIL import Image
from rich.console import Console

from . import imaging, pixels
from .config import DEFAULT_CONFIG, AssetGateConfig, HeroConfig
from .models import (
    FallbackHeroEvaluation,
    HeroEvaluation,
    HeroImage,
    HeroImageResult,
    HeroScore,
    HeroSelection,
)

console = Console()

CLASSIFY_SIZE   = 100
CLASSIFY_STEP   = 24
WIDE_EARLY_EXIT = 1.85
TALL_EARLY_EXIT = 0.67
LANDSCAPE_RATIO = 1.15
PORTRAIT_RATIO  = 0.87


# ── Sub-scores ────────────────────────────────────────────────────────────────

def _resolution_score(long_side: int, short_side: int, cfg: HeroConfig,
                      reasons: List[str]) -> float:
    if long_side >= 1200:
        score = 100.0
    elif long_side >= cfg.min_long_side:
        score = 50 + (long_side - cfg.min_long_side) / (1200 - cfg.min_long_side) * 50
    else:
        score = long_side / cfg.min_long_side * 50
        reasons.append(f"long side {long_side}px < {cfg.min_long_side}px min")
    if short_side < cfg.min_short_side:
        reasons.append(f"short side {short_side}px < {cfg.min_short_side}px (likely logo)")
        score = min(score, 20)
    return score


def _aspect_score(width: int, height: int, cfg: HeroConfig,
                  reasons: List[str]) -> Tuple[float, bool]:
    portrait = height > width * cfg.max_portrait_ratio
    ratio = width / height if width > 0 and height > 0 else 1
    if portrait:
        reasons.append(f"portrait {width}×{height} (h > w × {cfg.max_portrait_ratio:g})")
        return 0.0, True
    if ratio <= 1.5:
        return 100.0, False
    if ratio <= 2.0:
        return 60 + (2.0 - ratio) / 0.5 * 40, False
    if ratio <= 2.5:
        reasons.append(f"wide {ratio:.1f}:1")
        return 30 + (2.5 - ratio) / 0.5 * 30, False
    reasons.append(f"ultra-wide {ratio:.1f}:1")
    return 0.0, False


def _complexity_score(unique: int, cfg: HeroConfig, reasons: List[str]) -> float:
    if unique >= 30:
        return 100.0
    if unique >= cfg.min_unique_colors:
        return 50 + (unique - cfg.min_unique_colors) / (30 - cfg.min_unique_colors) * 50
    reasons.append(f"only {unique} unique colors (min {cfg.min_unique_colors})")
    return unique / cfg.min_unique_colors * 50


def _edge_score(edge: float, cfg: HeroConfig, reasons: List[str]) -> float:
    if edge < cfg.min_edge_density:
        reasons.append(f"edge density {edge:.1f} < {cfg.min_edge_density:g} (flat/logo-on-solid)")
    if edge >= 25:
        return 100.0
    if edge >= 5:
        return (edge - 5) / 20 * 100
    return 0.0


def _spread_score(spread: float, cfg: HeroConfig, reasons: List[str]) -> float:
    if spread < cfg.min_spread_ratio:
        reasons.append(
            f"spread {spread * 100:.0f}% < {cfg.min_spread_ratio * 100:.0f}% (concentrated content)"
        )
    if spread >= 0.72:
        return 100.0
    if spread >= 0.2:
        return (spread - 0.2) / 0.52 * 100
    return 0.0


def _area_score(area: int, cfg: HeroConfig, reasons: List[str]) -> float:
    if area >= 1_000_000:
        return 100.0
    if area >= cfg.min_area:
        return 50 + (area - cfg.min_area) / (1_000_000 - cfg.min_area) * 50
    reasons.append(f"area {area}px² < {cfg.min_area}px² min")
    return area / cfg.min_area * 50


# ── Gate ──────────────────────────────────────────────────────────────────────

def score_hero(img: Image.Image, cfg: HeroConfig = DEFAULT_CONFIG.hero) -> HeroScore:
    """Run the quality gate on a decoded image. Pure: same pixels, same score."""
    width, height = img.size
    long_side, short_side = max(width, height), min(width, height)
    reasons: List[str] = []

    resolution = _resolution_score(long_side, short_side, cfg, reasons)
    aspect, portrait = _aspect_score(width, height, cfg, reasons)

    thumb = pixels.to_array(pixels.thumbnail(img, cfg.thumbnail_size, cfg.thumbnail_size, fit="cover"))
    unique = pixels.quantized_color_count(thumb, cfg.quantize_step)
    edge = pixels.edge_density(thumb)
    spread = pixels.spatial_spread(thumb)

    complexity = _complexity_score(unique, cfg, reasons)
    edge_s = _edge_score(edge, cfg, reasons)
    spread_s = _spread_score(spread, cfg, reasons)
    area_s = _area_score(width * height, cfg, reasons)

    sub = {
        "resolution": resolution,
        "aspect": aspect,
        "complexity": complexity,
        "area": area_s,
        "edge_density": edge_s,
        "spatial_spread": spread_s,
    }
    total = round(sum(sub[k] * w for k, w in cfg.weights.items()))

    passed = (
        total >= cfg.pass_threshold
        and long_side >= cfg.min_long_side
        and short_side >= cfg.min_short_side
        and not portrait
        and unique >= cfg.min_unique_colors
        and edge >= cfg.min_edge_density
        and spread >= cfg.min_spread_ratio
    )
    if passed:
        reasons.append(
            f"PASS: total={total}, {width}×{height}, {unique} colors, "
            f"edge={edge:.1f}, spread={spread * 100:.0f}%"
        )
    elif not reasons:
        reasons.append(f"FAIL: total={total} < {cfg.pass_threshold:g} threshold")

    return HeroScore(
        width=width,
        height=height,
        total_score=total,
        sub_scores={k: round(v) for k, v in sub.items()},
        passed=passed,
        reasons=reasons,
        unique_colors=unique,
        edge_density=round(edge, 2),
        spread_ratio=round(spread, 3),
    )


# ── Classifier ────────────────────────────────────────────────────────────────

def classify_hero(img: Image.Image,
                  cfg: HeroConfig = DEFAULT_CONFIG.hero) -> Tuple[str, float, float]:
    """
    Photo vs text-heavy. Returns (image_type, confidence, text_likelihood).

    Seven pixel signals each add points toward "text-heavy": sharp edges,
    a flood-fillable background, horizontal/vertical edge bias, few colours,
    flat saturation, concentrated content and empty borders. Ties go to photo.
    """
    width, height = img.size
    aspect = width / height if height else 1
    if aspect > WIDE_EARLY_EXIT:
        return "text_heavy", 0.85, 80
    if aspect < TALL_EARLY_EXIT:
        return "photo", 0.80, 10

    try:
        arr = pixels.to_array(pixels.thumbnail(img, CLASSIFY_SIZE, CLASSIFY_SIZE, fit="fill"))
        small = pixels.to_array(pixels.thumbnail(img, 50, 50, fit="cover"))
        high_contrast = pixels.high_contrast_edge_ratio(arr)
        uniformity = pixels.background_uniformity(arr)
        hv_bias = pixels.edge_orientation_bias(arr)
        unique = pixels.quantized_color_count(small, CLASSIFY_STEP)
        _, sat_std = pixels.saturation_spread(small)
        spread = pixels.spatial_spread(arr)
        border = pixels.border_center_activity_ratio(arr)
    except (ValueError, OSError) as e:
        console.print(f"  [dim]hero classification failed ({type(e).__name__}), assuming photo[/dim]")
        return "photo", 0.5, 0

    points = 0
    points += 20 if high_contrast > 0.40 else 10 if high_contrast > 0.25 else 0
    points += 20 if uniformity > 0.35 else 10 if uniformity > 0.20 else 0
    points += 15 if hv_bias > 0.40 else 8 if hv_bias > 0.25 else 0
    points += 15 if unique < 30 else 8 if unique < 50 else 0
    points += 10 if sat_std < 0.10 else 5 if sat_std < 0.18 else 0
    points += 10 if spread < 0.50 else 5 if spread < 0.65 else 0
    points += 10 if border < 0.25 else 5 if border < 0.40 else 0

    text_heavy = points >= cfg.text_heavy_threshold
    confidence = min(abs(points - cfg.text_heavy_threshold) / 30, 1.0)
    console.print(
        f"  [dim]hero-type {width}×{height} → {'TEXT_HEAVY' if text_heavy else 'PHOTO'} "
        f"(conf={confidence:.2f}) contrast={high_contrast:.2f} bg={uniformity:.2f} "
        f"hv={hv_bias:.2f} colors={unique} satStd={sat_std:.2f} "
        f"spread={spread * 100:.0f}% border={border:.2f} score={points}[/dim]"
    )
    return ("text_heavy" if text_heavy else "photo"), confidence, points


def orientation_of(width: int, height: int) -> str:
    ratio = width / height if height else 1
    if ratio > LANDSCAPE_RATIO:
        return "landscape"
    if ratio < PORTRAIT_RATIO:
        return "portrait"
    return "square"


def prepare_hero(img: Image.Image, cfg: HeroConfig = DEFAULT_CONFIG.hero) -> HeroImageResult:
    """Classify, sample the letterbox colour and downsize to a JPEG data URL."""
    image_type, confidence, likelihood = classify_hero(img, cfg)
    edge_color = pixels.border_mean_color(
        pixels.to_array(pixels.thumbnail(img, CLASSIFY_SIZE, CLASSIFY_SIZE, fit="fill"))
    )
    resized = imaging.resize(img, cfg.max_side, cfg.max_side, fit="inside")
    data = imaging.encode(resized, "JPEG", quality=cfg.jpeg_quality)
    return HeroImageResult(
        data_url=imaging.to_data_url(data, "image/jpeg"),
        orientation=orientation_of(*img.size),
        image_type=image_type,
        confidence=confidence,
        text_likelihood=likelihood,
        edge_color=edge_color,
    )


def evaluate_hero_image(url: str, img: Image.Image,
                        cfg: HeroConfig = DEFAULT_CONFIG.hero) -> HeroEvaluation:
    score = score_hero(img, cfg)
    prepared = prepare_hero(img, cfg) if score.passed else None
    return HeroEvaluation(url=url, passed=score.passed, image=prepared, score=score)


def evaluate_hero(url: Optional[str],
                  config: AssetGateConfig = DEFAULT_CONFIG) -> Optional[HeroEvaluation]:
    """Fetch and gate one hero URL. Fetch/decode failures come back as a failed evaluation."""
    if not url:
        return None
    cfg = config.hero
    try:
        raw = imaging.fetch_bytes(url, timeout=cfg.fetch_timeout)
        img = imaging.decode(raw)
        return evaluate_hero_image(url, img, cfg)
    except (imaging.ImageFetchError, imaging.ImageDecodeError) as e:
        return _failed_evaluation(url, cfg, f"error: {e}")
    except Exception as e:
        console.print(f"  [red]✗ hero evaluation failed for {url[:80]}: {e}[/red]")
        return _failed_evaluation(url, cfg, f"evaluation failed: {e}")


def _failed_evaluation(url: str, cfg: HeroConfig, reason: str) -> HeroEvaluation:
    return HeroEvaluation(
        url=url,
        passed=False,
        score=HeroScore(sub_scores={k: 0 for k in cfg.weights}, reasons=[reason]),
    )


# ── Fallback search ───────────────────────────────────────────────────────────

def prefilter_heroes(images: List[HeroImage], exclude_url: Optional[str],
                     cfg: HeroConfig = DEFAULT_CONFIG.hero) -> List[HeroImage]:
    """Hero-typed, deduplicated, plausibly sized images, largest declared area first."""
    seen = {exclude_url} if exclude_url else set()
    unique: List[HeroImage] = []
    for img in images:
        if img.type != "hero" or img.url.startswith("data:") or img.url in seen:
            continue
        seen.add(img.url)
        unique.append(img)

    kept = []
    for img in unique:
        w, h = img.width or 0, img.height or 0
        if w == 0 or h == 0:
            continue
        if max(w, h) < cfg.min_long_side or min(w, h) < cfg.fallback_min_short_side:
            continue
        if h > w * cfg.max_portrait_ratio:
            continue
        kept.append(img)
    return sorted(kept, key=lambda i: (i.width or 0) * (i.height or 0), reverse=True)


def evaluate_fallback_heroes(
    images: List[HeroImage],
    exclude_url: Optional[str] = None,
    max_tries: Optional[int] = None,
    config: AssetGateConfig = DEFAULT_CONFIG,
    max_workers: int = 4,
) -> FallbackHeroEvaluation:
    """
    Evaluate the largest scraped hero images concurrently, then pick in rank
    order: the first passing photo-like image, else the first passing
    text-heavy one.
    """
    cfg = config.hero
    tries = max_tries if max_tries is not None else cfg.max_fallback_tries
    ranked = prefilter_heroes(images, exclude_url, cfg)
    candidates = ranked[:tries]

    results: Dict[int, HeroEvaluation] = {}
    if candidates:
        with ThreadPoolExecutor(max_workers=min(max_workers, len(candidates))) as executor:
            futures = {
                executor.submit(evaluate_hero, c.url, config): i
                for i, c in enumerate(candidates)
            }
            for future in as_completed(futures):
                i = futures[future]
                cand = candidates[i]
                results[i] = future.result()
                console.print(
                    f"  [dim]scraped hero {i + 1}/{len(candidates)}: {cand.width}×{cand.height} "
                    f"{'PASS' if results[i].passed else 'FAIL'} {cand.url[:100]}[/dim]"
                )

    best_photo: Optional[Tuple[HeroEvaluation, int]] = None
    best_text: Optional[Tuple[HeroEvaluation, int]] = None
    best_failed: Optional[HeroEvaluation] = None

    for i in range(len(candidates)):
        result = results[i]
        if result.passed and result.image is not None:
            if result.image.text_likelihood < cfg.photo_preferred_threshold:
                best_photo = (result, i)
                break
            if best_text is None:
                best_text = (result, i)
        elif best_failed is None or result.score.total_score > best_failed.score.total_score:
            best_failed = result

    winner = best_photo or best_text
    if winner is not None:
        return FallbackHeroEvaluation(
            winner=winner[0],
            candidates_considered=len(ranked),
            candidates_tried=winner[1] + 1,
        )
    return FallbackHeroEvaluation(
        best_rejected=best_failed,
        candidates_considered=len(ranked),
        candidates_tried=len(candidates),
    )


def select_hero(og_image: Optional[str], images: List[HeroImage],
                config: AssetGateConfig = DEFAULT_CONFIG) -> HeroSelection:
    """OG image first; scraped heroes when it fails or reads as a text banner."""
    log: List[str] = []
    og = evaluate_hero(og_image, config)
    if og is not None:
        log.append(f"og: {'PASS' if og.passed else 'FAIL'} ({'; '.join(og.score.reasons)})")
    og_is_photo = bool(og and og.passed and og.image and og.image.image_type == "photo")
    if og_is_photo:
        console.print(f"  [green]✓[/green] hero: og image ({og.score.total_score})")
        return HeroSelection(source="og", evaluation=og, log=log)

    fallback = evaluate_fallback_heroes(images, exclude_url=og_image, config=config)
    log.append(
        f"scraped: {fallback.candidates_considered} considered, {fallback.candidates_tried} tried"
    )
    scraped = fallback.winner
    if scraped is not None and scraped.image is not None:
        if not (og and og.passed) or scraped.image.image_type == "photo":
            console.print(f"  [green]✓[/green] hero: scraped image ({scraped.score.total_score})")
            return HeroSelection(source="scraped", evaluation=scraped, log=log)
    if og and og.passed:
        console.print(f"  [green]✓[/green] hero: og image, text-heavy ({og.score.total_score})")
        return HeroSelection(source="og", evaluation=og, log=log)

    console.print("  [yellow]⚠ No hero passed the quality gate[/yellow]")
    return HeroSelection(source="gradient", log=log)
