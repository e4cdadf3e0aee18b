"""
config.py — Every threshold, curve constant and weight used by the asset gates.

The values were tuned against real scraped sites; they live here as named,
documented fields so they can be adjusted (or overridden from the
environment) without touching the scoring code.

Usage:
    from brand_assets.config import DEFAULT_CONFIG, load_config
    cfg = load_config()               # .env + BRAND_ASSETS_* overrides
    cfg.brand_mark.minimum_viable_score
"""

from __future__ import annotations

import os
from typing import Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

WEIGHT_TOLERANCE = 1e-9


def _check_weights(weights: Dict[str, float]) -> Dict[str, float]:
    total = sum(weights.values())
    if abs(total - 1.0) > WEIGHT_TOLERANCE:
        raise ValueError(f"weights must sum to 1.0, got {total:.12f}")
    if any(w < 0 for w in weights.values()):
        raise ValueError("weights must be non-negative")
    return weights


# ── Brand mark ────────────────────────────────────────────────────────────────

class BrandMarkConfig(BaseModel):
    fetch_timeout: float = Field(5.0, gt=0, description="Per-fetch timeout in seconds")
    min_icon_size: int = Field(16, gt=0, description="Max dimension below this disqualifies")
    resize_target: int = Field(300, gt=0, description="Square output size for large marks")
    resize_threshold: int = Field(128, gt=0, description="Marks at least this big get resized")
    minimum_viable_score: float = Field(35, ge=0, description="Best score below this → fallback")
    favicon_preference_buffer: float = Field(15, ge=0, description="Keep favicon if within this many points")
    max_manifest_icons: int = Field(2, ge=0)
    square_tolerance: float = Field(1.2, gt=1, description="Aspect ratio treated as square when normalizing")
    wide_crop_ratio: float = Field(2.0, gt=1, description="Wider than this → crop the leftmost mark")
    source_scores: Dict[str, float] = Field(
        default_factory=lambda: {"manifest": 90, "favicon": 70, "logo": 50}
    )
    weights: Dict[str, float] = Field(
        default_factory=lambda: {
            "aspect": 0.25,
            "resolution": 0.20,
            "complexity": 0.20,
            "source": 0.15,
            "monogram": 0.20,
        }
    )

    @field_validator("weights")
    @classmethod
    def _weights_sum_to_one(cls, v: Dict[str, float]) -> Dict[str, float]:
        return _check_weights(v)


# ── Hero image ────────────────────────────────────────────────────────────────

class HeroConfig(BaseModel):
    fetch_timeout: float = Field(8.0, gt=0)
    min_long_side: int = Field(400, gt=0)
    min_short_side: int = Field(300, gt=0)
    max_portrait_ratio: float = Field(1.2, gt=0, description="height > width × this → portrait")
    min_unique_colors: int = Field(8, gt=0)
    min_area: int = Field(150_000, gt=0)
    quantize_step: int = Field(16, gt=0)
    thumbnail_size: int = Field(50, gt=0)
    pass_threshold: float = Field(70, ge=0, le=100)
    min_edge_density: float = Field(8, ge=0)
    min_spread_ratio: float = Field(0.40, ge=0, le=1)
    text_heavy_threshold: float = Field(45, ge=0, description="Classifier points at or above → text-heavy")
    photo_preferred_threshold: float = Field(30, ge=0, description="Text likelihood below → take immediately")
    max_side: int = Field(1200, gt=0, description="Prepared hero is resized inside this box")
    jpeg_quality: int = Field(82, gt=0, le=100)
    max_fallback_tries: int = Field(3, gt=0)
    fallback_min_short_side: int = Field(200, gt=0)
    weights: Dict[str, float] = Field(
        default_factory=lambda: {
            "resolution": 0.20,
            "aspect": 0.15,
            "complexity": 0.15,
            "area": 0.10,
            "edge_density": 0.20,
            "spatial_spread": 0.20,
        }
    )

    @field_validator("weights")
    @classmethod
    def _weights_sum_to_one(cls, v: Dict[str, float]) -> Dict[str, float]:
        return _check_weights(v)


# ── Color gate ────────────────────────────────────────────────────────────────

class ColorGateConfig(BaseModel):
    max_iterations: int = Field(3, ge=0, le=3)
    min_sidebar_saturation: float = Field(0.12, ge=0, le=1)
    min_accent_saturation: float = Field(0.12, ge=0, le=1)
    brand_saturation_threshold: float = Field(0.25, ge=0, le=1)
    min_contrast_ratio: float = Field(4.5, gt=0)
    min_accent_on_white: float = Field(3.0, gt=0)
    hue_tolerance: float = Field(35, ge=0, le=180)
    distinct_lightness_gap: float = Field(35, ge=0, le=100)
    distinct_hue_gap: float = Field(30, ge=0, le=180)
    neutral_saturation: float = Field(0.08, ge=0, le=1)
    neutral_light: float = Field(0.95, ge=0, le=1)
    neutral_dark: float = Field(0.05, ge=0, le=1)
    monochrome_link_saturation: float = Field(0.15, ge=0, le=1)
    template_neutral_ratio: float = Field(0.7, ge=0, le=1)
    max_harmony_shift: float = Field(20, ge=0, le=180)
    max_usability_darken_steps: int = Field(8, ge=0)


class AssetGateConfig(BaseModel):
    brand_mark: BrandMarkConfig = Field(default_factory=BrandMarkConfig)
    hero: HeroConfig = Field(default_factory=HeroConfig)
    color_gate: ColorGateConfig = Field(default_factory=ColorGateConfig)


DEFAULT_CONFIG = AssetGateConfig()


# ── Environment overrides ─────────────────────────────────────────────────────

_ENV_OVERRIDES = {
    "BRAND_ASSETS_FETCH_TIMEOUT":        ("brand_mark", "fetch_timeout", float),
    "BRAND_ASSETS_MIN_VIABLE_SCORE":     ("brand_mark", "minimum_viable_score", float),
    "BRAND_ASSETS_FAVICON_BUFFER":       ("brand_mark", "favicon_preference_buffer", float),
    "BRAND_ASSETS_HERO_TIMEOUT":         ("hero", "fetch_timeout", float),
    "BRAND_ASSETS_HERO_PASS_THRESHOLD":  ("hero", "pass_threshold", float),
    "BRAND_ASSETS_HERO_MAX_TRIES":       ("hero", "max_fallback_tries", int),
    "BRAND_ASSETS_GATE_MAX_ITERATIONS":  ("color_gate", "max_iterations", int),
}


def load_config(env_file: Optional[str] = None) -> AssetGateConfig:
    """Build a config from defaults plus any BRAND_ASSETS_* environment overrides."""
    load_dotenv(env_file)
    sections: Dict[str, Dict[str, object]] = {"brand_mark": {}, "hero": {}, "color_gate": {}}
    for env_name, (section, field_name, cast) in _ENV_OVERRIDES.items():
        raw = os.environ.get(env_name)
        if raw is None or raw.strip() == "":
            continue
        sections[section][field_name] = cast(raw)
    return AssetGateConfig(
        brand_mark=BrandMarkConfig(**sections["brand_mark"]),
        hero=HeroConfig(**sections["hero"]),
        color_gate=ColorGateConfig(**sections["color_gate"]),
    )
