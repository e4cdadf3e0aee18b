"""
Data models shared by the three asset pipelines.

Inputs (Candidate, ScrapedPage) and outputs (SelectionResult, HeroEvaluation,
ValidatedColorScheme, PreviewAssets) are pydantic models so the CLI can dump
them straight to JSON.
"""

from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from . import color_math

BrandSource = Literal["favicon", "manifest", "logo"]
HeroSource = Literal["og", "scraped"]
AccentSource = Literal["squareIcon", "logo", "linkButton", "none"]
ImageType = Literal["photo", "text_heavy"]
Orientation = Literal["landscape", "portrait", "square"]


# ── Candidates ────────────────────────────────────────────────────────────────

class Candidate(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    source: str = Field(description="favicon | manifest | logo for marks, og | scraped for heroes")


class AnalysisResult(BaseModel):
    """Score sheet for one candidate. Disqualified results carry zeros everywhere."""
    candidate: Candidate
    width: int = 0
    height: int = 0
    sub_scores: Dict[str, float] = Field(default_factory=dict)
    total_score: float = 0
    disqualified: bool = False
    disqualify_reason: Optional[str] = None
    unique_colors: Optional[int] = None
    monogram_confidence: Optional[float] = None
    smooth_ratio: Optional[float] = None
    photo_penalty: float = 1.0

    @classmethod
    def rejected(cls, candidate: Candidate, reason: str, weights: Dict[str, float],
                 width: int = 0, height: int = 0) -> "AnalysisResult":
        return cls(
            candidate=candidate,
            width=width,
            height=height,
            sub_scores={k: 0 for k in weights},
            total_score=0,
            disqualified=True,
            disqualify_reason=reason,
        )


class SelectionResult(BaseModel):
    winner: Optional[AnalysisResult] = None
    evaluated: List[AnalysisResult] = Field(default_factory=list)
    fallback: bool = False
    log: List[str] = Field(default_factory=list)
    mark_image: str = Field("", description="Normalized square PNG data URL of the winner")


# ── Hero ──────────────────────────────────────────────────────────────────────

class HeroImage(BaseModel):
    url: str
    width: Optional[int] = None
    height: Optional[int] = None
    type: str = "hero"


class HeroImageResult(BaseModel):
    data_url: str
    orientation: Orientation
    image_type: ImageType
    confidence: float
    text_likelihood: float
    edge_color: str


class HeroScore(BaseModel):
    width: int = 0
    height: int = 0
    total_score: float = 0
    sub_scores: Dict[str, float] = Field(default_factory=dict)
    passed: bool = False
    reasons: List[str] = Field(default_factory=list)
    unique_colors: int = 0
    edge_density: float = 0
    spread_ratio: float = 0


class HeroEvaluation(BaseModel):
    url: str
    passed: bool
    image: Optional[HeroImageResult] = None
    score: HeroScore


class FallbackHeroEvaluation(BaseModel):
    winner: Optional[HeroEvaluation] = None
    best_rejected: Optional[HeroEvaluation] = None
    candidates_considered: int = 0
    candidates_tried: int = 0


class HeroSelection(BaseModel):
    source: Literal["og", "scraped", "gradient"]
    evaluation: Optional[HeroEvaluation] = None
    fallback_style: Optional[Literal["gradient", "flat"]] = None
    gradient_data_url: str = ""
    log: List[str] = Field(default_factory=list)


# ── Colors ────────────────────────────────────────────────────────────────────

class ColorScheme(BaseModel):
    sidebar_background: str
    sidebar_text: str
    accent: str

    @field_validator("sidebar_background", "sidebar_text", "accent")
    @classmethod
    def _hex(cls, v: str) -> str:
        return color_math.normalize_hex(v)


class AccentResult(BaseModel):
    color: Optional[str] = None
    source: AccentSource = "none"
    is_high_confidence: bool = False
    saturation: float = 0


class ColorContext(BaseModel):
    accent_result: AccentResult = Field(default_factory=AccentResult)
    nav_header_background: Optional[str] = None
    favicon_saturation: Optional[float] = None
    logo_saturation: Optional[float] = None
    link_button_colors: List[str] = Field(default_factory=list)
    all_extracted_colors: List[str] = Field(default_factory=list)


class QualityCheck(BaseModel):
    passed: bool
    detail: str


class QualityGateReport(BaseModel):
    passed: bool
    checks: Dict[str, QualityCheck]
    adjustments: List[str] = Field(default_factory=list)
    original_colors: ColorScheme
    final_colors: ColorScheme
    iterations: int = Field(0, ge=0, le=3)


class ValidatedColorScheme(BaseModel):
    colors: ColorScheme
    quality_gate: QualityGateReport
    accent_promotion: bool = False


# ── Page in / assets out ──────────────────────────────────────────────────────

class ColorUsage(BaseModel):
    color: str
    count: int = 1
    sources: List[str] = Field(default_factory=list)


class ScrapedPage(BaseModel):
    url: str
    title: str = ""
    favicon: Optional[str] = None
    logo: Optional[str] = None
    manifest_icons: List[str] = Field(default_factory=list)
    og_image: Optional[str] = None
    images: List[HeroImage] = Field(default_factory=list)
    colors: List[str] = Field(default_factory=list)
    colors_with_usage: List[ColorUsage] = Field(default_factory=list)
    link_button_colors: List[str] = Field(default_factory=list)
    nav_header_background: Optional[str] = None


class PreviewAssets(BaseModel):
    url: str
    brand_mark: SelectionResult
    hero: Optional[HeroSelection] = None
    colors: ValidatedColorScheme
    elapsed_seconds: float = 0.0
