"""Tests for the hero-image gate, classifier and fallback search."""

from __future__ import annotations

import pytest
from PIL import Image, ImageDraw

from brand_assets import hero, imaging
from brand_assets.hero import (
    classify_hero,
    evaluate_fallback_heroes,
    evaluate_hero,
    orientation_of,
    prefilter_heroes,
    score_hero,
    select_hero,
)
from brand_assets.models import HeroImage
from tests.helpers import block_noise, flat_logo, jpeg_bytes, png_bytes, solid

OG = "https://acme.com/og.jpg"
PHOTO = "https://acme.com/team.jpg"
BANNER = "https://acme.com/banner.png"


def text_slide(width: int = 1000, height: int = 700) -> Image.Image:
    """Rows of dark word-shaped bars on white."""
    img = Image.new("RGB", (width, height), "#ffffff")
    draw = ImageDraw.Draw(img)
    for row, y in enumerate(range(120, height - 120, 70)):
        x = 100 + (row % 2) * 40
        while x + 150 < width - 100:
            draw.rectangle([x, y, x + 150, y + 24], fill="#111111")
            x += 190
    return img


class TestScore:
    def test_busy_landscape_passes(self):
        score = score_hero(block_noise(1200, 800))
        assert score.passed
        assert score.total_score >= 70
        assert score.reasons[-1].startswith("PASS")

    def test_portrait_rejected(self):
        score = score_hero(block_noise(600, 1000))
        assert not score.passed
        assert score.sub_scores["aspect"] == 0
        assert any("portrait" in r for r in score.reasons)

    def test_logo_on_solid_rejected(self):
        score = score_hero(flat_logo(800))
        assert not score.passed
        assert any("edge density" in r for r in score.reasons)

    def test_small_image_rejected(self):
        score = score_hero(block_noise(300, 200))
        assert not score.passed
        assert any("short side" in r for r in score.reasons)

    def test_sub_score_keys(self):
        assert set(score_hero(solid(500, 400)).sub_scores) == {
            "resolution", "aspect", "complexity", "area", "edge_density", "spatial_spread",
        }


class TestClassify:
    def test_busy_image_is_photo(self):
        kind, confidence, likelihood = classify_hero(block_noise(1200, 800))
        assert kind == "photo"
        assert likelihood < 30
        assert 0 <= confidence <= 1

    def test_wide_banner_short_circuits(self):
        assert classify_hero(block_noise(1600, 800)) == ("text_heavy", 0.85, 80)

    def test_tall_image_short_circuits(self):
        assert classify_hero(block_noise(500, 800)) == ("photo", 0.80, 10)

    def test_text_slide_is_text_heavy(self):
        kind, _, likelihood = classify_hero(text_slide())
        assert kind == "text_heavy"
        assert likelihood >= 45

    @pytest.mark.parametrize("size, expected", [
        ((1200, 800), "landscape"),
        ((800, 1200), "portrait"),
        ((1000, 1000), "square"),
    ])
    def test_orientation(self, size, expected):
        assert orientation_of(*size) == expected


class TestEvaluateHero:
    def test_empty_url(self):
        assert evaluate_hero(None) is None
        assert evaluate_hero("") is None

    def test_passing_image_is_prepared(self, fake_web):
        fake_web[OG] = png_bytes(block_noise(1600, 1200))
        ev = evaluate_hero(OG)
        assert ev.passed
        assert ev.image.data_url.startswith("data:image/jpeg;base64,")
        assert ev.image.orientation == "landscape"
        assert ev.image.edge_color.startswith("#")

    def test_fetch_failure_is_a_failed_evaluation(self, fake_web):
        ev = evaluate_hero(OG)
        assert not ev.passed
        assert ev.image is None
        assert ev.score.reasons == ["error: HTTP 404"]

    def test_failed_gate_has_no_image(self, fake_web):
        fake_web[OG] = png_bytes(flat_logo(600))
        ev = evaluate_hero(OG)
        assert not ev.passed
        assert ev.image is None

    def test_oversized_image_is_a_failed_evaluation(self, fake_web, monkeypatch):
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
        fake_web[OG] = png_bytes(block_noise(1200, 800))
        ev = evaluate_hero(OG)
        assert not ev.passed
        assert ev.score.reasons[0].startswith("error: Image too large")

    def test_unexpected_error_is_a_failed_evaluation(self, fake_web, monkeypatch):
        def boom(img, cfg):
            raise RuntimeError("scoring blew up")

        monkeypatch.setattr(hero, "score_hero", boom)
        fake_web[OG] = png_bytes(block_noise(1200, 800))
        ev = evaluate_hero(OG)
        assert not ev.passed
        assert ev.score.reasons == ["evaluation failed: scoring blew up"]


class TestFallback:
    def test_prefilter(self):
        images = [
            HeroImage(url="https://acme.com/a.jpg", width=800, height=600),
            HeroImage(url="https://acme.com/a.jpg", width=800, height=600),
            HeroImage(url="https://acme.com/b.jpg", width=1600, height=900),
            HeroImage(url="https://acme.com/icon.png", width=64, height=64),
            HeroImage(url="https://acme.com/tall.jpg", width=600, height=1200),
            HeroImage(url="https://acme.com/unknown.jpg"),
            HeroImage(url="https://acme.com/logo.png", width=800, height=600, type="logo"),
            HeroImage(url="data:image/png;base64,AAAA", width=800, height=600),
            HeroImage(url=OG, width=2000, height=1000),
        ]
        kept = prefilter_heroes(images, exclude_url=OG)
        assert [i.url for i in kept] == ["https://acme.com/b.jpg", "https://acme.com/a.jpg"]

    def test_photo_preferred_over_larger_banner(self, fake_web):
        fake_web[BANNER] = png_bytes(block_noise(1600, 800))
        fake_web[PHOTO] = jpeg_bytes(block_noise(1200, 800))
        result = evaluate_fallback_heroes([
            HeroImage(url=PHOTO, width=1200, height=800),
            HeroImage(url=BANNER, width=1600, height=800),
        ])
        assert result.winner.url == PHOTO
        assert result.winner.image.image_type == "photo"
        assert result.candidates_considered == 2
        assert result.candidates_tried == 2

    def test_every_candidate_evaluated_before_choosing(self, fake_web, monkeypatch):
        fake_web[PHOTO] = jpeg_bytes(block_noise(1200, 800))
        fake_web[BANNER] = png_bytes(block_noise(1600, 800))
        fetched = []
        fetch = imaging.fetch_bytes

        def recording_fetch(url, timeout=5.0, session=None):
            fetched.append(url)
            return fetch(url, timeout=timeout, session=session)

        monkeypatch.setattr(imaging, "fetch_bytes", recording_fetch)
        result = evaluate_fallback_heroes([
            HeroImage(url=PHOTO, width=1600, height=1000),
            HeroImage(url=BANNER, width=1600, height=800),
            HeroImage(url="https://acme.com/gone.jpg", width=1400, height=800),
        ])
        assert sorted(fetched) == sorted([PHOTO, BANNER, "https://acme.com/gone.jpg"])
        assert result.winner.url == PHOTO
        assert result.candidates_tried == 1

    def test_text_heavy_used_when_nothing_better(self, fake_web):
        fake_web[BANNER] = png_bytes(block_noise(1600, 800))
        result = evaluate_fallback_heroes([HeroImage(url=BANNER, width=1600, height=800)])
        assert result.winner.image.image_type == "text_heavy"
        assert result.candidates_tried == 1

    def test_max_tries(self, fake_web):
        images = [
            HeroImage(url=f"https://acme.com/{i}.png", width=1000 + i, height=700)
            for i in range(4)
        ]
        for img in images:
            fake_web[img.url] = png_bytes(solid(1000, 700))
        result = evaluate_fallback_heroes(images, max_tries=2)
        assert result.winner is None
        assert result.candidates_considered == 4
        assert result.candidates_tried == 2
        assert result.best_rejected is not None


class TestSelectHero:
    def test_photo_og_wins(self, fake_web):
        fake_web[OG] = jpeg_bytes(block_noise(1200, 800))
        sel = select_hero(OG, [])
        assert sel.source == "og"
        assert sel.evaluation.url == OG

    def test_scraped_photo_beats_text_og(self, fake_web):
        fake_web[OG] = png_bytes(block_noise(1600, 800))
        fake_web[PHOTO] = jpeg_bytes(block_noise(1200, 800, seed=11))
        sel = select_hero(OG, [HeroImage(url=PHOTO, width=1200, height=800)])
        assert sel.source == "scraped"
        assert sel.evaluation.url == PHOTO

    def test_text_og_kept_when_nothing_scraped(self, fake_web):
        fake_web[OG] = png_bytes(block_noise(1600, 800))
        sel = select_hero(OG, [])
        assert sel.source == "og"
        assert sel.evaluation.image.image_type == "text_heavy"

    def test_oversized_og_does_not_abort(self, fake_web, monkeypatch):
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
        fake_web[OG] = png_bytes(block_noise(1200, 800))
        sel = select_hero(OG, [])
        assert sel.source == "gradient"
        assert sel.log[0].startswith("og: FAIL")

    def test_gradient_when_nothing_passes(self, fake_web):
        fake_web[OG] = png_bytes(flat_logo(600))
        sel = select_hero(OG, [HeroImage(url=PHOTO, width=1200, height=800)])
        assert sel.source == "gradient"
        assert sel.evaluation is None
        assert sel.log
