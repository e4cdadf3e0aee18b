"""Tests for the deterministic fallbacks."""

from __future__ import annotations

import pytest

from brand_assets import fallbacks
from brand_assets.imaging import decode, decode_data_url
from brand_assets.fallbacks import (
    PRESET_PALETTES,
    extract_domain,
    gradient_stops,
    hash_string,
    pick_for_domain,
    render_flat_hero,
    render_gradient,
    render_gradient_hero,
    score_palette_diversity,
)


class TestHashing:
    def test_djb2(self):
        assert hash_string("") == 5381
        assert hash_string("a") == 5381 * 33 + 97

    def test_unsigned_32_bit(self):
        h = hash_string("a-very-long-domain-name-that-overflows.example.com" * 4)
        assert 0 <= h < 2 ** 32

    @pytest.mark.parametrize("url, domain", [
        ("https://www.Stripe.com/pricing", "stripe.com"),
        ("stripe.com", "stripe.com"),
        ("http://app.linear.app:8080/x", "app.linear.app"),
    ])
    def test_extract_domain(self, url, domain):
        assert extract_domain(url) == domain

    def test_pick_is_stable(self):
        options = ["a", "b", "c", "d", "e"]
        assert pick_for_domain("stripe.com", options) == pick_for_domain("stripe.com", options)
        assert pick_for_domain("stripe.com", options) == options[hash_string("stripe.com") % 5]

    def test_pick_from_nothing(self):
        with pytest.raises(ValueError):
            pick_for_domain("stripe.com", [])


class TestDiversity:
    def test_rich_palette_gets_gradient(self):
        result = score_palette_diversity(["#635bff", "#00d4ff", "#0a2540"])
        assert result["use_gradient"] is True
        assert 0.45 <= result["score"] <= 1

    def test_grays_stay_flat(self):
        result = score_palette_diversity(["#ffffff", "#f5f5f5"])
        assert result["use_gradient"] is False

    def test_preset_penalty(self):
        stops = ["#6366f1", "#8b5cf6"]
        plain = score_palette_diversity(stops)["score"]
        preset = score_palette_diversity(stops, used_preset=True)
        assert preset["score"] == pytest.approx(max(0.0, plain - 0.15), abs=0.011)
        assert "preset" in preset["reason"]

    def test_no_valid_stops(self):
        assert score_palette_diversity(["nope"]) == {
            "score": 0.0, "use_gradient": False, "reason": "no valid color stops",
        }


class TestGradient:
    def test_stops_capped_and_deduped(self):
        stops, preset = gradient_stops(
            ["#111111", "#111111", "#222222", "#333333", "#444444", "#555555"], "acme.com"
        )
        assert stops == ["#111111", "#222222", "#333333", "#444444"]
        assert not preset

    def test_preset_when_too_few_colours(self):
        stops, preset = gradient_stops(["#635bff", "#635BFF", "nope"], "acme.com")
        assert preset
        assert stops in PRESET_PALETTES

    def test_render_direction(self):
        img = render_gradient(["#000000", "#ffffff"], 90, size=64)
        assert img.size == (64, 64)
        assert img.getpixel((0, 32)) == (0, 0, 0)
        assert img.getpixel((63, 32)) == (255, 255, 255)

    def test_single_pixel_gradient(self):
        img = render_gradient(["#000000", "#ffffff"], 90, size=1)
        assert img.size == (1, 1)

    def test_flat_hero(self):
        url = render_flat_hero("#0a2540", size=32)
        img = decode(decode_data_url(url)).convert("RGB")
        assert img.size == (32, 32)
        assert all(abs(a - b) <= 3 for a, b in zip(img.getpixel((16, 16)), (0x0a, 0x25, 0x40)))

    def test_hero_is_deterministic(self):
        a = render_gradient_hero(["#635bff", "#0a2540"], "stripe.com", size=64)
        b = render_gradient_hero(["#635bff", "#0a2540"], "stripe.com", size=64)
        assert a == b
        assert a.startswith("data:image/jpeg;base64,")

    def test_angle_comes_from_domain(self, monkeypatch):
        seen = []
        real = fallbacks.render_gradient

        def spy(stops, angle, size=fallbacks.GRADIENT_SIZE):
            seen.append(angle)
            return real(stops, angle, size)

        monkeypatch.setattr(fallbacks, "render_gradient", spy)
        render_gradient_hero(["#635bff", "#0a2540"], "stripe.com", size=16)
        assert seen == [pick_for_domain("stripe.com", fallbacks.GRADIENT_ANGLES)]
