"""Tests for accent extraction and sidebar selection."""

from __future__ import annotations

from PIL import Image

from brand_assets import color_math as cm
from brand_assets.accent import (
    DEFAULT_SIDEBAR_BACKGROUND,
    extract_accent_from_url,
    extract_colors_from_svg,
    extract_colors_with_details,
    generate_color_scheme,
    generate_validated_color_scheme,
    is_neutral_color,
    select_accent_with_context,
    select_sidebar_colors,
)
from brand_assets.models import AccentResult
from tests.helpers import flat_logo, half_red, png_bytes, solid

FAVICON = "https://acme.com/favicon.png"
LOGO = "https://acme.com/logo.png"


class TestExtraction:
    def test_neutral(self):
        assert is_neutral_color("#808080")
        assert is_neutral_color("#fdfdfd")
        assert not is_neutral_color("#635bff")

    def test_dominant_vivid_colour_first(self):
        colors = extract_colors_with_details(half_red())
        assert colors[0].color == "#ff0000"
        assert colors[0].is_high_confidence
        assert colors[0].saturation == 1.0

    def test_gray_image_has_no_candidates(self):
        assert extract_colors_with_details(solid(50, 50, "#777777")) == []

    def test_svg_colours(self):
        svg = (
            '<svg xmlns="http://www.w3.org/2000/svg">'
            '<rect fill="#ff0000"/><circle fill="navy"/>'
            '<path fill="none" stroke="rgb(0, 128, 0)"/><g color="#FFF"/></svg>'
        )
        colors = {c.color for c in extract_colors_from_svg(svg)}
        assert colors == {"#ff0000", "#000080", "#008000"}

    def test_from_url(self, fake_web):
        fake_web[FAVICON] = png_bytes(half_red())
        fake_web[LOGO] = b'<svg><rect fill="#635bff"/></svg>'
        assert extract_accent_from_url(FAVICON).color == "#ff0000"
        assert extract_accent_from_url(LOGO).color == "#635bff"
        assert extract_accent_from_url("https://acme.com/missing.png") is None

    def test_oversized_favicon_is_skipped(self, fake_web, monkeypatch):
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
        fake_web[FAVICON] = png_bytes(half_red())
        assert extract_accent_from_url(FAVICON) is None
        sel = select_accent_with_context(FAVICON, None, ["#635bff"])
        assert sel.result.source == "linkButton"


class TestSelectAccent:
    def test_favicon_first(self, fake_web):
        fake_web[FAVICON] = png_bytes(half_red())
        fake_web[LOGO] = png_bytes(flat_logo(128, "#1e40af"))
        sel = select_accent_with_context(FAVICON, LOGO)
        assert sel.result.source == "squareIcon"
        assert sel.result.color == "#ff0000"
        assert sel.favicon_saturation == 1.0
        assert sel.logo_saturation is not None

    def test_logo_when_favicon_is_gray(self, fake_web):
        fake_web[FAVICON] = png_bytes(solid(64, 64, "#444444"))
        fake_web[LOGO] = png_bytes(flat_logo(128, "#1e40af"))
        sel = select_accent_with_context(FAVICON, LOGO)
        assert sel.result.source == "logo"
        assert sel.favicon_saturation is None

    def test_link_button_fallback(self, fake_web):
        sel = select_accent_with_context(None, None, ["#ffffff", "oops", "#635BFF"])
        assert sel.result.source == "linkButton"
        assert sel.result.color == "#635bff"
        assert sel.result.is_high_confidence

    def test_nothing_found(self, fake_web):
        sel = select_accent_with_context(None, None, ["#ffffff"])
        assert sel.result.source == "none"
        assert sel.result.color is None


class TestSidebar:
    def test_dark_nav_used(self):
        out = select_sidebar_colors("#0a2540", "#635bff")
        assert out == {"sidebar_background": "#0a2540", "sidebar_text": "#ffffff", "source": "navHeader"}

    def test_white_nav_falls_back_to_accent(self):
        out = select_sidebar_colors("#ffffff", "#635bff")
        assert out["source"] == "accent"
        assert out["sidebar_background"] == "#635bff"

    def test_default(self):
        out = select_sidebar_colors(None, None)
        assert out["source"] == "default"
        assert out["sidebar_background"] == DEFAULT_SIDEBAR_BACKGROUND

    def test_light_sidebar_gets_dark_text(self):
        assert select_sidebar_colors(None, "#fde047")["sidebar_text"] == "#1a1a1a"


class TestScheme:
    def test_naive_scheme_defaults(self):
        scheme = generate_color_scheme(None, None)
        assert scheme.accent == "#3b82f6"
        assert scheme.sidebar_background == DEFAULT_SIDEBAR_BACKGROUND

    def test_validated_scheme(self):
        accent = AccentResult(color="#635bff", source="squareIcon", is_high_confidence=True)
        result = generate_validated_color_scheme(
            "#ffffff", accent, favicon_saturation=1.0,
            link_button_colors=["#635bff"], all_extracted_colors=["#635bff", "#0a2540"],
        )
        assert result.quality_gate.original_colors.accent == "#635bff"
        assert result.accent_promotion is True
        for c in (result.colors.sidebar_background, result.colors.sidebar_text, result.colors.accent):
            assert cm.is_valid_hex(c)

    def test_invalid_accent_ignored(self):
        accent = AccentResult(color="nope", source="logo")
        result = generate_validated_color_scheme(None, accent)
        assert cm.is_valid_hex(result.colors.accent)
