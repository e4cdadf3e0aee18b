"""Tests for fetching, decoding, resizing and encoding."""

from __future__ import annotations

import base64

import pytest
import requests
from PIL import Image

from brand_assets import imaging
from tests.helpers import flat_logo, ico_bytes, jpeg_bytes, png_bytes, solid


class _Resp:
    def __init__(self, status: int, content: bytes = b""):
        self.status_code = status
        self.ok = 200 <= status < 400
        self.content = content


class TestFetch:
    def test_http_error_status(self, monkeypatch):
        monkeypatch.setattr(imaging.requests, "get", lambda *a, **kw: _Resp(404))
        with pytest.raises(imaging.ImageFetchError, match="HTTP 404"):
            imaging.fetch_bytes("https://acme.com/missing.png")

    def test_network_error(self, monkeypatch):
        def boom(*a, **kw):
            raise requests.ConnectionError("refused")
        monkeypatch.setattr(imaging.requests, "get", boom)
        with pytest.raises(imaging.ImageFetchError, match="ConnectionError"):
            imaging.fetch_bytes("https://acme.com/logo.png")

    def test_sends_user_agent_and_timeout(self, monkeypatch):
        seen = {}

        def get(url, timeout, headers):
            seen.update(url=url, timeout=timeout, headers=headers)
            return _Resp(200, b"ok")

        monkeypatch.setattr(imaging.requests, "get", get)
        assert imaging.fetch_bytes("https://acme.com/a.png", timeout=3) == b"ok"
        assert seen["timeout"] == 3
        assert seen["headers"]["User-Agent"] == imaging.USER_AGENT

    def test_base64_data_url(self):
        raw = png_bytes(solid(4, 4))
        url = "data:image/png;base64," + base64.b64encode(raw).decode()
        assert imaging.fetch_bytes(url) == raw

    def test_svg_data_url(self):
        assert imaging.fetch_bytes("data:image/svg+xml,%3Csvg%3E%3C/svg%3E") == b"<svg></svg>"

    def test_unsupported_data_url(self):
        with pytest.raises(imaging.ImageFetchError):
            imaging.fetch_bytes("data:text/plain,hello")


class TestDecode:
    def test_png(self):
        img = imaging.decode(png_bytes(flat_logo(64)))
        assert img.size == (64, 64)

    def test_jpeg(self):
        assert imaging.decode(jpeg_bytes(solid(30, 20))).size == (30, 20)

    def test_ico_yields_largest_frame(self):
        data = ico_bytes(flat_logo(64))
        assert imaging.is_ico(data)
        assert imaging.decode(data).size == (64, 64)

    def test_empty(self):
        with pytest.raises(imaging.ImageDecodeError, match="Empty"):
            imaging.decode(b"")

    def test_garbage(self):
        with pytest.raises(imaging.ImageDecodeError):
            imaging.decode(b"<html>not an image</html>")

    def test_decompression_bomb(self, monkeypatch):
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
        with pytest.raises(imaging.ImageDecodeError, match="too large"):
            imaging.decode(png_bytes(solid(100, 100)))

    def test_svg_sniffing(self):
        assert imaging.is_svg(b'  <svg xmlns="http://www.w3.org/2000/svg"></svg>')
        assert imaging.is_svg(b'<?xml version="1.0"?>\n<svg></svg>')
        assert not imaging.is_svg(png_bytes(solid(2, 2)))


class TestResize:
    @pytest.mark.parametrize("fit, expected", [
        ("cover", (100, 100)),
        ("contain", (100, 100)),
        ("fill", (100, 100)),
        ("inside", (100, 50)),
    ])
    def test_fit_modes(self, fit, expected):
        assert imaging.resize(solid(400, 200), 100, 100, fit=fit).size == expected

    def test_inside_never_enlarges(self):
        assert imaging.resize(solid(40, 20), 100, 100, fit="inside").size == (40, 20)

    def test_contain_pads_with_background(self):
        out = imaging.resize(solid(400, 200, "#ff0000"), 100, 100, fit="contain")
        assert out.getpixel((50, 2))[3] == 0
        assert out.getpixel((50, 50))[:3] == (255, 0, 0)

    def test_unknown_fit(self):
        with pytest.raises(ValueError):
            imaging.resize(solid(10, 10), 5, 5, fit="stretch")


class TestEncode:
    def test_jpeg_flattens_alpha(self):
        rgba = Image.new("RGBA", (10, 10), (0, 0, 0, 0))
        data = imaging.encode(rgba, "JPEG")
        assert imaging.decode(data).getpixel((5, 5)) == pytest.approx((255, 255, 255), abs=2)

    def test_data_url(self):
        url = imaging.to_data_url(b"\x89PNG", "image/png")
        assert url == "data:image/png;base64,iVBORw=="
