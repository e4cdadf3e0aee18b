"""Shared fixtures."""

from __future__ import annotations

from typing import Dict

import pytest

from brand_assets import imaging


@pytest.fixture
def fake_web(monkeypatch) -> Dict[str, bytes]:
    """
    Route imaging.fetch_bytes to a dict. Unknown URLs behave like a 404.

    Tests fill the returned dict: fake_web["https://acme.com/favicon.png"] = png_bytes(...)
    """
    pages: Dict[str, bytes] = {}

    def _fetch(url: str, timeout: float = 5.0, session=None) -> bytes:
        if url.startswith("data:"):
            return imaging.decode_data_url(url)
        if url not in pages:
            raise imaging.ImageFetchError("HTTP 404")
        return pages[url]

    monkeypatch.setattr(imaging, "fetch_bytes", _fetch)
    return pages
