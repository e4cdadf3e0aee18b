"""
imaging.py — Fetch, decode, resize and encode images.

The only place that touches the network. Every failure surfaces as one of
two exceptions so callers can turn it into a per-candidate disqualification:

    ImageFetchError   network / HTTP / malformed data: URL
    ImageDecodeError  bytes that are not a usable raster image

Usage:
    from brand_assets import imaging
    raw = imaging.fetch_bytes("https://example.com/favicon.ico", timeout=5)
    img = imaging.decode(raw)                    # PIL.Image, ICO → largest PNG frame
    sq  = imaging.resize(img, 300, 300, fit="contain")
    url = imaging.to_data_url(imaging.encode(sq, "PNG"), "image/png")
"""

from __future__ import annotations

import base64
import io
import re
import struct
from typing import Optional, Tuple
from urllib.parse import unquote

import requests
from PIL import Image, ImageOps, UnidentifiedImageError

USER_AGENT = "Mozilla/5.0 (compatible; BrandScraper/1.0)"

ICO_MAGIC = b"\x00\x00\x01\x00"
PNG_MAGIC = b"\x89PNG"
ICO_DIR_ENTRY = 16
ICO_HEADER = 6

SVG_RENDER_WIDTH = 512

_DATA_B64_RE = re.compile(r"^data:([^;,]+)?(?:;[^,]*)?;base64,(.+)$", re.DOTALL)
_DATA_SVG_PREFIX = "data:image/svg+xml,"


class ImageFetchError(Exception):
    pass


class ImageDecodeError(Exception):
    pass


# ── Fetch ─────────────────────────────────────────────────────────────────────

def decode_data_url(url: str) -> bytes:
    if url.startswith(_DATA_SVG_PREFIX):
        return unquote(url[len(_DATA_SVG_PREFIX):]).encode("utf-8")
    m = _DATA_B64_RE.match(url)
    if not m:
        raise ImageFetchError("Unsupported data URL format")
    try:
        return base64.b64decode(m.group(2))
    except (ValueError, TypeError) as e:
        raise ImageFetchError(f"Invalid base64 data URL: {e}") from e


def fetch_bytes(url: str, timeout: float = 5.0,
                session: Optional[requests.Session] = None) -> bytes:
    """GET url (or decode a data: URL) with a single timeout, no retries."""
    if url.startswith("data:"):
        return decode_data_url(url)
    getter = session.get if session is not None else requests.get
    try:
        resp = getter(url, timeout=timeout, headers={"User-Agent": USER_AGENT})
    except requests.RequestException as e:
        raise ImageFetchError(f"{type(e).__name__}: {e}") from e
    if not resp.ok:
        raise ImageFetchError(f"HTTP {resp.status_code}")
    return resp.content


# ── Decode ────────────────────────────────────────────────────────────────────

def is_ico(data: bytes) -> bool:
    return len(data) > ICO_HEADER and data[:4] == ICO_MAGIC


def is_svg(data: bytes) -> bool:
    head = data[:512].lstrip().lower()
    return head.startswith(b"<svg") or (head.startswith(b"<?xml") and b"<svg" in data[:2048].lower())


def extract_png_from_ico(data: bytes) -> Optional[bytes]:
    """Largest embedded PNG frame of an ICO file, or None if it only holds BMP frames."""
    (count,) = struct.unpack_from("<H", data, 4)
    best: Optional[bytes] = None
    best_size = 0
    for i in range(count):
        entry = ICO_HEADER + i * ICO_DIR_ENTRY
        if entry + ICO_DIR_ENTRY > len(data):
            break
        width = data[entry] or 256
        size, offset = struct.unpack_from("<II", data, entry + 8)
        if offset + size > len(data):
            continue
        if data[offset:offset + 4] == PNG_MAGIC and width > best_size:
            best_size = width
            best = data[offset:offset + size]
    return best


def rasterize_svg(data: bytes, width: int = SVG_RENDER_WIDTH) -> bytes:
    try:
        import cairosvg
    except (ImportError, OSError) as e:
        raise ImageDecodeError(f"SVG rasterization unavailable: {e}") from e
    try:
        return cairosvg.svg2png(bytestring=data, output_width=width)
    except Exception as e:
        raise ImageDecodeError(f"SVG rasterization failed: {e}") from e


def decode(data: bytes) -> Image.Image:
    """Bytes → loaded PIL image. ICO files yield their largest PNG frame."""
    if not data:
        raise ImageDecodeError("Empty response")
    if is_ico(data):
        png = extract_png_from_ico(data)
        if png is not None:
            data = png
        else:
            # BMP-only ICO: let Pillow's own ICO plugin have a go
            try:
                img = Image.open(io.BytesIO(data))
                img.load()
                return img
            except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError, SyntaxError) as e:
                raise ImageDecodeError("ICO with no extractable frames") from e
    elif is_svg(data):
        data = rasterize_svg(data)
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except Image.DecompressionBombError as e:
        raise ImageDecodeError(f"Image too large: {e}") from e
    except (UnidentifiedImageError, OSError, ValueError, SyntaxError) as e:
        raise ImageDecodeError(f"Undecodable image: {e}") from e
    return ImageOps.exif_transpose(img)


def load(url: str, timeout: float = 5.0,
         session: Optional[requests.Session] = None) -> Tuple[Image.Image, bytes]:
    raw = fetch_bytes(url, timeout=timeout, session=session)
    return decode(raw), raw


# ── Resize / encode ───────────────────────────────────────────────────────────

def resize(img: Image.Image, width: int, height: int, fit: str = "cover",
           background: Tuple[int, int, int, int] = (0, 0, 0, 0)) -> Image.Image:
    """
    cover   fill the box, centre-crop the overflow
    contain fit inside the box, pad with background
    fill    stretch to the box
    inside  fit inside the box, no padding, never enlarge
    """
    if fit == "fill":
        return img.resize((width, height), Image.LANCZOS)
    if fit == "cover":
        return ImageOps.fit(img, (width, height), Image.LANCZOS)
    if fit == "inside":
        if img.width <= width and img.height <= height:
            return img.copy()
        out = img.copy()
        out.thumbnail((width, height), Image.LANCZOS)
        return out
    if fit == "contain":
        src = img.convert("RGBA")
        scale = min(width / src.width, height / src.height)
        nw = max(1, round(src.width * scale))
        nh = max(1, round(src.height * scale))
        scaled = src.resize((nw, nh), Image.LANCZOS)
        canvas = Image.new("RGBA", (width, height), background)
        canvas.paste(scaled, ((width - nw) // 2, (height - nh) // 2), scaled)
        return canvas
    raise ValueError(f"unknown fit mode: {fit}")


def flatten(img: Image.Image, background: Tuple[int, int, int] = (255, 255, 255)) -> Image.Image:
    """Composite any alpha onto a solid background and return RGB."""
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        base = Image.new("RGB", rgba.size, background)
        base.paste(rgba, mask=rgba.split()[3])
        return base
    return img.convert("RGB")


def encode(img: Image.Image, fmt: str = "PNG", quality: int = 82) -> bytes:
    buf = io.BytesIO()
    if fmt.upper() in ("JPEG", "JPG"):
        flatten(img).save(buf, format="JPEG", quality=quality, optimize=True)
    else:
        img.save(buf, format=fmt.upper())
    return buf.getvalue()


def to_data_url(data: bytes, mime: str) -> str:
    return f"data:{mime};base64," + base64.b64encode(data).decode("ascii")
