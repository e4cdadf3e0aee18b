"""Synthetic images for the scorer tests."""

from __future__ import annotations

import io

import numpy as np
from PIL import Image, ImageDraw


def png_bytes(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def jpeg_bytes(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.convert("RGB").save(buf, format="JPEG", quality=95)
    return buf.getvalue()


def flat_logo(size: int = 256, color: str = "#1e40af") -> Image.Image:
    """White square with a solid block filling most of it. Reads as an icon."""
    img = Image.new("RGB", (size, size), "#ffffff")
    draw = ImageDraw.Draw(img)
    q = size // 8
    draw.rectangle([q, q, size - q - 1, size - q - 1], fill=color)
    return img


def block_noise(width: int, height: int, blocks: int = 50, seed: int = 7) -> Image.Image:
    """Random colour blocks on a blocks×blocks grid. Busy everywhere, photo-like."""
    rng = np.random.default_rng(seed)
    grid = rng.integers(0, 256, size=(blocks, blocks, 3), dtype=np.uint8)
    return Image.fromarray(grid, "RGB").resize((width, height), Image.NEAREST)


def solid(width: int, height: int, color: str = "#cccccc") -> Image.Image:
    return Image.new("RGB", (width, height), color)


def ico_bytes(img: Image.Image, sizes=((16, 16), (32, 32), (64, 64))) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="ICO", sizes=list(sizes))
    return buf.getvalue()


def half_red(size: int = 100) -> Image.Image:
    """Left half pure red, right half white."""
    img = Image.new("RGB", (size, size), "#ffffff")
    ImageDraw.Draw(img).rectangle([0, 0, size // 2 - 1, size - 1], fill="#ff0000")
    return img
