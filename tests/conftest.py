"""Shared fixtures for the test suite.

Image fixtures produce real bytes so tests exercise actual Pillow code paths.
Where a test needs exact control over encoded sizes, ``scripted_codec`` keeps
Pillow's pixel operations but replaces the encoders' output with payloads of
a chosen length.
"""

import io
import random
from pathlib import Path

import pytest
from click.testing import CliRunner
from PIL import Image

from compress_image.codec.pillow import PillowCodec


# ── CLI runner ─────────────────────────────────────────────────────────────


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


# ── Image fixtures ─────────────────────────────────────────────────────────


def _encode_png(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    """A real, valid 10×10 red PNG image as raw bytes."""
    return _encode_png(Image.new("RGB", (10, 10), color=(255, 0, 0)))


@pytest.fixture
def png_file(tmp_path: Path, png_bytes: bytes) -> Path:
    """The PNG written to a temporary file on disk."""
    path = tmp_path / "test.png"
    path.write_bytes(png_bytes)
    return path


@pytest.fixture
def tiny_png() -> bytes:
    """A 50×50 mid-grey PNG: compresses far below any realistic budget."""
    return _encode_png(Image.new("RGB", (50, 50), color=(120, 130, 140)))


@pytest.fixture
def noise_png() -> bytes:
    """A 200×200 RGB PNG of seeded random noise: incompressible at any quality."""
    rng = random.Random(1234)
    pixels = bytes(rng.getrandbits(8) for _ in range(200 * 200 * 3))
    return _encode_png(Image.frombytes("RGB", (200, 200), pixels))


@pytest.fixture
def noise_file(tmp_path: Path, noise_png: bytes) -> Path:
    path = tmp_path / "noise.png"
    path.write_bytes(noise_png)
    return path


@pytest.fixture
def gradient_png() -> bytes:
    """A low-contrast horizontal gradient (grey levels 100–150), 100×20."""
    img = Image.new("L", (100, 20))
    img.putdata([100 + (x * 50) // 99 for _ in range(20) for x in range(100)])
    return _encode_png(img)


@pytest.fixture(scope="session")
def large_png() -> bytes:
    """A 2000×2000 Mandelbrot render: camera-sized with real detail, yet compressible."""
    return _encode_png(Image.effect_mandelbrot((2000, 2000), (-2.0, -1.5, 1.0, 1.5), 100))


# ── Scripted codec ─────────────────────────────────────────────────────────


def _payload(tag: str, size: int) -> bytes:
    return tag.encode().ljust(size, b"\0")[:size]


class ScriptedCodec(PillowCodec):
    """Pillow pixel operations, scripted encoder output.

    *lossy* and *lossless* are ``(buffer, param) -> size`` callables; the
    encoder returns a payload of exactly that many bytes, tagged with the
    parameter and buffer width.  Raising from them simulates a codec fault.
    Every call is recorded in ``calls`` as ``(name, buffer, *args)``.
    """

    def __init__(self, lossy=None, lossless=None):
        self.lossy = lossy or (lambda buf, quality: 64)
        self.lossless = lossless or (lambda buf, level: 64)
        self.calls = []
        self.decoded = None

    def names(self) -> list[str]:
        return [call[0] for call in self.calls]

    def decode(self, data):
        self.decoded = super().decode(data)
        self.calls.append(("decode", self.decoded))
        return self.decoded

    def grayscale(self, buf):
        self.calls.append(("grayscale", buf))
        return super().grayscale(buf)

    def resize(self, buf, width, height, no_enlarge=True):
        self.calls.append(("resize", buf, width, height))
        return super().resize(buf, width, height, no_enlarge)

    def encode_lossy(self, buf, quality, effort):
        self.calls.append(("encode_lossy", buf, quality, effort))
        return _payload(f"q{quality}w{buf.width}", self.lossy(buf, quality))

    def encode_lossless(self, buf, level, adaptive_filter=True):
        self.calls.append(("encode_lossless", buf, level))
        return _payload(f"l{level}w{buf.width}", self.lossless(buf, level))


@pytest.fixture
def scripted_codec():
    return ScriptedCodec
