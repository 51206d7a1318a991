"""Pillow implementation of the image codec.

Every operation builds a new image; inputs are left untouched.

Filters
-------
normalize  — ImageOps.autocontrast with separate low/high cutoffs, so a
             1 %/99 % clip ignores outlier pixels (dust, specular glare)
             when stretching the tonal range.

gamma      — 8-bit lookup table, out = 255 · (in/255) ^ (1/exponent).
             An exponent above 1 brightens the midtones.

sharpen    — two unsharp masks blended by an edge mask: *flat* is the gain
             where the local detail is within _EDGE_CUTOFF of its blurred
             neighbourhood, *jagged* the gain on real edges.  Keeps paper
             texture from being amplified along with text strokes.

threshold  — fixed-level binarisation to pure black / white, kept in "L"
             mode so the PNG writer emits an 8-bit grayscale file.
"""

import io
import logging

from PIL import Image, ImageChops, ImageFilter, ImageOps

from compress_image.codec.base import ImageBuffer, ImageCodec
from compress_image.errors import DecodeError, EncodeError

logger = logging.getLogger(__name__)

# Detail below this many grey levels counts as flat area when sharpening.
_EDGE_CUTOFF = 2

_DECODE_ERRORS = (OSError, SyntaxError, ValueError, Image.DecompressionBombError)
_ENCODE_ERRORS = (OSError, ValueError, KeyError)


class PillowCodec(ImageCodec):
    def decode(self, data: bytes) -> ImageBuffer:
        try:
            img = Image.open(io.BytesIO(data))
            fmt = img.format
            # Image.open is lazy; force the pixel data so corrupt bodies fail here.
            img.load()
        except _DECODE_ERRORS as e:
            logger.debug("Decode failed: %s", e)
            raise DecodeError("Cannot decode image data") from e
        return ImageBuffer(image=img, format=fmt)

    def grayscale(self, buf: ImageBuffer) -> ImageBuffer:
        return ImageBuffer(ImageOps.grayscale(buf.image), buf.format)

    def normalize(self, buf: ImageBuffer, lower: float, upper: float) -> ImageBuffer:
        if not 0 <= lower < upper <= 100:
            raise ValueError(f"invalid percentile clip {lower}/{upper}")
        img = _as_luminance(buf.image)
        stretched = ImageOps.autocontrast(img, cutoff=(lower, 100 - upper))
        return ImageBuffer(stretched, buf.format)

    def gamma(self, buf: ImageBuffer, exponent: float) -> ImageBuffer:
        if exponent <= 0:
            raise ValueError(f"gamma exponent must be positive, got {exponent}")
        img = _as_luminance(buf.image)
        lut = [round(255 * (i / 255) ** (1 / exponent)) for i in range(256)]
        return ImageBuffer(img.point(lut * len(img.getbands())), buf.format)

    def sharpen(self, buf: ImageBuffer, sigma: float, flat: float, jagged: float) -> ImageBuffer:
        img = _as_luminance(buf.image)
        blurred = img.filter(ImageFilter.GaussianBlur(sigma))
        edges = ImageChops.difference(img, blurred).convert("L")
        edges = edges.point(lambda v: 255 if v > _EDGE_CUTOFF else 0)

        flat_pass = img.filter(
            ImageFilter.UnsharpMask(radius=sigma, percent=round(flat * 100), threshold=0)
        )
        jagged_pass = img.filter(
            ImageFilter.UnsharpMask(radius=sigma, percent=round(jagged * 100), threshold=0)
        )
        return ImageBuffer(Image.composite(jagged_pass, flat_pass, edges), buf.format)

    def blur(self, buf: ImageBuffer, sigma: float) -> ImageBuffer:
        return ImageBuffer(buf.image.filter(ImageFilter.GaussianBlur(sigma)), buf.format)

    def threshold(self, buf: ImageBuffer, level: int) -> ImageBuffer:
        if not 0 <= level <= 255:
            raise ValueError(f"threshold level must be 0-255, got {level}")
        img = buf.image if buf.image.mode == "L" else buf.image.convert("L")
        return ImageBuffer(img.point(lambda v: 255 if v >= level else 0), buf.format)

    def resize(
        self, buf: ImageBuffer, width: int, height: int, no_enlarge: bool = True
    ) -> ImageBuffer:
        width, height = max(1, int(width)), max(1, int(height))
        if no_enlarge:
            width, height = min(width, buf.width), min(height, buf.height)
        if (width, height) == buf.size:
            return buf
        resized = _resamplable(buf.image).resize((width, height), Image.Resampling.LANCZOS)
        return ImageBuffer(resized, buf.format)

    def encode_lossy(self, buf: ImageBuffer, quality: int, effort: int) -> bytes:
        if not 0 <= quality <= 100:
            raise EncodeError(f"WebP quality must be 0-100, got {quality}")
        if not 0 <= effort <= 6:
            raise EncodeError(f"WebP effort must be 0-6, got {effort}")
        out = io.BytesIO()
        try:
            buf.image.save(out, format="WEBP", quality=quality, method=effort)
        except _ENCODE_ERRORS as e:
            raise EncodeError(f"WebP encoding failed: {e}") from e
        return out.getvalue()

    def encode_lossless(
        self, buf: ImageBuffer, level: int, adaptive_filter: bool = True
    ) -> bytes:
        """Encode as PNG.

        Pillow's PNG writer always filters 8-bit rows adaptively and has no
        switch to turn that off, so ``adaptive_filter=False`` is rejected.
        """
        if not 0 <= level <= 9:
            raise EncodeError(f"PNG compression level must be 0-9, got {level}")
        if not adaptive_filter:
            raise EncodeError("PNG writer does not support disabling adaptive filtering")
        out = io.BytesIO()
        try:
            buf.image.save(out, format="PNG", compress_level=level)
        except _ENCODE_ERRORS as e:
            raise EncodeError(f"PNG encoding failed: {e}") from e
        return out.getvalue()


def _as_luminance(img: Image.Image) -> Image.Image:
    """autocontrast and the LUT filters only handle L and RGB."""
    if img.mode in ("L", "RGB"):
        return img
    return img.convert("L")


def _resamplable(img: Image.Image) -> Image.Image:
    """Pillow resizes "P" and "1" images with NEAREST whatever filter is asked for."""
    if img.mode == "1":
        return img.convert("L")
    if img.mode == "P":
        return img.convert("RGBA" if img.has_transparency_data else "RGB")
    return img
