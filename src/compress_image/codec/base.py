"""Abstract image codec used by the compression and enhancement pipelines."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from PIL import Image


@dataclass(frozen=True)
class ImageBuffer:
    """A decoded image and its metadata.

    Codec operations never mutate a buffer; they return a new one.
    """

    image: Image.Image
    format: Optional[str] = None

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @property
    def size(self) -> tuple[int, int]:
        return self.image.size


class ImageCodec(ABC):
    @abstractmethod
    def decode(self, data: bytes) -> ImageBuffer:
        """Decode raw bytes, raising DecodeError when they are not an image."""
        ...

    @abstractmethod
    def grayscale(self, buf: ImageBuffer) -> ImageBuffer:
        ...

    @abstractmethod
    def normalize(self, buf: ImageBuffer, lower: float, upper: float) -> ImageBuffer:
        """Stretch the histogram, clipping below the *lower* and above the *upper* percentile."""
        ...

    @abstractmethod
    def gamma(self, buf: ImageBuffer, exponent: float) -> ImageBuffer:
        ...

    @abstractmethod
    def sharpen(self, buf: ImageBuffer, sigma: float, flat: float, jagged: float) -> ImageBuffer:
        ...

    @abstractmethod
    def blur(self, buf: ImageBuffer, sigma: float) -> ImageBuffer:
        ...

    @abstractmethod
    def threshold(self, buf: ImageBuffer, level: int) -> ImageBuffer:
        ...

    @abstractmethod
    def resize(
        self, buf: ImageBuffer, width: int, height: int, no_enlarge: bool = True
    ) -> ImageBuffer:
        ...

    @abstractmethod
    def encode_lossy(self, buf: ImageBuffer, quality: int, effort: int) -> bytes:
        """Encode as WebP, raising EncodeError on rejected parameters."""
        ...

    @abstractmethod
    def encode_lossless(
        self, buf: ImageBuffer, level: int, adaptive_filter: bool = True
    ) -> bytes:
        """Encode as PNG at a zlib compression *level*, raising EncodeError on failure."""
        ...
