"""Error taxonomy for the image pipelines.

Every error is terminal for the request that raised it; nothing is retried.
"""


class ImageProcessingError(Exception):
    """Base class for all pipeline failures."""


class EmptyInputError(ImageProcessingError):
    """The request body was empty."""

    def __init__(self, message: str = "No image data received") -> None:
        super().__init__(message)


class DecodeError(ImageProcessingError):
    """The input bytes could not be decoded as an image."""


class EncodeError(ImageProcessingError):
    """The codec rejected the requested encode parameters."""


class PayloadTooLargeError(ImageProcessingError):
    """The upload exceeds the configured maximum size."""
