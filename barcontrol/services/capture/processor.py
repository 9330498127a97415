"""
Photo Processor

Downsamples and re-encodes whatever a capture strategy produced, so a
photo attached to an item is small enough to be written to local storage
over and over without filling it.

STEPS:
1. Decode (any format PIL reads) and apply the EXIF orientation
2. Flatten to RGB
3. Cap the long edge at `max_dimension`
4. Encode as JPEG at `jpeg_quality`, stepping quality down to
   `min_jpeg_quality` until the data URL fits `max_photo_bytes`
5. If it still does not fit, shrink the image and try again

A payload PIL cannot decode raises PhotoProcessingError.
"""

import base64
from io import BytesIO
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from barcontrol.config import CaptureSettings
from barcontrol.exceptions import PhotoProcessingError
from barcontrol.models.capture import CapturedPhoto


DATA_URL_PREFIX = "data:image/jpeg;base64,"

QUALITY_STEP = 10
SHRINK_FACTOR = 0.75
MIN_EDGE = 64


def encoded_size(jpeg_bytes: int) -> int:
    """Length of the data URL for a JPEG of `jpeg_bytes` bytes."""
    return len(DATA_URL_PREFIX) + 4 * ((jpeg_bytes + 2) // 3)


def decode_data_url(data_url: str) -> bytes:
    """Raw image bytes from a stored photo payload."""
    _, _, payload = data_url.partition(",")
    try:
        return base64.b64decode(payload, validate=True)
    except ValueError as e:
        raise PhotoProcessingError(f"Invalid photo payload: {e}") from e


class PhotoProcessor:
    """
    Turns raw image bytes into a CapturedPhoto.

    Usage:
        processor = PhotoProcessor.from_settings(get_settings().capture)
        photo = processor.process(raw_bytes, source="file_picker")
    """

    def __init__(
        self,
        max_dimension: int = 800,
        jpeg_quality: int = 70,
        min_jpeg_quality: int = 30,
        max_photo_bytes: int = 120_000,
    ):
        self.max_dimension = max_dimension
        self.jpeg_quality = jpeg_quality
        self.min_jpeg_quality = min(min_jpeg_quality, jpeg_quality)
        self.max_photo_bytes = max_photo_bytes

    @classmethod
    def from_settings(cls, settings: CaptureSettings) -> "PhotoProcessor":
        return cls(
            max_dimension=settings.max_dimension,
            jpeg_quality=settings.jpeg_quality,
            min_jpeg_quality=settings.min_jpeg_quality,
            max_photo_bytes=settings.max_photo_bytes,
        )

    def process(self, raw: bytes, source: str = "unknown") -> CapturedPhoto:
        """
        Downsample and re-encode an acquired image.

        Raises:
            PhotoProcessingError: If the bytes are not a readable image, or
                                  the image cannot be made small enough
        """
        if not raw:
            raise PhotoProcessingError("Empty image payload")

        image = self._decode(raw)
        image.thumbnail((self.max_dimension, self.max_dimension), Image.Resampling.LANCZOS)

        while True:
            encoded, quality = self._encode_within_budget(image)
            if encoded is not None:
                break
            width, height = image.size
            if max(width, height) <= MIN_EDGE:
                raise PhotoProcessingError(
                    f"Photo cannot be reduced below {self.max_photo_bytes} bytes"
                )
            new_size = (
                max(1, int(width * SHRINK_FACTOR)),
                max(1, int(height * SHRINK_FACTOR)),
            )
            image = image.resize(new_size, Image.Resampling.LANCZOS)

        width, height = image.size
        return CapturedPhoto(
            data_url=DATA_URL_PREFIX + base64.b64encode(encoded).decode("ascii"),
            width=width,
            height=height,
            jpeg_quality=quality,
            source=source,
        )

    def _decode(self, raw: bytes) -> Image.Image:
        try:
            with Image.open(BytesIO(raw)) as opened:
                opened.load()
                image = ImageOps.exif_transpose(opened)
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            raise PhotoProcessingError(f"Could not read image: {e}") from e

        if image.mode != "RGB":
            image = image.convert("RGB")
        return image

    def _encode_within_budget(self, image: Image.Image) -> tuple[Optional[bytes], int]:
        """JPEG bytes at the highest quality that fits, or None if none does."""
        quality = self.jpeg_quality
        while True:
            buffer = BytesIO()
            image.save(buffer, format="JPEG", quality=quality, optimize=True)
            data = buffer.getvalue()
            if encoded_size(len(data)) <= self.max_photo_bytes:
                return data, quality
            if quality <= self.min_jpeg_quality:
                return None, quality
            quality = max(self.min_jpeg_quality, quality - QUALITY_STEP)
