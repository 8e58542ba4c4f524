"""Pillow-backed raster helpers used by the node and the payload codec."""
from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from io import BytesIO

from PIL import Image as PilImage
from PIL import UnidentifiedImageError


WHITE = (255, 255, 255, 255)


@dataclass(frozen=True)
class Extent:
    width: int
    height: int

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @property
    def is_zero(self) -> bool:
        return self.pixel_count == 0

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


class ImageDecodeError(ValueError):
    """Raised when bytes or base64 text cannot be read as an image."""


class Image:
    """Pillow-backed image wrapper."""

    def __init__(self, pil_image: PilImage.Image):
        self._pil = pil_image

    @staticmethod
    def create(extent: Extent, fill=None) -> "Image":
        size = (extent.width, extent.height)
        img = PilImage.new("RGBA", size, fill if fill is not None else (0, 0, 0, 0))
        return Image(img)

    @staticmethod
    def copy(image: "Image") -> "Image":
        return Image(image._pil.copy())

    @staticmethod
    def from_bytes(data: bytes | memoryview) -> "Image":
        raw = bytes(data)
        try:
            with BytesIO(raw) as buffer:
                img = PilImage.open(buffer)
                img.load()
                return Image(img)
        except (UnidentifiedImageError, OSError) as e:
            raise ImageDecodeError(f"Invalid image data: {e}") from e

    @staticmethod
    def from_base64(data: str) -> "Image":
        # Accept data URLs as sent by browser based editors
        if data.startswith("data:") and "," in data:
            data = data.split(",", 1)[1]
        try:
            raw = base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ImageDecodeError(f"Invalid base64 image: {e}") from e
        return Image.from_bytes(raw)

    @property
    def width(self) -> int:
        return self._pil.width

    @property
    def height(self) -> int:
        return self._pil.height

    @property
    def extent(self) -> Extent:
        return Extent(self.width, self.height)

    @property
    def mode(self) -> str:
        return self._pil.mode

    @property
    def data(self) -> bytes:
        return self._pil.tobytes()

    def pixel(self, x: int, y: int):
        return self._pil.getpixel((x, y))

    def to_bytes(self, compress_level: int = 1) -> bytes:
        with BytesIO() as buffer:
            self._pil.save(buffer, format="PNG", compress_level=compress_level)
            return buffer.getvalue()

    def to_base64(self, compress_level: int = 1) -> str:
        return base64.b64encode(self.to_bytes(compress_level)).decode("utf-8")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Image):
            return NotImplemented
        return (
            self.extent == other.extent
            and self.mode == other.mode
            and self.data == other.data
        )

    def __repr__(self) -> str:
        return f"Image({self.extent}, {self.mode})"
