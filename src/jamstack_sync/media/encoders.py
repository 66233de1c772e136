"""Image encoder backends.

Backends are ranked: EncoderChain asks each one, in order, whether it can
write a format and uses the first that says yes. Pillow covers WebP and
AVIF when its plugins were built with them; PyMuPDF can always write JPEG
and PNG.
"""

import logging
from abc import ABC, abstractmethod
from io import BytesIO

import fitz  # PyMuPDF
from PIL import Image

from jamstack_sync.exceptions import CodecUnsupported

logger = logging.getLogger(__name__)

PIL_FORMATS = {
    "webp": "WEBP",
    "avif": "AVIF",
    "jpeg": "JPEG",
    "jpg": "JPEG",
    "png": "PNG",
}


class EncoderBackend(ABC):
    """An image codec able to re-encode image bytes into some formats."""

    name: str = "backend"

    @abstractmethod
    def supports(self, image_format: str) -> bool:
        """Report whether this backend can write image_format on this host."""
        pass

    @abstractmethod
    def encode(self, data: bytes, image_format: str, quality: int) -> bytes:
        """Decode data and re-encode it as image_format."""
        pass


class PillowEncoder(EncoderBackend):
    name = "pillow"

    def supports(self, image_format: str) -> bool:
        pil_format = PIL_FORMATS.get(image_format.lower())
        if pil_format is None:
            return False
        # Plugins whose native library is missing never register a writer
        Image.init()
        return pil_format in Image.SAVE

    def encode(self, data: bytes, image_format: str, quality: int) -> bytes:
        pil_format = PIL_FORMATS[image_format.lower()]
        output = BytesIO()

        with Image.open(BytesIO(data)) as image:
            if pil_format == "JPEG" and image.mode not in ("RGB", "L"):
                image = image.convert("RGB")
            elif image.mode not in ("RGB", "RGBA", "L", "LA"):
                image = image.convert("RGBA")
            image.save(output, format=pil_format, quality=quality)

        return output.getvalue()


class PyMuPDFEncoder(EncoderBackend):
    name = "pymupdf"

    FORMATS = ("jpeg", "jpg", "png")

    def supports(self, image_format: str) -> bool:
        return image_format.lower() in self.FORMATS

    def encode(self, data: bytes, image_format: str, quality: int) -> bytes:
        pix = fitz.Pixmap(data)
        if pix.alpha and image_format.lower() != "png":
            pix = fitz.Pixmap(pix, 0)
        if image_format.lower() == "png":
            return pix.tobytes("png")
        return pix.tobytes("jpeg", jpg_quality=quality)


def default_backends() -> list[EncoderBackend]:
    return [PillowEncoder(), PyMuPDFEncoder()]


class EncoderChain:
    """Ranked list of encoder backends.

    Example:
        chain = EncoderChain()
        webp_bytes = chain.encode(jpeg_bytes, "webp", quality=85)
    """

    def __init__(self, backends: list[EncoderBackend] | None = None):
        self.backends = backends if backends is not None else default_backends()

    def backend_for(self, image_format: str) -> EncoderBackend:
        """Return the highest ranked backend that supports image_format.

        Raises:
            CodecUnsupported: If no backend supports it
        """
        for backend in self.backends:
            if backend.supports(image_format):
                return backend
        raise CodecUnsupported(image_format)

    def encode(self, data: bytes, image_format: str, quality: int) -> bytes:
        backend = self.backend_for(image_format)
        logger.debug(f"Encoding {image_format} with {backend.name}")
        return backend.encode(data, image_format, quality)
