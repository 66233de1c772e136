"""Image discovery, download and re-encoding."""

from .encoders import EncoderBackend, EncoderChain, PillowEncoder, PyMuPDFEncoder
from .media_processor import MediaProcessor, image_directory

__all__ = [
    "EncoderBackend",
    "EncoderChain",
    "MediaProcessor",
    "PillowEncoder",
    "PyMuPDFEncoder",
    "image_directory",
]
