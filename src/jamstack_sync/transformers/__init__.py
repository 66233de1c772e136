"""Transformers for rendering content items as static site documents."""

from .hugo_transformer import HugoTransformer
from .markdown import html_to_markdown
from .transformer import FormatTransformer

__all__ = [
    "FormatTransformer",
    "HugoTransformer",
    "html_to_markdown",
]
