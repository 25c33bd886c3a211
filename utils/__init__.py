"""
Utility Functions
"""

from .image_utils import (
    load_image,
    to_pil,
    get_image_dimensions,
    ensure_surface,
)
from .session_cache import SessionFileCache

__all__ = [
    "load_image",
    "to_pil",
    "get_image_dimensions",
    "ensure_surface",
    "SessionFileCache",
]
