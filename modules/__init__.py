"""
Product Staging Modules
"""

from .layout import LayoutEngine, Placement, Rect, CompositeLayout, get_scaled_value, resolve_canvas_size
from .renderer import Renderer, ReflectionOptions
from .mask_analyzer import AlphaMaskAnalyzer
from .baseline import BaselineFitter, BaselineFit
from .deskew import Deskewer, DeskewResult, auto_deskew, rotate_image
from .orientation import correct_orientation, orientation_matrix, read_orientation
from .shadow_preview import ShadowConfig, build_shadow_preview_url, shadow_padding_multiplier
from .exporter import Exporter

__all__ = [
    "LayoutEngine",
    "Placement",
    "Rect",
    "CompositeLayout",
    "get_scaled_value",
    "resolve_canvas_size",
    "Renderer",
    "ReflectionOptions",
    "AlphaMaskAnalyzer",
    "BaselineFitter",
    "BaselineFit",
    "Deskewer",
    "DeskewResult",
    "auto_deskew",
    "rotate_image",
    "correct_orientation",
    "orientation_matrix",
    "read_orientation",
    "ShadowConfig",
    "build_shadow_preview_url",
    "shadow_padding_multiplier",
    "Exporter",
]
