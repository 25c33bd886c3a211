"""
Layout Engine - Compute where the subject, product and reflection land on the canvas
"""

import math
from dataclasses import dataclass, asdict
from typing import Dict, Optional, Tuple
from loguru import logger

# Canvas width at which every effect magnitude (blur radii etc.) is calibrated
REFERENCE_WIDTH = 3000

ASPECT_RATIOS = {
    "1:1": 1.0,
    "4:3": 4 / 3,
    "3:4": 3 / 4,
}
FALLBACK_ASPECT_RATIO = 4 / 3


def get_scaled_value(base_value: float, current_width: float, min_value: float = 0.5) -> float:
    """
    Scale an effect magnitude from REFERENCE_WIDTH to the current canvas width

    Keeps blur radii visually identical between a small preview and a
    full resolution export.

    Args:
        base_value: Magnitude at REFERENCE_WIDTH
        current_width: Width of the canvas being drawn
        min_value: Floor so the effect never degenerates to zero

    Returns:
        Scaled magnitude, never below min_value
    """
    return max(min_value, base_value * current_width / REFERENCE_WIDTH)


def _round(value: float) -> int:
    # Half-up, so equal steps in placement never collapse onto one pixel
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class Placement:
    """
    Normalized subject placement

    x: horizontal center as a fraction of canvas width
    y: fraction of canvas height where the subject's bottom edge sits (0 = top)
    scale: multiplier applied to the subject size

    x and y are deliberately not clamped; out-of-range values place the
    subject partly or fully off canvas.
    """
    x: float = 0.5
    y: float = 0.85
    scale: float = 1.0

    def __post_init__(self):
        if not self.scale > 0:
            raise ValueError(f"Placement scale must be > 0, got {self.scale}")


@dataclass(frozen=True)
class Rect:
    """Axis-aligned integer pixel rectangle"""
    x: int
    y: int
    width: int
    height: int

    @classmethod
    def from_floats(cls, x: float, y: float, width: float, height: float) -> "Rect":
        return cls(_round(x), _round(y), _round(width), _round(height))

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class CompositeLayout:
    """Complete, immutable layout for one composite"""
    canvas_width: int
    canvas_height: int
    shadowed_subject_rect: Rect  # Subject including soft-shadow padding
    product_rect: Rect  # Actual product bounds, centered inside the shadowed rect
    reflection_rect: Rect  # Mirrored product, flush against the product bottom
    scale: float

    def to_dict(self) -> Dict:
        return {
            "canvas_width": self.canvas_width,
            "canvas_height": self.canvas_height,
            "shadowed_subject_rect": self.shadowed_subject_rect.to_dict(),
            "product_rect": self.product_rect.to_dict(),
            "reflection_rect": self.reflection_rect.to_dict(),
            "scale": self.scale,
        }


def resolve_canvas_size(
    aspect_ratio: str,
    width: int,
    backdrop_size: Optional[Tuple[int, int]] = None
) -> Tuple[int, int]:
    """
    Canvas dimensions for an aspect ratio preset

    Args:
        aspect_ratio: "1:1", "4:3", "3:4" or "original"
        width: Canvas width in pixels
        backdrop_size: (width, height) of the backdrop, used by "original"

    Returns:
        (width, height)
    """
    if aspect_ratio in ASPECT_RATIOS:
        ratio = ASPECT_RATIOS[aspect_ratio]
    elif aspect_ratio == "original" and backdrop_size and backdrop_size[0] > 1 and backdrop_size[1] > 1:
        ratio = backdrop_size[0] / backdrop_size[1]
    else:
        if aspect_ratio != "original":
            logger.warning(f"Unknown aspect ratio '{aspect_ratio}', falling back to 4:3")
        ratio = FALLBACK_ASPECT_RATIO

    return int(width), max(1, _round(width / ratio))


class LayoutEngine:
    """
    Deterministic placement geometry for a subject and its reflection

    Works at any canvas size: the same placement yields the same
    proportions on a 600px preview and a 3000px export.
    """

    def __init__(self):
        """
        Initialize Layout Engine
        """
        logger.info(f"LayoutEngine initialized (reference width {REFERENCE_WIDTH}px)")

    def compute_layout(
        self,
        canvas_w: float,
        canvas_h: float,
        shadowed_w: float,
        shadowed_h: float,
        clean_w: float,
        clean_h: float,
        placement: Placement
    ) -> CompositeLayout:
        """
        Compute subject, product and reflection rectangles

        Args:
            canvas_w, canvas_h: Output canvas size
            shadowed_w, shadowed_h: Natural size of the shadowed (padded) subject
            clean_w, clean_h: Natural size of the clean product cutout
            placement: Normalized placement

        Returns:
            CompositeLayout with integer rectangles
        """
        if canvas_w <= 0 or canvas_h <= 0:
            raise ValueError(f"Canvas size must be positive, got {canvas_w}x{canvas_h}")
        if min(shadowed_w, shadowed_h, clean_w, clean_h) <= 0:
            raise ValueError(
                f"Subject sizes must be positive, got shadowed {shadowed_w}x{shadowed_h}, "
                f"clean {clean_w}x{clean_h}"
            )

        scale = placement.scale

        # Shadowed subject: centered on x, bottom edge anchored at y
        draw_w = shadowed_w * scale
        draw_h = shadowed_h * scale
        subject_x = canvas_w * placement.x - draw_w / 2
        subject_y = canvas_h * placement.y - draw_h

        # Product sits centered inside the shadow padding
        product_w = clean_w * scale
        product_h = clean_h * scale
        product_x = subject_x + (draw_w - product_w) / 2
        product_y = subject_y + (draw_h - product_h) / 2

        shadowed_rect = Rect.from_floats(subject_x, subject_y, draw_w, draw_h)
        product_rect = Rect.from_floats(product_x, product_y, product_w, product_h)

        # Derived from the rounded product rect so the two edges meet exactly
        reflection_rect = Rect(
            x=product_rect.x,
            y=product_rect.bottom,
            width=product_rect.width,
            height=product_rect.height,
        )

        layout = CompositeLayout(
            canvas_width=_round(canvas_w),
            canvas_height=_round(canvas_h),
            shadowed_subject_rect=shadowed_rect,
            product_rect=product_rect,
            reflection_rect=reflection_rect,
            scale=scale,
        )

        logger.debug(
            f"📐 Layout {layout.canvas_width}x{layout.canvas_height} | "
            f"subject={shadowed_rect} product={product_rect} reflection={reflection_rect}"
        )
        return layout
