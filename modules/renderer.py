"""
Renderer Module - Composite backdrop, reflection and subject onto one canvas
"""

import asyncio
from dataclasses import dataclass
from typing import Optional, Tuple

import cv2
import numpy as np
from PIL import Image, ImageFilter
from loguru import logger

from config import settings
from modules.layout import CompositeLayout, LayoutEngine, Placement, Rect, get_scaled_value
from utils.exceptions import CompositeError, ImageUnreadableError
from utils.image_utils import ImageSource, ensure_surface, get_image_dimensions, load_image, to_pil


@dataclass(frozen=True)
class ReflectionOptions:
    """Reflection appearance"""
    opacity: float = settings.REFLECTION_OPACITY  # Alpha at the touch point
    falloff: float = settings.REFLECTION_FALLOFF  # Fraction of reflection height over which it fades to 0
    blur: float = 0.0  # Base blur at REFERENCE_WIDTH, 0 = sharp

    def __post_init__(self):
        if not 0 <= self.opacity <= 1:
            raise ValueError(f"Reflection opacity must be in [0, 1], got {self.opacity}")
        if not 0 <= self.falloff <= 1:
            raise ValueError(f"Reflection falloff must be in [0, 1], got {self.falloff}")


class Renderer:
    """
    Renders the final staged image

    Draw order is fixed: backdrop, optional depth-of-field blur,
    reflection, shadowed subject. Input images are never modified.
    """

    def __init__(self, layout_engine: Optional[LayoutEngine] = None):
        """
        Initialize Renderer

        Args:
            layout_engine: Layout engine used by render() (created if omitted)
        """
        self.layout_engine = layout_engine or LayoutEngine()

        logger.info("Renderer initialized")

    def composite(
        self,
        backdrop: ImageSource,
        shadowed_subject: ImageSource,
        clean_subject: ImageSource,
        layout: CompositeLayout,
        reflection_options: Optional[ReflectionOptions] = None,
        blur_background: bool = False
    ) -> Image.Image:
        """
        Composite all layers using a precomputed layout

        Args:
            backdrop: Backdrop image, stretched to the full canvas
            shadowed_subject: Subject including its drop shadow padding
            clean_subject: Subject without shadow, used for the reflection
            layout: Output of LayoutEngine.compute_layout
            reflection_options: Reflection settings, None to disable
            blur_background: Apply depth-of-field blur to the backdrop only

        Returns:
            Composited RGB image

        Raises:
            CompositeError: If any input image cannot be decoded
            SurfaceUnavailableError: If the canvas cannot be allocated
        """
        width, height = layout.canvas_width, layout.canvas_height
        ensure_surface(width, height)

        try:
            backdrop_img = load_image(backdrop)
            shadowed_img = load_image(shadowed_subject)
            clean_img = load_image(clean_subject)
        except ImageUnreadableError as e:
            raise CompositeError(f"Composite aborted: {e.message}") from e

        logger.info(f"🎨 Compositing {width}x{height} (blur_background={blur_background})")

        # 1. Backdrop stretched to the canvas
        canvas = self._prepare_backdrop(backdrop_img, width, height, blur_background)

        # 2. Reflection sits under the subject
        if reflection_options is not None and reflection_options.opacity > 0:
            self._draw_reflection(canvas, clean_img, layout.reflection_rect, reflection_options)

        # 3. Shadowed subject always last
        self._draw_layer(canvas, shadowed_img, layout.shadowed_subject_rect)

        logger.info("✅ Composite complete")
        return canvas

    def render(
        self,
        backdrop: ImageSource,
        shadowed_subject: ImageSource,
        clean_subject: ImageSource,
        placement: Placement,
        canvas_size: Tuple[int, int],
        reflection_options: Optional[ReflectionOptions] = None,
        blur_background: bool = False
    ) -> Image.Image:
        """
        Decode inputs, compute the layout from their natural sizes and composite

        Args:
            canvas_size: (width, height) of the output

        Returns:
            Composited RGB image
        """
        try:
            backdrop_img = load_image(backdrop)
            shadowed_img = load_image(shadowed_subject)
            clean_img = load_image(clean_subject)
        except ImageUnreadableError as e:
            raise CompositeError(f"Composite aborted: {e.message}") from e

        return self._render_loaded(
            backdrop_img, shadowed_img, clean_img, placement, canvas_size,
            reflection_options, blur_background
        )

    async def composite_sources(
        self,
        backdrop: ImageSource,
        shadowed_subject: ImageSource,
        clean_subject: ImageSource,
        placement: Placement,
        canvas_size: Tuple[int, int],
        reflection_options: Optional[ReflectionOptions] = None,
        blur_background: bool = False
    ) -> Image.Image:
        """
        Async variant of render(): the three decodes run concurrently,
        drawing starts only after all of them resolved
        """
        try:
            backdrop_img, shadowed_img, clean_img = await asyncio.gather(
                asyncio.to_thread(load_image, backdrop),
                asyncio.to_thread(load_image, shadowed_subject),
                asyncio.to_thread(load_image, clean_subject),
            )
        except ImageUnreadableError as e:
            raise CompositeError(f"Composite aborted: {e.message}") from e

        return self._render_loaded(
            backdrop_img, shadowed_img, clean_img, placement, canvas_size,
            reflection_options, blur_background
        )

    def _render_loaded(
        self,
        backdrop_img: np.ndarray,
        shadowed_img: np.ndarray,
        clean_img: np.ndarray,
        placement: Placement,
        canvas_size: Tuple[int, int],
        reflection_options: Optional[ReflectionOptions],
        blur_background: bool
    ) -> Image.Image:
        shadowed_w, shadowed_h = get_image_dimensions(shadowed_img)
        clean_w, clean_h = get_image_dimensions(clean_img)

        layout = self.layout_engine.compute_layout(
            canvas_size[0], canvas_size[1],
            shadowed_w, shadowed_h,
            clean_w, clean_h,
            placement
        )
        return self.composite(
            backdrop_img, shadowed_img, clean_img, layout,
            reflection_options, blur_background
        )

    def _prepare_backdrop(
        self,
        backdrop: np.ndarray,
        width: int,
        height: int,
        blur_background: bool
    ) -> Image.Image:
        """
        Stretch the backdrop to the canvas and optionally blur it

        Args:
            backdrop: RGBA backdrop
            width, height: Canvas size
            blur_background: Apply depth-of-field blur

        Returns:
            RGB canvas
        """
        img = cv2.resize(backdrop[:, :, :3], (width, height), interpolation=cv2.INTER_LANCZOS4)

        if blur_background:
            sigma = get_scaled_value(settings.DOF_BLUR_BASE, width, settings.MIN_EFFECT_VALUE)
            img = cv2.GaussianBlur(img, (0, 0), sigmaX=sigma)
            logger.debug(f"Depth of field blur: sigma={sigma:.2f}px")

        return Image.fromarray(img)

    def _draw_reflection(
        self,
        canvas: Image.Image,
        clean_img: np.ndarray,
        rect: Rect,
        options: ReflectionOptions
    ) -> None:
        """
        Draw the clean subject mirrored below the product with a fading alpha

        Args:
            canvas: Canvas to draw onto (modified in place)
            clean_img: Clean subject RGBA
            rect: Reflection rectangle from the layout
            options: Reflection settings
        """
        if rect.width <= 0 or rect.height <= 0:
            logger.warning(f"⚠️ Skipping reflection with empty rect {rect}")
            return

        reflection = to_pil(clean_img).resize((rect.width, rect.height), Image.Resampling.LANCZOS)
        reflection = reflection.transpose(Image.Transpose.FLIP_TOP_BOTTOM)

        if options.blur > 0:
            radius = get_scaled_value(options.blur, canvas.width, settings.MIN_EFFECT_VALUE)
            # Premultiplied, so transparent pixels do not darken the edge
            reflection = reflection.convert("RGBa").filter(ImageFilter.GaussianBlur(radius)).convert("RGBA")

        # Linear fade from opacity at the touch point to 0 at falloff * height
        fade_length = rect.height * options.falloff
        rows = np.arange(rect.height, dtype=np.float32)
        if fade_length > 0:
            fade = np.clip(1.0 - rows / fade_length, 0.0, 1.0) * options.opacity
        else:
            fade = np.zeros_like(rows)

        pixels = np.array(reflection)
        faded = pixels[:, :, 3].astype(np.float32) * fade[:, None]
        pixels[:, :, 3] = np.clip(faded, 0, 255).astype(np.uint8)
        reflection = Image.fromarray(pixels)

        canvas.paste(reflection, (rect.x, rect.y), reflection)
        logger.debug(
            f"🪞 Reflection at ({rect.x}, {rect.y}) {rect.width}x{rect.height} "
            f"opacity={options.opacity} falloff={options.falloff}"
        )

    def _draw_layer(self, canvas: Image.Image, layer_img: np.ndarray, rect: Rect) -> None:
        """Draw an RGBA layer scaled into rect; parts outside the canvas are clipped"""
        if rect.width <= 0 or rect.height <= 0:
            logger.warning(f"⚠️ Skipping layer with empty rect {rect}")
            return

        layer = to_pil(layer_img).resize((rect.width, rect.height), Image.Resampling.LANCZOS)
        canvas.paste(layer, (rect.x, rect.y), layer)
