"""
Alpha Mask Analyzer - Reduce a noisy cutout to bottom-contour sample points

Two strategies are available:
    morphological: grayscale closing, then keep the largest 4-connected
                   component (alpha >= 20) and sample its bottom edge
    contour:       tight bounding box of alpha > 200 and the lowest
                   foreground pixel per column, no cleanup
"""

from dataclasses import dataclass
from typing import Optional, Tuple

import cv2
import numpy as np
from loguru import logger

from config import settings
from utils.image_utils import ensure_surface

MORPHOLOGICAL = "morphological"
CONTOUR = "contour"
VARIANTS = (MORPHOLOGICAL, CONTOUR)

# Foreground thresholds per strategy, never shared
MORPHOLOGICAL_ALPHA_THRESHOLD = 20  # >= on the closed mask
CONTOUR_ALPHA_THRESHOLD = 200  # > on the raw alpha


@dataclass
class ContourSample:
    """Bottom-contour points measured on the analysis canvas"""
    points: np.ndarray  # (N, 2) float64 as (x, y)
    analysis_width: int
    analysis_height: int
    bounds: Optional[Tuple[int, int, int, int]] = None  # min_x, min_y, max_x, max_y

    @property
    def count(self) -> int:
        return int(len(self.points))


class AnalysisCanvas:
    """
    Downscaled alpha channel used for one detection call

    Use as a context manager; the buffer is dropped on every exit path.
    """

    def __init__(self, image: np.ndarray, max_width: int = settings.DESKEW_ANALYSIS_MAX_WIDTH):
        h, w = image.shape[:2]
        scale = min(1.0, max_width / w)
        self.width = max(1, int(w * scale))
        self.height = max(1, int(h * scale))
        self.scale = scale
        ensure_surface(self.width, self.height)

        alpha = image[:, :, 3]
        if (self.width, self.height) != (w, h):
            self.alpha = cv2.resize(alpha, (self.width, self.height), interpolation=cv2.INTER_AREA)
        else:
            self.alpha = alpha.copy()

        logger.debug(f"[DESKEW] Original: {w}x{h}, Analysis: {self.width}x{self.height}")

    def release(self) -> None:
        self.alpha = None

    def __enter__(self) -> "AnalysisCanvas":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


def bottom_contour(foreground: np.ndarray, bounds: Optional[Tuple[int, int, int, int]] = None) -> np.ndarray:
    """
    Lowest foreground pixel of every column

    Args:
        foreground: Boolean mask (H, W)
        bounds: Optional (min_x, min_y, max_x, max_y) restricting the scan

    Returns:
        (N, 2) float64 array of (x, y), ordered by x
    """
    x_offset, y_offset = 0, 0
    if bounds is not None:
        min_x, min_y, max_x, max_y = bounds
        foreground = foreground[min_y:max_y + 1, min_x:max_x + 1]
        x_offset, y_offset = min_x, min_y

    if foreground.size == 0:
        return np.empty((0, 2), dtype=np.float64)

    height = foreground.shape[0]
    has_pixels = foreground.any(axis=0)
    # argmax over the flipped rows finds the first hit from the bottom
    lowest = height - 1 - np.argmax(foreground[::-1, :], axis=0)

    xs = np.nonzero(has_pixels)[0]
    ys = lowest[has_pixels]
    return np.column_stack([xs + x_offset, ys + y_offset]).astype(np.float64)


def foreground_bounds(foreground: np.ndarray) -> Optional[Tuple[int, int, int, int]]:
    """Tight (min_x, min_y, max_x, max_y) of a boolean mask, None when empty"""
    ys, xs = np.nonzero(foreground)
    if len(xs) == 0:
        return None
    return int(xs.min()), int(ys.min()), int(xs.max()), int(ys.max())


class AlphaMaskAnalyzer:
    """
    Extract bottom-contour sample points from a cutout's alpha channel
    """

    def __init__(
        self,
        variant: str = settings.DESKEW_VARIANT,
        closing_radius: int = settings.DESKEW_CLOSING_RADIUS,
        analysis_max_width: int = settings.DESKEW_ANALYSIS_MAX_WIDTH
    ):
        """
        Initialize Alpha Mask Analyzer

        Args:
            variant: "morphological" or "contour"
            closing_radius: Neighborhood radius for morphological closing
            analysis_max_width: Analysis canvas width limit
        """
        if variant not in VARIANTS:
            raise ValueError(f"Unknown mask analysis variant '{variant}', expected one of {VARIANTS}")

        self.variant = variant
        self.closing_radius = closing_radius
        self.analysis_max_width = analysis_max_width

        logger.info(f"AlphaMaskAnalyzer initialized (variant={variant})")

    def close_mask(self, alpha: np.ndarray) -> np.ndarray:
        """
        Grayscale closing: max over a disc, then min over the same disc

        Fills pinholes and smooths jagged edges without growing the object.
        """
        if self.closing_radius <= 0:
            return alpha.copy()

        size = 2 * self.closing_radius + 1
        kernel = cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (size, size))
        dilated = cv2.dilate(alpha, kernel)
        return cv2.erode(dilated, kernel)

    def keep_largest_component(self, alpha: np.ndarray) -> np.ndarray:
        """
        Zero out everything except the largest 4-connected region

        Args:
            alpha: Alpha channel (uint8)

        Returns:
            Alpha with only the dominant region left, all zeros when empty
        """
        binary = (alpha >= MORPHOLOGICAL_ALPHA_THRESHOLD).astype(np.uint8)
        num_labels, labels, stats, _ = cv2.connectedComponentsWithStats(binary, connectivity=4)

        if num_labels <= 1:
            return np.zeros_like(alpha)

        # Label 0 is background
        areas = stats[1:, cv2.CC_STAT_AREA]
        largest = 1 + int(np.argmax(areas))

        if num_labels > 2:
            logger.debug(
                f"[DESKEW] {num_labels - 1} components, keeping #{largest} "
                f"({int(areas[largest - 1])} px), dropping {int(areas.sum() - areas[largest - 1])} px"
            )

        return np.where(labels == largest, alpha, 0).astype(np.uint8)

    def clean_mask(self, alpha: np.ndarray) -> np.ndarray:
        """
        Foreground mask for the configured variant

        Returns:
            Boolean mask (H, W)
        """
        if self.variant == MORPHOLOGICAL:
            closed = self.close_mask(alpha)
            dominant = self.keep_largest_component(closed)
            return dominant >= MORPHOLOGICAL_ALPHA_THRESHOLD
        return alpha > CONTOUR_ALPHA_THRESHOLD

    def sample(self, image: np.ndarray) -> ContourSample:
        """
        Sample the bottom contour of an RGBA cutout

        Args:
            image: RGBA array (H, W, 4), left untouched

        Returns:
            ContourSample (empty points when no object was found)
        """
        with AnalysisCanvas(image, self.analysis_max_width) as canvas:
            foreground = self.clean_mask(canvas.alpha)
            bounds = foreground_bounds(foreground)

            if bounds is None:
                logger.debug("[DESKEW] No foreground pixels on analysis canvas")
                points = np.empty((0, 2), dtype=np.float64)
            else:
                logger.debug(
                    f"[DESKEW] Object bounds: y={bounds[1]}-{bounds[3]}, x={bounds[0]}-{bounds[2]}"
                )
                points = bottom_contour(foreground, bounds)
                logger.debug(f"[DESKEW] Bottom contour points: {len(points)}")

            del foreground
            return ContourSample(
                points=points,
                analysis_width=canvas.width,
                analysis_height=canvas.height,
                bounds=bounds,
            )
