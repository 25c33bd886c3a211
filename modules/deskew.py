"""
Deskew - Detect and straighten the resting baseline of a product cutout
"""

import math
from dataclasses import dataclass
from typing import Optional

import cv2
import numpy as np
from loguru import logger

from config import settings
from modules.baseline import BaselineFitter
from modules.mask_analyzer import CONTOUR, AlphaMaskAnalyzer
from utils.exceptions import ImageUnreadableError
from utils.image_utils import ImageSource, ensure_surface, load_image


@dataclass(frozen=True)
class DeskewResult:
    """
    Outcome of one detection call

    rotated_image / clean_rotated_image are new RGBA arrays when a rotation
    was applied and None otherwise; reason always explains the outcome.
    """
    rotated_image: Optional[np.ndarray]
    clean_rotated_image: Optional[np.ndarray]
    angle_degrees: float
    confidence_percent: float
    reason: str

    @property
    def rotated(self) -> bool:
        return self.rotated_image is not None

    def to_dict(self) -> dict:
        return {
            "rotated": self.rotated,
            "angle": round(self.angle_degrees, 3),
            "confidence": round(self.confidence_percent, 1),
            "reason": self.reason,
        }


def _skip(reason: str, angle: float = 0.0, confidence: float = 0.0) -> DeskewResult:
    return DeskewResult(None, None, angle, confidence, reason)


def rotate_image(image: np.ndarray, angle_degrees: float) -> np.ndarray:
    """
    Rotate an RGBA image about its center, expanding the canvas to fit

    Args:
        image: RGBA array
        angle_degrees: Clockwise rotation on screen

    Returns:
        New RGBA array sized to the rotated bounding box, transparent corners
    """
    h, w = image.shape[:2]
    rads = math.radians(angle_degrees)
    cos = abs(math.cos(rads))
    sin = abs(math.sin(rads))

    # round() keeps float noise at multiples of 90 degrees from adding a pixel
    new_w = int(math.ceil(round(w * cos + h * sin, 6)))
    new_h = int(math.ceil(round(w * sin + h * cos, 6)))
    ensure_surface(new_w, new_h)

    # OpenCV angles are counter-clockwise
    matrix = cv2.getRotationMatrix2D((w / 2, h / 2), -angle_degrees, 1.0)
    matrix[0, 2] += new_w / 2 - w / 2
    matrix[1, 2] += new_h / 2 - h / 2

    return cv2.warpAffine(
        image,
        matrix,
        (new_w, new_h),
        flags=cv2.INTER_CUBIC,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=(0, 0, 0, 0),
    )


class Deskewer:
    """
    Mask analysis -> baseline fit -> policy check -> optional rotation

    Linear, no retries. deskew() never raises; every outcome is reported
    through DeskewResult.reason.
    """

    def __init__(
        self,
        variant: str = settings.DESKEW_VARIANT,
        analyzer: Optional[AlphaMaskAnalyzer] = None,
        fitter: Optional[BaselineFitter] = None
    ):
        """
        Initialize Deskewer

        Args:
            variant: "morphological" or "contour"
            analyzer: Custom mask analyzer (built from settings if omitted)
            fitter: Custom baseline fitter (built from settings if omitted)
        """
        self.variant = variant
        self.analyzer = analyzer or AlphaMaskAnalyzer(variant=variant)
        self.fitter = fitter or BaselineFitter(variant=variant)

        if self.analyzer.variant != variant or self.fitter.variant != variant:
            raise ValueError(
                f"Analyzer ({self.analyzer.variant}) and fitter ({self.fitter.variant}) "
                f"must both use the '{variant}' variant"
            )

        if variant == CONTOUR:
            self.max_angle = settings.DESKEW_CONTOUR_MAX_ANGLE
            self.min_confidence = None
        else:
            self.max_angle = settings.DESKEW_MAX_ANGLE
            self.min_confidence = settings.DESKEW_MIN_CONFIDENCE
        self.min_angle = settings.DESKEW_MIN_ANGLE

        logger.info(
            f"Deskewer initialized (variant={variant}, max_angle={self.max_angle}°, "
            f"min_confidence={self.min_confidence})"
        )

    def deskew(self, image: ImageSource, clean_image: Optional[ImageSource] = None) -> DeskewResult:
        """
        Detect the baseline tilt and straighten the image when policy allows

        Args:
            image: Shadowed or original cutout
            clean_image: Optional clean cutout rotated by the same angle

        Returns:
            DeskewResult
        """
        try:
            return self._deskew(image, clean_image)
        except ImageUnreadableError as e:
            logger.error(f"[DESKEW] {e.message}")
            return _skip(f"Failed to load image: {e.message}")
        except Exception as e:
            logger.exception(f"[DESKEW] Processing error: {e}")
            return _skip(f"Processing error: {e}")

    def _deskew(self, image: ImageSource, clean_image: Optional[ImageSource]) -> DeskewResult:
        rgba = load_image(image)

        sample = self.analyzer.sample(rgba)
        if sample.bounds is None:
            return _skip("No object detected in image")

        if sample.count < self.fitter.profile.min_points:
            return _skip(f"Insufficient bottom edge detected ({sample.count} points)")

        fit = self.fitter.fit(sample.points)
        if fit is None:
            return _skip("Could not fit baseline (likely circular or irregular base)")

        angle, confidence = self.fitter.score(fit, sample.analysis_width)
        logger.debug(f"[DESKEW] Calculated angle: {angle:.2f}°, confidence: {confidence:.1f}%")

        if abs(angle) > self.max_angle:
            return _skip(
                f"Angle too extreme ({angle:.1f}° > {self.max_angle:g}°), skipping rotation",
                angle, confidence
            )

        if abs(angle) < self.min_angle:
            return _skip(f"Image already straight (angle < {self.min_angle:g}°)", angle, confidence)

        if self.min_confidence is not None and confidence < self.min_confidence:
            return _skip(
                f"Low confidence ({confidence:.0f}% < {self.min_confidence:g}%), skipping rotation",
                angle, confidence
            )

        rotated = rotate_image(rgba, angle)
        clean_rotated = None
        if clean_image is not None:
            clean_rotated = rotate_image(load_image(clean_image), angle)

        logger.info(f"[DESKEW] ✓ Straightened by {angle:.1f}° ({confidence:.1f}% confidence)")
        return DeskewResult(
            rotated_image=rotated,
            clean_rotated_image=clean_rotated,
            angle_degrees=angle,
            confidence_percent=confidence,
            reason=f"Straightened by {angle:.1f}°",
        )


def auto_deskew(
    image: ImageSource,
    clean_image: Optional[ImageSource] = None,
    variant: Optional[str] = None
) -> DeskewResult:
    """
    One-shot deskew with settings defaults

    Never raises; an unknown variant is reported through the reason.
    """
    try:
        deskewer = Deskewer(variant=variant or settings.DESKEW_VARIANT)
    except ValueError as e:
        logger.error(f"[DESKEW] {e}")
        return _skip(str(e))
    return deskewer.deskew(image, clean_image)
