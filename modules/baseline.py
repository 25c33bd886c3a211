"""
Baseline Fitter - RANSAC line fit through bottom-contour points
"""

import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

import numpy as np
from loguru import logger

from config import settings
from modules.mask_analyzer import CONTOUR, MORPHOLOGICAL, VARIANTS

PointsLike = Union[np.ndarray, Sequence[Tuple[float, float]]]


@dataclass(frozen=True)
class FitProfile:
    """Thresholds belonging to one analysis variant"""
    residual_threshold: float  # Max perpendicular distance of an inlier (px)
    min_points: int  # Raw contour points required
    trim_fraction: float = 0.0  # Dropped from each end after sorting by x
    min_trimmed_points: int = 0
    min_consensus: float = 0.0  # Fit rejected below this inlier ratio
    center_copies: int = 1  # Max duplicates for points at the horizontal center


PROFILES = {
    MORPHOLOGICAL: FitProfile(residual_threshold=2.5, min_points=20, center_copies=3),
    CONTOUR: FitProfile(
        residual_threshold=5.0,
        min_points=20,
        trim_fraction=0.15,
        min_trimmed_points=10,
        min_consensus=0.25,
    ),
}

# Confidence penalties (morphological variant)
MIN_SPAN_FRACTION = 0.4
SHORT_SPAN_PENALTY = 0.5
STEEP_ANGLE = 8.0
STEEP_ANGLE_PENALTY = 0.6


@dataclass(frozen=True)
class BaselineFit:
    """Best RANSAC line y = slope * x + intercept"""
    slope: float
    intercept: float
    inlier_count: int
    consensus_ratio: float
    total_considered: int
    mean_inlier_residual: float = 0.0
    inlier_span: float = 0.0  # x extent covered by inliers

    @property
    def angle_degrees(self) -> float:
        """Rotation that levels the line (positive = clockwise on screen)"""
        return -math.degrees(math.atan(self.slope))


def _perpendicular_residuals(xs: np.ndarray, ys: np.ndarray, slope: float, intercept: float) -> np.ndarray:
    return np.abs(slope * xs - ys + intercept) / math.hypot(slope, 1.0)


class BaselineFitter:
    """
    Fit the resting baseline of a product

    The morphological variant duplicates points near the horizontal center
    (cosine weighting); the contour variant trims 15% from each end. Both
    keep rounded corners from dragging the line.
    """

    def __init__(
        self,
        variant: str = settings.DESKEW_VARIANT,
        iterations: int = settings.DESKEW_RANSAC_ITERATIONS,
        seed: Optional[int] = settings.DESKEW_RANDOM_SEED,
        refine: bool = True
    ):
        """
        Initialize Baseline Fitter

        Args:
            variant: "morphological" or "contour"
            iterations: RANSAC iterations
            seed: Random seed, None for a fresh one per fit
            refine: Least-squares refit on the inliers of the best line
        """
        if variant not in VARIANTS:
            raise ValueError(f"Unknown baseline variant '{variant}', expected one of {VARIANTS}")

        self.variant = variant
        self.profile = PROFILES[variant]
        self.iterations = iterations
        self.seed = seed
        self.refine = refine

    def prepare_points(self, points: np.ndarray) -> Optional[np.ndarray]:
        """
        Corner handling before RANSAC

        Returns:
            Points to fit, None when too few survive
        """
        profile = self.profile
        points = points[np.argsort(points[:, 0], kind="stable")]

        if profile.trim_fraction > 0:
            trim = int(len(points) * profile.trim_fraction)
            points = points[trim:len(points) - trim]
            logger.debug(f"[DESKEW] Points after corner filtering: {len(points)}")
            if len(points) < profile.min_trimmed_points:
                logger.debug("[DESKEW] Too few center points after filtering")
                return None

        if profile.center_copies > 1:
            xs = points[:, 0]
            center = (xs.min() + xs.max()) / 2
            half_span = (xs.max() - xs.min()) / 2
            if half_span > 0:
                distance = np.clip(np.abs(xs - center) / half_span, 0.0, 1.0)
                weight = np.cos(distance * math.pi / 2)
                copies = 1 + np.rint(weight * (profile.center_copies - 1)).astype(int)
                points = np.repeat(points, copies, axis=0)

        return points

    def fit(self, points: PointsLike) -> Optional[BaselineFit]:
        """
        RANSAC line fit

        Args:
            points: (N, 2) array or sequence of (x, y)

        Returns:
            BaselineFit, or None when evidence is insufficient
        """
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        if len(pts) < self.profile.min_points:
            logger.debug(f"[DESKEW] Too few points: {len(pts)}")
            return None

        pts = self.prepare_points(pts)
        if pts is None:
            return None

        xs, ys = pts[:, 0], pts[:, 1]
        total = len(pts)
        threshold = self.profile.residual_threshold
        rng = np.random.default_rng(self.seed)

        best_line = None
        best_mask = None
        best_count = 0

        for _ in range(self.iterations):
            i, j = rng.choice(total, size=2, replace=False)
            dx = xs[j] - xs[i]
            if abs(dx) < 1:
                continue

            slope = (ys[j] - ys[i]) / dx
            intercept = ys[i] - slope * xs[i]
            mask = _perpendicular_residuals(xs, ys, slope, intercept) <= threshold
            count = int(mask.sum())

            if count > best_count:
                best_line = (slope, intercept)
                best_mask = mask
                best_count = count

        if best_line is None:
            logger.debug("[DESKEW] RANSAC never sampled a valid pair")
            return None

        slope, intercept = best_line

        if self.refine and best_count >= 2 and np.ptp(xs[best_mask]) > 0:
            refit_slope, refit_intercept = np.polyfit(xs[best_mask], ys[best_mask], 1)
            refit_mask = _perpendicular_residuals(xs, ys, refit_slope, refit_intercept) <= threshold
            if int(refit_mask.sum()) >= best_count:
                slope, intercept = float(refit_slope), float(refit_intercept)
                best_mask = refit_mask
                best_count = int(refit_mask.sum())

        consensus = best_count / total
        logger.debug(
            f"[DESKEW] RANSAC: inliers={best_count}/{total} ({consensus * 100:.1f}%)"
        )

        if consensus < self.profile.min_consensus:
            logger.debug("[DESKEW] Insufficient consensus, likely circular or irregular object")
            return None

        residuals = _perpendicular_residuals(xs[best_mask], ys[best_mask], slope, intercept)
        inlier_xs = xs[best_mask]

        return BaselineFit(
            slope=float(slope),
            intercept=float(intercept),
            inlier_count=best_count,
            consensus_ratio=consensus,
            total_considered=total,
            mean_inlier_residual=float(residuals.mean()) if len(residuals) else 0.0,
            inlier_span=float(inlier_xs.max() - inlier_xs.min()) if len(inlier_xs) else 0.0,
        )

    def score(self, fit: BaselineFit, image_width: float) -> Tuple[float, float]:
        """
        Convert a fit to (angle_degrees, confidence_percent)

        Args:
            fit: Result of fit()
            image_width: Width of the canvas the points were sampled on
        """
        angle = fit.angle_degrees

        if self.variant == CONTOUR:
            return angle, fit.consensus_ratio * 100

        residual_score = max(0.0, 1.0 - fit.mean_inlier_residual / self.profile.residual_threshold)
        confidence = (fit.consensus_ratio * 0.6 + residual_score * 0.4) * 100

        if image_width > 0 and fit.inlier_span < MIN_SPAN_FRACTION * image_width:
            confidence *= SHORT_SPAN_PENALTY
        if abs(angle) > STEEP_ANGLE:
            confidence *= STEEP_ANGLE_PENALTY

        return angle, confidence
