"""
Shadow Preview - Transformation URLs for the remote drop-shadow service
"""

import time
from dataclasses import dataclass
from typing import Optional

from loguru import logger

from config import settings

CLOUDINARY_BASE_URL = "https://res.cloudinary.com"


@dataclass(frozen=True)
class ShadowConfig:
    """Drop shadow parameters understood by e_dropshadow"""
    azimuth: int = settings.SHADOW_AZIMUTH  # 0-360, light direction
    elevation: int = settings.SHADOW_ELEVATION  # 0-90, 90 = light straight above
    spread: int = settings.SHADOW_SPREAD  # 0-100, softness
    opacity: Optional[int] = None  # 0-100, service default when None

    def __post_init__(self):
        if not 0 <= self.azimuth <= 360:
            raise ValueError(f"azimuth must be within 0-360, got {self.azimuth}")
        if not 0 <= self.elevation <= 90:
            raise ValueError(f"elevation must be within 0-90, got {self.elevation}")
        if not 0 <= self.spread <= 100:
            raise ValueError(f"spread must be within 0-100, got {self.spread}")
        if self.opacity is not None and not 0 <= self.opacity <= 100:
            raise ValueError(f"opacity must be within 0-100, got {self.opacity}")


def _format_number(value: float) -> str:
    # 1.5 -> "1.5", 2.0 -> "2"
    return f"{value:g}"


def shadow_padding_multiplier(spread: float) -> float:
    """
    Canvas growth needed so the shadow is not cropped

    Never below 1.5x, grows with spread.
    """
    return max(1.5, 1 + spread / 100)


def build_shadow_preview_url(
    cloud_name: str,
    public_id: str,
    shadow: ShadowConfig,
    timestamp_ms: Optional[int] = None
) -> str:
    """
    Build a live-preview transformation URL

    Args:
        cloud_name: Cloudinary cloud name
        public_id: Public ID of the uploaded cutout
        shadow: Shadow parameters
        timestamp_ms: Cache-busting timestamp (now if omitted)

    Returns:
        Transformation URL
    """
    if not cloud_name:
        raise ValueError("cloud_name is required")
    if not public_id:
        raise ValueError("public_id is required")

    multiplier = _format_number(shadow_padding_multiplier(shadow.spread))
    padding = f"c_lpad,w_iw_mul_{multiplier},h_ih_mul_{multiplier},b_transparent"

    effect = f"e_dropshadow:azimuth_{shadow.azimuth};elevation_{shadow.elevation};spread_{shadow.spread}"
    if shadow.opacity is not None:
        effect += f",co_rgb:000,o_{shadow.opacity}"

    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)

    url = f"{CLOUDINARY_BASE_URL}/{cloud_name}/image/upload/{padding}/{effect}/{public_id}.png?t={timestamp_ms}"
    logger.debug(f"Shadow preview URL: {url}")
    return url
