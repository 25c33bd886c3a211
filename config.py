"""
Configuration settings for Product Staging
"""

from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Project paths
    PROJECT_ROOT: Path = Path(__file__).parent
    WORKSPACE_DIR: Path = PROJECT_ROOT / "workspace"
    OUT_DIR: Path = WORKSPACE_DIR / "out"

    # Output settings
    OUTPUT_FORMAT: str = "png"
    OUTPUT_QUALITY: int = 95  # JPEG only
    DEFAULT_CANVAS_WIDTH: int = 3000  # Full resolution export
    PREVIEW_CANVAS_WIDTH: int = 600  # Interactive preview (1/5 of export)
    DEFAULT_ASPECT_RATIO: str = "4:3"

    # Effect magnitudes, calibrated at REFERENCE_WIDTH (3000px)
    DOF_BLUR_BASE: float = 9.0  # Depth-of-field blur on the backdrop
    REFLECTION_BLUR_BASE: float = 4.0  # Surface diffusion on the reflection
    MIN_EFFECT_VALUE: float = 0.5  # Floor so tiny previews never lose the effect

    # Reflection defaults
    REFLECTION_OPACITY: float = 0.25  # Studio-grade subtle reflection
    REFLECTION_FALLOFF: float = 0.8  # Fraction of reflection height used by the fade

    # Drop shadow defaults (remote preview service)
    SHADOW_AZIMUTH: int = 0
    SHADOW_ELEVATION: int = 90
    SHADOW_SPREAD: int = 5
    SHADOW_OPACITY: int = 75
    CLOUDINARY_CLOUD_NAME: str = ""

    # Auto-deskew settings
    DESKEW_VARIANT: str = "morphological"  # "morphological" (closing + largest component) or "contour"
    DESKEW_ANALYSIS_MAX_WIDTH: int = 600  # Analysis canvas is downscaled to this width
    DESKEW_RANSAC_ITERATIONS: int = 200
    DESKEW_RANDOM_SEED: Optional[int] = None  # Fix for reproducible RANSAC runs
    DESKEW_CLOSING_RADIUS: int = 3  # Circular neighborhood for morphological closing
    DESKEW_MIN_CONFIDENCE: float = 75.0  # Morphological variant only
    DESKEW_MAX_ANGLE: float = 10.0  # Morphological variant: reject beyond this
    DESKEW_CONTOUR_MAX_ANGLE: float = 15.0  # Contour variant: reject beyond this
    DESKEW_MIN_ANGLE: float = 0.5  # Below this the image is already straight

    # FastAPI settings
    API_TITLE: str = "Product Staging API"
    API_VERSION: str = "1.0.0"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()

# Create directories if they don't exist
for directory in [
    settings.WORKSPACE_DIR,
    settings.OUT_DIR,
]:
    directory.mkdir(parents=True, exist_ok=True)
