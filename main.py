"""
Product Staging - FastAPI Application
"""

from fastapi import FastAPI, HTTPException, UploadFile, File, Form
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from pathlib import Path
from loguru import logger
import asyncio
import sys
import io
import base64
import time

from config import settings
from modules import (
    Deskewer,
    Exporter,
    LayoutEngine,
    Placement,
    ReflectionOptions,
    Renderer,
    ShadowConfig,
    build_shadow_preview_url,
    shadow_padding_multiplier,
    correct_orientation,
    read_orientation,
    resolve_canvas_size,
)
from utils.exceptions import CompositeError, ImageUnreadableError, StagingError
from utils.image_utils import ImageSource, get_image_dimensions, load_image, to_pil
from utils.session_cache import SessionFileCache

# Create logs directory
Path("logs").mkdir(exist_ok=True)

logger.remove()
logger.add(sys.stderr, level="INFO")
logger.add("logs/app.log", rotation="500 MB", retention="10 days", level="DEBUG")


app = FastAPI(
    title=settings.API_TITLE,
    version=settings.API_VERSION,
    description="Product photo staging: layout, reflection compositing and auto-deskew"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request/Response Models
class PlacementModel(BaseModel):
    """Normalized subject placement"""
    x: float = Field(0.5, description="Horizontal center as a fraction of canvas width")
    y: float = Field(0.85, description="Fraction of canvas height where the subject's bottom sits")
    scale: float = Field(1.0, gt=0, description="Subject size multiplier")


class LayoutRequest(BaseModel):
    """Request model for layout computation"""
    canvas_width: int = Field(..., gt=0)
    canvas_height: int = Field(..., gt=0)
    shadowed_width: int = Field(..., gt=0, description="Natural width of the shadowed subject")
    shadowed_height: int = Field(..., gt=0)
    clean_width: int = Field(..., gt=0, description="Natural width of the clean subject")
    clean_height: int = Field(..., gt=0)
    placement: PlacementModel = Field(default_factory=PlacementModel)


class DeskewResponse(BaseModel):
    """Response model for auto-deskew"""
    rotated: bool
    angle: float
    confidence: float
    reason: str
    image_base64: Optional[str] = None
    clean_image_base64: Optional[str] = None


class ShadowPreviewResponse(BaseModel):
    """Response model for shadow preview URL"""
    url: str
    padding_multiplier: float


class SubjectResponse(BaseModel):
    """Response model for session subject upload"""
    name: str
    cached_files: int


class BatchResponse(BaseModel):
    """Response model for batch staging"""
    success: bool
    results: List[Dict] = []
    total_generated: int = 0
    failed: int = 0


class StatusResponse(BaseModel):
    """Status response model"""
    status: str
    message: str


def _png_base64(image) -> str:
    buffer = io.BytesIO()
    to_pil(image).save(buffer, format="PNG")
    return base64.b64encode(buffer.getvalue()).decode("ascii")


def _upright(data: bytes) -> ImageSource:
    """Decode upload bytes, applying EXIF orientation when present"""
    orientation = read_orientation(data)
    if orientation == 1:
        return data
    return correct_orientation(load_image(data), orientation)


# Pipeline class
class StagingPipeline:
    """
    Batch staging of session subjects onto one backdrop

    Owns the session cache; the core components only ever receive buffers.
    """

    def __init__(self, variant: str = None):
        """Initialize pipeline components"""
        self.cache = SessionFileCache()
        self.subjects: List[str] = []
        self.layout_engine = LayoutEngine()
        self.renderer = Renderer(self.layout_engine)
        self.deskewer = Deskewer(variant=variant or settings.DESKEW_VARIANT)
        self.exporter = Exporter()

        logger.info("StagingPipeline initialized")

    def add_subject(self, name: str, shadowed: bytes, clean: Optional[bytes] = None) -> None:
        """
        Cache a subject for the next batch

        Args:
            name: Subject name (used for the output filename)
            shadowed: Encoded cutout with drop shadow
            clean: Encoded cutout without shadow (shadowed is reused if omitted)
        """
        self.cache.add(f"{name}:shadowed", shadowed)
        if clean is not None:
            self.cache.add(f"{name}:clean", clean)
        if name not in self.subjects:
            self.subjects.append(name)

        logger.info(f"📥 Subject added: {name} (clean={'yes' if clean is not None else 'no'})")

    def process_batch(
        self,
        backdrop: ImageSource,
        placement: Optional[Placement] = None,
        reflection: Optional[ReflectionOptions] = None,
        blur_background: bool = False,
        aspect_ratio: str = settings.DEFAULT_ASPECT_RATIO,
        width: int = settings.DEFAULT_CANVAS_WIDTH,
        auto_straighten: bool = True
    ) -> List[Dict]:
        """
        Deskew, composite and export every cached subject

        A failing subject is reported in its result and does not stop the batch.

        Raises:
            CompositeError: If the backdrop itself cannot be decoded
        """
        placement = placement or Placement()

        try:
            backdrop_img = load_image(backdrop)
        except ImageUnreadableError as e:
            raise CompositeError(f"Backdrop unreadable: {e.message}") from e

        canvas_size = resolve_canvas_size(aspect_ratio, width, get_image_dimensions(backdrop_img))
        logger.info(
            f"🚀 Processing {len(self.subjects)} subjects on {canvas_size[0]}x{canvas_size[1]} "
            f"(aspect={aspect_ratio}, straighten={auto_straighten})"
        )

        results = []
        for i, name in enumerate(self.subjects, 1):
            start_time = time.time()
            result = {
                "success": False,
                "name": name,
                "filename": None,
                "path": None,
                "angle": 0.0,
                "confidence": 0.0,
                "reason": None,
                "error": None,
            }

            try:
                shadowed = self.cache.get(f"{name}:shadowed")
                clean = self.cache.get(f"{name}:clean") or shadowed

                shadowed_src, clean_src = shadowed, clean
                if auto_straighten:
                    # Baseline is measured on the clean cutout, the shadowed one follows it
                    deskew = self.deskewer.deskew(clean, shadowed)
                    result.update(
                        angle=deskew.angle_degrees,
                        confidence=deskew.confidence_percent,
                        reason=deskew.reason,
                    )
                    if deskew.rotated:
                        clean_src = deskew.rotated_image
                        shadowed_src = deskew.clean_rotated_image

                image = self.renderer.render(
                    backdrop_img, shadowed_src, clean_src, placement, canvas_size,
                    reflection, blur_background
                )
                output_path = self.exporter.save(image, name)

                result.update(success=True, filename=output_path.name, path=str(output_path))
                logger.info(
                    f"✅ [{i}/{len(self.subjects)}] {name} -> {output_path.name} "
                    f"({time.time() - start_time:.2f}s)"
                )

            except (StagingError, ValueError) as e:
                result["error"] = str(e)
                logger.error(f"❌ [{i}/{len(self.subjects)}] {name} failed: {e}")

            results.append(result)

        return results

    def reset(self) -> None:
        """Clear the session"""
        self.cache.clear()
        self.subjects.clear()
        logger.info("🔄 Session reset")


# Global pipeline instance
pipeline = StagingPipeline()


# API Endpoints
@app.get("/health", response_model=StatusResponse)
async def health():
    """Health check endpoint"""
    return StatusResponse(
        status="healthy",
        message="All systems operational"
    )


@app.post("/layout")
async def compute_layout(request: LayoutRequest):
    """Compute subject, product and reflection rectangles"""
    try:
        layout = pipeline.layout_engine.compute_layout(
            request.canvas_width, request.canvas_height,
            request.shadowed_width, request.shadowed_height,
            request.clean_width, request.clean_height,
            Placement(**request.placement.model_dump())
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return layout.to_dict()


@app.post("/composite")
async def composite(
    backdrop: UploadFile = File(...),
    shadowed: UploadFile = File(...),
    clean: Optional[UploadFile] = File(None),
    x: float = Form(0.5),
    y: float = Form(0.85),
    scale: float = Form(1.0),
    aspect_ratio: str = Form(settings.DEFAULT_ASPECT_RATIO),
    width: int = Form(settings.PREVIEW_CANVAS_WIDTH),
    reflection_opacity: float = Form(settings.REFLECTION_OPACITY),
    reflection_falloff: float = Form(settings.REFLECTION_FALLOFF),
    reflection_blur: float = Form(0.0),
    blur_background: bool = Form(False)
):
    """Render one composite and return it as PNG"""
    try:
        backdrop_data = await backdrop.read()
        shadowed_data = await shadowed.read()
        clean_data = await clean.read() if clean is not None else shadowed_data

        placement = Placement(x=x, y=y, scale=scale)
        reflection = ReflectionOptions(
            opacity=reflection_opacity,
            falloff=reflection_falloff,
            blur=reflection_blur,
        )

        backdrop_img = await asyncio.to_thread(load_image, await asyncio.to_thread(_upright, backdrop_data))
        canvas_size = resolve_canvas_size(aspect_ratio, width, get_image_dimensions(backdrop_img))

        image = await pipeline.renderer.composite_sources(
            backdrop_img, shadowed_data, clean_data, placement, canvas_size,
            reflection, blur_background
        )
    except (StagingError, ValueError) as e:
        logger.error(f"Composite failed: {e}")
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        logger.exception(f"Composite crashed: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return Response(content=pipeline.exporter.encode(image, "png"), media_type="image/png")


@app.post("/deskew", response_model=DeskewResponse)
async def deskew(
    image: UploadFile = File(...),
    clean: Optional[UploadFile] = File(None),
    variant: Optional[str] = Form(None)
):
    """Detect baseline tilt and return straightened PNGs when rotation was applied"""
    image_data = await image.read()
    clean_data = await clean.read() if clean is not None else None

    try:
        deskewer = pipeline.deskewer if not variant else Deskewer(variant=variant)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    result = await asyncio.to_thread(deskewer.deskew, image_data, clean_data)

    return DeskewResponse(
        rotated=result.rotated,
        angle=result.angle_degrees,
        confidence=result.confidence_percent,
        reason=result.reason,
        image_base64=_png_base64(result.rotated_image) if result.rotated else None,
        clean_image_base64=(
            _png_base64(result.clean_rotated_image)
            if result.clean_rotated_image is not None else None
        ),
    )


@app.get("/shadow-preview-url", response_model=ShadowPreviewResponse)
async def shadow_preview_url(
    public_id: str,
    cloud_name: Optional[str] = None,
    azimuth: int = settings.SHADOW_AZIMUTH,
    elevation: int = settings.SHADOW_ELEVATION,
    spread: int = settings.SHADOW_SPREAD,
    opacity: Optional[int] = None
):
    """Build a live drop-shadow preview URL"""
    try:
        shadow = ShadowConfig(azimuth=azimuth, elevation=elevation, spread=spread, opacity=opacity)
        url = build_shadow_preview_url(cloud_name or settings.CLOUDINARY_CLOUD_NAME, public_id, shadow)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return ShadowPreviewResponse(url=url, padding_multiplier=shadow_padding_multiplier(spread))


@app.post("/session/subjects", response_model=SubjectResponse)
async def add_subject(
    shadowed: UploadFile = File(...),
    clean: Optional[UploadFile] = File(None),
    name: Optional[str] = Form(None)
):
    """Add a subject to the current session"""
    subject_name = name or Path(shadowed.filename or "subject").stem
    shadowed_data = await shadowed.read()
    clean_data = await clean.read() if clean is not None else None

    try:
        pipeline.add_subject(subject_name, shadowed_data, clean_data)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return SubjectResponse(name=subject_name, cached_files=len(pipeline.cache))


@app.post("/session/process", response_model=BatchResponse)
async def process_session(
    backdrop: UploadFile = File(...),
    x: float = Form(0.5),
    y: float = Form(0.85),
    scale: float = Form(1.0),
    aspect_ratio: str = Form(settings.DEFAULT_ASPECT_RATIO),
    width: int = Form(settings.DEFAULT_CANVAS_WIDTH),
    reflection_opacity: float = Form(settings.REFLECTION_OPACITY),
    reflection_falloff: float = Form(settings.REFLECTION_FALLOFF),
    reflection_blur: float = Form(settings.REFLECTION_BLUR_BASE),
    blur_background: bool = Form(False),
    auto_straighten: bool = Form(True)
):
    """Stage every session subject onto the backdrop and export the results"""
    if not pipeline.subjects:
        raise HTTPException(status_code=400, detail="No subjects in session")

    try:
        backdrop_data = await backdrop.read()
        results = await asyncio.to_thread(
            pipeline.process_batch,
            await asyncio.to_thread(_upright, backdrop_data),
            placement=Placement(x=x, y=y, scale=scale),
            reflection=ReflectionOptions(
                opacity=reflection_opacity,
                falloff=reflection_falloff,
                blur=reflection_blur,
            ),
            blur_background=blur_background,
            aspect_ratio=aspect_ratio,
            width=width,
            auto_straighten=auto_straighten,
        )
    except (StagingError, ValueError) as e:
        logger.error(f"Batch failed: {e}")
        raise HTTPException(status_code=422, detail=str(e))

    generated = sum(1 for r in results if r["success"])
    return BatchResponse(
        success=generated > 0,
        results=results,
        total_generated=generated,
        failed=len(results) - generated,
    )


@app.post("/session/reset", response_model=StatusResponse)
async def reset_session():
    """Clear cached subjects"""
    pipeline.reset()
    return StatusResponse(status="success", message="Session cleared")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=True
    )
