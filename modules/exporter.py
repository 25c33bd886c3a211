"""
Exporter Module - Encode composites and save them with a versioned naming convention
"""

import io
import re
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from PIL import Image
from loguru import logger

from config import settings

FORMATS = {
    "png": "PNG",
    "jpg": "JPEG",
    "jpeg": "JPEG",
    "webp": "WEBP",
}


class Exporter:
    """
    Encodes staged images and writes them with consistent naming
    """

    def __init__(self, output_dir: Path = None, fmt: str = None, quality: int = None):
        """
        Initialize Exporter

        Args:
            output_dir: Output directory (default: workspace/out)
            fmt: Output format extension (default: settings.OUTPUT_FORMAT)
            quality: Lossy quality (default: settings.OUTPUT_QUALITY)
        """
        self.output_dir = Path(output_dir or settings.OUT_DIR)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.fmt = (fmt or settings.OUTPUT_FORMAT).lower()
        self.quality = quality or settings.OUTPUT_QUALITY

        if self.fmt not in FORMATS:
            raise ValueError(f"Unsupported output format '{self.fmt}', expected one of {sorted(FORMATS)}")

        logger.info(f"Exporter initialized with output dir: {self.output_dir} ({self.fmt})")

    def encode(self, image: Image.Image, fmt: Optional[str] = None) -> bytes:
        """
        Encode an image to bytes

        PNG keeps alpha; JPEG has none, so transparent pixels are
        flattened onto white.

        Args:
            image: PIL image
            fmt: Format extension (default: exporter format)

        Returns:
            Encoded bytes
        """
        fmt = (fmt or self.fmt).lower()
        if fmt not in FORMATS:
            raise ValueError(f"Unsupported output format '{fmt}'")
        pil_format = FORMATS[fmt]

        if pil_format == "JPEG" and image.mode != "RGB":
            if image.mode in ("RGBA", "LA"):
                flattened = Image.new("RGB", image.size, (255, 255, 255))
                flattened.paste(image, mask=image.getchannel("A"))
                image = flattened
            else:
                image = image.convert("RGB")

        buffer = io.BytesIO()
        if pil_format == "PNG":
            image.save(buffer, format=pil_format, optimize=True)
        else:
            image.save(buffer, format=pil_format, quality=self.quality)
        return buffer.getvalue()

    def generate_filename(
        self,
        title: str,
        version: Optional[int] = None,
        date: Optional[str] = None
    ) -> str:
        """
        Generate filename following pattern: TITLE__YYYYMMDD_HHMMSS__vXXX.ext

        Args:
            title: Image title (usually the subject file name)
            version: Version number (auto-increment if None)
            date: Date string (use today if None)

        Returns:
            Filename string
        """
        clean_title = self._clean_title(title)

        now = datetime.now()
        if date is None:
            date = now.strftime("%Y%m%d")
        datetime_str = f"{date}_{now.strftime('%H%M%S')}"

        if version is None:
            version = self._get_next_version(clean_title, date)

        return f"{clean_title}__{datetime_str}__v{version:03d}.{self.fmt}"

    def _clean_title(self, title: str) -> str:
        """
        Clean title for use in filename

        Args:
            title: Original title

        Returns:
            Cleaned title ("image" when nothing usable is left)
        """
        title = Path(title.strip()).stem if "." in title else title.strip()

        # Keep letters, numbers, spaces, dashes and underscores
        title = re.sub(r'[^\w\s-]', '', title)
        title = re.sub(r'[\s_-]+', '_', title).strip('_')

        max_length = 50
        if len(title) > max_length:
            title = title[:max_length]

        return title or "image"

    def _get_next_version(self, clean_title: str, date: str) -> int:
        """
        Get next available version number for a title on a given date
        """
        pattern = f"{clean_title}__{date}_*__v*.{self.fmt}"
        versions = []
        for file in self.output_dir.glob(pattern):
            match = re.search(r'__v(\d+)$', file.stem)
            if match:
                versions.append(int(match.group(1)))

        return max(versions) + 1 if versions else 1

    def save(self, image: Image.Image, title: str, version: Optional[int] = None) -> Path:
        """
        Encode and write an image with proper naming

        Args:
            image: PIL image
            title: Image title
            version: Optional version number

        Returns:
            Path to saved file
        """
        output_path = self.output_dir / self.generate_filename(title, version)
        output_path.write_bytes(self.encode(image))

        logger.info(f"💾 Saved: {output_path}")
        return output_path

    def list_exports(self) -> List[Path]:
        """
        List exported images, newest first
        """
        exports = sorted(
            self.output_dir.glob(f"*.{self.fmt}"),
            key=lambda p: p.stat().st_mtime,
            reverse=True
        )
        logger.debug(f"Found {len(exports)} exports in {self.output_dir}")
        return exports
