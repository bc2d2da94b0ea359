"""
Image Splitter / Enhancer
=========================
Splits a scanned two-column sheet into left and right halves and turns
each half into a high-contrast, upscaled, binarized PNG for Tesseract,
using Pillow.
"""

from __future__ import annotations

import logging
from pathlib import Path

from PIL import Image, ImageFilter, ImageOps, UnidentifiedImageError

from .errors import ImageMetadataError
from .models import ColumnName, ColumnRegion

logger = logging.getLogger(__name__)

BINARIZE_THRESHOLD = 135
UPSCALE_FACTOR = 2

# Unsharp mask tuned for thin text strokes
SHARPEN_RADIUS = 1.0
SHARPEN_PERCENT = 300
SHARPEN_THRESHOLD = 0

# Percent of darkest/lightest pixels ignored when stretching the histogram
AUTOCONTRAST_CUTOFF = 1


def compute_column_regions(
    width: int, height: int
) -> dict[ColumnName, ColumnRegion]:
    """
    Split an image of `width` x `height` into two full-height halves.

    Both halves are `width // 2` wide; the right half starts at
    `width // 2`.
    """
    half_width = width // 2
    if half_width < 1 or height < 1:
        raise ImageMetadataError(
            f"Image too small to split into columns: {width}x{height}"
        )

    return {
        ColumnName.LEFT: ColumnRegion(
            left=0, top=0, width=half_width, height=height
        ),
        ColumnName.RIGHT: ColumnRegion(
            left=half_width, top=0, width=half_width, height=height
        ),
    }


class ImageProcessor:
    """
    Crops and enhances column regions of a source image.

    Each region goes through, in order: crop, grayscale, horizontal
    upscale, histogram normalization, sharpening, fixed-threshold
    binarization.
    """

    def __init__(
        self,
        threshold: int = BINARIZE_THRESHOLD,
        upscale_factor: int = UPSCALE_FACTOR,
        sharpen_radius: float = SHARPEN_RADIUS,
        sharpen_percent: int = SHARPEN_PERCENT,
        sharpen_threshold: int = SHARPEN_THRESHOLD,
    ):
        if not 0 <= threshold <= 255:
            raise ValueError(f"threshold must be in 0..255, got {threshold}")
        self.threshold = threshold
        self.upscale_factor = upscale_factor
        self.sharpen_radius = sharpen_radius
        self.sharpen_percent = sharpen_percent
        self.sharpen_threshold = sharpen_threshold

    def read_dimensions(self, image_path: Path) -> tuple[int, int]:
        """Return (width, height) of the image without decoding pixels."""
        try:
            with Image.open(image_path) as image:
                width, height = image.size
        except (UnidentifiedImageError, OSError) as e:
            raise ImageMetadataError(
                f"Could not get image metadata for {image_path}: {e}"
            ) from e

        if not width or not height:
            raise ImageMetadataError(
                f"Could not get image metadata for {image_path}"
            )
        return width, height

    def split(self, image_path: Path) -> dict[ColumnName, ColumnRegion]:
        """Read the image size and derive the two column regions."""
        width, height = self.read_dimensions(image_path)
        regions = compute_column_regions(width, height)
        logger.info(
            f"Source image {width}x{height}, splitting at x={width // 2}"
        )
        return regions

    def enhance(self, image: Image.Image, region: ColumnRegion) -> Image.Image:
        """Apply the enhancement chain to one region of a loaded image."""
        column = image.crop(region.box)
        column = ImageOps.grayscale(column)

        target_width = region.width * self.upscale_factor
        target_height = max(
            1, round(region.height * target_width / region.width)
        )
        column = column.resize(
            (target_width, target_height), Image.Resampling.LANCZOS
        )

        column = ImageOps.autocontrast(column, cutoff=AUTOCONTRAST_CUTOFF)
        column = column.filter(ImageFilter.UnsharpMask(
            radius=self.sharpen_radius,
            percent=self.sharpen_percent,
            threshold=self.sharpen_threshold,
        ))

        threshold = self.threshold
        return column.point(lambda p: 255 if p >= threshold else 0)

    def enhance_region(
        self, image_path: Path, region: ColumnRegion, dest: Path
    ) -> Path:
        """
        Crop and enhance `region` of the image at `image_path` and save
        the result as PNG to `dest`.

        Returns:
            The path the enhanced image was written to.
        """
        with Image.open(image_path) as image:
            enhanced = self.enhance(image, region)

        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        enhanced.save(dest, format="PNG")
        logger.debug(
            f"Enhanced region {region.box} -> {dest.name} "
            f"({enhanced.width}x{enhanced.height})"
        )
        return dest
