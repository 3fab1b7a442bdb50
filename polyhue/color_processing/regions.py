"""Region statistics and the region overlay raster."""

import numpy as np

from ..models import ImageData, Region
from .color_space import rgb_to_hex

# AIDEV-NOTE: Display colors for the overlay only. They are cycled by region
# index and have nothing to do with a region's actual average color.
REGION_DISPLAY_COLORS = np.array(
    [
        [255, 0, 0],  # Red
        [0, 255, 0],  # Green
        [0, 0, 255],  # Blue
        [255, 255, 0],  # Yellow
        [255, 0, 255],  # Magenta
        [0, 255, 255],  # Cyan
        [255, 128, 0],  # Orange
        [128, 0, 255],  # Purple
        [255, 192, 203],  # Pink
        [128, 128, 128],  # Gray
        [139, 69, 19],  # Brown
        [0, 128, 0],  # Dark Green
    ],
    dtype=np.uint8,
)


def region_id(index: int) -> str:
    return f"region_{index}"


def create_regions(
    palette: "list[tuple[int, int, int]]",
    pixel_assignments: np.ndarray,
    total_opaque: int,
) -> "list[Region]":
    """Build one region per palette entry from per-pixel assignments.

    Args:
        palette: Final (merged) palette
        pixel_assignments: Palette index for every opaque pixel
        total_opaque: Number of opaque pixels, the percentage denominator

    Returns:
        List of regions in palette order
    """
    counts = np.bincount(
        np.asarray(pixel_assignments, dtype=np.int64), minlength=len(palette)
    )

    regions = []
    for index, color in enumerate(palette):
        count = int(counts[index])
        percentage = count / total_opaque * 100.0 if total_opaque else 0.0
        regions.append(
            Region(
                id=region_id(index),
                avg_color=rgb_to_hex(*color),
                pixel_count=count,
                percentage=percentage,
            )
        )
    return regions


def create_region_map(
    pixel_assignments: np.ndarray,
    opaque_mask: np.ndarray,
    width: int,
    height: int,
) -> ImageData:
    """Paint each opaque pixel with its region's display color.

    Transparent source pixels stay fully transparent in the map.
    """
    raster = np.zeros((width * height, 4), dtype=np.uint8)
    indices = np.asarray(pixel_assignments, dtype=np.int64)
    raster[opaque_mask, :3] = REGION_DISPLAY_COLORS[indices % len(REGION_DISPLAY_COLORS)]
    raster[opaque_mask, 3] = 255
    return ImageData(raster.reshape(-1), width, height)
