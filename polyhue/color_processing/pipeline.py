"""Quantization pipeline entry points.

AIDEV-NOTE: These functions are what the worker process runs for each job:
sample -> quantize -> merge -> regions. ``fallback_quantize`` is the degraded
in-process path used once the worker channel has failed; it trades fidelity
for liveness and never clusters.
"""

import numpy as np

from ..errors import InputError
from ..models import (
    Color,
    ColorAnalysis,
    ImageData,
    QuantizationRequest,
    QuantizationResult,
)
from .merging import merge_similar_colors
from .quantization import quantize_colors, resolve_algorithm, weighted_centroid
from .regions import create_region_map, create_regions
from .sampling import analyze_colors, extract_colors

# Upper bound on synthetic regions produced by the fallback path
FALLBACK_MAX_REGIONS = 4


def validate_image(image_data) -> ImageData:
    """Reject missing, empty or inconsistent pixel buffers.

    Raises:
        InputError: If the image cannot be processed
    """
    if image_data is None:
        raise InputError("No image loaded")
    if image_data.width <= 0 or image_data.height <= 0 or image_data.data.size == 0:
        raise InputError("Image has zero size")

    expected = image_data.width * image_data.height * 4
    if image_data.data.size != expected:
        raise InputError(
            f"Pixel buffer holds {image_data.data.size} bytes, "
            f"expected {expected} for {image_data.width}x{image_data.height} RGBA"
        )
    return image_data


def validate_request(request: QuantizationRequest) -> QuantizationRequest:
    """Check a request before it is dispatched.

    Raises:
        InputError: Missing or empty image, or max_colors < 1
        AlgorithmError: Unknown algorithm name
    """
    validate_image(request.image_data)
    if isinstance(request.max_colors, bool) or not isinstance(
        request.max_colors, (int, np.integer)
    ):
        raise InputError(f"maxColors must be an integer, got {request.max_colors!r}")
    if request.max_colors < 1:
        raise InputError(f"maxColors must be at least 1, got {request.max_colors}")
    resolve_algorithm(request.algorithm)
    try:
        float(request.merge_threshold)
    except (TypeError, ValueError):
        raise InputError(
            f"mergeThreshold must be a number, got {request.merge_threshold!r}"
        ) from None
    return request


def quantize_image_data(request: QuantizationRequest) -> QuantizationResult:
    """Run the full quantization pipeline on one request."""
    validate_request(request)
    image = request.image_data

    sampled = extract_colors(image)
    palette, color_assignments = quantize_colors(
        sampled.rgb,
        int(request.max_colors),
        request.algorithm,
        weights=sampled.counts,
        random_state=request.random_seed,
    )
    palette, color_assignments = merge_similar_colors(
        palette, color_assignments, float(request.merge_threshold)
    )

    # Per-color assignments -> per-opaque-pixel assignments
    pixel_assignments = color_assignments[sampled.pixel_index]

    regions = create_regions(palette, pixel_assignments, sampled.total_opaque)
    region_map = create_region_map(
        pixel_assignments, sampled.opaque_mask, image.width, image.height
    )

    return QuantizationResult(
        regions=regions,
        palette=[Color(*color) for color in palette],
        assignments=pixel_assignments,
        region_map=region_map,
        original_color_count=len(sampled),
        final_color_count=len(palette),
    )


def analyze_image_data(image_data: ImageData) -> ColorAnalysis:
    validate_image(image_data)
    return analyze_colors(image_data)


def fallback_quantize(request: QuantizationRequest) -> QuantizationResult:
    """Coarse quantization used when the worker channel is unavailable.

    Opaque pixels are split, in scan order, into at most
    ``min(max_colors, FALLBACK_MAX_REGIONS)`` equally sized bands; each band
    becomes a region colored with the mean of its pixels. Region pixel counts
    still add up to the opaque pixel count.
    """
    validate_request(request)
    image = request.image_data

    sampled = extract_colors(image)
    opaque = image.pixels()[sampled.opaque_mask, :3].astype(np.float64)
    region_count = min(int(request.max_colors), FALLBACK_MAX_REGIONS, len(opaque))

    palette = []
    pixel_assignments = np.zeros(len(opaque), dtype=np.int64)
    if region_count:
        bands = np.array_split(np.arange(len(opaque)), region_count)
        for index, band in enumerate(bands):
            pixel_assignments[band] = index
            palette.append(weighted_centroid(opaque[band], np.ones(len(band))))

    regions = create_regions(palette, pixel_assignments, sampled.total_opaque)
    region_map = create_region_map(
        pixel_assignments, sampled.opaque_mask, image.width, image.height
    )

    return QuantizationResult(
        regions=regions,
        palette=[Color(*color) for color in palette],
        assignments=pixel_assignments,
        region_map=region_map,
        original_color_count=len(sampled),
        final_color_count=len(palette),
        fallback=True,
    )
