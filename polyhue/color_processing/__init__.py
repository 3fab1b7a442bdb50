"""Color processing pipeline for image-to-filament conversion.

AIDEV-NOTE: This package holds the algorithmic core. Organized into modular
components:
- color_space: sRGB/XYZ/Lab conversion and Delta E
- sampling: unique opaque colors and color analysis
- quantization: K-means++ and median-cut palette reduction
- merging: union-find merge of near-duplicate palette entries
- regions: region statistics and the overlay raster
- pipeline: per-job entry points and the degraded fallback
- worker: the isolated worker process and its channel
"""

from .pipeline import analyze_image_data, fallback_quantize, quantize_image_data

__all__ = ["analyze_image_data", "fallback_quantize", "quantize_image_data"]
