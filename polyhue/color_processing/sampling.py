"""Unique-color extraction and color analysis for raw RGBA buffers."""

from dataclasses import dataclass

import numpy as np

from ..models import ALPHA_THRESHOLD, Color, ColorAnalysis, ColorShare, ImageData
from .color_space import rgb_array_to_lab, rgb_to_hex

DOMINANT_COLOR_COUNT = 10


@dataclass
class SampledColors:
    """Unique opaque colors of an image.

    AIDEV-NOTE: ``rgb``/``counts``/``lab`` are indexed by unique color in
    first-seen scan order. ``pixel_index`` maps every opaque pixel (scan
    order) to its unique color, which is how per-color assignments become
    per-pixel assignments later on.
    """

    rgb: np.ndarray  # (N, 3) uint8
    counts: np.ndarray  # (N,) int64
    lab: np.ndarray  # (N, 3) float64
    pixel_index: np.ndarray  # (opaque_pixels,) int64
    opaque_mask: np.ndarray  # (width * height,) bool

    def __len__(self) -> int:
        return len(self.rgb)

    @property
    def total_opaque(self) -> int:
        return int(self.pixel_index.size)

    def to_colors(self) -> "list[Color]":
        return [
            Color(int(r), int(g), int(b), count=int(count), lab=tuple(float(v) for v in lab))
            for (r, g, b), count, lab in zip(self.rgb, self.counts, self.lab)
        ]


def extract_colors(image_data: ImageData) -> SampledColors:
    """Deduplicate opaque pixels by exact (r, g, b) value.

    Visually identical but numerically distinct colors stay distinct here;
    palette merging happens later.
    """
    pixels = image_data.pixels()
    mask = pixels[:, 3] >= ALPHA_THRESHOLD
    opaque = pixels[mask, :3]

    if opaque.size == 0:
        return SampledColors(
            rgb=np.zeros((0, 3), dtype=np.uint8),
            counts=np.zeros(0, dtype=np.int64),
            lab=np.zeros((0, 3), dtype=np.float64),
            pixel_index=np.zeros(0, dtype=np.int64),
            opaque_mask=mask,
        )

    # Pack to a single integer key so np.unique works on one axis
    keys = (
        opaque[:, 0].astype(np.int64) << 16
        | opaque[:, 1].astype(np.int64) << 8
        | opaque[:, 2].astype(np.int64)
    )
    unique_keys, first_index, inverse, counts = np.unique(
        keys, return_index=True, return_inverse=True, return_counts=True
    )

    # np.unique sorts by value; restore first-seen order
    order = np.argsort(first_index, kind="stable")
    rank = np.empty_like(order)
    rank[order] = np.arange(order.size)

    unique_keys = unique_keys[order]
    rgb = np.stack(
        [(unique_keys >> 16) & 0xFF, (unique_keys >> 8) & 0xFF, unique_keys & 0xFF],
        axis=-1,
    ).astype(np.uint8)

    return SampledColors(
        rgb=rgb,
        counts=counts[order].astype(np.int64),
        lab=rgb_array_to_lab(rgb),
        pixel_index=rank[inverse.reshape(-1)].astype(np.int64),
        opaque_mask=mask,
    )


def analyze_colors(image_data: ImageData) -> ColorAnalysis:
    """Summarize the color distribution of an image's opaque pixels."""
    sampled = extract_colors(image_data)
    total = sampled.total_opaque

    distribution = [
        ColorShare(
            color=rgb_to_hex(*rgb),
            percentage=float(count) / total * 100.0,
            count=int(count),
        )
        for rgb, count in zip(sampled.rgb, sampled.counts)
    ]
    distribution.sort(key=lambda share: share.percentage, reverse=True)

    area = image_data.pixel_count
    complexity = len(sampled) / area * 1000.0 if area else 0.0

    return ColorAnalysis(
        unique_colors=len(sampled),
        total_pixels=total,
        dominant_colors=distribution[:DOMINANT_COLOR_COUNT],
        color_distribution=distribution,
        average_complexity=complexity,
    )
