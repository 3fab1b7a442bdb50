"""Data models and constants for the PolyHue color engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional

import numpy as np
from PIL import Image

from .errors import InputError

# AIDEV-NOTE: Pixels with alpha below this value are treated as transparent
# everywhere: sampling, region counts and percentage denominators.
ALPHA_THRESHOLD = 128

DEFAULT_MAX_COLORS = 4
DEFAULT_MERGE_THRESHOLD = 8.0  # Delta E units
GOOD_MATCH_THRESHOLD = 10.0  # Delta E units
REQUEST_TIMEOUT = 30.0  # seconds
MAX_KMEANS_ITERATIONS = 50

# Configuration file path
CONFIG_FILE = Path.home() / ".polyhue_config.json"


class QuantizationAlgorithm(Enum):
    """Palette reduction strategies."""

    KMEANS = "kmeans"
    MEDIAN_CUT = "median-cut"


class MatchMethod(Enum):
    """Distance metrics available for filament matching."""

    LAB_DELTA_E = "lab-delta-e"
    RGB_DISTANCE = "rgb-distance"
    HUE_MATCH = "hue-match"


class MatchQuality(Enum):
    GOOD = "good"
    APPROXIMATE = "approximate"


class JobState(Enum):
    """Lifecycle of one request inside the quantization service."""

    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class FilamentType(Enum):
    TRANSLUCENT = "translucent"
    OPAQUE = "opaque"
    METALLIC = "metallic"
    GLOW = "glow"


class FilamentMaterial(Enum):
    PLA = "PLA"
    PETG = "PETG"
    ABS = "ABS"
    TPU = "TPU"
    WOOD = "WOOD"
    METAL = "METAL"


class FilamentCategory(Enum):
    BASIC = "basic"
    PREMIUM = "premium"
    SPECIALTY = "specialty"


# --- Color Models ---


@dataclass
class Color:
    """An sRGB color with optional frequency and cached L*a*b* value."""

    r: int
    g: int
    b: int
    count: Optional[int] = None
    lab: "Optional[tuple[float, float, float]]" = None

    @property
    def rgb(self) -> "tuple[int, int, int]":
        return (self.r, self.g, self.b)

    @property
    def hex(self) -> str:
        return f"#{self.r:02X}{self.g:02X}{self.b:02X}"

    @classmethod
    def from_hex(cls, hex_color: str) -> "Color":
        value = hex_color.lstrip("#")
        if len(value) != 6:
            raise ValueError(f"Invalid hex color: {hex_color!r}")
        return cls(int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16))

    def to_dict(self) -> "dict[str, int]":
        return {"r": self.r, "g": self.g, "b": self.b}


@dataclass
class ImageData:
    """Raw RGBA pixel buffer.

    AIDEV-NOTE: ``data`` is always a flat uint8 array of length
    ``width * height * 4`` once validated. The same type carries both the
    source image and the region map raster.
    """

    data: np.ndarray
    width: int
    height: int

    def __post_init__(self):
        self.data = np.asarray(self.data, dtype=np.uint8).reshape(-1)

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    def pixels(self) -> np.ndarray:
        """Return the buffer as an ``(N, 4)`` view."""
        return self.data.reshape(-1, 4)

    @classmethod
    def from_image(cls, image: Image.Image) -> "ImageData":
        if image.mode != "RGBA":
            image = image.convert("RGBA")
        width, height = image.size
        return cls(np.asarray(image, dtype=np.uint8).reshape(-1), width, height)

    def to_image(self) -> Image.Image:
        return Image.fromarray(self.data.reshape(self.height, self.width, 4))

    def copy(self) -> "ImageData":
        return ImageData(self.data.copy(), self.width, self.height)

    def to_dict(self) -> "dict[str, Any]":
        return {
            "data": self.data.tolist(),
            "width": self.width,
            "height": self.height,
        }

    @classmethod
    def from_dict(cls, data: "dict[str, Any]") -> "ImageData":
        """Build an image from a wire dict.

        Raises:
            InputError: If the pixel data is not a list of 0-255 integers
        """
        try:
            values = np.asarray(data.get("data", []), dtype=np.int64)
        except (TypeError, ValueError, OverflowError) as e:
            raise InputError(f"Invalid pixel data: {e}") from e
        if values.size and (values.min() < 0 or values.max() > 255):
            raise InputError(
                f"Pixel values must be within 0-255, got {values.min()}..{values.max()}"
            )
        return cls(values, data.get("width", 0), data.get("height", 0))


# --- Request / Result Models ---


@dataclass
class QuantizationRequest:
    """Parameters for one quantization job."""

    image_data: Optional[ImageData]
    max_colors: int = DEFAULT_MAX_COLORS
    algorithm: str = QuantizationAlgorithm.KMEANS.value
    merge_threshold: float = DEFAULT_MERGE_THRESHOLD

    # Seed for k-means++ initialization (None = nondeterministic)
    random_seed: Optional[int] = None

    @classmethod
    def from_dict(cls, data: "dict[str, Any]") -> "QuantizationRequest":
        image = data.get("imageData")
        return cls(
            image_data=ImageData.from_dict(image) if image is not None else None,
            max_colors=data.get("maxColors", DEFAULT_MAX_COLORS),
            algorithm=data.get("algorithm", QuantizationAlgorithm.KMEANS.value),
            merge_threshold=data.get("mergeThreshold", DEFAULT_MERGE_THRESHOLD),
            random_seed=data.get("randomSeed"),
        )


@dataclass
class Region:
    """Pixels sharing one palette color after merging.

    Regions are not necessarily spatially contiguous.
    """

    id: str
    avg_color: str  # "#RRGGBB"
    pixel_count: int
    percentage: float

    def to_dict(self) -> "dict[str, Any]":
        return {
            "id": self.id,
            "avgColor": self.avg_color,
            "pixelCount": self.pixel_count,
            "percentage": self.percentage,
        }


@dataclass
class QuantizationResult:
    """Result of the quantize -> merge -> regions pipeline."""

    regions: "list[Region]"
    palette: "list[Color]"

    # Palette index for every opaque pixel, in scan order
    assignments: np.ndarray

    # Visualization raster, same size as the source image
    region_map: ImageData

    original_color_count: int = 0
    final_color_count: int = 0

    # True when produced by the degraded in-process fallback
    fallback: bool = False

    def to_dict(self) -> "dict[str, Any]":
        return {
            "regions": [region.to_dict() for region in self.regions],
            "palette": [color.to_dict() for color in self.palette],
            "assignments": [int(a) for a in self.assignments],
            "regionMap": self.region_map.to_dict(),
            "originalColorCount": self.original_color_count,
            "finalColorCount": self.final_color_count,
        }


@dataclass
class ColorShare:
    """One entry of a color distribution."""

    color: str  # "#RRGGBB"
    percentage: float
    count: int

    def to_dict(self) -> "dict[str, Any]":
        return {"color": self.color, "percentage": self.percentage, "count": self.count}


@dataclass
class ColorAnalysis:
    """Summary of an image's opaque colors."""

    unique_colors: int
    total_pixels: int
    dominant_colors: "list[ColorShare]" = field(default_factory=list)
    color_distribution: "list[ColorShare]" = field(default_factory=list)
    average_complexity: float = 0.0

    def to_dict(self) -> "dict[str, Any]":
        return {
            "uniqueColors": self.unique_colors,
            "totalPixels": self.total_pixels,
            "dominantColors": [c.to_dict() for c in self.dominant_colors],
            "colorDistribution": [c.to_dict() for c in self.color_distribution],
            "averageComplexity": self.average_complexity,
        }


# --- Filament Models ---


@dataclass(frozen=True)
class Filament:
    """A physical printing material. Immutable reference data."""

    id: str
    vendor: str
    name: str
    hex: str  # "#RRGGBB"
    transmission_distance: float  # mm, for lithophane mode
    type: FilamentType
    material: FilamentMaterial
    category: FilamentCategory

    @classmethod
    def from_dict(cls, data: "dict[str, Any]") -> "Filament":
        """Build a filament from a record; ``td`` is accepted as an alias."""
        td = data.get("transmissionDistance", data.get("td", 0.0))
        return cls(
            id=str(data["id"]),
            vendor=str(data["vendor"]),
            name=str(data["name"]),
            hex=str(data["hex"]).upper(),
            transmission_distance=float(td) if td not in (None, "") else 0.0,
            type=FilamentType(data["type"]),
            material=FilamentMaterial(data["material"]),
            category=FilamentCategory(data["category"]),
        )

    def to_dict(self) -> "dict[str, Any]":
        return {
            "id": self.id,
            "vendor": self.vendor,
            "name": self.name,
            "hex": self.hex,
            "transmissionDistance": self.transmission_distance,
            "type": self.type.value,
            "material": self.material.value,
            "category": self.category.value,
        }


@dataclass
class FilamentMatch:
    """Closest filament to a target color (``filament`` is None if none left)."""

    filament: Optional[Filament]
    distance: float


@dataclass
class RegionMapping:
    """One region -> filament decision made by auto-mapping."""

    region_id: str
    filament_id: str
    distance: float
    quality: MatchQuality

    @property
    def is_good_match(self) -> bool:
        return self.quality is MatchQuality.GOOD


# --- Configuration ---


@dataclass
class QuantizationConfig:
    """User defaults for quantization and filament matching."""

    # Color quantization
    max_colors: int = DEFAULT_MAX_COLORS
    algorithm: str = QuantizationAlgorithm.KMEANS.value  # "kmeans", "median-cut"
    merge_threshold: float = DEFAULT_MERGE_THRESHOLD  # Delta E, <= 0 disables

    # Filament matching
    match_method: str = MatchMethod.LAB_DELTA_E.value
    auto_assign_filaments: bool = True
    good_match_threshold: float = GOOD_MATCH_THRESHOLD

    # Service
    request_timeout: float = REQUEST_TIMEOUT  # seconds
    random_seed: Optional[int] = None

    def to_request(self, image_data: Optional[ImageData]) -> QuantizationRequest:
        return QuantizationRequest(
            image_data=image_data,
            max_colors=self.max_colors,
            algorithm=self.algorithm,
            merge_threshold=self.merge_threshold,
            random_seed=self.random_seed,
        )
