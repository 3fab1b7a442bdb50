"""PolyHue color quantization and filament matching engine."""

from .errors import (
    AlgorithmError,
    ChannelError,
    InputError,
    MatchMethodError,
    QuantizationError,
    QuantizationTimeoutError,
)
from .filament_library import DEFAULT_FILAMENTS, FilamentLibrary
from .filament_matcher import FilamentMatcher, find_best_filament_match
from .models import (
    Filament,
    ImageData,
    QuantizationConfig,
    QuantizationRequest,
    QuantizationResult,
    Region,
)
from .quantization_service import QuantizationService

__all__ = [
    "AlgorithmError",
    "ChannelError",
    "DEFAULT_FILAMENTS",
    "Filament",
    "FilamentLibrary",
    "FilamentMatcher",
    "ImageData",
    "InputError",
    "MatchMethodError",
    "QuantizationConfig",
    "QuantizationError",
    "QuantizationRequest",
    "QuantizationResult",
    "QuantizationService",
    "QuantizationTimeoutError",
    "Region",
    "find_best_filament_match",
]
