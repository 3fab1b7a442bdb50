"""Matching quantized regions to physical filaments by color distance.

AIDEV-NOTE: Auto-mapping is greedy and order-dependent: regions are handled
in the order given, each takes the closest filament not yet used in the same
call, and earlier decisions are never revisited. The result is not a
globally optimal assignment.
"""

import math
from typing import Iterable, Optional, Sequence

import numpy as np

from .color_processing.color_space import delta_e, hex_to_rgb, rgb_array_to_lab, rgb_to_hsl
from .errors import MatchMethodError
from .models import (
    GOOD_MATCH_THRESHOLD,
    Filament,
    FilamentMatch,
    MatchMethod,
    MatchQuality,
    Region,
    RegionMapping,
)


def resolve_match_method(method) -> MatchMethod:
    """Map a metric name to its enum member.

    Raises:
        MatchMethodError: For unrecognised names instead of producing NaN
    """
    if isinstance(method, MatchMethod):
        return method
    try:
        return MatchMethod(method)
    except ValueError:
        valid = ", ".join(m.value for m in MatchMethod)
        raise MatchMethodError(
            f"Unknown filament matching method: {method!r} (expected one of {valid})"
        ) from None


def color_distance(rgb1, rgb2, method=MatchMethod.LAB_DELTA_E) -> float:
    """Distance between two RGB colors under the selected metric."""
    method = resolve_match_method(method)
    if method is MatchMethod.LAB_DELTA_E:
        return delta_e(rgb_array_to_lab(np.asarray(rgb1)), rgb_array_to_lab(np.asarray(rgb2)))
    elif method is MatchMethod.RGB_DISTANCE:
        return math.dist(rgb1, rgb2)
    # Hue only: saturation and lightness are ignored
    return float(abs(rgb_to_hsl(*rgb1)[0] - rgb_to_hsl(*rgb2)[0]))


def find_best_filament_match(
    target_color: str,
    filaments: Iterable[Filament],
    method: str = MatchMethod.LAB_DELTA_E.value,
) -> Optional[Filament]:
    """Closest filament to a hex color under the selected metric.

    Args:
        target_color: Target color as "#RRGGBB"
        filaments: Candidate filaments
        method: 'lab-delta-e' (default), 'rgb-distance' or 'hue-match'

    Returns:
        Best filament, or None if the target is malformed or nothing matched

    Raises:
        MatchMethodError: If the method name is not recognised
    """
    method = resolve_match_method(method)
    target_rgb = hex_to_rgb(target_color)
    if target_rgb is None:
        return None

    best_filament = None
    best_distance = math.inf
    for filament in filaments:
        filament_rgb = hex_to_rgb(filament.hex)
        if filament_rgb is None:
            continue

        distance = color_distance(target_rgb, filament_rgb, method)
        if distance < best_distance:
            best_distance = distance
            best_filament = filament

    return best_filament


def assignment_from_mappings(mappings: Iterable[RegionMapping]) -> "dict[str, str]":
    """Region id -> filament id."""
    return {mapping.region_id: mapping.filament_id for mapping in mappings}


class FilamentMatcher:
    """Nearest-color lookups against a fixed filament inventory."""

    def __init__(
        self,
        filaments: Sequence[Filament],
        good_match_threshold: float = GOOD_MATCH_THRESHOLD,
    ):
        self.good_match_threshold = good_match_threshold

        # Filaments with malformed hex values can never be matched
        self.filaments: "list[Filament]" = []
        rgb = []
        for filament in filaments:
            filament_rgb = hex_to_rgb(filament.hex)
            if filament_rgb is not None:
                self.filaments.append(filament)
                rgb.append(filament_rgb)
        self._labs = rgb_array_to_lab(np.array(rgb, dtype=np.float64).reshape(-1, 3))

    def find_closest_filament(
        self, target_color: str, exclude_ids: Iterable[str] = ()
    ) -> FilamentMatch:
        """Linear Delta E scan over filaments not in ``exclude_ids``.

        Returns a match with ``filament=None`` and infinite distance when the
        target is malformed or every filament is excluded.
        """
        target_rgb = hex_to_rgb(target_color)
        if target_rgb is None:
            return FilamentMatch(None, math.inf)

        excluded = set(exclude_ids)
        target_lab = rgb_array_to_lab(np.array(target_rgb, dtype=np.float64))
        distances = delta_e(self._labs, target_lab)

        closest = None
        min_distance = math.inf
        for filament, distance in zip(self.filaments, np.atleast_1d(distances)):
            if filament.id in excluded:
                continue
            if distance < min_distance:
                min_distance = float(distance)
                closest = filament

        return FilamentMatch(closest, min_distance)

    def auto_map_regions_to_filaments(self, regions: Iterable[Region]) -> "list[RegionMapping]":
        """Greedily give each region its closest still-unused filament.

        Regions left over once the inventory is exhausted get no mapping.
        """
        mappings = []
        used_ids: "list[str]" = []

        for region in regions:
            match = self.find_closest_filament(region.avg_color, used_ids)
            if match.filament is None:
                continue

            quality = (
                MatchQuality.GOOD
                if match.distance < self.good_match_threshold
                else MatchQuality.APPROXIMATE
            )
            mappings.append(
                RegionMapping(
                    region_id=region.id,
                    filament_id=match.filament.id,
                    distance=match.distance,
                    quality=quality,
                )
            )
            used_ids.append(match.filament.id)

        return mappings

    def auto_assign_filaments(
        self,
        regions: Iterable[Region],
        method: str = MatchMethod.LAB_DELTA_E.value,
    ) -> "dict[str, str]":
        """Best filament per region, independently; filaments may repeat."""
        method = resolve_match_method(method)
        assignments = {}
        for region in regions:
            best = find_best_filament_match(region.avg_color, self.filaments, method)
            if best is not None:
                assignments[region.id] = best.id
        return assignments
