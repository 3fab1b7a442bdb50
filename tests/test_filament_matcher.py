import math

import pytest

from polyhue.errors import MatchMethodError
from polyhue.filament_library import DEFAULT_FILAMENTS
from polyhue.filament_matcher import (
    FilamentMatcher,
    assignment_from_mappings,
    color_distance,
    find_best_filament_match,
)
from polyhue.models import Filament, MatchQuality, Region


def _filament(filament_id, hex_color):
    return Filament.from_dict(
        {
            "id": filament_id,
            "vendor": "Test",
            "name": filament_id,
            "hex": hex_color,
            "td": 0.5,
            "type": "opaque",
            "material": "PLA",
            "category": "basic",
        }
    )


def _region(index, color):
    return Region(id=f"region_{index}", avg_color=color, pixel_count=1, percentage=1.0)


def test_exact_hex_match_has_zero_distance():
    matcher = FilamentMatcher(DEFAULT_FILAMENTS)

    match = matcher.find_closest_filament("#FF0000", [])

    assert match.filament.id == "pla-red"
    assert match.distance == 0


def test_excluded_filaments_are_skipped():
    matcher = FilamentMatcher(DEFAULT_FILAMENTS)

    match = matcher.find_closest_filament("#FF0000", ["pla-red"])

    assert match.filament.id != "pla-red"
    assert match.distance > 0


def test_no_eligible_filament_returns_none():
    matcher = FilamentMatcher([_filament("only", "#123456")])
    match = matcher.find_closest_filament("#FF0000", ["only"])
    assert match.filament is None
    assert math.isinf(match.distance)


def test_auto_map_never_reuses_a_filament():
    matcher = FilamentMatcher(DEFAULT_FILAMENTS)
    regions = [_region(i, "#FF0000") for i in range(6)]

    mappings = matcher.auto_map_regions_to_filaments(regions)

    assert len(mappings) == 6
    assert len({m.filament_id for m in mappings}) == 6
    assert mappings[0].filament_id == "pla-red"
    assert mappings[0].quality is MatchQuality.GOOD
    assert [m.distance for m in mappings] == sorted(m.distance for m in mappings)


def test_auto_map_classifies_approximate_matches():
    matcher = FilamentMatcher([_filament("grey", "#808080")])
    mappings = matcher.auto_map_regions_to_filaments([_region(0, "#FF0000")])
    assert mappings[0].quality is MatchQuality.APPROXIMATE
    assert not mappings[0].is_good_match


def test_auto_map_is_order_dependent():
    inventory = [_filament("red", "#FF0000"), _filament("dark-red", "#C00000")]
    matcher = FilamentMatcher(inventory)
    bright, dark = _region(0, "#FA0000"), _region(1, "#F00000")

    forward = assignment_from_mappings(matcher.auto_map_regions_to_filaments([bright, dark]))
    backward = assignment_from_mappings(matcher.auto_map_regions_to_filaments([dark, bright]))

    # Whoever comes first takes the bright red
    assert forward == {"region_0": "red", "region_1": "dark-red"}
    assert backward == {"region_1": "red", "region_0": "dark-red"}


def test_auto_map_stops_when_inventory_runs_out():
    matcher = FilamentMatcher([_filament("a", "#000000"), _filament("b", "#FFFFFF")])
    mappings = matcher.auto_map_regions_to_filaments([_region(i, "#777777") for i in range(3)])
    assert [m.region_id for m in mappings] == ["region_0", "region_1"]


def test_malformed_filament_hex_is_ignored():
    matcher = FilamentMatcher([_filament("bad", "#XYZXYZ"), _filament("good", "#00FF00")])
    assert [f.id for f in matcher.filaments] == ["good"]
    assert matcher.find_closest_filament("#00FF00").filament.id == "good"


def test_best_match_metrics_differ():
    inventory = [_filament("dark-red", "#800000"), _filament("orange", "#FF4000")]

    assert find_best_filament_match("#FF0000", inventory, "hue-match").id == "dark-red"
    assert find_best_filament_match("#FF0000", inventory, "rgb-distance").id == "orange"
    assert find_best_filament_match("#FF0000", inventory).id == "orange"


def test_best_match_rejects_unknown_method():
    with pytest.raises(MatchMethodError):
        find_best_filament_match("#FF0000", DEFAULT_FILAMENTS, "cie2000")


def test_best_match_with_malformed_target_returns_none():
    assert find_best_filament_match("red", DEFAULT_FILAMENTS) is None


def test_color_distance_metrics():
    assert color_distance((255, 0, 0), (255, 0, 0)) == 0
    assert color_distance((0, 0, 0), (3, 4, 0), "rgb-distance") == 5
    assert color_distance((255, 0, 0), (0, 0, 255), "hue-match") == 240


def test_auto_assign_allows_repeats():
    matcher = FilamentMatcher(DEFAULT_FILAMENTS)
    regions = [_region(0, "#FF0000"), _region(1, "#FE0000")]

    assignments = matcher.auto_assign_filaments(regions, "lab-delta-e")

    assert assignments == {"region_0": "pla-red", "region_1": "pla-red"}
