"""PolyHue command-line entry point."""

import argparse
import json
import sys
from pathlib import Path

from PIL import Image

from .config_manager import ConfigManager
from .errors import QuantizationError
from .filament_library import FilamentLibrary
from .filament_matcher import FilamentMatcher, assignment_from_mappings
from .models import ImageData, MatchMethod, QuantizationAlgorithm
from .quantization_service import QuantizationService


def load_image(file_path: "str | Path") -> ImageData:
    """Load an image file as an RGBA pixel buffer.

    Raises:
        ValueError: If file cannot be loaded or is invalid
    """
    try:
        with Image.open(file_path) as image:
            return ImageData.from_image(image)
    except (OSError, Image.DecompressionBombError) as e:
        raise ValueError(f"Failed to load image: {e}") from e


def load_filaments(file_path: "str | Path") -> FilamentLibrary:
    """Build a library from a JSON or CSV export instead of the built-ins."""
    path = Path(file_path)
    library = FilamentLibrary([])
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".csv":
        library.import_csv(text, mode="replace")
    else:
        library.import_json(text, mode="replace")
    return library


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="polyhue",
        description="Reduce an image to a few colors and match them to filaments.",
    )
    parser.add_argument("image", help="Input image (PNG, JPG, ...)")
    parser.add_argument("-k", "--max-colors", type=int, help="Maximum palette size")
    parser.add_argument(
        "-a",
        "--algorithm",
        choices=[a.value for a in QuantizationAlgorithm],
        help="Quantization algorithm",
    )
    parser.add_argument(
        "-m", "--merge-threshold", type=float, help="Delta E merge threshold (0 disables)"
    )
    parser.add_argument(
        "--method",
        choices=[m.value for m in MatchMethod],
        help="Distance metric for non-exclusive filament assignment",
    )
    parser.add_argument("--filaments", help="Filament library as JSON or CSV")
    parser.add_argument("--seed", type=int, help="Random seed for k-means++")
    parser.add_argument("--region-map", help="Write the region overlay PNG here")
    parser.add_argument("--output", help="Write the JSON result here")
    parser.add_argument(
        "--save-config", action="store_true", help="Persist the given options as defaults"
    )
    return parser


def main(argv=None) -> int:
    """Quantize an image and print its regions with their filament matches."""
    args = build_parser().parse_args(argv)

    config_manager = ConfigManager()
    config = config_manager.load()
    if args.max_colors is not None:
        config.max_colors = args.max_colors
    if args.algorithm is not None:
        config.algorithm = args.algorithm
    if args.merge_threshold is not None:
        config.merge_threshold = args.merge_threshold
    if args.method is not None:
        config.match_method = args.method
    if args.seed is not None:
        config.random_seed = args.seed

    if args.save_config:
        saved, error = config_manager.save(config)
        if not saved:
            print(f"Warning: Could not save config file: {error}")

    try:
        image_data = load_image(args.image)
        library = load_filaments(args.filaments) if args.filaments else FilamentLibrary()

        print(f"Loaded image with size: {image_data.width}x{image_data.height} pixels.")
        with QuantizationService(config) as service:
            result = service.quantize_image(image_data).result()
    except (OSError, ValueError, QuantizationError) as e:
        print(f"Error: {e}")
        return 1

    if result.fallback:
        print("Warning: worker unavailable, regions are approximate.")
    print(
        f"Reduced {result.original_color_count} colors to "
        f"{result.final_color_count} regions."
    )

    matcher = FilamentMatcher(library.filaments, config.good_match_threshold)
    mappings = {}
    if config.auto_assign_filaments:
        mappings = {m.region_id: m for m in matcher.auto_map_regions_to_filaments(result.regions)}

    for region in result.regions:
        line = f"  {region.id}: {region.avg_color} {region.pixel_count} px ({region.percentage:.1f}%)"
        mapping = mappings.get(region.id)
        if mapping is not None:
            filament = library.get_by_id(mapping.filament_id)
            line += f" -> {filament.vendor} {filament.name} [{mapping.quality.value}, ΔE {mapping.distance:.1f}]"
        print(line)

    if args.region_map:
        result.region_map.to_image().save(args.region_map)
        print(f"Saved region map to {args.region_map}")

    if args.output:
        payload = result.to_dict()
        if config.auto_assign_filaments:
            payload["filamentAssignments"] = assignment_from_mappings(mappings.values())
        else:
            payload["filamentAssignments"] = matcher.auto_assign_filaments(
                result.regions, config.match_method
            )
        with open(args.output, "w") as f:
            json.dump(payload, f)
        print(f"Saved result to {args.output}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
