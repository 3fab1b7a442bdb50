"""Built-in filament library and filament inventory management.

AIDEV-NOTE: Filaments are immutable reference data. The library only swaps
whole records in and out of its inventory list; matching code receives the
inventory explicitly and never reads library state behind the caller's back.
Import/export works on strings; reading and writing files is up to the caller.
"""

import csv
import io
import json
import uuid
from typing import Iterable, Optional

from .errors import FilamentImportError
from .models import Filament, FilamentCategory, FilamentMaterial, FilamentType

CSV_HEADERS = ["id", "vendor", "name", "hex", "td", "type", "material", "category"]

IMPORT_MODES = ("replace", "merge")
EXPORT_CONTENTS = ("all", "selected", "custom")


def _filament(id, vendor, name, hex_color, td, type_, material, category) -> Filament:
    return Filament(
        id=id,
        vendor=vendor,
        name=name,
        hex=hex_color,
        transmission_distance=td,
        type=FilamentType(type_),
        material=FilamentMaterial(material),
        category=FilamentCategory(category),
    )


# Popular filaments with properties for lithophane and multi-color printing
DEFAULT_FILAMENTS = (
    _filament("pla-white", "Generic", "White PLA", "#FFFFFF", 0.8, "translucent", "PLA", "basic"),
    _filament("pla-black", "Generic", "Black PLA", "#000000", 0.1, "opaque", "PLA", "basic"),
    _filament("pla-red", "Generic", "Red PLA", "#FF0000", 0.6, "translucent", "PLA", "basic"),
    _filament("pla-green", "Generic", "Green PLA", "#00FF00", 0.6, "translucent", "PLA", "basic"),
    _filament("pla-blue", "Generic", "Blue PLA", "#0000FF", 0.6, "translucent", "PLA", "basic"),
    _filament("pla-yellow", "Generic", "Yellow PLA", "#FFFF00", 0.8, "translucent", "PLA", "basic"),
    _filament("polymaker-red", "Polymaker", "PolyTerra Red", "#CC2936", 0.5, "translucent", "PLA", "premium"),
    _filament("polymaker-orange", "Polymaker", "PolyTerra Orange", "#FF6B35", 0.7, "translucent", "PLA", "premium"),
    _filament("polymaker-yellow", "Polymaker", "PolyTerra Yellow", "#F7931E", 0.9, "translucent", "PLA", "premium"),
    _filament("polymaker-green", "Polymaker", "PolyTerra Green", "#2E8B57", 0.6, "translucent", "PLA", "premium"),
    _filament("polymaker-blue", "Polymaker", "PolyTerra Blue", "#1E90FF", 0.6, "translucent", "PLA", "premium"),
    _filament("polymaker-purple", "Polymaker", "PolyTerra Purple", "#8A2BE2", 0.5, "translucent", "PLA", "premium"),
    _filament("bambu-white", "Bambu Lab", "Basic White PLA", "#F5F5F5", 0.9, "translucent", "PLA", "premium"),
    _filament("bambu-black", "Bambu Lab", "Basic Black PLA", "#1C1C1C", 0.1, "opaque", "PLA", "premium"),
    _filament("bambu-red", "Bambu Lab", "Basic Red PLA", "#E31E24", 0.6, "translucent", "PLA", "premium"),
    _filament("bambu-orange", "Bambu Lab", "Basic Orange PLA", "#FF7F00", 0.7, "translucent", "PLA", "premium"),
    _filament("bambu-yellow", "Bambu Lab", "Basic Yellow PLA", "#FFD700", 0.8, "translucent", "PLA", "premium"),
    _filament("bambu-green", "Bambu Lab", "Basic Green PLA", "#32CD32", 0.6, "translucent", "PLA", "premium"),
    _filament("bambu-blue", "Bambu Lab", "Basic Blue PLA", "#4169E1", 0.6, "translucent", "PLA", "premium"),
    _filament("prusa-prusament-orange", "Prusa", "Prusament Orange PLA", "#FF6600", 0.7, "translucent", "PLA", "premium"),
    _filament("prusa-prusament-silver", "Prusa", "Prusament Silver PLA", "#C0C0C0", 0.3, "metallic", "PLA", "premium"),
    _filament("prusa-prusament-gold", "Prusa", "Prusament Gold PLA", "#FFD700", 0.4, "metallic", "PLA", "premium"),
    _filament("translucent-clear", "Generic", "Clear Translucent", "#FFFFFF", 2.0, "translucent", "PLA", "specialty"),
    _filament("translucent-natural", "Generic", "Natural Translucent", "#F5F5DC", 1.8, "translucent", "PLA", "specialty"),
    _filament("translucent-red", "Generic", "Red Translucent", "#FF4500", 1.2, "translucent", "PLA", "specialty"),
    _filament("translucent-blue", "Generic", "Blue Translucent", "#1E90FF", 1.2, "translucent", "PLA", "specialty"),
    _filament("translucent-green", "Generic", "Green Translucent", "#32CD32", 1.2, "translucent", "PLA", "specialty"),
    _filament("glow-green", "Generic", "Glow Green PLA", "#ADFF2F", 0.8, "glow", "PLA", "specialty"),
    _filament("glow-blue", "Generic", "Glow Blue PLA", "#87CEEB", 0.8, "glow", "PLA", "specialty"),
    _filament("wood-natural", "Generic", "Wood Natural PLA", "#D2691E", 0.4, "opaque", "WOOD", "specialty"),
    _filament("wood-dark", "Generic", "Wood Dark PLA", "#8B4513", 0.3, "opaque", "WOOD", "specialty"),
    _filament("metal-copper", "Generic", "Copper PLA", "#B87333", 0.2, "metallic", "METAL", "specialty"),
    _filament("metal-bronze", "Generic", "Bronze PLA", "#CD7F32", 0.2, "metallic", "METAL", "specialty"),
    _filament("metal-steel", "Generic", "Steel PLA", "#708090", 0.1, "metallic", "METAL", "specialty"),
)

DEFAULT_FILAMENT_IDS = frozenset(f.id for f in DEFAULT_FILAMENTS)


def generate_short_id() -> str:
    return uuid.uuid4().hex[:8]


class FilamentLibrary:
    """Mutable inventory of immutable filament records."""

    def __init__(self, filaments: Optional[Iterable[Filament]] = None):
        self.filaments: "list[Filament]" = list(
            DEFAULT_FILAMENTS if filaments is None else filaments
        )
        self.selected_ids: "list[str]" = []

    def __len__(self) -> int:
        return len(self.filaments)

    def __iter__(self):
        return iter(self.filaments)

    # --- Queries ---

    def get_by_id(self, filament_id: str) -> Optional[Filament]:
        for filament in self.filaments:
            if filament.id == filament_id:
                return filament
        return None

    def by_category(self, category) -> "list[Filament]":
        category = FilamentCategory(category)
        return [f for f in self.filaments if f.category is category]

    def by_material(self, material) -> "list[Filament]":
        material = FilamentMaterial(material)
        return [f for f in self.filaments if f.material is material]

    def by_type(self, filament_type) -> "list[Filament]":
        filament_type = FilamentType(filament_type)
        return [f for f in self.filaments if f.type is filament_type]

    def by_vendor(self, vendor: str) -> "list[Filament]":
        return [f for f in self.filaments if f.vendor == vendor]

    def vendors(self) -> "list[str]":
        return list(dict.fromkeys(f.vendor for f in self.filaments))

    def materials(self) -> "list[str]":
        return list(dict.fromkeys(f.material.value for f in self.filaments))

    def types(self) -> "list[str]":
        return list(dict.fromkeys(f.type.value for f in self.filaments))

    # --- Editing ---

    def add(self, **fields) -> Filament:
        """Add a filament built from record fields, assigning a fresh id."""
        fields["id"] = generate_short_id()
        filament = Filament.from_dict(fields)
        self.filaments.append(filament)
        return filament

    def update(self, filament: Filament) -> None:
        for index, existing in enumerate(self.filaments):
            if existing.id == filament.id:
                self.filaments[index] = filament
                return
        raise KeyError(f"Unknown filament id: {filament.id}")

    def remove(self, filament_id: str) -> None:
        self.filaments = [f for f in self.filaments if f.id != filament_id]
        self.selected_ids = [i for i in self.selected_ids if i != filament_id]

    def select(self, filament_ids: Iterable[str]) -> None:
        self.selected_ids = list(dict.fromkeys(filament_ids))

    def selected(self) -> "list[Filament]":
        return [f for f in self.filaments if f.id in self.selected_ids]

    # --- Import / Export ---

    def import_json(self, text: str, mode: str = "merge") -> int:
        """Import filaments from a JSON array. Returns the number of records read."""
        try:
            records = json.loads(text)
        except json.JSONDecodeError as e:
            raise FilamentImportError(f"Invalid JSON: {e}") from e
        if not isinstance(records, list):
            raise FilamentImportError("Invalid file format: expected a list of filaments")
        return self._import_records(records, mode)

    def import_csv(self, text: str, mode: str = "merge") -> int:
        """Import filaments from CSV with a header row. Short rows are skipped."""
        reader = csv.reader(io.StringIO(text.strip()))
        rows = [row for row in reader if row]
        if not rows:
            return self._import_records([], mode)

        headers = [h.strip() for h in rows[0]]
        records = [
            {header: value.strip() for header, value in zip(headers, row)}
            for row in rows[1:]
            if len(row) >= len(headers)
        ]
        return self._import_records(records, mode)

    def export_json(self, content: str = "all") -> str:
        return json.dumps([f.to_dict() for f in self._export_selection(content)], indent=2)

    def export_csv(self, content: str = "all") -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_HEADERS)
        for filament in self._export_selection(content):
            writer.writerow(
                [
                    filament.id,
                    filament.vendor,
                    filament.name,
                    filament.hex,
                    filament.transmission_distance,
                    filament.type.value,
                    filament.material.value,
                    filament.category.value,
                ]
            )
        return buffer.getvalue()

    def _import_records(self, records: list, mode: str) -> int:
        if mode not in IMPORT_MODES:
            raise ValueError(f"Unknown import mode: {mode}")

        try:
            imported = [Filament.from_dict(record) for record in records]
        except (KeyError, TypeError, ValueError) as e:
            raise FilamentImportError(f"Invalid filament record: {e}") from e

        if mode == "replace":
            self.filaments = imported
        else:
            # Merge: keep existing records on id collisions
            known = {f.id for f in self.filaments}
            for filament in imported:
                if filament.id not in known:
                    self.filaments.append(filament)
                    known.add(filament.id)
        return len(imported)

    def _export_selection(self, content: str) -> "list[Filament]":
        if content == "all":
            return list(self.filaments)
        elif content == "selected":
            return self.selected()
        elif content == "custom":
            return [f for f in self.filaments if f.id not in DEFAULT_FILAMENT_IDS]
        raise ValueError(f"Unknown export content: {content}")
