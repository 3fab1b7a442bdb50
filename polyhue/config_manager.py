"""Configuration persistence manager for the PolyHue color engine.

This module handles loading and saving of quantization defaults to/from JSON files.
"""

import json
import math
from dataclasses import asdict, fields
from pathlib import Path
from typing import Optional, Tuple

from .models import CONFIG_FILE, MatchMethod, QuantizationAlgorithm, QuantizationConfig

# Settings that must name a known enum value
_CHOICE_FIELDS = {
    "algorithm": QuantizationAlgorithm,
    "match_method": MatchMethod,
}

# Numeric settings and whether they must be strictly positive
_NUMBER_FIELDS = {
    "merge_threshold": False,
    "good_match_threshold": False,
    "request_timeout": True,
}


def _is_number(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


class ConfigManager:
    """Handles loading and saving of quantization configuration."""

    def __init__(self, config_path: Path = CONFIG_FILE):
        """Initialize config manager.

        Args:
            config_path: Path to configuration file (defaults to ~/.polyhue_config.json)
        """
        self.config_path = Path(config_path)

    def load(self) -> QuantizationConfig:
        """Load configuration from file, returning defaults if not found.

        Unknown keys are ignored; unusable values fall back to their default
        with a warning.

        Returns:
            QuantizationConfig with loaded or default values
        """
        config = QuantizationConfig()

        try:
            if self.config_path.exists():
                with open(self.config_path, "r") as f:
                    data = json.load(f)
                if not isinstance(data, dict):
                    raise ValueError("expected a JSON object")
                for config_field in fields(config):
                    if config_field.name in data:
                        setattr(config, config_field.name, data[config_field.name])
                self._reset_invalid(config)
                print(f"✓ Loaded configuration from {self.config_path}")
        except (OSError, ValueError) as e:
            print(f"Warning: Could not load config file: {e}")
            config = QuantizationConfig()

        return config

    def save(self, config: QuantizationConfig) -> Tuple[bool, Optional[str]]:
        """Save configuration to file.

        Args:
            config: QuantizationConfig to save

        Returns:
            Tuple of (success: bool, error_message: Optional[str])
        """
        try:
            with open(self.config_path, "w") as f:
                json.dump(asdict(config), f, indent=2)
            return True, None
        except (OSError, TypeError) as e:
            return False, str(e)

    def _reset_invalid(self, config: QuantizationConfig):
        defaults = QuantizationConfig()

        for name, choices in _CHOICE_FIELDS.items():
            value = getattr(config, name)
            if value not in [choice.value for choice in choices]:
                print(f"Warning: Unknown {name} {value!r} in config, using {getattr(defaults, name)!r}")
                setattr(config, name, getattr(defaults, name))

        max_colors = config.max_colors
        if isinstance(max_colors, bool) or not isinstance(max_colors, int) or max_colors < 1:
            self._warn_invalid(config, defaults, "max_colors")

        for name, positive in _NUMBER_FIELDS.items():
            value = getattr(config, name)
            if not _is_number(value) or (positive and value <= 0):
                self._warn_invalid(config, defaults, name)

        seed = config.random_seed
        if seed is not None and (isinstance(seed, bool) or not isinstance(seed, int)):
            self._warn_invalid(config, defaults, "random_seed")

        if not isinstance(config.auto_assign_filaments, bool):
            self._warn_invalid(config, defaults, "auto_assign_filaments")

    def _warn_invalid(self, config: QuantizationConfig, defaults: QuantizationConfig, name: str):
        default = getattr(defaults, name)
        print(f"Warning: Invalid {name} {getattr(config, name)!r} in config, using {default!r}")
        setattr(config, name, default)
