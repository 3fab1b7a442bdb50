"""sRGB, XYZ and CIE L*a*b* conversions plus perceptual distance.

AIDEV-NOTE: All converters accept scalars or numpy arrays whose last axis is
the channel axis, so the same code serves single colors and whole palettes.
Distance is CIE76 (plain Euclidean in Lab); CIE94/2000 are intentionally not
used so merge thresholds stay comparable with stored configurations.
"""

import re

import numpy as np

# D65 reference white, 0-100 scale
REF_WHITE = np.array([95.047, 100.000, 108.883])

# Linear sRGB -> XYZ (D65)
SRGB_TO_XYZ = np.array(
    [
        [0.4124564, 0.3575761, 0.1804375],
        [0.2126729, 0.7151522, 0.0721750],
        [0.0193339, 0.1191920, 0.9503041],
    ]
)

_LAB_EPSILON = 0.008856
_LAB_KAPPA = 7.787

_HEX_PATTERN = re.compile(r"^#?([a-f\d]{2})([a-f\d]{2})([a-f\d]{2})$", re.IGNORECASE)


def rgb_to_xyz(r, g, b) -> np.ndarray:
    """Convert 0-255 sRGB to XYZ scaled to 0-100. Last axis is (x, y, z)."""
    rgb = np.stack(np.broadcast_arrays(r, g, b), axis=-1).astype(np.float64) / 255.0
    linear = np.where(
        rgb > 0.04045,
        ((rgb + 0.055) / 1.055) ** 2.4,
        rgb / 12.92,
    )
    return linear @ SRGB_TO_XYZ.T * 100.0


def xyz_to_lab(x, y, z) -> np.ndarray:
    """Convert XYZ (0-100) to CIE L*a*b* using the D65 white point."""
    xyz = np.stack(np.broadcast_arrays(x, y, z), axis=-1).astype(np.float64)
    t = xyz / REF_WHITE
    f = np.where(t > _LAB_EPSILON, np.cbrt(t), _LAB_KAPPA * t + 16.0 / 116.0)
    fx, fy, fz = f[..., 0], f[..., 1], f[..., 2]

    lightness = 116.0 * fy - 16.0
    a = 500.0 * (fx - fy)
    b = 200.0 * (fy - fz)
    return np.stack([lightness, a, b], axis=-1)


def rgb_to_lab(r, g, b) -> np.ndarray:
    xyz = rgb_to_xyz(r, g, b)
    return xyz_to_lab(xyz[..., 0], xyz[..., 1], xyz[..., 2])


def rgb_array_to_lab(rgb: np.ndarray) -> np.ndarray:
    """Convert an ``(..., 3)`` array of 0-255 RGB values to Lab."""
    rgb = np.asarray(rgb)
    return rgb_to_lab(rgb[..., 0], rgb[..., 1], rgb[..., 2])


def delta_e(lab1, lab2):
    """CIE76 Delta E. Returns a float for single colors, an array otherwise."""
    diff = np.asarray(lab1, dtype=np.float64) - np.asarray(lab2, dtype=np.float64)
    distance = np.sqrt(np.sum(diff * diff, axis=-1))
    if np.ndim(distance) == 0:
        return float(distance)
    return distance


def pairwise_delta_e(lab: np.ndarray) -> np.ndarray:
    """Delta E between every pair of rows in an ``(N, 3)`` Lab array."""
    lab = np.asarray(lab, dtype=np.float64)
    return delta_e(lab[:, None, :], lab[None, :, :])


# --- Hex / HSL helpers ---


def hex_to_rgb(hex_color: str) -> "tuple[int, int, int] | None":
    """Parse ``#RRGGBB`` (``#`` optional). Returns None for malformed input."""
    if not isinstance(hex_color, str):
        return None
    match = _HEX_PATTERN.match(hex_color.strip())
    if not match:
        return None
    return tuple(int(part, 16) for part in match.groups())  # type: ignore[return-value]


def rgb_to_hex(r, g, b) -> str:
    """Format a color as upper-case ``#RRGGBB``, rounding and clamping channels."""
    channels = [min(255, max(0, int(round(float(c))))) for c in (r, g, b)]
    return "#{:02X}{:02X}{:02X}".format(*channels)


def rgb_to_hsl(r: int, g: int, b: int) -> "tuple[int, int, int]":
    """Convert 0-255 RGB to (hue degrees, saturation %, lightness %), rounded."""
    r, g, b = r / 255.0, g / 255.0, b / 255.0
    max_c = max(r, g, b)
    min_c = min(r, g, b)
    diff = max_c - min_c
    lightness = (max_c + min_c) / 2.0

    if diff == 0:
        hue = saturation = 0.0  # achromatic
    else:
        if lightness > 0.5:
            saturation = diff / (2.0 - max_c - min_c)
        else:
            saturation = diff / (max_c + min_c)

        if max_c == r:
            hue = (g - b) / diff + (6.0 if g < b else 0.0)
        elif max_c == g:
            hue = (b - r) / diff + 2.0
        else:
            hue = (r - g) / diff + 4.0
        hue /= 6.0

    return (round(hue * 360), round(saturation * 100), round(lightness * 100))
