"""Color quantization methods for reducing image color palettes.

AIDEV-NOTE: Both strategies work on the *unique* colors of an image weighted
by pixel count, not on raw pixels, which keeps clustering cost proportional to
color complexity rather than resolution. They share one contract:

    quantize(colors, k) -> (palette, assignments)

where ``palette`` has at most ``k`` entries and every assignment indexes into
it. Nearest-color lookup uses scikit-learn's ``pairwise_distances_argmin``.
"""

import numpy as np
from sklearn.metrics import pairwise_distances_argmin
from sklearn.utils import check_random_state

from ..errors import AlgorithmError, InputError
from ..models import MAX_KMEANS_ITERATIONS, QuantizationAlgorithm


def resolve_algorithm(algorithm: str) -> QuantizationAlgorithm:
    """Map an algorithm name to its enum member or raise AlgorithmError."""
    if isinstance(algorithm, QuantizationAlgorithm):
        return algorithm
    try:
        return QuantizationAlgorithm(algorithm)
    except ValueError:
        raise AlgorithmError(f"Unknown algorithm: {algorithm}") from None


def quantize_colors(
    colors,
    k: int,
    algorithm: str = "kmeans",
    weights=None,
    random_state=None,
) -> "tuple[list[tuple[int, int, int]], np.ndarray]":
    """Reduce a set of colors to at most ``k`` palette entries.

    Args:
        colors: ``(N, 3)`` array-like of 0-255 RGB values
        k: Maximum palette size (>= 1)
        algorithm: 'kmeans' or 'median-cut'
        weights: Optional per-color pixel counts (defaults to 1 each)
        random_state: Seed or RandomState for k-means++ initialization

    Returns:
        Tuple of (palette, assignments)

    Raises:
        AlgorithmError: If the algorithm name is not recognised
        InputError: If k is smaller than 1
    """
    method = resolve_algorithm(algorithm)
    if k < 1:
        raise InputError(f"maxColors must be at least 1, got {k}")

    colors = np.asarray(colors, dtype=np.float64).reshape(-1, 3)
    if weights is None:
        weights = np.ones(len(colors), dtype=np.float64)
    else:
        weights = np.asarray(weights, dtype=np.float64)

    if method is QuantizationAlgorithm.MEDIAN_CUT:
        return quantize_median_cut(colors, k, weights)
    return quantize_kmeans(colors, k, weights, random_state)


def identity_quantization(colors: np.ndarray) -> "tuple[list[tuple[int, int, int]], np.ndarray]":
    """Palette equal to the input colors, each color assigned to itself."""
    palette = [tuple(int(c) for c in color) for color in colors]
    return palette, np.arange(len(colors), dtype=np.int64)


# --- K-means ---


def quantize_kmeans(
    colors: np.ndarray,
    k: int,
    weights: np.ndarray,
    random_state=None,
) -> "tuple[list[tuple[int, int, int]], np.ndarray]":
    """Count-weighted k-means over unique colors with k-means++ seeding.

    AIDEV-NOTE: A centroid that ends a round without members keeps its
    previous value; there is no reseeding, so the palette can contain
    entries no color is assigned to.
    """
    if len(colors) <= k:
        return identity_quantization(colors)

    rng = check_random_state(random_state)
    centroids = init_centroids_kmeans_plus_plus(colors, k, rng)

    assignments = None
    for _ in range(MAX_KMEANS_ITERATIONS):
        labels = pairwise_distances_argmin(colors, centroids)

        # Converged once no color changes cluster
        if assignments is not None and np.array_equal(labels, assignments):
            break

        assignments = labels
        centroids = _update_centroids(colors, weights, assignments, centroids)

    palette = [tuple(int(c) for c in centroid) for centroid in centroids]
    return palette, assignments.astype(np.int64)


def init_centroids_kmeans_plus_plus(
    colors: np.ndarray, k: int, rng: np.random.RandomState
) -> np.ndarray:
    """Pick ``k`` initial centroids spread out by squared-distance sampling."""
    n = len(colors)
    first = colors[rng.randint(n)]
    centroids = [first]
    closest_sq = np.sum((colors - first) ** 2, axis=1)

    for _ in range(1, k):
        total = closest_sq.sum()
        if total > 0:
            index = rng.choice(n, p=closest_sq / total)
        else:
            index = rng.randint(n)
        centroids.append(colors[index])
        closest_sq = np.minimum(closest_sq, np.sum((colors - colors[index]) ** 2, axis=1))

    return np.array(centroids, dtype=np.float64)


def _update_centroids(
    colors: np.ndarray,
    weights: np.ndarray,
    assignments: np.ndarray,
    centroids: np.ndarray,
) -> np.ndarray:
    k = len(centroids)
    totals = np.bincount(assignments, weights=weights, minlength=k)
    sums = np.stack(
        [
            np.bincount(assignments, weights=colors[:, channel] * weights, minlength=k)
            for channel in range(3)
        ],
        axis=-1,
    )

    updated = centroids.copy()
    occupied = totals > 0
    updated[occupied] = np.rint(sums[occupied] / totals[occupied, None])
    return updated


# --- Median cut ---


def quantize_median_cut(
    colors: np.ndarray,
    max_colors: int,
    weights: np.ndarray,
) -> "tuple[list[tuple[int, int, int]], np.ndarray]":
    """Split the widest bucket at its median until ``max_colors`` buckets exist."""
    if len(colors) <= max_colors:
        return identity_quantization(colors)

    buckets = [np.arange(len(colors))]
    ranges = [_channel_ranges(colors)]

    while len(buckets) < max_colors:
        widest = [float(r.max()) for r in ranges]
        best = int(np.argmax(widest))  # first bucket wins ties
        if widest[best] == 0:
            break  # every bucket is a single color

        low, high = _split_bucket(colors, buckets[best], ranges[best])
        buckets[best : best + 1] = [low, high]
        ranges[best : best + 1] = [_channel_ranges(colors[low]), _channel_ranges(colors[high])]

    palette = [weighted_centroid(colors[bucket], weights[bucket]) for bucket in buckets]
    assignments = pairwise_distances_argmin(colors, np.array(palette, dtype=np.float64))
    return palette, assignments.astype(np.int64)


def _channel_ranges(colors: np.ndarray) -> np.ndarray:
    return colors.max(axis=0) - colors.min(axis=0)


def _split_bucket(
    colors: np.ndarray, bucket: np.ndarray, channel_range: np.ndarray
) -> "tuple[np.ndarray, np.ndarray]":
    r_range, g_range, b_range = channel_range
    channel = 0
    if g_range > r_range and g_range > b_range:
        channel = 1
    elif b_range > r_range and b_range > g_range:
        channel = 2

    ordered = bucket[np.argsort(colors[bucket, channel], kind="stable")]
    median = len(ordered) // 2
    return ordered[:median], ordered[median:]


def weighted_centroid(colors: np.ndarray, weights: np.ndarray) -> "tuple[int, int, int]":
    """Count-weighted mean color, rounded to integers."""
    mean = np.average(colors, axis=0, weights=weights)
    return tuple(int(c) for c in np.rint(mean))
