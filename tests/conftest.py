import numpy as np
import pytest
from PyQt6.QtCore import QCoreApplication

from polyhue.models import ImageData


def _build_image(runs, width=None):
    """Build an RGBA image from ``[((r, g, b, a), count), ...]`` runs in scan order."""
    pixels = []
    for rgba, count in runs:
        pixels.extend([rgba] * count)
    data = np.array(pixels, dtype=np.uint8).reshape(-1)
    total = len(pixels)
    width = width or total
    return ImageData(data, width, total // width)


@pytest.fixture
def make_image():
    return _build_image


@pytest.fixture
def random_image():
    rng = np.random.RandomState(7)
    data = rng.randint(0, 256, size=(24, 16, 4)).astype(np.uint8)
    # Quantize channels so colors repeat, and make roughly a quarter transparent
    data[..., :3] = data[..., :3] // 32 * 32
    data[..., 3] = np.where(rng.rand(24, 16) < 0.25, 0, 255)
    return ImageData(data.reshape(-1), 16, 24)


@pytest.fixture(scope="session")
def qt_app():
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app
