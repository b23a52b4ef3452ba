import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest

from blobtrace.core.logger import BlobLogger, set_logger


@pytest.fixture(autouse=True)
def fresh_logger():
    logger = BlobLogger()
    set_logger(logger)
    return logger


def black_image(width: int, height: int) -> np.ndarray:
    """Fond noir (0), objets à 255."""
    return np.zeros((height, width), dtype=np.uint8)


@pytest.fixture
def square_image() -> np.ndarray:
    """Carré plein 3x3 en (1..3, 1..3) sur fond noir 5x5."""
    image = black_image(5, 5)
    image[1:4, 1:4] = 255
    return image


@pytest.fixture
def ring_image() -> np.ndarray:
    """Carré 3x3 percé d'un trou d'un pixel en (2, 2)."""
    image = black_image(5, 5)
    image[1:4, 1:4] = 255
    image[2, 2] = 0
    return image


@pytest.fixture
def nested_image() -> np.ndarray:
    """Fond blanc : un grand carré noir, quatre trous, un carré noir dans chaque trou."""
    image = np.full((40, 40), 255, dtype=np.uint8)
    image[2:38, 2:38] = 0
    for y0 in (5, 22):
        for x0 in (5, 22):
            image[y0:y0 + 12, x0:x0 + 12] = 255
            image[y0 + 3:y0 + 9, x0 + 3:x0 + 9] = 0
    return image


def disk_mask(size: int, radius: float) -> np.ndarray:
    c = (size - 1) / 2.0
    ys, xs = np.mgrid[0:size, 0:size]
    return (xs - c) ** 2 + (ys - c) ** 2 <= radius ** 2


@pytest.fixture
def disk_image() -> np.ndarray:
    """Disque de rayon 30 sur fond noir 71x71."""
    return np.where(disk_mask(71, 30), 255, 0).astype(np.uint8)
