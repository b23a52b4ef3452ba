import numpy as np
import pytest

from blobtrace.core.config import Background
from blobtrace.core.errors import InvalidRasterError
from blobtrace.core.models import Calibration
from blobtrace.perception.raster import (
    ArrayRaster,
    Raster,
    as_array,
    has_object_on_border,
    is_binary,
    pad_border,
    validate_raster,
)


class ListRaster:
    """Raster minimal sans numpy, pour vérifier le protocole."""

    def __init__(self, rows):
        self.rows = rows

    def width(self) -> int:
        return len(self.rows[0])

    def height(self) -> int:
        return len(self.rows)

    def get(self, x: int, y: int) -> int:
        return self.rows[y][x]

    def set(self, x: int, y: int, value: int) -> None:
        self.rows[y][x] = value

    def pixel_calibration(self) -> Calibration:
        return Calibration()


def test_array_raster_accessors() -> None:
    raster = ArrayRaster(np.zeros((3, 4), dtype=np.uint8), Calibration(2.0, 3.0))

    assert raster.width() == 4
    assert raster.height() == 3
    raster.set(3, 1, 255)
    assert raster.get(3, 1) == 255
    assert raster.to_array()[1, 3] == 255
    assert raster.pixel_calibration().pixel_area == 6.0
    assert isinstance(raster, Raster)

    copy = raster.copy()
    copy.set(0, 0, 255)
    assert raster.get(0, 0) == 0


def test_array_raster_rejects_wrong_formats() -> None:
    with pytest.raises(InvalidRasterError):
        ArrayRaster(np.zeros((3, 3), dtype=np.float32))
    with pytest.raises(InvalidRasterError):
        ArrayRaster(np.zeros((3, 3, 3), dtype=np.uint8))
    with pytest.raises(InvalidRasterError):
        ArrayRaster(np.zeros((3, 3), dtype=np.uint16))


def test_from_grid_validates_range() -> None:
    raster = ArrayRaster.from_grid([[0, 255], [255, 0]])
    assert raster.to_array().dtype == np.uint8

    with pytest.raises(InvalidRasterError):
        ArrayRaster.from_grid([[0, 256]])
    with pytest.raises(InvalidRasterError):
        ArrayRaster.from_grid([[0.5, 1.0]])
    with pytest.raises(InvalidRasterError):
        ArrayRaster.from_grid([0, 255])


def test_from_mask_follows_background_convention() -> None:
    mask = np.array([[True, False]])

    white = ArrayRaster.from_mask(mask, Background.WHITE).to_array()
    black = ArrayRaster.from_mask(mask, Background.BLACK).to_array()

    assert white.tolist() == [[0, 255]]
    assert black.tolist() == [[255, 0]]


def test_as_array_reads_protocol_objects() -> None:
    array = as_array(ListRaster([[0, 255, 0], [255, 255, 0]]))

    assert array.dtype == np.uint8
    assert array.shape == (2, 3)
    assert array[1, 1] == 255

    with pytest.raises(InvalidRasterError):
        as_array(ListRaster([[0, 300]]))


def test_validate_raster_binary_requirement() -> None:
    grey = ArrayRaster(np.array([[0, 128], [255, 0]], dtype=np.uint8))

    with pytest.raises(InvalidRasterError, match="binary"):
        validate_raster(grey)
    assert validate_raster(grey, require_binary=False).shape == (2, 2)
    assert is_binary(np.array([0, 255, 255], dtype=np.uint8))
    assert not is_binary(grey.to_array())


def test_border_detection_and_padding() -> None:
    image = np.zeros((4, 4), dtype=np.uint8)
    assert not has_object_on_border(image, 255)

    image[1, 1] = 255
    assert not has_object_on_border(image, 255)

    image[3, 2] = 255
    assert has_object_on_border(image, 255)

    padded, offset = pad_border(image, 0)
    assert offset == 1
    assert padded.shape == (6, 6)
    assert padded[4, 3] == 255
    assert not has_object_on_border(padded, 255)
