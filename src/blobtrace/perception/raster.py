"""
Accès raster pour le traçage de contours.

Le noyau ne charge ni ne décode d'images : il consomme un objet ``Raster``
(largeur, hauteur, get/set pixel, calibration). ``ArrayRaster`` adapte un
tableau numpy 2D ``uint8``.
"""

from __future__ import annotations

from typing import Optional, Protocol, Tuple, runtime_checkable

import numpy as np

from blobtrace.core.config import Background
from blobtrace.core.errors import InvalidRasterError
from blobtrace.core.models import Calibration

BINARY_VALUES = (0, 255)


@runtime_checkable
class Raster(Protocol):
    """Interface minimale d'une image 8 bits mono-canal."""

    def width(self) -> int: ...

    def height(self) -> int: ...

    def get(self, x: int, y: int) -> int: ...

    def set(self, x: int, y: int, value: int) -> None: ...

    def pixel_calibration(self) -> Calibration: ...


class ArrayRaster:
    """Raster adossé à un tableau numpy (lignes = y, colonnes = x)."""

    def __init__(self, data: np.ndarray, calibration: Optional[Calibration] = None):
        array = np.asarray(data)
        if array.ndim != 2:
            raise InvalidRasterError(
                f"Wrong image format: expected a single-channel 2D image, got shape {array.shape}"
            )
        if array.dtype != np.uint8:
            raise InvalidRasterError(
                f"Wrong image format: expected 8-bit pixels (uint8), got {array.dtype}"
            )
        self._data = array
        self._calibration = calibration or Calibration()

    @classmethod
    def from_grid(cls, grid, calibration: Optional[Calibration] = None) -> "ArrayRaster":
        """Construit un raster depuis une liste de listes d'entiers 0..255."""
        array = np.asarray(grid)
        if array.ndim != 2:
            raise InvalidRasterError(f"Wrong image format: expected a 2D grid, got shape {array.shape}")
        if array.size and (not np.issubdtype(array.dtype, np.integer) or array.min() < 0 or array.max() > 255):
            raise InvalidRasterError("Wrong image format: grid values must be integers in 0..255")
        return cls(array.astype(np.uint8), calibration)

    @classmethod
    def from_mask(
        cls,
        mask: np.ndarray,
        background: Background = Background.WHITE,
        calibration: Optional[Calibration] = None,
    ) -> "ArrayRaster":
        """Convertit un masque booléen (True = objet) selon la convention donnée."""
        mask = np.asarray(mask, dtype=bool)
        data = np.full(mask.shape, background.background_value, dtype=np.uint8)
        data[mask] = background.object_value
        return cls(data, calibration)

    def width(self) -> int:
        return int(self._data.shape[1])

    def height(self) -> int:
        return int(self._data.shape[0])

    def get(self, x: int, y: int) -> int:
        return int(self._data[y, x])

    def set(self, x: int, y: int, value: int) -> None:
        self._data[y, x] = value

    def pixel_calibration(self) -> Calibration:
        return self._calibration

    def set_calibration(self, calibration: Calibration) -> None:
        self._calibration = calibration

    def to_array(self) -> np.ndarray:
        return self._data

    def copy(self) -> "ArrayRaster":
        return ArrayRaster(self._data.copy(), self._calibration)


def as_array(raster: Raster) -> np.ndarray:
    """Retourne les pixels d'un raster sous forme de tableau ``uint8``."""
    if isinstance(raster, ArrayRaster):
        return raster.to_array()
    to_array = getattr(raster, "to_array", None)
    if callable(to_array):
        array = np.asarray(to_array())
    else:
        array = np.array(
            [[raster.get(x, y) for x in range(raster.width())] for y in range(raster.height())]
        )
    if array.ndim != 2:
        raise InvalidRasterError(f"Wrong image format: expected a single-channel image, got shape {array.shape}")
    if array.dtype != np.uint8:
        if array.size and (array.min() < 0 or array.max() > 255):
            raise InvalidRasterError("Wrong image format: only 8-bit images are supported")
        array = array.astype(np.uint8)
    return array


def is_binary(array: np.ndarray) -> bool:
    """Vrai si tous les pixels valent 0 ou 255."""
    return bool(np.isin(array, BINARY_VALUES).all())


def validate_raster(raster: Raster, require_binary: bool = True) -> np.ndarray:
    """
    Vérifie le format avant tout traçage et retourne les pixels.

    Raises:
        InvalidRasterError: image non 8 bits, multi-canal, ou non binaire
            alors qu'une image binaire est requise.
    """
    array = as_array(raster)
    if require_binary and not is_binary(array):
        raise InvalidRasterError(
            "Wrong image format: only 8-bit, single-channel binary images (0/255) are supported"
        )
    return array


def has_object_on_border(array: np.ndarray, object_value: int) -> bool:
    """Vrai si un pixel objet touche la première/dernière ligne ou colonne."""
    if array.size == 0:
        return False
    return bool(
        (array[0, :] == object_value).any()
        or (array[-1, :] == object_value).any()
        or (array[:, 0] == object_value).any()
        or (array[:, -1] == object_value).any()
    )


def pad_border(array: np.ndarray, background_value: int) -> Tuple[np.ndarray, int]:
    """Ajoute une bordure de fond d'un pixel; retourne (image, décalage)."""
    return np.pad(array, 1, mode="constant", constant_values=background_value), 1


__all__ = [
    "Raster",
    "ArrayRaster",
    "as_array",
    "is_binary",
    "validate_raster",
    "has_object_on_border",
    "pad_border",
]
