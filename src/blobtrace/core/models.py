"""
Structures de base pour l'extraction de blobs.

Contient les types partagés (points, bounding boxes, calibration, contours)
utilisés par le traceur de contours, le moteur de features et le filtrage.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np


class Direction(Enum):
    """
    Voisinage 8-connexe dans l'ordre de parcours du traceur.

    L'axe y pointe vers le bas, l'ordre est donc horaire à l'écran::

        5 6 7
        4 p 0
        3 2 1
    """

    EAST = (1, 0)
    SOUTHEAST = (1, 1)
    SOUTH = (0, 1)
    SOUTHWEST = (-1, 1)
    WEST = (-1, 0)
    NORTHWEST = (-1, -1)
    NORTH = (0, -1)
    NORTHEAST = (1, -1)

    @property
    def index(self) -> int:
        """Position dans l'ordre de parcours (0 = est, 7 = nord-est)."""
        return _TRACE_ORDER.index(self)

    @property
    def freeman_code(self) -> int:
        """Code de Freeman (y vers le haut, 0 = est, sens anti-horaire)."""
        return FREEMAN_CODES[self.value]

    @classmethod
    def from_index(cls, index: int) -> "Direction":
        return _TRACE_ORDER[index % 8]

    @classmethod
    def offsets(cls) -> List[Tuple[int, int]]:
        """Retourne les 8 décalages (dx, dy) dans l'ordre de parcours."""
        return [d.value for d in _TRACE_ORDER]


_TRACE_ORDER: List[Direction] = list(Direction)

FREEMAN_CODES = {
    (1, 0): 0,
    (1, -1): 1,
    (0, -1): 2,
    (-1, -1): 3,
    (-1, 0): 4,
    (-1, 1): 5,
    (0, 1): 6,
    (1, 1): 7,
}


@dataclass(frozen=True)
class Point:
    """Point 2D en coordonnées pixel."""

    x: int
    y: int


@dataclass
class BoundingBox:
    """Boîte englobante axis-alignée (bornes incluses)."""

    min_x: int
    min_y: int
    max_x: int
    max_y: int

    @property
    def width(self) -> int:
        return self.max_x - self.min_x + 1

    @property
    def height(self) -> int:
        return self.max_y - self.min_y + 1


@dataclass(frozen=True)
class Calibration:
    """
    Conversion des coordonnées pixel en unités physiques.

    ``x_phys = (x - x_origin) * pixel_width``, idem en y.
    """

    pixel_width: float = 1.0
    pixel_height: float = 1.0
    x_origin: float = 0.0
    y_origin: float = 0.0

    def __post_init__(self) -> None:
        if self.pixel_width <= 0 or self.pixel_height <= 0:
            raise ValueError("pixel_width and pixel_height must be > 0")

    @property
    def pixel_area(self) -> float:
        return self.pixel_width * self.pixel_height

    @property
    def is_identity(self) -> bool:
        return self == Calibration()

    def get_x(self, x):
        return (x - self.x_origin) * self.pixel_width

    def get_y(self, y):
        return (y - self.y_origin) * self.pixel_height


class Contour:
    """
    Suite ordonnée et fermée de pixels, telle que tracée.

    Ce n'est pas un polygone simplifié : l'ordre des points compte pour le
    code de Freeman et donc pour le périmètre. Un contour tracé répète son
    point de départ en dernière position.
    """

    __slots__ = ("_points",)

    def __init__(self, points: Iterable[Sequence[int]]):
        array = np.array([tuple(p) for p in points], dtype=np.int64).reshape(-1, 2)
        if len(array) == 0:
            raise ValueError("Un contour contient au moins un point")
        array.setflags(write=False)
        self._points = array

    @property
    def points(self) -> np.ndarray:
        """Tableau (N, 2) en lecture seule des coordonnées (x, y)."""
        return self._points

    @property
    def npoints(self) -> int:
        return len(self._points)

    @property
    def xpoints(self) -> np.ndarray:
        return self._points[:, 0]

    @property
    def ypoints(self) -> np.ndarray:
        return self._points[:, 1]

    @property
    def is_closed(self) -> bool:
        return self.npoints > 1 and bool((self._points[0] == self._points[-1]).all())

    @property
    def bounds(self) -> BoundingBox:
        mins = self._points.min(axis=0)
        maxs = self._points.max(axis=0)
        return BoundingBox(int(mins[0]), int(mins[1]), int(maxs[0]), int(maxs[1]))

    def __len__(self) -> int:
        return self.npoints

    def __iter__(self) -> Iterator[Point]:
        for x, y in self._points.tolist():
            yield Point(x, y)

    def __getitem__(self, index: int) -> Point:
        x, y = self._points[index].tolist()
        return Point(x, y)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Contour):
            return NotImplemented
        return self._points.shape == other._points.shape and bool((self._points == other._points).all())

    def __hash__(self) -> int:
        return hash(self._points.tobytes())

    def __repr__(self) -> str:
        return f"Contour(npoints={self.npoints}, bounds={self.bounds})"

    def to_list(self) -> List[Tuple[int, int]]:
        return [tuple(p) for p in self._points.tolist()]

    def translate(self, dx: int, dy: int) -> "Contour":
        """Retourne une copie décalée de (dx, dy)."""
        if dx == 0 and dy == 0:
            return self
        return Contour(self._points + np.array([dx, dy], dtype=np.int64))

    def chain_code(self) -> List[int]:
        """
        Code de Freeman à 8 directions entre points successifs.

        Les pas nuls (point répété) sont ignorés.
        """
        steps = np.diff(self._points, axis=0)
        codes: List[int] = []
        for dx, dy in steps.tolist():
            if dx == 0 and dy == 0:
                continue
            code = FREEMAN_CODES.get((dx, dy))
            if code is None:
                raise ValueError(f"Non 8-connected step in contour: ({dx}, {dy})")
            codes.append(code)
        return codes

    def polyline_length(self, calibration: Optional[Calibration] = None, closed: bool = True) -> float:
        """Longueur de la polyligne (fermée par défaut), en unités calibrées."""
        points = self._points.astype(float)
        if closed and self.npoints > 1:
            points = np.vstack([points, points[:1]])
        steps = np.diff(points, axis=0)
        if calibration is not None:
            steps = steps * np.array([calibration.pixel_width, calibration.pixel_height])
        return float(np.hypot(steps[:, 0], steps[:, 1]).sum())


__all__ = [
    "Direction",
    "FREEMAN_CODES",
    "Point",
    "BoundingBox",
    "Calibration",
    "Contour",
]
