"""
Rendu des blobs : interface Renderer et rasterisation sur tableau numpy.

Le noyau n'a besoin que de ``fill_polygon`` / ``draw_polygon``; l'affichage
à l'écran (matplotlib) est dans ``visualize``.
"""

from __future__ import annotations

from enum import Flag
from typing import TYPE_CHECKING, Iterable, Protocol, Tuple, runtime_checkable

import numpy as np

from blobtrace.perception.geometry import polygon_interior, polygon_outline

if TYPE_CHECKING:
    from blobtrace.perception.blob import Blob


class DrawOption(Flag):
    """Options de dessin combinables avec ``|``."""

    NONE = 0
    HOLES = 1
    CONVEX_HULL = 2
    LABEL = 4


@runtime_checkable
class Renderer(Protocol):
    """Capacité de dessin consommée par ``Blob.draw``."""

    def fill_polygon(self, points: np.ndarray, color) -> None: ...

    def draw_polygon(self, points: np.ndarray, color) -> None: ...

    def draw_label(self, position: Tuple[float, float], text: str, color) -> None: ...


class ArrayRenderer:
    """
    Rasterise des polygones dans un tableau numpy.

    ``offset`` est ajouté aux coordonnées avant le dessin, ce qui permet de
    dessiner un blob dans un canevas limité à sa boîte englobante.
    """

    def __init__(self, canvas: np.ndarray, offset: Tuple[int, int] = (0, 0)):
        self.canvas = canvas
        self.offset = offset

    @classmethod
    def blank(cls, width: int, height: int, fill=0, dtype=np.int32, offset: Tuple[int, int] = (0, 0)) -> "ArrayRenderer":
        return cls(np.full((height, width), fill, dtype=dtype), offset)

    def _local(self, points: np.ndarray) -> np.ndarray:
        return np.asarray(points, dtype=np.int64) + np.asarray(self.offset, dtype=np.int64)

    def _window(self, points: np.ndarray):
        """Fenêtre du canevas couverte par les points (None si hors canevas)."""
        height, width = self.canvas.shape
        x0 = max(int(points[:, 0].min()), 0)
        y0 = max(int(points[:, 1].min()), 0)
        x1 = min(int(points[:, 0].max()), width - 1)
        y1 = min(int(points[:, 1].max()), height - 1)
        if x0 > x1 or y0 > y1:
            return None
        return x0, y0, x1, y1

    def fill_polygon(self, points: np.ndarray, color) -> None:
        """Remplit l'intérieur du polygone et son contour."""
        points = self._local(points)
        window = self._window(points)
        if window is None:
            return
        x0, y0, x1, y1 = window
        shape = (y1 - y0 + 1, x1 - x0 + 1)
        mask = polygon_interior(points, shape, (x0, y0)) | polygon_outline(points, shape, (x0, y0))
        self.canvas[y0:y1 + 1, x0:x1 + 1][mask] = color

    def draw_polygon(self, points: np.ndarray, color) -> None:
        """Dessine le contour fermé du polygone."""
        points = self._local(points)
        window = self._window(points)
        if window is None:
            return
        x0, y0, x1, y1 = window
        shape = (y1 - y0 + 1, x1 - x0 + 1)
        mask = polygon_outline(points, shape, (x0, y0))
        self.canvas[y0:y1 + 1, x0:x1 + 1][mask] = color

    def draw_label(self, position: Tuple[float, float], text: str, color) -> None:
        # pas de texte sur un canevas numérique
        return None


def render_label_image(blobs: Iterable["Blob"], width: int, height: int) -> np.ndarray:
    """Image d'étiquettes (int32) : chaque blob rempli avec son label, trous à 0."""
    renderer = ArrayRenderer.blank(width, height, fill=0, dtype=np.int32)
    for blob in blobs:
        blob.draw(renderer, DrawOption.HOLES, color=blob.label, hole_color=0)
    return renderer.canvas


__all__ = ["DrawOption", "Renderer", "ArrayRenderer", "render_label_image"]
