"""
Blob : une composante connexe et son moteur de features.

Toutes les features sont des fonctions pures du contour externe, des
contours internes et de la calibration. Elles sont calculées au premier
accès puis mémorisées dans le blob.
"""

from __future__ import annotations

import functools
import math
import threading
from typing import TYPE_CHECKING, Any, Callable, Dict, Hashable, List, Optional, Sequence, Tuple, Union

import numpy as np

from blobtrace.core.config import TracerConfig
from blobtrace.core.models import BoundingBox, Calibration, Contour
from blobtrace.perception import geometry
from blobtrace.perception.render import DrawOption, Renderer

if TYPE_CHECKING:
    from blobtrace.perception.features import FeatureRegistry

_MISSING = object()
SQRT2 = math.sqrt(2.0)


def _memoized(method: Callable[["Blob"], Any]) -> Callable[["Blob"], Any]:
    """Mémorise une feature sans paramètre sous le nom de la méthode."""
    key = method.__name__

    @functools.wraps(method)
    def wrapper(self: "Blob"):
        return self.get_or_compute(key, lambda: method(self))

    return wrapper


def _check_order(p, q) -> None:
    for value in (p, q):
        if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value < 0:
            raise ValueError(f"Moment orders must be non-negative integers, got ({p!r}, {q!r})")


class Blob:
    """
    Composante connexe : un contour externe, des trous, un label.

    Le label vaut -1 pour les blobs synthétiques (par ex. l'enveloppe
    convexe rasterisée pour calculer son aire).
    """

    def __init__(
        self,
        outer_contour: Union[Contour, Sequence[Sequence[int]]],
        label: int,
        calibration: Optional[Calibration] = None,
        raster_size: Optional[Tuple[int, int]] = None,
        registry: Optional["FeatureRegistry"] = None,
        config: Optional[TracerConfig] = None,
    ):
        if not isinstance(outer_contour, Contour):
            outer_contour = Contour(outer_contour)
        self._outer = outer_contour
        self._inner: List[Contour] = []
        self._label = label
        self._calibration = calibration or Calibration()
        self._raster_size = raster_size
        self._registry = registry
        self._config = config or TracerConfig()

        self._cache: Dict[Hashable, Any] = {}
        self._cache_lock = threading.Lock()
        self._key_locks: Dict[Hashable, threading.Lock] = {}

    # ------------------------------------------------------------------
    # Accesseurs
    # ------------------------------------------------------------------

    @property
    def label(self) -> int:
        return self._label

    @property
    def outer_contour(self) -> Contour:
        return self._outer

    @property
    def inner_contours(self) -> Tuple[Contour, ...]:
        return tuple(self._inner)

    @property
    def calibration(self) -> Calibration:
        return self._calibration

    @property
    def raster_size(self) -> Optional[Tuple[int, int]]:
        return self._raster_size

    @property
    def bounds(self) -> BoundingBox:
        return self._outer.bounds

    @property
    def registry(self) -> "FeatureRegistry":
        if self._registry is not None:
            return self._registry
        from blobtrace.perception.features import default_registry

        return default_registry()

    def _add_inner_contour(self, contour: Contour) -> None:
        with self._cache_lock:
            self._inner.append(contour)
            self._cache.clear()

    def __repr__(self) -> str:
        return (
            f"Blob(label={self._label}, points={self._outer.npoints}, "
            f"holes={len(self._inner)}, bounds={self.bounds})"
        )

    # ------------------------------------------------------------------
    # Mémorisation
    # ------------------------------------------------------------------

    def get_or_compute(self, key: Hashable, compute: Callable[[], Any]) -> Any:
        """
        Retourne la valeur mémorisée sous ``key`` ou la calcule.

        Un verrou par clé garantit qu'une feature demandée simultanément par
        plusieurs threads n'est calculée qu'une fois.
        """
        value = self._cache.get(key, _MISSING)
        if value is not _MISSING:
            return value
        with self._cache_lock:
            key_lock = self._key_locks.setdefault(key, threading.Lock())
        with key_lock:
            value = self._cache.get(key, _MISSING)
            if value is _MISSING:
                value = compute()
                self._cache[key] = value
        return value

    def cached_feature(self, key: Hashable) -> Optional[Any]:
        """Valeur déjà calculée, ou None si la feature n'a pas encore été demandée."""
        return self._cache.get(key)

    # ------------------------------------------------------------------
    # Masques
    # ------------------------------------------------------------------

    def _frame(self) -> Tuple[Tuple[int, int], Tuple[int, int]]:
        """(origine, forme) du repère local limité à la boîte englobante."""
        box = self.bounds
        return (box.min_x, box.min_y), (box.height, box.width)

    @_memoized
    def filled_outer_mask(self) -> np.ndarray:
        """Contour externe rempli, trous compris, dans le repère de la boîte englobante."""
        origin, shape = self._frame()
        mask = geometry.fill_polygon(self._outer.points, shape, origin)
        mask.setflags(write=False)
        return mask

    @_memoized
    def filled_mask(self) -> np.ndarray:
        """Pixels de la composante : contour externe rempli moins l'intérieur des trous."""
        origin, shape = self._frame()
        mask = self.filled_outer_mask().copy()
        for hole in self._inner:
            interior = geometry.polygon_interior(hole.points, shape, origin)
            mask &= ~(interior & ~geometry.polygon_outline(hole.points, shape, origin))
        mask.setflags(write=False)
        return mask

    @_memoized
    def contour_mask(self) -> np.ndarray:
        """Pixels de tous les contours (externe et trous)."""
        origin, shape = self._frame()
        mask = geometry.polygon_outline(self._outer.points, shape, origin)
        for hole in self._inner:
            mask |= geometry.polygon_outline(hole.points, shape, origin)
        mask.setflags(write=False)
        return mask

    def contains(self, x: float, y: float) -> bool:
        """Vrai si le point est dans le contour externe (sommets compris)."""
        box = self.bounds
        if not (box.min_x <= x <= box.max_x and box.min_y <= y <= box.max_y):
            return False
        return geometry.point_in_polygon(self._outer.points, x, y)

    def is_on_edge(self, width: Optional[int] = None, height: Optional[int] = None) -> bool:
        """Vrai si un point du contour externe touche le bord de l'image source."""
        if width is None or height is None:
            if self._raster_size is None:
                raise ValueError("Raster size unknown: pass width and height explicitly")
            width, height = self._raster_size
        xs = self._outer.xpoints
        ys = self._outer.ypoints
        return bool((xs == 0).any() or (ys == 0).any() or (xs == width - 1).any() or (ys == height - 1).any())

    # ------------------------------------------------------------------
    # Features de contour
    # ------------------------------------------------------------------

    def chain_code(self) -> List[int]:
        """Code de Freeman du contour externe."""
        return list(self.get_or_compute("chain_code", self._outer.chain_code))

    @_memoized
    def perimeter(self) -> float:
        """
        Périmètre pondéré par le code de Freeman (0.948 par pas axial, 1.340
        par pas diagonal). Un contour d'un seul point a un périmètre de 1.
        """
        if self._outer.npoints == 1:
            return 1.0
        points = self._outer.points
        if not self._outer.is_closed:
            points = np.vstack([points, points[:1]])
        steps = np.abs(np.diff(points, axis=0))
        diagonal = np.minimum(steps[:, 0], steps[:, 1])
        horizontal = steps[:, 0] - diagonal
        vertical = steps[:, 1] - diagonal

        cal = self._calibration
        axis_length = horizontal.sum() * cal.pixel_width + vertical.sum() * cal.pixel_height
        diagonal_unit = math.hypot(cal.pixel_width, cal.pixel_height) / SQRT2
        return float(
            self._config.axis_step_weight * axis_length
            + self._config.diagonal_step_weight * diagonal.sum() * diagonal_unit
        )

    @_memoized
    def enclosed_area(self) -> float:
        return float(self.filled_mask().sum()) * self._calibration.pixel_area

    @_memoized
    def _pixel_centroid(self) -> Tuple[float, float]:
        if self.filled_outer_mask().sum() == 1:
            point = self._outer[0]
            return float(point.x), float(point.y)
        centroid = geometry.polygon_centroid(self._outer.points)
        if centroid is None:
            mean = self._outer.points.mean(axis=0)
            return float(mean[0]), float(mean[1])
        return centroid

    @_memoized
    def center_of_gravity(self) -> Tuple[float, float]:
        """Centroïde du polygone externe (formule de Green), en unités calibrées."""
        x, y = self._pixel_centroid()
        return float(self._calibration.get_x(x)), float(self._calibration.get_y(y))

    @_memoized
    def number_of_holes(self) -> int:
        return len(self._inner)

    # ------------------------------------------------------------------
    # Moments
    # ------------------------------------------------------------------

    def _calibrated_pixels(self) -> Tuple[np.ndarray, np.ndarray]:
        (ox, oy), _ = self._frame()
        ys, xs = np.nonzero(self.filled_outer_mask())
        return self._calibration.get_x(xs + ox).astype(float), self._calibration.get_y(ys + oy).astype(float)

    @_memoized
    def _moment_table(self) -> np.ndarray:
        xs, ys = self._calibrated_pixels()
        table = np.array([[float(np.sum(xs ** p * ys ** q)) for q in range(3)] for p in range(3)])
        table.setflags(write=False)
        return table

    def moment(self, p: int, q: int) -> float:
        """Moment géométrique m_pq sur le masque externe rempli."""
        _check_order(p, q)
        if p <= 2 and q <= 2:
            return float(self._moment_table()[p, q])

        def compute() -> float:
            xs, ys = self._calibrated_pixels()
            return float(np.sum(xs ** p * ys ** q))

        return self.get_or_compute(("moment", int(p), int(q)), compute)

    def central_moment(self, p: int, q: int) -> float:
        """Moment centré mu_pq; formes closes jusqu'à l'ordre 2."""
        _check_order(p, q)
        m00 = self.moment(0, 0)
        if (p, q) == (0, 0):
            return m00
        if (p, q) in ((0, 1), (1, 0)):
            return 0.0
        xc = self.moment(1, 0) / m00
        yc = self.moment(0, 1) / m00
        if (p, q) == (1, 1):
            return self.moment(1, 1) - yc * self.moment(1, 0)
        if (p, q) == (2, 0):
            return self.moment(2, 0) - xc * self.moment(1, 0)
        if (p, q) == (0, 2):
            return self.moment(0, 2) - yc * self.moment(0, 1)

        def compute() -> float:
            xs, ys = self._calibrated_pixels()
            return float(np.sum((xs - xc) ** p * (ys - yc) ** q))

        return self.get_or_compute(("central_moment", int(p), int(q)), compute)

    @_memoized
    def _eigenvalues(self) -> Tuple[float, float]:
        c00 = self.central_moment(0, 0)
        c20 = self.central_moment(2, 0) / c00
        c02 = self.central_moment(0, 2) / c00
        c11 = self.central_moment(1, 1) / c00
        mean = 0.5 * (c20 + c02)
        spread = 0.5 * math.sqrt(4.0 * c11 ** 2 + (c20 - c02) ** 2)
        return mean + spread, mean - spread

    @_memoized
    def eigenvalue_major_axis(self) -> float:
        return self._eigenvalues()[0]

    @_memoized
    def eigenvalue_minor_axis(self) -> float:
        return self._eigenvalues()[1]

    # ------------------------------------------------------------------
    # Ellipse
    # ------------------------------------------------------------------

    @_memoized
    def _ellipse(self) -> geometry.EllipseFit:
        origin, _ = self._frame()
        return geometry.fit_ellipse(self.filled_outer_mask(), origin)

    @_memoized
    def orientation_major_axis(self) -> float:
        """Angle du grand axe de l'ellipse ajustée, en degrés depuis +x (sens anti-horaire)."""
        angle = self._ellipse().angle
        if abs(angle - 180.0) < 0.01:
            angle = 0.0
        return float(angle)

    @_memoized
    def orientation_minor_axis(self) -> float:
        return self.orientation_major_axis() - 90.0

    @_memoized
    def elongation(self) -> float:
        ellipse = self._ellipse()
        return float(math.sqrt(max(0.0, 1.0 - ellipse.minor / ellipse.major)))

    # ------------------------------------------------------------------
    # Enveloppe convexe
    # ------------------------------------------------------------------

    @_memoized
    def convex_hull(self) -> Contour:
        """Enveloppe convexe du contour externe; le contour lui-même si elle est dégénérée."""
        hull = geometry.convex_hull(self._outer.points)
        if hull is None:
            return self._outer
        return Contour(hull)

    @_memoized
    def perimeter_convex_hull(self) -> float:
        return self.convex_hull().polyline_length(self._calibration, closed=True)

    @_memoized
    def area_convex_hull(self) -> float:
        hull_blob = Blob(self.convex_hull(), -1, self._calibration, config=self._config)
        return hull_blob.enclosed_area()

    @_memoized
    def convexity(self) -> float:
        return min(1.0, self.perimeter_convex_hull() / self.perimeter())

    @_memoized
    def solidity(self) -> float:
        return min(1.0, self.enclosed_area() / self.area_convex_hull())

    @_memoized
    def circularity(self) -> float:
        perimeter = self.perimeter()
        return perimeter * perimeter / self.enclosed_area()

    @_memoized
    def thinness_ratio(self) -> float:
        return min(1.0, 4.0 * math.pi / self.circularity())

    @_memoized
    def area_to_perimeter_ratio(self) -> float:
        return self.enclosed_area() / self.perimeter()

    @_memoized
    def contour_temperature(self) -> float:
        perimeter = self.perimeter()
        hull_perimeter = self.perimeter_convex_hull()
        if perimeter == hull_perimeter:
            return 0.0
        return 1.0 / math.log2(2.0 * perimeter / abs(perimeter - hull_perimeter))

    # ------------------------------------------------------------------
    # Rectangle englobant minimal et diamètres
    # ------------------------------------------------------------------

    @_memoized
    def minimum_bounding_rectangle(self) -> Optional[np.ndarray]:
        """Les 4 coins (pixels) du rectangle d'aire minimale, ou None."""
        return geometry.minimum_bounding_rectangle(self._outer.points)

    @_memoized
    def _mbr_sides(self) -> Tuple[float, float]:
        corners = self.minimum_bounding_rectangle()
        if corners is None:
            return math.nan, math.nan
        scale = np.array([self._calibration.pixel_width, self._calibration.pixel_height])
        first = float(np.hypot(*((corners[1] - corners[0]) * scale)))
        second = float(np.hypot(*((corners[3] - corners[0]) * scale)))
        return max(first, second), min(first, second)

    @_memoized
    def long_side_mbr(self) -> float:
        return self._mbr_sides()[0]

    @_memoized
    def short_side_mbr(self) -> float:
        return self._mbr_sides()[1]

    @_memoized
    def aspect_ratio(self) -> float:
        long_side, short_side = self._mbr_sides()
        if not short_side:
            return math.nan
        return long_side / short_side

    @_memoized
    def _feret(self) -> Tuple[float, float]:
        scale = (self._calibration.pixel_width, self._calibration.pixel_height)
        return geometry.feret_diameters(self._outer.points, scale)

    @_memoized
    def feret_diameter(self) -> float:
        return self._feret()[0]

    @_memoized
    def min_feret_diameter(self) -> float:
        return self._feret()[1]

    @_memoized
    def diameter_maximum_inscribed_circle(self) -> float:
        return geometry.max_inscribed_diameter(self.filled_mask()) * self._calibration.pixel_width

    # ------------------------------------------------------------------
    # Dimension fractale
    # ------------------------------------------------------------------

    def _fractal(self, box_sizes: Sequence[int]) -> Tuple[float, float]:
        sizes = tuple(int(s) for s in box_sizes) or self._config.box_sizes
        return self.get_or_compute(
            ("fractal", sizes),
            lambda: geometry.fractal_box_dimension(self.contour_mask(), sizes),
        )

    def fractal_box_dimension(self, *box_sizes: int) -> float:
        """Dimension fractale des contours par comptage de boîtes."""
        return self._fractal(box_sizes)[0]

    def fractal_dimension_goodness(self, *box_sizes: int) -> float:
        """R² de la régression utilisée par ``fractal_box_dimension``."""
        return self._fractal(box_sizes)[1]

    # ------------------------------------------------------------------
    # Dispatch par nom
    # ------------------------------------------------------------------

    def evaluate_feature(self, name: str, *params) -> float:
        """Évalue une feature (intégrée puis personnalisée) par son nom."""
        return self.registry.evaluate(self, name, params)

    def evaluate_custom_feature(self, name: str, *params) -> float:
        """Évalue uniquement une feature personnalisée enregistrée."""
        return self.registry.evaluate_custom(self, name, params)

    # ------------------------------------------------------------------
    # Dessin
    # ------------------------------------------------------------------

    def draw(
        self,
        renderer: Renderer,
        options: DrawOption = DrawOption.HOLES,
        color: Any = 1,
        hole_color: Any = 0,
        hull_color: Any = None,
        label_color: Any = None,
    ) -> None:
        """
        Dessine le blob : contour externe rempli, puis trous, enveloppe
        convexe et label selon ``options``.
        """
        renderer.fill_polygon(self._outer.points, color)
        if DrawOption.HOLES in options:
            for hole in self._inner:
                renderer.fill_polygon(hole.points, hole_color)
                renderer.draw_polygon(hole.points, color)
        if DrawOption.CONVEX_HULL in options:
            renderer.draw_polygon(self.convex_hull().points, color if hull_color is None else hull_color)
        if DrawOption.LABEL in options:
            renderer.draw_label(self._pixel_centroid(), str(self._label), color if label_color is None else label_color)


__all__ = ["Blob"]
