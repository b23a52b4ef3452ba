"""
Primitives géométriques pour le moteur de features.

Toutes les fonctions travaillent sur des tableaux (N, 2) de coordonnées
(x, y) entières ou sur des masques booléens indexés [y, x].
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
from matplotlib.path import Path as MplPath
from scipy import ndimage, stats
from scipy.spatial import ConvexHull, QhullError


# ============================================================================
# RASTERISATION
# ============================================================================

def polygon_interior(points: np.ndarray, shape: Tuple[int, int], origin: Tuple[int, int] = (0, 0)) -> np.ndarray:
    """
    Pixels dont le centre (coordonnée entière) est à l'intérieur du polygone.

    Les pixels situés exactement sur une arête sont ambigus; ils sont couverts
    par ``polygon_outline``.
    """
    height, width = shape
    mask = np.zeros(shape, dtype=bool)
    if len(points) < 3 or height == 0 or width == 0:
        return mask

    ox, oy = origin
    ys, xs = np.mgrid[0:height, 0:width]
    lattice = np.column_stack([xs.ravel() + ox, ys.ravel() + oy])
    path = MplPath(np.asarray(points, dtype=float))
    return path.contains_points(lattice).reshape(shape)


def segment_pixels(p0: Sequence[int], p1: Sequence[int]) -> np.ndarray:
    """Pixels d'un segment (DDA), extrémités incluses."""
    x0, y0 = p0
    x1, y1 = p1
    steps = int(max(abs(x1 - x0), abs(y1 - y0)))
    if steps == 0:
        return np.array([[x0, y0]], dtype=np.int64)
    t = np.linspace(0.0, 1.0, steps + 1)
    xs = np.rint(x0 + t * (x1 - x0)).astype(np.int64)
    ys = np.rint(y0 + t * (y1 - y0)).astype(np.int64)
    return np.column_stack([xs, ys])


def polygon_outline(
    points: np.ndarray,
    shape: Tuple[int, int],
    origin: Tuple[int, int] = (0, 0),
    closed: bool = True,
) -> np.ndarray:
    """Pixels des arêtes du polygone, dans un masque de forme ``shape``."""
    mask = np.zeros(shape, dtype=bool)
    points = np.asarray(points, dtype=np.int64)
    if len(points) == 0:
        return mask

    chunks = [points[:1]]
    pairs = list(zip(points[:-1], points[1:]))
    if closed and len(points) > 1:
        pairs.append((points[-1], points[0]))
    for p0, p1 in pairs:
        chunks.append(segment_pixels(p0, p1))
    pixels = np.vstack(chunks)

    ox, oy = origin
    xs = pixels[:, 0] - ox
    ys = pixels[:, 1] - oy
    inside = (xs >= 0) & (xs < shape[1]) & (ys >= 0) & (ys < shape[0])
    mask[ys[inside], xs[inside]] = True
    return mask


def fill_polygon(points: np.ndarray, shape: Tuple[int, int], origin: Tuple[int, int] = (0, 0)) -> np.ndarray:
    """Polygone rempli : intérieur plus contour."""
    return polygon_interior(points, shape, origin) | polygon_outline(points, shape, origin)


def point_in_polygon(points: np.ndarray, x: float, y: float) -> bool:
    """Test point-dans-polygone; les sommets du contour comptent comme intérieurs."""
    points = np.asarray(points)
    if ((points[:, 0] == x) & (points[:, 1] == y)).any():
        return True
    if len(points) < 3:
        return False
    return bool(MplPath(points.astype(float)).contains_point((x, y)))


# ============================================================================
# CENTROIDE ET ENVELOPPE CONVEXE
# ============================================================================

def polygon_centroid(points: np.ndarray) -> Optional[Tuple[float, float]]:
    """
    Centroïde d'un polygone par la formule de Green.

    Retourne None si l'aire signée est nulle (contour filiforme).
    """
    pts = np.asarray(points, dtype=float)
    if len(pts) > 1 and not np.array_equal(pts[0], pts[-1]):
        pts = np.vstack([pts, pts[:1]])
    x, y = pts[:, 0], pts[:, 1]
    cross = x[:-1] * y[1:] - x[1:] * y[:-1]
    area = 0.5 * cross.sum()
    if area == 0:
        return None
    cx = ((x[:-1] + x[1:]) * cross).sum() / (6 * area)
    cy = ((y[:-1] + y[1:]) * cross).sum() / (6 * area)
    return float(cx), float(cy)


def convex_hull(points: np.ndarray) -> Optional[np.ndarray]:
    """
    Sommets de l'enveloppe convexe (sens anti-horaire en repère x/y).

    Retourne None pour moins de 3 points distincts ou des points colinéaires.
    """
    unique = np.unique(np.asarray(points, dtype=np.int64), axis=0)
    if len(unique) < 3:
        return None
    try:
        hull = ConvexHull(unique.astype(float))
    except QhullError:
        return None
    return unique[hull.vertices]


def _hull_edge_frames(hull: np.ndarray):
    """Pour chaque arête de l'enveloppe : (u, v, projections sur u, sur v)."""
    pts = hull.astype(float)
    n = len(pts)
    for i in range(n):
        edge = pts[(i + 1) % n] - pts[i]
        length = math.hypot(edge[0], edge[1])
        if length == 0:
            continue
        u = edge / length
        v = np.array([-u[1], u[0]])
        yield u, v, pts @ u, pts @ v


def minimum_bounding_rectangle(points: np.ndarray) -> Optional[np.ndarray]:
    """
    Rectangle d'aire minimale (pieds à coulisse tournants).

    Retourne les 4 coins (4, 2) en flottants, ou None si l'ensemble de
    points est dégénéré.
    """
    hull = convex_hull(points)
    if hull is None:
        return None

    best_area = math.inf
    best = None
    for u, v, pu, pv in _hull_edge_frames(hull):
        area = (pu.max() - pu.min()) * (pv.max() - pv.min())
        if area < best_area:
            best_area = area
            best = (u, v, pu.min(), pu.max(), pv.min(), pv.max())

    if best is None:
        return None
    u, v, umin, umax, vmin, vmax = best
    return np.array([
        u * umin + v * vmin,
        u * umax + v * vmin,
        u * umax + v * vmax,
        u * umin + v * vmax,
    ])


def feret_diameters(points: np.ndarray, scale: Tuple[float, float] = (1.0, 1.0)) -> Tuple[float, float]:
    """
    Diamètres de Feret (max, min) des points, après mise à l'échelle.

    Le diamètre minimal est la plus petite largeur entre deux droites
    d'appui parallèles; il vaut 0 pour un ensemble colinéaire.
    """
    pts = np.unique(np.asarray(points, dtype=float), axis=0) * np.asarray(scale, dtype=float)
    if len(pts) < 2:
        return 0.0, 0.0
    candidates = pts[convex_hull_indices(pts)]
    diffs = candidates[:, None, :] - candidates[None, :, :]
    max_feret = float(np.sqrt((diffs ** 2).sum(axis=-1)).max())

    if len(candidates) < 3:
        return max_feret, 0.0
    min_feret = min((pv.max() - pv.min() for _, _, _, pv in _hull_edge_frames(candidates)), default=0.0)
    return max_feret, float(min_feret)


def convex_hull_indices(points: np.ndarray) -> np.ndarray:
    """Indices des sommets de l'enveloppe, ou de tous les points si dégénéré."""
    try:
        return ConvexHull(np.asarray(points, dtype=float)).vertices
    except (QhullError, ValueError):
        return np.arange(len(points))


# ============================================================================
# ELLIPSE, BOX COUNTING, DISTANCE
# ============================================================================

@dataclass
class EllipseFit:
    """Ellipse de même aire et mêmes moments d'ordre 2 qu'un masque."""

    major: float
    minor: float
    angle: float  # degrés, sens anti-horaire depuis +x, dans [0, 180)
    x_center: float
    y_center: float


def fit_ellipse(mask: np.ndarray, origin: Tuple[int, int] = (0, 0)) -> Optional[EllipseFit]:
    """Ajuste une ellipse sur les pixels d'un masque (None si masque vide)."""
    ys, xs = np.nonzero(mask)
    n = len(xs)
    if n == 0:
        return None

    xm = xs.mean()
    ym = ys.mean()
    dx = xs - xm
    dy = -(ys - ym)  # axe y vers le haut

    # 1/12 : variance d'un pixel carré uniforme
    u20 = (dx ** 2).mean() + 1.0 / 12.0
    u02 = (dy ** 2).mean() + 1.0 / 12.0
    u11 = (dx * dy).mean()

    half_sum = 0.5 * (u20 + u02)
    half_diff = 0.5 * math.sqrt((u20 - u02) ** 2 + 4.0 * u11 ** 2)
    major = 4.0 * math.sqrt(half_sum + half_diff)
    minor = 4.0 * math.sqrt(max(half_sum - half_diff, 1e-12))

    scale = math.sqrt(n / (math.pi / 4.0 * major * minor))
    major *= scale
    minor *= scale

    angle = math.degrees(0.5 * math.atan2(2.0 * u11, u20 - u02))
    if angle < 0:
        angle += 180.0
    if angle >= 180.0:
        angle = 0.0

    return EllipseFit(major, minor, angle, origin[0] + xm, origin[1] + ym)


def box_counts(mask: np.ndarray, sizes: Sequence[int]) -> np.ndarray:
    """Nombre de boîtes s x s contenant au moins un pixel du masque."""
    height, width = mask.shape
    counts = []
    for size in sizes:
        rows = -(-height // size)
        cols = -(-width // size)
        padded = np.zeros((rows * size, cols * size), dtype=bool)
        padded[:height, :width] = mask
        blocks = padded.reshape(rows, size, cols, size).any(axis=(1, 3))
        counts.append(int(blocks.sum()))
    return np.array(counts)


def fractal_box_dimension(mask: np.ndarray, sizes: Sequence[int]) -> Tuple[float, float]:
    """
    Dimension fractale par comptage de boîtes.

    Régression linéaire de log(count) sur log(1/size) : la pente est la
    dimension, le R² de l'ajustement mesure sa qualité. Les tailles plus
    grandes que le masque sont ignorées. Retourne (nan, nan) s'il reste
    moins de deux tailles ou si le masque est vide.
    """
    if not mask.any():
        return math.nan, math.nan
    extent = max(mask.shape)
    usable = sorted({int(s) for s in sizes if 0 < int(s) <= extent})
    if len(usable) < 2:
        return math.nan, math.nan

    counts = box_counts(mask, usable)
    fit = stats.linregress(np.log(1.0 / np.array(usable, dtype=float)), np.log(counts))
    return float(fit.slope), float(fit.rvalue ** 2)


def max_inscribed_diameter(mask: np.ndarray) -> float:
    """Diamètre (pixels) du plus grand cercle inscrit : 2 x max de la distance euclidienne."""
    if not mask.any():
        return 0.0
    padded = np.pad(mask, 1, mode="constant", constant_values=False)
    distances = ndimage.distance_transform_edt(padded)
    return float(2.0 * distances.max())


__all__ = [
    "polygon_interior",
    "segment_pixels",
    "polygon_outline",
    "fill_polygon",
    "point_in_polygon",
    "polygon_centroid",
    "convex_hull",
    "minimum_bounding_rectangle",
    "feret_diameters",
    "convex_hull_indices",
    "EllipseFit",
    "fit_ellipse",
    "box_counts",
    "fractal_box_dimension",
    "max_inscribed_diameter",
]
