"""
Outils de visualisation pour le debug du traçage de contours.
"""

from __future__ import annotations

from typing import Iterable, Optional, Tuple

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.patches import Polygon as MPLPolygon

from blobtrace.perception.blob import Blob
from blobtrace.perception.render import DrawOption


class MatplotlibRenderer:
    """Renderer qui dessine les polygones d'un blob sur des axes matplotlib."""

    def __init__(self, ax: plt.Axes, alpha: float = 0.4, linewidth: float = 1.5):
        self.ax = ax
        self.alpha = alpha
        self.linewidth = linewidth

    def fill_polygon(self, points: np.ndarray, color) -> None:
        patch = MPLPolygon(np.asarray(points, dtype=float), closed=True, facecolor=color, edgecolor=color, alpha=self.alpha)
        self.ax.add_patch(patch)

    def draw_polygon(self, points: np.ndarray, color) -> None:
        patch = MPLPolygon(
            np.asarray(points, dtype=float), closed=True, facecolor="none", edgecolor=color, linewidth=self.linewidth
        )
        self.ax.add_patch(patch)

    def draw_label(self, position: Tuple[float, float], text: str, color) -> None:
        x, y = position
        self.ax.text(
            x,
            y,
            text,
            color=color,
            fontsize=9,
            fontweight="bold",
            ha="center",
            va="center",
            bbox=dict(boxstyle="round", facecolor="white", alpha=0.7),
        )


class BlobVisualizer:
    """Visualisation basique des rasters et des blobs tracés."""

    @staticmethod
    def plot_raster(image: np.ndarray, title: str = "Raster", figsize: Tuple[int, int] = (8, 8)):
        fig, ax = plt.subplots(figsize=figsize)
        ax.imshow(image, cmap="gray", interpolation="nearest", vmin=0, vmax=255)
        ax.set_title(title)
        if max(image.shape) <= 64:
            ax.set_xticks(np.arange(-0.5, image.shape[1], 1), minor=True)
            ax.set_yticks(np.arange(-0.5, image.shape[0], 1), minor=True)
            ax.grid(True, which="minor", color="gray", linewidth=0.5, alpha=0.3)
        plt.tight_layout()
        return fig, ax

    @staticmethod
    def plot_blobs(
        image: np.ndarray,
        blobs: Iterable[Blob],
        title: str = "Traced Blobs",
        figsize: Tuple[int, int] = (10, 10),
        options: DrawOption = DrawOption.HOLES | DrawOption.CONVEX_HULL | DrawOption.LABEL,
    ):
        """Raster en fond, chaque blob rempli, trous, enveloppe convexe et label en surimpression."""
        fig, ax = BlobVisualizer.plot_raster(image, title, figsize)
        renderer = MatplotlibRenderer(ax)
        colors = plt.get_cmap("tab10")

        for i, blob in enumerate(blobs):
            BlobVisualizer._add_blob_overlay(renderer, blob, colors(i % 10), options)

        return fig, ax

    @staticmethod
    def _add_blob_overlay(renderer: MatplotlibRenderer, blob: Blob, color, options: DrawOption):
        blob.draw(renderer, options, color=color, hole_color="white", hull_color="red", label_color=color)

    @staticmethod
    def plot_labels(labels: np.ndarray, title: str = "Label Image", figsize: Tuple[int, int] = (8, 8)):
        """Image d'étiquettes; le fond (0) est transparent."""
        fig, ax = plt.subplots(figsize=figsize)
        masked = np.ma.masked_where(labels <= 0, labels)
        ax.imshow(masked, cmap="tab20", interpolation="nearest")
        ax.set_title(title)
        plt.tight_layout()
        return fig, ax

    @staticmethod
    def save(fig, path, dpi: Optional[int] = 100) -> None:
        fig.savefig(path, dpi=dpi)
        plt.close(fig)

    @staticmethod
    def print_blob_info(blob: Blob) -> None:
        """Affiche des infos détaillées pour un blob."""
        box = blob.bounds
        print(f"\n{'='*60}")
        print(f"Blob #{blob.label}")
        print(f"{'='*60}")
        print(f"Contour points: {blob.outer_contour.npoints}")
        print(f"Holes: {blob.number_of_holes()}")
        print(f"Bounding box: ({box.min_x}, {box.min_y}) to ({box.max_x}, {box.max_y})")
        print(f"Dimensions: {box.width} x {box.height}")
        print(f"Area: {blob.enclosed_area():.2f}")
        print(f"Perimeter: {blob.perimeter():.2f}")
        print(f"Circularity: {blob.circularity():.3f}")
        print(f"Convexity: {blob.convexity():.3f}")
        print(f"Solidity: {blob.solidity():.3f}")


__all__ = ["MatplotlibRenderer", "BlobVisualizer"]
