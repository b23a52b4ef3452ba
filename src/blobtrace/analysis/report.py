"""
report.py - Feature tables for traced blobs
===========================================
Builds pandas DataFrames of blob features and summary statistics,
for export (CSV) and quick inspection.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Sequence

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

from blobtrace.core.logger import BlobLogger, LogComponent, get_logger

if TYPE_CHECKING:
    from blobtrace.perception.blob import Blob
    from blobtrace.perception.features import FeatureRegistry


DEFAULT_FEATURES: List[str] = [
    "enclosed_area",
    "perimeter",
    "circularity",
    "thinness_ratio",
    "convexity",
    "solidity",
    "elongation",
    "orientation_major_axis",
    "aspect_ratio",
    "feret_diameter",
    "number_of_holes",
]


class FeatureTable:
    """
    Tabulates features for a collection of blobs.

    Usage:
        table = FeatureTable(blob_set, ["perimeter", "enclosed_area"])
        df = table.to_dataframe()
        print(table.summary())
    """

    def __init__(
        self,
        blobs: Iterable["Blob"],
        features: Optional[Sequence[str]] = None,
        registry: Optional["FeatureRegistry"] = None,
        logger: Optional[BlobLogger] = None,
    ):
        self.blobs = list(blobs)
        self.features = list(features) if features else list(DEFAULT_FEATURES)
        self.registry = registry
        self.logger = logger or get_logger()
        self._df: Optional[pd.DataFrame] = None

    def _resolver(self) -> "FeatureRegistry":
        if self.registry is not None:
            return self.registry
        if self.blobs:
            return self.blobs[0].registry
        return _default()

    def _evaluate(self, blob: "Blob", name: str) -> float:
        registry = self.registry or blob.registry
        return registry.evaluate(blob, name)

    def _row(self, blob: "Blob") -> Dict[str, Any]:
        cx, cy = blob.center_of_gravity()
        box = blob.bounds
        row: Dict[str, Any] = {
            "label": blob.label,
            "x_centroid": cx,
            "y_centroid": cy,
            "min_x": box.min_x,
            "min_y": box.min_y,
            "max_x": box.max_x,
            "max_y": box.max_y,
            "contour_points": blob.outer_contour.npoints,
        }
        for name in self.features:
            row[name] = self._evaluate(blob, name)
        return row

    def to_dataframe(self) -> pd.DataFrame:
        """One row per blob, indexed by label."""
        if self._df is None:
            # resolve every name first so an unknown feature fails before any work
            for name in self.features:
                self._resolver().resolve(name)

            with self.logger.timed_step(
                LogComponent.FEATURES, "Building feature table", blobs=len(self.blobs), features=len(self.features)
            ):
                rows = [self._row(blob) for blob in self.blobs]
            columns = ["label", "x_centroid", "y_centroid", "min_x", "min_y", "max_x", "max_y", "contour_points"]
            df = pd.DataFrame(rows, columns=columns + self.features)
            self._df = df.set_index("label")
        return self._df

    def summary(self) -> pd.DataFrame:
        """count / mean / std / min / max of each feature column."""
        df = self.to_dataframe()
        if df.empty:
            return pd.DataFrame(columns=["count", "mean", "std", "min", "max"])
        return df[self.features].agg(["count", "mean", "std", "min", "max"]).T

    def to_csv(self, path) -> None:
        self.to_dataframe().to_csv(path)
        self.logger.step(LogComponent.IO, "Feature table written", path=str(path), rows=len(self.blobs))

    def plot_correlation(self, save_path=None, figsize=(8, 7)):
        """
        Heatmap of the pairwise correlation between feature columns.

        Args:
            save_path: Optional output file (format from the extension)
            figsize: Figure size in inches

        Returns:
            matplotlib Figure
        """
        df = self.to_dataframe()
        corr = df[self.features].astype(float).corr()

        fig, ax = plt.subplots(figsize=figsize)
        sns.heatmap(
            corr,
            annot=len(self.features) <= 12,
            fmt=".2f",
            cmap="coolwarm",
            vmin=-1,
            vmax=1,
            square=True,
            linewidths=0.5,
            linecolor="white",
            ax=ax,
        )
        ax.set_title(f"Feature correlation ({len(df)} blobs)")
        ax.tick_params(axis="x", rotation=45)
        plt.tight_layout()

        if save_path:
            fig.savefig(save_path)
            self.logger.step(LogComponent.IO, "Correlation heatmap written", path=str(save_path))
        return fig

    def print_summary(self) -> None:
        """Print a short text summary."""
        df = self.to_dataframe()
        print(f"\n{'='*60}")
        print(f"BLOBS: {len(df)}")
        print(f"{'='*60}")
        if df.empty:
            return
        for name, stats in self.summary().iterrows():
            print(f"  {name:35} mean={stats['mean']:>10.4g}  min={stats['min']:.4g}  max={stats['max']:.4g}")


def _default() -> "FeatureRegistry":
    from blobtrace.perception.features import default_registry

    return default_registry()


def feature_dataframe(
    blobs: Iterable["Blob"],
    features: Optional[Sequence[str]] = None,
    registry: Optional["FeatureRegistry"] = None,
) -> pd.DataFrame:
    """Shortcut for ``FeatureTable(blobs, features, registry).to_dataframe()``."""
    return FeatureTable(blobs, features, registry).to_dataframe()


__all__ = ["DEFAULT_FEATURES", "FeatureTable", "feature_dataframe"]
