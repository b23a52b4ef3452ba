"""
BlobSet : ensemble ordonné des blobs d'une image, avec recherche et filtrage.

Usage:
    blobs = BlobSet(ArrayRaster(image), Background.WHITE)
    blobs.find_connected_components()
    round_ones = blobs.filter(0.0, 20.0, "circularity")
    labels = round_ones.get_labeled_image()
"""

from __future__ import annotations

import dataclasses
import math
from typing import Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from blobtrace.analysis.report import FeatureTable
from blobtrace.core.config import Background, TracerConfig
from blobtrace.core.errors import ContourInvariantError, NotTracedError
from blobtrace.core.logger import BlobLogger, LogComponent, get_logger
from blobtrace.perception.blob import Blob
from blobtrace.perception.features import FeatureRegistry, default_registry
from blobtrace.perception.raster import Raster
from blobtrace.perception.render import render_label_image
from blobtrace.perception.tracer import ContourTracer


class BlobSet:
    """Blobs d'un raster, dans l'ordre de découverte."""

    def __init__(
        self,
        raster: Raster,
        background: Union[Background, str, int, None] = None,
        config: Optional[TracerConfig] = None,
        registry: Optional[FeatureRegistry] = None,
        logger: Optional[BlobLogger] = None,
    ):
        config = config or TracerConfig()
        if background is not None:
            config = dataclasses.replace(config, background=Background.parse(background))
        self._raster = raster
        self._config = config
        self._registry = registry
        self._logger = logger or get_logger()

        self._blobs: List[Blob] = []
        self._label_buffer: Optional[np.ndarray] = None
        self._labeled_image: Optional[np.ndarray] = None
        self._violations: List[ContourInvariantError] = []

    @classmethod
    def _derive(cls, parent: "BlobSet", blobs: List[Blob]) -> "BlobSet":
        """Sous-ensemble partageant les blobs du parent; tampon et image d'étiquettes re-rendus (pas de -1)."""
        child = cls(parent._raster, config=parent._config, registry=parent._registry, logger=parent._logger)
        child._blobs = list(blobs)
        image = render_label_image(child._blobs, parent._raster.width(), parent._raster.height())
        child._label_buffer = image
        child._labeled_image = image
        return child

    # ------------------------------------------------------------------
    # Propriétés
    # ------------------------------------------------------------------

    @property
    def raster(self) -> Raster:
        return self._raster

    @property
    def config(self) -> TracerConfig:
        return self._config

    @property
    def background(self) -> Background:
        return self._config.background

    @property
    def registry(self) -> FeatureRegistry:
        return self._registry or default_registry()

    @property
    def is_traced(self) -> bool:
        return self._labeled_image is not None

    @property
    def violations(self) -> List[ContourInvariantError]:
        return list(self._violations)

    @property
    def blobs(self) -> List[Blob]:
        return list(self._blobs)

    @property
    def label_buffer(self) -> np.ndarray:
        """
        Tampon brut du traçage (0 non étiqueté, -1 fond confirmé, >0 label).

        Un ensemble issu de ``filter`` n'a pas été tracé : son tampon est
        l'image d'étiquettes re-rendue, sans marqueur -1.
        """
        self._require_traced("label_buffer")
        return self._label_buffer.copy()

    def __len__(self) -> int:
        return len(self._blobs)

    def __iter__(self) -> Iterator[Blob]:
        return iter(self._blobs)

    def __getitem__(self, index: int) -> Blob:
        return self._blobs[index]

    def __repr__(self) -> str:
        state = f"{len(self._blobs)} blobs" if self.is_traced else "not traced"
        return f"BlobSet({state}, background={self._config.background.value})"

    def _require_traced(self, operation: str) -> None:
        if not self.is_traced:
            raise NotTracedError(f"{operation} requires find_connected_components() to be called first")

    # ------------------------------------------------------------------
    # Traçage
    # ------------------------------------------------------------------

    def set_background(self, background: Union[Background, str, int]) -> None:
        """Change la convention fond/objet; les résultats d'un traçage précédent sont oubliés."""
        self._config = dataclasses.replace(self._config, background=Background.parse(background))
        self._blobs = []
        self._label_buffer = None
        self._labeled_image = None
        self._violations = []

    def find_connected_components(self) -> "BlobSet":
        """Trace toutes les composantes du raster; retourne ``self``."""
        tracer = ContourTracer(config=self._config, registry=self._registry, logger=self._logger)
        result = tracer.trace(self._raster)
        self._blobs = result.blobs
        self._violations = result.violations
        self._label_buffer = result.label_buffer
        self._labeled_image = np.where(result.label_buffer > 0, result.label_buffer, 0).astype(np.int32)
        return self

    def get_labeled_image(self) -> np.ndarray:
        """Image ``int32`` : label du blob pour chaque pixel objet, 0 ailleurs."""
        self._require_traced("get_labeled_image")
        return self._labeled_image.copy()

    # ------------------------------------------------------------------
    # Recherche
    # ------------------------------------------------------------------

    def get_specific_blob(self, x: float, y: float) -> Optional[Blob]:
        """Premier blob dont le contour externe contient le point, sinon None."""
        for blob in self._blobs:
            if blob.contains(x, y):
                return blob
        return None

    def get_blob_by_label(self, label: int) -> Optional[Blob]:
        for blob in self._blobs:
            if blob.label == label:
                return blob
        return None

    # ------------------------------------------------------------------
    # Filtrage
    # ------------------------------------------------------------------

    def _in_range(self, value: float, lower: float, upper: float) -> bool:
        if math.isnan(value):
            return True
        eps = self._config.filter_epsilon
        if upper == math.inf:
            return value >= lower or abs(lower - value) < eps
        return lower <= value <= upper or abs(lower - value) < eps or abs(upper - value) < eps

    def filter(self, lower: float, upper: float, feature: str, *params) -> "BlobSet":
        """
        Garde les blobs dont la feature est dans [lower, upper].

        Les blobs dont le contour externe a moins de 4 points sont ignorés;
        une valeur NaN est toujours gardée.

        Raises:
            NotTracedError: avant ``find_connected_components``.
            UnknownFeatureError: nom inconnu.
            FeatureArgumentError: arité ou types des paramètres.
            FeatureResultError: valeur non numérique.
        """
        self._require_traced("filter")
        registry = self.registry
        spec = registry.resolve(feature)
        registry.check_arguments(spec, params)

        kept: List[Blob] = []
        with self._logger.timed_step(
            LogComponent.FILTERING, f"Filtering by {feature}", lower=lower, upper=upper, blobs=len(self._blobs)
        ):
            for blob in self._blobs:
                if blob.outer_contour.npoints < self._config.min_contour_points:
                    continue
                value = registry.evaluate(blob, feature, params)
                if self._in_range(value, lower, upper):
                    kept.append(blob)

        self._logger.step(LogComponent.FILTERING, f"Kept {len(kept)} of {len(self._blobs)} blobs", feature=feature)
        return BlobSet._derive(self, kept)

    def filter_above(self, lower: float, feature: str, *params) -> "BlobSet":
        """Garde les blobs dont la feature vaut au moins ``lower``."""
        return self.filter(lower, math.inf, feature, *params)

    def filter_range(self, bounds: Sequence[float], feature: str, *params) -> "BlobSet":
        """``bounds`` : (min, max)."""
        if len(bounds) != 2:
            raise ValueError(f"bounds must be (lower, upper), got {bounds!r}")
        lower, upper = bounds
        return self.filter(lower, upper, feature, *params)

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def to_dataframe(self, features: Optional[Sequence[str]] = None) -> pd.DataFrame:
        """Table des features (une ligne par blob, indexée par label)."""
        self._require_traced("to_dataframe")
        return FeatureTable(self._blobs, features, self.registry, self._logger).to_dataframe()

    def size(self) -> Tuple[int, int]:
        """(largeur, hauteur) du raster source."""
        return self._raster.width(), self._raster.height()


__all__ = ["BlobSet"]
