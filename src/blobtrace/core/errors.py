"""
Hiérarchie d'exceptions de blobtrace.

Les erreurs de validation d'entrée, d'usage (état non initialisé),
d'invariant algorithmique et de dispatch de features sont distinctes afin que
l'appelant puisse les traiter séparément.
"""

from __future__ import annotations

from typing import Optional, Tuple


class BlobError(Exception):
    """Classe de base de toutes les erreurs blobtrace."""


class InvalidRasterError(BlobError, ValueError):
    """Image refusée avant tout traçage (profondeur, canaux, non binaire)."""


class NotTracedError(BlobError, RuntimeError):
    """Image étiquetée ou filtrage demandé avant le traçage."""


class ContourInvariantError(BlobError):
    """Contour interne sans composante propriétaire (état d'étiquetage corrompu)."""

    def __init__(self, x: int, y: int, label: int):
        self.x = x
        self.y = y
        self.label = label
        super().__init__(f"Contour interne sans blob propriétaire en ({x}, {y}), label {label}")

    @property
    def position(self) -> Tuple[int, int]:
        return self.x, self.y


class FeatureDispatchError(BlobError):
    """Erreur de résolution ou d'appel d'une feature nommée."""


class UnknownFeatureError(FeatureDispatchError, LookupError):
    """Aucune feature intégrée ni personnalisée ne porte ce nom."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"The feature {name!r} was not found")

    def __str__(self) -> str:
        return self.args[0]


class FeatureArgumentError(FeatureDispatchError, TypeError):
    """Arité ou types de paramètres incompatibles avec la signature déclarée."""

    def __init__(self, name: str, message: Optional[str] = None):
        self.name = name
        super().__init__(message or f"Feature {name!r} was called with wrong types of parameters")


class FeatureResultError(FeatureDispatchError):
    """La feature a retourné une valeur non numérique."""


class FeatureRegistrationError(FeatureDispatchError, ValueError):
    """Enregistrement refusé (signature invalide, conflit de nom)."""


__all__ = [
    "BlobError",
    "InvalidRasterError",
    "NotTracedError",
    "ContourInvariantError",
    "FeatureDispatchError",
    "UnknownFeatureError",
    "FeatureArgumentError",
    "FeatureResultError",
    "FeatureRegistrationError",
]
