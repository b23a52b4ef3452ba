"""
Registre de features : résolution par nom, features intégrées et
personnalisées.

Une feature personnalisée est une méthode d'une sous-classe de
``CustomFeature`` décorée par ``@feature_operation(*types)``; elle reçoit le
blob puis ses paramètres typés et retourne un nombre::

    class MyFeatures(CustomFeature):
        @feature_operation(int, float)
        def my_fancy_feature(self, blob, a, b):
            return b * blob.enclosed_area() * a

    registry.add_custom_feature(MyFeatures())
    blob_set.filter(0, 100, "my_fancy_feature", 2, 0.5)
"""

from __future__ import annotations

import inspect
import numbers
import threading
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from blobtrace.core.errors import (
    FeatureArgumentError,
    FeatureRegistrationError,
    FeatureResultError,
    UnknownFeatureError,
)
from blobtrace.core.logger import BlobLogger, LogComponent, get_logger

if TYPE_CHECKING:
    from blobtrace.perception.blob import Blob

_FEATURE_ATTR = "__feature_signature__"


def feature_operation(*param_types: type, varargs: Optional[type] = None):
    """
    Déclare une méthode de ``CustomFeature`` comme feature nommée.

    Args:
        param_types: types des paramètres fixes (après le blob)
        varargs: type des paramètres variadiques éventuels
    """
    for declared in param_types + ((varargs,) if varargs is not None else ()):
        if not isinstance(declared, type):
            raise FeatureRegistrationError(f"Parameter types must be classes, got {declared!r}")

    def decorator(func):
        setattr(func, _FEATURE_ATTR, (tuple(param_types), varargs))
        return func

    return decorator


class CustomFeature:
    """Classe de base des features personnalisées."""

    def operations(self) -> Dict[str, Tuple[Callable[..., Any], Tuple[type, ...], Optional[type]]]:
        """Méthodes décorées, par nom : (méthode liée, types, type variadique)."""
        found = {}
        for name in dir(type(self)):
            attribute = getattr(type(self), name, None)
            signature = getattr(attribute, _FEATURE_ATTR, None)
            if signature is None:
                continue
            param_types, varargs = signature
            found[name] = (getattr(self, name), param_types, varargs)
        return found


@dataclass(frozen=True)
class FeatureSpec:
    """Feature résolue : nom, signature et fonction ``(blob, *params) -> nombre``."""

    name: str
    param_types: Tuple[type, ...]
    varargs: Optional[type]
    func: Callable[..., Any]
    builtin: bool

    def describe(self) -> str:
        types = [t.__name__ for t in self.param_types]
        if self.varargs is not None:
            types.append(f"*{self.varargs.__name__}")
        return f"{self.name}({', '.join(types)})"


def _accepts(declared: type, value: Any) -> bool:
    if isinstance(value, bool) and declared is not bool:
        return False
    if declared is float:
        return isinstance(value, numbers.Real)
    if declared is int:
        return isinstance(value, numbers.Integral)
    return isinstance(value, declared)


def _builtin(name: str, *param_types: type, varargs: Optional[type] = None) -> FeatureSpec:
    def call(blob: "Blob", *params):
        return getattr(blob, name)(*params)

    return FeatureSpec(name, tuple(param_types), varargs, call, builtin=True)


BUILTIN_FEATURES: Tuple[FeatureSpec, ...] = (
    _builtin("perimeter"),
    _builtin("enclosed_area"),
    _builtin("circularity"),
    _builtin("thinness_ratio"),
    _builtin("area_to_perimeter_ratio"),
    _builtin("convexity"),
    _builtin("solidity"),
    _builtin("perimeter_convex_hull"),
    _builtin("area_convex_hull"),
    _builtin("contour_temperature"),
    _builtin("elongation"),
    _builtin("orientation_major_axis"),
    _builtin("orientation_minor_axis"),
    _builtin("eigenvalue_major_axis"),
    _builtin("eigenvalue_minor_axis"),
    _builtin("long_side_mbr"),
    _builtin("short_side_mbr"),
    _builtin("aspect_ratio"),
    _builtin("feret_diameter"),
    _builtin("min_feret_diameter"),
    _builtin("diameter_maximum_inscribed_circle"),
    _builtin("fractal_box_dimension", varargs=int),
    _builtin("fractal_dimension_goodness", varargs=int),
    _builtin("number_of_holes"),
    _builtin("moment", int, int),
    _builtin("central_moment", int, int),
)


def _check_signature(name: str, method: Callable[..., Any], param_types: Tuple[type, ...], varargs: Optional[type]) -> None:
    """Vérifie qu'une méthode liée accepte (blob, *params) selon les types déclarés."""
    try:
        signature = inspect.signature(method)
    except (TypeError, ValueError) as e:
        raise FeatureRegistrationError(f"Cannot inspect feature {name!r}: {e}") from e

    parameters = list(signature.parameters.values())
    positional = [
        p for p in parameters
        if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    ]
    has_varargs = any(p.kind is inspect.Parameter.VAR_POSITIONAL for p in parameters)
    required_keywords = [
        p for p in parameters
        if p.kind is inspect.Parameter.KEYWORD_ONLY and p.default is inspect.Parameter.empty
    ]

    expected = 1 + len(param_types)
    if len(positional) != expected:
        raise FeatureRegistrationError(
            f"Feature {name!r} declares {len(param_types)} parameter(s) but its method "
            f"takes {len(positional) - 1} after the blob"
        )
    if varargs is not None and not has_varargs:
        raise FeatureRegistrationError(f"Feature {name!r} declares varargs but its method has no *args")
    if required_keywords:
        raise FeatureRegistrationError(f"Feature {name!r} has required keyword-only parameters")


class FeatureRegistry:
    """
    Table nom -> feature.

    Les features intégrées sont résolues en premier. Les lectures se font
    sans verrou sur un mapping remplacé à chaque enregistrement; les
    enregistrements sont sérialisés.
    """

    def __init__(self, logger: Optional[BlobLogger] = None):
        self._builtins: Mapping[str, FeatureSpec] = MappingProxyType({f.name: f for f in BUILTIN_FEATURES})
        self._custom: Mapping[str, FeatureSpec] = MappingProxyType({})
        self._lock = threading.Lock()
        self._logger = logger

    @property
    def logger(self) -> BlobLogger:
        return self._logger or get_logger()

    # ------------------------------------------------------------------
    # Enregistrement
    # ------------------------------------------------------------------

    def add_custom_feature(self, feature: CustomFeature) -> List[str]:
        """
        Enregistre toutes les opérations décorées de ``feature``.

        Retourne les noms enregistrés. Un nom déjà enregistré est remplacé.

        Raises:
            FeatureRegistrationError: objet sans opération, signature
                incompatible ou nom d'une feature intégrée.
        """
        if not isinstance(feature, CustomFeature):
            raise FeatureRegistrationError(f"Expected a CustomFeature, got {type(feature).__name__}")
        operations = feature.operations()
        if not operations:
            raise FeatureRegistrationError(f"{type(feature).__name__} declares no @feature_operation method")

        specs = []
        for name, (method, param_types, varargs) in operations.items():
            if name in self._builtins:
                raise FeatureRegistrationError(f"Feature {name!r} collides with a built-in feature")
            _check_signature(name, method, param_types, varargs)
            specs.append(FeatureSpec(name, param_types, varargs, method, builtin=False))

        with self._lock:
            updated = dict(self._custom)
            for spec in specs:
                if spec.name in updated:
                    self.logger.warning(LogComponent.REGISTRY, "Replacing custom feature", name=spec.name)
                updated[spec.name] = spec
            self._custom = MappingProxyType(updated)

        for spec in specs:
            self.logger.step(LogComponent.REGISTRY, "Registered custom feature", feature=spec.describe())
        return [spec.name for spec in specs]

    def remove_custom_feature(self, name: str) -> None:
        with self._lock:
            if name not in self._custom:
                raise UnknownFeatureError(name)
            updated = dict(self._custom)
            del updated[name]
            self._custom = MappingProxyType(updated)

    # ------------------------------------------------------------------
    # Résolution
    # ------------------------------------------------------------------

    def builtin_names(self) -> List[str]:
        return list(self._builtins)

    def custom_names(self) -> List[str]:
        return list(self._custom)

    def names(self) -> List[str]:
        return self.builtin_names() + self.custom_names()

    def __contains__(self, name: object) -> bool:
        return name in self._builtins or name in self._custom

    def is_builtin(self, name: str) -> bool:
        return name in self._builtins

    def resolve(self, name: str) -> FeatureSpec:
        spec = self._builtins.get(name)
        if spec is None:
            spec = self._custom.get(name)
        if spec is None:
            raise UnknownFeatureError(name)
        return spec

    def check_arguments(self, spec: FeatureSpec, params: Sequence[Any]) -> None:
        """
        Raises:
            FeatureArgumentError: arité ou types incompatibles.
        """
        fixed = len(spec.param_types)
        if len(params) < fixed or (spec.varargs is None and len(params) != fixed):
            raise FeatureArgumentError(
                spec.name,
                f"Feature {spec.describe()} was called with {len(params)} parameter(s)",
            )
        declared = list(spec.param_types) + [spec.varargs] * (len(params) - fixed)
        for position, (expected, value) in enumerate(zip(declared, params)):
            if not _accepts(expected, value):
                raise FeatureArgumentError(
                    spec.name,
                    f"Feature {spec.describe()}: parameter {position} expects "
                    f"{expected.__name__}, got {type(value).__name__}",
                )

    def evaluate(self, blob: "Blob", name: str, params: Sequence[Any] = ()) -> float:
        """Évalue une feature (intégrée d'abord, puis personnalisée) sur un blob."""
        return self._call(self.resolve(name), blob, params)

    def evaluate_custom(self, blob: "Blob", name: str, params: Sequence[Any] = ()) -> float:
        spec = self._custom.get(name)
        if spec is None:
            raise UnknownFeatureError(name)
        return self._call(spec, blob, params)

    def _call(self, spec: FeatureSpec, blob: "Blob", params: Sequence[Any]) -> float:
        params = tuple(params)
        self.check_arguments(spec, params)
        value = spec.func(blob, *params)
        if isinstance(value, bool) or not isinstance(value, numbers.Real):
            raise FeatureResultError(
                f"Feature {spec.name!r} returned {type(value).__name__}, expected a number"
            )
        return float(value)


_default_registry: Optional[FeatureRegistry] = None
_default_lock = threading.Lock()


def default_registry() -> FeatureRegistry:
    """Registre partagé par tout le processus."""
    global _default_registry
    if _default_registry is None:
        with _default_lock:
            if _default_registry is None:
                _default_registry = FeatureRegistry()
    return _default_registry


__all__ = [
    "feature_operation",
    "CustomFeature",
    "FeatureSpec",
    "BUILTIN_FEATURES",
    "FeatureRegistry",
    "default_registry",
]
