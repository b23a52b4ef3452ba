"""
Configuration du traçage et du filtrage.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Tuple, Union


class Background(Enum):
    """Convention fond/objet d'une image binaire 8 bits."""

    WHITE = "white"  # fond 255, objets 0
    BLACK = "black"  # fond 0, objets 255

    @property
    def background_value(self) -> int:
        return 255 if self is Background.WHITE else 0

    @property
    def object_value(self) -> int:
        return 0 if self is Background.WHITE else 255

    @classmethod
    def parse(cls, value: Union[str, int, "Background"]) -> "Background":
        """
        Accepte un nom ('white'/'black'), une instance, ou l'ancien code 0/1
        (0 = fond noir, 1 = fond blanc).
        """
        if isinstance(value, Background):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            if value not in (0, 1):
                raise ValueError("Value must be 0 or 1 (black/white respectively)")
            return cls.BLACK if value == 0 else cls.WHITE
        return cls(str(value).lower())


DEFAULT_BOX_SIZES: Tuple[int, ...] = (2, 3, 4, 6, 8, 12, 16, 32, 64)


@dataclass
class TracerConfig:
    """
    Paramètres du traçage et du moteur de features.

    Attributes:
        background: convention fond/objet de l'image binaire
        allow_multilevel: trace chaque niveau de gris comme un masque séparé
            au lieu de refuser une image non binaire
        strict: lève ContourInvariantError au lieu d'ignorer un contour
            interne orphelin
        filter_epsilon: tolérance aux bornes du filtrage
        min_contour_points: en dessous, un contour est dégénéré et ignoré
            par le filtrage
        box_sizes: tailles de boîtes par défaut pour la dimension fractale
        axis_step_weight / diagonal_step_weight: poids du code de Freeman
    """

    background: Background = Background.WHITE
    allow_multilevel: bool = False
    strict: bool = False
    filter_epsilon: float = 1e-4
    min_contour_points: int = 4
    box_sizes: Tuple[int, ...] = field(default=DEFAULT_BOX_SIZES)
    axis_step_weight: float = 0.948
    diagonal_step_weight: float = 1.340

    def __post_init__(self) -> None:
        self.background = Background.parse(self.background)
        self.box_sizes = tuple(int(s) for s in self.box_sizes)
        if any(s < 1 for s in self.box_sizes):
            raise ValueError("Box sizes must be >= 1")
        if self.filter_epsilon < 0:
            raise ValueError("filter_epsilon must be >= 0")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TracerConfig":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**data)

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "TracerConfig":
        with Path(path).open("r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["background"] = self.background.value
        data["box_sizes"] = list(self.box_sizes)
        return data


__all__ = ["Background", "DEFAULT_BOX_SIZES", "TracerConfig"]
