"""
CLI principale de blobtrace.

Fournit une commande `analyze` : chargement d'un raster, traçage des
composantes, filtrage optionnel, puis export de la table des features.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, List, Optional, Sequence

import matplotlib.pyplot as plt
import numpy as np

from blobtrace.analysis.report import DEFAULT_FEATURES, FeatureTable
from blobtrace.core.config import Background, TracerConfig
from blobtrace.core.errors import BlobError
from blobtrace.core.logger import BlobLogger, LogComponent, set_logger
from blobtrace.perception.blob_set import BlobSet
from blobtrace.perception.raster import ArrayRaster
from blobtrace.perception.visualize import BlobVisualizer


def _load_grid_from_json(path: Path) -> Any:
    """Charge une grille JSON : ``{"grid": [[...]]}`` ou une liste de listes."""
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        if "grid" not in data:
            raise ValueError(f"{path}: expected a 'grid' key or a bare nested list")
        return data["grid"]
    return data


def load_raster(path: Path) -> ArrayRaster:
    """Charge un raster depuis un fichier ``.npy`` ou ``.json``."""
    if path.suffix.lower() == ".npy":
        return ArrayRaster.from_grid(np.load(path))
    return ArrayRaster.from_grid(_load_grid_from_json(path))


def _parse_number(text: str):
    try:
        return int(text)
    except ValueError:
        return float(text)


def _parse_filter(values: Sequence[str]):
    """FEATURE LOWER [UPPER [PARAM ...]] -> (feature, lower, upper, params)."""
    if len(values) < 2:
        raise argparse.ArgumentTypeError("--filter expects FEATURE LOWER [UPPER [PARAM ...]]")
    feature = values[0]
    try:
        lower = float(values[1])
        upper = float(values[2]) if len(values) >= 3 else float("inf")
        params = tuple(_parse_number(v) for v in values[3:])
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"--filter bounds and parameters must be numbers: {e}") from e
    return feature, lower, upper, params


def _build_config(args: argparse.Namespace) -> TracerConfig:
    config = TracerConfig.from_json(args.config) if args.config else TracerConfig()
    overrides = {}
    if args.background is not None:
        overrides["background"] = Background.parse(args.background)
    if args.multilevel:
        overrides["allow_multilevel"] = True
    if args.strict:
        overrides["strict"] = True
    if overrides:
        config = TracerConfig.from_dict({**config.to_dict(), **overrides})
    return config


def cmd_analyze(args: argparse.Namespace) -> int:
    """
    Commande `analyze` : trace, filtre et tabule les blobs d'un raster.
    """
    logger = BlobLogger(verbose=args.verbose, log_file=args.log_file, json_log=args.json_log)
    set_logger(logger)

    path = Path(args.input)
    raster = load_raster(path)
    logger.step(LogComponent.IO, "Loaded raster", path=str(path), width=raster.width(), height=raster.height())

    config = _build_config(args)
    blobs = BlobSet(raster, config=config, logger=logger).find_connected_components()
    print(f"Traced {len(blobs)} blobs in {path.name} ({raster.width()} x {raster.height()})")

    for feature, lower, upper, params in args.filters:
        blobs = blobs.filter(lower, upper, feature, *params)
        shown = f"{feature}({', '.join(map(str, params))})" if params else feature
        print(f"  filter {shown} in [{lower}, {upper}] -> {len(blobs)} blobs")

    if args.labeled:
        print("\n=== LABEL IMAGE ===")
        for row in blobs.get_labeled_image():
            print(" ".join(f"{v:3d}" for v in row))

    table = FeatureTable(blobs, args.features or DEFAULT_FEATURES, blobs.registry, logger)
    if args.csv:
        table.to_csv(args.csv)
        print(f"Feature table written to {args.csv}")
    else:
        table.print_summary()

    if args.heatmap:
        fig = table.plot_correlation(args.heatmap)
        plt.close(fig)
        print(f"Correlation heatmap written to {args.heatmap}")

    if args.plot:
        fig, _ = BlobVisualizer.plot_blobs(raster.to_array(), blobs, title=path.name)
        BlobVisualizer.save(fig, args.plot)
        print(f"Overlay written to {args.plot}")

    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="blobtrace", description="Connected component tracing and blob features")
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Tracer les blobs d'une image binaire et calculer leurs features.",
    )
    analyze_parser.add_argument("input", type=str, help="Raster .npy ou grille JSON (valeurs 0..255).")
    analyze_parser.add_argument(
        "--background",
        choices=[b.value for b in Background],
        default=None,
        help="Couleur du fond (défaut : white, objets noirs).",
    )
    analyze_parser.add_argument("--multilevel", action="store_true", help="Trace chaque niveau de gris séparément.")
    analyze_parser.add_argument("--strict", action="store_true", help="Échoue sur un contour interne orphelin.")
    analyze_parser.add_argument("--labeled", action="store_true", help="Affiche l'image d'étiquettes.")
    analyze_parser.add_argument(
        "--filter",
        dest="filters",
        nargs="+",
        action="append",
        default=[],
        metavar="ARG",
        help=(
            "FEATURE LOWER [UPPER [PARAM ...]]; UPPER vaut inf pour un seuil bas seul, "
            "les PARAM sont passés à la feature (ex. moment 0 inf 2 0). Répétable, appliqué dans l'ordre."
        ),
    )
    analyze_parser.add_argument("--features", nargs="+", default=None, help="Features à tabuler.")
    analyze_parser.add_argument("--csv", type=str, default=None, help="Écrit la table des features en CSV.")
    analyze_parser.add_argument("--plot", type=str, default=None, help="Écrit une image des blobs (PNG).")
    analyze_parser.add_argument(
        "--heatmap", type=str, default=None, help="Écrit la heatmap de corrélation des features."
    )
    analyze_parser.add_argument("--config", type=str, default=None, help="Fichier JSON de TracerConfig.")
    analyze_parser.add_argument("--verbose", action="store_true", help="Journalisation détaillée.")
    analyze_parser.add_argument("--log-file", type=str, default=None, help="Journal des étapes dans un fichier.")
    analyze_parser.add_argument("--json-log", action="store_true", help="Journal au format JSON lines.")
    analyze_parser.set_defaults(func=cmd_analyze)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        args.filters = [_parse_filter(values) for values in args.filters]
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))

    try:
        return args.func(args)
    except (BlobError, ValueError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
