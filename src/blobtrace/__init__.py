"""
blobtrace - Connected Component Tracing and Blob Features
=========================================================
Single-pass contour tracing (Chang, Chen & Lu) over binary 8-bit rasters,
shape features computed from the traced contours, and name-keyed filtering.

Pipeline Flow:
    Raster -> ContourTracer -> BlobSet -> Features / Filtering -> Report
"""

from .core.config import Background, TracerConfig
from .core.errors import (
    BlobError,
    ContourInvariantError,
    FeatureArgumentError,
    FeatureDispatchError,
    FeatureRegistrationError,
    FeatureResultError,
    InvalidRasterError,
    NotTracedError,
    UnknownFeatureError,
)
from .core.logger import BlobLogger, LogComponent, get_logger, set_logger
from .core.models import BoundingBox, Calibration, Contour, Direction, Point
from .perception.blob import Blob
from .perception.blob_set import BlobSet
from .perception.features import CustomFeature, FeatureRegistry, default_registry, feature_operation
from .perception.raster import ArrayRaster, Raster
from .perception.render import ArrayRenderer, DrawOption, Renderer
from .perception.tracer import ContourTracer, TraceResult

__version__ = "0.1.0"

__all__ = [
    # Data Types
    "Point",
    "BoundingBox",
    "Calibration",
    "Contour",
    "Direction",

    # Configuration
    "Background",               # Background/object convention
    "TracerConfig",             # Tracing and filtering parameters

    # Pipeline Components
    "Raster",                   # Input capability
    "ArrayRaster",              # numpy-backed raster
    "ContourTracer",            # Step 1: Labeling + contours
    "TraceResult",              # Step 1: Result structure
    "Blob",                     # Step 2: Feature engine
    "BlobSet",                  # Step 3: Lookup and filtering
    "Renderer",                 # Drawing capability
    "ArrayRenderer",            # numpy canvas renderer
    "DrawOption",               # Drawing flags

    # Feature Registry
    "CustomFeature",
    "FeatureRegistry",
    "feature_operation",
    "default_registry",

    # Errors
    "BlobError",
    "InvalidRasterError",
    "NotTracedError",
    "ContourInvariantError",
    "FeatureDispatchError",
    "UnknownFeatureError",
    "FeatureArgumentError",
    "FeatureResultError",
    "FeatureRegistrationError",

    # Logging
    "BlobLogger",               # Structured logging
    "LogComponent",             # Log component identifiers
    "get_logger",               # Get global logger
    "set_logger",               # Set global logger
]
