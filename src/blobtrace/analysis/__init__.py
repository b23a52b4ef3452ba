"""
Analysis Package
================
Feature tables and summary statistics for traced blobs.
"""

from .report import DEFAULT_FEATURES, FeatureTable, feature_dataframe

__all__ = ["DEFAULT_FEATURES", "FeatureTable", "feature_dataframe"]
