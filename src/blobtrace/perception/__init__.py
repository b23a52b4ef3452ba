"""Traçage de contours, blobs, features et filtrage."""
