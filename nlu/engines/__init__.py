"""Concrete NLU engines."""

from .centroid_engine import CentroidEngine, tokenize

__all__ = [
    "CentroidEngine",
    "tokenize",
]
