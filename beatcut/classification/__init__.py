"""Content classification interface and reference classifier."""

from .base import AbstractContentClassifier
from .level import LevelBasedClassifier

__all__ = [
    'AbstractContentClassifier',
    'LevelBasedClassifier',
]
