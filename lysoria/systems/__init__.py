"""
Story systems for Lysoria.

Each system operates on the manager's live state and delegates saving back
to the manager.
"""

from .objectives import ObjectiveTracker, ArcRequirementCheck
from .arcs import ArcEngine, ProgressionResult

__all__ = [
    "ObjectiveTracker",
    "ArcRequirementCheck",
    "ArcEngine",
    "ProgressionResult",
]
