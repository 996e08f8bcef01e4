from gestures.base import GestureClassifierBase
from gestures.proximity import ProximityGesture

__all__ = [
    "GestureClassifierBase",
    "ProximityGesture",
]
