from dataclasses import dataclass

from geometry import distance_2d
from gestures.base import GestureClassifierBase
from pose_types import GestureKind, GestureState, LandmarkId, Pose


@dataclass(frozen=True)
class ProximityThresholds:
    max_distance_px: float


class ProximityGesture(GestureClassifierBase):
    """
    Detects a gesture when two landmarks come closer than a pixel threshold.

    A pose missing either landmark classifies as idle.
    """

    def __init__(
        self,
        kind: GestureKind,
        first: LandmarkId,
        second: LandmarkId,
        max_distance_px: float,
        detected_status: str,
    ):
        if max_distance_px <= 0:
            raise ValueError("max_distance_px must be positive")
        self.kind = kind
        self.required_landmarks = (first, second)
        self.detected_status = detected_status
        self._thresholds = ProximityThresholds(max_distance_px=float(max_distance_px))

    def distance(self, pose: Pose):
        first, second = self.required_landmarks
        a = pose.get(first)
        b = pose.get(second)
        if a is None or b is None:
            return None
        return distance_2d(a, b)

    def classify(self, pose: Pose) -> GestureState:
        distance = self.distance(pose)
        if distance is None:
            return GestureState.idle()
        # Strict: a distance equal to the threshold is not a gesture.
        if distance < self._thresholds.max_distance_px:
            return GestureState.detected(self.kind, self.detected_status)
        return GestureState.idle()
