from typing import Tuple

from pose_types import GestureKind, GestureState, LandmarkId, Pose


class GestureClassifierBase:
    kind: GestureKind
    required_landmarks: Tuple[LandmarkId, ...] = ()

    def classify(self, pose: Pose) -> GestureState:
        raise NotImplementedError