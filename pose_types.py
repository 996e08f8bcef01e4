import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

VALID_ROTATIONS = (0, 90, 180, 270)
IDLE_STATUS = "Waiting for gesture..."


class LandmarkId(str, Enum):
    # Ordered as the pose model indexes them.
    NOSE = "nose"
    LEFT_EYE_INNER = "left_eye_inner"
    LEFT_EYE = "left_eye"
    LEFT_EYE_OUTER = "left_eye_outer"
    RIGHT_EYE_INNER = "right_eye_inner"
    RIGHT_EYE = "right_eye"
    RIGHT_EYE_OUTER = "right_eye_outer"
    LEFT_EAR = "left_ear"
    RIGHT_EAR = "right_ear"
    MOUTH_LEFT = "mouth_left"
    MOUTH_RIGHT = "mouth_right"
    LEFT_SHOULDER = "left_shoulder"
    RIGHT_SHOULDER = "right_shoulder"
    LEFT_ELBOW = "left_elbow"
    RIGHT_ELBOW = "right_elbow"
    LEFT_WRIST = "left_wrist"
    RIGHT_WRIST = "right_wrist"
    LEFT_PINKY = "left_pinky"
    RIGHT_PINKY = "right_pinky"
    LEFT_INDEX = "left_index"
    RIGHT_INDEX = "right_index"
    LEFT_THUMB = "left_thumb"
    RIGHT_THUMB = "right_thumb"
    LEFT_HIP = "left_hip"
    RIGHT_HIP = "right_hip"
    LEFT_KNEE = "left_knee"
    RIGHT_KNEE = "right_knee"
    LEFT_ANKLE = "left_ankle"
    RIGHT_ANKLE = "right_ankle"
    LEFT_HEEL = "left_heel"
    RIGHT_HEEL = "right_heel"
    LEFT_FOOT_INDEX = "left_foot_index"
    RIGHT_FOOT_INDEX = "right_foot_index"


class GestureKind(str, Enum):
    PINCH = "pinch"
    LEFT_PINCH = "left_pinch"
    CLAP = "clap"


class GesturePhase(str, Enum):
    IDLE = "idle"
    DETECTED = "detected"


@dataclass(frozen=True)
class Landmark:
    """A single landmark in pixel coordinates of the upright image."""

    id: LandmarkId
    x: float
    y: float
    z: Optional[float] = None
    visibility: float = 1.0


@dataclass(frozen=True)
class Pose:
    landmarks: Mapping[LandmarkId, Landmark] = field(default_factory=dict)
    image_size: Tuple[int, int] = (0, 0)

    def get(self, landmark_id: LandmarkId) -> Optional[Landmark]:
        return self.landmarks.get(landmark_id)

    def __contains__(self, landmark_id: object) -> bool:
        return landmark_id in self.landmarks

    def __len__(self) -> int:
        return len(self.landmarks)


@dataclass(frozen=True)
class GestureState:
    phase: GesturePhase
    status: str
    kind: Optional[GestureKind] = None

    @classmethod
    def idle(cls) -> "GestureState":
        return cls(GesturePhase.IDLE, IDLE_STATUS)

    @classmethod
    def detected(cls, kind: GestureKind, status: str) -> "GestureState":
        return cls(GesturePhase.DETECTED, status, kind)

    @property
    def is_detected(self) -> bool:
        return self.phase is GesturePhase.DETECTED


class Frame:
    """
    One captured image plus its orientation and sequence number.

    The image buffer is given back through release(), which runs at most once;
    the producer's on_release hook sees the frame after its image is dropped.
    """

    def __init__(
        self,
        image: Any,
        rotation_degrees: int = 0,
        sequence: int = 0,
        timestamp: float = 0.0,
        on_release: Optional[Callable[["Frame"], None]] = None,
    ):
        if rotation_degrees not in VALID_ROTATIONS:
            raise ValueError(f"rotation_degrees must be one of {VALID_ROTATIONS}, got {rotation_degrees!r}")
        self.image = image
        self.rotation_degrees = rotation_degrees
        self.sequence = sequence
        self.timestamp = timestamp
        self._on_release = on_release
        self._released = False
        self._lock = threading.Lock()

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> bool:
        with self._lock:
            if self._released:
                return False
            self._released = True
            self.image = None
        if self._on_release is not None:
            self._on_release(self)
        return True

    def __repr__(self) -> str:
        return (
            f"Frame(sequence={self.sequence}, rotation_degrees={self.rotation_degrees}, "
            f"released={self._released})"
        )


def landmark_map(*landmarks: Landmark) -> Dict[LandmarkId, Landmark]:
    return {lm.id: lm for lm in landmarks}
