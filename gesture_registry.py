from dataclasses import dataclass
from typing import Dict, List

from config import DEFAULT_LANDMARK_PAIRS, GestureConfig
from gestures.base import GestureClassifierBase
from gestures.proximity import ProximityGesture
from pose_types import GestureKind, GestureState, Pose


@dataclass(frozen=True)
class GestureEntry:
    kind: GestureKind
    label: str
    detected_status: str
    view_hint: str


_ENTRIES: List[GestureEntry] = [
    GestureEntry(GestureKind.PINCH, "Pinch", "✅ Pinch gesture detected!", "Right hand"),
    GestureEntry(GestureKind.LEFT_PINCH, "Left Pinch", "✅ Left pinch gesture detected!", "Left hand"),
    GestureEntry(GestureKind.CLAP, "Clap", "✅ Clap detected!", "Both hands"),
]

_BY_KIND: Dict[GestureKind, GestureEntry] = {entry.kind: entry for entry in _ENTRIES}


def get_gesture_entries() -> List[GestureEntry]:
    return list(_ENTRIES)


def get_gesture_entry(kind: GestureKind) -> GestureEntry:
    return _BY_KIND[kind]


def build_classifier(config: GestureConfig) -> GestureClassifierBase:
    entry = _BY_KIND[config.kind]
    first, second = config.landmarks or DEFAULT_LANDMARK_PAIRS[config.kind]
    return ProximityGesture(
        kind=entry.kind,
        first=first,
        second=second,
        max_distance_px=config.threshold_px,
        detected_status=entry.detected_status,
    )


def classify(pose: Pose, config: GestureConfig) -> GestureState:
    """Map a pose to a gesture state. Pure: same pose and config, same result."""
    return build_classifier(config).classify(pose)
