import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from errors import ConfigError
from pose_types import GestureKind, LandmarkId

logger = logging.getLogger(__name__)


class CameraFacing(str, Enum):
    FRONT = "front"
    BACK = "back"


class BackpressurePolicy(str, Enum):
    # At most one frame in flight; frames arriving meanwhile are dropped.
    KEEP_LATEST = "keep_latest"


DEFAULT_LANDMARK_PAIRS: Dict[GestureKind, Tuple[LandmarkId, LandmarkId]] = {
    GestureKind.PINCH: (LandmarkId.RIGHT_INDEX, LandmarkId.RIGHT_THUMB),
    GestureKind.LEFT_PINCH: (LandmarkId.LEFT_INDEX, LandmarkId.LEFT_THUMB),
    GestureKind.CLAP: (LandmarkId.LEFT_WRIST, LandmarkId.RIGHT_WRIST),
}


@dataclass(frozen=True)
class CameraConfig:
    facing: CameraFacing = CameraFacing.FRONT
    front_index: int = 0
    back_index: int = 1
    width: int = 1280
    height: int = 720
    target_fps: int = 30
    # Orientation reported with every frame, for sensors mounted sideways.
    rotation_degrees: int = 0

    def index_for(self, facing: CameraFacing) -> int:
        return self.front_index if facing is CameraFacing.FRONT else self.back_index


@dataclass(frozen=True)
class InferenceConfig:
    # 2 selects the heavy ("accurate") pose model.
    model_complexity: int = 2
    min_detection_confidence: float = 0.5
    min_tracking_confidence: float = 0.5
    visibility_threshold: float = 0.5


@dataclass(frozen=True)
class GestureConfig:
    kind: GestureKind = GestureKind.PINCH
    landmarks: Tuple[LandmarkId, LandmarkId] = DEFAULT_LANDMARK_PAIRS[GestureKind.PINCH]
    # Pixels of the upright frame; depends on capture resolution.
    threshold_px: float = 50.0


@dataclass(frozen=True)
class PipelineConfig:
    camera: CameraConfig = field(default_factory=CameraConfig)
    inference: InferenceConfig = field(default_factory=InferenceConfig)
    gesture: GestureConfig = field(default_factory=GestureConfig)
    backpressure: BackpressurePolicy = BackpressurePolicy.KEEP_LATEST
    # None waits for the in-flight inference however long it takes.
    stop_timeout_seconds: Optional[float] = None


def get_default_config_path() -> Path:
    return Path(__file__).resolve().parent / "config.json"


def _deep_get(d: Dict[str, Any], keys: List[str], default: Any = None) -> Any:
    cur: Any = d
    for k in keys:
        if not isinstance(cur, dict):
            return default
        cur = cur.get(k)
    return cur if cur is not None else default


def _warn_default(key: str, value: Any, default: Any) -> None:
    logger.warning("Invalid config value %s=%r, using %r", key, value, default)


def _as_int(key: str, v: Any, default: int) -> int:
    try:
        return int(v)
    except (TypeError, ValueError):
        _warn_default(key, v, default)
        return int(default)


def _as_float(key: str, v: Any, default: float) -> float:
    try:
        return float(v)
    except (TypeError, ValueError):
        _warn_default(key, v, default)
        return float(default)


def _as_enum(key: str, v: Any, enum_cls, default):
    if isinstance(v, enum_cls):
        return v
    try:
        return enum_cls(str(v).strip().lower())
    except ValueError:
        _warn_default(key, v, default.value)
        return default


def _positive_float(key: str, v: Any, default: float) -> float:
    val = _as_float(key, v, default)
    if val <= 0.0:
        _warn_default(key, v, default)
        return float(default)
    return val


def _probability(key: str, v: Any, default: float) -> float:
    val = _as_float(key, v, default)
    if not 0.0 <= val <= 1.0:
        _warn_default(key, v, default)
        return float(default)
    return val


def _parse_camera(raw: Dict[str, Any]) -> CameraConfig:
    d = CameraConfig()
    rotation = _as_int("camera.rotation_degrees", _deep_get(raw, ["camera", "rotation_degrees"], d.rotation_degrees), 0)
    if rotation not in (0, 90, 180, 270):
        _warn_default("camera.rotation_degrees", rotation, 0)
        rotation = 0
    fps = _as_int("camera.target_fps", _deep_get(raw, ["camera", "target_fps"], d.target_fps), d.target_fps)
    return CameraConfig(
        facing=_as_enum("camera.facing", _deep_get(raw, ["camera", "facing"], d.facing), CameraFacing, d.facing),
        front_index=_as_int("camera.front_index", _deep_get(raw, ["camera", "front_index"], d.front_index), d.front_index),
        back_index=_as_int("camera.back_index", _deep_get(raw, ["camera", "back_index"], d.back_index), d.back_index),
        width=_as_int("camera.width", _deep_get(raw, ["camera", "width"], d.width), d.width),
        height=_as_int("camera.height", _deep_get(raw, ["camera", "height"], d.height), d.height),
        target_fps=max(0, fps),
        rotation_degrees=rotation,
    )


def _parse_inference(raw: Dict[str, Any]) -> InferenceConfig:
    d = InferenceConfig()
    complexity = _as_int(
        "inference.model_complexity",
        _deep_get(raw, ["inference", "model_complexity"], d.model_complexity),
        d.model_complexity,
    )
    if complexity not in (0, 1, 2):
        _warn_default("inference.model_complexity", complexity, d.model_complexity)
        complexity = d.model_complexity
    return InferenceConfig(
        model_complexity=complexity,
        min_detection_confidence=_probability(
            "inference.min_detection_confidence",
            _deep_get(raw, ["inference", "min_detection_confidence"], d.min_detection_confidence),
            d.min_detection_confidence,
        ),
        min_tracking_confidence=_probability(
            "inference.min_tracking_confidence",
            _deep_get(raw, ["inference", "min_tracking_confidence"], d.min_tracking_confidence),
            d.min_tracking_confidence,
        ),
        visibility_threshold=_probability(
            "inference.visibility_threshold",
            _deep_get(raw, ["inference", "visibility_threshold"], d.visibility_threshold),
            d.visibility_threshold,
        ),
    )


def parse_landmark_pair(value: Any, default: Tuple[LandmarkId, LandmarkId]) -> Tuple[LandmarkId, LandmarkId]:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        _warn_default("gesture.landmarks", value, [lm.value for lm in default])
        return default
    try:
        return LandmarkId(str(value[0]).strip().lower()), LandmarkId(str(value[1]).strip().lower())
    except ValueError:
        _warn_default("gesture.landmarks", value, [lm.value for lm in default])
        return default


def gesture_config_for(kind: GestureKind, threshold_px: float = 50.0) -> GestureConfig:
    return GestureConfig(kind=kind, landmarks=DEFAULT_LANDMARK_PAIRS[kind], threshold_px=threshold_px)


def _parse_gesture(raw: Dict[str, Any]) -> GestureConfig:
    d = GestureConfig()
    kind = _as_enum("gesture.kind", _deep_get(raw, ["gesture", "kind"], d.kind), GestureKind, d.kind)
    pair_default = DEFAULT_LANDMARK_PAIRS[kind]
    pair_raw = _deep_get(raw, ["gesture", "landmarks"], None)
    landmarks = pair_default if pair_raw is None else parse_landmark_pair(pair_raw, pair_default)
    return GestureConfig(
        kind=kind,
        landmarks=landmarks,
        threshold_px=_positive_float(
            "gesture.threshold_px", _deep_get(raw, ["gesture", "threshold_px"], d.threshold_px), d.threshold_px
        ),
    )


def config_from_dict(raw: Dict[str, Any]) -> PipelineConfig:
    stop_timeout = _deep_get(raw, ["stop_timeout_seconds"], None)
    if stop_timeout is not None:
        stop_timeout = _positive_float("stop_timeout_seconds", stop_timeout, 5.0)
    return PipelineConfig(
        camera=_parse_camera(raw),
        inference=_parse_inference(raw),
        gesture=_parse_gesture(raw),
        backpressure=_as_enum(
            "backpressure",
            _deep_get(raw, ["backpressure"], BackpressurePolicy.KEEP_LATEST),
            BackpressurePolicy,
            BackpressurePolicy.KEEP_LATEST,
        ),
        stop_timeout_seconds=stop_timeout,
    )


def load_config(path: Optional[Union[str, Path]] = None) -> PipelineConfig:
    """
    Load the pipeline configuration from a JSON file.

    Without an explicit path a missing default file yields the defaults. An
    explicit path that cannot be read as a JSON object raises ConfigError.
    Individual bad values fall back to their defaults with a warning.
    """
    explicit = path is not None
    p = Path(path).expanduser().resolve() if explicit else get_default_config_path()
    if not p.exists():
        if explicit:
            raise ConfigError(f"Config file not found: {p}")
        return PipelineConfig()
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        if explicit:
            raise ConfigError(f"Could not read config file {p}: {exc}") from exc
        logger.warning("Ignoring malformed config file %s: %s", p, exc)
        return PipelineConfig()

    if not isinstance(raw, dict):
        if explicit:
            raise ConfigError(f"Config file {p} must contain a JSON object")
        logger.warning("Ignoring config file %s: not a JSON object", p)
        return PipelineConfig()
    logger.debug("Loaded config from %s", p)
    return config_from_dict(raw)
