import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import List, Optional

import cv2
import mediapipe as mp

from config import InferenceConfig
from errors import InferenceBindingError, InferenceError
from interfaces import PoseInferenceService
from pose_types import Landmark, LandmarkId, Pose, landmark_map

logger = logging.getLogger(__name__)

_ROTATE_CODES = {
    90: cv2.ROTATE_90_CLOCKWISE,
    180: cv2.ROTATE_180,
    270: cv2.ROTATE_90_COUNTERCLOCKWISE,
}


def rotate_upright(image, rotation_degrees: int):
    # rotation_degrees is how far the image must turn clockwise to be upright.
    code = _ROTATE_CODES.get(rotation_degrees)
    if code is None:
        return image
    return cv2.rotate(image, code)


def landmarks_to_pose(pose_landmarks, width: int, height: int, visibility_threshold: float) -> Pose:
    if pose_landmarks is None:
        return Pose(landmarks={}, image_size=(width, height))

    visible: List[Landmark] = []
    points = pose_landmarks.landmark
    for idx, landmark_id in enumerate(LandmarkId):
        if idx >= len(points):
            break
        lm = points[idx]
        visibility = float(getattr(lm, "visibility", 0.0) or 0.0)
        if visibility < visibility_threshold:
            continue
        visible.append(
            Landmark(
                id=landmark_id,
                x=float(lm.x) * width,
                y=float(lm.y) * height,
                # z shares the scale of x in the model output.
                z=float(lm.z) * width,
                visibility=visibility,
            )
        )
    return Pose(landmarks=landmark_map(*visible), image_size=(width, height))


class MediaPipePoseService(PoseInferenceService):
    """
    MediaPipe Pose running on its own single-thread executor.

    The model is created by bind(), which the pipeline calls from start(),
    and dropped again by close().
    """

    def __init__(self, config: InferenceConfig):
        self.config = config
        self._pose = None
        self._executor: Optional[ThreadPoolExecutor] = None

    def bind(self) -> None:
        if self._pose is not None:
            return
        try:
            self._pose = mp.solutions.pose.Pose(
                static_image_mode=False,
                model_complexity=self.config.model_complexity,
                smooth_landmarks=True,
                enable_segmentation=False,
                min_detection_confidence=self.config.min_detection_confidence,
                min_tracking_confidence=self.config.min_tracking_confidence,
            )
        except Exception as exc:
            raise InferenceBindingError(f"Could not create MediaPipe pose model: {exc}") from exc
        # The model keeps tracking state between calls, so calls are serialized.
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pose-inference")
        logger.info("MediaPipe pose model ready (complexity %d)", self.config.model_complexity)

    def infer(self, image, rotation_degrees: int) -> "Future[Pose]":
        if self._executor is None:
            raise InferenceError("Pose model is not bound")
        return self._executor.submit(self._process, image, rotation_degrees)

    def _process(self, image, rotation_degrees: int) -> Pose:
        try:
            upright = rotate_upright(image, rotation_degrees)
            height, width = upright.shape[:2]
            frame_rgb = cv2.cvtColor(upright, cv2.COLOR_BGR2RGB)
            results = self._pose.process(frame_rgb)
        except Exception as exc:
            raise InferenceError(f"Pose detection failed: {exc}") from exc
        return landmarks_to_pose(results.pose_landmarks, width, height, self.config.visibility_threshold)

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        if self._pose is not None:
            self._pose.close()
            self._pose = None
