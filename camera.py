import logging
import threading
import time
from typing import Optional

import cv2
import numpy as np

from config import CameraConfig, CameraFacing
from errors import CameraBindingError
from interfaces import FrameCallback, FrameSource
from pose_types import Frame

logger = logging.getLogger(__name__)


class CameraFrameSource(FrameSource):
    def __init__(self, config: CameraConfig, api_preference: int = cv2.CAP_ANY):
        self.config = config
        self.api_preference = api_preference
        self._capture: Optional[cv2.VideoCapture] = None
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self._on_frame: Optional[FrameCallback] = None
        self._sequence = 0
        self._last_time = time.time()
        self._preview_lock = threading.Lock()
        self._latest_preview: Optional[np.ndarray] = None
        self._outstanding = 0
        self._count_lock = threading.Lock()

    @property
    def outstanding_frames(self) -> int:
        with self._count_lock:
            return self._outstanding

    def bind(self, facing: CameraFacing, on_frame: FrameCallback) -> None:
        if self._thread is not None:
            raise CameraBindingError("Camera source is already bound")
        index = self.config.index_for(facing)
        capture = cv2.VideoCapture(index, self.api_preference)
        if not capture.isOpened():
            capture.release()
            raise CameraBindingError(f"Could not open {facing.value} camera (index {index})")
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.config.width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.config.height)
        capture.set(cv2.CAP_PROP_FPS, self.config.target_fps)

        self._capture = capture
        self._on_frame = on_frame
        self._stop.clear()
        self._last_time = time.time()
        self._thread = threading.Thread(target=self._run, name="camera-capture", daemon=True)
        self._thread.start()
        logger.info("Bound %s camera (index %d)", facing.value, index)

    def unbind(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        if self._capture is not None:
            self._capture.release()
            self._capture = None
        self._on_frame = None
        with self._preview_lock:
            self._latest_preview = None
        if self.outstanding_frames:
            logger.debug("Camera unbound with %d frame(s) still held", self.outstanding_frames)

    def latest_preview(self) -> Optional[np.ndarray]:
        with self._preview_lock:
            return self._latest_preview

    def _read(self) -> Optional[np.ndarray]:
        ok, image = self._capture.read()
        now = time.time()
        if not ok:
            return None

        # FPS stabilization: sleep to keep processing close to target_fps.
        if self.config.target_fps > 0:
            min_frame_time = 1.0 / float(self.config.target_fps)
            elapsed = now - self._last_time
            if elapsed < min_frame_time:
                time.sleep(min_frame_time - elapsed)
        self._last_time = time.time()
        return image

    def _run(self) -> None:
        on_frame = self._on_frame
        while not self._stop.is_set():
            image = self._read()
            if image is None:
                logger.warning("Camera read failed")
                self._stop.wait(0.1)
                continue

            with self._preview_lock:
                self._latest_preview = image.copy()
            self._sequence += 1
            with self._count_lock:
                self._outstanding += 1
            frame = Frame(
                image,
                rotation_degrees=self.config.rotation_degrees,
                sequence=self._sequence,
                timestamp=self._last_time,
                on_release=self._frame_released,
            )
            on_frame(frame)

    def _frame_released(self, frame: Frame) -> None:
        with self._count_lock:
            self._outstanding -= 1
