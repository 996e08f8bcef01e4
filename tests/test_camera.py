import os
import sys
import threading
import unittest
from unittest.mock import MagicMock, patch

import numpy as np

# Add path to source
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from camera import CameraFrameSource
from config import CameraConfig, CameraFacing
from errors import BindingError, CameraBindingError


class TestCameraFrameSource(unittest.TestCase):
    def setUp(self):
        patcher = patch("camera.cv2.VideoCapture")
        self.video_capture = patcher.start()
        self.addCleanup(patcher.stop)
        self.capture = self.video_capture.return_value
        self.capture.isOpened.return_value = True
        self.image = np.zeros((4, 4, 3), dtype=np.uint8)
        self.capture.read.return_value = (True, self.image)
        self.config = CameraConfig(front_index=0, back_index=2, target_fps=0, rotation_degrees=180)
        self.source = CameraFrameSource(self.config)
        self.addCleanup(self.source.unbind)

    def test_open_failure_is_binding_error(self):
        self.capture.isOpened.return_value = False

        with self.assertRaises(CameraBindingError) as ctx:
            self.source.bind(CameraFacing.FRONT, MagicMock())

        self.assertIsInstance(ctx.exception, BindingError)
        self.capture.release.assert_called_once_with()

    def test_facing_selects_camera_index(self):
        self.source.bind(CameraFacing.BACK, lambda frame: frame.release())
        self.source.unbind()

        self.assertEqual(self.video_capture.call_args[0][0], 2)

    def test_frames_have_increasing_sequence_and_rotation(self):
        frames = []
        done = threading.Event()

        def on_frame(frame):
            frames.append(frame)
            frame.release()
            if len(frames) >= 3:
                done.set()

        self.source.bind(CameraFacing.FRONT, on_frame)
        self.assertTrue(done.wait(5))
        self.source.unbind()

        sequences = [f.sequence for f in frames]
        self.assertEqual(sequences, sorted(sequences))
        self.assertEqual(len(set(sequences)), len(sequences))
        self.assertTrue(all(f.rotation_degrees == 180 for f in frames))
        self.assertEqual(self.source.outstanding_frames, 0)
        self.capture.release.assert_called_once_with()

    def test_unbind_reports_frames_still_held(self):
        held = []
        seen = threading.Event()

        def on_frame(frame):
            if held:
                frame.release()
            else:
                held.append(frame)
            seen.set()

        self.source.bind(CameraFacing.FRONT, on_frame)
        self.assertTrue(seen.wait(5))

        with self.assertLogs("camera", level="DEBUG") as logs:
            self.source.unbind()

        self.assertEqual(self.source.outstanding_frames, 1)
        self.assertIn("1 frame(s) still held", logs.output[0])
        held[0].release()
        self.assertEqual(self.source.outstanding_frames, 0)

    def test_binding_twice_is_rejected(self):
        self.source.bind(CameraFacing.FRONT, lambda frame: frame.release())

        with self.assertRaises(CameraBindingError):
            self.source.bind(CameraFacing.FRONT, lambda frame: frame.release())

    def test_preview_keeps_latest_image(self):
        seen = threading.Event()

        def on_frame(frame):
            frame.release()
            seen.set()

        self.source.bind(CameraFacing.FRONT, on_frame)
        self.assertTrue(seen.wait(5))

        preview = self.source.latest_preview()
        self.assertIsNotNone(preview)
        self.assertEqual(preview.shape, self.image.shape)

        self.source.unbind()
        self.assertIsNone(self.source.latest_preview())


if __name__ == '__main__':
    unittest.main()
