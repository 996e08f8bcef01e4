import unittest
import sys
import os

# Add path to source
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import GestureConfig, gesture_config_for
from gesture_registry import build_classifier, classify, get_gesture_entries
from gestures import ProximityGesture
from pose_types import (
    GestureKind,
    GesturePhase,
    GestureState,
    IDLE_STATUS,
    Landmark,
    LandmarkId,
    Pose,
    landmark_map,
)


def _pose(*landmarks):
    return Pose(landmarks=landmark_map(*landmarks), image_size=(640, 480))


def _pinch_pose(index_xy, thumb_xy):
    return _pose(
        Landmark(LandmarkId.RIGHT_INDEX, *index_xy),
        Landmark(LandmarkId.RIGHT_THUMB, *thumb_xy),
    )


class TestClassifyScenarios(unittest.TestCase):
    def setUp(self):
        self.config = GestureConfig(threshold_px=50.0)

    def test_close_landmarks_detect_pinch(self):
        state = classify(_pinch_pose((100, 100), (110, 100)), self.config)

        self.assertEqual(state.phase, GesturePhase.DETECTED)
        self.assertEqual(state.kind, GestureKind.PINCH)
        self.assertTrue(state.is_detected)
        self.assertIn("Pinch", state.status)

    def test_far_landmarks_are_idle(self):
        state = classify(_pinch_pose((100, 100), (400, 100)), self.config)

        self.assertEqual(state, GestureState.idle())
        self.assertEqual(state.status, IDLE_STATUS)
        self.assertIsNone(state.kind)

    def test_single_landmark_is_idle(self):
        pose = _pose(Landmark(LandmarkId.RIGHT_INDEX, 100, 100))
        self.assertEqual(classify(pose, self.config), GestureState.idle())

        pose = _pose(Landmark(LandmarkId.RIGHT_THUMB, 100, 100))
        self.assertEqual(classify(pose, self.config), GestureState.idle())

    def test_empty_pose_is_idle(self):
        self.assertEqual(classify(Pose(), self.config), GestureState.idle())

    def test_other_landmarks_do_not_matter(self):
        pose = _pose(
            Landmark(LandmarkId.LEFT_INDEX, 100, 100),
            Landmark(LandmarkId.LEFT_THUMB, 101, 100),
            Landmark(LandmarkId.RIGHT_INDEX, 100, 100),
        )
        self.assertEqual(classify(pose, self.config), GestureState.idle())


class TestThresholdBoundary(unittest.TestCase):
    def test_distance_equal_to_threshold_is_idle(self):
        # 3-4-5 triangle: distance exactly 50.
        pose = _pinch_pose((0, 0), (30, 40))
        self.assertFalse(classify(pose, GestureConfig(threshold_px=50.0)).is_detected)

    def test_distance_just_below_threshold_detects(self):
        pose = _pinch_pose((0, 0), (30, 40))
        self.assertTrue(classify(pose, GestureConfig(threshold_px=50.0001)).is_detected)

    def test_distance_uses_both_axes(self):
        pose = _pinch_pose((100, 100), (130, 140))
        self.assertFalse(classify(pose, GestureConfig(threshold_px=49.0)).is_detected)
        self.assertTrue(classify(pose, GestureConfig(threshold_px=51.0)).is_detected)

    def test_depth_is_ignored(self):
        pose = _pose(
            Landmark(LandmarkId.RIGHT_INDEX, 100, 100, z=-500.0),
            Landmark(LandmarkId.RIGHT_THUMB, 105, 100, z=500.0),
        )
        self.assertTrue(classify(pose, GestureConfig(threshold_px=50.0)).is_detected)

    def test_identical_positions_detect(self):
        pose = _pinch_pose((200, 200), (200, 200))
        self.assertTrue(classify(pose, GestureConfig()).is_detected)


class TestDeterminism(unittest.TestCase):
    def test_same_input_same_output(self):
        pose = _pinch_pose((100, 100), (110, 100))
        config = GestureConfig()
        results = {classify(pose, config) for _ in range(20)}
        self.assertEqual(len(results), 1)

    def test_pose_is_not_modified(self):
        pose = _pinch_pose((100, 100), (110, 100))
        before = dict(pose.landmarks)
        classify(pose, GestureConfig())
        self.assertEqual(dict(pose.landmarks), before)


class TestGestureVariants(unittest.TestCase):
    def test_clap_uses_wrists(self):
        config = gesture_config_for(GestureKind.CLAP, threshold_px=80.0)
        pose = _pose(
            Landmark(LandmarkId.LEFT_WRIST, 300, 200),
            Landmark(LandmarkId.RIGHT_WRIST, 340, 210),
        )
        state = classify(pose, config)
        self.assertEqual(state.kind, GestureKind.CLAP)

        # Right-hand pinch landmarks alone say nothing about a clap.
        self.assertFalse(classify(_pinch_pose((0, 0), (1, 1)), config).is_detected)

    def test_left_pinch(self):
        config = gesture_config_for(GestureKind.LEFT_PINCH)
        pose = _pose(
            Landmark(LandmarkId.LEFT_INDEX, 50, 50),
            Landmark(LandmarkId.LEFT_THUMB, 60, 60),
        )
        self.assertEqual(classify(pose, config).kind, GestureKind.LEFT_PINCH)

    def test_custom_landmark_pair(self):
        config = GestureConfig(
            kind=GestureKind.PINCH,
            landmarks=(LandmarkId.NOSE, LandmarkId.RIGHT_INDEX),
            threshold_px=30.0,
        )
        pose = _pose(
            Landmark(LandmarkId.NOSE, 320, 100),
            Landmark(LandmarkId.RIGHT_INDEX, 330, 110),
        )
        self.assertTrue(classify(pose, config).is_detected)

    def test_every_registered_kind_builds(self):
        kinds = {entry.kind for entry in get_gesture_entries()}
        self.assertEqual(kinds, set(GestureKind))
        for kind in kinds:
            classifier = build_classifier(gesture_config_for(kind))
            self.assertIsInstance(classifier, ProximityGesture)
            self.assertEqual(classifier.kind, kind)

    def test_non_positive_threshold_rejected(self):
        with self.assertRaises(ValueError):
            ProximityGesture(GestureKind.PINCH, LandmarkId.RIGHT_INDEX, LandmarkId.RIGHT_THUMB, 0.0, "x")


if __name__ == '__main__':
    unittest.main()
