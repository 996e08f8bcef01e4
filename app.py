import argparse
import dataclasses
import logging
import sys
from typing import List, Optional

from camera import CameraFrameSource
from config import CameraFacing, PipelineConfig, gesture_config_for, load_config
from errors import BindingError, ConfigError
from pipeline import PipelineController
from pose_detection import MediaPipePoseService
from pose_types import GestureKind
from state_sink import QueueStateSink

logger = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Detect hand gestures from the camera and print the current state.")
    p.add_argument("--config", default=None, help="Path to a JSON config file (optional)")
    p.add_argument("--facing", choices=[f.value for f in CameraFacing], default=None, help="Camera to use")
    p.add_argument("--gesture", choices=[k.value for k in GestureKind], default=None, help="Gesture to detect")
    p.add_argument("--threshold", type=float, default=None, help="Detection distance in pixels")
    p.add_argument("--debug", action="store_true", help="Enable debug logging.")
    return p


def apply_overrides(config: PipelineConfig, args: argparse.Namespace) -> PipelineConfig:
    gesture = config.gesture
    if args.gesture:
        gesture = gesture_config_for(GestureKind(args.gesture), gesture.threshold_px)
    if args.threshold is not None:
        if args.threshold <= 0:
            raise ConfigError("--threshold must be positive")
        gesture = dataclasses.replace(gesture, threshold_px=float(args.threshold))
    camera = config.camera
    if args.facing:
        camera = dataclasses.replace(camera, facing=CameraFacing(args.facing))
    return dataclasses.replace(config, gesture=gesture, camera=camera)


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s [%(threadName)s] %(message)s",
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    configure_logging(args.debug)

    try:
        config = apply_overrides(load_config(args.config), args)
    except ConfigError as exc:
        logger.error("%s", exc)
        return 2

    sink = QueueStateSink()
    inference = MediaPipePoseService(config.inference)
    source = CameraFrameSource(config.camera)
    controller = PipelineController(config, source, inference, sink)
    try:
        controller.start()
    except BindingError as exc:
        logger.error("Could not start: %s", exc)
        inference.close()
        return 1

    print(controller.current_gesture.status, flush=True)
    last_status = controller.current_gesture.status
    try:
        while True:
            state = sink.get(timeout=0.5)
            if state is None or state.status == last_status:
                continue
            last_status = state.status
            print(state.status, flush=True)
    except KeyboardInterrupt:
        pass
    finally:
        controller.stop()
        inference.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
