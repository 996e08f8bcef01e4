import logging
import sys
from typing import List, Optional

import cv2
from PySide6 import QtCore, QtGui, QtWidgets

from app import apply_overrides, build_arg_parser, configure_logging
from camera import CameraFrameSource
from config import PipelineConfig, load_config
from errors import BindingError, ConfigError
from gesture_registry import get_gesture_entry
from pipeline import PipelineController
from pose_detection import MediaPipePoseService
from pose_types import GestureState
from state_sink import StateSink

logger = logging.getLogger(__name__)


class _StateSignal(QtCore.QObject):
    state_changed = QtCore.Signal(object)


class QtStateSink(StateSink):
    """
    Delivers states to the GUI thread.

    Emitting from the pipeline worker reaches slots of objects living on the
    GUI thread through a queued connection.
    """

    def __init__(self):
        self._signal = _StateSignal()

    @property
    def state_changed(self):
        return self._signal.state_changed

    def publish(self, state: GestureState) -> None:
        self._signal.state_changed.emit(state)


class GesturePage(QtWidgets.QWidget):
    def __init__(self, config: PipelineConfig, parent=None):
        super().__init__(parent)
        self.config = config
        self._setup_ui()
        self._setup_runtime()

    def _setup_ui(self):
        self.setObjectName("GesturePage")
        layout = QtWidgets.QHBoxLayout(self)
        layout.setContentsMargins(16, 16, 16, 16)
        layout.setSpacing(16)

        self.video_label = QtWidgets.QLabel("Camera feed")
        self.video_label.setAlignment(QtCore.Qt.AlignCenter)
        self.video_label.setMinimumSize(720, 480)
        self.video_label.setStyleSheet("background:#101214; border-radius:12px;")

        self.stats_box = QtWidgets.QFrame()
        self.stats_box.setMinimumWidth(260)
        self.stats_box.setStyleSheet(
            "QFrame{background:#15181b;border:1px solid #2b2f33;border-radius:10px;color:#e6e6e6;}"
        )
        stats_layout = QtWidgets.QVBoxLayout(self.stats_box)
        stats_layout.setContentsMargins(12, 12, 12, 12)
        stats_layout.setSpacing(8)

        entry = get_gesture_entry(self.config.gesture.kind)
        first, second = self.config.gesture.landmarks
        self.gesture_label = QtWidgets.QLabel(f"Gesture: {entry.label}")
        self.view_hint_label = QtWidgets.QLabel(f"View: {entry.view_hint}")
        self.landmarks_label = QtWidgets.QLabel(f"Points: {first.value} / {second.value}")
        self.threshold_label = QtWidgets.QLabel(f"Threshold: {self.config.gesture.threshold_px:.0f} px")
        self.frames_label = QtWidgets.QLabel("Frames: 0 processed, 0 dropped")
        self.status_label = QtWidgets.QLabel(GestureState.idle().status)
        self.status_label.setWordWrap(True)

        for lbl in [
            self.gesture_label,
            self.view_hint_label,
            self.landmarks_label,
            self.threshold_label,
            self.frames_label,
        ]:
            lbl.setStyleSheet("font-size:14px;")
            stats_layout.addWidget(lbl)
        stats_layout.addStretch(1)
        stats_layout.addWidget(self.status_label)
        self._set_status_style(False)

        layout.addWidget(self.video_label, 1)
        layout.addWidget(self.stats_box)

    def _setup_runtime(self):
        self.sink = QtStateSink()
        self.sink.state_changed.connect(self._on_state)
        self.source = CameraFrameSource(self.config.camera)
        self.inference: Optional[MediaPipePoseService] = None
        self.controller: Optional[PipelineController] = None

        self.timer = QtCore.QTimer(self)
        self.timer.timeout.connect(self._update_frame)

    def start_pipeline(self):
        if self.controller is not None:
            return
        try:
            self.inference = MediaPipePoseService(self.config.inference)
            controller = PipelineController(self.config, self.source, self.inference, self.sink)
            controller.start()
        except BindingError as exc:
            logger.error("Could not start: %s", exc)
            self.status_label.setText(f"Could not start: {exc}")
            self._set_status_style(False, error=True)
            if self.inference is not None:
                self.inference.close()
                self.inference = None
            return
        self.controller = controller
        self.timer.start(33)

    def stop_pipeline(self):
        self.timer.stop()
        if self.controller is not None:
            self.controller.stop()
            self.controller = None
        if self.inference is not None:
            self.inference.close()
            self.inference = None

    def _on_state(self, state: GestureState):
        self.status_label.setText(state.status)
        self._set_status_style(state.is_detected)

    def _set_status_style(self, detected: bool, error: bool = False):
        color = "#ff9b9b" if error else ("#5fe0b5" if detected else "#e6e6e6")
        self.status_label.setStyleSheet(f"font-size:18px;font-weight:600;color:{color};")

    def _update_frame(self):
        if self.controller is not None:
            stats = self.controller.stats()
            self.frames_label.setText(
                f"Frames: {stats.frames_classified} processed, {stats.frames_dropped} dropped"
            )

        frame = self.source.latest_preview()
        if frame is None:
            return

        # Convert to QImage
        frame_rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        h, w, ch = frame_rgb.shape
        bytes_per_line = ch * w
        image = QtGui.QImage(frame_rgb.data, w, h, bytes_per_line, QtGui.QImage.Format_RGB888)
        pixmap = QtGui.QPixmap.fromImage(image)
        self.video_label.setPixmap(pixmap.scaled(self.video_label.size(), QtCore.Qt.KeepAspectRatio))


class MainWindow(QtWidgets.QMainWindow):
    def __init__(self, config: PipelineConfig):
        super().__init__()
        self.setWindowTitle("Hand Gesture Remote")
        self.resize(1280, 720)
        self.setStyleSheet("QMainWindow{background:#0f1113;}")
        self.page = GesturePage(config)
        self.setCentralWidget(self.page)

    def showEvent(self, event):
        super().showEvent(event)
        self.page.start_pipeline()

    def closeEvent(self, event):
        self.page.stop_pipeline()
        super().closeEvent(event)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    configure_logging(args.debug)
    try:
        config = apply_overrides(load_config(args.config), args)
    except ConfigError as exc:
        logger.error("%s", exc)
        return 2

    app = QtWidgets.QApplication(sys.argv[:1])
    window = MainWindow(config)
    window.show()
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
