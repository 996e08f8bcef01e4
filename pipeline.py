import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from config import BackpressurePolicy, PipelineConfig
from errors import BindingError, CameraPermissionError, InferenceBindingError, InferenceError
from frame_gate import FrameGate, FrameLease
from gesture_registry import build_classifier
from interfaces import FrameSource, PoseInferenceService
from pose_types import Frame, GestureState
from state_sink import StateSink

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


@dataclass(frozen=True)
class PipelineStats:
    frames_accepted: int
    frames_dropped: int
    frames_classified: int
    inference_failures: int


class PipelineController:
    """
    Runs frames from a FrameSource through pose inference and gesture
    classification, publishing each classified state to a StateSink.

    The frame gate, the inference call, completion handling and
    classification all run on one worker thread owned by the controller.
    Inference completes on the service's own thread and is handed back to
    the worker before anything is touched. The sink is the only thing called
    from the worker that may live elsewhere. Each start() opens a new gate,
    so a frame left in flight by a timed-out stop() never blocks the next run.
    """

    def __init__(
        self,
        config: PipelineConfig,
        source: FrameSource,
        inference: PoseInferenceService,
        sink: StateSink,
        permission_check: Optional[Callable[[], bool]] = None,
    ):
        if config.backpressure is not BackpressurePolicy.KEEP_LATEST:
            raise ValueError(f"Unsupported backpressure policy: {config.backpressure}")
        self.config = config
        self._source = source
        self._inference = inference
        self._sink = sink
        self._permission_check = permission_check
        self._classifier = build_classifier(config.gesture)

        self._lifecycle_lock = threading.Lock()
        self._state = PipelineState.STOPPED
        self._worker: Optional[ThreadPoolExecutor] = None
        self._worker_ident: Optional[int] = None
        self._open_gate()

        self._current = GestureState.idle()
        self._classified = 0
        self._failures = 0
        self._earlier_accepted = 0
        self._earlier_dropped = 0

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def current_gesture(self) -> GestureState:
        return self._current

    def stats(self) -> PipelineStats:
        return PipelineStats(
            frames_accepted=self._earlier_accepted + self._gate.accepted,
            frames_dropped=self._earlier_dropped + self._gate.dropped,
            frames_classified=self._classified,
            inference_failures=self._failures,
        )

    def __enter__(self) -> "PipelineController":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    # Lifecycle

    def start(self) -> None:
        with self._lifecycle_lock:
            if self._state is PipelineState.RUNNING:
                return
            self._state = PipelineState.STARTING
            logger.info("Starting gesture pipeline (%s)", self.config.gesture.kind.value)

            if self._permission_check is not None and not self._permission_check():
                self._state = PipelineState.STOPPED
                raise CameraPermissionError("Camera permission not granted")

            try:
                self._inference.bind()
            except Exception as exc:
                self._state = PipelineState.STOPPED
                if isinstance(exc, BindingError):
                    raise
                raise InferenceBindingError(f"Could not bind inference service: {exc}") from exc

            self._retire_gate()
            self._open_gate()
            self._worker = ThreadPoolExecutor(
                max_workers=1, thread_name_prefix="gesture-worker", initializer=self._mark_worker_thread
            )
            try:
                self._source.bind(self.config.camera.facing, self._on_frame)
            except Exception as exc:
                self._worker.shutdown(wait=True)
                self._worker = None
                self._worker_ident = None
                self._state = PipelineState.STOPPED
                if isinstance(exc, BindingError):
                    raise
                raise BindingError(f"Could not bind frame source: {exc}") from exc
            self._state = PipelineState.RUNNING
            logger.info("Gesture pipeline running")

    def stop(self) -> None:
        if self._worker_ident is not None and threading.get_ident() == self._worker_ident:
            raise RuntimeError("stop() cannot be called from the pipeline worker thread")
        with self._lifecycle_lock:
            if self._state is PipelineState.STOPPED:
                return
            self._state = PipelineState.STOPPING
            logger.info("Stopping gesture pipeline")
            worker = self._worker

            self._source.unbind()
            # Frames handed over before unbind are released by _submit_frame.
            worker.submit(lambda: None).result()
            if not self._idle.wait(self.config.stop_timeout_seconds):
                # The lease stays with this run's gate; the next start() opens a new one.
                lease = self._gate.in_flight
                logger.warning(
                    "Frame %d still in flight after %.1fs; it is released on completion",
                    lease.frame.sequence if lease is not None else -1,
                    self.config.stop_timeout_seconds,
                )
            worker.shutdown(wait=True)
            self._worker = None
            self._worker_ident = None
            self._state = PipelineState.STOPPED
            logger.info("Gesture pipeline stopped (%s)", self.stats())

    def _open_gate(self) -> None:
        idle = threading.Event()
        idle.set()
        self._idle = idle
        self._gate = FrameGate(self._dispatch, on_idle=idle.set)

    def _retire_gate(self) -> None:
        self._earlier_accepted += self._gate.accepted
        self._earlier_dropped += self._gate.dropped

    def _mark_worker_thread(self) -> None:
        self._worker_ident = threading.get_ident()

    # Producer thread

    def _on_frame(self, frame: Frame) -> None:
        worker = self._worker
        if self._state is not PipelineState.RUNNING or worker is None:
            frame.release()
            return
        try:
            worker.submit(self._submit_frame, frame)
        except RuntimeError:
            # Worker already shut down.
            frame.release()

    # Worker thread

    def _submit_frame(self, frame: Frame) -> None:
        if self._state is not PipelineState.RUNNING:
            frame.release()
            return
        if self._gate.submit(frame):
            self._idle.clear()

    def _dispatch(self, lease: FrameLease) -> None:
        frame = lease.frame
        try:
            future = self._inference.infer(frame.image, frame.rotation_degrees)
        except Exception as exc:
            future = Future()
            future.set_exception(InferenceError(f"Inference call raised: {exc}", frame.sequence))
        worker = self._worker
        future.add_done_callback(lambda done: self._post_completion(worker, lease, done))

    def _post_completion(self, worker: ThreadPoolExecutor, lease: FrameLease, future: Future) -> None:
        try:
            worker.submit(self._on_inference_done, lease, future)
        except RuntimeError:
            # stop() gave up waiting and the worker is gone.
            logger.debug("Worker gone, releasing frame %d on completion thread", lease.frame.sequence)
            lease.release()

    def _on_inference_done(self, lease: FrameLease, future: Future) -> None:
        with lease:
            sequence = lease.frame.sequence
            try:
                pose = future.result()
            except Exception as exc:
                self._failures += 1
                logger.warning("Pose inference failed for frame %d: %s", sequence, exc)
                return

            state = self._classifier.classify(pose)
            self._current = state
            self._classified += 1
            logger.debug("Frame %d classified as %s", sequence, state.phase.value)
            try:
                self._sink.publish(state)
            except Exception:
                logger.exception("State sink failed to accept %s", state)
