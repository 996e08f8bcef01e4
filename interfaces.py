from abc import ABC, abstractmethod
from concurrent.futures import Future
from typing import Callable

from config import CameraFacing
from pose_types import Frame, Pose

FrameCallback = Callable[[Frame], None]


class FrameSource(ABC):
    """
    Producer of frames, bound for the lifetime of a running pipeline.

    on_frame is called from the source's own thread; the receiver owns each
    frame it is given and must release it.
    """

    @abstractmethod
    def bind(self, facing: CameraFacing, on_frame: FrameCallback) -> None: ...

    @abstractmethod
    def unbind(self) -> None: ...


class PoseInferenceService(ABC):
    """
    Asynchronous pose detector.

    bind() acquires the model and may raise InferenceBindingError; it is
    called on every pipeline start and must tolerate repeat calls. infer()
    must return without waiting for the model; the future resolves to a Pose
    or fails with InferenceError.
    """

    def bind(self) -> None:
        pass

    @abstractmethod
    def infer(self, image, rotation_degrees: int) -> "Future[Pose]": ...

    def close(self) -> None:
        pass
