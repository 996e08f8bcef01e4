import queue
from abc import ABC, abstractmethod
from typing import Callable, Optional

from pose_types import GestureState


class StateSink(ABC):
    """Receives gesture states; publish() is called from the pipeline worker thread."""

    @abstractmethod
    def publish(self, state: GestureState) -> None: ...


class QueueStateSink(StateSink):
    """
    Hands states to whichever thread drains the queue.

    publish() never blocks; when the consumer falls behind the oldest
    pending state is discarded.
    """

    def __init__(self, maxsize: int = 32):
        self._queue: "queue.Queue[GestureState]" = queue.Queue(maxsize=maxsize)

    def publish(self, state: GestureState) -> None:
        while True:
            try:
                self._queue.put_nowait(state)
                return
            except queue.Full:
                try:
                    self._queue.get_nowait()
                except queue.Empty:
                    pass

    def get(self, timeout: Optional[float] = None) -> Optional[GestureState]:
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None


class CallbackStateSink(StateSink):
    def __init__(self, callback: Callable[[GestureState], None]):
        self._callback = callback

    def publish(self, state: GestureState) -> None:
        self._callback(state)
