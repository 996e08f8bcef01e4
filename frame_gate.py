import logging
from typing import Callable, Optional

from pose_types import Frame

logger = logging.getLogger(__name__)


class FrameLease:
    """
    Ownership of the one accepted frame while its inference is outstanding.

    Releasing the lease releases the frame and frees the gate for the next
    one. Only the first release() has any effect.
    """

    def __init__(self, frame: Frame, on_release: Callable[["FrameLease"], None]):
        self.frame = frame
        self._on_release = on_release
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> bool:
        if self._released:
            return False
        self._released = True
        try:
            self.frame.release()
        finally:
            self._on_release(self)
        return True

    def __enter__(self) -> "FrameLease":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


class FrameGate:
    """
    Keep-latest backpressure: at most one frame in flight.

    Not thread-safe; every call must come from the same worker thread.
    """

    def __init__(
        self,
        forward: Callable[[FrameLease], None],
        on_idle: Optional[Callable[[], None]] = None,
    ):
        self._forward = forward
        self._on_idle = on_idle
        self._in_flight: Optional[FrameLease] = None
        self.accepted = 0
        self.dropped = 0

    @property
    def in_flight(self) -> Optional[FrameLease]:
        return self._in_flight

    def submit(self, frame: Frame) -> bool:
        if self._in_flight is not None:
            self.dropped += 1
            logger.debug(
                "Dropping frame %d, frame %d still in flight", frame.sequence, self._in_flight.frame.sequence
            )
            frame.release()
            return False

        lease = FrameLease(frame, self._lease_released)
        self._in_flight = lease
        self.accepted += 1
        try:
            self._forward(lease)
        except Exception:
            lease.release()
            raise
        return True

    def _lease_released(self, lease: FrameLease) -> None:
        if self._in_flight is lease:
            self._in_flight = None
            if self._on_idle is not None:
                self._on_idle()
