import math
from typing import Tuple

from pose_types import Landmark


def _to_xy(lm: Landmark) -> Tuple[float, float]:
    return lm.x, lm.y


def distance_2d(a: Landmark, b: Landmark) -> float:
    # Image-plane distance only; depth is ignored.
    ax, ay = _to_xy(a)
    bx, by = _to_xy(b)
    return math.hypot(ax - bx, ay - by)
