"""二维几何工具：三点夹角与两点距离"""

import math
from typing import Tuple


def _xy(point) -> Tuple[float, float]:
    """兼容 (x, y) 元组和带 x/y 属性的对象。"""
    if hasattr(point, "x") and hasattr(point, "y"):
        return float(point.x), float(point.y)
    return float(point[0]), float(point[1])


def angle_between(a, b, c) -> float:
    """
    计算以 b 为顶点、射线 b→a 与 b→c 的夹角。

    Args:
        a, b, c: 二维点

    Returns:
        角度（度），范围 [0, 180]
    """
    ax, ay = _xy(a)
    bx, by = _xy(b)
    cx, cy = _xy(c)

    radians = math.atan2(cy - by, cx - bx) - math.atan2(ay - by, ax - bx)
    angle = abs(math.degrees(radians))

    # atan2 回绕产生的优角折回 [0, 180]
    if angle > 180.0:
        angle = 360.0 - angle

    return angle


def distance(a, b) -> float:
    """两点欧氏距离"""
    return math.dist(_xy(a), _xy(b))
