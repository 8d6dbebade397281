"""3D 向量工具（高内聚：只做几何）。

所有运算对近零模长做 EPS 保护，避免 NaN/inf 向下游传播。
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from handscene.models import Landmark3D, Vec3

EPS = 1e-6
UNIT_Z: Vec3 = (0.0, 0.0, 1.0)


def as_vec(lm: Landmark3D) -> np.ndarray:
    return np.array([lm.x, lm.y, lm.z], dtype=np.float64)


def sub(a: Landmark3D, b: Landmark3D) -> np.ndarray:
    """a - b，即 b -> a 的向量。"""

    return as_vec(a) - as_vec(b)


def normalize(v: np.ndarray) -> Vec3:
    """单位化；模长过小时回退为 +Z 单位向量。"""

    v = np.asarray(v, dtype=np.float64).reshape(3)
    n = float(np.linalg.norm(v))
    if not math.isfinite(n) or n < EPS:
        return UNIT_Z
    u = v / n
    return (float(u[0]), float(u[1]), float(u[2]))


def mean_vec(vectors: Sequence[np.ndarray]) -> np.ndarray:
    if not vectors:
        return np.asarray(UNIT_Z, dtype=np.float64)
    return np.mean(np.stack([np.asarray(v, dtype=np.float64) for v in vectors], axis=0), axis=0)


def angle_between(a: np.ndarray, b: np.ndarray) -> float:
    """两向量夹角（弧度）。任一向量退化时返回 0；输入含非有限值时返回 NaN。"""

    na = float(np.linalg.norm(a))
    nb = float(np.linalg.norm(b))
    if na < EPS or nb < EPS:
        return 0.0
    cosang = float(np.dot(a, b) / (na * nb))
    if not math.isfinite(cosang):
        return float("nan")
    return float(math.acos(max(-1.0, min(1.0, cosang))))


def distance_2d(a: Landmark3D, b: Landmark3D) -> float:
    return float(math.hypot(a.x - b.x, a.y - b.y))
