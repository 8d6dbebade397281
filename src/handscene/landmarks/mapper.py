"""landmark 模型输出 -> 原图像素坐标。"""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np

from handscene.models import NUM_LANDMARKS, DetectionBoxOnFrame, Landmark3D

logger = logging.getLogger(__name__)

# ROI 轻微错位时，关键点归一化坐标可能略超出 [0, 1]。
LANDMARK_NORM_MIN = -0.5
LANDMARK_NORM_MAX = 1.5


def landmarks_to_array(landmarks: np.ndarray | Sequence[float]) -> np.ndarray:
    """把 63 值缓冲整理为 (21, 3)；长度不足补零，非有限值置零。"""

    flat = np.asarray(landmarks, dtype=np.float64).reshape(-1)
    need = NUM_LANDMARKS * 3
    if flat.size < need:
        logger.warning("landmark buffer too short: %d < %d, zero padded", flat.size, need)
        flat = np.concatenate([flat, np.zeros(need - flat.size, dtype=np.float64)])
    flat = np.nan_to_num(flat[:need], nan=0.0, posinf=0.0, neginf=0.0)
    return flat.reshape(NUM_LANDMARKS, 3)


def map_landmarks_to_frame(
    landmarks: np.ndarray | Sequence[float],
    roi: DetectionBoxOnFrame,
) -> tuple[Landmark3D, ...]:
    """把 ROI 内归一化关键点映射回帧像素坐标（保持下标顺序，腕部在前）。

    pixel_x = roi.x_min + clamp(x) * roi.w_px，y 同理；z 原样透传。
    """

    arr = landmarks_to_array(landmarks)
    xy = np.clip(arr[:, :2], LANDMARK_NORM_MIN, LANDMARK_NORM_MAX)
    px = roi.x_min + xy[:, 0] * roi.w_px
    py = roi.y_min + xy[:, 1] * roi.h_px
    return tuple(Landmark3D(x=float(px[i]), y=float(py[i]), z=float(arr[i, 2])) for i in range(NUM_LANDMARKS))
