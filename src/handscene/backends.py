"""推理后端适配层。

目标：
- 给流水线提供统一的 run_detector(image) / run_landmarks(roi_image) 形式。
- 没有真实模型时，用 fake backend 合成“看起来像模型输出”的原始张量，保证端到端链路可跑通。

说明：
- 这里只负责产出原始张量；解码、NMS、解释全部在引擎里完成。
- 真实的推理运行时（例如 TFLite/ONNX）由调用方实现 HandModelBackend 协议后注入。
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

import numpy as np

from handscene.detection.anchors import PALM_DETECTION_ANCHORS, anchors_to_array
from handscene.detection.decode import DETECTION_VALUES_PER_ANCHOR, DETECTOR_SCALE
from handscene.models import NUM_PALM_KEYPOINTS, Anchor, Handedness, ModelReadiness, RawDetectorOutput

# 演示用的一只张开的右手（整帧归一化坐标，手腕在下方）。
MOCK_HAND_POINTS: tuple[tuple[float, float], ...] = (
    (0.50, 0.80),
    (0.45, 0.75),
    (0.40, 0.70),
    (0.37, 0.65),
    (0.35, 0.62),
    (0.52, 0.75),
    (0.53, 0.65),
    (0.54, 0.55),
    (0.55, 0.50),
    (0.56, 0.76),
    (0.57, 0.64),
    (0.585, 0.52),
    (0.595, 0.47),
    (0.60, 0.78),
    (0.615, 0.67),
    (0.63, 0.57),
    (0.64, 0.52),
    (0.63, 0.80),
    (0.645, 0.71),
    (0.66, 0.62),
    (0.67, 0.57),
)


def mock_hand_landmarks() -> np.ndarray:
    """把演示手型换算到 ROI 内归一化坐标，返回扁平的 63 维缓冲。"""

    pts = np.asarray(MOCK_HAND_POINTS, dtype=np.float64)
    center = 0.5 * (pts.min(axis=0) + pts.max(axis=0))
    xy = (pts - center) * 2.0 + 0.5
    z = -0.01 * (np.arange(pts.shape[0]) % 4)
    return np.concatenate([xy, z[:, None]], axis=1).reshape(-1)


class HandModelBackend(Protocol):
    """最小推理后端接口。"""

    @property
    def readiness(self) -> ModelReadiness:
        ...

    def run_detector(self, image: Any) -> RawDetectorOutput:
        ...

    def run_landmarks(self, roi_image: Any) -> tuple[np.ndarray, list[np.ndarray]]:
        ...


def _nearest_anchor(anchor_arr: np.ndarray, cx: float, cy: float) -> int:
    d2 = (anchor_arr[:, 0] - cx) ** 2 + (anchor_arr[:, 1] - cy) ** 2
    return int(np.argmin(d2))


@dataclass
class FakeHandBackend:
    """调试用假后端：在固定位置合成手掌检测张量，并为每个 ROI 返回同一只演示手。

    说明：
        - 检测张量按解码公式反推（anchor 尺寸为 1 时，尺寸项为 192 * ln(size)）。
        - 每次 run_detector 视为新的一帧：中心按 drift_per_frame 平移，
          同时重置 handedness 的轮转下标。
    """

    palm_centers: tuple[tuple[float, float], ...] = ((0.3, 0.5), (0.7, 0.5))
    palm_size: float = 0.25
    palm_logit: float = 6.0
    background_logit: float = -8.0
    drift_per_frame: tuple[float, float] = (0.0, 0.0)
    handedness: tuple[Handedness, ...] = ("Right", "Left")
    handedness_confidence: float = 0.9
    presence: float = 0.97
    anchors: Sequence[Anchor] = PALM_DETECTION_ANCHORS
    readiness: ModelReadiness = ModelReadiness.READY
    _frame_index: int = field(default=0, init=False, repr=False)
    _hand_cursor: int = field(default=0, init=False, repr=False)

    def _encode_palm(self, reg: np.ndarray, anchor: np.ndarray, cx: float, cy: float) -> None:
        ax, ay, aw, ah = (float(v) for v in anchor)
        size = float(self.palm_size)
        reg[0] = (cy - ay) / ah * DETECTOR_SCALE
        reg[1] = (cx - ax) / aw * DETECTOR_SCALE
        reg[2] = math.log(size / ah) * DETECTOR_SCALE
        reg[3] = math.log(size / aw) * DETECTOR_SCALE

        # palm 关键点从手腕（下）到中指根（上）排成一条竖线。
        for k in range(NUM_PALM_KEYPOINTS):
            t = k / float(NUM_PALM_KEYPOINTS - 1)
            ky = cy + size * (0.35 - 0.6 * t)
            reg[4 + 2 * k] = (ky - ay) / ah * DETECTOR_SCALE
            reg[4 + 2 * k + 1] = (cx - ax) / aw * DETECTOR_SCALE

    def run_detector(self, image: Any) -> RawDetectorOutput:
        anchor_arr = anchors_to_array(tuple(self.anchors))
        n = int(anchor_arr.shape[0])
        raw_boxes = np.zeros((n, DETECTION_VALUES_PER_ANCHOR), dtype=np.float32)
        raw_scores = np.full((n,), float(self.background_logit), dtype=np.float32)

        dx = float(self.drift_per_frame[0]) * self._frame_index
        dy = float(self.drift_per_frame[1]) * self._frame_index
        for cx0, cy0 in self.palm_centers:
            cx = float(np.clip(cx0 + dx, 0.0, 1.0))
            cy = float(np.clip(cy0 + dy, 0.0, 1.0))
            idx = _nearest_anchor(anchor_arr, cx, cy)
            reg = np.zeros((DETECTION_VALUES_PER_ANCHOR,), dtype=np.float64)
            self._encode_palm(reg, anchor_arr[idx], cx, cy)
            raw_boxes[idx] = reg
            raw_scores[idx] = float(self.palm_logit)

        self._frame_index += 1
        self._hand_cursor = 0
        return RawDetectorOutput(raw_boxes=raw_boxes.reshape(-1), raw_scores=raw_scores)

    def run_landmarks(self, roi_image: Any) -> tuple[np.ndarray, list[np.ndarray]]:
        label = self.handedness[self._hand_cursor % len(self.handedness)] if self.handedness else "Right"
        self._hand_cursor += 1

        p = float(self.handedness_confidence)
        softmax = np.array([p, 1.0 - p] if label == "Left" else [1.0 - p, p], dtype=np.float32)
        aux = [
            np.array([self.presence], dtype=np.float32),
            softmax,
            np.full((21,), 0.9, dtype=np.float32),
        ]
        return mock_hand_landmarks().astype(np.float32), aux


def create_backend(*, name: str, **kwargs: Any) -> HandModelBackend:
    """创建推理后端。

    Args:
        name: 目前仅支持 fake。
        **kwargs: 透传给后端构造函数。

    Returns:
        HandModelBackend 实例。
    """

    name = str(name).strip().lower()
    if name == "fake":
        return FakeHandBackend(**kwargs)

    raise ValueError(f"unknown backend: {name} (expected: fake)")
