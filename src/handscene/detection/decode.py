"""palm 检测器原始输出解码。

输入：
- raw_boxes：[anchors x 18]，单个 anchor 的布局为 [y, x, h, w, 7 x (y, x)]
- raw_scores：[anchors]，logit

输出：
- 每个 anchor 一个候选框（未过滤、未排序），以 numpy 数组形式保存，按需再物化为 DetectionBox。

说明：
- 偏移量按检测器训练时的归一化常量 192.0 缩放，尺寸项取指数。
- 所有归一化输出夹紧到 [0, 1]。
- 输入长度不匹配只记录告警，不抛异常（引擎对张量内容不设致命错误）。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from handscene.detection.anchors import anchors_to_array
from handscene.models import NUM_PALM_KEYPOINTS, Anchor, DetectionBox, RawDetectorOutput

logger = logging.getLogger(__name__)

DETECTION_VALUES_PER_ANCHOR = 4 + NUM_PALM_KEYPOINTS * 2
DETECTOR_SCALE = 192.0


def stable_sigmoid(x: np.ndarray | float) -> np.ndarray:
    """数值稳定的 sigmoid：按符号分支，避免大负 logit 时 exp 溢出。"""

    x = np.asarray(x, dtype=np.float64)
    e = np.exp(-np.abs(x))
    return np.where(x >= 0, 1.0 / (1.0 + e), e / (1.0 + e))


@dataclass(frozen=True)
class DecodedDetections:
    """全部 anchor 的解码结果（与 anchor 顺序一致）。"""

    ids: np.ndarray  # (N,) int
    scores: np.ndarray  # (N,)
    boxes: np.ndarray  # (N, 4): cx, cy, w, h
    keypoints: np.ndarray  # (N, 7, 2): x, y
    rotation: np.ndarray  # (N,)

    @property
    def count(self) -> int:
        return int(self.ids.shape[0])

    def indices_above(self, score_threshold: float) -> np.ndarray:
        return np.flatnonzero(self.scores >= float(score_threshold))

    def to_boxes(self, indices: Sequence[int] | np.ndarray | None = None) -> list[DetectionBox]:
        """把指定下标（默认全部）物化为 DetectionBox 列表，保持下标顺序。"""

        idx = range(self.count) if indices is None else [int(i) for i in indices]
        out: list[DetectionBox] = []
        for i in idx:
            cx, cy, w, h = self.boxes[i]
            kps = tuple((float(p[0]), float(p[1])) for p in self.keypoints[i])
            out.append(
                DetectionBox(
                    id=int(self.ids[i]),
                    score=float(self.scores[i]),
                    cx=float(cx),
                    cy=float(cy),
                    w=float(w),
                    h=float(h),
                    rotation=float(self.rotation[i]),
                    palm_keypoints=kps,
                )
            )
        return out


def _as_flat(x: np.ndarray | Sequence[float], *, keep_inf: bool = False) -> np.ndarray:
    arr = np.asarray(x, dtype=np.float64).reshape(-1)
    if keep_inf:
        # 饱和 logit 保留 ±inf，由 stable_sigmoid 映射为 1 / 0。
        return np.nan_to_num(arr, nan=0.0, posinf=np.inf, neginf=-np.inf)
    return np.nan_to_num(arr, nan=0.0, posinf=0.0, neginf=0.0)


def decode_detections(
    output: RawDetectorOutput,
    anchors: Sequence[Anchor] | np.ndarray,
) -> DecodedDetections:
    """把检测器原始输出解码为归一化候选框。

    Args:
        output: 原始回归/打分张量。
        anchors: anchor 序列或 (N, 4) 数组。

    Returns:
        DecodedDetections，数量为 min(len(raw_boxes) // 18, len(anchors))。
    """

    anchor_arr = anchors if isinstance(anchors, np.ndarray) else anchors_to_array(list(anchors))
    raw_boxes = _as_flat(output.raw_boxes)
    raw_scores = _as_flat(output.raw_scores, keep_inf=True)

    boxes_anchors = raw_boxes.size // DETECTION_VALUES_PER_ANCHOR
    if raw_boxes.size % DETECTION_VALUES_PER_ANCHOR != 0 or boxes_anchors != anchor_arr.shape[0]:
        logger.warning(
            "detector tensor/anchor mismatch: raw_boxes=%d values (%d anchors), anchors=%d",
            raw_boxes.size,
            boxes_anchors,
            anchor_arr.shape[0],
        )

    n = int(min(boxes_anchors, anchor_arr.shape[0]))
    reg = raw_boxes[: n * DETECTION_VALUES_PER_ANCHOR].reshape(n, DETECTION_VALUES_PER_ANCHOR)
    anc = anchor_arr[:n]

    # 缺失的 score 按 logit=0 处理。
    logits = np.zeros(n, dtype=np.float64)
    m = min(n, raw_scores.size)
    logits[:m] = raw_scores[:m]
    scores = stable_sigmoid(logits)

    ax, ay, aw, ah = anc[:, 0], anc[:, 1], anc[:, 2], anc[:, 3]

    # 布局：y, x, h, w
    cy = ay + reg[:, 0] / DETECTOR_SCALE * ah
    cx = ax + reg[:, 1] / DETECTOR_SCALE * aw
    with np.errstate(over="ignore"):
        h = ah * np.exp(reg[:, 2] / DETECTOR_SCALE)
        w = aw * np.exp(reg[:, 3] / DETECTOR_SCALE)

    kp = reg[:, 4:].reshape(n, NUM_PALM_KEYPOINTS, 2)
    kp_x = ax[:, None] + kp[:, :, 1] / DETECTOR_SCALE * aw[:, None]
    kp_y = ay[:, None] + kp[:, :, 0] / DETECTOR_SCALE * ah[:, None]

    # 旋转角：第一个与最后一个 palm 关键点连线的方向（夹紧之前计算）。
    rotation = np.arctan2(kp_y[:, -1] - kp_y[:, 0], kp_x[:, -1] - kp_x[:, 0])

    boxes = np.stack([cx, cy, w, h], axis=1)
    boxes = np.clip(np.nan_to_num(boxes, nan=0.0, posinf=1.0, neginf=0.0), 0.0, 1.0)
    keypoints = np.clip(np.stack([kp_x, kp_y], axis=2), 0.0, 1.0)

    return DecodedDetections(
        ids=np.arange(n, dtype=np.int64),
        scores=scores,
        boxes=boxes,
        keypoints=keypoints,
        rotation=rotation,
    )
