"""landmark 模型辅助输出的语义解析。

landmark 模型除 21x3 关键点外还会输出若干辅助张量（presence 分数、左右手分类、逐点可见度）。
不同模型变体的输出槽位顺序不同，这里提供两种解析方式：

1) 显式 schema（推荐）：`AuxTensorSchema` 指明每个信号位于哪个输出槽位。
2) 长度启发式（未提供 schema 时的回退）：
   - 长度 1：第一个视为 presence 分数，第二个视为 handedness（Right 概率）
   - 长度 2：左右手二分类 softmax，顺序为 [Left, Right]
   - 长度 21 / 63：逐点可见度

解析失败或缺失时一律回退默认值（例如 handedness 为 Right/0.5），不抛异常。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, Optional, Sequence

import numpy as np

from handscene.models import Handedness, RawLandmarkOutput

logger = logging.getLogger(__name__)

HandednessLayout = Literal["softmax2", "right_prob"]

DEFAULT_HANDEDNESS: Handedness = "Right"
DEFAULT_HANDEDNESS_SCORE = 0.5


@dataclass(frozen=True)
class AuxTensorSchema:
    """辅助张量槽位说明（下标指向 aux 序列；None 表示该模型不输出该信号）。"""

    presence_index: Optional[int] = None
    handedness_index: Optional[int] = None
    visibility_index: Optional[int] = None
    landmark_score_index: Optional[int] = None
    handedness_layout: HandednessLayout = "right_prob"


def _flat(x: np.ndarray | Sequence[float]) -> np.ndarray:
    return np.asarray(x, dtype=np.float64).reshape(-1)


def _scalar(x: np.ndarray) -> Optional[float]:
    if x.size < 1 or not np.isfinite(x[0]):
        return None
    return float(x[0])


def _pick(aux: Sequence[np.ndarray], index: Optional[int]) -> Optional[np.ndarray]:
    if index is None:
        return None
    if not (0 <= int(index) < len(aux)):
        logger.warning("aux tensor index %s out of range (have %d tensors)", index, len(aux))
        return None
    return aux[int(index)]


def decode_handedness(values: np.ndarray, layout: HandednessLayout) -> tuple[Handedness, float]:
    """把 handedness 张量转成 (label, score)。"""

    v = np.nan_to_num(_flat(values), nan=DEFAULT_HANDEDNESS_SCORE)
    if layout == "softmax2" and v.size >= 2:
        p_left = float(np.clip(v[0], 0.0, 1.0))
        p_right = float(np.clip(v[1], 0.0, 1.0))
        if p_left > p_right:
            return "Left", p_left
        return "Right", p_right

    if v.size >= 1:
        p_right = float(np.clip(v[0], 0.0, 1.0))
        if p_right >= 0.5:
            return "Right", p_right
        return "Left", 1.0 - p_right

    return DEFAULT_HANDEDNESS, DEFAULT_HANDEDNESS_SCORE


def _parse_with_schema(aux: Sequence[np.ndarray], schema: AuxTensorSchema) -> dict:
    presence = _pick(aux, schema.presence_index)
    handed = _pick(aux, schema.handedness_index)
    vis = _pick(aux, schema.visibility_index)
    lm_score = _pick(aux, schema.landmark_score_index)

    out: dict = {}
    if presence is not None:
        out["presence_score"] = _scalar(presence)
    if lm_score is not None:
        out["landmark_score"] = _scalar(lm_score)
    if handed is not None and handed.size > 0:
        out["handedness"] = decode_handedness(handed, schema.handedness_layout)
    if vis is not None and vis.size > 0:
        out["visibility"] = vis
    return out


def _parse_by_length(aux: Sequence[np.ndarray]) -> dict:
    out: dict = {}
    for i, t in enumerate(aux):
        n = int(t.size)
        if n == 1:
            if "presence_score" not in out:
                out["presence_score"] = _scalar(t)
            elif "handedness" not in out:
                out["handedness"] = decode_handedness(t, "right_prob")
        elif n == 2:
            if "handedness" not in out:
                out["handedness"] = decode_handedness(t, "softmax2")
        elif n in (21, 63):
            if "visibility" not in out:
                out["visibility"] = t
        else:
            logger.debug("ignore aux tensor #%d with unexpected length %d", i, n)
    return out


def parse_landmark_outputs(
    landmarks: np.ndarray | Sequence[float],
    aux: Sequence[np.ndarray | Sequence[float]] = (),
    schema: AuxTensorSchema | None = None,
) -> RawLandmarkOutput:
    """把一次 landmark 推理的全部输出整理为 RawLandmarkOutput。

    Args:
        landmarks: 21x3 关键点缓冲（ROI 内归一化）。
        aux: 其余输出张量，顺序与模型输出一致。
        schema: 可选的显式槽位说明；为 None 时使用长度启发式。
    """

    aux_flat = [_flat(t) for t in aux]
    parsed = _parse_with_schema(aux_flat, schema) if schema is not None else _parse_by_length(aux_flat)

    handedness, handedness_score = parsed.get("handedness", (DEFAULT_HANDEDNESS, DEFAULT_HANDEDNESS_SCORE))
    if "handedness" not in parsed:
        logger.debug("handedness tensor missing; default to %s/%.2f", handedness, handedness_score)

    return RawLandmarkOutput(
        landmarks=_flat(landmarks),
        handedness=handedness,
        handedness_score=float(handedness_score),
        presence_score=parsed.get("presence_score"),
        visibility=parsed.get("visibility"),
        landmark_score=parsed.get("landmark_score"),
    )
