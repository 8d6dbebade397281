"""按手部身份的 landmark 时间平滑。

规则：
- 每个身份保留最近 history_size 帧原始 landmark。
- 新观测相对上一帧的最大逐点位移超过 movement_threshold_ratio * min(W, H) 时，
  视为新手势/新位置：清空历史，只保留当前帧。
- 否则追加，并淘汰超出上限的最旧帧。
- 输出为当前历史的无权平均；历史少于 min_frames_to_average 帧时原样输出。
- 本帧未出现的身份立刻丢弃（不做外推）。

说明：
- StabilizerState 由调用方持有并按引用传入，单写者使用。
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Mapping, Sequence

import numpy as np

from handscene.models import Landmark3D


@dataclass(frozen=True)
class StabilizerConfig:
    history_size: int = 3
    movement_threshold_ratio: float = 0.08
    min_frames_to_average: int = 2


@dataclass
class StabilizerState:
    history: dict[str, deque] = field(default_factory=dict)

    def reset(self) -> None:
        self.history.clear()


def _to_array(landmarks: Sequence[Landmark3D]) -> np.ndarray:
    return np.asarray([[lm.x, lm.y, lm.z] for lm in landmarks], dtype=np.float64).reshape(-1, 3)


def _to_landmarks(arr: np.ndarray) -> tuple[Landmark3D, ...]:
    return tuple(Landmark3D(x=float(p[0]), y=float(p[1]), z=float(p[2])) for p in arr)


def max_displacement_px(prev: np.ndarray, cur: np.ndarray) -> float:
    """逐点 2D 位移的最大值（像素）。点数不一致视为无穷大。"""

    if prev.shape != cur.shape or prev.size == 0:
        return float("inf")
    return float(np.max(np.hypot(cur[:, 0] - prev[:, 0], cur[:, 1] - prev[:, 1])))


def stabilize_landmarks(
    state: StabilizerState,
    observations: Mapping[str, Sequence[Landmark3D]],
    *,
    frame_width: int,
    frame_height: int,
    cfg: StabilizerConfig | None = None,
) -> dict[str, tuple[Landmark3D, ...]]:
    """用本帧观测更新历史，并返回每个身份的平滑 landmark。"""

    cfg = cfg if cfg is not None else StabilizerConfig()
    cap = max(1, int(cfg.history_size))
    threshold = float(cfg.movement_threshold_ratio) * float(min(frame_width, frame_height))

    for hand_id in list(state.history.keys()):
        if hand_id not in observations:
            del state.history[hand_id]

    out: dict[str, tuple[Landmark3D, ...]] = {}
    for hand_id, landmarks in observations.items():
        cur = _to_array(landmarks)
        hist = state.history.get(hand_id)

        if hist is None or not hist or max_displacement_px(hist[-1], cur) > threshold:
            hist = deque([cur], maxlen=cap)
            state.history[hand_id] = hist
        else:
            hist.append(cur)

        if len(hist) < int(cfg.min_frames_to_average):
            out[hand_id] = tuple(landmarks)
            continue
        out[hand_id] = _to_landmarks(np.mean(np.stack(list(hist), axis=0), axis=0))

    return out
