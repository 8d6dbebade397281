"""跨帧手部身份关联。

检测层每帧只给出槽位序号，无法直接作为时间平滑的 key。
这里把本帧手框与上一帧存活的 track 做贪心匹配，分配持久 id：

1) IoU 贪心：所有 (track, det) 对按 IoU 降序，IoU >= iou_threshold 即匹配。
2) 中心距离兜底：剩余对按像素中心距离升序，距离 <= ratio * 平均框尺寸即匹配。
3) 未匹配的检测开新 track（id 形如 `hand-<n>`）。
4) 未匹配的 track 累计 missed；超过 max_missed_frames 才丢弃（宽限期）。

说明：
- 状态对象 TrackerState 由调用方持有，通过引用传入 `assign_identities`，
  因此可以有多个互不干扰的 tracker 实例。
- 同一个 TrackerState 只允许单写者：一帧处理完再处理下一帧。
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Sequence

from handscene.models import DetectionBoxOnFrame


@dataclass(frozen=True)
class TrackerConfig:
    iou_threshold: float = 0.1
    max_center_dist_ratio: float = 1.0
    max_missed_frames: int = 3


@dataclass
class _Track:
    track_id: str
    box: DetectionBoxOnFrame
    missed: int = 0
    n_obs: int = 1


@dataclass
class TrackerState:
    tracks: list[_Track] = field(default_factory=list)
    next_id: int = 1

    def reset(self) -> None:
        self.tracks.clear()
        self.next_id = 1

    @property
    def active_ids(self) -> list[str]:
        return [tr.track_id for tr in self.tracks]


def box_iou_px(a: DetectionBoxOnFrame, b: DetectionBoxOnFrame) -> float:
    iw = max(0.0, min(a.x_max, b.x_max) - max(a.x_min, b.x_min))
    ih = max(0.0, min(a.y_max, b.y_max) - max(a.y_min, b.y_min))
    inter = iw * ih
    area_a = max(0.0, a.x_max - a.x_min) * max(0.0, a.y_max - a.y_min)
    area_b = max(0.0, b.x_max - b.x_min) * max(0.0, b.y_max - b.y_min)
    union = area_a + area_b - inter
    if union <= 0.0:
        return 0.0
    return float(inter / union)


def _center_dist(a: DetectionBoxOnFrame, b: DetectionBoxOnFrame) -> float:
    return float(math.hypot(a.cx_px - b.cx_px, a.cy_px - b.cy_px))


def _avg_size(a: DetectionBoxOnFrame, b: DetectionBoxOnFrame) -> float:
    return 0.5 * (max(a.w_px, a.h_px) + max(b.w_px, b.h_px))


def assign_identities(
    state: TrackerState,
    boxes: Sequence[DetectionBoxOnFrame],
    cfg: TrackerConfig | None = None,
) -> list[str]:
    """为本帧手框分配持久 id（与 boxes 顺序一致），并就地更新 state。"""

    cfg = cfg if cfg is not None else TrackerConfig()
    det_to_track: dict[int, int] = {}
    used_tracks: set[int] = set()

    pairs_iou: list[tuple[float, int, int]] = []
    for di, box in enumerate(boxes):
        for ti, tr in enumerate(state.tracks):
            iou = box_iou_px(box, tr.box)
            if iou >= float(cfg.iou_threshold) and iou > 0.0:
                pairs_iou.append((iou, di, ti))
    pairs_iou.sort(key=lambda p: (-p[0], p[1], p[2]))
    for _, di, ti in pairs_iou:
        if di in det_to_track or ti in used_tracks:
            continue
        det_to_track[di] = ti
        used_tracks.add(ti)

    pairs_dist: list[tuple[float, int, int]] = []
    for di, box in enumerate(boxes):
        if di in det_to_track:
            continue
        for ti, tr in enumerate(state.tracks):
            if ti in used_tracks:
                continue
            d = _center_dist(box, tr.box)
            if d <= float(cfg.max_center_dist_ratio) * _avg_size(box, tr.box):
                pairs_dist.append((d, di, ti))
    pairs_dist.sort(key=lambda p: (p[0], p[1], p[2]))
    for _, di, ti in pairs_dist:
        if di in det_to_track or ti in used_tracks:
            continue
        det_to_track[di] = ti
        used_tracks.add(ti)

    ids: list[str] = []
    new_tracks: list[_Track] = []
    for di, box in enumerate(boxes):
        ti = det_to_track.get(di)
        if ti is not None:
            tr = state.tracks[ti]
            tr.box = box
            tr.missed = 0
            tr.n_obs += 1
            ids.append(tr.track_id)
            continue
        tr = _Track(track_id=f"hand-{state.next_id}", box=box)
        state.next_id += 1
        new_tracks.append(tr)
        ids.append(tr.track_id)

    alive: list[_Track] = []
    for ti, tr in enumerate(state.tracks):
        if ti not in used_tracks:
            tr.missed += 1
            if tr.missed > int(cfg.max_missed_frames):
                continue
        alive.append(tr)
    state.tracks = alive + new_tracks

    return ids
