"""贪心 NMS：把重叠候选框压缩为最多 max_hands 个手框。"""

from __future__ import annotations

from typing import Sequence

from handscene.models import DetectionBox


def _extent(b: DetectionBox) -> tuple[float, float, float, float]:
    return (b.cx - b.w / 2.0, b.cy - b.h / 2.0, b.cx + b.w / 2.0, b.cy + b.h / 2.0)


def intersection_over_union(a: DetectionBox, b: DetectionBox) -> float:
    """轴对齐 IoU（由中心/尺寸推出）。零面积框返回 0。"""

    ax1, ay1, ax2, ay2 = _extent(a)
    bx1, by1, bx2, by2 = _extent(b)

    iw = max(0.0, min(ax2, bx2) - max(ax1, bx1))
    ih = max(0.0, min(ay2, by2) - max(ay1, by1))
    inter = iw * ih
    area_a = max(0.0, ax2 - ax1) * max(0.0, ay2 - ay1)
    area_b = max(0.0, bx2 - bx1) * max(0.0, by2 - by1)

    union = area_a + area_b - inter
    if union <= 0.0:
        return 0.0
    return float(inter / union)


def non_max_suppression(
    boxes: Sequence[DetectionBox],
    *,
    score_threshold: float = 0.55,
    iou_threshold: float = 0.30,
    max_hands: int = 2,
) -> list[DetectionBox]:
    """阈值过滤 + 按分数降序贪心选择。

    规则：
        - score < score_threshold 的框直接丢弃。
        - 分数相同按 anchor 下标升序（稳定），保证相同输入输出一致。
        - 与任一已选框 IoU > iou_threshold 则拒绝。
        - 选满 max_hands 个即停止。
    """

    if int(max_hands) <= 0:
        return []

    candidates = [b for b in boxes if float(b.score) >= float(score_threshold)]
    candidates.sort(key=lambda b: (-float(b.score), int(b.id)))

    selected: list[DetectionBox] = []
    for cand in candidates:
        if all(intersection_over_union(cand, chosen) <= float(iou_threshold) for chosen in selected):
            selected.append(cand)
        if len(selected) >= int(max_hands):
            break
    return selected
