"""最小单测：贪心 NMS。"""

from __future__ import annotations

import pytest

from handscene.detection.nms import intersection_over_union, non_max_suppression
from handscene.models import DetectionBox


def _box(i: int, score: float, cx: float, cy: float, w: float = 0.2, h: float = 0.2) -> DetectionBox:
    return DetectionBox(id=i, score=score, cx=cx, cy=cy, w=w, h=h, rotation=0.0, palm_keypoints=())


def test_high_overlap_keeps_only_best() -> None:
    a = _box(0, 0.9, 0.5, 0.5)
    b = _box(1, 0.8, 0.51, 0.5)
    assert intersection_over_union(a, b) == pytest.approx(0.038 / 0.042)

    out = non_max_suppression([b, a], iou_threshold=0.3)
    assert [x.id for x in out] == [0]


def test_disjoint_boxes_both_survive() -> None:
    a = _box(0, 0.9, 0.2, 0.5)
    b = _box(1, 0.8, 0.8, 0.5)
    assert intersection_over_union(a, b) == 0.0
    assert [x.id for x in non_max_suppression([a, b])] == [0, 1]


def test_never_exceeds_max_hands() -> None:
    boxes = [_box(i, 0.6 + 0.01 * i, 0.05 + 0.1 * i, 0.5, w=0.05, h=0.05) for i in range(10)]
    assert len(non_max_suppression(boxes, max_hands=2)) == 2
    assert len(non_max_suppression(boxes, max_hands=4)) == 4
    assert non_max_suppression(boxes, max_hands=0) == []


def test_score_threshold_filters() -> None:
    boxes = [_box(0, 0.5, 0.2, 0.2), _box(1, 0.56, 0.8, 0.8)]
    assert [b.id for b in non_max_suppression(boxes, score_threshold=0.55)] == [1]


def test_equal_scores_break_ties_by_anchor_index() -> None:
    boxes = [_box(5, 0.9, 0.2, 0.2), _box(3, 0.9, 0.8, 0.8)]
    out = non_max_suppression(boxes, max_hands=1)
    assert out[0].id == 3

    # 相同输入重复调用结果一致。
    assert non_max_suppression(boxes) == non_max_suppression(list(reversed(boxes)))


def test_zero_area_box_has_zero_iou() -> None:
    a = _box(0, 0.9, 0.5, 0.5, w=0.0, h=0.0)
    assert intersection_over_union(a, a) == 0.0
