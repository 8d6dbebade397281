"""SceneInterpretation -> JSON 友好的纯 Python 记录。

说明：
- JSON 序列化时 numpy 标量类型会导致不可序列化或输出不一致，这里统一显式转 float/int。
- 非有限值（NaN/inf）输出为 None，保证 `json.dumps(..., allow_nan=False)` 也能通过。
"""

from __future__ import annotations

import math
from typing import Any, Sequence

from handscene.models import (
    DetectionBoxOnFrame,
    HandState,
    InterHandRelation,
    Point2,
    SceneInterpretation,
)


def _f(x: Any) -> float | None:
    v = float(x)
    return v if math.isfinite(v) else None


def _pt2(p: Point2) -> list[float | None]:
    return [_f(p[0]), _f(p[1])]


def _pts2(ps: Sequence[Point2]) -> list[list[float | None]]:
    return [_pt2(p) for p in ps]


def _box_to_json(b: DetectionBoxOnFrame) -> dict[str, Any]:
    return {
        "score": _f(b.score),
        "rotation": _f(b.rotation),
        "center_px": [_f(b.cx_px), _f(b.cy_px)],
        "size_px": [_f(b.w_px), _f(b.h_px)],
        "bbox_px": [_f(b.x_min), _f(b.y_min), _f(b.x_max), _f(b.y_max)],
        "palm_keypoints_px": _pts2(b.palm_keypoints_px),
    }


def hand_to_record(h: HandState) -> dict[str, Any]:
    o = h.orientation
    p = h.pose
    s = h.spatial
    return {
        "id": str(h.id),
        "handedness": str(h.handedness),
        "handedness_score": _f(h.handedness_score),
        "quality_score": _f(h.quality_score),
        "detection_box": _box_to_json(h.detection_box),
        "landmarks": [[_f(lm.x), _f(lm.y), _f(lm.z)] for lm in h.landmarks],
        "orientation": {
            "palm_normal": [_f(v) for v in o.palm_normal],
            "finger_direction": [_f(v) for v in o.finger_direction],
            "yaw": _f(o.yaw),
            "pitch": _f(o.pitch),
            "roll": _f(o.roll),
        },
        "pose": {
            "fingers": {str(k): str(v) for k, v in p.fingers.items()},
            "is_pinching": bool(p.is_pinching),
            "pinch_strength": _f(p.pinch_strength),
            "spread": _f(p.spread),
        },
        "spatial": {
            "center": _pt2(s.center),
            "normalized_center": _pt2(s.normalized_center),
            "size": _pt2(s.size),
            "depth_approx": _f(s.depth_approx),
            "is_near_center": bool(s.is_near_center),
        },
    }


def relation_to_record(r: InterHandRelation) -> dict[str, Any]:
    return {
        "hand_id_a": str(r.hand_id_a),
        "hand_id_b": str(r.hand_id_b),
        "type": str(r.type),
        "distance_px": _f(r.distance_px),
        "confidence": _f(r.confidence),
    }


def scene_to_record(scene: SceneInterpretation) -> dict[str, Any]:
    """把帧级结果转成可直接 `json.dumps` 的 dict。"""

    meta = scene.raw_meta
    return {
        "frame_id": int(scene.frame_id),
        "hands": [hand_to_record(h) for h in scene.hands],
        "inter_hand_relations": [relation_to_record(r) for r in scene.inter_hand_relations],
        "raw_meta": {
            "num_detections_before_nms": int(meta.num_detections_before_nms),
            "frame_width": int(meta.frame_width),
            "frame_height": int(meta.frame_height),
            "processing_time_ms": _f(meta.processing_time_ms) if meta.processing_time_ms is not None else None,
        },
    }
