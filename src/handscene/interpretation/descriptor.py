"""单手描述：质量分、3D 朝向、手指状态、捏合/张开、空间摘要。

关键点下标约定（21 点）：
- 0：腕部
- 1-4 拇指，5-8 食指，9-12 中指，13-16 无名指，17-20 小指（每指 mcp, pip, dip, tip）

说明：
- 这里没有错误路径：缺失/退化输入回退到中性值（零角度、+Z 法向、可见度 1），不抛异常。
"""

from __future__ import annotations

import math
from typing import Optional, Sequence

import numpy as np

from handscene.interpretation.geometry import EPS, angle_between, distance_2d, mean_vec, normalize, sub
from handscene.models import (
    FINGER_NAMES,
    DetectionBoxOnFrame,
    FingerName,
    FingerState,
    FrameMeta,
    HandOrientation,
    HandPose,
    HandSpatialInfo,
    HandState,
    Landmark3D,
    RawLandmarkOutput,
)

WRIST = 0
INDEX_MCP = 5
MIDDLE_MCP = 9
RING_MCP = 13
PINKY_MCP = 17
THUMB_TIP = 4
INDEX_TIP = 8

FINGER_INDICES: dict[FingerName, tuple[int, int, int, int]] = {
    "Thumb": (1, 2, 3, 4),
    "Index": (5, 6, 7, 8),
    "Middle": (9, 10, 11, 12),
    "Ring": (13, 14, 15, 16),
    "Pinky": (17, 18, 19, 20),
}

# 手指弯曲角阈值（度）
OPEN_MAX_DEG = 55.0
POINTING_MAX_DEG = 75.0

PINCH_SPAN_FACTOR = 0.8
PINCH_ON_STRENGTH = 0.6
NEAR_CENTER_RADIUS = 0.25


def _clamp01(x: float) -> float:
    return float(min(max(x, 0.0), 1.0))


def compute_hand_quality(
    detection_score: float,
    landmark_score: float,
    visibility: Optional[np.ndarray] = None,
) -> float:
    """质量分 = 0.5 * 检测分 + 0.3 * landmark 分 + 0.2 * 平均可见度，夹紧到 [0, 1]。"""

    vis_mean = 1.0
    if visibility is not None:
        v = np.asarray(visibility, dtype=np.float64).reshape(-1)
        v = v[np.isfinite(v)]
        if v.size > 0:
            vis_mean = _clamp01(float(np.mean(v)))
    score = 0.5 * float(detection_score) + 0.3 * float(landmark_score) + 0.2 * vis_mean
    return _clamp01(score)


def landmark_score_of(raw: RawLandmarkOutput) -> float:
    """landmark 分：依次回退 landmark_score -> presence_score -> handedness_score。"""

    for s in (raw.landmark_score, raw.presence_score):
        if s is not None and math.isfinite(float(s)):
            return float(s)
    return float(raw.handedness_score)


def compute_hand_orientation(
    landmarks: Sequence[Landmark3D],
    detection_box: DetectionBoxOnFrame,
) -> HandOrientation:
    wrist = landmarks[WRIST]
    index_mcp = landmarks[INDEX_MCP]
    pinky_mcp = landmarks[PINKY_MCP]

    palm_normal = normalize(np.cross(sub(index_mcp, wrist), sub(pinky_mcp, wrist)))

    finger_vecs = [
        sub(landmarks[tip], landmarks[mcp])
        for mcp, _, _, tip in (FINGER_INDICES[f] for f in ("Index", "Middle", "Ring", "Pinky"))
    ]
    finger_dir = normalize(mean_vec(finger_vecs))

    roll = float(detection_box.rotation)
    if not math.isfinite(roll) or roll == 0.0:
        roll = math.atan2(pinky_mcp.y - index_mcp.y, pinky_mcp.x - index_mcp.x)

    fx, fy, fz = finger_dir
    yaw = math.atan2(fx, fz if fz != 0.0 else EPS)
    horiz = math.hypot(fx, fz)
    pitch = math.atan2(-fy, horiz if horiz != 0.0 else EPS)

    return HandOrientation(
        palm_normal=palm_normal,
        finger_direction=finger_dir,
        yaw=float(yaw),
        pitch=float(pitch),
        roll=float(roll),
    )


def classify_finger(mcp: Landmark3D, pip: Landmark3D, tip: Landmark3D) -> FingerState:
    """由 (mcp->pip) 与 (pip->tip) 的夹角判断手指状态。"""

    angle = angle_between(sub(pip, mcp), sub(tip, pip))
    if not math.isfinite(angle):
        return "Unknown"
    deg = math.degrees(angle)
    if deg < OPEN_MAX_DEG:
        return "Open"
    if deg < POINTING_MAX_DEG:
        return "Pointing"
    return "Closed"


def compute_hand_pose(landmarks: Sequence[Landmark3D]) -> HandPose:
    fingers: dict[FingerName, FingerState] = {}
    for name in FINGER_NAMES:
        mcp_i, pip_i, _, tip_i = FINGER_INDICES[name]
        fingers[name] = classify_finger(landmarks[mcp_i], landmarks[pip_i], landmarks[tip_i])

    wrist = landmarks[WRIST]
    palm_size = distance_2d(wrist, landmarks[MIDDLE_MCP]) + distance_2d(wrist, landmarks[RING_MCP])
    palm_span = max(palm_size / 2.0, 1.0)

    pinch_dist = distance_2d(landmarks[THUMB_TIP], landmarks[INDEX_TIP])
    pinch_strength = _clamp01(1.0 - pinch_dist / (palm_span * PINCH_SPAN_FACTOR))

    spread = 0.0
    if palm_size >= EPS:
        spread = _clamp01(distance_2d(landmarks[INDEX_MCP], landmarks[PINKY_MCP]) / palm_size)

    return HandPose(
        fingers=fingers,
        is_pinching=bool(pinch_strength > PINCH_ON_STRENGTH),
        pinch_strength=float(pinch_strength),
        spread=float(spread),
    )


def compute_hand_spatial_info(
    detection_box: DetectionBoxOnFrame,
    landmarks: Sequence[Landmark3D],
    meta: FrameMeta,
) -> HandSpatialInfo:
    fw = max(float(meta.frame_width), EPS)
    fh = max(float(meta.frame_height), EPS)
    nx = _clamp01(detection_box.cx_px / fw)
    ny = _clamp01(detection_box.cy_px / fh)
    depth = float(np.mean([lm.z for lm in landmarks])) if landmarks else 0.0

    return HandSpatialInfo(
        center=(float(detection_box.cx_px), float(detection_box.cy_px)),
        normalized_center=(nx, ny),
        size=(float(detection_box.w_px), float(detection_box.h_px)),
        depth_approx=depth,
        is_near_center=bool(math.hypot(nx - 0.5, ny - 0.5) < NEAR_CENTER_RADIUS),
    )


def build_hand_state(
    *,
    hand_id: str,
    detection_box: DetectionBoxOnFrame,
    landmarks: Sequence[Landmark3D],
    raw: RawLandmarkOutput,
    meta: FrameMeta,
) -> HandState:
    """组装单手 HandState。"""

    lms = tuple(landmarks)
    return HandState(
        id=str(hand_id),
        handedness=raw.handedness,
        handedness_score=float(raw.handedness_score),
        quality_score=compute_hand_quality(detection_box.score, landmark_score_of(raw), raw.visibility),
        detection_box=detection_box,
        landmarks=lms,
        orientation=compute_hand_orientation(lms, detection_box),
        pose=compute_hand_pose(lms),
        spatial=compute_hand_spatial_info(detection_box, lms, meta),
    )
