"""handscene 公共数据模型（高内聚：只放数据结构定义）。

说明：
- 这些数据结构会被 detection/landmarks/interpretation/tracking/pipeline/tests 共同使用。
- 全部使用 frozen dataclass：每帧产出新的不可变值，下游只读。
- 坐标约定：带 `_px` 后缀或位于 `*OnFrame` 中的字段是原图像素坐标；
  其余 x/y/w/h 为模型输入空间的归一化坐标 [0, 1]。
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Literal, Optional

import numpy as np


Point2 = tuple[float, float]
Vec3 = tuple[float, float, float]

Handedness = Literal["Left", "Right"]
FingerName = Literal["Thumb", "Index", "Middle", "Ring", "Pinky"]
FingerState = Literal["Open", "Closed", "Pointing", "Unknown"]
InterHandRelationType = Literal["HandshakeCandidate", "HandsClose", "Crossing", "Unknown"]

FINGER_NAMES: tuple[FingerName, ...] = ("Thumb", "Index", "Middle", "Ring", "Pinky")

NUM_LANDMARKS = 21
NUM_PALM_KEYPOINTS = 7


class ModelReadiness(str, Enum):
    """模型可用性三态。

    调用方在调用引擎之前检查该状态；非 READY 时直接跳过该帧。
    """

    NOT_LOADED = "NotLoaded"
    LOADING = "Loading"
    READY = "Ready"


@dataclass(frozen=True)
class Anchor:
    """检测器先验框（归一化模型输入空间）。"""

    x_center: float
    y_center: float
    width: float
    height: float


@dataclass(frozen=True)
class FrameMeta:
    """单帧元信息。"""

    frame_width: int
    frame_height: int
    model_input_width: int = 192
    model_input_height: int = 192
    frame_id: Optional[int] = None


@dataclass(frozen=True)
class RawDetectorOutput:
    """palm 检测器原始输出。

    raw_boxes 长度 = anchors * 18，单个 anchor 的布局为
    [y, x, h, w, 7 x (y, x)]（注意 y 在 x 前）。
    raw_scores 长度 = anchors，为 logit。
    """

    raw_boxes: np.ndarray
    raw_scores: np.ndarray


@dataclass(frozen=True)
class RawLandmarkOutput:
    """单只手的 landmark 模型输出（已完成辅助张量语义解析）。"""

    landmarks: np.ndarray  # 21 * 3，ROI 内归一化
    handedness: Handedness
    handedness_score: float
    presence_score: Optional[float] = None
    visibility: Optional[np.ndarray] = None
    landmark_score: Optional[float] = None


@dataclass(frozen=True)
class DetectionBox:
    """解码后的手框候选。

    palm_keypoints 为 7 个归一化 (x, y)。rotation 单位为弧度。
    """

    id: int
    score: float
    cx: float
    cy: float
    w: float
    h: float
    rotation: float
    palm_keypoints: tuple[Point2, ...]


@dataclass(frozen=True)
class DetectionBoxOnFrame(DetectionBox):
    """DetectionBox + 原图像素坐标。

    ROI mapper 输出的扩展正方形区域也使用该类型（extent 字段被替换）。
    """

    cx_px: float = 0.0
    cy_px: float = 0.0
    w_px: float = 0.0
    h_px: float = 0.0
    x_min: float = 0.0
    y_min: float = 0.0
    x_max: float = 0.0
    y_max: float = 0.0
    palm_keypoints_px: tuple[Point2, ...] = ()


@dataclass(frozen=True)
class Landmark3D:
    """单个手部关键点。x/y 为像素，z 为模型原生的相对深度（无量纲）。"""

    x: float
    y: float
    z: float


@dataclass(frozen=True)
class HandOrientation:
    palm_normal: Vec3
    finger_direction: Vec3
    yaw: float
    pitch: float
    roll: float


@dataclass(frozen=True)
class HandPose:
    fingers: dict[FingerName, FingerState]
    is_pinching: bool
    pinch_strength: float
    spread: float


@dataclass(frozen=True)
class HandSpatialInfo:
    center: Point2
    normalized_center: Point2
    size: Point2  # (w, h) 像素
    depth_approx: float
    is_near_center: bool


@dataclass(frozen=True)
class HandState:
    """单只手的完整描述（引擎的输出单元）。"""

    id: str
    handedness: Handedness
    handedness_score: float
    quality_score: float
    detection_box: DetectionBoxOnFrame
    landmarks: tuple[Landmark3D, ...]
    orientation: HandOrientation
    pose: HandPose
    spatial: HandSpatialInfo


@dataclass(frozen=True)
class InterHandRelation:
    """两只手之间的启发式关系（无序对）。"""

    hand_id_a: str
    hand_id_b: str
    type: InterHandRelationType
    distance_px: float
    confidence: float


@dataclass(frozen=True)
class SceneMeta:
    num_detections_before_nms: int
    frame_width: int
    frame_height: int
    processing_time_ms: Optional[float] = None


@dataclass(frozen=True)
class SceneInterpretation:
    """帧级结果，是引擎唯一的对外产物。"""

    frame_id: int
    hands: tuple[HandState, ...]
    inter_hand_relations: tuple[InterHandRelation, ...]
    raw_meta: SceneMeta
