"""palm 检测阶段：anchor 生成、解码、NMS、ROI 映射。"""

from .anchors import PALM_DETECTION_ANCHORS, AnchorOptions, anchors_to_array, expected_anchor_count, generate_anchors
from .decode import DETECTOR_SCALE, DecodedDetections, decode_detections, stable_sigmoid
from .diagnostics import summarize_scores
from .nms import intersection_over_union, non_max_suppression
from .roi import crop_roi, expand_roi_for_landmarks, map_box_to_frame

__all__ = [
    "AnchorOptions",
    "DETECTOR_SCALE",
    "DecodedDetections",
    "PALM_DETECTION_ANCHORS",
    "anchors_to_array",
    "crop_roi",
    "decode_detections",
    "expand_roi_for_landmarks",
    "expected_anchor_count",
    "generate_anchors",
    "intersection_over_union",
    "map_box_to_frame",
    "non_max_suppression",
    "stable_sigmoid",
    "summarize_scores",
]
