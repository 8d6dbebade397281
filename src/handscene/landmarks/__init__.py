"""landmark 阶段：输出语义解析与坐标映射。"""

from .mapper import landmarks_to_array, map_landmarks_to_frame
from .schema import AuxTensorSchema, decode_handedness, parse_landmark_outputs

__all__ = [
    "AuxTensorSchema",
    "decode_handedness",
    "landmarks_to_array",
    "map_landmarks_to_frame",
    "parse_landmark_outputs",
]
