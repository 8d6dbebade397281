"""单手描述与两手关系。"""

from .descriptor import (
    FINGER_INDICES,
    build_hand_state,
    classify_finger,
    compute_hand_orientation,
    compute_hand_pose,
    compute_hand_quality,
    compute_hand_spatial_info,
)
from .relations import classify_pair, infer_inter_hand_relations

__all__ = [
    "FINGER_INDICES",
    "build_hand_state",
    "classify_finger",
    "classify_pair",
    "compute_hand_orientation",
    "compute_hand_pose",
    "compute_hand_quality",
    "compute_hand_spatial_info",
    "infer_inter_hand_relations",
]
