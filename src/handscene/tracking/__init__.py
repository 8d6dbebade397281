"""跨帧身份关联与 landmark 平滑。"""

from .stabilizer import StabilizerConfig, StabilizerState, stabilize_landmarks
from .tracker import TrackerConfig, TrackerState, assign_identities

__all__ = [
    "StabilizerConfig",
    "StabilizerState",
    "TrackerConfig",
    "TrackerState",
    "assign_identities",
    "stabilize_landmarks",
]
