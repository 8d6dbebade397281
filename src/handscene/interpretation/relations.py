"""两手关系的启发式分类（非学习模型，尽力而为）。"""

from __future__ import annotations

import math
from typing import Sequence

from handscene.models import HandState, InterHandRelation, InterHandRelationType


def classify_pair(a: HandState, b: HandState) -> InterHandRelation:
    """对一对手按优先级分类：握手候选 > 靠近 > 交叉 > 未知。"""

    dx = a.spatial.center[0] - b.spatial.center[0]
    dy = a.spatial.center[1] - b.spatial.center[1]
    distance = math.hypot(dx, dy)
    avg_size = (a.spatial.size[0] + b.spatial.size[0]) / 2.0

    rel_type: InterHandRelationType = "Unknown"
    confidence = 0.0
    if a.handedness != b.handedness and abs(dy) < avg_size * 0.4 and distance < avg_size * 1.6:
        rel_type, confidence = "HandshakeCandidate", 0.8
    elif distance < avg_size * 1.2:
        rel_type, confidence = "HandsClose", 0.6
    elif abs(dx) < avg_size * 0.5:
        rel_type, confidence = "Crossing", 0.4

    return InterHandRelation(
        hand_id_a=a.id,
        hand_id_b=b.id,
        type=rel_type,
        distance_px=float(distance),
        confidence=float(confidence),
    )


def infer_inter_hand_relations(hands: Sequence[HandState]) -> list[InterHandRelation]:
    """遍历所有无序手对（i < j）。少于两只手时返回空列表。"""

    relations: list[InterHandRelation] = []
    for i in range(len(hands)):
        for j in range(i + 1, len(hands)):
            relations.append(classify_pair(hands[i], hands[j]))
    return relations
