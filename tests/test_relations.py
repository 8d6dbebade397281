"""最小单测：两手关系启发式。"""

from __future__ import annotations

from handscene.interpretation.relations import classify_pair, infer_inter_hand_relations
from handscene.models import (
    DetectionBoxOnFrame,
    HandOrientation,
    HandPose,
    HandSpatialInfo,
    HandState,
    Handedness,
)


def _hand(hand_id: str, handedness: Handedness, cx: float, cy: float, size: float = 100.0) -> HandState:
    box = DetectionBoxOnFrame(
        id=0,
        score=0.9,
        cx=0.0,
        cy=0.0,
        w=0.0,
        h=0.0,
        rotation=0.0,
        palm_keypoints=(),
        cx_px=cx,
        cy_px=cy,
        w_px=size,
        h_px=size,
    )
    return HandState(
        id=hand_id,
        handedness=handedness,
        handedness_score=0.9,
        quality_score=0.9,
        detection_box=box,
        landmarks=(),
        orientation=HandOrientation((0.0, 0.0, 1.0), (0.0, 0.0, 1.0), 0.0, 0.0, 0.0),
        pose=HandPose(fingers={}, is_pinching=False, pinch_strength=0.0, spread=0.0),
        spatial=HandSpatialInfo(
            center=(cx, cy),
            normalized_center=(0.5, 0.5),
            size=(size, size),
            depth_approx=0.0,
            is_near_center=False,
        ),
    )


def test_same_handedness_far_apart_is_unknown() -> None:
    a = _hand("a", "Right", 100.0, 300.0)
    b = _hand("b", "Right", 600.0, 300.0)
    rel = classify_pair(a, b)
    assert rel.type == "Unknown"
    assert rel.confidence == 0.0
    assert rel.distance_px == 500.0


def test_opposite_hands_side_by_side_is_handshake_candidate() -> None:
    rel = classify_pair(_hand("a", "Right", 100.0, 300.0), _hand("b", "Left", 220.0, 320.0))
    assert rel.type == "HandshakeCandidate"
    assert rel.confidence == 0.8


def test_same_handedness_close_is_hands_close() -> None:
    rel = classify_pair(_hand("a", "Left", 100.0, 300.0), _hand("b", "Left", 200.0, 300.0))
    assert rel.type == "HandsClose"
    assert rel.confidence == 0.6


def test_vertically_stacked_is_crossing() -> None:
    rel = classify_pair(_hand("a", "Left", 100.0, 100.0), _hand("b", "Right", 130.0, 400.0))
    assert rel.type == "Crossing"
    assert rel.confidence == 0.4


def test_pair_classification_is_order_independent() -> None:
    a = _hand("a", "Right", 100.0, 300.0)
    b = _hand("b", "Left", 220.0, 320.0)
    ab = classify_pair(a, b)
    ba = classify_pair(b, a)
    assert (ab.type, ab.confidence, ab.distance_px) == (ba.type, ba.confidence, ba.distance_px)


def test_relations_cover_all_unordered_pairs() -> None:
    hands = [_hand(str(i), "Right", 100.0 * i, 0.0) for i in range(3)]
    rels = infer_inter_hand_relations(hands)
    assert [(r.hand_id_a, r.hand_id_b) for r in rels] == [("0", "1"), ("0", "2"), ("1", "2")]

    assert infer_inter_hand_relations(hands[:1]) == []
    assert infer_inter_hand_relations([]) == []
