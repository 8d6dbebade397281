"""最小单测：landmark 辅助输出解析（长度启发式与显式 schema）。"""

from __future__ import annotations

import numpy as np
import pytest

from handscene.landmarks.schema import AuxTensorSchema, decode_handedness, parse_landmark_outputs

LANDMARKS = np.zeros(63, dtype=np.float32)


def test_length_heuristic_presence_softmax_visibility() -> None:
    raw = parse_landmark_outputs(
        LANDMARKS,
        [np.array([0.9]), np.array([0.2, 0.8]), np.full(21, 0.5)],
    )
    assert raw.presence_score == pytest.approx(0.9)
    assert raw.handedness == "Right"
    assert raw.handedness_score == pytest.approx(0.8)
    assert raw.visibility is not None and raw.visibility.size == 21
    assert raw.landmarks.shape == (63,)


def test_second_scalar_is_right_probability() -> None:
    raw = parse_landmark_outputs(LANDMARKS, [np.array([0.95]), np.array([0.3])])
    assert raw.presence_score == pytest.approx(0.95)
    assert raw.handedness == "Left"
    assert raw.handedness_score == pytest.approx(0.7)


def test_missing_handedness_defaults_to_right_half() -> None:
    raw = parse_landmark_outputs(LANDMARKS)
    assert raw.handedness == "Right"
    assert raw.handedness_score == 0.5
    assert raw.presence_score is None
    assert raw.visibility is None


def test_unexpected_lengths_are_ignored() -> None:
    raw = parse_landmark_outputs(LANDMARKS, [np.zeros(7), np.array([0.1, 0.9])])
    assert raw.handedness == "Right"
    assert raw.presence_score is None


def test_explicit_schema_overrides_length_heuristic() -> None:
    schema = AuxTensorSchema(
        presence_index=2,
        handedness_index=0,
        visibility_index=1,
        handedness_layout="softmax2",
    )
    raw = parse_landmark_outputs(
        LANDMARKS,
        [np.array([0.7, 0.3]), np.full(63, 0.4), np.array([0.88])],
        schema,
    )
    assert raw.handedness == "Left"
    assert raw.handedness_score == pytest.approx(0.7)
    assert raw.presence_score == pytest.approx(0.88)
    assert raw.visibility is not None and raw.visibility.size == 63


def test_schema_index_out_of_range_falls_back_to_defaults() -> None:
    schema = AuxTensorSchema(presence_index=5, handedness_index=9)
    raw = parse_landmark_outputs(LANDMARKS, [np.array([0.9])], schema)
    assert raw.presence_score is None
    assert (raw.handedness, raw.handedness_score) == ("Right", 0.5)


def test_decode_handedness_layouts() -> None:
    assert decode_handedness(np.array([0.9]), "right_prob") == ("Right", pytest.approx(0.9))
    assert decode_handedness(np.array([0.6, 0.4]), "softmax2") == ("Left", pytest.approx(0.6))
    assert decode_handedness(np.array([]), "softmax2") == ("Right", 0.5)
