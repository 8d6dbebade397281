from __future__ import annotations

import json
from pathlib import Path

import pytest

from handscene.config import EngineConfig, load_engine_config, parse_engine_config
from handscene.detection.anchors import AnchorOptions
from handscene.pipeline import HandSceneEngine


def test_empty_mapping_gives_defaults() -> None:
    cfg = parse_engine_config({})
    assert cfg == EngineConfig()
    assert cfg.detection.score_threshold == 0.55
    assert cfg.detection.iou_threshold == 0.3
    assert cfg.detection.max_hands == 2
    assert cfg.aux_schema is None


def test_load_json_config_overrides_sections(tmp_path: Path) -> None:
    # 说明：使用 JSON 配置来避免测试环境对 PyYAML 的依赖。
    p = tmp_path / "engine.json"
    p.write_text(
        json.dumps(
            {
                "detection": {"score_threshold": 0.7, "max_hands": 4},
                "tracker": {"max_missed_frames": 10},
                "stabilizer": {"history_size": 5},
                "aux_schema": {"presence_index": 0, "handedness_index": "1", "handedness_layout": "softmax2"},
                "include_performance_metrics": True,
                "enable_stabilizer": False,
                "landmark_input_size": [256, 256],
            }
        ),
        encoding="utf-8",
    )

    cfg = load_engine_config(p)
    assert cfg.detection.score_threshold == 0.7
    assert cfg.detection.max_hands == 4
    assert cfg.detection.iou_threshold == 0.3
    assert cfg.tracker.max_missed_frames == 10
    assert cfg.stabilizer.history_size == 5
    assert cfg.aux_schema is not None
    assert cfg.aux_schema.presence_index == 0
    assert cfg.aux_schema.handedness_index == 1
    assert cfg.aux_schema.visibility_index is None
    assert cfg.aux_schema.handedness_layout == "softmax2"
    assert cfg.include_performance_metrics is True
    assert cfg.enable_stabilizer is False
    assert cfg.landmark_input_size == (256, 256)


def test_load_yaml_config(tmp_path: Path) -> None:
    pytest.importorskip("yaml")
    p = tmp_path / "engine.yaml"
    p.write_text(
        "anchors:\n"
        "  strides: [8, 16]\n"
        "  interpolated_scale_aspect_ratio: 0\n"
        "detection:\n"
        "  iou_threshold: 0.5\n",
        encoding="utf-8",
    )

    cfg = load_engine_config(p)
    assert cfg.anchors.strides == (8, 16)
    assert cfg.detection.iou_threshold == 0.5

    # 非默认 anchor 参数时，引擎按配置重新生成 anchor。
    engine = HandSceneEngine(cfg)
    assert len(engine.anchors) == 24 * 24 + 12 * 12


def test_empty_yaml_file_gives_defaults(tmp_path: Path) -> None:
    pytest.importorskip("yaml")
    p = tmp_path / "empty.yml"
    p.write_text("", encoding="utf-8")
    assert load_engine_config(p) == EngineConfig()


def test_default_engine_shares_process_anchors() -> None:
    from handscene.detection.anchors import PALM_DETECTION_ANCHORS

    engine = HandSceneEngine(EngineConfig(anchors=AnchorOptions()))
    assert engine.anchors is PALM_DETECTION_ANCHORS


@pytest.mark.parametrize(
    "data, message",
    [
        ({"detection": {"max_hands": -1}}, "max_hands"),
        ({"detection": {"score_threshold": 1.5}}, "score_threshold"),
        ({"detection": []}, "detection"),
        ({"anchors": {"strides": [8, 0]}}, "strides"),
        ({"stabilizer": {"history_size": 0}}, "history_size"),
        ({"aux_schema": {"handedness_layout": "sigmoid"}}, "handedness_layout"),
        ({"landmark_input_size": [224]}, "landmark_input_size"),
    ],
)
def test_invalid_values_raise(data: dict, message: str) -> None:
    with pytest.raises(RuntimeError, match=message):
        parse_engine_config(data)


def test_unsupported_suffix_and_non_dict_top_level(tmp_path: Path) -> None:
    p = tmp_path / "engine.toml"
    p.write_text("", encoding="utf-8")
    with pytest.raises(RuntimeError):
        load_engine_config(p)

    p = tmp_path / "engine.json"
    p.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(RuntimeError):
        load_engine_config(p)
