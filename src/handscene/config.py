"""配置模型（dataclass）与 YAML/JSON 加载。

目标：
- 用 dataclass 表达引擎所需的关键参数（检测阈值、anchor 网格、跟踪与平滑）
- 支持从 `.yaml/.yml/.json` 加载

说明：
- 所有字段都有默认值，配置文件只需写需要覆盖的部分。
- 配置错误直接抛 RuntimeError（属于调用方错误，不属于引擎的降级路径）。
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, cast

from handscene.detection.anchors import AnchorOptions
from handscene.landmarks.schema import AuxTensorSchema, HandednessLayout
from handscene.tracking.stabilizer import StabilizerConfig
from handscene.tracking.tracker import TrackerConfig


@dataclass(frozen=True)
class DetectionParams:
    score_threshold: float = 0.55
    iou_threshold: float = 0.3
    max_hands: int = 2
    roi_expansion: float = 1.25


@dataclass(frozen=True)
class EngineConfig:
    detection: DetectionParams = field(default_factory=DetectionParams)
    anchors: AnchorOptions = field(default_factory=AnchorOptions)
    tracker: TrackerConfig = field(default_factory=TrackerConfig)
    stabilizer: StabilizerConfig = field(default_factory=StabilizerConfig)
    # None 表示使用长度启发式解析 landmark 辅助输出。
    aux_schema: Optional[AuxTensorSchema] = None
    include_performance_metrics: bool = False
    enable_tracking: bool = True
    enable_stabilizer: bool = True
    # landmark 模型输入尺寸 (width, height)，用于裁剪 ROI。
    landmark_input_size: tuple[int, int] = (224, 224)


def _load_mapping(path: Path) -> dict[str, Any]:
    path = Path(path)
    suf = path.suffix.lower()

    if suf == ".json":
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    elif suf in {".yaml", ".yml"}:
        try:
            import yaml  # type: ignore
        except Exception as exc:  # pragma: no cover
            raise RuntimeError("PyYAML 未安装，无法读取 YAML 配置") from exc

        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    else:
        raise RuntimeError(f"不支持的配置文件类型: {path}（仅支持 .json/.yaml/.yml）")

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise RuntimeError("配置文件顶层必须是对象（dict）")

    return data


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    sec = data.get(key, {})
    if sec is None:
        return {}
    if not isinstance(sec, dict):
        raise RuntimeError(f"config field '{key}' must be an object")
    return sec


def _as_optional_int(x: Any) -> int | None:
    if x is None:
        return None
    s = str(x).strip()
    if not s:
        return None
    return int(s)


def _as_float_tuple(x: Any, default: tuple[float, ...]) -> tuple[float, ...]:
    if x is None:
        return default
    if not isinstance(x, (list, tuple)) or not x:
        raise RuntimeError("expected a non-empty list of numbers")
    return tuple(float(v) for v in x)


def _as_layout(x: Any) -> HandednessLayout:
    s = str(x if x is not None else "right_prob").strip().lower()
    if s not in {"softmax2", "right_prob"}:
        raise RuntimeError(f"unknown handedness_layout: {s} (expected: softmax2|right_prob)")
    return cast(HandednessLayout, s)


def parse_engine_config(data: dict[str, Any]) -> EngineConfig:
    """把已解析的 dict 转为 EngineConfig（缺失字段使用默认值）。"""

    det = _section(data, "detection")
    d0 = DetectionParams()
    detection = DetectionParams(
        score_threshold=float(det.get("score_threshold", d0.score_threshold)),
        iou_threshold=float(det.get("iou_threshold", d0.iou_threshold)),
        max_hands=int(det.get("max_hands", d0.max_hands)),
        roi_expansion=float(det.get("roi_expansion", d0.roi_expansion)),
    )
    if detection.max_hands < 0:
        raise RuntimeError("detection.max_hands must be >= 0")
    if not (0.0 <= detection.score_threshold <= 1.0):
        raise RuntimeError("detection.score_threshold must be in [0, 1]")

    anc = _section(data, "anchors")
    a0 = AnchorOptions()
    strides = tuple(int(s) for s in _as_float_tuple(anc.get("strides"), tuple(float(s) for s in a0.strides)))
    if any(s <= 0 for s in strides):
        raise RuntimeError("anchors.strides must be positive")
    anchors = AnchorOptions(
        input_width=int(anc.get("input_width", a0.input_width)),
        input_height=int(anc.get("input_height", a0.input_height)),
        min_scale=float(anc.get("min_scale", a0.min_scale)),
        max_scale=float(anc.get("max_scale", a0.max_scale)),
        strides=strides,
        anchor_offset_x=float(anc.get("anchor_offset_x", a0.anchor_offset_x)),
        anchor_offset_y=float(anc.get("anchor_offset_y", a0.anchor_offset_y)),
        aspect_ratios=_as_float_tuple(anc.get("aspect_ratios"), a0.aspect_ratios),
        interpolated_scale_aspect_ratio=float(
            anc.get("interpolated_scale_aspect_ratio", a0.interpolated_scale_aspect_ratio)
        ),
        fixed_anchor_size=bool(anc.get("fixed_anchor_size", a0.fixed_anchor_size)),
    )

    trk = _section(data, "tracker")
    t0 = TrackerConfig()
    tracker = TrackerConfig(
        iou_threshold=float(trk.get("iou_threshold", t0.iou_threshold)),
        max_center_dist_ratio=float(trk.get("max_center_dist_ratio", t0.max_center_dist_ratio)),
        max_missed_frames=int(trk.get("max_missed_frames", t0.max_missed_frames)),
    )

    stb = _section(data, "stabilizer")
    s0 = StabilizerConfig()
    stabilizer = StabilizerConfig(
        history_size=int(stb.get("history_size", s0.history_size)),
        movement_threshold_ratio=float(stb.get("movement_threshold_ratio", s0.movement_threshold_ratio)),
        min_frames_to_average=int(stb.get("min_frames_to_average", s0.min_frames_to_average)),
    )
    if stabilizer.history_size < 1:
        raise RuntimeError("stabilizer.history_size must be >= 1")

    aux_schema: AuxTensorSchema | None = None
    if data.get("aux_schema") is not None:
        sch = _section(data, "aux_schema")
        aux_schema = AuxTensorSchema(
            presence_index=_as_optional_int(sch.get("presence_index")),
            handedness_index=_as_optional_int(sch.get("handedness_index")),
            visibility_index=_as_optional_int(sch.get("visibility_index")),
            landmark_score_index=_as_optional_int(sch.get("landmark_score_index")),
            handedness_layout=_as_layout(sch.get("handedness_layout")),
        )

    lm_size_raw = data.get("landmark_input_size", [224, 224])
    if not isinstance(lm_size_raw, (list, tuple)) or len(lm_size_raw) != 2:
        raise RuntimeError("landmark_input_size must be [width, height]")

    return EngineConfig(
        detection=detection,
        anchors=anchors,
        tracker=tracker,
        stabilizer=stabilizer,
        aux_schema=aux_schema,
        include_performance_metrics=bool(data.get("include_performance_metrics", False)),
        enable_tracking=bool(data.get("enable_tracking", True)),
        enable_stabilizer=bool(data.get("enable_stabilizer", True)),
        landmark_input_size=(int(lm_size_raw[0]), int(lm_size_raw[1])),
    )


def load_engine_config(path: Path) -> EngineConfig:
    """加载引擎配置文件。"""

    return parse_engine_config(_load_mapping(Path(path)))
