"""手部场景解释流水线核心：解码 -> NMS -> ROI -> landmark 映射 -> 单手描述 -> 两手关系 -> 平滑。

本模块刻意保持“无框架依赖”（不依赖相机/UI/推理引擎），只依赖三类输入：
- 检测器原始输出 RawDetectorOutput
- 每只手的 landmark 输出 RawLandmarkOutput（由外部在 ROI 上推理得到）
- 帧元信息 FrameMeta

两种使用方式：
1) `interpret_frame`：无状态逐帧解释，手 id 为 `<frameId>-<slot>`。
2) `HandSceneEngine`：在 1) 基础上维护跨帧身份与 landmark 平滑状态（调用方持有）。

并发约定：同一个 HandSceneEngine 只允许单写者，一帧处理完再处理下一帧。
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from typing import Any, Iterable, Iterator, Optional, Sequence

import numpy as np

from handscene.config import DetectionParams, EngineConfig
from handscene.detection.anchors import PALM_DETECTION_ANCHORS, AnchorOptions, anchors_to_array, generate_anchors
from handscene.detection.decode import decode_detections
from handscene.detection.nms import non_max_suppression
from handscene.detection.roi import crop_roi, expand_roi_for_landmarks, map_box_to_frame
from handscene.interpretation.descriptor import build_hand_state
from handscene.interpretation.relations import infer_inter_hand_relations
from handscene.landmarks.mapper import map_landmarks_to_frame
from handscene.landmarks.schema import parse_landmark_outputs
from handscene.models import (
    Anchor,
    DetectionBox,
    DetectionBoxOnFrame,
    FrameMeta,
    HandState,
    ModelReadiness,
    RawDetectorOutput,
    RawLandmarkOutput,
    SceneInterpretation,
    SceneMeta,
)
from handscene.tracking.stabilizer import StabilizerState, stabilize_landmarks
from handscene.tracking.tracker import TrackerState, assign_identities

DEFAULT_FRAME_ID = 0


@dataclass(frozen=True)
class PreparedDetections:
    """检测阶段结果：选中的手框、其像素版本，以及供 landmark 推理裁剪的 ROI。"""

    boxes: tuple[DetectionBox, ...]
    boxes_on_frame: tuple[DetectionBoxOnFrame, ...]
    roi_boxes_on_frame: tuple[DetectionBoxOnFrame, ...]
    num_detections_before_nms: int


def prepare_detections(
    detector_output: RawDetectorOutput,
    anchors: Sequence[Anchor] | np.ndarray,
    meta: FrameMeta,
    params: DetectionParams | None = None,
) -> PreparedDetections:
    """解码 + 阈值过滤 + NMS + 映射到帧 + 扩展 ROI。"""

    params = params if params is not None else DetectionParams()
    decoded = decode_detections(detector_output, anchors)

    candidates = decoded.to_boxes(decoded.indices_above(params.score_threshold))
    selected = non_max_suppression(
        candidates,
        score_threshold=float(params.score_threshold),
        iou_threshold=float(params.iou_threshold),
        max_hands=int(params.max_hands),
    )

    on_frame = tuple(map_box_to_frame(b, meta) for b in selected)
    rois = tuple(expand_roi_for_landmarks(b, meta, float(params.roi_expansion)) for b in on_frame)

    return PreparedDetections(
        boxes=tuple(selected),
        boxes_on_frame=on_frame,
        roi_boxes_on_frame=rois,
        num_detections_before_nms=decoded.count,
    )


def _build_hands(
    prepared: PreparedDetections,
    landmark_outputs: Sequence[RawLandmarkOutput],
    meta: FrameMeta,
    hand_ids: Sequence[str],
) -> list[HandState]:
    hands: list[HandState] = []
    for i, hand_id in enumerate(hand_ids):
        raw = landmark_outputs[i]
        hands.append(
            build_hand_state(
                hand_id=hand_id,
                detection_box=prepared.boxes_on_frame[i],
                landmarks=map_landmarks_to_frame(raw.landmarks, prepared.roi_boxes_on_frame[i]),
                raw=raw,
                meta=meta,
            )
        )
    return hands


def interpret_frame(
    detector_output: RawDetectorOutput,
    landmark_outputs: Optional[Sequence[RawLandmarkOutput]],
    anchors: Sequence[Anchor] | np.ndarray,
    meta: FrameMeta,
    *,
    params: DetectionParams | None = None,
    precomputed: PreparedDetections | None = None,
    include_performance_metrics: bool = False,
) -> SceneInterpretation:
    """无状态逐帧解释。

    Args:
        detector_output: 检测器原始输出（precomputed 非 None 时不再使用）。
        landmark_outputs: 与选中手框顺序一致的 landmark 输出；数量不足时只解释前 N 只手。
        anchors: anchor 序列或 (N, 4) 数组。
        meta: 帧元信息。
        params: 检测参数。
        precomputed: 已执行过的检测阶段结果（通常用于先裁 ROI、再跑 landmark 模型的两段式调用）。
        include_performance_metrics: 是否记录处理耗时。

    Returns:
        SceneInterpretation；没有检测到手时 hands 与 inter_hand_relations 为空。
    """

    t0 = time.perf_counter()
    prepared = precomputed if precomputed is not None else prepare_detections(detector_output, anchors, meta, params)
    frame_id = int(meta.frame_id) if meta.frame_id is not None else DEFAULT_FRAME_ID

    outputs = list(landmark_outputs or [])
    usable = min(len(prepared.roi_boxes_on_frame), len(outputs))
    hands = _build_hands(prepared, outputs, meta, [f"{frame_id}-{i}" for i in range(usable)])
    relations = infer_inter_hand_relations(hands)

    return SceneInterpretation(
        frame_id=frame_id,
        hands=tuple(hands),
        inter_hand_relations=tuple(relations),
        raw_meta=SceneMeta(
            num_detections_before_nms=int(prepared.num_detections_before_nms),
            frame_width=int(meta.frame_width),
            frame_height=int(meta.frame_height),
            processing_time_ms=(time.perf_counter() - t0) * 1000.0 if include_performance_metrics else None,
        ),
    )


class HandSceneEngine:
    """带跨帧身份与 landmark 平滑的解释引擎。

    说明：
        - anchor 默认使用进程级共享的 PALM_DETECTION_ANCHORS（参数与默认值一致时）。
        - tracker_state / stabilizer_state 是显式状态对象，可由调用方注入以共享或检查。
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        anchors: Sequence[Anchor] | None = None,
        tracker_state: TrackerState | None = None,
        stabilizer_state: StabilizerState | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._cfg = config if config is not None else EngineConfig()
        self._logger = logger or logging.getLogger(__name__)

        if anchors is None:
            anchors = PALM_DETECTION_ANCHORS if self._cfg.anchors == AnchorOptions() else generate_anchors(self._cfg.anchors)
        self._anchors = tuple(anchors)
        self._anchor_arr = anchors_to_array(self._anchors)

        self.tracker_state = tracker_state if tracker_state is not None else TrackerState()
        self.stabilizer_state = stabilizer_state if stabilizer_state is not None else StabilizerState()

    @property
    def config(self) -> EngineConfig:
        return self._cfg

    @property
    def anchors(self) -> tuple[Anchor, ...]:
        return self._anchors

    def reset(self) -> None:
        """清空跨帧状态（例如切换视频源时）。"""

        self.tracker_state.reset()
        self.stabilizer_state.reset()

    def prepare(self, detector_output: RawDetectorOutput, meta: FrameMeta) -> PreparedDetections:
        return prepare_detections(detector_output, self._anchor_arr, meta, self._cfg.detection)

    def parse_landmarks(
        self,
        landmarks: np.ndarray | Sequence[float],
        aux: Sequence[np.ndarray | Sequence[float]] = (),
    ) -> RawLandmarkOutput:
        """按配置中的 aux_schema（或长度启发式）解析一次 landmark 推理输出。"""

        return parse_landmark_outputs(landmarks, aux, self._cfg.aux_schema)

    def process(
        self,
        detector_output: RawDetectorOutput,
        landmark_outputs: Optional[Sequence[RawLandmarkOutput]],
        meta: FrameMeta,
        *,
        precomputed: PreparedDetections | None = None,
    ) -> SceneInterpretation:
        """处理一帧并更新跨帧状态。"""

        t0 = time.perf_counter()
        prepared = precomputed if precomputed is not None else self.prepare(detector_output, meta)
        frame_id = int(meta.frame_id) if meta.frame_id is not None else DEFAULT_FRAME_ID

        outputs = list(landmark_outputs or [])
        usable = min(len(prepared.roi_boxes_on_frame), len(outputs))
        if len(outputs) != len(prepared.roi_boxes_on_frame):
            self._logger.debug(
                "frame %d: %d rois but %d landmark outputs; using %d",
                frame_id,
                len(prepared.roi_boxes_on_frame),
                len(outputs),
                usable,
            )

        if self._cfg.enable_tracking:
            hand_ids = assign_identities(self.tracker_state, prepared.boxes_on_frame[:usable], self._cfg.tracker)
        else:
            hand_ids = [f"{frame_id}-{i}" for i in range(usable)]

        hands = _build_hands(prepared, outputs, meta, hand_ids)
        relations = infer_inter_hand_relations(hands)

        if self._cfg.enable_stabilizer:
            smoothed = stabilize_landmarks(
                self.stabilizer_state,
                {h.id: h.landmarks for h in hands},
                frame_width=int(meta.frame_width),
                frame_height=int(meta.frame_height),
                cfg=self._cfg.stabilizer,
            )
            hands = [replace(h, landmarks=smoothed.get(h.id, h.landmarks)) for h in hands]

        return SceneInterpretation(
            frame_id=frame_id,
            hands=tuple(hands),
            inter_hand_relations=tuple(relations),
            raw_meta=SceneMeta(
                num_detections_before_nms=int(prepared.num_detections_before_nms),
                frame_width=int(meta.frame_width),
                frame_height=int(meta.frame_height),
                processing_time_ms=(
                    (time.perf_counter() - t0) * 1000.0 if self._cfg.include_performance_metrics else None
                ),
            ),
        )


def run_scene_pipeline(
    *,
    frames: Iterable[tuple[FrameMeta, Any]],
    backend: Any,
    engine: HandSceneEngine,
) -> Iterator[SceneInterpretation]:
    """对帧序列运行端到端流水线。

    流程：
        1) backend 未就绪（readiness != READY）时跳过该帧，不留下任何部分状态。
        2) 检测：backend.run_detector(image) -> RawDetectorOutput，引擎完成解码/NMS/ROI。
        3) landmark：对每个 ROI（有图像时先用 crop_roi 裁剪）调用 backend.run_landmarks。
        4) 引擎解释 + 跟踪 + 平滑。

    Args:
        frames: 迭代器，产出 (meta, image)；image 可为 None（例如 fake backend）。
        backend: 满足 HandModelBackend 协议的对象。
        engine: 解释引擎（持有跨帧状态）。

    Yields:
        每个被处理的帧一个 SceneInterpretation。
    """

    log = logging.getLogger(__name__)
    size = engine.config.landmark_input_size

    for meta, image in frames:
        readiness = getattr(backend, "readiness", ModelReadiness.READY)
        if readiness != ModelReadiness.READY:
            log.debug("skip frame %s: backend readiness=%s", meta.frame_id, readiness)
            continue

        det_out = backend.run_detector(image)
        prepared = engine.prepare(det_out, meta)

        lm_outputs: list[RawLandmarkOutput] = []
        for roi in prepared.roi_boxes_on_frame:
            roi_img = crop_roi(image, roi, size) if image is not None else None
            landmarks, aux = backend.run_landmarks(roi_img)
            lm_outputs.append(engine.parse_landmarks(landmarks, aux))

        yield engine.process(det_out, lm_outputs, meta, precomputed=prepared)
