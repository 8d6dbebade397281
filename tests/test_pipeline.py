"""端到端：fake backend 合成张量 -> 引擎解释 -> JSON 记录。"""

from __future__ import annotations

import json
import unittest
from pathlib import Path

import numpy as np

from handscene.api import build_engine, iter_scenes_from_dumps
from handscene.backends import FakeHandBackend, create_backend, mock_hand_landmarks
from handscene.config import EngineConfig
from handscene.detection.anchors import PALM_DETECTION_ANCHORS
from handscene.io.tensor_dump import iter_tensor_dumps, save_frame_tensors
from handscene.landmarks.schema import parse_landmark_outputs
from handscene.models import FrameMeta, ModelReadiness, RawDetectorOutput
from handscene.pipeline import (
    HandSceneEngine,
    interpret_frame,
    prepare_detections,
    run_scene_pipeline,
    scene_to_record,
)

W, H = 640, 480
N_ANCHORS = len(PALM_DETECTION_ANCHORS)


def _backend(**kwargs) -> FakeHandBackend:
    kwargs.setdefault("palm_centers", ((0.35, 0.5), (0.65, 0.5)))
    return FakeHandBackend(**kwargs)


def _frames(n: int, *, with_image: bool = False):
    for i in range(n):
        img = np.zeros((H, W, 3), dtype=np.uint8) if with_image else None
        yield FrameMeta(frame_width=W, frame_height=H, frame_id=i), img


def _one_frame(backend: FakeHandBackend, meta: FrameMeta):
    det = backend.run_detector(None)
    prepared = prepare_detections(det, PALM_DETECTION_ANCHORS, meta)
    lm = [parse_landmark_outputs(*backend.run_landmarks(None)) for _ in prepared.roi_boxes_on_frame]
    return det, prepared, lm


class TestNoDetections(unittest.TestCase):
    def test_all_below_threshold_gives_empty_scene(self) -> None:
        det = RawDetectorOutput(
            raw_boxes=np.zeros(N_ANCHORS * 18, dtype=np.float32),
            raw_scores=np.full(N_ANCHORS, -10.0, dtype=np.float32),
        )
        meta = FrameMeta(frame_width=W, frame_height=H, frame_id=5)

        scene = interpret_frame(det, [], PALM_DETECTION_ANCHORS, meta)
        self.assertEqual(scene.hands, ())
        self.assertEqual(scene.inter_hand_relations, ())
        self.assertEqual(scene.raw_meta.num_detections_before_nms, N_ANCHORS)
        self.assertEqual(scene.frame_id, 5)

        scene = HandSceneEngine().process(det, None, meta)
        self.assertEqual(scene.hands, ())
        self.assertEqual(scene.raw_meta.num_detections_before_nms, 2016)

    def test_empty_tensors_never_raise(self) -> None:
        det = RawDetectorOutput(raw_boxes=np.zeros(0), raw_scores=np.zeros(0))
        scene = interpret_frame(det, None, PALM_DETECTION_ANCHORS, FrameMeta(frame_width=W, frame_height=H))
        self.assertEqual(scene.hands, ())
        self.assertEqual(scene.raw_meta.num_detections_before_nms, 0)
        self.assertEqual(scene.frame_id, 0)


class TestInterpretFrame(unittest.TestCase):
    def test_two_fake_hands_are_interpreted(self) -> None:
        meta = FrameMeta(frame_width=W, frame_height=H, frame_id=7)
        det, prepared, lm = _one_frame(_backend(), meta)

        self.assertEqual(len(prepared.boxes), 2)
        scene = interpret_frame(det, lm, PALM_DETECTION_ANCHORS, meta)

        self.assertEqual([h.id for h in scene.hands], ["7-0", "7-1"])
        self.assertEqual({h.handedness for h in scene.hands}, {"Left", "Right"})
        self.assertEqual(len(scene.inter_hand_relations), 1)
        self.assertEqual(scene.inter_hand_relations[0].type, "HandshakeCandidate")
        self.assertIsNone(scene.raw_meta.processing_time_ms)

        left = scene.hands[0]
        self.assertAlmostEqual(left.spatial.center[0], 0.35 * W, places=3)
        self.assertAlmostEqual(left.spatial.size[0], 0.25 * W, places=3)
        self.assertEqual(len(left.landmarks), 21)
        self.assertTrue(all(0.0 <= p.x <= W and 0.0 <= p.y <= H for p in left.landmarks))
        self.assertTrue(0.0 <= left.quality_score <= 1.0)

    def test_precomputed_detections_are_reused(self) -> None:
        meta = FrameMeta(frame_width=W, frame_height=H, frame_id=1)
        det, prepared, lm = _one_frame(_backend(), meta)

        a = interpret_frame(det, lm, PALM_DETECTION_ANCHORS, meta)
        empty = RawDetectorOutput(raw_boxes=np.zeros(0), raw_scores=np.zeros(0))
        b = interpret_frame(empty, lm, PALM_DETECTION_ANCHORS, meta, precomputed=prepared)
        self.assertEqual(a, b)

    def test_fewer_landmark_outputs_than_rois(self) -> None:
        meta = FrameMeta(frame_width=W, frame_height=H, frame_id=2)
        det, _, lm = _one_frame(_backend(), meta)

        scene = interpret_frame(det, lm[:1], PALM_DETECTION_ANCHORS, meta)
        self.assertEqual(len(scene.hands), 1)
        self.assertEqual(scene.inter_hand_relations, ())

    def test_performance_metrics_flag(self) -> None:
        meta = FrameMeta(frame_width=W, frame_height=H)
        det, _, lm = _one_frame(_backend(), meta)
        scene = interpret_frame(det, lm, PALM_DETECTION_ANCHORS, meta, include_performance_metrics=True)
        self.assertIsNotNone(scene.raw_meta.processing_time_ms)
        self.assertGreaterEqual(scene.raw_meta.processing_time_ms, 0.0)


class TestEngine(unittest.TestCase):
    def test_identities_persist_across_frames(self) -> None:
        engine = HandSceneEngine()
        scenes = list(run_scene_pipeline(frames=_frames(4), backend=_backend(), engine=engine))

        self.assertEqual(len(scenes), 4)
        for s in scenes:
            self.assertEqual([h.id for h in s.hands], ["hand-1", "hand-2"])
        self.assertEqual(engine.tracker_state.active_ids, ["hand-1", "hand-2"])

    def test_stabilized_landmarks_equal_raw_for_static_hands(self) -> None:
        engine = HandSceneEngine()
        scenes = list(run_scene_pipeline(frames=_frames(3), backend=_backend(), engine=engine))

        first = np.array([[p.x, p.y, p.z] for p in scenes[0].hands[0].landmarks])
        last = np.array([[p.x, p.y, p.z] for p in scenes[-1].hands[0].landmarks])
        self.assertTrue(np.allclose(first, last))
        self.assertEqual(len(engine.stabilizer_state.history["hand-1"]), 3)

    def test_tracking_disabled_uses_frame_slot_ids(self) -> None:
        engine = HandSceneEngine(EngineConfig(enable_tracking=False))
        scenes = list(run_scene_pipeline(frames=_frames(2), backend=_backend(), engine=engine))
        self.assertEqual([h.id for h in scenes[1].hands], ["1-0", "1-1"])

    def test_not_ready_backend_skips_frames(self) -> None:
        backend = _backend(readiness=ModelReadiness.LOADING)
        engine = HandSceneEngine()

        self.assertEqual(list(run_scene_pipeline(frames=_frames(3), backend=backend, engine=engine)), [])
        self.assertEqual(engine.tracker_state.active_ids, [])

        backend.readiness = ModelReadiness.READY
        scenes = list(run_scene_pipeline(frames=_frames(1), backend=backend, engine=engine))
        self.assertEqual(len(scenes), 1)

    def test_pipeline_crops_when_image_is_available(self) -> None:
        engine = HandSceneEngine()
        scenes = list(run_scene_pipeline(frames=_frames(2, with_image=True), backend=_backend(), engine=engine))
        self.assertEqual(len(scenes[-1].hands), 2)

    def test_reset_clears_state(self) -> None:
        engine = HandSceneEngine()
        list(run_scene_pipeline(frames=_frames(2), backend=_backend(), engine=engine))
        engine.reset()
        self.assertEqual(engine.tracker_state.active_ids, [])
        self.assertEqual(engine.stabilizer_state.history, {})

    def test_drifting_hands_keep_identity(self) -> None:
        engine = HandSceneEngine()
        backend = _backend(drift_per_frame=(0.01, 0.0))
        scenes = list(run_scene_pipeline(frames=_frames(5), backend=backend, engine=engine))
        self.assertEqual([h.id for h in scenes[-1].hands], ["hand-1", "hand-2"])
        self.assertGreater(scenes[-1].hands[0].spatial.center[0], scenes[0].hands[0].spatial.center[0])


def test_scene_record_is_strict_json() -> None:
    engine = HandSceneEngine(EngineConfig(include_performance_metrics=True))
    scene = next(run_scene_pipeline(frames=_frames(1), backend=_backend(), engine=engine))
    rec = scene_to_record(scene)

    text = json.dumps(rec, allow_nan=False)
    back = json.loads(text)
    assert back["frame_id"] == 0
    assert len(back["hands"]) == 2
    assert len(back["hands"][0]["landmarks"]) == 21
    assert back["inter_hand_relations"][0]["type"] == "HandshakeCandidate"
    assert back["raw_meta"]["num_detections_before_nms"] == 2016
    assert back["raw_meta"]["processing_time_ms"] is not None


def test_tensor_dump_feeds_engine(tmp_path: Path) -> None:
    backend = _backend()
    for i in range(3):
        meta = FrameMeta(frame_width=W, frame_height=H, frame_id=i)
        det = backend.run_detector(None)
        prepared = prepare_detections(det, PALM_DETECTION_ANCHORS, meta)
        lm = [backend.run_landmarks(None) for _ in prepared.roi_boxes_on_frame]
        save_frame_tensors(tmp_path / f"frame_{i:06d}", meta=meta, detector_output=det, landmark_outputs=lm)

    frames = list(iter_tensor_dumps(tmp_path))
    assert [f.meta.frame_id for f in frames] == [0, 1, 2]
    assert len(frames[0].landmarks) == 2
    assert len(frames[0].landmarks[0][1]) == 3

    scenes = list(iter_scenes_from_dumps(inputs_dir=tmp_path, engine=build_engine()))
    assert [len(s.hands) for s in scenes] == [2, 2, 2]
    assert scenes[-1].hands[0].id == "hand-1"


def test_create_backend_rejects_unknown_name() -> None:
    assert isinstance(create_backend(name="FAKE"), FakeHandBackend)
    try:
        create_backend(name="tflite")
    except ValueError as exc:
        assert "unknown backend" in str(exc)
    else:
        raise AssertionError("expected ValueError")


def test_mock_hand_landmarks_fit_inside_roi() -> None:
    lm = mock_hand_landmarks().reshape(21, 3)
    assert lm.shape == (21, 3)
    assert np.all(lm[:, :2] > 0.0) and np.all(lm[:, :2] < 1.0)


if __name__ == "__main__":
    unittest.main()
