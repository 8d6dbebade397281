# -*- coding: utf-8 -*-

"""生成离线可跑通的张量转储序列（.npz）。

说明：
- 用 fake backend 合成两只手的检测张量与 landmark 输出，并按帧写成 npz。
- 输出目录：data/tensors/sample_sequence/

运行后可用：
- python -m handscene.apps.interpret_tensors --inputs data/tensors/sample_sequence
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Optional

from handscene.backends import FakeHandBackend
from handscene.config import EngineConfig
from handscene.detection.anchors import PALM_DETECTION_ANCHORS
from handscene.io.tensor_dump import save_frame_tensors
from handscene.models import FrameMeta
from handscene.pipeline import prepare_detections


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[1]


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Generate a fake .npz tensor sequence for offline interpretation")
    p.add_argument(
        "--out-dir",
        default=str(_repo_root() / "data" / "tensors" / "sample_sequence"),
        help="Output directory",
    )
    p.add_argument("--frames", type=int, default=8, help="Number of frames")
    p.add_argument("--frame-width", type=int, default=640)
    p.add_argument("--frame-height", type=int, default=480)
    p.add_argument("--drift-x", type=float, default=0.005, help="Per-frame palm drift (normalized x)")
    return p


def main(argv: Optional[list[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    out_dir = Path(args.out_dir).resolve()

    backend = FakeHandBackend(drift_per_frame=(float(args.drift_x), 0.0))
    params = EngineConfig().detection

    written = 0
    for i in range(int(args.frames)):
        meta = FrameMeta(frame_width=int(args.frame_width), frame_height=int(args.frame_height), frame_id=i)
        det = backend.run_detector(None)

        # landmark 输出的顺序必须与引擎选出的 ROI 顺序一致，因此这里先跑一次检测阶段。
        prepared = prepare_detections(det, PALM_DETECTION_ANCHORS, meta, params)
        lm_outputs = [backend.run_landmarks(None) for _ in prepared.roi_boxes_on_frame]

        save_frame_tensors(out_dir / f"frame_{i:06d}.npz", meta=meta, detector_output=det, landmark_outputs=lm_outputs)
        written += 1

    # Use ASCII to avoid Windows console encoding issues.
    print(f"Generated tensor dumps: {written} -> {out_dir}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
