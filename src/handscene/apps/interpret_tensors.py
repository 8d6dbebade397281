"""离线：解释原始张量转储（或 fake backend 合成帧），逐帧输出手部场景 JSONL。"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any, Iterator, Optional

from handscene.backends import create_backend
from handscene.config import EngineConfig, load_engine_config
from handscene.detection.diagnostics import summarize_scores
from handscene.io.tensor_dump import iter_tensor_dumps
from handscene.logging_utils import LOG_LEVELS, configure_logging
from handscene.models import FrameMeta
from handscene.pipeline import HandSceneEngine, run_scene_pipeline, scene_to_record


def build_arg_parser() -> argparse.ArgumentParser:
    # 说明：Windows 终端编码差异较大，这里尽量使用 ASCII，避免 --help 乱码。
    p = argparse.ArgumentParser(description="Offline: interpret hand-model tensors into per-frame hand scenes")
    p.add_argument(
        "--config",
        default="",
        help="Optional engine config file (.json/.yaml/.yml). Missing fields use defaults.",
    )
    p.add_argument(
        "--inputs",
        default="",
        help="Directory of .npz tensor dumps. If empty, frames are synthesized by --backend.",
    )
    p.add_argument("--backend", choices=["fake"], default="fake", help="Backend used when --inputs is empty")
    p.add_argument("--frames", type=int, default=10, help="Number of synthesized frames (backend mode)")
    p.add_argument("--max-frames", type=int, default=0, help="Process at most N dumps (0 = no limit)")
    p.add_argument("--frame-width", type=int, default=640, help="Frame width in pixels (backend mode)")
    p.add_argument("--frame-height", type=int, default=480, help="Frame height in pixels (backend mode)")
    p.add_argument(
        "--drift",
        type=float,
        nargs=2,
        default=(0.0, 0.0),
        metavar=("DX", "DY"),
        help="Per-frame palm drift in normalized units (backend mode)",
    )
    p.add_argument(
        "--score-stats",
        action="store_true",
        help="Attach detector score diagnostics to each record (inputs mode)",
    )
    p.add_argument("--log-level", choices=list(LOG_LEVELS), default="INFO", help="Console log level")
    p.add_argument(
        "--log-file",
        default="",
        help="Optional log file (DEBUG level, includes library warnings about degraded tensors)",
    )
    p.add_argument(
        "--out-jsonl",
        default=str(Path("data") / "tools_output" / "hand_scenes.jsonl"),
        help="Output JSONL path (relative paths resolve against the current working directory)",
    )
    return p


def _iter_dump_records(
    *,
    inputs_dir: Path,
    engine: HandSceneEngine,
    max_frames: int,
    score_stats: bool,
) -> Iterator[dict[str, Any]]:
    for frame in iter_tensor_dumps(inputs_dir, max_frames=max_frames):
        lm_outputs = [engine.parse_landmarks(lm, aux) for lm, aux in frame.landmarks]
        scene = engine.process(frame.detector_output, lm_outputs, frame.meta)
        rec = scene_to_record(scene)
        rec["source"] = frame.path.name
        if score_stats:
            rec["score_stats"] = summarize_scores(frame.detector_output.raw_scores)
        yield rec


def _iter_backend_records(
    *,
    backend_name: str,
    engine: HandSceneEngine,
    frames: int,
    frame_width: int,
    frame_height: int,
    drift: tuple[float, float],
) -> Iterator[dict[str, Any]]:
    backend = create_backend(name=backend_name, drift_per_frame=(float(drift[0]), float(drift[1])))
    metas = (
        (FrameMeta(frame_width=int(frame_width), frame_height=int(frame_height), frame_id=i), None)
        for i in range(int(frames))
    )
    for scene in run_scene_pipeline(frames=metas, backend=backend, engine=engine):
        yield scene_to_record(scene)


def main(argv: Optional[list[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    logger = configure_logging(str(args.log_level), log_file=str(args.log_file).strip() or None)

    if str(getattr(args, "config", "") or "").strip():
        cfg = load_engine_config(Path(str(args.config)).resolve())
    else:
        cfg = EngineConfig()

    engine = HandSceneEngine(cfg, logger=logger)
    out_path = Path(args.out_jsonl).resolve()
    out_path.parent.mkdir(parents=True, exist_ok=True)

    if str(args.inputs).strip():
        records = _iter_dump_records(
            inputs_dir=Path(str(args.inputs)).resolve(),
            engine=engine,
            max_frames=int(args.max_frames),
            score_stats=bool(args.score_stats),
        )
    else:
        if int(args.frame_width) <= 0 or int(args.frame_height) <= 0:
            raise ValueError("--frame-width/--frame-height must be positive")
        records = _iter_backend_records(
            backend_name=str(args.backend),
            engine=engine,
            frames=int(args.frames),
            frame_width=int(args.frame_width),
            frame_height=int(args.frame_height),
            drift=(float(args.drift[0]), float(args.drift[1])),
        )

    frames_done = 0
    hands_done = 0
    with out_path.open("w", encoding="utf-8") as f_out:
        for rec in records:
            f_out.write(json.dumps(rec, ensure_ascii=False) + "\n")
            frames_done += 1
            hands_done += len(rec["hands"])

    logger.info("Done. frames=%d hands=%d out=%s", frames_done, hands_done, out_path)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
