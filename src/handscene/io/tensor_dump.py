"""原始张量转储（npz）的读写。

职责：
- 把一帧的检测器输出 + 每只手的 landmark 输出保存为一个 `.npz`
- 按文件名顺序迭代目录下的转储，产出流水线可直接消费的结构

文件内键名约定：
- raw_boxes / raw_scores：检测器原始输出
- frame_width / frame_height / model_input_width / model_input_height / frame_id（-1 表示无）
- landmarks_<i>：第 i 只手的 21x3 缓冲
- aux_<i>_<j>：第 i 只手的第 j 个辅助张量

说明：
- 该模块只做 IO，不做解码/解释。
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Sequence

import numpy as np

from handscene.models import FrameMeta, RawDetectorOutput

_LANDMARKS_RE = re.compile(r"^landmarks_(\d+)$")
_AUX_RE = re.compile(r"^aux_(\d+)_(\d+)$")


@dataclass(frozen=True)
class TensorFrame:
    """一帧转储内容。landmarks 中每项为 (21x3 缓冲, 辅助张量列表)。"""

    path: Path
    meta: FrameMeta
    detector_output: RawDetectorOutput
    landmarks: list[tuple[np.ndarray, list[np.ndarray]]]


def save_frame_tensors(
    path: Path,
    *,
    meta: FrameMeta,
    detector_output: RawDetectorOutput,
    landmark_outputs: Sequence[tuple[np.ndarray, Sequence[np.ndarray]]] = (),
) -> Path:
    """保存一帧张量到 `.npz`（父目录不存在时自动创建）。"""

    path = Path(path)
    if path.suffix.lower() != ".npz":
        path = path.with_suffix(".npz")
    path.parent.mkdir(parents=True, exist_ok=True)

    arrays: dict[str, np.ndarray] = {
        "raw_boxes": np.asarray(detector_output.raw_boxes, dtype=np.float32).reshape(-1),
        "raw_scores": np.asarray(detector_output.raw_scores, dtype=np.float32).reshape(-1),
        "frame_width": np.asarray(int(meta.frame_width), dtype=np.int64),
        "frame_height": np.asarray(int(meta.frame_height), dtype=np.int64),
        "model_input_width": np.asarray(int(meta.model_input_width), dtype=np.int64),
        "model_input_height": np.asarray(int(meta.model_input_height), dtype=np.int64),
        "frame_id": np.asarray(-1 if meta.frame_id is None else int(meta.frame_id), dtype=np.int64),
    }
    for i, (landmarks, aux) in enumerate(landmark_outputs):
        arrays[f"landmarks_{i}"] = np.asarray(landmarks, dtype=np.float32).reshape(-1)
        for j, t in enumerate(aux):
            arrays[f"aux_{i}_{j}"] = np.asarray(t, dtype=np.float32).reshape(-1)

    np.savez(path, **arrays)
    return path


def load_frame_tensors(path: Path) -> TensorFrame:
    path = Path(path)
    with np.load(path) as data:
        keys = list(data.files)
        for k in ("raw_boxes", "raw_scores", "frame_width", "frame_height"):
            if k not in keys:
                raise RuntimeError(f"tensor dump missing key '{k}': {path}")

        frame_id = int(data["frame_id"]) if "frame_id" in keys else -1
        meta = FrameMeta(
            frame_width=int(data["frame_width"]),
            frame_height=int(data["frame_height"]),
            model_input_width=int(data["model_input_width"]) if "model_input_width" in keys else 192,
            model_input_height=int(data["model_input_height"]) if "model_input_height" in keys else 192,
            frame_id=None if frame_id < 0 else frame_id,
        )
        det = RawDetectorOutput(raw_boxes=np.array(data["raw_boxes"]), raw_scores=np.array(data["raw_scores"]))

        hand_idx = sorted(int(m.group(1)) for m in (_LANDMARKS_RE.match(k) for k in keys) if m)
        aux_by_hand: dict[int, list[tuple[int, np.ndarray]]] = {}
        for k in keys:
            m = _AUX_RE.match(k)
            if m:
                aux_by_hand.setdefault(int(m.group(1)), []).append((int(m.group(2)), np.array(data[k])))

        landmarks = []
        for i in hand_idx:
            aux = [t for _, t in sorted(aux_by_hand.get(i, []), key=lambda p: p[0])]
            landmarks.append((np.array(data[f"landmarks_{i}"]), aux))

    return TensorFrame(path=path, meta=meta, detector_output=det, landmarks=landmarks)


def iter_tensor_dumps(inputs_dir: Path, *, max_frames: int = 0) -> Iterator[TensorFrame]:
    """按文件名顺序迭代目录下的 `.npz` 转储。

    Args:
        inputs_dir: 转储目录。
        max_frames: 最多输出多少帧（0 表示不限）。
    """

    inputs_dir = Path(inputs_dir)
    if not inputs_dir.is_dir():
        raise RuntimeError(f"inputs directory not found: {inputs_dir}")

    for n, p in enumerate(sorted(inputs_dir.glob("*.npz"))):
        if max_frames > 0 and n >= int(max_frames):
            break
        yield load_frame_tensors(p)
