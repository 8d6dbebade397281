"""检测器打分的诊断统计（用于调试阈值）。

输出为可 JSON 序列化的 dict，可直接写日志或 jsonl。
"""

from __future__ import annotations

from typing import Any, Sequence

import numpy as np

from handscene.detection.decode import stable_sigmoid

_COUNT_THRESHOLDS = (0.5, 0.7, 0.8, 0.9)


def estimate_hand_count(sorted_scores_desc: np.ndarray) -> int:
    """粗略手数估计：最高分 >= 0.8 记 1 只；第二高分 >= 0.9（更严格）记 2 只。"""

    if sorted_scores_desc.size == 0 or float(sorted_scores_desc[0]) < 0.8:
        return 0
    if sorted_scores_desc.size > 1 and float(sorted_scores_desc[1]) >= 0.9:
        return 2
    return 1


def summarize_scores(raw_scores: np.ndarray | Sequence[float], *, top_k: int = 5) -> dict[str, Any]:
    """对原始 logit 做 sigmoid 后统计分布。"""

    logits = np.nan_to_num(np.asarray(raw_scores, dtype=np.float64).reshape(-1), nan=0.0)
    scores = stable_sigmoid(logits)
    sorted_desc = np.sort(scores)[::-1]

    counts = {f"count_{int(round(t * 100)):02d}": int(np.count_nonzero(scores >= t)) for t in _COUNT_THRESHOLDS}

    return {
        "num_scores": int(scores.size),
        "max_score": float(sorted_desc[0]) if sorted_desc.size else 0.0,
        "second_max_score": float(sorted_desc[1]) if sorted_desc.size > 1 else 0.0,
        **counts,
        "top_scores": [float(s) for s in sorted_desc[: int(top_k)]],
        "estimated_hands": estimate_hand_count(sorted_desc),
    }
