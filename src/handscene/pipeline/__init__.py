"""手部场景解释流水线。

该包提供可复用的流水线“积木”：
- `core`：检测阶段（解码/NMS/ROI）+ 解释阶段（landmark/描述/关系）+ 跨帧状态（跟踪/平滑）
- `output`：把帧级结果转成 JSON 友好的记录

设计目标：让 `handscene.apps.*` 只承担命令行参数解析与 I/O（保持入口脚本尽量薄）。
"""

from .core import (
    HandSceneEngine,
    PreparedDetections,
    interpret_frame,
    prepare_detections,
    run_scene_pipeline,
)
from .output import scene_to_record

__all__ = [
    "HandSceneEngine",
    "PreparedDetections",
    "interpret_frame",
    "prepare_detections",
    "run_scene_pipeline",
    "scene_to_record",
]
