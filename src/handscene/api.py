"""handscene 对外稳定调用入口（public API）。

设计目标：
- 让其他程序以稳定的方式 `import handscene` / `from handscene.api import ...` 调用核心能力。
- 保持 apps/CLI 只是“参数解析 + 调用”，核心逻辑复用 `handscene.pipeline`。

注意：
- 这里不做过度封装；优先提供少量、清晰、可组合的函数。
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterator

from handscene.backends import HandModelBackend, create_backend
from handscene.config import EngineConfig, load_engine_config
from handscene.io.tensor_dump import iter_tensor_dumps
from handscene.models import SceneInterpretation
from handscene.pipeline import HandSceneEngine


def build_engine(
    *,
    config_path: Path | None = None,
    config: EngineConfig | None = None,
    logger: logging.Logger | None = None,
) -> HandSceneEngine:
    """创建解释引擎。

    Args:
        config_path: 配置文件路径（.json/.yaml/.yml）；与 config 同时给出时以文件为准。
        config: 已构造好的配置。
        logger: 可选的注入 logger。

    Returns:
        HandSceneEngine。
    """

    if config_path is not None:
        config = load_engine_config(Path(config_path).resolve())
    return HandSceneEngine(config, logger=logger)


def build_backend(*, name: str, **kwargs: Any) -> HandModelBackend:
    """创建推理后端实例（目前仅 fake）。"""

    return create_backend(name=str(name), **kwargs)


def iter_scenes_from_dumps(
    *,
    inputs_dir: Path,
    engine: HandSceneEngine,
    max_frames: int = 0,
) -> Iterator[SceneInterpretation]:
    """从 `.npz` 张量转储目录逐帧输出解释结果。

    Args:
        inputs_dir: 转储目录。
        engine: 解释引擎（跨帧状态在其中累积）。
        max_frames: 最多处理多少帧（0 表示不限）。
    """

    for frame in iter_tensor_dumps(Path(inputs_dir).resolve(), max_frames=int(max_frames)):
        lm_outputs = [engine.parse_landmarks(lm, aux) for lm, aux in frame.landmarks]
        yield engine.process(frame.detector_output, lm_outputs, frame.meta)
