"""palm 检测器的先验框（anchor）生成。

说明：
- 检测器的回归输出是相对 anchor 表达的，anchor 的数量与顺序由网络结构固定。
- 生成过程是纯函数、确定性的；进程启动时生成一次（`PALM_DETECTION_ANCHORS`），之后只读共享。
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from handscene.models import Anchor


@dataclass(frozen=True)
class AnchorOptions:
    """多尺度 anchor 网格参数（默认值对应 192x192 输入的 palm 检测器）。"""

    input_width: int = 192
    input_height: int = 192
    min_scale: float = 0.1484375
    max_scale: float = 0.75
    strides: tuple[int, ...] = (8, 16, 16, 16)
    anchor_offset_x: float = 0.5
    anchor_offset_y: float = 0.5
    aspect_ratios: tuple[float, ...] = (1.0,)
    # <= 0 表示不额外生成插值尺度 anchor。
    interpolated_scale_aspect_ratio: float = 1.0
    # 该检测器的框尺寸完全由回归输出重建，因此固定为 1x1。
    fixed_anchor_size: bool = True


def _layer_scale(options: AnchorOptions, layer: int) -> float:
    num_layers = len(options.strides)
    return options.min_scale + (options.max_scale - options.min_scale) * layer / max(1, num_layers - 1)


def generate_anchors(options: AnchorOptions | None = None) -> tuple[Anchor, ...]:
    """按 stride 层 -> 网格 -> 宽高比（+ 可选插值 anchor）的顺序生成 anchor。

    Returns:
        不可变的 anchor 序列；相同参数两次调用结果完全一致。
    """

    opt = options if options is not None else AnchorOptions()
    anchors: list[Anchor] = []
    num_layers = len(opt.strides)

    for layer, stride in enumerate(opt.strides):
        fm_h = int(math.ceil(opt.input_height / stride))
        fm_w = int(math.ceil(opt.input_width / stride))
        scale = _layer_scale(opt, layer)
        scale_next = 1.0 if layer == num_layers - 1 else _layer_scale(opt, layer + 1)

        for y in range(fm_h):
            for x in range(fm_w):
                x_center = (x + opt.anchor_offset_x) / fm_w
                y_center = (y + opt.anchor_offset_y) / fm_h

                for ratio in opt.aspect_ratios:
                    ratio_sqrt = math.sqrt(ratio)
                    h = 1.0 if opt.fixed_anchor_size else scale / ratio_sqrt
                    w = 1.0 if opt.fixed_anchor_size else scale * ratio_sqrt
                    anchors.append(Anchor(x_center=x_center, y_center=y_center, width=w, height=h))

                if opt.interpolated_scale_aspect_ratio > 0:
                    ratio_sqrt = math.sqrt(opt.interpolated_scale_aspect_ratio)
                    interp = math.sqrt(scale * scale_next)
                    h = 1.0 if opt.fixed_anchor_size else interp / ratio_sqrt
                    w = 1.0 if opt.fixed_anchor_size else interp * ratio_sqrt
                    anchors.append(Anchor(x_center=x_center, y_center=y_center, width=w, height=h))

    return tuple(anchors)


def expected_anchor_count(options: AnchorOptions | None = None) -> int:
    """按网格参数计算 anchor 总数（不实际生成）。"""

    opt = options if options is not None else AnchorOptions()
    per_cell = len(opt.aspect_ratios) + (1 if opt.interpolated_scale_aspect_ratio > 0 else 0)
    total = 0
    for stride in opt.strides:
        total += int(math.ceil(opt.input_height / stride)) * int(math.ceil(opt.input_width / stride)) * per_cell
    return int(total)


def anchors_to_array(anchors: tuple[Anchor, ...] | list[Anchor]) -> np.ndarray:
    """转成 (N, 4) 数组：x_center, y_center, width, height。"""

    if not anchors:
        return np.zeros((0, 4), dtype=np.float64)
    return np.asarray([[a.x_center, a.y_center, a.width, a.height] for a in anchors], dtype=np.float64)


PALM_DETECTION_ANCHORS: tuple[Anchor, ...] = generate_anchors()
