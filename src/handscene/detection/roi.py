"""帧/ROI 坐标映射（高内聚：归一化框 -> 原图像素 -> landmark 模型输入区域）。

说明：
- 归一化坐标按帧宽/高分别缩放到像素。
- landmark 模型需要的是以手框中心为中心、边长 max(w, h) * expansion 的正方形区域，
  并夹紧到帧内；外部推理必须在这个裁剪区域上运行 landmark 模型。
"""

from __future__ import annotations

from dataclasses import replace

import cv2
import numpy as np

from handscene.models import DetectionBox, DetectionBoxOnFrame, FrameMeta


def map_box_to_frame(box: DetectionBox, meta: FrameMeta) -> DetectionBoxOnFrame:
    """把归一化手框投影到原图像素坐标系。"""

    fw = float(meta.frame_width)
    fh = float(meta.frame_height)
    cx_px = box.cx * fw
    cy_px = box.cy * fh
    w_px = box.w * fw
    h_px = box.h * fh

    return DetectionBoxOnFrame(
        id=box.id,
        score=box.score,
        cx=box.cx,
        cy=box.cy,
        w=box.w,
        h=box.h,
        rotation=box.rotation,
        palm_keypoints=box.palm_keypoints,
        cx_px=cx_px,
        cy_px=cy_px,
        w_px=w_px,
        h_px=h_px,
        x_min=cx_px - w_px / 2.0,
        y_min=cy_px - h_px / 2.0,
        x_max=cx_px + w_px / 2.0,
        y_max=cy_px + h_px / 2.0,
        palm_keypoints_px=tuple((float(x) * fw, float(y) * fh) for x, y in box.palm_keypoints),
    )


def expand_roi_for_landmarks(
    box: DetectionBoxOnFrame,
    meta: FrameMeta,
    expansion: float = 1.25,
) -> DetectionBoxOnFrame:
    """把手框扩展为正方形 ROI，并夹紧到 [0, W-1] x [0, H-1]。

    注意：中心点字段保持手框中心不变，只替换 extent 与 w_px/h_px。
    """

    size = max(box.w_px, box.h_px) * float(expansion)
    half = size / 2.0
    max_x = float(meta.frame_width - 1)
    max_y = float(meta.frame_height - 1)

    x_min = float(np.clip(box.cx_px - half, 0.0, max_x))
    y_min = float(np.clip(box.cy_px - half, 0.0, max_y))
    x_max = float(np.clip(box.cx_px + half, 0.0, max_x))
    y_max = float(np.clip(box.cy_px + half, 0.0, max_y))

    return replace(
        box,
        w_px=x_max - x_min,
        h_px=y_max - y_min,
        x_min=x_min,
        y_min=y_min,
        x_max=x_max,
        y_max=y_max,
    )


def crop_roi(img: np.ndarray, roi: DetectionBoxOnFrame, size: tuple[int, int] = (224, 224)) -> np.ndarray:
    """从整帧图像中裁出 ROI 并缩放到 landmark 模型输入尺寸。

    Args:
        img: HxWxC 图像。
        roi: expand_roi_for_landmarks 的输出。
        size: (width, height)。

    Returns:
        缩放后的 ROI 图像；ROI 退化（零面积）时返回全零图像。
    """

    out_w, out_h = int(size[0]), int(size[1])
    h, w = img.shape[:2]
    x1 = int(np.clip(np.floor(roi.x_min), 0, w))
    y1 = int(np.clip(np.floor(roi.y_min), 0, h))
    x2 = int(np.clip(np.ceil(roi.x_max), 0, w))
    y2 = int(np.clip(np.ceil(roi.y_max), 0, h))

    if x2 <= x1 or y2 <= y1:
        return np.zeros((out_h, out_w) + img.shape[2:], dtype=img.dtype)

    patch = img[y1:y2, x1:x2]
    return cv2.resize(patch, (out_w, out_h), interpolation=cv2.INTER_LINEAR)
