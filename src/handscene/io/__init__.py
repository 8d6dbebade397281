"""原始张量转储 IO。"""

from .tensor_dump import TensorFrame, iter_tensor_dumps, load_frame_tensors, save_frame_tensors

__all__ = ["TensorFrame", "iter_tensor_dumps", "load_frame_tensors", "save_frame_tensors"]
