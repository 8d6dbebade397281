"""handscene：手部检测/关键点模型输出的场景解释库。

说明：
- 输入是推理运行时给出的原始张量（palm 检测 + 21 点 landmark），本库不加载模型、不采集图像。
- 本包提供检测解码（detection）、landmark 映射（landmarks）、单手/两手解释（interpretation）、
  跨帧身份与平滑（tracking）、流水线（pipeline）以及应用入口（apps）。

对外推荐从 `handscene.api` 导入少量稳定入口函数，避免外部项目依赖内部目录结构。
"""

from handscene.api import build_backend, build_engine, iter_scenes_from_dumps

__all__ = [
    "build_backend",
    "build_engine",
    "iter_scenes_from_dumps",
]
