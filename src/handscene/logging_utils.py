"""handscene 日志配置（仅供入口使用）。

库模块只通过 `logging.getLogger(__name__)` 取 logger，不添加 handler；
它们都是包级 logger `handscene` 的子节点。入口调用 `configure_logging` 后，
`detection.decode` / `landmarks.schema` / `landmarks.mapper` 等模块的
降级告警会沿层级传播到这里配置的控制台/文件 handler。

注意：重复调用会先移除上一次安装的 handler，再按新参数重建，
因此同一进程内多次运行 CLI（例如测试）不会重复输出。
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

PACKAGE_LOGGER = "handscene"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

_FORMAT = "[%(asctime)s][%(levelname)s][%(name)s] %(message)s"
_OWNED_ATTR = "_handscene_owned"


def parse_level(level: str | int) -> int:
    """'info' / 'WARNING' / 20 -> logging 级别整数；无法识别时抛 ValueError。"""

    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).strip().upper())
    if not isinstance(value, int):
        raise ValueError(f"unknown log level: {level!r}")
    return value


def reset_logging() -> None:
    """撤销 `configure_logging`：移除其安装的 handler（其他来源的 handler 不动），恢复默认传播。"""

    pkg = logging.getLogger(PACKAGE_LOGGER)
    for h in list(pkg.handlers):
        if getattr(h, _OWNED_ATTR, False):
            pkg.removeHandler(h)
            h.close()
    pkg.setLevel(logging.NOTSET)
    pkg.propagate = True


def configure_logging(
    level: str | int = "INFO",
    *,
    log_file: Optional[str | Path] = None,
    file_level: str | int = "DEBUG",
) -> logging.Logger:
    """配置包级 logger：控制台 + 可选文件输出。

    Args:
        level: 控制台级别。
        log_file: 日志文件路径；为 None 时不写文件。父目录不存在时会创建。
        file_level: 文件级别（通常比控制台更详细）。

    Returns:
        包级 logger（名为 `handscene`），入口可直接用它打印进度。
    """

    reset_logging()
    pkg = logging.getLogger(PACKAGE_LOGGER)
    fmt = logging.Formatter(fmt=_FORMAT, datefmt="%H:%M:%S")

    console_level = parse_level(level)
    handlers: list[logging.Handler] = []

    ch = logging.StreamHandler()
    ch.setLevel(console_level)
    handlers.append(ch)

    if log_file is not None and str(log_file).strip():
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(path, encoding="utf-8")
        fh.setLevel(parse_level(file_level))
        handlers.append(fh)

    for h in handlers:
        h.setFormatter(fmt)
        setattr(h, _OWNED_ATTR, True)
        pkg.addHandler(h)

    # logger 本身放行到最详细的 handler 级别，由各 handler 自行过滤。
    pkg.setLevel(min(h.level for h in handlers))
    pkg.propagate = False
    return pkg
