"""统一日志系统

所有模块的日志器都挂在 ``catalogspider`` 包日志器之下，
Rich 控制台输出与可选的文件输出只配置在包日志器上一次。

环境变量：
- LOG_LEVEL: 日志级别，默认 INFO
- LOG_FILE: 额外写入的日志文件路径，默认不写文件
- LOG_SHOW_LOCALS: 异常堆栈中显示局部变量
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

# 全局控制台实例
console = Console()

ROOT_LOGGER_NAME = "catalogspider"
FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"


def parse_log_level(value: str | int | None, default: int = logging.INFO) -> int:
    """把 "debug" / "WARNING" / 10 之类的值转换为日志级别常量"""
    if isinstance(value, int):
        return value
    if not value:
        return default
    level = logging.getLevelName(value.strip().upper())
    return level if isinstance(level, int) else default


def _root_logger() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if root.handlers:
        return root

    level = parse_log_level(os.getenv("LOG_LEVEL"))
    root.setLevel(level)
    handler = RichHandler(
        console=console,
        show_time=True,
        show_path=False,
        rich_tracebacks=True,
        tracebacks_show_locals=os.getenv("LOG_SHOW_LOCALS", "false").lower() == "true",
        # 日志里常有 [Tag] 前缀与选择器中的方括号，关闭 markup
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    root.addHandler(handler)
    root.propagate = False

    log_file = os.getenv("LOG_FILE")
    if log_file:
        setup_file_logging(log_file)
    return root


def get_logger(name: str) -> logging.Logger:
    """获取日志器

    Args:
        name: 日志器名称，通常使用 __name__

    Example:
        >>> from catalogspider.common.logger import get_logger
        >>> logger = get_logger(__name__)
        >>> logger.info("[NavExtract] 开始提取")
    """
    root = _root_logger()
    if name == ROOT_LOGGER_NAME:
        return root
    if not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def set_log_level(level: str | int) -> int:
    """调整包日志器级别（CLI 的 --verbose 使用）"""
    root = _root_logger()
    value = parse_log_level(level, root.level)
    root.setLevel(value)
    return value


def setup_file_logging(log_file: str, level: int = logging.DEBUG) -> logging.FileHandler:
    """为包日志器添加文件输出；同一路径只添加一次"""
    root = logging.getLogger(ROOT_LOGGER_NAME)
    path = Path(log_file).resolve()
    for handler in root.handlers:
        if isinstance(handler, logging.FileHandler) and Path(handler.baseFilename) == path:
            return handler

    path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(path, encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(file_handler)
    return file_handler
