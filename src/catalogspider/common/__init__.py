"""Common模块 - 公共工具和基础设施

该模块提供：
- 全局配置管理
- 页面句柄与浏览器会话
- 类型定义
- 日志系统
- 异常类
- 常量定义
- 输入验证
"""

from .config import Config, config
from .exceptions import (
    BrowserError,
    CatalogSpiderError,
    ConfigError,
    ExplorationError,
    PageLoadError,
    PatternValidationError,
    ValidationError,
)
from .logger import console, get_logger

__all__ = [
    # 配置
    "config",
    "Config",
    # 日志
    "get_logger",
    "console",
    # 异常
    "CatalogSpiderError",
    "BrowserError",
    "PageLoadError",
    "ConfigError",
    "PatternValidationError",
    "ValidationError",
    "ExplorationError",
]
