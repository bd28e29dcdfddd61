"""自定义异常类

定义项目中使用的所有自定义异常，用于更精细的错误处理。

发现与探索引擎本身不会因为单个元素、单个模式或单个分支失败而向外抛出异常，
这些异常在对应的边界被捕获并转换为部分结果。
"""

from __future__ import annotations


class CatalogSpiderError(Exception):
    """CatalogSpider 基础异常类

    所有自定义异常的基类。
    """
    pass


class BrowserError(CatalogSpiderError):
    """浏览器相关错误的基类"""
    pass


class PageLoadError(BrowserError):
    """页面加载失败

    当页面无法在超时时间内加载完成时抛出。
    """
    def __init__(self, url: str, message: str = "页面加载失败"):
        super().__init__(f"{message}: {url}")
        self.url = url


class ElementNotFoundError(BrowserError):
    """元素未找到错误"""
    def __init__(self, selector: str, message: str = "元素未找到"):
        super().__init__(f"{message}: {selector}")
        self.selector = selector


class InteractionTimeoutError(BrowserError):
    """交互超时

    悬停 / 点击 / 等待在限定时间内没有完成。
    """
    def __init__(self, action: str, selector: str, timeout_ms: int):
        super().__init__(f"{action} 超时 ({timeout_ms}ms): {selector}")
        self.action = action
        self.selector = selector
        self.timeout_ms = timeout_ms


class ScriptExecutionError(BrowserError):
    """页面内脚本执行失败

    常见于点击后页面跳转导致执行上下文被销毁。
    """
    def __init__(self, name: str, message: str = "脚本执行失败"):
        super().__init__(f"{message}: {name}")
        self.name = name


class ValidationError(CatalogSpiderError):
    """验证失败错误"""
    pass


class URLValidationError(ValidationError):
    """URL 验证失败"""
    def __init__(self, url: str, reason: str = "格式无效"):
        super().__init__(f"URL 验证失败: {url}, 原因: {reason}")
        self.url = url
        self.reason = reason


class ConfigError(CatalogSpiderError):
    """配置相关错误"""
    pass


class ConfigFileNotFoundError(ConfigError):
    """配置文件未找到"""
    def __init__(self, path: str):
        super().__init__(f"配置文件未找到: {path}")
        self.path = path


class PatternValidationError(ConfigError):
    """导航模式定义无效"""
    def __init__(self, name: str, reason: str):
        super().__init__(f"导航模式 '{name}' 无效: {reason}")
        self.name = name
        self.reason = reason


class ExplorationError(CatalogSpiderError):
    """探索流程相关错误"""
    pass


class CanonicalizationError(ExplorationError):
    """URL 规范化失败"""
    def __init__(self, url: str, reason: str = "无法解析"):
        super().__init__(f"URL 规范化失败: {url}, 原因: {reason}")
        self.url = url
        self.reason = reason


class RunCancelledError(ExplorationError):
    """运行截止时间已到"""
    def __init__(self, phase: str = ""):
        message = "运行已取消"
        if phase:
            message += f": {phase}"
        super().__init__(message)
        self.phase = phase
