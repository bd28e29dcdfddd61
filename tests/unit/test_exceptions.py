"""异常类单元测试"""

import pytest
from catalogspider.common.exceptions import (
    BrowserError,
    CanonicalizationError,
    CatalogSpiderError,
    ConfigError,
    ConfigFileNotFoundError,
    ElementNotFoundError,
    ExplorationError,
    InteractionTimeoutError,
    PageLoadError,
    PatternValidationError,
    RunCancelledError,
    URLValidationError,
    ValidationError,
)


class TestExceptionHierarchy:
    """异常类层次结构测试"""

    def test_base_exception(self):
        """测试基础异常"""
        with pytest.raises(CatalogSpiderError):
            raise CatalogSpiderError("基础错误")

    def test_browser_error_inheritance(self):
        """测试浏览器错误继承关系"""
        error = PageLoadError("https://example.com")
        assert isinstance(error, BrowserError)
        assert isinstance(error, CatalogSpiderError)
        assert error.url == "https://example.com"

    def test_interaction_timeout(self):
        """测试交互超时"""
        error = InteractionTimeoutError("hover", ".nav-item", 3000)
        assert isinstance(error, BrowserError)
        assert error.action == "hover"
        assert error.timeout_ms == 3000
        assert "3000ms" in str(error)

    def test_validation_error_inheritance(self):
        """测试验证错误继承关系"""
        error = URLValidationError("bad-url", "缺少协议")
        assert isinstance(error, ValidationError)
        assert isinstance(error, CatalogSpiderError)
        assert error.reason == "缺少协议"

    def test_config_error_inheritance(self):
        """测试配置错误继承关系"""
        error = PatternValidationError("my-nav", "container 为空")
        assert isinstance(error, ConfigError)
        assert error.name == "my-nav"
        assert "my-nav" in str(error)

        missing = ConfigFileNotFoundError("/path/to/patterns.yaml")
        assert isinstance(missing, ConfigError)
        assert missing.path == "/path/to/patterns.yaml"

    def test_exploration_error_inheritance(self):
        """测试探索错误继承关系"""
        error = CanonicalizationError("::", "无法解析")
        assert isinstance(error, ExplorationError)
        assert error.url == "::"


class TestExceptionMessages:
    """异常消息测试"""

    def test_page_load_error_message(self):
        error = PageLoadError("https://example.com", "超时")
        assert "超时" in str(error)
        assert "https://example.com" in str(error)

    def test_element_not_found_message(self):
        error = ElementNotFoundError("#filter-0")
        assert error.selector == "#filter-0"
        assert "#filter-0" in str(error)

    def test_run_cancelled_message(self):
        assert str(RunCancelledError()) == "运行已取消"
        assert str(RunCancelledError("filters")) == "运行已取消: filters"


class TestExceptionCatching:
    """异常捕获测试"""

    def test_catch_by_base_class(self):
        """测试通过基类捕获"""
        errors = [
            PageLoadError("url"),
            URLValidationError("url"),
            PatternValidationError("p", "r"),
            CanonicalizationError("url"),
        ]
        for error in errors:
            with pytest.raises(CatalogSpiderError):
                raise error

    def test_catch_browser_errors(self):
        """测试捕获浏览器类错误"""
        for error in (PageLoadError("url"), ElementNotFoundError("#x"), InteractionTimeoutError("click", "#x", 10)):
            with pytest.raises(BrowserError):
                raise error
