"""Playwright 页面句柄单元测试"""

import pytest
from playwright.async_api import Error as PlaywrightError

from catalogspider.common.browser.page import PlaywrightPageHandle
from catalogspider.common.exceptions import BrowserError, ScriptExecutionError


class StubPage:
    """只实现 evaluate 的 Playwright Page 替身"""

    url = "https://shop.example.com/collections/shirts"

    def __init__(self, error: Exception | None = None, value=None):
        self.error = error
        self.value = value
        self.calls = 0

    async def evaluate(self, script, arg=None):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.value


class TestRunScript:
    """内置脚本执行测试"""

    @pytest.mark.asyncio
    async def test_returns_script_value(self):
        handle = PlaywrightPageHandle(StubPage(value=[{"url": "/products/a"}]))
        assert await handle.run_script("product_cards", {"maxProducts": 5}) == [{"url": "/products/a"}]

    @pytest.mark.asyncio
    async def test_playwright_error_wrapped(self):
        """测试执行上下文被销毁等 Playwright 错误转换为 BrowserError"""
        handle = PlaywrightPageHandle(StubPage(error=PlaywrightError("Execution context was destroyed")))
        with pytest.raises(ScriptExecutionError) as exc_info:
            await handle.run_script("product_cards")
        assert isinstance(exc_info.value, BrowserError)
        assert exc_info.value.name == "product_cards"
        assert "Execution context was destroyed" in str(exc_info.value)
