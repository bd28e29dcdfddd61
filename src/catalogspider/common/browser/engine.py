"""
异步浏览器引擎

进程内共享一个 Browser 实例，每次 page() 创建独立的 BrowserContext。
所有页面经过 playwright-stealth 包装；可选拦截图片 / 字体等与结构发现无关的请求。
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from loguru import logger
from playwright.async_api import Browser, Page, Playwright, Route, async_playwright
from playwright_stealth import Stealth

from ..config import BrowserConfig, config
from ..constants import BLOCKED_RESOURCE_TYPES, BROWSER_LAUNCH_ARGS

SUPPORTED_BROWSERS = ("chromium", "firefox", "webkit")


async def _abort_blocked(route: Route) -> None:
    if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
        await route.abort()
    else:
        await route.continue_()


class BrowserEngine:
    """
    异步浏览器引擎

    - 事件循环切换、浏览器断开或 headless 变化时重启浏览器
    - 启动失败按 launch_retries 重试
    """

    def __init__(self, browser_config: BrowserConfig | None = None):
        self.config = browser_config or config.browser
        if self.config.browser_type not in SUPPORTED_BROWSERS:
            raise ValueError(f"不支持的浏览器类型: {self.config.browser_type}")

        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._stealth_context: Any = None
        self._headless: bool = self.config.headless
        self._lock = asyncio.Lock()
        self._owner_loop: asyncio.AbstractEventLoop | None = None

    @property
    def is_running(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    def _restart_reason(self, loop: asyncio.AbstractEventLoop, headless: bool) -> str | None:
        if self._browser and self._owner_loop and self._owner_loop is not loop:
            return "事件循环已变化"
        if not self.is_running:
            return "浏览器未启动"
        if self._headless != headless:
            return f"切换 headless={headless}"
        return None

    async def _ensure_browser(self, headless: bool) -> Browser:
        loop = asyncio.get_running_loop()
        async with self._lock:
            reason = self._restart_reason(loop, headless)
            if reason is None:
                return self._browser

            logger.info(f"[Engine] 启动浏览器: {reason}")
            if self._browser and self._owner_loop is loop:
                try:
                    await self._browser.close()
                except Exception as e:
                    logger.debug(f"[Engine] 关闭旧浏览器失败: {e}")

            if not self._playwright:
                self._stealth_context = Stealth().use_async(async_playwright())
                self._playwright = await self._stealth_context.__aenter__()

            self._browser = await self._launch(headless)
            self._headless = headless
            self._owner_loop = loop
            return self._browser

    async def _launch(self, headless: bool) -> Browser:
        launcher = getattr(self._playwright, self.config.browser_type)
        retries = max(self.config.launch_retries, 0)
        for attempt in range(retries + 1):
            try:
                browser = await launcher.launch(
                    headless=headless,
                    slow_mo=self.config.slow_mo,
                    args=list(BROWSER_LAUNCH_ARGS),
                )
            except Exception as e:
                if attempt == retries:
                    raise
                logger.warning(f"[Engine] 浏览器启动失败，重试 {attempt + 1}/{retries}: {e}")
                continue
            logger.info(f"[Engine] 浏览器已启动 ({self.config.browser_type}, headless={headless})")
            return browser
        raise RuntimeError("unreachable")

    @asynccontextmanager
    async def page(self, browser_config: BrowserConfig | None = None) -> AsyncGenerator[Page, None]:
        """
        获取一个独立上下文中的 Page，退出时关闭页面与上下文。

        Args:
            browser_config: 本次页面使用的配置，默认使用引擎配置
        """
        cfg = browser_config or self.config
        browser = await self._ensure_browser(cfg.headless)

        context = await browser.new_context(
            viewport={"width": cfg.viewport_width, "height": cfg.viewport_height},
            user_agent=cfg.user_agent,
            ignore_https_errors=True,
        )
        if cfg.block_resources:
            await context.route("**/*", _abort_blocked)
        page = await context.new_page()
        page.set_default_timeout(cfg.timeout_ms)

        try:
            yield page
        finally:
            await page.close()
            await context.close()

    async def close(self) -> None:
        """关闭浏览器与 Playwright"""
        loop = asyncio.get_running_loop()
        if self._owner_loop is loop:
            if self._browser:
                await self._browser.close()
            if self._stealth_context:
                await self._stealth_context.__aexit__(None, None, None)
        self._browser = None
        self._playwright = None
        self._stealth_context = None
        self._owner_loop = None


# ========== 全局单例管理 ==========
_browser_engine: BrowserEngine | None = None


async def get_browser_engine(browser_config: BrowserConfig | None = None) -> BrowserEngine:
    """
    获取全局 BrowserEngine 单例。

    首次调用时的配置决定浏览器类型与启动参数；之后的调用复用已有实例。
    """
    global _browser_engine
    if _browser_engine is None:
        _browser_engine = BrowserEngine(browser_config)
    return _browser_engine


async def shutdown_browser_engine() -> None:
    """关闭全局引擎"""
    global _browser_engine
    if _browser_engine is not None:
        await _browser_engine.close()
        _browser_engine = None
