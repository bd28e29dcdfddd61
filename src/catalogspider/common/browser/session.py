"""浏览器会话管理"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from ..config import BrowserConfig, config
from ..logger import get_logger
from .engine import get_browser_engine, shutdown_browser_engine
from .page import PlaywrightPageHandle

logger = get_logger(__name__)


class BrowserSession:
    """浏览器会话：持有一个独占页面并以 PageHandle 形式提供给引擎"""

    def __init__(self, browser_config: BrowserConfig | None = None):
        self.config = browser_config or config.browser
        self._page_context = None
        self._handle: PlaywrightPageHandle | None = None

    async def start(self) -> PlaywrightPageHandle:
        """启动浏览器并返回页面句柄"""
        engine = await get_browser_engine(self.config)
        self._page_context = engine.page(self.config)
        page = await self._page_context.__aenter__()
        self._handle = PlaywrightPageHandle(page)
        return self._handle

    async def stop(self) -> None:
        """关闭浏览器会话"""
        if self._page_context:
            try:
                await self._page_context.__aexit__(None, None, None)
            except Exception as e:
                logger.debug(f"[Session] 关闭页面失败: {e}")
        self._page_context = None
        self._handle = None

    @property
    def page(self) -> PlaywrightPageHandle | None:
        return self._handle


@asynccontextmanager
async def create_browser_session(
    browser_config: BrowserConfig | None = None,
    close_engine: bool = False,
) -> AsyncGenerator[BrowserSession, None]:
    """创建浏览器会话的上下文管理器"""
    session = BrowserSession(browser_config)
    try:
        await session.start()
        yield session
    finally:
        await session.stop()
        if close_engine:
            await shutdown_browser_engine()
