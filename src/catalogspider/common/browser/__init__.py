"""浏览器模块

engine / session 依赖 Playwright，按需延迟导入。
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .page import ComputedStyle, ElementSnapshot, PageHandle, PlaywrightPageHandle, load_script

if TYPE_CHECKING:
    from .session import BrowserSession as BrowserSession
    from .session import create_browser_session as create_browser_session

__all__ = [
    "ComputedStyle",
    "ElementSnapshot",
    "PageHandle",
    "PlaywrightPageHandle",
    "load_script",
    "BrowserSession",
    "create_browser_session",
]


def __getattr__(name: str) -> Any:
    if name in {"BrowserSession", "create_browser_session"}:
        from . import session

        return getattr(session, name)
    raise AttributeError(f"module 'catalogspider.common.browser' has no attribute '{name}'")
