"""页面句柄

引擎只通过 PageHandle 这一窄接口访问页面：查询元素、读取计算样式、悬停 / 点击、
等待、鼠标与滚动、执行内置脚本。PlaywrightPageHandle 是基于 Playwright 的实现，
测试中使用内存实现替代。
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from ..exceptions import ElementNotFoundError, InteractionTimeoutError, PageLoadError, ScriptExecutionError
from ..logger import get_logger
from ..types import BoundingBox

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = get_logger(__name__)

_SCRIPT_DIR = Path(__file__).parent / "js"


@lru_cache(maxsize=16)
def load_script(name: str) -> str:
    """加载内置 JS 脚本（带缓存）"""
    path = _SCRIPT_DIR / f"{name}.js"
    return path.read_text(encoding="utf-8")


class ElementSnapshot(BaseModel):
    """一次查询返回的元素快照"""

    index: int = 0
    tag: str = ""
    text: str = ""
    href: str | None = None
    inner_href: str | None = Field(default=None, description="元素内部第一个链接")
    attrs: dict[str, str] = Field(default_factory=dict)
    classes: list[str] = Field(default_factory=list)
    visible: bool = True
    checked: bool = False
    disabled: bool = False
    bbox: BoundingBox | None = None

    def has_class(self, name: str) -> bool:
        return name in self.classes

    def attr(self, name: str) -> str | None:
        return self.attrs.get(name)


class ComputedStyle(BaseModel):
    """计算样式中与可见性相关的部分"""

    display: str = ""
    visibility: str = ""
    opacity: float = 1.0

    @property
    def is_visible(self) -> bool:
        return self.display != "none" and self.visibility != "hidden" and self.opacity > 0


@runtime_checkable
class PageHandle(Protocol):
    """单个独占页面的操作接口"""

    @property
    def url(self) -> str: ...

    async def goto(self, url: str, wait_until: str = "domcontentloaded", timeout_ms: int = 30000) -> None: ...

    async def title(self) -> str: ...

    async def query_all(self, selector: str) -> list[ElementSnapshot]: ...

    async def computed_style(self, selector: str) -> ComputedStyle | None: ...

    async def set_style(self, selector: str, styles: dict[str, str]) -> bool: ...

    async def hover(self, selector: str, timeout_ms: int = 3000) -> None: ...

    async def click(self, selector: str, timeout_ms: int = 5000) -> None: ...

    async def wait_for_selector(self, selector: str, state: str = "visible", timeout_ms: int = 10000) -> bool: ...

    async def mouse_move(self, x: float, y: float) -> None: ...

    async def scroll_by(self, dx: float, dy: float) -> None: ...

    async def run_script(self, name: str, arg: Any = None) -> Any: ...


_COMPUTED_STYLE_JS = """(el) => {
  const s = window.getComputedStyle(el);
  return {display: s.display, visibility: s.visibility, opacity: parseFloat(s.opacity || '1')};
}"""

_SET_STYLE_JS = """(el, styles) => {
  for (const [key, value] of Object.entries(styles)) {
    if (value === '') el.style.removeProperty(key);
    else el.style.setProperty(key, value, 'important');
  }
  return true;
}"""

_SCROLL_JS = "([dx, dy]) => window.scrollBy(dx, dy)"


class PlaywrightPageHandle:
    """基于 Playwright Page 的 PageHandle 实现"""

    def __init__(self, page: "Page"):
        self._page = page

    @property
    def page(self) -> "Page":
        return self._page

    @property
    def url(self) -> str:
        return self._page.url

    async def goto(self, url: str, wait_until: str = "domcontentloaded", timeout_ms: int = 30000) -> None:
        from playwright.async_api import Error as PlaywrightError

        try:
            await self._page.goto(url, wait_until=wait_until, timeout=timeout_ms)
        except PlaywrightError as e:
            raise PageLoadError(url, f"页面加载失败 ({e})") from e

    async def title(self) -> str:
        return await self._page.title()

    async def query_all(self, selector: str) -> list[ElementSnapshot]:
        from playwright.async_api import Error as PlaywrightError

        try:
            raw = await self._page.locator(selector).evaluate_all(load_script("element_snapshots"))
        except PlaywrightError as e:
            logger.debug(f"[Page] 查询失败 {selector}: {e}")
            return []
        return [ElementSnapshot.model_validate(item) for item in raw or []]

    async def computed_style(self, selector: str) -> ComputedStyle | None:
        from playwright.async_api import Error as PlaywrightError

        locator = self._page.locator(selector)
        try:
            if await locator.count() == 0:
                return None
            raw = await locator.first.evaluate(_COMPUTED_STYLE_JS)
        except PlaywrightError as e:
            logger.debug(f"[Page] 读取样式失败 {selector}: {e}")
            return None
        return ComputedStyle.model_validate(raw)

    async def set_style(self, selector: str, styles: dict[str, str]) -> bool:
        from playwright.async_api import Error as PlaywrightError

        locator = self._page.locator(selector)
        try:
            if await locator.count() == 0:
                return False
            return bool(await locator.first.evaluate(_SET_STYLE_JS, styles))
        except PlaywrightError as e:
            logger.debug(f"[Page] 修改样式失败 {selector}: {e}")
            return False

    async def hover(self, selector: str, timeout_ms: int = 3000) -> None:
        await self._interact("hover", selector, timeout_ms)

    async def click(self, selector: str, timeout_ms: int = 5000) -> None:
        await self._interact("click", selector, timeout_ms)

    async def _interact(self, action: str, selector: str, timeout_ms: int) -> None:
        from playwright.async_api import Error as PlaywrightError
        from playwright.async_api import TimeoutError as PlaywrightTimeoutError

        locator = self._page.locator(selector).first
        try:
            await getattr(locator, action)(timeout=timeout_ms)
        except PlaywrightTimeoutError as e:
            raise InteractionTimeoutError(action, selector, timeout_ms) from e
        except PlaywrightError as e:
            raise ElementNotFoundError(selector, f"{action} 失败 ({e})") from e

    async def wait_for_selector(self, selector: str, state: str = "visible", timeout_ms: int = 10000) -> bool:
        from playwright.async_api import Error as PlaywrightError

        try:
            await self._page.wait_for_selector(selector, state=state, timeout=timeout_ms)
            return True
        except PlaywrightError:
            return False

    async def mouse_move(self, x: float, y: float) -> None:
        await self._page.mouse.move(x, y)

    async def scroll_by(self, dx: float, dy: float) -> None:
        await self._page.evaluate(_SCROLL_JS, [dx, dy])

    async def run_script(self, name: str, arg: Any = None) -> Any:
        from playwright.async_api import Error as PlaywrightError

        try:
            return await self._page.evaluate(load_script(name), arg)
        except PlaywrightError as e:
            raise ScriptExecutionError(name, f"脚本执行失败 ({e})") from e
