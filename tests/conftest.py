"""pytest 全局配置和 fixtures

提供测试所需的基础设施：内存页面 FakePage 与零延迟配置。
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Any, Callable

import pytest

# 添加项目路径
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from catalogspider.common.browser.page import ComputedStyle, ElementSnapshot  # noqa: E402
from catalogspider.common.config import (  # noqa: E402
    DeduplicationConfig,
    FilterDiscoveryConfig,
    FilterExplorationConfig,
    NavigationConfig,
    SubCategoryConfig,
)
from catalogspider.common.exceptions import InteractionTimeoutError, PageLoadError  # noqa: E402


def snap(index: int = 0, **kwargs: Any) -> ElementSnapshot:
    """快速构造元素快照"""
    return ElementSnapshot(index=index, **kwargs)


VISIBLE = ComputedStyle(display="block", visibility="visible", opacity=1.0)
HIDDEN = ComputedStyle(display="none", visibility="hidden", opacity=0.0)


# ============================================================================
# 内存页面
# ============================================================================


class FakePage:
    """PageHandle 的内存实现

    - elements: 选择器 -> 元素快照列表
    - styles: 选择器 -> 计算样式
    - scripts: 脚本名 -> 返回值，或接收参数的可调用对象
    - pages: URL -> {"elements": ..., "styles": ..., "scripts": ...}，goto 时整体替换
    - on_hover / on_click: 选择器 -> 回调(page)，用来模拟 DOM 变化
    - hover_delays: 选择器 -> 悬停耗时（秒）
    - force_visible: set_style 后会变为可见的选择器
    """

    def __init__(
        self,
        url: str = "https://shop.example.com/",
        elements: dict[str, list[ElementSnapshot]] | None = None,
        styles: dict[str, ComputedStyle] | None = None,
        scripts: dict[str, Any] | None = None,
        pages: dict[str, dict[str, Any]] | None = None,
        failing_urls: tuple[str, ...] = (),
        page_title: str = "测试页面",
    ):
        self._url = url
        self.elements: dict[str, list[ElementSnapshot]] = dict(elements or {})
        self.styles: dict[str, ComputedStyle] = dict(styles or {})
        self.scripts: dict[str, Any] = dict(scripts or {})
        self.pages = pages or {}
        self.failing_urls = set(failing_urls)
        self.page_title = page_title

        self.on_hover: dict[str, Callable[["FakePage"], None]] = {}
        self.on_click: dict[str, Callable[["FakePage"], None]] = {}
        self.hover_delays: dict[str, float] = {}
        self.hover_errors: set[str] = set()
        self.force_visible: set[str] = set()

        self.visited: list[str] = []
        self.hovered: list[str] = []
        self.clicked: list[str] = []
        self.styled: list[tuple[str, dict[str, str]]] = []
        self.mouse_moves = 0
        self.scrolls = 0

    @property
    def url(self) -> str:
        return self._url

    def set_url(self, url: str) -> None:
        self._url = url

    async def goto(self, url: str, wait_until: str = "domcontentloaded", timeout_ms: int = 30000) -> None:
        self.visited.append(url)
        if url in self.failing_urls:
            raise PageLoadError(url, "页面加载失败 (模拟)")
        self._url = url
        layout = self.pages.get(url)
        if layout is not None:
            self.elements = dict(layout.get("elements", {}))
            self.styles = dict(layout.get("styles", {}))
            self.scripts = dict(layout.get("scripts", {}))

    async def title(self) -> str:
        return self.page_title

    async def query_all(self, selector: str) -> list[ElementSnapshot]:
        return list(self.elements.get(selector, []))

    async def computed_style(self, selector: str) -> ComputedStyle | None:
        return self.styles.get(selector)

    async def set_style(self, selector: str, styles: dict[str, str]) -> bool:
        self.styled.append((selector, dict(styles)))
        if selector not in self.elements and selector not in self.styles:
            return False
        if selector in self.force_visible and styles.get("display"):
            self.styles[selector] = VISIBLE
        elif selector in self.force_visible:
            self.styles[selector] = HIDDEN
        return True

    async def hover(self, selector: str, timeout_ms: int = 3000) -> None:
        self.hovered.append(selector)
        if selector in self.hover_errors:
            raise InteractionTimeoutError("hover", selector, timeout_ms)
        delay = self.hover_delays.get(selector)
        if delay:
            await asyncio.sleep(delay)
        callback = self.on_hover.get(selector)
        if callback:
            callback(self)

    async def click(self, selector: str, timeout_ms: int = 5000) -> None:
        self.clicked.append(selector)
        callback = self.on_click.get(selector)
        if callback:
            callback(self)

    async def wait_for_selector(self, selector: str, state: str = "visible", timeout_ms: int = 10000) -> bool:
        return bool(self.elements.get(selector))

    async def mouse_move(self, x: float, y: float) -> None:
        self.mouse_moves += 1

    async def scroll_by(self, dx: float, dy: float) -> None:
        self.scrolls += 1

    async def run_script(self, name: str, arg: Any = None) -> Any:
        value = self.scripts.get(name)
        if callable(value):
            return value(arg)
        return value


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def fake_page():
    """空白内存页面"""
    return FakePage()


@pytest.fixture
def nav_config():
    """零延迟导航配置"""
    return NavigationConfig(
        container_timeout_ms=100,
        item_timeout_ms=1000,
        hover_timeout_ms=100,
        hover_settle_delay=0,
        flyout_settle_delay=0,
        force_visibility_delay=0,
        reset_pointer_delay=0,
        reset_scroll_delay=0,
        pattern_delay=0,
        pattern_file="",
    )


@pytest.fixture
def discovery_config():
    """零延迟筛选发现配置"""
    return FilterDiscoveryConfig(
        max_filters=20,
        score_threshold=2,
        include_hidden=False,
        activation_click_delay=0,
        activation_settle_delay=0,
        exclusion_file="",
    )


@pytest.fixture
def exploration_config():
    """零延迟筛选探索配置"""
    return FilterExplorationConfig(
        max_filters=20,
        page_load_delay=0,
        filter_click_delay=0,
        filter_removal_delay=0,
        capture_filter_combinations=False,
        max_combinations=3,
    )


@pytest.fixture
def subcategory_config():
    """零延迟子分类配置"""
    return SubCategoryConfig(max_depth=5, max_categories_per_level=20, settle_delay=0)


@pytest.fixture
def dedup_config():
    """去重配置（固定阈值）"""
    return DeduplicationConfig(
        sample_size=40,
        alias_threshold=0.9,
        superset_threshold=0.8,
        min_superset_children=2,
    )


@pytest.fixture
def temp_output_dir(tmp_path):
    """创建临时输出目录"""
    output_dir = tmp_path / "output"
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir
