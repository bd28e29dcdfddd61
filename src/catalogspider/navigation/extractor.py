"""导航提取器

给定一个导航模式，提取主导航项，再逐项展开下拉菜单收集链接。

流程：
1. 主导航：等待容器可见，枚举容器并为每一项派生独立的选择器
2. 下拉展开：逐项顺序执行（避免悬停状态互相干扰），每项先重置交互状态，
   然后在一个整体超时内依次尝试悬停展开、强制显示
3. 汇总：数量、成功率、按方式统计
"""

from __future__ import annotations

import asyncio
import random
import time
from typing import TYPE_CHECKING

from ..common.config import NavigationConfig, config
from ..common.constants import (
    FORCE_VISIBILITY_STRATEGIES,
    RESET_POINTER_X_RANGE,
    RESET_POINTER_Y_RANGE,
    RESET_SCROLL_PIXELS,
    RESET_STYLES,
    SKIPPED_CONTAINER_CLASSES,
)
from ..common.exceptions import BrowserError
from ..common.logger import get_logger
from ..common.types import (
    DropdownExtraction,
    DropdownLink,
    DropdownResult,
    ExtractionMethod,
    ExtractionResult,
    ExtractionSummary,
    InteractionType,
    MainNavigation,
    MethodTally,
    NavigationItem,
    NavigationPattern,
    NavigationSelectors,
)
from ..common.utils.deadline import RunDeadline, is_expired
from ..common.utils.delay import settle
from ..common.utils.url import resolve_href

if TYPE_CHECKING:
    from ..common.browser.page import ElementSnapshot, PageHandle

logger = get_logger(__name__)

NO_MAIN_NAVIGATION = "no main navigation items"


def css_escape(value: str) -> str:
    """转义 CSS 标识符（与浏览器 CSS.escape 的常见行为一致）"""
    escaped = []
    for i, ch in enumerate(value):
        if ch.isalnum() and ch.isascii() or ch in "-_" or ord(ch) >= 0x80:
            if i == 0 and ch.isdigit():
                escaped.append(f"\\{ord(ch):x} ")
            else:
                escaped.append(ch)
        else:
            escaped.append(f"\\{ch}")
    return "".join(escaped)


def _is_skipped_container(snapshot: "ElementSnapshot") -> bool:
    return any(snapshot.has_class(name) for name in SKIPPED_CONTAINER_CLASSES)


async def reset_navigation_state(page: "PageHandle", nav_config: NavigationConfig | None = None) -> None:
    """清理上一个导航项遗留的悬停 / 显示状态

    鼠标移动到随机的中性位置，再上下微滚动一次。
    """
    cfg = nav_config or config.navigation
    x = random.randint(*RESET_POINTER_X_RANGE)
    y = random.randint(*RESET_POINTER_Y_RANGE)
    await page.mouse_move(x, y)
    await settle(cfg.reset_pointer_delay)
    await page.scroll_by(0, RESET_SCROLL_PIXELS)
    await settle(cfg.reset_scroll_delay)
    await page.scroll_by(0, -RESET_SCROLL_PIXELS)
    await settle(cfg.reset_scroll_delay)


def compile_extraction(
    pattern_name: str,
    items: list[NavigationItem],
    results: list[DropdownResult],
) -> ExtractionResult:
    """汇总一次提取的数量、成功率与方式统计"""
    total = len(results)
    successful = sum(1 for r in results if r.success)
    dropdown_items = sum(r.count for r in results)

    tally = MethodTally()
    for r in results:
        if not r.success:
            tally.failed += 1
            if r.method == ExtractionMethod.TIMEOUT:
                tally.timeout += 1
        elif r.method == ExtractionMethod.HOVER:
            tally.hover += 1
        elif r.method == ExtractionMethod.FORCE_VISIBILITY:
            tally.force_visibility += 1

    return ExtractionResult(
        success=bool(items),
        pattern=pattern_name,
        main_navigation=MainNavigation(items=items, count=len(items)),
        dropdown_extraction=DropdownExtraction(
            results=results,
            total_items=total,
            successful=successful,
            failed=total - successful,
            success_rate=successful / total if total else 0.0,
        ),
        summary=ExtractionSummary(
            total_navigation_items=len(items) + dropdown_items,
            main_nav_items=len(items),
            dropdown_items=dropdown_items,
            methods=tally,
        ),
    )


class NavigationExtractor:
    """基于单个导航模式的提取器

    Example:
        >>> extractor = NavigationExtractor()
        >>> result = await extractor.extract(page, catalog.get("bootstrap-dropdown"))
        >>> result.dropdown_extraction.success_rate
    """

    def __init__(self, nav_config: NavigationConfig | None = None):
        self.config = nav_config or config.navigation

    async def extract(
        self,
        page: "PageHandle",
        pattern: NavigationPattern,
        deadline: RunDeadline | None = None,
    ) -> ExtractionResult:
        started = time.monotonic()
        logger.info(f"[NavExtract] 使用模式 {pattern.name} 提取导航")

        try:
            items = await self.extract_main_navigation(page, pattern)
        except BrowserError as e:
            logger.warning(f"[NavExtract] 主导航提取失败 ({pattern.name}): {e}")
            return ExtractionResult(
                success=False,
                pattern=pattern.name,
                error=str(e),
                elapsed_s=time.monotonic() - started,
            )

        if not items:
            logger.info(f"[NavExtract] 模式 {pattern.name} 未找到主导航")
            return ExtractionResult(
                success=False,
                pattern=pattern.name,
                error=NO_MAIN_NAVIGATION,
                elapsed_s=time.monotonic() - started,
            )

        logger.info(f"[NavExtract] 找到 {len(items)} 个主导航项，开始展开下拉菜单")

        results: list[DropdownResult] = []
        cancelled = False
        for item in items:
            if is_expired(deadline):
                logger.warning(f"[NavExtract] 运行截止时间已到，已处理 {len(results)}/{len(items)} 项")
                cancelled = True
                break
            results.append(await self.extract_dropdown(page, item, pattern))

        result = compile_extraction(pattern.name, items, results)
        result.elapsed_s = time.monotonic() - started
        result.cancelled = cancelled

        logger.info(
            f"[NavExtract] {pattern.name}: 主导航 {result.main_navigation.count} 项, "
            f"下拉成功 {result.dropdown_extraction.successful}/{result.dropdown_extraction.total_items}, "
            f"共 {result.summary.total_navigation_items} 个链接"
        )
        return result

    # ------------------------------------------------------------------
    # 阶段 1：主导航
    # ------------------------------------------------------------------

    async def extract_main_navigation(
        self, page: "PageHandle", pattern: NavigationPattern
    ) -> list[NavigationItem]:
        sel = pattern.selectors
        visible = await page.wait_for_selector(sel.container, "visible", self.config.container_timeout_ms)
        if not visible:
            return []

        containers = await page.query_all(sel.container)
        items: list[NavigationItem] = []

        for container in containers:
            if _is_skipped_container(container):
                logger.debug(f"[NavExtract] 跳过移动端菜单容器 #{container.index}")
                continue

            item_container = f"{sel.container} >> nth={container.index}"
            trigger_selector = f"{item_container} >> {sel.trigger}"
            triggers = await page.query_all(trigger_selector)
            if not triggers:
                logger.debug(f"[NavExtract] 容器 #{container.index} 没有触发元素")
                continue

            trigger = triggers[0]
            # 图标 / 图片触发元素没有文本时保留该项，文本退回到 aria-label 或 title
            text = (
                trigger.text
                or container.text
                or trigger.attr("aria-label")
                or trigger.attr("title")
                or ""
            ).strip()

            raw_href = trigger.href if trigger.tag == "a" else trigger.inner_href
            dropdown = sel.dropdown if sel.is_dynamic_flyout else f"{item_container} >> {sel.dropdown}"

            items.append(
                NavigationItem(
                    text=text,
                    href=resolve_href(page.url, raw_href),
                    index=container.index,
                    selectors=NavigationSelectors(
                        container=item_container,
                        trigger=trigger_selector,
                        dropdown=dropdown,
                    ),
                    bbox=container.bbox,
                    is_visible=container.visible,
                )
            )

        return items

    # ------------------------------------------------------------------
    # 阶段 2：下拉展开
    # ------------------------------------------------------------------

    async def extract_dropdown(
        self,
        page: "PageHandle",
        item: NavigationItem,
        pattern: NavigationPattern,
    ) -> DropdownResult:
        """单个导航项：重置状态后，在整体超时内依次尝试悬停与强制显示"""
        await self._safe_reset(page)

        timeout_s = self.config.item_timeout_ms / 1000
        try:
            result = await asyncio.wait_for(self._reveal_dropdown(page, item, pattern), timeout=timeout_s)
        except asyncio.TimeoutError:
            logger.warning(f"[NavExtract] '{item.text}' 下拉提取超时 ({self.config.item_timeout_ms}ms)")
            result = DropdownResult.failed(
                ExtractionMethod.TIMEOUT,
                f"dropdown extraction timed out after {self.config.item_timeout_ms}ms",
                nav_text=item.text,
            )
        except Exception as e:
            logger.warning(f"[NavExtract] '{item.text}' 下拉提取出错: {e}")
            result = DropdownResult.failed(ExtractionMethod.ERROR, str(e), nav_text=item.text)

        if not result.success:
            await self._safe_reset(page)
        else:
            logger.debug(f"[NavExtract] '{item.text}' 通过 {result.method.value} 获得 {result.count} 个链接")
        return result

    async def _reveal_dropdown(
        self,
        page: "PageHandle",
        item: NavigationItem,
        pattern: NavigationPattern,
    ) -> DropdownResult:
        links = await self._hover_branch(page, item, pattern)
        if links:
            return DropdownResult.found(ExtractionMethod.HOVER, links, nav_text=item.text)

        strategy, links = await self._force_visibility_branch(page, item)
        if links:
            return DropdownResult.found(
                ExtractionMethod.FORCE_VISIBILITY, links, nav_text=item.text, strategy=strategy
            )

        return DropdownResult.failed(
            ExtractionMethod.TIMEOUT,
            "no dropdown content revealed",
            nav_text=item.text,
        )

    async def _hover_branch(
        self,
        page: "PageHandle",
        item: NavigationItem,
        pattern: NavigationPattern,
    ) -> list[DropdownLink]:
        try:
            if pattern.interaction_type == InteractionType.CLICK:
                await page.click(item.selectors.trigger, self.config.hover_timeout_ms)
            else:
                await page.hover(item.selectors.container, self.config.hover_timeout_ms)
        except BrowserError as e:
            logger.debug(f"[NavExtract] '{item.text}' 悬停失败: {e}")
            return []

        delay = self.config.hover_settle_delay
        if item.selectors.is_dynamic_flyout:
            delay += self.config.flyout_settle_delay
        await settle(delay)

        dropdown = await self._resolve_dropdown(page, item)
        if dropdown is None:
            return []
        return await self._collect_visible_links(page, dropdown)

    async def _force_visibility_branch(
        self,
        page: "PageHandle",
        item: NavigationItem,
    ) -> tuple[str | None, list[DropdownLink]]:
        dropdown = await self._resolve_dropdown(page, item)
        if dropdown is None:
            return None, []

        for strategy, styles in FORCE_VISIBILITY_STRATEGIES:
            if not await page.set_style(dropdown, styles):
                return None, []
            await settle(self.config.force_visibility_delay)
            links = await self._collect_visible_links(page, dropdown)
            await page.set_style(dropdown, RESET_STYLES)
            if links:
                return strategy, links

        return None, []

    async def _resolve_dropdown(self, page: "PageHandle", item: NavigationItem) -> str | None:
        """返回下拉面板选择器；动态 flyout 按导航文本查找"""
        if not item.selectors.is_dynamic_flyout:
            return item.selectors.dropdown

        if not item.text:
            return await self._first_visible_flyout(page)

        quoted = item.text.replace("\\", "\\\\").replace('"', '\\"')
        for candidate in (
            f"#{css_escape(item.text)}.flyout-container",
            f'[id*="{quoted}"].flyout-container',
        ):
            if await page.query_all(candidate):
                return candidate
        return await self._first_visible_flyout(page)

    @staticmethod
    async def _first_visible_flyout(page: "PageHandle") -> str | None:
        flyouts = await page.query_all(".flyout-container")
        for flyout in flyouts:
            if flyout.visible:
                return f".flyout-container >> nth={flyout.index}"
        return None

    async def _collect_visible_links(self, page: "PageHandle", dropdown: str) -> list[DropdownLink]:
        """收集可见下拉面板中的链接

        要求文本非空、href 可解析且不是 ``#`` / ``javascript:``；同一 href 只保留第一次出现，
        因此 items / count 统计的是不同链接数，而不是面板中的锚点总数。
        """
        style = await page.computed_style(dropdown)
        if style is None or not style.is_visible:
            return []

        links: list[DropdownLink] = []
        seen: set[str] = set()
        for anchor in await page.query_all(f"{dropdown} >> a"):
            href = resolve_href(page.url, anchor.href)
            if not anchor.text or not href or href in seen:
                continue
            seen.add(href)
            links.append(DropdownLink(text=anchor.text, href=href, visible=anchor.visible))
        return links

    async def _safe_reset(self, page: "PageHandle") -> None:
        try:
            await reset_navigation_state(page, self.config)
        except Exception as e:
            logger.debug(f"[NavExtract] 状态重置失败: {e}")
