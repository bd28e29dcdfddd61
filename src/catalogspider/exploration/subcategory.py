"""子分类探索

从导航提取得到的分类入口出发，深度优先访问分类页，收集子分类链接并构建分类层级。
访问集合、分类列表与失败 URL 都属于单次 explore_all 调用，互不共享。
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ..common.config import SubCategoryConfig, config
from ..common.constants import (
    CATEGORY_URL_EXCLUDE_PATTERNS,
    CATEGORY_URL_INCLUDE_PATTERNS,
    PRODUCT_GRID_SELECTORS,
    SUBCATEGORY_LINK_PATTERNS,
)
from ..common.logger import get_logger
from ..common.types import (
    CategoryEntry,
    CategoryHierarchy,
    DropdownResult,
    ExtractionResult,
    SeedEntry,
    SubcategoryLink,
)
from ..common.utils.deadline import RunDeadline, is_expired
from ..common.utils.delay import get_random_delay, settle
from ..common.utils.url import normalize_visit_key, resolve_href

if TYPE_CHECKING:
    from ..common.browser.page import PageHandle

logger = get_logger(__name__)

_INCLUDE_RE = [re.compile(p, re.IGNORECASE) for p in CATEGORY_URL_INCLUDE_PATTERNS]
_EXCLUDE_RE = [re.compile(p, re.IGNORECASE) for p in CATEGORY_URL_EXCLUDE_PATTERNS]


def is_category_url(url: str | None) -> bool:
    """命中任一分类路径特征且不命中商品 / 静态资源 / 片段等排除规则"""
    if not url:
        return False
    if any(p.search(url) for p in _EXCLUDE_RE):
        return False
    return any(p.search(url) for p in _INCLUDE_RE)


@dataclass
class ExplorationRun:
    """单次探索的运行状态"""

    visited_urls: set[str] = field(default_factory=set)
    categories: list[CategoryEntry] = field(default_factory=list)
    failed_urls: list[str] = field(default_factory=list)
    cancelled: bool = False


def build_hierarchy(run: ExplorationRun) -> CategoryHierarchy:
    categories = run.categories
    return CategoryHierarchy(
        total_categories=len(categories),
        max_depth=max((c.depth for c in categories), default=0),
        leaf_categories=sum(1 for c in categories if c.is_leaf),
        categories_with_products=sum(1 for c in categories if c.has_products),
        categories=list(categories),
        visited_count=len(run.visited_urls),
        failed_urls=list(run.failed_urls),
        cancelled=run.cancelled,
    )


def seeds_from_navigation(result: ExtractionResult) -> list[SeedEntry]:
    """把导航提取结果转换为探索种子：主导航项为父节点，下拉链接为子节点"""
    # 下拉结果与主导航项按顺序一一对应（截止时间提前结束时只覆盖前缀）
    dropdowns: list[DropdownResult] = result.dropdown_extraction.results
    seeds: list[SeedEntry] = []
    for pos, item in enumerate(result.main_navigation.items):
        dropdown = dropdowns[pos] if pos < len(dropdowns) else None
        children = [SeedEntry(name=link.text, url=link.href) for link in dropdown.items] if dropdown else []
        seeds.append(SeedEntry(name=item.text, url=item.href, children=children))
    return seeds


class SubCategoryExplorer:
    """子分类探索器

    Example:
        >>> explorer = SubCategoryExplorer(page)
        >>> hierarchy = await explorer.explore_all([SeedEntry(name="Women", url="https://shop.example.com/shop/women")])
        >>> hierarchy.leaf_categories
    """

    def __init__(self, page: "PageHandle", subcategory_config: SubCategoryConfig | None = None):
        self.page = page
        self.config = subcategory_config or config.subcategory

    async def explore_all(
        self,
        seeds: list[SeedEntry],
        deadline: RunDeadline | None = None,
    ) -> CategoryHierarchy:
        run = ExplorationRun()
        logger.info(f"[SubCategory] 开始探索 {len(seeds)} 个入口 (max_depth={self.config.max_depth})")

        for seed in seeds:
            if run.cancelled:
                break
            if seed.url:
                await self.explore_entry(run, seed.url, seed.name, [seed.name], 0, None, deadline)
            elif seed.children:
                # 没有链接的父节点：直接从子节点开始
                for child in seed.children:
                    if run.cancelled:
                        break
                    if not child.url:
                        continue
                    await self.explore_entry(
                        run, child.url, child.name, [seed.name, child.name], 1, None, deadline
                    )

        hierarchy = build_hierarchy(run)
        logger.info(
            f"[SubCategory] 完成: 分类 {hierarchy.total_categories} 个, 叶子 {hierarchy.leaf_categories} 个, "
            f"最大深度 {hierarchy.max_depth}, 失败 {len(hierarchy.failed_urls)} 个"
        )
        return hierarchy

    async def explore_entry(
        self,
        run: ExplorationRun,
        url: str,
        name: str,
        navigation_path: list[str],
        depth: int,
        parent_url: str | None,
        deadline: RunDeadline | None = None,
    ) -> None:
        if is_expired(deadline):
            if not run.cancelled:
                logger.warning("[SubCategory] 运行截止时间已到，停止探索")
            run.cancelled = True
            return
        if depth >= self.config.max_depth:
            logger.debug(f"[SubCategory] 达到最大深度，跳过: {url}")
            return

        key = normalize_visit_key(url)
        if key in run.visited_urls:
            logger.debug(f"[SubCategory] 已访问，跳过: {url}")
            return
        run.visited_urls.add(key)

        logger.info(f"[SubCategory] 探索 '{name}' (depth={depth}): {url}")
        try:
            await self.page.goto(url, timeout_ms=self.config.navigation_timeout_ms)
            await settle(get_random_delay(self.config.settle_delay, self.config.settle_delay * 0.3))

            subcategories = await self.extract_subcategory_links()
            has_products = await self.has_product_listings()
        except Exception as e:
            logger.warning(f"[SubCategory] 探索失败 '{name}': {url} ({e})")
            run.failed_urls.append(url)
            return

        run.categories.append(
            CategoryEntry(
                url=url,
                name=name,
                navigation_path=navigation_path,
                depth=depth,
                parent_url=parent_url,
                is_leaf=has_products and not subcategories,
                has_products=has_products,
                subcategory_count=len(subcategories),
            )
        )

        for sub in subcategories[: self.config.max_categories_per_level]:
            if run.cancelled:
                break
            await self.explore_entry(
                run, sub.url, sub.name, [*navigation_path, sub.name], depth + 1, url, deadline
            )

    async def extract_subcategory_links(self) -> list[SubcategoryLink]:
        links: list[SubcategoryLink] = []
        seen: set[str] = set()
        base = self.page.url
        for context, selector in SUBCATEGORY_LINK_PATTERNS:
            for snapshot in await self.page.query_all(selector):
                url = resolve_href(base, snapshot.href)
                if not url or not snapshot.text or url in seen or not is_category_url(url):
                    continue
                seen.add(url)
                links.append(SubcategoryLink(url=url, name=snapshot.text, context=context))
        return links

    async def has_product_listings(self) -> bool:
        for selector in PRODUCT_GRID_SELECTORS:
            if await self.page.query_all(selector):
                return True
        return False
