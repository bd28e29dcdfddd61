"""站点发现流水线

把各引擎串成一次完整的站点发现：

1. 冗余导航提取：按站点模式依次尝试，得到主导航与下拉链接
2. 子分类探索：以导航结果为种子深度优先访问分类页，构建分类层级
3. 筛选器探索（可选）：对叶子分类逐个应用筛选，按规范化 URL 收集商品
4. URL 级合并：同一分类页的多个入口合并为一条
5. 分类去重：按商品重叠把分类标记为 products / structural-only / alias

流水线只负责编排；每个阶段的失败都会转成部分结果，不中断后续阶段。
"""

from __future__ import annotations

import json
import time
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from ..common.config import Config, config
from ..common.exceptions import BrowserError
from ..common.logger import get_logger
from ..common.types import (
    CategoryDeduplicationResult,
    CategoryHierarchy,
    CategoryLinkGroup,
    CategoryRecord,
    FallbackExtractionResult,
    FilterExplorationResult,
)
from ..common.utils.deadline import RunDeadline, is_expired
from ..common.validators import validate_url
from ..dedup import CategoryDeduplicator, UrlCategoryDeduplicator, deduplication_stats
from ..exploration import (
    FilterDiscoveryEngine,
    FilterExplorationEngine,
    SubCategoryExplorer,
    load_filter_patterns,
    seeds_from_navigation,
)
from ..navigation import NavigationExtractor, RedundantExtractionDriver, load_catalog

if TYPE_CHECKING:
    from ..common.browser.page import PageHandle

logger = get_logger(__name__)


class PipelineResult(BaseModel):
    """一次站点发现的全部结果"""

    site_url: str
    navigation: FallbackExtractionResult | None = None
    hierarchy: CategoryHierarchy | None = None
    filter_results: list[FilterExplorationResult] = Field(default_factory=list)
    link_groups: list[CategoryLinkGroup] = Field(default_factory=list)
    deduplication: list[CategoryDeduplicationResult] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    cancelled: bool = False
    elapsed_s: float = 0.0

    def summary(self) -> dict[str, Any]:
        nav = self.navigation
        return {
            "site_url": self.site_url,
            "navigation_pattern": nav.pattern_used if nav else None,
            "navigation_success": bool(nav and nav.success),
            "categories": self.hierarchy.total_categories if self.hierarchy else 0,
            "leaf_categories": self.hierarchy.leaf_categories if self.hierarchy else 0,
            "filtered_categories": len(self.filter_results),
            "products": sum(len(r.products) for r in self.filter_results),
            "unique_category_links": len(self.link_groups),
            "deduplication": deduplication_stats(self.deduplication),
            "errors": list(self.errors),
            "cancelled": self.cancelled,
            "elapsed_s": round(self.elapsed_s, 2),
        }


def collect_category_records(
    navigation: FallbackExtractionResult | None,
    hierarchy: CategoryHierarchy | None,
    filter_results: list[FilterExplorationResult],
) -> list[CategoryRecord]:
    """汇总各阶段发现的分类链接，附上筛选探索捕获到的商品"""
    products: dict[str, list[str]] = {
        r.category_url: [p.canonical_url for p in r.products] for r in filter_results
    }
    records: list[CategoryRecord] = []

    if navigation is not None and navigation.result is not None:
        extraction = navigation.result
        for item in extraction.main_navigation.items:
            if item.href:
                records.append(CategoryRecord(name=item.text, url=item.href, source="navigation"))
        for dropdown in extraction.dropdown_extraction.results:
            for link in dropdown.items:
                records.append(CategoryRecord(name=link.text, url=link.href, source="dropdown"))

    if hierarchy is not None:
        for entry in hierarchy.categories:
            records.append(
                CategoryRecord(
                    name=entry.name,
                    url=entry.url,
                    products=products.get(entry.url, []),
                    source="subcategory",
                )
            )

    return records


class DiscoveryPipeline:
    """站点发现流水线

    Args:
        page: 页面句柄，整条流水线独占使用
        app_config: 全局配置，默认使用进程级 config

    Example:
        >>> async with create_browser_session() as session:
        ...     pipeline = DiscoveryPipeline(session.page)
        ...     result = await pipeline.run("https://shop.example.com", explore_filters=True)
    """

    def __init__(self, page: "PageHandle", app_config: Config | None = None):
        self.page = page
        self.config = app_config or config

        nav_config = self.config.navigation
        self.driver = RedundantExtractionDriver(
            load_catalog(nav_config), NavigationExtractor(nav_config), nav_config
        )
        self.explorer = SubCategoryExplorer(page, self.config.subcategory)
        discovery = FilterDiscoveryEngine(
            self.config.filter_discovery, load_filter_patterns(self.config.filter_discovery)
        )
        self.filter_engine = FilterExplorationEngine(discovery, self.config.filter_exploration)
        self.url_dedup = UrlCategoryDeduplicator()
        self.category_dedup = CategoryDeduplicator(self.config.dedup)

    async def run(
        self,
        site_url: str,
        explore_filters: bool = False,
        max_filter_categories: int = 10,
        deadline: RunDeadline | None = None,
    ) -> PipelineResult:
        site_url = validate_url(site_url)
        started = time.monotonic()
        result = PipelineResult(site_url=site_url)
        logger.info(f"[Pipeline] 开始站点发现: {site_url}")

        try:
            await self.page.goto(site_url, timeout_ms=self.config.browser.timeout_ms)
        except BrowserError as e:
            logger.error(f"[Pipeline] 首页加载失败: {e}")
            result.errors.append(f"homepage: {e}")
            result.elapsed_s = time.monotonic() - started
            return result

        result.navigation = await self.driver.extract_with_fallback(self.page, site_url, deadline=deadline)
        if result.navigation.error:
            result.errors.append(f"navigation: {result.navigation.error}")
        if result.navigation.cancelled or is_expired(deadline):
            return self._finish(result, started, cancelled=True)

        if result.navigation.result is not None:
            seeds = seeds_from_navigation(result.navigation.result)
            result.hierarchy = await self.explorer.explore_all(seeds, deadline)
            if result.hierarchy.cancelled:
                return self._finish(result, started, cancelled=True)

        if explore_filters and result.hierarchy is not None:
            leaves = [c for c in result.hierarchy.categories if c.is_leaf][:max_filter_categories]
            logger.info(f"[Pipeline] 对 {len(leaves)} 个叶子分类进行筛选器探索")
            for leaf in leaves:
                if is_expired(deadline):
                    return self._finish(result, started, cancelled=True)
                exploration = await self.filter_engine.explore_category(
                    self.page, leaf.url, leaf.name, deadline
                )
                result.filter_results.append(exploration)
                if exploration.error:
                    result.errors.append(f"filters {leaf.url}: {exploration.error}")
                if exploration.cancelled:
                    return self._finish(result, started, cancelled=True)

        return self._finish(result, started)

    def _finish(self, result: PipelineResult, started: float, cancelled: bool = False) -> PipelineResult:
        """去重在取消时也会执行，结果只基于已完成的阶段"""
        records = collect_category_records(result.navigation, result.hierarchy, result.filter_results)
        result.link_groups = self.url_dedup.deduplicate(records)
        result.deduplication = self.category_dedup.deduplicate(self.url_dedup.merge_records(records))
        result.cancelled = cancelled
        result.elapsed_s = time.monotonic() - started

        if cancelled:
            logger.warning("[Pipeline] 运行截止时间已到，返回部分结果")
        logger.info(
            f"[Pipeline] 完成: 分类链接 {len(result.link_groups)} 个, "
            f"去重结果 {len(result.deduplication)} 个, 耗时 {result.elapsed_s:.1f}s"
        )
        return result


async def run_pipeline(
    site_url: str,
    output_dir: str | None = None,
    headless: bool | None = None,
    explore_filters: bool = False,
    max_filter_categories: int = 10,
    time_limit_s: float | None = None,
) -> dict[str, Any]:
    """打开浏览器运行整条流水线，并把结果写入输出目录

    Returns:
        执行摘要
    """
    output_path = Path(output_dir or config.output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    browser_config = config.browser
    if headless is not None:
        browser_config = browser_config.model_copy(update={"headless": headless})

    from ..common.browser.session import create_browser_session

    deadline = RunDeadline.after(time_limit_s)
    async with create_browser_session(browser_config, close_engine=True) as session:
        pipeline = DiscoveryPipeline(session.page)
        result = await pipeline.run(
            site_url,
            explore_filters=explore_filters,
            max_filter_categories=max_filter_categories,
            deadline=deadline,
        )

    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    result_path = output_path / f"discovery_{stamp}.json"
    result_path.write_text(result.model_dump_json(indent=2), encoding="utf-8")

    summary = result.summary()
    summary["result_file"] = str(result_path)
    summary_path = output_path / "discovery_summary.json"
    summary_path.write_text(json.dumps(summary, ensure_ascii=False, indent=2), encoding="utf-8")
    logger.info(f"[Pipeline] 结果已保存: {result_path}")
    return summary
