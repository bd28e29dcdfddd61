"""基于筛选器的商品探索

对一个分类页逐个应用筛选候选，记录每个筛选下出现的商品。
同一商品在不同筛选下多次出现时只保留一条记录，并累积它出现时所用的筛选。

单个筛选的状态流转::

    idle -> applying -> active | inactive
    active -> capturing -> removing -> idle
    inactive -> idle
"""

from __future__ import annotations

import re
import time
from itertools import combinations
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError

from ..common.config import FilterExplorationConfig, config
from ..common.constants import (
    ACTIVE_STATE_CLASSES,
    FILTER_URL_MARKER_PATTERN,
    MAX_TITLE_LENGTH,
    MIN_TITLE_LENGTH,
    PRODUCT_LINK_SELECTORS,
)
from ..common.exceptions import BrowserError
from ..common.logger import get_logger
from ..common.types import (
    DiscoveredProduct,
    FilterCandidate,
    FilterExplorationResult,
    FilterExplorationStats,
    FilterPath,
    FilterState,
    ProductCard,
)
from ..common.utils.deadline import RunDeadline, is_expired
from ..common.utils.delay import get_random_delay, settle
from ..common.utils.url import Canonicalizer, canonicalize_url, resolve_href
from .filter_discovery import FilterDiscoveryEngine

if TYPE_CHECKING:
    from ..common.browser.page import ElementSnapshot, PageHandle

logger = get_logger(__name__)

BASELINE_LABEL = "baseline"

_FILTER_URL_MARKER_RE = re.compile(FILTER_URL_MARKER_PATTERN, re.IGNORECASE)


def has_filter_marker(url: str) -> bool:
    return bool(_FILTER_URL_MARKER_RE.search(url or ""))


def pick_best_title(
    candidates: list[str],
    min_length: int = MIN_TITLE_LENGTH,
    max_length: int = MAX_TITLE_LENGTH,
) -> str:
    """从多个文本候选中选标题：长度合理的最长者优先"""
    cleaned = [" ".join(c.split()) for c in candidates if c and c.strip()]
    reasonable = [c for c in cleaned if min_length <= len(c) <= max_length]
    if reasonable:
        return max(reasonable, key=len)
    if cleaned:
        return cleaned[0][:max_length]
    return ""


def is_active_snapshot(snapshot: "ElementSnapshot") -> bool:
    if snapshot.checked:
        return True
    if any(snapshot.has_class(name) for name in ACTIVE_STATE_CLASSES):
        return True
    return snapshot.attr("aria-pressed") == "true" or snapshot.attr("aria-checked") == "true"


def _label_of(candidate: FilterCandidate) -> str:
    return candidate.label or candidate.value or candidate.selector


def _text_selector(label: str) -> str:
    quoted = label.replace("\\", "\\\\").replace('"', '\\"')
    return f':is(label, button, a, [role="button"]):has-text("{quoted}")'


class ProductAccumulator:
    """按规范化 URL 去重的商品集合

    规范化失败时退回原始 URL 作为键，不中断探索。
    """

    def __init__(self, canonicalize: Canonicalizer = canonicalize_url):
        self._canonicalize = canonicalize
        self._products: dict[str, DiscoveredProduct] = {}
        self._raw_urls: dict[str, set[str]] = {}
        self.changed_count = 0
        self.collisions_count = 0
        self.failures_count = 0

    def __len__(self) -> int:
        return len(self._products)

    def __contains__(self, url: object) -> bool:
        return isinstance(url, str) and self.key_for(url, count=False) in self._products

    @property
    def products(self) -> list[DiscoveredProduct]:
        return list(self._products.values())

    def key_for(self, url: str, count: bool = True) -> str:
        try:
            key = self._canonicalize(url)
            if not key:
                raise ValueError("规范化结果为空")
        except Exception as e:
            if count:
                self.failures_count += 1
                logger.warning(f"[ProductAccumulator] URL 规范化失败，使用原始 URL: {url} ({e})")
            return url
        return key

    def add(
        self,
        url: str,
        title: str = "",
        price: str | None = None,
        image: str | None = None,
        filter_label: str | None = None,
        category_name: str | None = None,
    ) -> DiscoveredProduct:
        key = self.key_for(url)

        raw_seen = self._raw_urls.setdefault(key, set())
        if url not in raw_seen:
            if raw_seen:
                self.collisions_count += 1
            if key != url:
                self.changed_count += 1
            raw_seen.add(url)

        product = self._products.get(key)
        if product is None:
            product = DiscoveredProduct(
                url=url,
                canonical_url=key,
                title=title,
                price=price,
                image=image,
                category_name=category_name,
            )
            self._products[key] = product
        else:
            if not product.title and title:
                product.title = title
            product.price = product.price or price
            product.image = product.image or image

        if filter_label and filter_label not in product.filters_applied_when_seen:
            product.filters_applied_when_seen.append(filter_label)
        return product

    def add_card(
        self,
        card: ProductCard,
        filter_label: str | None = None,
        category_name: str | None = None,
    ) -> DiscoveredProduct:
        return self.add(
            card.url,
            title=pick_best_title(card.title_candidates),
            price=card.price,
            image=card.image,
            filter_label=filter_label,
            category_name=category_name,
        )


class FilterExplorationEngine:
    """筛选器探索引擎

    Args:
        discovery: 筛选器发现引擎
        exploration_config: 探索配置（延迟、上限）
        canonicalize: 商品 URL 规范化函数
    """

    def __init__(
        self,
        discovery: FilterDiscoveryEngine | None = None,
        exploration_config: FilterExplorationConfig | None = None,
        canonicalize: Canonicalizer = canonicalize_url,
    ):
        self.discovery = discovery or FilterDiscoveryEngine()
        self.config = exploration_config or config.filter_exploration
        self.canonicalize = canonicalize

    async def explore_category(
        self,
        page: "PageHandle",
        category_url: str,
        category_name: str,
        deadline: RunDeadline | None = None,
    ) -> FilterExplorationResult:
        started = time.monotonic()
        result = FilterExplorationResult(category=category_name, category_url=category_url)
        stats = result.stats

        logger.info(f"[FilterExplore] 开始探索分类 '{category_name}': {category_url}")
        try:
            await page.goto(category_url, timeout_ms=self.config.navigation_timeout_ms)
        except BrowserError as e:
            logger.error(f"[FilterExplore] 分类页加载失败: {e}")
            result.error = str(e)
            return result
        await self._delay(self.config.page_load_delay)

        accumulator = ProductAccumulator(self.canonicalize)
        for card in await self.capture_products(page):
            accumulator.add_card(card, BASELINE_LABEL, category_name)
        stats.baseline_products = len(accumulator)
        logger.info(f"[FilterExplore] 基线商品 {stats.baseline_products} 个")

        discovery = await self.discovery.discover(page, category_url)
        candidates = discovery.candidates[: self.config.max_filters]
        stats.filters_discovered = len(candidates)
        stats.filters_excluded_count = discovery.stats.excluded_count
        stats.excluded_filter_labels = list(discovery.stats.excluded_labels)

        applied: list[FilterCandidate] = []
        for candidate in candidates:
            if is_expired(deadline):
                logger.warning("[FilterExplore] 运行截止时间已到，停止处理剩余筛选")
                result.cancelled = True
                break
            path = await self.explore_filter(page, candidate, category_url, category_name, accumulator, stats)
            if path is not None:
                result.filter_paths.append(path)
                applied.append(candidate)

        if self.config.capture_filter_combinations and len(applied) > 1 and not result.cancelled:
            result.filter_paths.extend(
                await self.explore_combinations(
                    page, applied, category_url, category_name, accumulator, stats, deadline
                )
            )

        result.products = accumulator.products
        single_paths = [p for p in result.filter_paths if p.activation != "combination"]
        stats.total_products = len(accumulator)
        stats.unique_filters = len({p.filter for p in single_paths})
        stats.avg_products_per_filter = (
            sum(p.products_found for p in single_paths) / len(single_paths) if single_paths else 0.0
        )
        stats.canonical_changed_count = accumulator.changed_count
        stats.canonical_collisions_count = accumulator.collisions_count
        stats.canonical_failures_count = accumulator.failures_count
        stats.elapsed_s = time.monotonic() - started

        logger.info(
            f"[FilterExplore] '{category_name}' 完成: 商品 {stats.total_products} 个, "
            f"筛选 {stats.filters_applied}/{stats.filters_attempted} 生效, "
            f"跳过 {stats.filters_skipped}, 移除失败 {stats.removal_failures}"
        )
        return result

    # ------------------------------------------------------------------
    # 单个筛选
    # ------------------------------------------------------------------

    async def explore_filter(
        self,
        page: "PageHandle",
        candidate: FilterCandidate,
        category_url: str,
        category_name: str,
        accumulator: ProductAccumulator,
        stats: FilterExplorationStats,
    ) -> FilterPath | None:
        """应用单个筛选并采集商品；任何异常只影响当前筛选"""
        label = _label_of(candidate)
        stats.filters_attempted += 1
        url_before = page.url
        try:
            return await self._apply_filter(
                page, candidate, label, url_before, category_url, category_name, accumulator, stats
            )
        except Exception as e:
            logger.warning(f"[FilterExplore] 筛选 '{label}' 处理失败，跳过: {e}")
            stats.filters_skipped += 1
            if page.url != url_before:
                await self._restore(page, category_url)
            return None

    async def _apply_filter(
        self,
        page: "PageHandle",
        candidate: FilterCandidate,
        label: str,
        url_before: str,
        category_url: str,
        category_name: str,
        accumulator: ProductAccumulator,
        stats: FilterExplorationStats,
    ) -> FilterPath | None:

        state = self._transition(label, FilterState.IDLE, FilterState.APPLYING)
        if not await self._click_candidate(page, candidate):
            stats.filters_skipped += 1
            self._transition(label, state, FilterState.IDLE)
            return None
        await self._delay(self.config.filter_click_delay)

        activation = await self.check_activation(page, candidate, url_before)
        if activation is None:
            state = self._transition(label, state, FilterState.INACTIVE)
            logger.info(f"[FilterExplore] 筛选 '{label}' 未生效，跳过")
            stats.filters_skipped += 1
            if page.url != url_before:
                await self._restore(page, category_url)
            self._transition(label, state, FilterState.IDLE)
            return None

        state = self._transition(label, state, FilterState.ACTIVE)
        state = self._transition(label, state, FilterState.CAPTURING)
        cards = await self.capture_products(page)
        stats.filters_applied += 1
        for card in cards:
            accumulator.add_card(card, label, category_name)
        logger.info(f"[FilterExplore] 筛选 '{label}' 生效 ({activation}), 商品 {len(cards)} 个")

        state = self._transition(label, state, FilterState.REMOVING)
        if not await self.remove_filter(page, candidate, category_url, url_before):
            stats.removal_failures += 1
        self._transition(label, state, FilterState.IDLE)

        return FilterPath(
            category=category_name,
            filter=label,
            selector=candidate.selector,
            products_found=len(cards),
            activation=activation,
        )

    async def check_activation(
        self,
        page: "PageHandle",
        candidate: FilterCandidate,
        url_before: str,
    ) -> str | None:
        """确认筛选已生效：URL 变化且带筛选标记，或元素处于激活状态"""
        current = page.url
        if current != url_before and has_filter_marker(current):
            return "url-change"
        selector = await self._locate(page, candidate)
        if selector is None:
            return None
        snapshots = await page.query_all(selector)
        if snapshots and is_active_snapshot(snapshots[0]):
            return "dom-state"
        return None

    async def remove_filter(
        self,
        page: "PageHandle",
        candidate: FilterCandidate,
        category_url: str,
        url_before: str,
    ) -> bool:
        """重新定位筛选元素并再次点击以恢复基线"""
        label = _label_of(candidate)
        selector = await self._locate(page, candidate)
        if selector is None:
            logger.warning(f"[FilterExplore] 无法重新定位筛选 '{label}'")
            if page.url != url_before:
                await self._restore(page, category_url)
            return False

        try:
            await page.click(selector, self.config.click_timeout_ms)
        except BrowserError as e:
            logger.warning(f"[FilterExplore] 移除筛选 '{label}' 失败: {e}")
            if page.url != url_before:
                await self._restore(page, category_url)
            return False
        await self._delay(self.config.filter_removal_delay)

        if page.url != url_before and has_filter_marker(page.url):
            await self._restore(page, category_url)
        return True

    # ------------------------------------------------------------------
    # 筛选组合
    # ------------------------------------------------------------------

    async def explore_combinations(
        self,
        page: "PageHandle",
        applied: list[FilterCandidate],
        category_url: str,
        category_name: str,
        accumulator: ProductAccumulator,
        stats: FilterExplorationStats,
        deadline: RunDeadline | None = None,
    ) -> list[FilterPath]:
        """两两组合已生效的筛选，最多 max_combinations 组"""
        paths: list[FilterPath] = []
        for first, second in combinations(applied, 2):
            if len(paths) >= self.config.max_combinations or is_expired(deadline):
                break
            label = f"{_label_of(first)} + {_label_of(second)}"
            url_before = page.url
            if not await self._click_candidate(page, first):
                continue
            await self._delay(self.config.filter_removal_delay)
            if not await self._click_candidate(page, second):
                await self.remove_filter(page, first, category_url, url_before)
                continue
            await self._delay(self.config.filter_click_delay)

            cards = await self.capture_products(page)
            for card in cards:
                accumulator.add_card(card, label, category_name)
            logger.info(f"[FilterExplore] 组合 '{label}' 商品 {len(cards)} 个")

            await self.remove_filter(page, second, category_url, url_before)
            if page.url == url_before:
                await self.remove_filter(page, first, category_url, url_before)
            else:
                await self._restore(page, category_url)

            stats.filter_combinations += 1
            paths.append(
                FilterPath(
                    category=category_name,
                    filter=label,
                    selector=f"{first.selector} , {second.selector}",
                    products_found=len(cards),
                    activation="combination",
                )
            )
        return paths

    # ------------------------------------------------------------------
    # 页面操作
    # ------------------------------------------------------------------

    async def capture_products(self, page: "PageHandle") -> list[ProductCard]:
        """采集当前页面的商品卡片；脚本失败时返回空列表"""
        try:
            raw: list[dict[str, Any]] = await page.run_script(
                "product_cards",
                {
                    "selectors": list(PRODUCT_LINK_SELECTORS),
                    "maxProducts": self.config.max_products_per_filter,
                },
            ) or []
        except Exception as e:
            logger.warning(f"[FilterExplore] 商品采集失败 {page.url}: {e}")
            return []

        cards: list[ProductCard] = []
        for item in raw:
            try:
                card = ProductCard.model_validate(item)
            except PydanticValidationError as e:
                logger.debug(f"[FilterExplore] 忽略无效商品卡片: {e}")
                continue
            url = resolve_href(page.url, card.url)
            if url is None:
                continue
            card.url = url
            cards.append(card)
        return cards

    async def _locate(self, page: "PageHandle", candidate: FilterCandidate) -> str | None:
        """元素可能被 DOM 更新替换：先按结构选择器，再按标签文本定位"""
        if await page.query_all(candidate.selector):
            return candidate.selector
        if candidate.label:
            by_text = _text_selector(candidate.label)
            if await page.query_all(by_text):
                return by_text
        return None

    async def _click_candidate(self, page: "PageHandle", candidate: FilterCandidate) -> bool:
        selector = await self._locate(page, candidate)
        if selector is None:
            logger.info(f"[FilterExplore] 找不到筛选元素 '{_label_of(candidate)}'")
            return False
        try:
            await page.click(selector, self.config.click_timeout_ms)
        except BrowserError as e:
            logger.info(f"[FilterExplore] 点击筛选 '{_label_of(candidate)}' 失败: {e}")
            return False
        return True

    async def _restore(self, page: "PageHandle", category_url: str) -> None:
        try:
            await page.goto(category_url, timeout_ms=self.config.navigation_timeout_ms)
        except BrowserError as e:
            logger.warning(f"[FilterExplore] 恢复分类页失败: {e}")
            return
        await self._delay(self.config.page_load_delay)

    async def _delay(self, base: float) -> None:
        await settle(get_random_delay(base, base * 0.3))

    @staticmethod
    def _transition(label: str, current: FilterState, new: FilterState) -> FilterState:
        logger.debug(f"[FilterExplore] '{label}': {current.value} -> {new.value}")
        return new
