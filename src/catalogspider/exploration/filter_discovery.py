"""筛选器发现

步骤：
1. 尝试点击"打开筛选"按钮（没有也可以）
2. 在筛选容器内收集复选框、单选框、按钮以及带分面参数的链接
3. 纯函数打分：控件类型 + 容器 + 数量后缀 + 选中状态 + 筛选类命名
4. 排除尺码 / 价格 / 排序 / 库存等非分类筛选；排除不会清空候选列表
"""

from __future__ import annotations

import re
from collections import Counter
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError

from ..common.config import FilterDiscoveryConfig, config
from ..common.constants import (
    COUNT_SUFFIX_PATTERN,
    FACET_PARAM_PATTERN,
    FILTER_ACTIVATION_SELECTORS,
    FILTER_CONTAINER_SELECTORS,
    FILTER_NAME_PATTERN,
    FILTER_SKIP_TEXTS,
)
from ..common.exceptions import BrowserError
from ..common.logger import get_logger
from ..common.types import (
    FilterCandidate,
    FilterDiscoveryResult,
    FilterDiscoveryStats,
    FilterElementType,
)
from ..common.utils.delay import settle
from .filter_patterns import FilterPatterns, load_filter_patterns

if TYPE_CHECKING:
    from ..common.browser.page import PageHandle

logger = get_logger(__name__)

_FACET_RE = re.compile(FACET_PARAM_PATTERN, re.IGNORECASE)
_COUNT_RE = re.compile(COUNT_SUFFIX_PATTERN)
_FILTER_NAME_RE = re.compile(FILTER_NAME_PATTERN, re.IGNORECASE)

_BASE_SCORES = {
    FilterElementType.CHECKBOX: 2,
    FilterElementType.RADIO: 2,
    FilterElementType.BUTTON: 1,
}


def has_facet_params(href: str | None) -> bool:
    return bool(href and _FACET_RE.search(href))


def score_candidate(candidate: FilterCandidate) -> int:
    """给候选打分（不访问页面）

    - 基础分：checkbox/radio 2，button 1，link 带分面参数 2 否则 0
    - 在筛选容器内 +1
    - 标签带数量后缀，如 "Brand (12)" +1
    - 已选中 / 激活 +1
    - name 或 value 含 filter/facet/tag/category/brand +1
    """
    if candidate.element_type == FilterElementType.LINK:
        score = 2 if candidate.has_facet_params else 0
    else:
        score = _BASE_SCORES[candidate.element_type]

    if candidate.container_hint:
        score += 1
    if _COUNT_RE.search(candidate.label or ""):
        score += 1
    if candidate.checked or candidate.active:
        score += 1
    if any(_FILTER_NAME_RE.search(v) for v in (candidate.name, candidate.value) if v):
        score += 1
    return score


def rank_candidates(
    candidates: list[FilterCandidate],
    score_threshold: int,
    include_hidden: bool = False,
) -> list[FilterCandidate]:
    """打分、按阈值与可见性过滤，并按分数降序（同分保持原顺序）"""
    scored = [c.model_copy(update={"score": score_candidate(c)}) for c in candidates]
    survivors = [
        c for c in scored
        if c.score >= score_threshold and (c.visible or include_hidden)
    ]
    return sorted(survivors, key=lambda c: -c.score)


def apply_exclusions(
    candidates: list[FilterCandidate],
    patterns: FilterPatterns,
) -> tuple[list[FilterCandidate], list[FilterCandidate], bool]:
    """应用排除词表

    Returns:
        (保留的候选, 被排除的候选, 是否触发了保底)。排除会清空非空列表时，
        保留排除前的全部候选并返回 fallback=True。
    """
    kept, excluded = patterns.partition(candidates)
    if candidates and not kept:
        logger.warning(
            f"[FilterDiscovery] 排除规则会移除全部 {len(candidates)} 个候选，保留排除前的结果"
        )
        return list(candidates), [], True
    return kept, excluded, False


def is_skip_text(candidate: FilterCandidate) -> bool:
    """按钮 / 链接上的"应用""重置""排序"等操作文本"""
    if candidate.element_type in (FilterElementType.CHECKBOX, FilterElementType.RADIO):
        return False
    return (candidate.label or "").strip().lower() in FILTER_SKIP_TEXTS


def build_stats(
    raw_count: int,
    scored_count: int,
    final: list[FilterCandidate],
    excluded: list[FilterCandidate],
    containers_found: int,
    activation_clicked: bool,
    exclusion_fallback: bool,
) -> FilterDiscoveryStats:
    return FilterDiscoveryStats(
        raw_count=raw_count,
        scored_count=scored_count,
        final_count=len(final),
        containers_found=containers_found,
        activation_clicked=activation_clicked,
        by_type=dict(Counter(c.element_type.value for c in final)),
        by_container=dict(Counter(c.container_hint or "document" for c in final)),
        score_distribution=dict(Counter(c.score for c in final)),
        excluded_count=len(excluded),
        excluded_labels=[c.label for c in excluded],
        exclusion_fallback=exclusion_fallback,
    )


def _parse_candidate(raw: dict[str, Any]) -> FilterCandidate | None:
    try:
        candidate = FilterCandidate.model_validate(raw)
    except PydanticValidationError as e:
        logger.debug(f"[FilterDiscovery] 忽略无效候选: {e}")
        return None
    candidate.has_facet_params = candidate.has_facet_params or has_facet_params(candidate.href)
    return candidate


class FilterDiscoveryEngine:
    """筛选器发现引擎

    Example:
        >>> engine = FilterDiscoveryEngine()
        >>> result = await engine.discover(page, "https://shop.example.com/collections/shoes")
        >>> [c.label for c in result.candidates]
    """

    def __init__(
        self,
        discovery_config: FilterDiscoveryConfig | None = None,
        filter_patterns: FilterPatterns | None = None,
    ):
        self.config = discovery_config or config.filter_discovery
        self.filter_patterns = filter_patterns or load_filter_patterns(self.config)

    async def discover(self, page: "PageHandle", page_url: str | None = None) -> FilterDiscoveryResult:
        url = page_url or page.url
        logger.info(f"[FilterDiscovery] 开始发现筛选器: {url}")

        try:
            activated = await self.activate_filter_ui(page)
            containers_found, raw = await self.collect_raw_candidates(page)

            raw = [c for c in raw if not is_skip_text(c)]
            ranked = rank_candidates(raw, self.config.score_threshold, self.config.include_hidden)
            kept, excluded, fallback = apply_exclusions(ranked, self.filter_patterns)
            final = kept[: self.config.max_filters]

            title = await self._safe_title(page)
        except Exception as e:
            logger.error(f"[FilterDiscovery] 发现失败 {url}: {e}")
            return FilterDiscoveryResult(url=url, error=str(e))

        stats = build_stats(
            raw_count=len(raw),
            scored_count=len(ranked),
            final=final,
            excluded=excluded,
            containers_found=containers_found,
            activation_clicked=activated,
            exclusion_fallback=fallback,
        )
        logger.info(
            f"[FilterDiscovery] 原始 {stats.raw_count} 个, 过阈值 {stats.scored_count} 个, "
            f"排除 {stats.excluded_count} 个, 最终 {stats.final_count} 个"
        )
        return FilterDiscoveryResult(url=url, page_title=title, candidates=final, stats=stats)

    async def activate_filter_ui(self, page: "PageHandle") -> bool:
        """点击第一个可见的"打开筛选"按钮；没有匹配时返回 False"""
        for selector in FILTER_ACTIVATION_SELECTORS:
            snapshots = await page.query_all(selector)
            target = next((s for s in snapshots if s.visible), None)
            if target is None:
                continue
            try:
                await page.click(f"{selector} >> nth={target.index}")
            except BrowserError as e:
                logger.debug(f"[FilterDiscovery] 点击筛选开关失败 {selector}: {e}")
                continue
            logger.info(f"[FilterDiscovery] 已点击筛选开关: {selector}")
            await settle(self.config.activation_click_delay)
            await settle(self.config.activation_settle_delay)
            return True
        return False

    async def collect_raw_candidates(self, page: "PageHandle") -> tuple[int, list[FilterCandidate]]:
        raw = await page.run_script(
            "filter_candidates",
            {
                "containerSelectors": list(FILTER_CONTAINER_SELECTORS),
                "facetPattern": FACET_PARAM_PATTERN,
            },
        ) or {}
        candidates = [c for c in map(_parse_candidate, raw.get("candidates") or []) if c is not None]
        return int(raw.get("containersFound") or 0), candidates

    async def _safe_title(self, page: "PageHandle") -> str | None:
        try:
            return await page.title()
        except BrowserError:
            return None


def validate_candidates(result: FilterDiscoveryResult) -> list[str]:
    """检查发现结果的质量，返回警告列表"""
    warnings: list[str] = []
    if result.error:
        warnings.append(f"发现失败: {result.error}")
        return warnings
    if not result.candidates:
        warnings.append("未发现任何筛选候选")
    if result.stats.containers_found == 0:
        warnings.append("未找到筛选容器，使用了整页扫描")
    if result.stats.exclusion_fallback:
        warnings.append("排除规则会移除全部候选，已保留排除前的结果")
    unlabeled = sum(1 for c in result.candidates if not c.label)
    if unlabeled:
        warnings.append(f"{unlabeled} 个候选没有标签")
    selectors = [c.selector for c in result.candidates]
    if len(selectors) != len(set(selectors)):
        warnings.append("存在重复的候选选择器")
    return warnings
