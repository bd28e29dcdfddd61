"""冗余导航提取驱动

依次尝试站点专属模式与目录中的其余模式，接受第一个同时满足主导航数量与
下拉成功率阈值的结果；全部不满足时返回最好的部分结果（success=False），
不抛出异常。
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

from ..common.config import NavigationConfig, config
from ..common.constants import COMPREHENSIVE_PRESET, QUICK_PRESET
from ..common.logger import get_logger
from ..common.types import ExtractionResult, FallbackExtractionResult, PatternAttempt
from ..common.utils.deadline import RunDeadline, is_expired
from ..common.utils.delay import settle
from ..common.validators import validate_positive_integer, validate_ratio
from .extractor import NavigationExtractor
from .patterns import PatternCatalog, load_catalog

if TYPE_CHECKING:
    from ..common.browser.page import PageHandle

logger = get_logger(__name__)


def meets_thresholds(result: ExtractionResult, min_items: int, min_success_rate: float) -> bool:
    return (
        result.success
        and result.main_navigation.count >= min_items
        and result.dropdown_extraction.success_rate >= min_success_rate
    )


def attempt_score(result: ExtractionResult) -> tuple[int, float]:
    """部分结果排序：链接总数优先，其次下拉成功率"""
    return (result.summary.total_navigation_items, result.dropdown_extraction.success_rate)


def _attempt_from(result: ExtractionResult) -> PatternAttempt:
    return PatternAttempt(
        pattern=result.pattern,
        success=result.success,
        main_items=result.main_navigation.count,
        success_rate=result.dropdown_extraction.success_rate,
        total_items=result.summary.total_navigation_items,
        error=result.error,
    )


class RedundantExtractionDriver:
    """多模式冗余提取

    Args:
        catalog: 模式目录，默认按配置加载
        extractor: 单模式提取器
        nav_config: 导航配置（阈值默认值、模式间延迟）
    """

    def __init__(
        self,
        catalog: PatternCatalog | None = None,
        extractor: NavigationExtractor | None = None,
        nav_config: NavigationConfig | None = None,
    ):
        self.config = nav_config or config.navigation
        self.catalog = catalog or load_catalog(self.config)
        self.extractor = extractor or NavigationExtractor(self.config)

    async def extract_with_fallback(
        self,
        page: "PageHandle",
        site: str | None,
        max_patterns: int | None = None,
        min_success_rate: float | None = None,
        min_items: int | None = None,
        deadline: RunDeadline | None = None,
    ) -> FallbackExtractionResult:
        max_patterns = validate_positive_integer(
            max_patterns if max_patterns is not None else self.config.max_patterns, "max_patterns"
        )
        min_success_rate = validate_ratio(
            min_success_rate if min_success_rate is not None else self.config.min_success_rate,
            "min_success_rate",
        )
        min_items = validate_positive_integer(
            min_items if min_items is not None else self.config.min_items, "min_items", min_value=0
        )

        started = time.monotonic()
        candidates = self.catalog.patterns_for_site(site)[:max_patterns]
        logger.info(
            f"[Redundant] {site}: 候选模式 {[p.name for p in candidates]} "
            f"(min_items={min_items}, min_success_rate={min_success_rate})"
        )

        attempts: list[PatternAttempt] = []
        best: ExtractionResult | None = None
        cancelled = False

        for position, pattern in enumerate(candidates):
            if is_expired(deadline):
                cancelled = True
                logger.warning("[Redundant] 运行截止时间已到，停止尝试剩余模式")
                break
            if position > 0:
                await settle(self.config.pattern_delay)

            try:
                result = await self.extractor.extract(page, pattern, deadline=deadline)
            except Exception as e:
                logger.error(f"[Redundant] 模式 {pattern.name} 出错: {e}")
                attempts.append(PatternAttempt(pattern=pattern.name, success=False, error=str(e)))
                continue

            attempts.append(_attempt_from(result))

            if result.success and (best is None or attempt_score(result) > attempt_score(best)):
                best = result

            if meets_thresholds(result, min_items, min_success_rate):
                logger.info(
                    f"[Redundant] 模式 {pattern.name} 满足阈值 "
                    f"({result.main_navigation.count} 项, 成功率 {result.dropdown_extraction.success_rate:.0%})"
                )
                return FallbackExtractionResult(
                    success=True,
                    pattern_used=pattern.name,
                    attempts=attempts,
                    attempt_count=len(attempts),
                    fallbacks_used=len(attempts) - 1,
                    result=result,
                    elapsed_s=time.monotonic() - started,
                    cancelled=result.cancelled,
                )

            if result.success:
                logger.info(
                    f"[Redundant] 模式 {pattern.name} 未达阈值 "
                    f"({result.main_navigation.count} 项, 成功率 {result.dropdown_extraction.success_rate:.0%})"
                )
            else:
                logger.info(f"[Redundant] 模式 {pattern.name} 失败: {result.error}")

            if result.cancelled:
                cancelled = True
                break

        elapsed = time.monotonic() - started

        if best is not None:
            logger.warning(
                f"[Redundant] 没有模式满足阈值，返回最佳部分结果: {best.pattern} "
                f"({best.summary.total_navigation_items} 项)"
            )
            return FallbackExtractionResult(
                success=False,
                pattern_used=best.pattern,
                attempts=attempts,
                attempt_count=len(attempts),
                fallbacks_used=max(len(attempts) - 1, 0),
                result=best,
                warning="results below preferred thresholds, best available attached",
                elapsed_s=elapsed,
                cancelled=cancelled,
            )

        logger.error(f"[Redundant] {site}: 全部 {len(attempts)} 个模式均失败")
        return FallbackExtractionResult(
            success=False,
            attempts=attempts,
            attempt_count=len(attempts),
            fallbacks_used=len(attempts),
            error=f"All {len(attempts)} navigation patterns failed",
            elapsed_s=elapsed,
            cancelled=cancelled,
        )

    async def quick_extract(
        self, page: "PageHandle", site: str | None, deadline: RunDeadline | None = None
    ) -> FallbackExtractionResult:
        """只尝试最可能的两个模式，阈值放宽"""
        return await self.extract_with_fallback(page, site, deadline=deadline, **QUICK_PRESET)

    async def comprehensive_extract(
        self, page: "PageHandle", site: str | None, deadline: RunDeadline | None = None
    ) -> FallbackExtractionResult:
        """尝试全部模式，阈值更严格"""
        return await self.extract_with_fallback(page, site, deadline=deadline, **COMPREHENSIVE_PRESET)


def extraction_stats(result: FallbackExtractionResult) -> dict[str, Any]:
    """用于分析 / 调试的提取统计"""
    if result.result is None:
        return {"success": False, "stats": None}

    extraction = result.result
    if result.fallbacks_used == 0:
        efficiency = "perfect"
    elif result.fallbacks_used <= 2:
        efficiency = "good"
    else:
        efficiency = "poor"

    return {
        "success": result.success,
        "stats": {
            "pattern_used": result.pattern_used,
            "total_items": extraction.summary.total_navigation_items,
            "main_nav_items": extraction.summary.main_nav_items,
            "dropdown_items": extraction.summary.dropdown_items,
            "success_rate": round(extraction.dropdown_extraction.success_rate * 100),
            "methods": extraction.summary.methods.model_dump(),
            "elapsed_s": result.elapsed_s,
            "fallbacks_used": result.fallbacks_used,
            "efficiency": efficiency,
        },
    }
