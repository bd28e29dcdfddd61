"""冗余导航提取驱动单元测试"""

import pytest

from conftest import FakePage

from catalogspider.common.exceptions import ValidationError
from catalogspider.common.types import (
    DropdownLink,
    DropdownResult,
    ExtractionMethod,
    ExtractionResult,
    NavigationItem,
    NavigationPattern,
    NavigationSelectors,
)
from catalogspider.common.utils.deadline import RunDeadline
from catalogspider.navigation.extractor import NO_MAIN_NAVIGATION, compile_extraction
from catalogspider.navigation.patterns import PatternCatalog
from catalogspider.navigation.redundant import (
    RedundantExtractionDriver,
    attempt_score,
    extraction_stats,
    meets_thresholds,
)


def make_pattern(name: str) -> NavigationPattern:
    return NavigationPattern(
        name=name,
        selectors=NavigationSelectors(container=f".{name}", trigger="a", dropdown=".menu"),
    )


def make_result(pattern: str, main: int, successes: int, links_per_dropdown: int = 2) -> ExtractionResult:
    """main 个主导航项，其中 successes 个下拉菜单展开成功"""
    items = [
        NavigationItem(
            text=f"Item {i}",
            index=i,
            selectors=NavigationSelectors(container=f".{pattern} >> nth={i}", trigger="a", dropdown=".menu"),
        )
        for i in range(main)
    ]
    results = []
    for i in range(main):
        if i < successes:
            links = [DropdownLink(text=f"Link {i}-{j}", href=f"https://s.test/{i}/{j}") for j in range(links_per_dropdown)]
            results.append(DropdownResult.found(ExtractionMethod.HOVER, links, nav_text=f"Item {i}"))
        else:
            results.append(DropdownResult.failed(ExtractionMethod.TIMEOUT, "no dropdown content revealed", f"Item {i}"))
    return compile_extraction(pattern, items, results)


def failed_result(pattern: str) -> ExtractionResult:
    return ExtractionResult(success=False, pattern=pattern, error=NO_MAIN_NAVIGATION)


class ScriptedExtractor:
    """按模式名返回预设结果的提取器"""

    def __init__(self, results: dict):
        self.results = results
        self.calls: list[str] = []

    async def extract(self, page, pattern, deadline=None):
        self.calls.append(pattern.name)
        value = self.results[pattern.name]
        if isinstance(value, Exception):
            raise value
        return value


def make_driver(nav_config, results: dict, site_map=None):
    catalog = PatternCatalog([make_pattern(name) for name in results], site_map or {})
    extractor = ScriptedExtractor(results)
    return RedundantExtractionDriver(catalog, extractor, nav_config), extractor


class TestExtractWithFallback:
    """多模式回退测试"""

    @pytest.mark.asyncio
    async def test_first_qualifying_pattern_wins(self, nav_config, fake_page):
        """测试第一个满足阈值的模式被接受，后续模式不再尝试"""
        driver, extractor = make_driver(
            nav_config,
            {
                "a": failed_result("a"),
                "b": make_result("b", main=6, successes=5),
                "c": make_result("c", main=10, successes=10),
            },
        )
        result = await driver.extract_with_fallback(fake_page, None, max_patterns=5, min_success_rate=0.7, min_items=3)

        assert result.success is True
        assert result.pattern_used == "b"
        assert result.attempt_count == 2
        assert result.fallbacks_used == 1
        assert extractor.calls == ["a", "b"]

    @pytest.mark.asyncio
    async def test_site_patterns_tried_first(self, nav_config, fake_page):
        """测试站点专属模式优先"""
        driver, extractor = make_driver(
            nav_config,
            {"a": make_result("a", 5, 5), "b": make_result("b", 5, 5)},
            site_map={"shop.test": ["b"]},
        )
        result = await driver.extract_with_fallback(fake_page, "https://shop.test/", min_items=3, min_success_rate=0.5)
        assert result.pattern_used == "b"
        assert extractor.calls == ["b"]

    @pytest.mark.asyncio
    async def test_best_partial_returned_below_thresholds(self, nav_config, fake_page):
        """测试全部不满足阈值时返回最佳部分结果"""
        driver, _ = make_driver(
            nav_config,
            {
                "a": make_result("a", main=4, successes=1),
                "b": make_result("b", main=5, successes=2),
                "c": failed_result("c"),
            },
        )
        result = await driver.extract_with_fallback(fake_page, None, max_patterns=5, min_success_rate=0.9, min_items=3)

        assert result.success is False
        assert result.pattern_used == "b"
        assert result.result is not None
        assert result.warning
        assert result.error is None
        assert result.attempt_count == 3

    @pytest.mark.asyncio
    async def test_all_patterns_fail(self, nav_config, fake_page):
        """测试全部模式失败"""
        driver, _ = make_driver(nav_config, {"a": failed_result("a"), "b": failed_result("b")})
        result = await driver.extract_with_fallback(fake_page, None)

        assert result.success is False
        assert result.result is None
        assert result.error == "All 2 navigation patterns failed"
        assert [a.error for a in result.attempts] == [NO_MAIN_NAVIGATION, NO_MAIN_NAVIGATION]

    @pytest.mark.asyncio
    async def test_exception_recorded_as_failed_attempt(self, nav_config, fake_page):
        """测试模式抛出异常时记录失败并继续"""
        driver, extractor = make_driver(
            nav_config,
            {"a": RuntimeError("boom"), "b": make_result("b", 5, 5)},
        )
        result = await driver.extract_with_fallback(fake_page, None, min_items=3, min_success_rate=0.5)

        assert result.success is True
        assert result.attempts[0].success is False
        assert result.attempts[0].error == "boom"
        assert extractor.calls == ["a", "b"]

    @pytest.mark.asyncio
    async def test_max_patterns_limits_attempts(self, nav_config, fake_page):
        """测试最多尝试 max_patterns 个模式"""
        driver, extractor = make_driver(
            nav_config,
            {name: failed_result(name) for name in ("a", "b", "c", "d")},
        )
        result = await driver.extract_with_fallback(fake_page, None, max_patterns=2)
        assert extractor.calls == ["a", "b"]
        assert result.attempt_count == 2

    @pytest.mark.asyncio
    async def test_invalid_thresholds_rejected(self, nav_config, fake_page):
        """测试非法阈值"""
        driver, _ = make_driver(nav_config, {"a": failed_result("a")})
        with pytest.raises(ValidationError):
            await driver.extract_with_fallback(fake_page, None, min_success_rate=1.5)
        with pytest.raises(ValidationError):
            await driver.extract_with_fallback(fake_page, None, max_patterns=0)

    @pytest.mark.asyncio
    async def test_expired_deadline_stops_before_first_pattern(self, nav_config, fake_page):
        """测试截止时间已到"""
        driver, extractor = make_driver(nav_config, {"a": make_result("a", 5, 5)})
        result = await driver.extract_with_fallback(fake_page, None, deadline=RunDeadline.after(0))
        assert result.cancelled is True
        assert extractor.calls == []
        assert result.success is False

    @pytest.mark.asyncio
    async def test_quick_extract_uses_relaxed_thresholds(self, nav_config, fake_page):
        """测试快速模式：阈值放宽，只尝试两个模式"""
        driver, extractor = make_driver(
            nav_config,
            {"a": failed_result("a"), "b": make_result("b", 1, 1), "c": make_result("c", 9, 9)},
        )
        result = await driver.quick_extract(fake_page, None)
        assert result.success is True
        assert result.pattern_used == "b"
        assert extractor.calls == ["a", "b"]

    @pytest.mark.asyncio
    async def test_comprehensive_extract_requires_more_items(self, nav_config, fake_page):
        """测试全面模式：阈值更严格"""
        driver, _ = make_driver(
            nav_config,
            {"a": make_result("a", 4, 4), "b": make_result("b", 6, 5)},
        )
        result = await driver.comprehensive_extract(fake_page, None)
        assert result.success is True
        assert result.pattern_used == "b"


class TestScoring:
    """阈值与评分测试"""

    def test_meets_thresholds(self):
        result = make_result("p", main=5, successes=4)
        assert meets_thresholds(result, 3, 0.8)
        assert not meets_thresholds(result, 6, 0.5)
        assert not meets_thresholds(result, 3, 0.9)

    def test_failed_result_never_meets_thresholds(self):
        assert not meets_thresholds(failed_result("p"), 0, 0.0)

    def test_attempt_score_prefers_total_items(self):
        many_links = make_result("a", main=3, successes=1, links_per_dropdown=10)
        high_rate = make_result("b", main=3, successes=3, links_per_dropdown=1)
        assert attempt_score(many_links) > attempt_score(high_rate)


class TestExtractionStats:
    """提取统计测试"""

    @pytest.mark.asyncio
    async def test_efficiency_labels(self, nav_config):
        page = FakePage()
        driver, _ = make_driver(nav_config, {"a": make_result("a", 5, 5)})
        result = await driver.extract_with_fallback(page, None, min_items=3, min_success_rate=0.5)
        stats = extraction_stats(result)
        assert stats["success"] is True
        assert stats["stats"]["efficiency"] == "perfect"
        assert stats["stats"]["success_rate"] == 100

    def test_no_result(self):
        from catalogspider.common.types import FallbackExtractionResult

        assert extraction_stats(FallbackExtractionResult(success=False)) == {"success": False, "stats": None}
