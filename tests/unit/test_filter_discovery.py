"""筛选器发现单元测试"""

import pytest

from conftest import FakePage, snap

from catalogspider.common.browser.page import load_script
from catalogspider.common.types import FilterCandidate, FilterDiscoveryResult, FilterElementType
from catalogspider.common.utils.data_file import clear_data_cache
from catalogspider.exploration.filter_discovery import (
    FilterDiscoveryEngine,
    apply_exclusions,
    has_facet_params,
    is_skip_text,
    rank_candidates,
    score_candidate,
    validate_candidates,
)
from catalogspider.exploration.filter_patterns import FilterPatterns, load_filter_patterns

CONTAINER = ".filters"


def checkbox(label: str, index: int = 0, **kwargs) -> dict:
    data = {
        "element_type": "checkbox",
        "selector": f"#filter-{index}",
        "label": label,
        "container_hint": CONTAINER,
        "visible": True,
    }
    data.update(kwargs)
    return data


def candidate(element_type=FilterElementType.CHECKBOX, **kwargs) -> FilterCandidate:
    kwargs.setdefault("selector", "#x")
    return FilterCandidate(element_type=element_type, **kwargs)


def page_with_candidates(raw: list[dict], containers: int = 1) -> FakePage:
    page = FakePage(url="https://shop.example.com/collections/shoes")
    page.scripts["filter_candidates"] = {"containersFound": containers, "candidates": raw}
    return page


class TestScoreCandidate:
    """候选打分测试"""

    def test_checkbox_in_container(self):
        """测试 checkbox 基础分 2，在容器内 +1"""
        assert score_candidate(candidate(container_hint=CONTAINER)) == 3

    def test_button_base_score(self):
        assert score_candidate(candidate(FilterElementType.BUTTON)) == 1

    def test_link_with_facet_params(self):
        """测试带分面参数的链接"""
        assert score_candidate(candidate(FilterElementType.LINK, has_facet_params=True)) == 2
        assert score_candidate(candidate(FilterElementType.LINK)) == 0

    def test_count_suffix_and_checked(self):
        """测试数量后缀与选中状态加分"""
        c = candidate(FilterElementType.BUTTON, label="Nike (12)", checked=True)
        assert score_candidate(c) == 3

    def test_filter_like_name(self):
        """测试 name 含 brand 加分"""
        assert score_candidate(candidate(FilterElementType.RADIO, name="brand")) == 3

    def test_score_is_pure(self):
        """测试打分不修改候选"""
        c = candidate(container_hint=CONTAINER)
        score_candidate(c)
        assert c.score == 0


class TestRankCandidates:
    """排序与阈值测试"""

    def test_threshold_and_order(self):
        """测试过滤低分并按分数降序，同分保持原顺序"""
        candidates = [
            candidate(FilterElementType.BUTTON, label="low"),
            candidate(label="a", container_hint=CONTAINER),
            candidate(label="b"),
            candidate(label="c", container_hint=CONTAINER, checked=True),
        ]
        ranked = rank_candidates(candidates, score_threshold=2)
        assert [c.label for c in ranked] == ["c", "a", "b"]
        assert [c.score for c in ranked] == [4, 3, 2]

    def test_hidden_candidates_dropped(self):
        """测试默认丢弃不可见候选"""
        candidates = [candidate(label="hidden", visible=False), candidate(label="shown")]
        assert [c.label for c in rank_candidates(candidates, 2)] == ["shown"]
        assert len(rank_candidates(candidates, 2, include_hidden=True)) == 2


class TestExclusions:
    """排除规则测试"""

    def test_partition(self):
        """测试库存 / 价格被排除，品牌与分类保留"""
        candidates = [candidate(label=label) for label in ["In Stock", "ACCESSORIES", "Price Range", "NIKE"]]
        kept, excluded, fallback = apply_exclusions(candidates, FilterPatterns())
        assert [c.label for c in kept] == ["ACCESSORIES", "NIKE"]
        assert [c.label for c in excluded] == ["In Stock", "Price Range"]
        assert fallback is False

    def test_exclusion_never_empties_list(self):
        """测试排除会清空列表时保留原列表"""
        candidates = [candidate(label="In Stock"), candidate(label="Price Range")]
        kept, excluded, fallback = apply_exclusions(candidates, FilterPatterns())
        assert [c.label for c in kept] == ["In Stock", "Price Range"]
        assert excluded == []
        assert fallback is True

    def test_empty_input(self):
        kept, excluded, fallback = apply_exclusions([], FilterPatterns())
        assert kept == [] and excluded == [] and fallback is False

    def test_size_tokens_and_value(self):
        """测试尺码词与 value 字段命中"""
        patterns = FilterPatterns()
        assert patterns.is_excluded(candidate(label="XL"))
        assert patterns.is_excluded(candidate(label="Option", value="size-10"))
        assert not patterns.is_excluded(candidate(label="Color: Red"))

    def test_size_token_must_be_whole_label(self):
        """测试尺码词只在整个字段就是尺码时排除，品牌名不受影响"""
        patterns = FilterPatterns()
        assert patterns.is_excluded(candidate(label="Large (12)"))
        assert patterns.is_excluded(candidate(label=" xxl "))
        assert not patterns.is_excluded(candidate(label="LG"))
        assert not patterns.is_excluded(candidate(label="LG Electronics"))
        assert not patterns.is_excluded(candidate(label="Small Batch Coffee"))

    def test_custom_patterns_from_yaml(self, tmp_path, discovery_config):
        """测试从 YAML 加载排除词表"""
        path = tmp_path / "exclusions.yaml"
        path.write_text("exclude_patterns:\n  - '\\bsale\\b'\nextend: false\n", encoding="utf-8")
        clear_data_cache()
        cfg = discovery_config.model_copy(update={"exclusion_file": str(path)})
        patterns = load_filter_patterns(cfg)
        assert patterns.sources == ("\\bsale\\b",)
        assert patterns.matches("Summer Sale")
        assert not patterns.matches("In Stock")


class TestCandidateCollector:
    """内置筛选候选采集脚本测试"""

    def test_label_falls_back_to_adjacent_sibling(self):
        """测试标签解析顺序：label[for] -> 外层 label -> 自身文本 -> 紧邻兄弟文本 -> value/name"""
        script = load_script("filter_candidates")
        resolve = script[script.index("const resolveLabel"):script.index("const isActive")]
        assert resolve.index("label[for=") < resolve.index("closest('label')")
        assert resolve.index("closest('label')") < resolve.index("siblingText(el)")
        assert resolve.index("siblingText(el)") < resolve.index("getAttribute('value')")
        assert "parentElement.innerText" not in script


class TestSkipTexts:
    """操作类文本测试"""

    def test_button_skip_text(self):
        assert is_skip_text(candidate(FilterElementType.BUTTON, label="Apply"))
        assert not is_skip_text(candidate(FilterElementType.BUTTON, label="Nike"))

    def test_checkbox_never_skipped(self):
        assert not is_skip_text(candidate(label="Clear"))


class TestHasFacetParams:
    def test_facet_params(self):
        assert has_facet_params("/shoes?brand=nike")
        assert has_facet_params("/shoes?page=1&filter=red")
        assert not has_facet_params("/shoes?page=2")
        assert not has_facet_params(None)


class TestFilterDiscoveryEngine:
    """筛选器发现引擎测试"""

    @pytest.mark.asyncio
    async def test_discover_excludes_non_category_filters(self, discovery_config):
        """测试库存 / 价格筛选被排除"""
        raw = [checkbox(label, i) for i, label in enumerate(["In Stock", "ACCESSORIES", "Price Range", "NIKE"])]
        page = page_with_candidates(raw)
        result = await FilterDiscoveryEngine(discovery_config).discover(page)

        assert result.error is None
        assert result.url == "https://shop.example.com/collections/shoes"
        assert [c.label for c in result.candidates] == ["ACCESSORIES", "NIKE"]
        assert result.stats.raw_count == 4
        assert result.stats.excluded_count == 2
        assert result.stats.excluded_labels == ["In Stock", "Price Range"]
        assert result.stats.by_type == {"checkbox": 2}
        assert result.page_title == "测试页面"

    @pytest.mark.asyncio
    async def test_discover_fallback_when_everything_excluded(self, discovery_config):
        """测试全部被排除时保留排除前的候选"""
        page = page_with_candidates([checkbox("In Stock", 0), checkbox("Price Range", 1)])
        result = await FilterDiscoveryEngine(discovery_config).discover(page)
        assert len(result.candidates) == 2
        assert result.stats.exclusion_fallback is True

    @pytest.mark.asyncio
    async def test_exclusion_runs_before_truncation(self, discovery_config):
        """测试先排除再截断到 max_filters"""
        labels = ["Price Range", "In Stock", "Nike", "Adidas", "Puma"]
        page = page_with_candidates([checkbox(label, i) for i, label in enumerate(labels)])
        cfg = discovery_config.model_copy(update={"max_filters": 2})
        result = await FilterDiscoveryEngine(cfg).discover(page)
        assert [c.label for c in result.candidates] == ["Nike", "Adidas"]

    @pytest.mark.asyncio
    async def test_activation_button_clicked(self, discovery_config):
        """测试点击第一个可见的筛选开关"""
        page = page_with_candidates([checkbox("Nike", 0)])
        page.elements[".filter-toggle"] = [snap(0, tag="button", visible=False), snap(1, tag="button", text="Filter")]
        result = await FilterDiscoveryEngine(discovery_config).discover(page)
        assert page.clicked == [".filter-toggle >> nth=1"]
        assert result.stats.activation_clicked is True

    @pytest.mark.asyncio
    async def test_invalid_raw_candidates_ignored(self, discovery_config):
        """测试忽略无法解析的候选"""
        page = page_with_candidates([{"element_type": "slider", "selector": "#s"}, checkbox("Nike", 1)])
        result = await FilterDiscoveryEngine(discovery_config).discover(page)
        assert [c.label for c in result.candidates] == ["Nike"]

    @pytest.mark.asyncio
    async def test_skip_text_buttons_removed(self, discovery_config):
        """测试操作类按钮在打分前被移除"""
        raw = [
            {"element_type": "button", "selector": "#apply", "label": "Apply", "container_hint": CONTAINER, "checked": True},
            checkbox("Nike", 1),
        ]
        result = await FilterDiscoveryEngine(discovery_config).discover(page_with_candidates(raw))
        assert result.stats.raw_count == 1
        assert [c.label for c in result.candidates] == ["Nike"]

    @pytest.mark.asyncio
    async def test_script_error_becomes_error_result(self, discovery_config):
        """测试页面脚本异常转换为错误结果"""
        page = FakePage()

        def broken(_arg):
            raise RuntimeError("evaluate failed")

        page.scripts["filter_candidates"] = broken
        result = await FilterDiscoveryEngine(discovery_config).discover(page)
        assert result.candidates == []
        assert result.error == "evaluate failed"

    @pytest.mark.asyncio
    async def test_facet_link_detected_from_href(self, discovery_config):
        """测试根据 href 识别分面链接"""
        raw = [{"element_type": "link", "selector": "#l", "label": "Nike", "href": "/shoes?brand=nike"}]
        result = await FilterDiscoveryEngine(discovery_config).discover(page_with_candidates(raw))
        assert result.candidates[0].has_facet_params is True
        assert result.candidates[0].score == 2


class TestValidateCandidates:
    """发现结果校验测试"""

    def test_warnings(self):
        result = FilterDiscoveryResult(url="https://s.test")
        warnings = validate_candidates(result)
        assert "未发现任何筛选候选" in warnings
        assert "未找到筛选容器，使用了整页扫描" in warnings

    def test_error_result(self):
        warnings = validate_candidates(FilterDiscoveryResult(url="https://s.test", error="boom"))
        assert warnings == ["发现失败: boom"]

    def test_duplicate_selectors(self):
        result = FilterDiscoveryResult(
            url="https://s.test",
            candidates=[candidate(label="a", selector="#a"), candidate(label="b", selector="#a")],
        )
        result.stats.containers_found = 1
        assert validate_candidates(result) == ["存在重复的候选选择器"]
