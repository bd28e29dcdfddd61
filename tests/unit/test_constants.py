"""常量模块单元测试"""

import re

from catalogspider.common.constants import (
    COMPREHENSIVE_PRESET,
    DEFAULT_ALIAS_THRESHOLD,
    DEFAULT_MAX_PATTERNS,
    DEFAULT_MIN_NAV_ITEMS,
    DEFAULT_MIN_SUCCESS_RATE,
    DEFAULT_MIN_SUPERSET_CHILDREN,
    DEFAULT_PAGE_TIMEOUT_MS,
    DEFAULT_SCORE_THRESHOLD,
    DEFAULT_SUPERSET_THRESHOLD,
    FACET_PARAM_PATTERN,
    FILTER_URL_MARKER_PATTERN,
    FORCE_VISIBILITY_STRATEGIES,
    MAX_URL_LENGTH,
    QUICK_PRESET,
    RESET_STYLES,
    VALID_URL_SCHEMES,
)


class TestNavigationConstants:
    """导航提取相关常量测试"""

    def test_default_thresholds(self):
        assert DEFAULT_MAX_PATTERNS == 5
        assert DEFAULT_MIN_SUCCESS_RATE == 0.7
        assert DEFAULT_MIN_NAV_ITEMS == 3

    def test_presets_bracket_defaults(self):
        """快速预设比默认宽松，全面预设比默认严格"""
        assert QUICK_PRESET["max_patterns"] < DEFAULT_MAX_PATTERNS < COMPREHENSIVE_PRESET["max_patterns"]
        assert QUICK_PRESET["min_success_rate"] < DEFAULT_MIN_SUCCESS_RATE < COMPREHENSIVE_PRESET["min_success_rate"]
        assert QUICK_PRESET["min_items"] < DEFAULT_MIN_NAV_ITEMS < COMPREHENSIVE_PRESET["min_items"]

    def test_force_visibility_strategies_reset_cleanly(self):
        """强制显示写入的属性都能被重置样式清除"""
        for _name, styles in FORCE_VISIBILITY_STRATEGIES:
            assert set(styles) == set(RESET_STYLES)
        assert all(value == "" for value in RESET_STYLES.values())

    def test_page_timeout_is_positive(self):
        assert DEFAULT_PAGE_TIMEOUT_MS > 0


class TestFilterConstants:
    """筛选器相关常量测试"""

    def test_score_threshold(self):
        assert DEFAULT_SCORE_THRESHOLD == 2

    def test_patterns_compile(self):
        for pattern in (FACET_PARAM_PATTERN, FILTER_URL_MARKER_PATTERN):
            re.compile(pattern)


class TestDedupConstants:
    """去重阈值常量测试"""

    def test_thresholds_are_ratios(self):
        assert 0 < DEFAULT_SUPERSET_THRESHOLD <= 1
        assert 0 < DEFAULT_ALIAS_THRESHOLD <= 1

    def test_min_children(self):
        assert DEFAULT_MIN_SUPERSET_CHILDREN >= 2


class TestValidationConstants:
    """输入验证常量测试"""

    def test_max_url_length(self):
        assert MAX_URL_LENGTH == 2048

    def test_valid_schemes(self):
        assert "http" in VALID_URL_SCHEMES
        assert "https" in VALID_URL_SCHEMES
        assert "ftp" not in VALID_URL_SCHEMES
