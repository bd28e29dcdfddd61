"""筛选排除词表

尺码、价格、排序、库存、操作类按钮等不是"分类型"筛选项，探索时要排除。
词表可以通过 YAML 文件覆盖::

    exclude_patterns:
      - '\\bsize\\b'
      - 'in\\s*stock'
    extend: true   # true 表示在内置词表上追加
"""

from __future__ import annotations

import re
from typing import Iterable

from ..common.config import FilterDiscoveryConfig
from ..common.logger import get_logger
from ..common.types import FilterCandidate
from ..common.utils.data_file import load_data_file

logger = get_logger(__name__)

DEFAULT_EXCLUDE_PATTERNS: tuple[str, ...] = (
    # 库存
    r"\bin[\s_-]*stock\b",
    r"\bout[\s_-]*of[\s_-]*stock\b",
    r"\bavailability\b",
    r"\bquantity\b",
    r"\bqty\b",
    # 价格
    r"\bprice\b",
    r"\$\s*\d+",
    # 排序 / 视图
    r"\bsort",
    r"\border[\s_-]*by\b",
    r"\bview\b",
    # 尺码
    r"\bsizes?\b",
    # 整个字段就是尺码词（可带计数）
    r"^\s*(xxs|xs|sm|small|md|medium|lg|large|xl|xxl|xxxl|[2-5]xl)\s*(\(\d+\))?\s*$",
    r"\b\d+(\.\d+)?\s*(in|inch|inches|cm|mm)\b",
    r"\b(us|uk|eu)\s*\d+",
    # 操作
    r"\bclear[\s_-]*all\b",
    r"\b(apply|reset|remove|done|cancel|submit|close)\b",
    r"\b(add to cart|buy now|checkout|wishlist)\b",
    # 履约
    r"\b(pickup|store|delivery|shipping)\b",
    # 评分
    r"\b(ratings?|reviews?|stars?)\b",
)


class FilterPatterns:
    """筛选候选排除规则"""

    def __init__(self, exclude_patterns: Iterable[str] = DEFAULT_EXCLUDE_PATTERNS):
        self.sources: tuple[str, ...] = tuple(exclude_patterns)
        self._compiled = [re.compile(p, re.IGNORECASE) for p in self.sources]

    def matches(self, text: str | None) -> bool:
        if not text:
            return False
        return any(p.search(text) for p in self._compiled)

    def is_excluded(self, candidate: FilterCandidate) -> bool:
        """标签、name、value 任一命中即排除"""
        return any(self.matches(field) for field in (candidate.label, candidate.name, candidate.value))

    def partition(
        self, candidates: list[FilterCandidate]
    ) -> tuple[list[FilterCandidate], list[FilterCandidate]]:
        """拆分为 (保留, 排除)"""
        kept: list[FilterCandidate] = []
        excluded: list[FilterCandidate] = []
        for candidate in candidates:
            (excluded if self.is_excluded(candidate) else kept).append(candidate)
        return kept, excluded

    @classmethod
    def from_yaml(cls, path: str) -> "FilterPatterns":
        data = load_data_file(path)
        patterns = [str(p) for p in data.get("exclude_patterns") or []]
        if data.get("extend", True):
            patterns = list(DEFAULT_EXCLUDE_PATTERNS) + patterns
        return cls(patterns)


def load_filter_patterns(discovery_config: FilterDiscoveryConfig | None = None) -> FilterPatterns:
    if discovery_config is not None and discovery_config.exclusion_file:
        patterns = FilterPatterns.from_yaml(discovery_config.exclusion_file)
        logger.info(
            f"[FilterPatterns] 已加载排除词表: {discovery_config.exclusion_file} ({len(patterns.sources)} 条)"
        )
        return patterns
    return FilterPatterns()
