"""分类去重

对一组扁平的分类（名称 + 地址 + 商品 URL 样本）做归一化与分组，并把每个分类标记为：

- products：需要抓取商品
- structural-only：商品集合基本覆盖了多个更小的分类，只保留在导航树中
- alias：与另一个更具体的分类商品几乎完全相同

输入的 CategoryRecord 不会被修改，结果按输入顺序返回。
"""

from __future__ import annotations

import hashlib
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterable

from ..common.config import DeduplicationConfig, config
from ..common.constants import (
    AGE_TOKENS,
    GENDER_TOKENS,
    GENERIC_NAME_TOKENS,
    GENERIC_PATH_TOKENS,
)
from ..common.logger import get_logger
from ..common.types import (
    CategoryDeduplicationResult,
    CategoryQualifiers,
    CategoryRecord,
    CrawlMode,
)
from ..common.utils.url import Canonicalizer, canonicalize_url
from ..common.validators import validate_positive_integer, validate_ratio

logger = get_logger(__name__)

_APOSTROPHE_RE = re.compile(r"['’]")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")

_QUALIFIER_TOKENS = frozenset(_APOSTROPHE_RE.sub("", t) for t in (*GENDER_TOKENS, *AGE_TOKENS))

_GENDER_MAP = {
    "men": "men",
    "mens": "men",
    "boys": "men",
    "women": "women",
    "womens": "women",
    "girls": "women",
    "unisex": "unisex",
}

_AGE_MAP = {
    "kids": "kids",
    "youth": "kids",
    "junior": "kids",
    "boys": "kids",
    "girls": "kids",
    "baby": "baby",
    "toddler": "baby",
    "adult": "adult",
}


def _tokens(text: str | None) -> list[str]:
    text = _APOSTROPHE_RE.sub("", (text or "").lower())
    return [t for t in _NON_ALNUM_RE.split(text) if t]


def make_slug(name: str | None) -> str:
    """名称归一化：小写、去撇号、去性别 / 年龄词，用下划线连接

    Example:
        >>> make_slug("Men's Running Shoes")
        'running_shoes'
        >>> make_slug("Kids")
        'unknown'
    """
    tokens = [t for t in _tokens(name) if t not in _QUALIFIER_TOKENS]
    return "_".join(tokens) or "unknown"


def extract_qualifiers(name: str | None, url: str | None = None) -> CategoryQualifiers:
    """从名称和 URL 的词表中识别性别、年龄段与商品类型

    只记录显式出现的限定词；商品类型取 slug，slug 全是泛化词时为空。
    """
    tokens = _tokens(name) + _tokens(url)
    gender = next((_GENDER_MAP[t] for t in tokens if t in _GENDER_MAP), None)
    age_group = next((_AGE_MAP[t] for t in tokens if t in _AGE_MAP), None)

    slug = make_slug(name)
    slug_tokens = slug.split("_")
    product_type = None
    if slug != "unknown" and not all(t in GENERIC_NAME_TOKENS for t in slug_tokens):
        product_type = slug

    return CategoryQualifiers(gender=gender, age_group=age_group, product_type=product_type)


def is_generic_category(name: str | None, url: str | None, qualifiers: CategoryQualifiers) -> bool:
    """没有显式性别 / 年龄，且名称含泛化词或 URL 不在性别路径下"""
    if qualifiers.gender or qualifiers.age_group:
        return False
    if any(t in GENERIC_NAME_TOKENS for t in _tokens(name)):
        return True
    path = (url or "").lower()
    return not any(marker in path for marker in GENERIC_PATH_TOKENS)


def product_hash(key: str) -> int:
    """商品键的稳定哈希，用于与列表顺序无关的抽样"""
    return int(hashlib.sha256(key.encode("utf-8")).hexdigest()[:16], 16)


def sample_products(
    products: Iterable[str],
    canonicalize: Canonicalizer = canonicalize_url,
    sample_size: int = 40,
) -> list[str]:
    """规范化并去重商品 URL，保留哈希最小的 sample_size 个（按哈希升序）

    样本只取决于商品集合，与列表顺序无关。规范化失败时使用原始 URL。
    """
    keys: set[str] = set()
    for url in products:
        if not url:
            continue
        try:
            key = canonicalize(url) or url
        except Exception as e:
            logger.debug(f"[CategoryDedup] 商品 URL 规范化失败，使用原始 URL: {url} ({e})")
            key = url
        keys.add(key)
    return sorted(keys, key=lambda k: (product_hash(k), k))[:sample_size]


def sample_cutoff(sample: list[str], sample_size: int) -> int | None:
    """满额样本只完整覆盖到自身最大哈希为止；未满额的样本包含全部商品，返回 None"""
    if not sample or len(sample) < sample_size:
        return None
    return product_hash(sample[-1])


def restrict_sample(sample: set[str], cutoff: int | None) -> set[str]:
    if cutoff is None:
        return sample
    return {key for key in sample if product_hash(key) <= cutoff}


def common_cutoff(*cutoffs: int | None) -> int | None:
    """多个样本都完整覆盖的哈希区间上限"""
    limits = [c for c in cutoffs if c is not None]
    return min(limits) if limits else None


def jaccard(a: set[str], b: set[str]) -> float:
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def coverage(parent: set[str], child: set[str]) -> float:
    """child 中被 parent 覆盖的比例 |A∩B| / |B|"""
    if not child:
        return 0.0
    return len(parent & child) / len(child)


@dataclass
class _Normalized:
    index: int
    record: CategoryRecord
    slug: str
    qualifiers: CategoryQualifiers
    generic: bool
    sample: list[str]
    sample_set: set[str] = field(default_factory=set)
    cutoff: int | None = None

    def compare(self, other: "_Normalized") -> tuple[set[str], set[str]]:
        """把两个样本限制在共同完整覆盖的哈希区间内"""
        cutoff = common_cutoff(self.cutoff, other.cutoff)
        return restrict_sample(self.sample_set, cutoff), restrict_sample(other.sample_set, cutoff)

    @property
    def specificity(self) -> int:
        return self.qualifiers.count

    @property
    def rank_key(self) -> tuple[int, bool, int]:
        # 限定词越多越靠前；同分时非泛化名称优先，再按输入顺序
        return (-self.specificity, self.generic, self.index)


class CategoryDeduplicator:
    """分类去重器

    Args:
        dedup_config: 去重配置（样本大小与各阈值）
        canonicalize: 商品 URL 规范化函数

    Example:
        >>> dedup = CategoryDeduplicator()
        >>> results = dedup.deduplicate([
        ...     CategoryRecord(name="Tops", url="https://shop.example.com/shop/tops", products=[...]),
        ...     CategoryRecord(name="Men's Tops", url="https://shop.example.com/shop/mens/tops", products=[...]),
        ... ])
    """

    def __init__(
        self,
        dedup_config: DeduplicationConfig | None = None,
        canonicalize: Canonicalizer = canonicalize_url,
    ):
        self.config = dedup_config or config.dedup
        self.canonicalize = canonicalize

        validate_positive_integer(self.config.sample_size, "sample_size")
        validate_ratio(self.config.alias_threshold, "alias_threshold")
        validate_ratio(self.config.superset_threshold, "superset_threshold")
        validate_positive_integer(self.config.min_superset_children, "min_superset_children")

    def normalize(self, index: int, record: CategoryRecord) -> _Normalized:
        qualifiers = extract_qualifiers(record.name, record.url)
        sample = sample_products(record.products, self.canonicalize, self.config.sample_size)
        return _Normalized(
            index=index,
            record=record,
            slug=make_slug(record.name),
            qualifiers=qualifiers,
            generic=is_generic_category(record.name, record.url, qualifiers),
            sample=sample,
            sample_set=set(sample),
            cutoff=sample_cutoff(sample, self.config.sample_size),
        )

    def deduplicate(self, categories: list[CategoryRecord]) -> list[CategoryDeduplicationResult]:
        items = [self.normalize(i, record) for i, record in enumerate(categories)]
        if not items:
            return []

        groups: dict[str, list[_Normalized]] = {}
        for item in items:
            groups.setdefault(item.slug, []).append(item)

        sampled = sorted((item for item in items if item.sample), key=lambda item: item.rank_key)
        aliases = self._find_aliases(sampled)

        results: dict[int, CategoryDeduplicationResult] = {}
        for item in sampled:
            if item.index in aliases:
                root, overlap = aliases[item.index]
                results[item.index] = self._result(
                    item,
                    CrawlMode.ALIAS,
                    "near_identical_products",
                    alias_of=root.record.name,
                    max_overlap=round(overlap, 4),
                )
                continue
            results[item.index] = self._classify_sampled(item, sampled, aliases, groups)

        for item in items:
            if not item.sample:
                results[item.index] = self._classify_by_name(item, groups[item.slug])

        ordered = [results[item.index] for item in items]
        stats = deduplication_stats(ordered)
        logger.info(
            f"[CategoryDedup] 共 {stats['total']} 个分类: products {stats['products']}, "
            f"structural-only {stats['structural_only']}, alias {stats['alias']}"
        )
        return ordered

    def _find_aliases(self, sampled: list[_Normalized]) -> dict[int, tuple[_Normalized, float]]:
        """按排名顺序寻找别名；别名最终指向链条的根分类"""
        aliases: dict[int, tuple[_Normalized, float]] = {}
        for pos, item in enumerate(sampled):
            best: _Normalized | None = None
            best_overlap = 0.0
            for other in sampled[:pos]:
                overlap = jaccard(*item.compare(other))
                if overlap >= self.config.alias_threshold and overlap > best_overlap:
                    best, best_overlap = other, overlap
            if best is None:
                continue
            root = aliases[best.index][0] if best.index in aliases else best
            aliases[item.index] = (root, best_overlap)
            logger.debug(
                f"[CategoryDedup] '{item.record.name}' 是 '{root.record.name}' 的别名 "
                f"(overlap={best_overlap:.2f})"
            )
        return aliases

    def _classify_sampled(
        self,
        item: _Normalized,
        sampled: list[_Normalized],
        aliases: dict[int, Any],
        groups: dict[str, list[_Normalized]],
    ) -> CategoryDeduplicationResult:
        children = [
            other
            for other in sampled
            if other.index != item.index
            and other.index not in aliases
            and self._is_smaller(other, item)
            and coverage(*item.compare(other)) >= self.config.superset_threshold
        ]
        if len(children) >= self.config.min_superset_children:
            cutoff = common_cutoff(item.cutoff, *(child.cutoff for child in children))
            parent = restrict_sample(item.sample_set, cutoff)
            union = set().union(*(restrict_sample(child.sample_set, cutoff) for child in children))
            return self._result(
                item,
                CrawlMode.STRUCTURAL_ONLY,
                "superset_of_children",
                combined_overlap=round(len(parent & union) / len(parent), 4) if parent else 0.0,
                children=[child.record.name for child in children],
            )

        if len(groups[item.slug]) == 1:
            reason = "single_category"
        elif item.specificity > 0 and not item.generic:
            reason = "specific_taxonomy_preserved"
        else:
            reason = "significant_unique_products"
        return self._result(item, CrawlMode.PRODUCTS, reason)

    @staticmethod
    def _is_smaller(child: _Normalized, parent: _Normalized) -> bool:
        if len(child.sample_set) != len(parent.sample_set):
            return len(child.sample_set) < len(parent.sample_set)
        return child.rank_key < parent.rank_key

    def _classify_by_name(
        self,
        item: _Normalized,
        group: list[_Normalized],
    ) -> CategoryDeduplicationResult:
        """没有商品样本时按名称规则分类"""
        if len(group) == 1:
            return self._result(item, CrawlMode.PRODUCTS, "single_category")
        if not item.generic:
            return self._result(item, CrawlMode.PRODUCTS, "specific_category")

        specific = [other for other in group if other.index != item.index and not other.generic]
        if specific:
            return self._result(
                item,
                CrawlMode.STRUCTURAL_ONLY,
                "generic_with_specific_variants",
                children=[other.record.name for other in specific],
            )
        return self._result(item, CrawlMode.PRODUCTS, "only_generic_available")

    @staticmethod
    def _result(item: _Normalized, crawl_mode: CrawlMode, reason: str, **extra: Any) -> CategoryDeduplicationResult:
        return CategoryDeduplicationResult(
            name=item.record.name,
            url=item.record.url,
            slug=item.slug,
            qualifiers=item.qualifiers,
            crawl_mode=crawl_mode,
            reason=reason,
            sample_size=len(item.sample),
            **extra,
        )


def deduplication_stats(results: list[CategoryDeduplicationResult]) -> dict[str, Any]:
    """汇总去重结果"""
    modes = Counter(r.crawl_mode for r in results)
    return {
        "total": len(results),
        "products": modes[CrawlMode.PRODUCTS],
        "structural_only": modes[CrawlMode.STRUCTURAL_ONLY],
        "alias": modes[CrawlMode.ALIAS],
        "reasons": dict(Counter(r.reason for r in results)),
        "crawl_targets": [r.name for r in results if r.crawl_mode == CrawlMode.PRODUCTS],
        "reduction_rate": round(1 - modes[CrawlMode.PRODUCTS] / len(results), 4) if results else 0.0,
    }
