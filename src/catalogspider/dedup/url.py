"""URL 级分类合并

同一个分类页常被多个入口（主导航、下拉菜单、侧边栏）以不同名称链接。
按规范化地址（协议 + 域名 + 小写路径，不含查询参数与末尾斜杠）合并，
挑一个最干净的名称作为代表，并记录来源与其他名称。
"""

from __future__ import annotations

import re
from typing import Any
from urllib.parse import urlsplit

from ..common.constants import WEAK_NAME_TOKENS
from ..common.logger import get_logger
from ..common.types import CategoryLinkGroup, CategoryRecord

logger = get_logger(__name__)

_WEAK_NAME_RE = re.compile(r"\b(" + "|".join(WEAK_NAME_TOKENS) + r")\b", re.IGNORECASE)


def category_url_key(url: str) -> str:
    """合并用的键；无法解析时退回去掉末尾斜杠的小写原始地址"""
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return url.strip().rstrip("/").lower()
    if not parts.netloc:
        return url.strip().rstrip("/").lower()
    path = parts.path.lower().rstrip("/")
    return f"{parts.scheme.lower()}://{parts.netloc.lower()}{path}"


def _name_rank(name: str) -> tuple[bool, int]:
    # 不含 all/new/shop/browse 的名称优先，其次取更短的名称
    return (bool(_WEAK_NAME_RE.search(name)), len(name))


class UrlCategoryDeduplicator:
    """按 URL 合并重复的分类链接

    Example:
        >>> groups = UrlCategoryDeduplicator().deduplicate([
        ...     CategoryRecord(name="Shop Dresses", url="https://shop.example.com/dresses/", source="nav"),
        ...     CategoryRecord(name="Dresses", url="https://shop.example.com/dresses", source="sidebar"),
        ... ])
        >>> groups[0].name, groups[0].sources
        ('Dresses', ['nav', 'sidebar'])
    """

    def deduplicate(self, categories: list[CategoryRecord]) -> list[CategoryLinkGroup]:
        grouped: dict[str, list[CategoryRecord]] = {}
        skipped = 0
        for record in categories:
            if not record.url:
                skipped += 1
                continue
            grouped.setdefault(category_url_key(record.url), []).append(record)

        groups = [self._merge(key, records) for key, records in grouped.items()]
        logger.info(
            f"[UrlDedup] {len(categories)} 个分类链接合并为 {len(groups)} 个"
            + (f"，跳过无地址 {skipped} 个" if skipped else "")
        )
        return groups

    def merge_records(self, categories: list[CategoryRecord]) -> list[CategoryRecord]:
        """合并后转换回 CategoryRecord，商品样本取各来源的并集"""
        products: dict[str, list[str]] = {}
        for record in categories:
            if record.url:
                bucket = products.setdefault(category_url_key(record.url), [])
                bucket.extend(p for p in record.products if p not in bucket)

        merged: list[CategoryRecord] = []
        for group in self.deduplicate(categories):
            merged.append(
                CategoryRecord(
                    name=group.name,
                    url=group.url,
                    products=products.get(group.canonical_url, []),
                    source=",".join(group.sources),
                )
            )
        return merged

    @staticmethod
    def _merge(key: str, records: list[CategoryRecord]) -> CategoryLinkGroup:
        representative = min(records, key=lambda r: _name_rank(r.name))

        sources: list[str] = []
        for record in records:
            source = record.source or "unknown"
            if source not in sources:
                sources.append(source)

        duplicate_names: list[str] = []
        for record in records:
            if record.name != representative.name and record.name not in duplicate_names:
                duplicate_names.append(record.name)

        return CategoryLinkGroup(
            name=representative.name,
            url=representative.url or key,
            canonical_url=key,
            sources=sources,
            duplicate_names=duplicate_names,
        )


def url_dedup_stats(categories: list[CategoryRecord], groups: list[CategoryLinkGroup]) -> dict[str, Any]:
    merged = sum(len(g.duplicate_names) for g in groups)
    return {
        "input": len(categories),
        "unique": len(groups),
        "merged_names": merged,
        "multi_source": sum(1 for g in groups if len(g.sources) > 1),
    }
