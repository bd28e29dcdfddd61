"""分类去重：URL 级合并与基于商品重叠的别名 / 结构分类"""

from .category import (
    CategoryDeduplicator,
    deduplication_stats,
    extract_qualifiers,
    is_generic_category,
    make_slug,
    product_hash,
    sample_products,
)
from .url import UrlCategoryDeduplicator, category_url_key, url_dedup_stats

__all__ = [
    "CategoryDeduplicator",
    "deduplication_stats",
    "extract_qualifiers",
    "is_generic_category",
    "make_slug",
    "product_hash",
    "sample_products",
    "UrlCategoryDeduplicator",
    "category_url_key",
    "url_dedup_stats",
]
