"""导航发现：模式目录、单模式提取与冗余驱动"""

from .extractor import NavigationExtractor, compile_extraction, reset_navigation_state
from .patterns import (
    DEFAULT_PATTERNS,
    DEFAULT_SITE_MAP,
    PatternCatalog,
    default_catalog,
    load_catalog,
    normalize_site,
)
from .redundant import RedundantExtractionDriver, extraction_stats

__all__ = [
    "NavigationExtractor",
    "compile_extraction",
    "reset_navigation_state",
    "PatternCatalog",
    "DEFAULT_PATTERNS",
    "DEFAULT_SITE_MAP",
    "default_catalog",
    "load_catalog",
    "normalize_site",
    "RedundantExtractionDriver",
    "extraction_stats",
]
