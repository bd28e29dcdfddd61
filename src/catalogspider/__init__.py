"""CatalogSpider - 电商站点导航、分类与商品发现引擎"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

__version__ = "0.1.0"

if TYPE_CHECKING:
    from .dedup import CategoryDeduplicator as CategoryDeduplicator
    from .exploration import FilterDiscoveryEngine as FilterDiscoveryEngine
    from .exploration import FilterExplorationEngine as FilterExplorationEngine
    from .exploration import SubCategoryExplorer as SubCategoryExplorer
    from .navigation import NavigationExtractor as NavigationExtractor
    from .navigation import PatternCatalog as PatternCatalog
    from .navigation import RedundantExtractionDriver as RedundantExtractionDriver
    from .pipeline.runner import run_pipeline as run_pipeline

__all__ = [
    "__version__",
    "PatternCatalog",
    "NavigationExtractor",
    "RedundantExtractionDriver",
    "FilterDiscoveryEngine",
    "FilterExplorationEngine",
    "SubCategoryExplorer",
    "CategoryDeduplicator",
    "run_pipeline",
]

_LAZY_EXPORTS = {
    "PatternCatalog": ".navigation",
    "NavigationExtractor": ".navigation",
    "RedundantExtractionDriver": ".navigation",
    "FilterDiscoveryEngine": ".exploration",
    "FilterExplorationEngine": ".exploration",
    "SubCategoryExplorer": ".exploration",
    "CategoryDeduplicator": ".dedup",
    "run_pipeline": ".pipeline.runner",
}


def __getattr__(name: str) -> Any:
    """Lazy exports to avoid importing heavy runtime dependencies at package import time."""
    if name in _LAZY_EXPORTS:
        from importlib import import_module

        return getattr(import_module(_LAZY_EXPORTS[name], __name__), name)
    raise AttributeError(f"module 'catalogspider' has no attribute '{name}'")
