"""分类页探索：筛选器发现、筛选器探索、子分类探索"""

from .filter_discovery import (
    FilterDiscoveryEngine,
    apply_exclusions,
    rank_candidates,
    score_candidate,
    validate_candidates,
)
from .filter_exploration import FilterExplorationEngine, ProductAccumulator, pick_best_title
from .filter_patterns import DEFAULT_EXCLUDE_PATTERNS, FilterPatterns, load_filter_patterns
from .subcategory import SubCategoryExplorer, build_hierarchy, is_category_url, seeds_from_navigation

__all__ = [
    "FilterDiscoveryEngine",
    "score_candidate",
    "rank_candidates",
    "apply_exclusions",
    "validate_candidates",
    "FilterExplorationEngine",
    "ProductAccumulator",
    "pick_best_title",
    "FilterPatterns",
    "DEFAULT_EXCLUDE_PATTERNS",
    "load_filter_patterns",
    "SubCategoryExplorer",
    "build_hierarchy",
    "is_category_url",
    "seeds_from_navigation",
]
