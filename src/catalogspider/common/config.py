"""配置管理"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .constants import (
    DEFAULT_ALIAS_THRESHOLD,
    DEFAULT_MAX_CATEGORIES_PER_LEVEL,
    DEFAULT_MAX_DEPTH,
    DEFAULT_MAX_FILTERS,
    DEFAULT_MAX_PATTERNS,
    DEFAULT_MIN_NAV_ITEMS,
    DEFAULT_MIN_SUCCESS_RATE,
    DEFAULT_MIN_SUPERSET_CHILDREN,
    DEFAULT_SAMPLE_SIZE,
    DEFAULT_SCORE_THRESHOLD,
    DEFAULT_SUPERSET_THRESHOLD,
    DEFAULT_USER_AGENT,
)

# 加载 .env 文件
load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class BrowserConfig(BaseModel):
    """浏览器配置"""

    headless: bool = Field(default_factory=lambda: _env_bool("HEADLESS", "true"))
    viewport_width: int = Field(default_factory=lambda: int(os.getenv("VIEWPORT_WIDTH", "1920")))
    viewport_height: int = Field(default_factory=lambda: int(os.getenv("VIEWPORT_HEIGHT", "1080")))
    slow_mo: int = Field(default_factory=lambda: int(os.getenv("SLOW_MO", "0")))
    timeout_ms: int = Field(default_factory=lambda: int(os.getenv("STEP_TIMEOUT_MS", "30000")))
    browser_type: str = Field(default_factory=lambda: os.getenv("BROWSER_TYPE", "chromium"))
    user_agent: str = Field(default_factory=lambda: os.getenv("BROWSER_USER_AGENT", DEFAULT_USER_AGENT))
    block_resources: bool = Field(
        default_factory=lambda: _env_bool("BROWSER_BLOCK_RESOURCES", "false")
    )
    launch_retries: int = Field(default_factory=lambda: int(os.getenv("BROWSER_LAUNCH_RETRIES", "2")))


class NavigationConfig(BaseModel):
    """导航提取配置

    延迟均以秒为单位，超时以毫秒为单位。
    """

    container_timeout_ms: int = Field(
        default_factory=lambda: int(os.getenv("NAV_CONTAINER_TIMEOUT_MS", "10000"))
    )
    # 单个导航项（重置 + 悬停 + 强制显示）的整体超时
    item_timeout_ms: int = Field(
        default_factory=lambda: int(os.getenv("NAV_ITEM_TIMEOUT_MS", "10000"))
    )
    hover_timeout_ms: int = Field(
        default_factory=lambda: int(os.getenv("NAV_HOVER_TIMEOUT_MS", "3000"))
    )
    hover_settle_delay: float = Field(
        default_factory=lambda: float(os.getenv("NAV_HOVER_SETTLE_DELAY", "3.0"))
    )
    # 动态 flyout 额外等待
    flyout_settle_delay: float = Field(
        default_factory=lambda: float(os.getenv("NAV_FLYOUT_SETTLE_DELAY", "1.0"))
    )
    force_visibility_delay: float = Field(
        default_factory=lambda: float(os.getenv("NAV_FORCE_VISIBILITY_DELAY", "0.3"))
    )
    reset_pointer_delay: float = Field(
        default_factory=lambda: float(os.getenv("NAV_RESET_POINTER_DELAY", "0.3"))
    )
    reset_scroll_delay: float = Field(
        default_factory=lambda: float(os.getenv("NAV_RESET_SCROLL_DELAY", "0.15"))
    )
    max_patterns: int = Field(
        default_factory=lambda: int(os.getenv("NAV_MAX_PATTERNS", str(DEFAULT_MAX_PATTERNS)))
    )
    min_success_rate: float = Field(
        default_factory=lambda: float(
            os.getenv("NAV_MIN_SUCCESS_RATE", str(DEFAULT_MIN_SUCCESS_RATE))
        )
    )
    min_items: int = Field(
        default_factory=lambda: int(os.getenv("NAV_MIN_ITEMS", str(DEFAULT_MIN_NAV_ITEMS)))
    )
    pattern_delay: float = Field(
        default_factory=lambda: float(os.getenv("NAV_PATTERN_DELAY", "0.5"))
    )
    # 可选的 YAML 模式目录文件
    pattern_file: str = Field(default_factory=lambda: os.getenv("NAV_PATTERN_FILE", ""))


class FilterDiscoveryConfig(BaseModel):
    """筛选器发现配置"""

    max_filters: int = Field(
        default_factory=lambda: int(os.getenv("MAX_FILTERS_PER_GROUP", str(DEFAULT_MAX_FILTERS)))
    )
    score_threshold: int = Field(
        default_factory=lambda: int(
            os.getenv("FILTER_SCORE_THRESHOLD", str(DEFAULT_SCORE_THRESHOLD))
        )
    )
    include_hidden: bool = Field(
        default_factory=lambda: _env_bool("FILTER_INCLUDE_HIDDEN", "false")
    )
    activation_click_delay: float = Field(
        default_factory=lambda: float(os.getenv("FILTER_ACTIVATION_DELAY", "1.0"))
    )
    activation_settle_delay: float = Field(
        default_factory=lambda: float(os.getenv("FILTER_ACTIVATION_SETTLE_DELAY", "1.5"))
    )
    timeout_ms: int = Field(
        default_factory=lambda: int(os.getenv("FILTER_DISCOVERY_TIMEOUT", "30000"))
    )
    # 可选的 YAML 排除词表文件
    exclusion_file: str = Field(default_factory=lambda: os.getenv("FILTER_EXCLUSION_FILE", ""))


class FilterExplorationConfig(BaseModel):
    """筛选器探索配置"""

    max_filters: int = Field(
        default_factory=lambda: int(os.getenv("EXPLORE_MAX_FILTERS", str(DEFAULT_MAX_FILTERS)))
    )
    navigation_timeout_ms: int = Field(
        default_factory=lambda: int(os.getenv("EXPLORE_NAVIGATION_TIMEOUT_MS", "30000"))
    )
    page_load_delay: float = Field(
        default_factory=lambda: float(os.getenv("EXPLORE_PAGE_LOAD_DELAY", "2.0"))
    )
    filter_click_delay: float = Field(
        default_factory=lambda: float(os.getenv("EXPLORE_FILTER_CLICK_DELAY", "2.0"))
    )
    filter_removal_delay: float = Field(
        default_factory=lambda: float(os.getenv("EXPLORE_FILTER_REMOVAL_DELAY", "1.0"))
    )
    click_timeout_ms: int = Field(
        default_factory=lambda: int(os.getenv("EXPLORE_CLICK_TIMEOUT_MS", "5000"))
    )
    max_products_per_filter: int = Field(
        default_factory=lambda: int(os.getenv("EXPLORE_MAX_PRODUCTS_PER_FILTER", "200"))
    )
    capture_filter_combinations: bool = Field(
        default_factory=lambda: _env_bool("EXPLORE_FILTER_COMBINATIONS", "false")
    )
    max_combinations: int = Field(
        default_factory=lambda: int(os.getenv("EXPLORE_MAX_COMBINATIONS", "5"))
    )


class SubCategoryConfig(BaseModel):
    """子分类探索配置"""

    max_depth: int = Field(
        default_factory=lambda: int(os.getenv("SUBCATEGORY_MAX_DEPTH", str(DEFAULT_MAX_DEPTH)))
    )
    max_categories_per_level: int = Field(
        default_factory=lambda: int(
            os.getenv("SUBCATEGORY_MAX_PER_LEVEL", str(DEFAULT_MAX_CATEGORIES_PER_LEVEL))
        )
    )
    navigation_timeout_ms: int = Field(
        default_factory=lambda: int(os.getenv("SUBCATEGORY_TIMEOUT_MS", "30000"))
    )
    settle_delay: float = Field(
        default_factory=lambda: float(os.getenv("SUBCATEGORY_SETTLE_DELAY", "2.0"))
    )


class DeduplicationConfig(BaseModel):
    """分类去重配置"""

    sample_size: int = Field(
        default_factory=lambda: int(os.getenv("DEDUP_SAMPLE_SIZE", str(DEFAULT_SAMPLE_SIZE)))
    )
    alias_threshold: float = Field(
        default_factory=lambda: float(
            os.getenv("DEDUP_ALIAS_THRESHOLD", str(DEFAULT_ALIAS_THRESHOLD))
        )
    )
    superset_threshold: float = Field(
        default_factory=lambda: float(
            os.getenv("DEDUP_SUPERSET_THRESHOLD", str(DEFAULT_SUPERSET_THRESHOLD))
        )
    )
    min_superset_children: int = Field(
        default_factory=lambda: int(
            os.getenv("DEDUP_MIN_SUPERSET_CHILDREN", str(DEFAULT_MIN_SUPERSET_CHILDREN))
        )
    )


class Config(BaseModel):
    """全局配置"""

    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    navigation: NavigationConfig = Field(default_factory=NavigationConfig)
    filter_discovery: FilterDiscoveryConfig = Field(default_factory=FilterDiscoveryConfig)
    filter_exploration: FilterExplorationConfig = Field(default_factory=FilterExplorationConfig)
    subcategory: SubCategoryConfig = Field(default_factory=SubCategoryConfig)
    dedup: DeduplicationConfig = Field(default_factory=DeduplicationConfig)
    output_dir: str = Field(default_factory=lambda: os.getenv("OUTPUT_DIR", "output"))

    @classmethod
    def load(cls) -> "Config":
        """加载配置"""
        return cls()

    def ensure_dirs(self) -> None:
        """确保输出目录存在"""
        Path(self.output_dir).mkdir(parents=True, exist_ok=True)


# 全局配置实例
config = Config.load()
