"""核心数据类型定义"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from .constants import DYNAMIC_FLYOUT


def _now() -> datetime:
    return datetime.now()


# ============================================================================
# 通用
# ============================================================================


class BoundingBox(BaseModel):
    """元素边界框（视口坐标）"""

    x: float
    y: float
    width: float
    height: float

    @property
    def center(self) -> tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)


# ============================================================================
# 导航模式
# ============================================================================


class InteractionType(str, Enum):
    """下拉菜单的展开方式"""

    HOVER = "hover"
    CLICK = "click"


class NavigationSelectors(BaseModel):
    """导航选择器三元组"""

    model_config = ConfigDict(frozen=True)

    container: str = Field(..., description="导航项容器选择器")
    trigger: str = Field(..., description="容器内触发元素选择器")
    dropdown: str = Field(..., description="下拉面板选择器，或动态 flyout 哨兵值")

    @property
    def is_dynamic_flyout(self) -> bool:
        return self.dropdown == DYNAMIC_FLYOUT


class NavigationPattern(BaseModel):
    """具名导航模式（不可变）"""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="模式名称（唯一）")
    description: str = Field(default="", description="模式说明")
    selectors: NavigationSelectors
    interaction_type: InteractionType = Field(default=InteractionType.HOVER)
    applicable_sites: tuple[str, ...] = Field(default=(), description="已知适用站点")


class NavigationItem(BaseModel):
    """主导航中的一项"""

    text: str = Field(..., description="导航文本")
    href: str | None = Field(default=None, description="链接地址")
    index: int = Field(..., description="在容器列表中的序号")
    selectors: NavigationSelectors = Field(..., description="派生出的单项选择器")
    bbox: BoundingBox | None = None
    is_visible: bool = True


class DropdownLink(BaseModel):
    """下拉面板中的链接"""

    text: str
    href: str
    visible: bool = True


# ============================================================================
# 导航提取结果
# ============================================================================


class ExtractionMethod(str, Enum):
    """下拉提取的结果类型

    调用方按 method 分支处理，不依赖子类。
    """

    HOVER = "hover"
    FORCE_VISIBILITY = "force-visibility"
    TIMEOUT = "timeout"
    ERROR = "error"


class DropdownResult(BaseModel):
    """单个导航项的下拉提取结果"""

    method: ExtractionMethod
    strategy: str | None = Field(default=None, description="强制显示时使用的策略")
    success: bool = False
    items: list[DropdownLink] = Field(default_factory=list)
    count: int = 0
    error: str | None = None
    nav_text: str = ""

    @classmethod
    def found(
        cls,
        method: ExtractionMethod,
        items: list[DropdownLink],
        nav_text: str = "",
        strategy: str | None = None,
    ) -> "DropdownResult":
        return cls(
            method=method,
            strategy=strategy,
            success=bool(items),
            items=items,
            count=len(items),
            nav_text=nav_text,
        )

    @classmethod
    def failed(cls, method: ExtractionMethod, error: str, nav_text: str = "") -> "DropdownResult":
        return cls(method=method, success=False, error=error, nav_text=nav_text)


class MainNavigation(BaseModel):
    items: list[NavigationItem] = Field(default_factory=list)
    count: int = 0


class DropdownExtraction(BaseModel):
    results: list[DropdownResult] = Field(default_factory=list)
    total_items: int = 0
    successful: int = 0
    failed: int = 0
    success_rate: float = 0.0


class MethodTally(BaseModel):
    hover: int = 0
    force_visibility: int = 0
    failed: int = 0
    timeout: int = 0


class ExtractionSummary(BaseModel):
    total_navigation_items: int = 0
    main_nav_items: int = 0
    dropdown_items: int = 0
    methods: MethodTally = Field(default_factory=MethodTally)


class ExtractionResult(BaseModel):
    """单个模式的提取结果"""

    success: bool
    pattern: str
    error: str | None = None
    main_navigation: MainNavigation = Field(default_factory=MainNavigation)
    dropdown_extraction: DropdownExtraction = Field(default_factory=DropdownExtraction)
    summary: ExtractionSummary = Field(default_factory=ExtractionSummary)
    elapsed_s: float = 0.0
    cancelled: bool = False


class PatternAttempt(BaseModel):
    """冗余驱动中的一次模式尝试"""

    pattern: str
    success: bool
    main_items: int = 0
    success_rate: float = 0.0
    total_items: int = 0
    error: str | None = None


class FallbackExtractionResult(BaseModel):
    """冗余驱动的最终结果"""

    success: bool
    pattern_used: str | None = None
    attempts: list[PatternAttempt] = Field(default_factory=list)
    attempt_count: int = 0
    fallbacks_used: int = 0
    result: ExtractionResult | None = None
    error: str | None = None
    warning: str | None = None
    elapsed_s: float = 0.0
    cancelled: bool = False


# ============================================================================
# 筛选器
# ============================================================================


class FilterElementType(str, Enum):
    CHECKBOX = "checkbox"
    RADIO = "radio"
    BUTTON = "button"
    LINK = "link"


class FilterCandidate(BaseModel):
    """页面上可能的筛选控件"""

    element_type: FilterElementType
    selector: str = Field(..., description="结构化派生的 CSS 选择器")
    label: str = ""
    value: str | None = None
    name: str | None = None
    href: str | None = None
    checked: bool = False
    active: bool = False
    container_hint: str | None = Field(default=None, description="所在筛选容器的选择器")
    has_facet_params: bool = False
    visible: bool = True
    score: int = Field(default=0, ge=0)


class FilterDiscoveryStats(BaseModel):
    raw_count: int = 0
    scored_count: int = 0
    final_count: int = 0
    containers_found: int = 0
    activation_clicked: bool = False
    by_type: dict[str, int] = Field(default_factory=dict)
    by_container: dict[str, int] = Field(default_factory=dict)
    score_distribution: dict[int, int] = Field(default_factory=dict)
    excluded_count: int = 0
    excluded_labels: list[str] = Field(default_factory=list)
    # 排除会清空候选时保留排除前的集合
    exclusion_fallback: bool = False


class FilterDiscoveryResult(BaseModel):
    url: str
    discovered_at: datetime = Field(default_factory=_now)
    page_title: str | None = None
    candidates: list[FilterCandidate] = Field(default_factory=list)
    stats: FilterDiscoveryStats = Field(default_factory=FilterDiscoveryStats)
    error: str | None = None


class FilterState(str, Enum):
    """单个筛选候选的探索状态"""

    IDLE = "idle"
    APPLYING = "applying"
    ACTIVE = "active"
    INACTIVE = "inactive"
    CAPTURING = "capturing"
    REMOVING = "removing"


# ============================================================================
# 商品
# ============================================================================


class ProductCard(BaseModel):
    """页面上抓取到的原始商品卡片"""

    url: str
    title_candidates: list[str] = Field(default_factory=list)
    price: str | None = None
    image: str | None = None


class DiscoveredProduct(BaseModel):
    url: str
    canonical_url: str
    title: str = ""
    price: str | None = None
    image: str | None = None
    category_name: str | None = None
    filters_applied_when_seen: list[str] = Field(default_factory=list)
    first_seen_at: datetime = Field(default_factory=_now)


class FilterPath(BaseModel):
    category: str
    filter: str
    selector: str
    products_found: int = 0
    activation: str = Field(default="", description="url-change / dom-state / combination")


class FilterExplorationStats(BaseModel):
    baseline_products: int = 0
    total_products: int = 0
    filters_discovered: int = 0
    filters_attempted: int = 0
    filters_applied: int = 0
    filters_skipped: int = 0
    removal_failures: int = 0
    unique_filters: int = 0
    filter_combinations: int = 0
    avg_products_per_filter: float = 0.0
    canonical_changed_count: int = 0
    canonical_collisions_count: int = 0
    canonical_failures_count: int = 0
    filters_excluded_count: int = 0
    excluded_filter_labels: list[str] = Field(default_factory=list)
    elapsed_s: float = 0.0


class FilterExplorationResult(BaseModel):
    category: str
    category_url: str
    products: list[DiscoveredProduct] = Field(default_factory=list)
    filter_paths: list[FilterPath] = Field(default_factory=list)
    stats: FilterExplorationStats = Field(default_factory=FilterExplorationStats)
    error: str | None = None
    cancelled: bool = False


# ============================================================================
# 分类层级
# ============================================================================


class SeedEntry(BaseModel):
    """子分类探索的种子（通常来自导航提取）"""

    name: str
    url: str | None = None
    children: list["SeedEntry"] = Field(default_factory=list)


class SubcategoryLink(BaseModel):
    url: str
    name: str
    context: str = Field(default="generic", description="sidebar / grid / breadcrumb / generic")


class CategoryEntry(BaseModel):
    url: str
    name: str
    navigation_path: list[str] = Field(default_factory=list)
    depth: int = 0
    parent_url: str | None = None
    is_leaf: bool = False
    has_products: bool = False
    subcategory_count: int = 0
    discovered_at: datetime = Field(default_factory=_now)


class CategoryHierarchy(BaseModel):
    total_categories: int = 0
    max_depth: int = 0
    leaf_categories: int = 0
    categories_with_products: int = 0
    categories: list[CategoryEntry] = Field(default_factory=list)
    visited_count: int = 0
    failed_urls: list[str] = Field(default_factory=list)
    cancelled: bool = False


# ============================================================================
# 分类去重
# ============================================================================


class CategoryRecord(BaseModel):
    """去重输入：分类名称、地址以及商品 URL 样本"""

    name: str
    url: str | None = None
    products: list[str] = Field(default_factory=list)
    source: str | None = None


class CrawlMode(str, Enum):
    PRODUCTS = "products"
    STRUCTURAL_ONLY = "structural-only"
    ALIAS = "alias"


class CategoryQualifiers(BaseModel):
    gender: str | None = None
    age_group: str | None = None
    product_type: str | None = None

    @property
    def count(self) -> int:
        return sum(1 for value in (self.gender, self.age_group, self.product_type) if value)


class CategoryDeduplicationResult(BaseModel):
    name: str
    url: str | None = None
    slug: str
    qualifiers: CategoryQualifiers = Field(default_factory=CategoryQualifiers)
    crawl_mode: CrawlMode
    reason: str
    alias_of: str | None = None
    max_overlap: float | None = None
    combined_overlap: float | None = None
    children: list[str] = Field(default_factory=list)
    sample_size: int = 0


class CategoryLinkGroup(BaseModel):
    """按 URL 合并后的分类链接"""

    name: str
    url: str
    canonical_url: str
    sources: list[str] = Field(default_factory=list)
    duplicate_names: list[str] = Field(default_factory=list)
