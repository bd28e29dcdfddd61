"""常量定义

集中管理发现与探索流程中的默认值与选择器词表。
"""

from __future__ import annotations

# ============================================================================
# 浏览器 / 超时
# ============================================================================

DEFAULT_PAGE_TIMEOUT_MS = 30000
DEFAULT_ELEMENT_TIMEOUT_MS = 10000
# 主导航容器等待时间
NAV_CONTAINER_WAIT_MS = 10000
# 单个下拉菜单提取的整体竞速超时
DROPDOWN_RACE_TIMEOUT_MS = 10000
HOVER_TIMEOUT_MS = 3000

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/128.0.0.0 Safari/537.36"
)
BROWSER_LAUNCH_ARGS = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-blink-features=AutomationControlled",
    "--disable-infobars",
    "--no-first-run",
)
# 开启资源拦截时丢弃的请求类型（结构发现不需要图片与字体）
BLOCKED_RESOURCE_TYPES = ("image", "media", "font")

# ============================================================================
# 导航提取
# ============================================================================

# 动态 flyout 哨兵值：下拉容器需要按导航文本在运行时解析
DYNAMIC_FLYOUT = "dynamic-flyout"

# 跳过汉堡菜单 / 移动端切换按钮
SKIPPED_CONTAINER_CLASSES = (
    "hamburger-menu",
    "mobile-menu-toggle",
    "menu-toggle",
    "navbar-toggler",
)

# 状态重置时鼠标移动的中性区域
RESET_POINTER_X_RANGE = (50, 350)
RESET_POINTER_Y_RANGE = (400, 600)
RESET_SCROLL_PIXELS = 10

# 强制显示策略（按顺序尝试）
FORCE_VISIBILITY_STRATEGIES: tuple[tuple[str, dict[str, str]], ...] = (
    ("css-block", {"display": "block", "visibility": "visible", "opacity": "1"}),
    ("css-flex", {"display": "flex", "visibility": "visible", "opacity": "1"}),
)
RESET_STYLES = {"display": "", "visibility": "", "opacity": ""}

# ============================================================================
# 冗余提取驱动预设
# ============================================================================

DEFAULT_MAX_PATTERNS = 5
DEFAULT_MIN_SUCCESS_RATE = 0.7
DEFAULT_MIN_NAV_ITEMS = 3

QUICK_PRESET = {"max_patterns": 2, "min_success_rate": 0.5, "min_items": 1}
COMPREHENSIVE_PRESET = {"max_patterns": 8, "min_success_rate": 0.8, "min_items": 5}

# ============================================================================
# 筛选器发现
# ============================================================================

FILTER_ACTIVATION_SELECTORS = (
    'button:has-text("Filter")',
    'button:has-text("Filters")',
    'a:has-text("Filter")',
    ".filter-toggle",
    ".filters-toggle",
    ".filter-button",
    ".filters-button",
    'button[class*="filter"]',
    'button[aria-label*="filter" i]',
    'button[aria-label*="refine" i]',
    ".mobile-filter-toggle",
    "[data-filter-toggle]",
    '[role="button"][aria-expanded="false"]',
)

FILTER_CONTAINER_SELECTORS = (
    '[role="region"][aria-label*="filter" i]',
    '[role="region"][aria-label*="refine" i]',
    '[role="complementary"]',
    ".filter",
    ".filters",
    ".facets",
    ".facet",
    ".sidebar",
    ".left-column",
    ".refinements",
    ".filter-group-display",
    ".collection-filters",
    "aside",
    ".aside",
    "[data-filter]",
    "[data-facet]",
)

# 明显不是筛选项的控件文本
FILTER_SKIP_TEXTS = (
    "apply",
    "reset",
    "clear",
    "remove",
    "sort",
    "done",
    "cancel",
    "submit",
    "view",
    "next",
    "prev",
    "previous",
    "add to cart",
    "buy now",
    "checkout",
)

FACET_PARAM_PATTERN = r"[?&](filter|facet|brand|category|tag|type|sort)="
FILTER_NAME_PATTERN = r"filter|facet|tag|category|brand"
COUNT_SUFFIX_PATTERN = r"\(\d+\)"

DEFAULT_MAX_FILTERS = 20
DEFAULT_SCORE_THRESHOLD = 2

# ============================================================================
# 筛选器探索
# ============================================================================

PRODUCT_LINK_SELECTORS = (
    'a[href*="/products/"]',
    'a[href*="/product/"]',
    'a[href*="/item/"]',
    ".product-card a",
    ".product-item a",
    ".product-tile a",
    '[class*="product"] a[href]',
)

# URL 中出现这些参数 / 片段时认为筛选已生效
FILTER_URL_MARKER_PATTERN = r"([?&#](filter|facet|refine|brand|category|tag|type|color|size|f)[\w\.\[\]-]*=)|(/filter/)"

ACTIVE_STATE_CLASSES = ("active", "selected", "checked", "is-active", "is-selected")

MIN_TITLE_LENGTH = 3
MAX_TITLE_LENGTH = 200

# ============================================================================
# 子分类探索
# ============================================================================

SUBCATEGORY_LINK_PATTERNS: tuple[tuple[str, str], ...] = (
    ("sidebar", ".category-navigation a, .sidebar-nav a, .filter-nav a"),
    ("grid", ".subcategory-grid a, .category-tiles a, .shop-categories a"),
    ("breadcrumb", ".breadcrumb ~ ul a, .category-list a"),
    (
        "generic",
        '[class*="category"] a[href*="/category/"], [class*="category"] a[href*="/shop/"]',
    ),
)

CATEGORY_URL_INCLUDE_PATTERNS = (
    r"/category/",
    r"/categories/",
    r"/shop/",
    r"/collections?/",
    r"/departments?/",
    r"/browse/",
    r"/catalog/",
)

CATEGORY_URL_EXCLUDE_PATTERNS = (
    r"/products?/",
    r"/item/",
    r"/p/",
    r"\.(jpg|jpeg|png|gif|svg|webp|pdf|css|js)(\?|$)",
    r"#",
    r"^mailto:",
    r"^javascript:",
)

PRODUCT_GRID_SELECTORS = (
    ".product-grid",
    ".product-list",
    '[class*="product-item"]',
    '[class*="product-card"]',
    ".items-grid",
    ".search-results",
)

DEFAULT_MAX_DEPTH = 5
DEFAULT_MAX_CATEGORIES_PER_LEVEL = 20

# ============================================================================
# 分类去重
# ============================================================================

GENDER_TOKENS = ("men", "mens", "men's", "women", "womens", "women's", "boys", "girls", "kids", "unisex")
AGE_TOKENS = ("kids", "baby", "toddler", "youth", "junior", "adult")
GENERIC_NAME_TOKENS = ("all", "shop", "browse", "clothing")
GENERIC_PATH_TOKENS = ("/mens/", "/women/", "/womens/", "/kids/", "/boys/", "/girls/")
# URL 去重时代表名称应尽量避开的词
WEAK_NAME_TOKENS = ("all", "new", "shop", "browse")

TRACKING_PARAM_PREFIXES = ("utm_",)
TRACKING_PARAMS = ("ref", "_", "variant")

DEFAULT_SAMPLE_SIZE = 40
DEFAULT_ALIAS_THRESHOLD = 0.9
DEFAULT_SUPERSET_THRESHOLD = 0.8
DEFAULT_MIN_SUPERSET_CHILDREN = 2

# ============================================================================
# 输入验证
# ============================================================================

MAX_URL_LENGTH = 2048
VALID_URL_SCHEMES = ("http", "https")
