"""导航模式目录

不可变的具名导航模式注册表，以及站点到模式优先级的映射。
目录在运行时只读，可以在多个并发运行之间共享；新增模式通过 with_pattern
得到一个新目录，而不是修改原目录。
"""

from __future__ import annotations

from typing import Any, Iterable, Iterator, Mapping, Sequence
from urllib.parse import urlsplit

from pydantic import ValidationError as PydanticValidationError

from ..common.config import NavigationConfig
from ..common.constants import DYNAMIC_FLYOUT
from ..common.exceptions import PatternValidationError
from ..common.logger import get_logger
from ..common.types import InteractionType, NavigationPattern, NavigationSelectors
from ..common.utils.data_file import load_data_file

logger = get_logger(__name__)


def _pattern(
    name: str,
    description: str,
    container: str,
    trigger: str,
    dropdown: str,
    interaction: InteractionType = InteractionType.HOVER,
    sites: Sequence[str] = (),
) -> NavigationPattern:
    return NavigationPattern(
        name=name,
        description=description,
        selectors=NavigationSelectors(container=container, trigger=trigger, dropdown=dropdown),
        interaction_type=interaction,
        applicable_sites=tuple(sites),
    )


DEFAULT_PATTERNS: tuple[NavigationPattern, ...] = (
    _pattern(
        "shopify-dropdown",
        "Shopify 主题常见的下拉导航",
        "li.dropdown-toggle",
        "p.dropdown-title",
        ".dropdown-content",
        sites=("glasswingshop.com",),
    ),
    _pattern(
        "macys-megamenu",
        "动态渲染的大型 flyout 菜单，下拉面板按导航文本定位",
        "li.fob-item",
        "a.menu-link-heavy",
        DYNAMIC_FLYOUT,
        sites=("macys.com",),
    ),
    _pattern(
        "bootstrap-dropdown",
        "Bootstrap 风格下拉菜单",
        ".dropdown",
        ".dropdown-toggle",
        ".dropdown-menu",
        sites=("nordstrom.com", "target.com", "homedepot.com", "lowes.com"),
    ),
    _pattern(
        "simple-nav-ul",
        "nav 下的嵌套 ul 列表",
        "nav li",
        "a",
        "ul",
        sites=("walmart.com",),
    ),
    _pattern(
        "amazon-nav",
        "Amazon 风格导航面板",
        "#nav-main .nav-item",
        "a",
        ".nav-panel",
        sites=("amazon.com",),
    ),
    _pattern(
        "material-nav",
        "Material Design 点击展开菜单",
        ".mdc-menu-surface--anchor",
        "button",
        ".mdc-menu",
        interaction=InteractionType.CLICK,
    ),
    _pattern(
        "semantic-ui-dropdown",
        "Semantic UI 下拉菜单",
        ".ui.dropdown",
        ".text",
        ".menu",
    ),
    _pattern(
        "foundation-dropdown",
        "Foundation 点击展开下拉",
        ".dropdown-pane",
        '[data-toggle="dropdown"]',
        ".dropdown-content",
        interaction=InteractionType.CLICK,
    ),
)

# 站点 -> 按优先级排列的模式名
DEFAULT_SITE_MAP: dict[str, tuple[str, ...]] = {
    "glasswingshop.com": ("shopify-dropdown",),
    "macys.com": ("macys-megamenu", "bootstrap-dropdown"),
    "amazon.com": ("amazon-nav", "simple-nav-ul"),
    "nordstrom.com": ("bootstrap-dropdown", "simple-nav-ul"),
    "target.com": ("bootstrap-dropdown", "simple-nav-ul"),
    "homedepot.com": ("bootstrap-dropdown", "simple-nav-ul"),
    "lowes.com": ("bootstrap-dropdown", "simple-nav-ul"),
    "walmart.com": ("simple-nav-ul", "bootstrap-dropdown"),
}


def normalize_site(site: str | None) -> str | None:
    """把 URL 或域名规范成不带 www. 的小写主机名；无法解析时返回 None"""
    if not site or not isinstance(site, str):
        return None
    site = site.strip().lower()
    try:
        if "://" in site:
            host = urlsplit(site).hostname or ""
        else:
            host = urlsplit(f"//{site}").hostname or ""
    except ValueError:
        return None
    if host.startswith("www."):
        host = host[4:]
    return host or None


def validate_pattern(pattern: NavigationPattern) -> NavigationPattern:
    """检查模式名称与三个选择器都非空"""
    if not pattern.name or not pattern.name.strip():
        raise PatternValidationError(pattern.name or "<unnamed>", "名称不能为空")
    for field in ("container", "trigger", "dropdown"):
        value = getattr(pattern.selectors, field)
        if not value or not value.strip():
            raise PatternValidationError(pattern.name, f"selectors.{field} 不能为空")
    return pattern


class PatternCatalog:
    """导航模式目录"""

    def __init__(
        self,
        patterns: Iterable[NavigationPattern],
        site_map: Mapping[str, Sequence[str]] | None = None,
    ):
        ordered: list[NavigationPattern] = []
        by_name: dict[str, NavigationPattern] = {}
        for pattern in patterns:
            validate_pattern(pattern)
            if pattern.name in by_name:
                raise PatternValidationError(pattern.name, "名称重复")
            by_name[pattern.name] = pattern
            ordered.append(pattern)

        self._patterns: tuple[NavigationPattern, ...] = tuple(ordered)
        self._by_name = by_name

        merged: dict[str, tuple[str, ...]] = {}
        for pattern in self._patterns:
            for site in pattern.applicable_sites:
                key = normalize_site(site)
                if key and pattern.name not in merged.get(key, ()):
                    merged[key] = merged.get(key, ()) + (pattern.name,)
        for site, names in (site_map or {}).items():
            key = normalize_site(site)
            if key:
                # 显式映射的顺序优先
                merged[key] = tuple(dict.fromkeys(tuple(names) + merged.get(key, ())))
        self._site_map = merged

    def __len__(self) -> int:
        return len(self._patterns)

    def __iter__(self) -> Iterator[NavigationPattern]:
        return iter(self._patterns)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    @property
    def names(self) -> list[str]:
        return [p.name for p in self._patterns]

    @property
    def patterns(self) -> tuple[NavigationPattern, ...]:
        return self._patterns

    @property
    def site_map(self) -> dict[str, tuple[str, ...]]:
        return dict(self._site_map)

    def get(self, name: str) -> NavigationPattern | None:
        return self._by_name.get(name)

    def _site_pattern_names(self, host: str) -> tuple[str, ...]:
        if host in self._site_map:
            return self._site_map[host]
        # 子域名（m.macys.com）按主域匹配
        for site, names in self._site_map.items():
            if host.endswith(f".{site}"):
                return names
        return ()

    def patterns_for_site(self, site: str | None) -> list[NavigationPattern]:
        """站点专属模式在前，其余全部模式在后，按名称去重

        站点未知或无法解析时返回全部模式（目录顺序）。
        """
        host = normalize_site(site)
        if host is None:
            return list(self._patterns)

        ordered: list[NavigationPattern] = []
        seen: set[str] = set()
        for name in self._site_pattern_names(host):
            pattern = self._by_name.get(name)
            if pattern is None:
                logger.warning(f"[PatternCatalog] 站点 {host} 引用了未知模式: {name}")
                continue
            if name not in seen:
                ordered.append(pattern)
                seen.add(name)
        for pattern in self._patterns:
            if pattern.name not in seen:
                ordered.append(pattern)
                seen.add(pattern.name)
        return ordered

    def with_pattern(self, pattern: NavigationPattern, sites: Sequence[str] = ()) -> "PatternCatalog":
        """返回加入（或替换同名）模式后的新目录"""
        validate_pattern(pattern)
        patterns = [p for p in self._patterns if p.name != pattern.name] + [pattern]
        site_map = {site: list(names) for site, names in self._site_map.items()}
        for site in sites:
            key = normalize_site(site)
            if key:
                site_map[key] = [pattern.name] + [n for n in site_map.get(key, []) if n != pattern.name]
        logger.info(f"[PatternCatalog] 新增模式: {pattern.name}")
        return PatternCatalog(patterns, site_map)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], base: "PatternCatalog | None" = None) -> "PatternCatalog":
        """从映射（通常来自 YAML）构建目录

        格式::

            patterns:
              - name: my-nav
                selectors: {container: "...", trigger: "...", dropdown: "..."}
                interaction_type: hover
            sites:
              example.com: [my-nav, simple-nav-ul]

        给定 base 时，文件中的模式追加到 base 之后（同名替换）。
        """
        loaded: list[NavigationPattern] = []
        for raw in data.get("patterns") or []:
            name = raw.get("name", "<unnamed>") if isinstance(raw, Mapping) else "<unnamed>"
            try:
                loaded.append(NavigationPattern.model_validate(raw))
            except PydanticValidationError as e:
                raise PatternValidationError(name, str(e)) from e

        sites = data.get("sites") or {}
        if base is None:
            return cls(loaded, sites)

        catalog = base
        for pattern in loaded:
            catalog = catalog.with_pattern(pattern)
        site_map = {site: list(names) for site, names in catalog.site_map.items()}
        for site, names in sites.items():
            site_map[site] = list(names)
        return cls(catalog.patterns, site_map)

    @classmethod
    def from_yaml(cls, path: str, base: "PatternCatalog | None" = None) -> "PatternCatalog":
        return cls.from_mapping(load_data_file(path), base=base)


def default_catalog() -> PatternCatalog:
    """内置的八种导航模式与已知站点映射"""
    return PatternCatalog(DEFAULT_PATTERNS, DEFAULT_SITE_MAP)


def load_catalog(nav_config: NavigationConfig | None = None) -> PatternCatalog:
    """按配置加载目录：配置了 pattern_file 时在内置目录基础上合并文件内容"""
    catalog = default_catalog()
    if nav_config is not None and nav_config.pattern_file:
        catalog = PatternCatalog.from_yaml(nav_config.pattern_file, base=catalog)
        logger.info(f"[PatternCatalog] 已加载模式文件: {nav_config.pattern_file} ({len(catalog)} 个模式)")
    return catalog
