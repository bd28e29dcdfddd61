"""URL 规范化工具

商品 / 分类去重都以规范化后的 URL 为键。规范化是纯函数并且幂等：
canonicalize(canonicalize(u)) == canonicalize(u)。
"""

from __future__ import annotations

from typing import Callable, Iterable
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

from ..constants import TRACKING_PARAM_PREFIXES, TRACKING_PARAMS
from ..exceptions import CanonicalizationError

Canonicalizer = Callable[[str], str]

_DEFAULT_PORTS = {"http": "80", "https": "443"}


def _is_tracking_param(name: str) -> bool:
    lowered = name.lower()
    return lowered in TRACKING_PARAMS or lowered.startswith(TRACKING_PARAM_PREFIXES)


def _normalize_netloc(scheme: str, netloc: str) -> str:
    netloc = netloc.lower()
    host, sep, port = netloc.rpartition(":")
    if sep and port.isdigit() and _DEFAULT_PORTS.get(scheme) == port:
        return host
    return netloc


def _normalize_path(path: str) -> str:
    if not path:
        return "/"
    stripped = path.rstrip("/")
    return stripped or "/"


class UrlCanonicalizer:
    """可配置的 URL 规范化器

    Args:
        strip_all_params: 为 True 时去掉全部查询参数（preserve_params 除外），
            否则只去掉跟踪参数（utm_*、ref 等）。
        preserve_params: 始终保留的查询参数名。
    """

    def __init__(
        self,
        strip_all_params: bool = True,
        preserve_params: Iterable[str] = (),
    ):
        self.strip_all_params = strip_all_params
        self.preserve_params = frozenset(p.lower() for p in preserve_params)

    def _keep_param(self, name: str) -> bool:
        if name.lower() in self.preserve_params:
            return True
        if self.strip_all_params:
            return False
        return not _is_tracking_param(name)

    def canonicalize(self, url: str) -> str:
        if not isinstance(url, str) or not url.strip():
            raise CanonicalizationError(str(url), "空 URL")

        try:
            parts = urlsplit(url.strip())
        except ValueError as e:
            raise CanonicalizationError(url, str(e)) from e

        scheme = parts.scheme.lower()
        netloc = _normalize_netloc(scheme, parts.netloc)
        path = _normalize_path(parts.path) if netloc else parts.path.rstrip("/") or parts.path

        params = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if self._keep_param(k)]
        query = urlencode(sorted(params)) if params else ""

        return urlunsplit((scheme, netloc, path, query, ""))

    __call__ = canonicalize


_default_canonicalizer = UrlCanonicalizer()


def canonicalize_url(url: str) -> str:
    """默认规范化：去掉查询参数与片段，小写协议与域名，去掉末尾斜杠。

    Example:
        >>> canonicalize_url("https://A.com/p/1/?ref=x#top")
        'https://a.com/p/1'
    """
    return _default_canonicalizer.canonicalize(url)


def are_urls_equivalent(url_a: str, url_b: str, canonicalize: Canonicalizer = canonicalize_url) -> bool:
    """判断两个 URL 规范化后是否相同"""
    try:
        return canonicalize(url_a) == canonicalize(url_b)
    except CanonicalizationError:
        return url_a == url_b


def get_unique_urls(urls: Iterable[str], canonicalize: Canonicalizer = canonicalize_url) -> list[str]:
    """按规范化结果去重，保留首次出现的原始 URL"""
    seen: set[str] = set()
    unique: list[str] = []
    for url in urls:
        try:
            key = canonicalize(url)
        except CanonicalizationError:
            key = url
        if key in seen:
            continue
        seen.add(key)
        unique.append(url)
    return unique


def resolve_href(base_url: str, href: str | None) -> str | None:
    """把相对链接解析为绝对地址；无效链接返回 None"""
    if not href:
        return None
    href = href.strip()
    if not href or href == "#" or href.startswith(("#", "javascript:", "mailto:", "tel:")):
        return None
    if not base_url:
        return href
    return urljoin(base_url, href)


def normalize_visit_key(url: str) -> str:
    """访问集合使用的键：保留查询参数，只去掉片段与末尾斜杠"""
    parts = urlsplit(url.strip())
    scheme = parts.scheme.lower()
    netloc = _normalize_netloc(scheme, parts.netloc)
    path = _normalize_path(parts.path) if netloc else parts.path
    return urlunsplit((scheme, netloc, path, parts.query, ""))
