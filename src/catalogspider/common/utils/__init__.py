"""通用工具模块"""

from .data_file import clear_data_cache, load_data_file
from .deadline import RunDeadline, is_expired
from .delay import get_random_delay, settle
from .url import (
    Canonicalizer,
    UrlCanonicalizer,
    are_urls_equivalent,
    canonicalize_url,
    get_unique_urls,
    normalize_visit_key,
    resolve_href,
)

__all__ = [
    "load_data_file",
    "clear_data_cache",
    "RunDeadline",
    "is_expired",
    "get_random_delay",
    "settle",
    "Canonicalizer",
    "UrlCanonicalizer",
    "canonicalize_url",
    "are_urls_equivalent",
    "get_unique_urls",
    "normalize_visit_key",
    "resolve_href",
]
