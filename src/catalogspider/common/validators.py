"""输入验证工具

提供 URL、阈值等用户输入的验证功能。
"""

from __future__ import annotations

from urllib.parse import urlparse

from .constants import MAX_URL_LENGTH, VALID_URL_SCHEMES
from .exceptions import URLValidationError, ValidationError


def validate_url(url: str, allow_empty: bool = False) -> str:
    """验证并清理 URL

    Args:
        url: 待验证的 URL 字符串
        allow_empty: 是否允许空 URL

    Returns:
        清理后的 URL

    Raises:
        URLValidationError: 当 URL 格式无效时
    """
    url = url.strip() if url else ""

    if not url:
        if allow_empty:
            return ""
        raise URLValidationError("", "URL 不能为空")

    if len(url) > MAX_URL_LENGTH:
        raise URLValidationError(url, f"URL 长度超过 {MAX_URL_LENGTH} 字符")

    try:
        result = urlparse(url)
    except ValueError as e:
        raise URLValidationError(url, f"URL 解析失败: {e}")

    if not result.scheme:
        raise URLValidationError(url, "缺少协议 (http/https)")

    if result.scheme.lower() not in VALID_URL_SCHEMES:
        raise URLValidationError(url, f"不支持的协议: {result.scheme}")

    if not result.netloc:
        raise URLValidationError(url, "缺少域名")

    return url


def validate_ratio(value: float, name: str = "value") -> float:
    """验证 0~1 之间的比例值（成功率、重叠阈值）"""
    if value < 0 or value > 1:
        raise ValidationError(f"{name} 必须在 0 到 1 之间: {value}")
    return value


def validate_positive_integer(value: int, name: str = "value", min_value: int = 1) -> int:
    """验证正整数"""
    if value < min_value:
        raise ValidationError(f"{name} 必须大于等于 {min_value}: {value}")
    return value
