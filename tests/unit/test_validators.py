"""验证工具单元测试"""

import pytest
from catalogspider.common.validators import (
    validate_positive_integer,
    validate_ratio,
    validate_url,
)
from catalogspider.common.exceptions import URLValidationError, ValidationError


class TestValidateUrl:
    """URL 验证测试"""

    def test_valid_https_url(self):
        """测试有效的 HTTPS URL"""
        assert validate_url("https://example.com/path") == "https://example.com/path"

    def test_url_with_whitespace(self):
        """测试 URL 前后有空白"""
        assert validate_url("  https://example.com  ") == "https://example.com"

    def test_empty_url_raises_error(self):
        """测试空 URL 抛出异常"""
        with pytest.raises(URLValidationError) as exc_info:
            validate_url("")
        assert "URL 不能为空" in str(exc_info.value)

    def test_empty_url_allowed(self):
        assert validate_url("", allow_empty=True) == ""

    def test_missing_scheme_raises_error(self):
        """测试缺少协议抛出异常"""
        with pytest.raises(URLValidationError) as exc_info:
            validate_url("example.com/path")
        assert "缺少协议" in str(exc_info.value)

    def test_invalid_scheme_raises_error(self):
        """测试无效协议抛出异常"""
        with pytest.raises(URLValidationError) as exc_info:
            validate_url("ftp://example.com")
        assert "不支持的协议" in str(exc_info.value)

    def test_missing_domain_raises_error(self):
        with pytest.raises(URLValidationError) as exc_info:
            validate_url("https://")
        assert "缺少域名" in str(exc_info.value)

    def test_url_too_long(self):
        """测试 URL 过长"""
        with pytest.raises(URLValidationError):
            validate_url("https://example.com/" + "a" * 3000)


class TestValidateRatio:
    """比例验证测试"""

    @pytest.mark.parametrize("value", [0, 0.5, 1])
    def test_valid(self, value):
        assert validate_ratio(value) == value

    @pytest.mark.parametrize("value", [-0.1, 1.01])
    def test_out_of_range(self, value):
        with pytest.raises(ValidationError) as exc_info:
            validate_ratio(value, "min_success_rate")
        assert "min_success_rate" in str(exc_info.value)


class TestValidatePositiveInteger:
    """正整数验证测试"""

    def test_valid(self):
        assert validate_positive_integer(5) == 5

    def test_zero_raises_error(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_positive_integer(0, "max_patterns")
        assert "max_patterns" in str(exc_info.value)

    def test_custom_min_value(self):
        assert validate_positive_integer(0, min_value=0) == 0
        with pytest.raises(ValidationError):
            validate_positive_integer(-1, min_value=0)
