"""配置与延迟工具单元测试"""

import logging

import pytest

from catalogspider.common.config import (
    Config,
    DeduplicationConfig,
    FilterExplorationConfig,
    NavigationConfig,
)
from catalogspider.common.logger import ROOT_LOGGER_NAME, get_logger, parse_log_level, setup_file_logging
from catalogspider.common.utils.delay import get_random_delay, settle


class TestEnvConfig:
    """环境变量配置测试"""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("NAV_MAX_PATTERNS", raising=False)
        monkeypatch.delenv("DEDUP_ALIAS_THRESHOLD", raising=False)
        assert NavigationConfig().max_patterns == 5
        assert DeduplicationConfig().alias_threshold == 0.9

    def test_env_override(self, monkeypatch):
        """测试环境变量覆盖默认值"""
        monkeypatch.setenv("NAV_MAX_PATTERNS", "3")
        monkeypatch.setenv("NAV_MIN_SUCCESS_RATE", "0.5")
        monkeypatch.setenv("EXPLORE_FILTER_COMBINATIONS", "true")
        monkeypatch.setenv("DEDUP_SUPERSET_THRESHOLD", "0.75")

        assert NavigationConfig().max_patterns == 3
        assert NavigationConfig().min_success_rate == 0.5
        assert FilterExplorationConfig().capture_filter_combinations is True
        assert DeduplicationConfig().superset_threshold == 0.75

    def test_output_dir(self, monkeypatch, tmp_path):
        """测试输出目录创建"""
        target = tmp_path / "out" / "nested"
        monkeypatch.setenv("OUTPUT_DIR", str(target))
        cfg = Config.load()
        cfg.ensure_dirs()
        assert target.is_dir()


class TestDelay:
    """随机延迟测试"""

    def test_random_delay_range(self):
        for _ in range(20):
            delay = get_random_delay(1.0, 0.5)
            assert 1.0 <= delay <= 1.5

    def test_zero_range(self):
        assert get_random_delay(0.3, 0) == 0.3

    @pytest.mark.asyncio
    async def test_settle_skips_non_positive(self):
        await settle(0)
        await settle(-1)


class TestLogger:
    """日志系统测试"""

    def test_loggers_share_package_root(self):
        assert get_logger("catalogspider.navigation.extractor").name == "catalogspider.navigation.extractor"
        assert get_logger("scripts").name == "catalogspider.scripts"
        assert logging.getLogger(ROOT_LOGGER_NAME).handlers

    def test_parse_log_level(self):
        assert parse_log_level("debug") == logging.DEBUG
        assert parse_log_level("nonsense") == logging.INFO
        assert parse_log_level(None, logging.WARNING) == logging.WARNING
        assert parse_log_level(logging.ERROR) == logging.ERROR

    def test_file_logging(self, tmp_path):
        """测试文件输出，同一路径只添加一次"""
        log_path = tmp_path / "logs" / "run.log"
        handler = setup_file_logging(str(log_path))
        try:
            assert setup_file_logging(str(log_path)) is handler
            get_logger("catalogspider.tests").warning("[Test] 写入文件")
            handler.flush()
            assert "[Test] 写入文件" in log_path.read_text(encoding="utf-8")
        finally:
            logging.getLogger(ROOT_LOGGER_NAME).removeHandler(handler)
            handler.close()
