"""YAML 数据文件加载

导航模式目录、筛选排除词表等可以放在 YAML 文件中，修改后无需改动代码。
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from ..exceptions import ConfigError, ConfigFileNotFoundError


@lru_cache(maxsize=32)
def load_data_file(file_path: str) -> dict[str, Any]:
    """加载并缓存 YAML 数据文件。"""
    path = Path(file_path)
    if not path.exists():
        raise ConfigFileNotFoundError(file_path)

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"数据文件顶层必须是映射: {file_path}")
    return data


def clear_data_cache() -> None:
    """清除数据文件缓存。"""
    load_data_file.cache_clear()
