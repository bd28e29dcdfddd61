"""运行截止时间（协作式取消）

各引擎只在阶段之间 / 元素之间检查截止时间，不会在 DOM 修改中途打断。
"""

from __future__ import annotations

import time


class RunDeadline:
    """运行截止时间

    Example:
        >>> deadline = RunDeadline.after(120)
        >>> if deadline.expired:
        ...     return partial_result
    """

    def __init__(self, expires_at: float | None = None):
        # time.monotonic() 时间点；None 表示不限时
        self.expires_at = expires_at

    @classmethod
    def after(cls, seconds: float | None) -> "RunDeadline":
        if seconds is None:
            return cls(None)
        return cls(time.monotonic() + seconds)

    @classmethod
    def unlimited(cls) -> "RunDeadline":
        return cls(None)

    @property
    def expired(self) -> bool:
        if self.expires_at is None:
            return False
        return time.monotonic() >= self.expires_at

    @property
    def remaining(self) -> float | None:
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - time.monotonic())

    def cancel(self) -> None:
        """立即让截止时间到期（外部请求取消时使用）"""
        self.expires_at = time.monotonic()


def is_expired(deadline: RunDeadline | None) -> bool:
    return deadline is not None and deadline.expired
