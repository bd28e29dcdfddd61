"""Delay helpers shared across discovery components."""

from __future__ import annotations

import asyncio
import random


def get_random_delay(base: float, random_range: float) -> float:
    """Return a randomized delay in seconds."""
    return base + random.uniform(0, random_range)


async def settle(seconds: float) -> None:
    """Wait for the page to settle; zero or negative skips the wait."""
    if seconds > 0:
        await asyncio.sleep(seconds)
