"""Utilities to spread retries of concurrent requests."""
from __future__ import annotations

import random


def jitter_seconds(min_seconds: float = 0.3, max_seconds: float = 0.6) -> float:
    """Return a random duration between ``min_seconds`` and ``max_seconds``."""
    if max_seconds < min_seconds:
        min_seconds, max_seconds = max_seconds, min_seconds
    return random.uniform(min_seconds, max_seconds)
