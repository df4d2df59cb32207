"""Fire-and-forget execution for side effects outside the critical path"""

import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)

Scheduler = Callable[..., None]


def fire_and_forget(func: Callable[..., Any], *args: Any) -> None:
    """Run a side effect, logging instead of propagating any failure"""
    try:
        func(*args)
    except Exception as e:
        logger.error(f"Background task {getattr(func, '__qualname__', func)} failed: {e}")


def run_inline(func: Callable[..., Any], *args: Any) -> None:
    """Default scheduler: run immediately in the caller's thread"""
    func(*args)
