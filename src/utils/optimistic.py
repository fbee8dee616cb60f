from __future__ import annotations

from typing import Awaitable, Callable, TypeVar

from utils.logger import get_logger

_logger = get_logger(__name__)

S = TypeVar("S")
R = TypeVar("R")


async def optimistic_update(
    snapshot: Callable[[], S],
    apply: Callable[[], None],
    commit: Callable[[], Awaitable[R]],
    revert: Callable[[S], None],
) -> R:
    """
    Apply a local change before the remote write confirms it.

    1. snapshot() captures the local state,
    2. apply() changes it,
    3. commit() performs the remote write; if it raises, revert(snapshot) puts
       the local state back and the error is re-raised.
    """
    before = snapshot()
    apply()
    try:
        return await commit()
    except Exception:
        _logger.warning("Remote write failed, reverting local change.")
        revert(before)
        raise
