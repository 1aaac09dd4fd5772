"""Wrapper for side effects that must never fail the primary operation."""

import logging
from typing import Awaitable


async def best_effort(description: str, awaitable: Awaitable) -> bool:
    """Await ``awaitable``; log and swallow any failure.

    Returns ``True`` when the side effect completed.
    """
    try:
        await awaitable
        return True
    except Exception:
        logging.exception("Best-effort task failed: %s", description)
        return False
