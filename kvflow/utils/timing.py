from __future__ import annotations

import asyncio


async def settle(seconds: float) -> None:
    """Wait unconditionally for ``seconds``.

    Used after creating a network-addressable resource whose DNS registration
    lags behind the creation acknowledgement. This is a fixed wait, not a
    readiness check: it is never shortened, never retried, and a slow
    propagation can still outlast it.
    """
    if seconds > 0:
        await asyncio.sleep(seconds)
