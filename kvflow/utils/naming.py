from __future__ import annotations

import random
from typing import Optional, Set


def generate_random_id(prefix: str, existing_ids: Optional[Set[str]] = None) -> str:
    """Return ``prefix`` followed by a random number below 10000.

    When ``existing_ids`` is given the new id is guaranteed not to be in it
    and is added to it.
    """
    while True:
        candidate = f"{prefix}{random.randrange(10000)}"
        if existing_ids is None or candidate not in existing_ids:
            break
    if existing_ids is not None:
        existing_ids.add(candidate)
    return candidate
