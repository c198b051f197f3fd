"""
Shared request dependencies.

The clock and randomness source are injected so tests can pin them.
"""

import random
from datetime import UTC, datetime

# OS-backed randomness for pack draws
_system_rng = random.SystemRandom()


def get_clock() -> datetime:
    """Current instant (UTC)."""
    return datetime.now(UTC)


def get_rng() -> random.Random:
    """Randomness source for pack draws."""
    return _system_rng
