"""Cryptographically random 64-bit seeds."""
import secrets
from typing import Callable

INT64_MAX = 2**63 - 1
UNSET_SEED = 0
SERVER_RANDOM_SEED = -1


class SeedSource:
    """Draws signed 64-bit seeds from a secure byte source."""

    def __init__(self, random_bytes: Callable[[int], bytes] = secrets.token_bytes):
        self._random_bytes = random_bytes

    def next_seed(self, min_value: int = SERVER_RANDOM_SEED, max_value: int = INT64_MAX) -> int:
        """Return a seed in [min_value, max_value).

        The remainder is taken on the magnitude of the raw value, so a
        negative draw lands as far above `min_value` as a positive one. The
        reduction is slightly biased near the span boundary, which does not
        matter for picking generation seeds.
        """
        span = max_value - min_value
        if span <= 0:
            raise ValueError(f"Empty seed range [{min_value}, {max_value})")
        value = int.from_bytes(self._random_bytes(8), "little", signed=True)
        return abs(value) % span + min_value
