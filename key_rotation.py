"""
Round-robin API key rotation for Airfare Tracker.

Spreads upstream requests across every configured SerpAPI key. Quota is
not tracked here: an exhausted key shows up as an upstream error at fetch
time.
"""

import logging
from threading import Lock
from typing import Iterable, Optional

from config import SERPAPI_KEYS_LIST

logger = logging.getLogger(__name__)


class KeyRotator:
    """
    Hands out API keys in round-robin order.

    One instance is shared by every fetch path (scheduler, API, CLI) so that
    successive calls draw from the same sequence.
    """

    def __init__(self, keys: Iterable[Optional[str]] = ()):
        self._keys = tuple(key.strip() for key in keys if key and key.strip())
        self._index = 0
        self._lock = Lock()

    @classmethod
    def from_config(cls) -> "KeyRotator":
        """Build a rotator from the keys found in the environment."""
        rotator = cls(SERPAPI_KEYS_LIST)
        logger.info(f"Key rotation initialized with {len(rotator)} key(s)")
        return rotator

    def __len__(self) -> int:
        return len(self._keys)

    @property
    def has_keys(self) -> bool:
        return bool(self._keys)

    def next_key(self) -> Optional[str]:
        """
        Get the next key in rotation.

        Returns:
            The next key, or None when no keys are configured
        """
        if not self._keys:
            return None
        with self._lock:
            key = self._keys[self._index % len(self._keys)]
            self._index = (self._index + 1) % len(self._keys)
        return key

    def reset(self) -> None:
        """Rewind rotation to the first key."""
        with self._lock:
            self._index = 0
