"""
Download Registry - tracks URLs with a download in flight.

A URL is present iff a download for it is running. All reads and writes go
through one lock that is never held across I/O, so it is safe to share
between threads and coroutines alike.
"""
import logging
import threading
from typing import FrozenSet, Set

logger = logging.getLogger(__name__)


class DownloadRegistry:
    """
    Guard against concurrent duplicate downloads of the same URL.

    Usage:
        registry = DownloadRegistry()
        if registry.try_begin(url):
            try:
                ...  # download
            finally:
                registry.end(url)
    """

    def __init__(self):
        self._urls: Set[str] = set()
        self._lock = threading.Lock()

    @staticmethod
    def _key(url) -> str:
        return str(url)

    def try_begin(self, url) -> bool:
        """Claim url. Returns True only for the caller that inserted it."""
        key = self._key(url)
        with self._lock:
            if key in self._urls:
                claimed = False
            else:
                self._urls.add(key)
                claimed = True

        if not claimed:
            logger.debug("Download already in flight: %s", key)
        return claimed

    def end(self, url) -> None:
        """Release url. Releasing an absent URL is a no-op."""
        with self._lock:
            self._urls.discard(self._key(url))

    def snapshot(self) -> FrozenSet[str]:
        """URLs in flight at the time of the call."""
        with self._lock:
            return frozenset(self._urls)

    def __contains__(self, url) -> bool:
        with self._lock:
            return self._key(url) in self._urls

    def __len__(self) -> int:
        with self._lock:
            return len(self._urls)
