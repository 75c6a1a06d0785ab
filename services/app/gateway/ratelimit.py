from __future__ import annotations

import logging
import os
from typing import Mapping, Optional

from limits import RateLimitItemPerSecond, storage, strategies
from limits.util import WindowStats

MAX_REQUESTS_ENV = "CHAT_RATE_LIMIT_MAX_REQUESTS"
WINDOW_SECS_ENV = "CHAT_RATE_LIMIT_WINDOW_SECS"

DEFAULT_MAX_REQUESTS = 20
DEFAULT_WINDOW_SECS = 60

RATE_LIMIT_NAMESPACE = "chat"

logger = logging.getLogger(__name__)


def _positive_int(raw: Optional[str], default: int) -> int:
    try:
        value = int(raw)
        if value <= 0:
            return default
        return value
    except (TypeError, ValueError):
        return default


def get_max_requests(environ: Optional[Mapping[str, str]] = None) -> int:
    source = environ if environ is not None else os.environ
    return _positive_int(source.get(MAX_REQUESTS_ENV), DEFAULT_MAX_REQUESTS)


def get_window_secs(environ: Optional[Mapping[str, str]] = None) -> int:
    source = environ if environ is not None else os.environ
    return _positive_int(source.get(WINDOW_SECS_ENV), DEFAULT_WINDOW_SECS)


class ClientRateLimiter:
    """
    Per-client fixed-window admission control on top of ``limits``.

    A client's window opens on its first request and lasts ``window_secs``.
    Up to ``max_requests`` calls are admitted inside it; once it expires the
    next call opens a fresh window. Counters live in ``MemoryStorage``, which
    drops expired keys itself and is local to this process.
    """

    def __init__(
        self,
        max_requests: Optional[int] = None,
        window_secs: Optional[int] = None,
        limit_storage: Optional[storage.Storage] = None,
    ):
        self.max_requests = max_requests if max_requests is not None else get_max_requests()
        self.window_secs = window_secs if window_secs is not None else get_window_secs()
        self._item = RateLimitItemPerSecond(
            self.max_requests,
            self.window_secs,
            namespace=RATE_LIMIT_NAMESPACE,
        )
        self._storage = limit_storage if limit_storage is not None else storage.MemoryStorage()
        self._strategy = strategies.FixedWindowRateLimiter(self._storage)

    @property
    def item(self) -> RateLimitItemPerSecond:
        return self._item

    def allow(self, client_key: str) -> bool:
        allowed = self._strategy.hit(self._item, client_key)
        if not allowed:
            logger.debug("rate limit denied: client=%s limit=%s", client_key, self._item)
        return allowed

    def stats(self, client_key: str) -> WindowStats:
        return self._strategy.get_window_stats(self._item, client_key)

    def reset(self) -> None:
        self._storage.reset()
