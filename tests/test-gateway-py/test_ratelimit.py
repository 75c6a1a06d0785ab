#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Unit tests for the per-client fixed-window rate limiter."""

import sys
import threading
import time
from pathlib import Path

import pytest
from limits import storage

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from services.app.gateway.ratelimit import (  # noqa: E402
    DEFAULT_MAX_REQUESTS,
    DEFAULT_WINDOW_SECS,
    ClientRateLimiter,
    get_max_requests,
    get_window_secs,
)


@pytest.fixture
def limiter() -> ClientRateLimiter:
    return ClientRateLimiter(max_requests=20, window_secs=60)


def test_twenty_allowed_then_denied(limiter: ClientRateLimiter):
    results = [limiter.allow("client-a") for _ in range(21)]
    assert results[:20] == [True] * 20
    assert results[20] is False
    assert limiter.stats("client-a").remaining == 0


def test_remaining_counts_down(limiter: ClientRateLimiter):
    assert limiter.stats("client-a").remaining == 20
    for _ in range(3):
        limiter.allow("client-a")
    assert limiter.stats("client-a").remaining == 17


def test_window_reset_restarts_count():
    limiter = ClientRateLimiter(max_requests=3, window_secs=1)
    for _ in range(4):
        limiter.allow("client-a")
    assert limiter.allow("client-a") is False

    time.sleep(1.1)

    assert limiter.allow("client-a") is True
    assert limiter.stats("client-a").remaining == 2


def test_keys_are_independent(limiter: ClientRateLimiter):
    for _ in range(20):
        assert limiter.allow("client-a")
    assert limiter.allow("client-a") is False
    assert limiter.allow("client-b") is True


def test_reset_clears_state(limiter: ClientRateLimiter):
    for _ in range(21):
        limiter.allow("client-a")
    limiter.reset()
    assert limiter.allow("client-a") is True


def test_shared_storage_is_used():
    shared = storage.MemoryStorage()
    first = ClientRateLimiter(max_requests=2, window_secs=60, limit_storage=shared)
    second = ClientRateLimiter(max_requests=2, window_secs=60, limit_storage=shared)

    assert first.allow("client-a") is True
    assert second.allow("client-a") is True
    assert first.allow("client-a") is False


def test_limit_item_uses_configured_values():
    limiter = ClientRateLimiter(max_requests=7, window_secs=30)
    assert limiter.item.amount == 7
    assert limiter.item.multiples == 30


def test_defaults_come_from_environment(monkeypatch):
    monkeypatch.setenv("CHAT_RATE_LIMIT_MAX_REQUESTS", "4")
    monkeypatch.setenv("CHAT_RATE_LIMIT_WINDOW_SECS", "15")
    limiter = ClientRateLimiter()
    assert limiter.max_requests == 4
    assert limiter.window_secs == 15


def test_concurrent_threads_never_exceed_ceiling():
    limiter = ClientRateLimiter(max_requests=50, window_secs=60)
    admitted = []
    lock = threading.Lock()

    def worker():
        for _ in range(20):
            if limiter.allow("shared"):
                with lock:
                    admitted.append(1)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert 0 < len(admitted) <= 50
    assert limiter.allow("shared") is False


@pytest.mark.parametrize("raw,expected", [
    (None, DEFAULT_MAX_REQUESTS),
    ("5", 5),
    ("0", DEFAULT_MAX_REQUESTS),
    ("-3", DEFAULT_MAX_REQUESTS),
    ("lots", DEFAULT_MAX_REQUESTS),
])
def test_get_max_requests(raw, expected):
    environ = {} if raw is None else {"CHAT_RATE_LIMIT_MAX_REQUESTS": raw}
    assert get_max_requests(environ) == expected


@pytest.mark.parametrize("raw,expected", [
    (None, DEFAULT_WINDOW_SECS),
    ("30", 30),
    ("0", DEFAULT_WINDOW_SECS),
    ("2.5", DEFAULT_WINDOW_SECS),
    ("nope", DEFAULT_WINDOW_SECS),
])
def test_get_window_secs(raw, expected):
    environ = {} if raw is None else {"CHAT_RATE_LIMIT_WINDOW_SECS": raw}
    assert get_window_secs(environ) == expected
