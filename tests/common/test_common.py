import json
import logging
import os
import sys

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest
from fastapi import HTTPException
from jose import jwt

from common import cache
from common.circuit_breaker import CircuitBreaker
from common.config import ALGORITHM, SECRET_KEY
from common.content_cleaner import clean_content, has_mojibake
from common.logging_config import JSONFormatter
from common.rate_limit import SlidingWindowLimiter
from common.security import decode_claims


# ---------- Content cleaner ----------


@pytest.mark.parametrize(
    "broken, fixed",
    [
        ("Donâ€™t miss it", "Don't miss it"),
        ("Itâ€™s the â€œbestâ€\x9d room", 'It\'s the "best" room'),
        ("CafÃ© Escape", "Café Escape"),
        ("10am â€“ 10pm", "10am – 10pm"),
        ("donÃ¢â‚¬â„¢t panic", "don't panic"),
        ("the roomÃ¢â‚¬â„¢s lock", "the room's lock"),
        ("Rated â€bestâ€ in town", 'Rated "best" in town'),
    ],
)
def test_clean_content_repairs_mojibake(broken, fixed):
    assert has_mojibake(broken)
    assert clean_content(broken) == fixed
    # a repaired value is not picked up again by the next repair run
    assert not has_mojibake(fixed)


def test_clean_content_leaves_clean_text_alone():
    text = "Solve puzzles, find clues (60 minutes)."
    assert not has_mojibake(text)
    assert clean_content(text) == text


def test_clean_content_non_string_input():
    assert clean_content(None) is None
    assert clean_content("") == ""
    assert has_mojibake(None) is False


# ---------- Circuit breaker ----------


def test_circuit_breaker_opens_and_resets():
    breaker = CircuitBreaker("test", max_failures=2, reset_timeout_seconds=60)
    assert breaker.allow_request()

    breaker.record_failure()
    assert breaker.state == "closed"
    breaker.record_failure()
    assert breaker.state == "open"
    assert not breaker.allow_request()

    breaker.reset()
    assert breaker.state == "closed"
    assert breaker.allow_request()


def test_circuit_breaker_half_open_after_timeout():
    breaker = CircuitBreaker("test", max_failures=1, reset_timeout_seconds=0)
    breaker.record_failure()
    assert breaker.state == "open"
    assert breaker.allow_request()
    assert breaker.state == "half_open"


# ---------- Rate limiting ----------


def test_sliding_window_limiter_blocks_after_limit(monkeypatch):
    monkeypatch.setattr("common.rate_limit.is_testing", lambda: False)
    limiter = SlidingWindowLimiter(max_requests=2, detail="slow down")

    limiter.hit("1.2.3.4")
    limiter.hit("1.2.3.4")
    with pytest.raises(HTTPException) as exc:
        limiter.hit("1.2.3.4")
    assert exc.value.status_code == 429
    assert exc.value.detail == "slow down"

    # other keys have their own window
    limiter.hit("5.6.7.8")

    limiter.clear()
    limiter.hit("1.2.3.4")


def test_sliding_window_limiter_disabled_in_tests():
    limiter = SlidingWindowLimiter(max_requests=1)
    for _ in range(5):
        limiter.hit("same-key")


# ---------- Token claims ----------


def test_decode_claims_returns_user_fields():
    token = jwt.encode({"sub": "alice", "role": "moderator", "user_id": 7}, SECRET_KEY, algorithm=ALGORITHM)
    assert decode_claims(token) == {"username": "alice", "role": "moderator", "user_id": 7}


def test_decode_claims_service_token_has_no_user_id():
    token = jwt.encode({"sub": "rooms_service", "role": "service_account"}, SECRET_KEY, algorithm=ALGORITHM)
    assert decode_claims(token)["user_id"] is None


@pytest.mark.parametrize(
    "token",
    [
        "not-a-jwt",
        jwt.encode({"sub": "alice"}, SECRET_KEY, algorithm=ALGORITHM),
        jwt.encode({"sub": "alice", "role": "admin"}, "wrong-secret", algorithm=ALGORITHM),
    ],
)
def test_decode_claims_rejects_bad_tokens(token):
    with pytest.raises(HTTPException) as exc:
        decode_claims(token)
    assert exc.value.status_code == 401


# ---------- Cache ----------


class FakeRedis:
    def __init__(self):
        self.store = {}

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = value

    def scan_iter(self, pattern):
        prefix = pattern.rstrip("*")
        return [k for k in list(self.store) if k.startswith(prefix)]

    def delete(self, key):
        self.store.pop(key, None)


def test_cache_is_noop_without_redis(monkeypatch):
    monkeypatch.setattr(cache, "_redis_client", None)
    monkeypatch.setattr(cache, "REDIS_URL", None)
    cache.set_cached_json("rooms:featured:6", [1, 2])
    assert cache.get_cached_json("rooms:featured:6") is None


def test_cache_round_trip_and_prefix_delete(monkeypatch):
    fake = FakeRedis()
    monkeypatch.setattr(cache, "_redis_client", fake)

    cache.set_cached_json("rooms:featured:6", [{"id": 1}], ttl_seconds=30)
    cache.set_cached_json("themes:all", [{"theme": "Horror"}])
    assert cache.get_cached_json("rooms:featured:6") == [{"id": 1}]

    cache.delete_prefix("rooms:")
    assert cache.get_cached_json("rooms:featured:6") is None
    assert cache.get_cached_json("themes:all") == [{"theme": "Horror"}]


# ---------- Logging ----------


def test_json_formatter_includes_extra_fields():
    record = logging.LogRecord("rooms", logging.INFO, __file__, 1, "Room created", None, None)
    record.room_id = 42
    record.service = "rooms"

    payload = json.loads(JSONFormatter().format(record))
    assert payload["message"] == "Room created"
    assert payload["level"] == "INFO"
    assert payload["room_id"] == 42
    assert payload["service"] == "rooms"
    assert "listing_id" not in payload
