import threading
from typing import Dict, List, Tuple

import pytest

from services.sso.nonce import (
    InMemoryNonceStore,
    NonceGuard,
    RedisNonceStore,
    nonces_match,
    session_fingerprint,
)


class _FakePipeline:
    def __init__(self, client: "_FakeRedis", transaction: bool):
        self._client = client
        self.transaction = transaction
        self._ops: List[Tuple[str, str]] = []

    def get(self, key: str) -> None:
        self._ops.append(("get", key))

    def delete(self, key: str) -> None:
        self._ops.append(("delete", key))

    def execute(self) -> list:
        with self._client.lock:
            results = []
            for op, key in self._ops:
                if op == "get":
                    results.append(self._client.data.get(key))
                else:
                    results.append(1 if self._client.data.pop(key, None) is not None else 0)
            return results


class _FakeRedis:
    def __init__(self) -> None:
        self.data: Dict[str, bytes] = {}
        self.ttls: Dict[str, int] = {}
        self.lock = threading.Lock()
        self.pipelines: List[_FakePipeline] = []

    def setex(self, key: str, ttl: int, value: bytes) -> None:
        self.data[key] = value
        self.ttls[key] = ttl

    def get(self, key: str):
        return self.data.get(key)

    def delete(self, key: str) -> int:
        return 1 if self.data.pop(key, None) is not None else 0

    def pipeline(self, transaction: bool = True) -> _FakePipeline:
        pipeline = _FakePipeline(self, transaction)
        self.pipelines.append(pipeline)
        return pipeline


@pytest.mark.parametrize(
    ("session_nonce", "payload_nonce", "expected"),
    [
        ("abc", "abc", True),
        ("abc", "abd", False),
        (None, "abc", False),
        ("", "", False),
        ("abc", "", False),
        ("abc", "ABC", False),
    ],
)
def test_nonces_match(session_nonce, payload_nonce, expected):
    assert nonces_match(session_nonce, payload_nonce) is expected


def test_consume_is_single_use(nonce_store):
    guard = NonceGuard(nonce_store)
    nonce = guard.issue("session-1")

    assert guard.consume("session-1", nonce) is True
    assert guard.consume("session-1", nonce) is False
    assert nonce_store.peek("session-1") is None


def test_mismatch_still_clears_the_session_nonce(nonce_store):
    guard = NonceGuard(nonce_store)
    nonce = guard.issue("session-1")

    assert guard.consume("session-1", "stale-nonce") is False
    assert guard.consume("session-1", nonce) is False


def test_nonce_is_bound_to_issuing_session(nonce_store):
    guard = NonceGuard(nonce_store)
    nonce = guard.issue("session-a")

    assert guard.consume("session-b", nonce) is False
    assert guard.consume("session-a", nonce) is True


def test_missing_session_id_never_matches(nonce_store):
    guard = NonceGuard(nonce_store)
    guard.issue("session-1")

    assert guard.consume(None, "anything") is False
    assert nonce_store.peek("session-1") is not None


def test_issue_replaces_previous_nonce(nonce_store):
    guard = NonceGuard(nonce_store)
    first = guard.issue("session-1")
    second = guard.issue("session-1")

    assert first != second
    assert guard.consume("session-1", first) is False
    assert nonce_store.peek("session-1") is None


def test_expired_nonce_is_not_returned():
    store = InMemoryNonceStore(ttl_seconds=0)
    store.put("session-1", "abc")

    assert store.peek("session-1") is None
    store.put("session-1", "abc")
    assert store.pop("session-1") is None


def test_abandoned_logins_are_swept_on_put():
    guard = NonceGuard(InMemoryNonceStore(ttl_seconds=0))
    for index in range(1000):
        guard.issue(f"abandoned-{index}")

    # Only the newest entry is left; each put sweeps everything already expired.
    assert len(guard.store) == 1
    guard.store.purge_expired()
    assert len(guard.store) == 0


def test_sweep_keeps_live_nonces(nonce_store):
    nonce_store.put("session-1", "abc")
    nonce_store.put("session-2", "def")
    nonce_store.purge_expired()

    assert len(nonce_store) == 2
    assert nonce_store.peek("session-1") == "abc"


def test_concurrent_consumers_cannot_both_succeed(nonce_store):
    guard = NonceGuard(nonce_store)
    nonce = guard.issue("session-1")
    barrier = threading.Barrier(16)
    results: List[bool] = []
    results_lock = threading.Lock()

    def worker() -> None:
        barrier.wait()
        outcome = guard.consume("session-1", nonce)
        with results_lock:
            results.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(16)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results.count(True) == 1
    assert results.count(False) == 15


def test_redis_store_uses_prefixed_keys_and_ttl():
    client = _FakeRedis()
    store = RedisNonceStore(client, ttl_seconds=300)

    store.put("session-1", "abc")

    assert client.data == {"sso:nonce:session-1": b"abc"}
    assert client.ttls["sso:nonce:session-1"] == 300
    assert store.peek("session-1") == "abc"


def test_redis_pop_reads_and_deletes_in_one_transaction():
    client = _FakeRedis()
    store = RedisNonceStore(client, ttl_seconds=300)
    store.put("session-1", "abc")

    assert store.pop("session-1") == "abc"
    assert store.pop("session-1") is None
    assert client.pipelines[0].transaction is True
    assert "sso:nonce:session-1" not in client.data


def test_guard_over_redis_store_is_single_use():
    store = RedisNonceStore(_FakeRedis(), ttl_seconds=300)
    guard = NonceGuard(store)
    nonce = guard.issue("session-1")

    assert guard.consume("session-1", nonce) is True
    assert guard.consume("session-1", nonce) is False


def test_session_fingerprint_hides_session_id():
    fingerprint = session_fingerprint("very-secret-session-id")

    assert len(fingerprint) == 12
    assert "secret" not in fingerprint
    assert session_fingerprint(None) == "-"
