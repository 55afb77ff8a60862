"""
Unit tests for the categorization orchestrator.
Async methods are driven with asyncio.run; the LLM client is stubbed.
"""
import asyncio
import threading
import time

import pytest

from core.config import Settings
from core.exceptions import ConfigurationError, LLMError
from services.categorization_service import CategorizationService


class VendorStubClient:
    """Replies per vendor name found in the prompt; tracks concurrency."""

    def __init__(self, replies, delay=0.0):
        self.replies = replies
        self.delay = delay
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def call_chat_completion(self, prompt, temperature=0.1):
        with self._lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            vendor = prompt.split("Vendor: ", 1)[1].split("\n", 1)[0]
            self.calls.append(vendor)
            reply = self.replies[vendor]
            if isinstance(reply, Exception):
                raise reply
            return reply
        finally:
            with self._lock:
                self.in_flight -= 1


def make_service(client, max_concurrent=1):
    settings = Settings(_env_file=None, max_concurrent_llm_calls=max_concurrent)
    return CategorizationService(settings=settings, client_factory=lambda key: client)


def test_failed_item_left_unchanged(make_transaction):
    """3-item batch where the second call fails."""
    client = VendorStubClient({
        "Adobe": {"category": "software", "purpose": "Design tools", "is_business": True},
        "Shell": LLMError("LLM categorization failed: 502 Bad Gateway"),
        "Delta": {"category": "travel", "purpose": "Client visit", "is_business": True},
    })
    batch = [
        make_transaction("1", vendor="Adobe"),
        make_transaction("2", vendor="Shell"),
        make_transaction("3", vendor="Delta"),
    ]

    result = asyncio.run(make_service(client).categorize(batch, "sk-test"))

    assert len(result) == 3
    assert [t.id for t in result] == ["1", "2", "3"]
    assert result[0].category == "software"
    assert result[0].is_business is True
    assert result[1] == batch[1]
    assert result[2].category == "travel"
    assert result[2].purpose == "Client visit"


def test_missing_credential_fails_before_any_call(make_transaction):
    created = []

    def factory(key):
        created.append(key)
        return VendorStubClient({})

    service = CategorizationService(settings=Settings(_env_file=None), client_factory=factory)

    with pytest.raises(ConfigurationError):
        asyncio.run(service.categorize([make_transaction("1")], ""))
    assert created == []


def test_sequential_by_default(make_transaction):
    replies = {f"V{i}": {"category": "other"} for i in range(4)}
    client = VendorStubClient(replies, delay=0.02)
    batch = [make_transaction(str(i), vendor=f"V{i}") for i in range(4)]

    asyncio.run(make_service(client).categorize(batch, "sk-test"))

    assert client.max_in_flight == 1
    assert client.calls == ["V0", "V1", "V2", "V3"]


def test_bounded_concurrency_preserves_order(make_transaction):
    replies = {f"V{i}": {"purpose": f"purpose {i}"} for i in range(6)}
    client = VendorStubClient(replies, delay=0.02)
    batch = [make_transaction(str(i), vendor=f"V{i}") for i in range(6)]

    result = asyncio.run(make_service(client, max_concurrent=3).categorize(batch, "sk-test"))

    assert client.max_in_flight <= 3
    assert [t.purpose for t in result] == [f"purpose {i}" for i in range(6)]


def test_empty_batch(make_transaction):
    assert asyncio.run(make_service(VendorStubClient({})).categorize([], "sk-test")) == []


def test_categorize_uncategorized_updates_store(store, make_transaction):
    store.save_all([
        make_transaction("1", vendor="Adobe", is_business=True),
        make_transaction("2", vendor="Zoom", is_business=True, category="software"),
        make_transaction("3", vendor="Netflix"),
        make_transaction("4", vendor="Shell", is_business=True, category="uncategorized"),
    ])
    client = VendorStubClient({
        "Adobe": {"category": "software", "purpose": "Design tools"},
        "Shell": LLMError("timeout"),
    })

    result = asyncio.run(make_service(client).categorize_uncategorized(store, "sk-test"))

    assert result == {"success": True, "processed": 1, "total": 2}
    assert sorted(client.calls) == ["Adobe", "Shell"]
    stored = {t.id: t for t in store.get_all()}
    assert stored["1"].category == "software"
    assert stored["1"].purpose == "Design tools"
    assert stored["2"].category == "software"
    assert stored["3"].category is None
    assert stored["4"].category == "uncategorized"
    assert [t.id for t in store.get_all()] == ["1", "2", "3", "4"]


def test_categorize_uncategorized_nothing_to_do(store, make_transaction):
    store.save_all([make_transaction("1")])
    client = VendorStubClient({})

    result = asyncio.run(make_service(client).categorize_uncategorized(store, "sk-test"))

    assert result["processed"] == 0
    assert result["total"] == 0
    assert "No uncategorized" in result["message"]
    assert client.calls == []


def test_categorize_uncategorized_requires_credential(store):
    with pytest.raises(ConfigurationError):
        asyncio.run(make_service(VendorStubClient({})).categorize_uncategorized(store, None))


def test_categorize_uncategorized_keeps_edits_made_during_batch(store, make_transaction):
    """A user edit landing while the LLM call is in flight survives the merge."""
    store.save_all([
        make_transaction("1", vendor="Adobe", is_business=True),
        make_transaction("2", vendor="Zoom"),
    ])

    class EditingClient:
        def call_chat_completion(self, prompt, temperature=0.1):
            store.update_one("1", {"is_business": False, "purpose": "user note"})
            store.update_one("2", {"is_business": True})
            return {"category": "software"}

    service = CategorizationService(
        settings=Settings(_env_file=None),
        client_factory=lambda key: EditingClient(),
    )

    result = asyncio.run(service.categorize_uncategorized(store, "sk-test"))

    assert result == {"success": True, "processed": 1, "total": 1}
    stored = {t.id: t for t in store.get_all()}
    assert stored["1"].category == "software"
    assert stored["1"].is_business is False
    assert stored["1"].purpose == "user note"
    assert stored["2"].is_business is True
    assert stored["2"].category is None


def test_categorize_uncategorized_store_access_off_event_loop(store, make_transaction, monkeypatch):
    """Store reads and the merge never run on the event loop thread."""
    store.save_all([make_transaction("1", vendor="Adobe", is_business=True)])
    loop_threads = []
    store_threads = []
    original_get_all = store.get_all

    def tracking_get_all():
        store_threads.append(threading.get_ident())
        return original_get_all()

    monkeypatch.setattr(store, "get_all", tracking_get_all)

    async def run():
        loop_threads.append(threading.get_ident())
        client = VendorStubClient({"Adobe": {"category": "software"}})
        return await make_service(client).categorize_uncategorized(store, "sk-test")

    result = asyncio.run(run())

    assert result["processed"] == 1
    assert len(store_threads) == 2
    assert loop_threads[0] not in store_threads
