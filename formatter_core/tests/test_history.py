import threading

from formatter_core.domain.models import HistoryItem
from formatter_core.domain.store_schema import StoreKey
from formatter_core.infrastructure.storage.history import HistoryLedger
from formatter_core.infrastructure.storage.json_store import JsonSettingsStore


def _item(i) -> HistoryItem:
    return HistoryItem(
        id=f"h{i}",
        original_text=f"原文 {i}",
        formatted_text=f"整形后 {i}",
        model_used="llama3:8b-instruct",
        timestamp=1700000000000 + i,
    )


def _ledger(root):
    store = JsonSettingsStore(root=root, name="test-store").open()
    return store, HistoryLedger(store)


def test_add_prepends_most_recent_first(tmp_path):
    _, ledger = _ledger(tmp_path)
    ledger.add(_item(1))
    ledger.add(_item(2))
    assert [it.id for it in ledger.list()] == ["h2", "h1"]


def test_full_history_evicts_oldest(tmp_path):
    store, ledger = _ledger(tmp_path)
    store.set(StoreKey.MAX_HISTORY_ITEMS, 20)
    for i in range(20):
        ledger.add(_item(i))
    assert ledger.add(_item(20)) == 20
    ids = [it.id for it in ledger.list()]
    assert len(ids) == 20
    assert ids[0] == "h20"
    assert "h0" not in ids


def test_length_never_exceeds_current_limit(tmp_path):
    store, ledger = _ledger(tmp_path)
    limits = {0: 10, 10: 5, 20: 8, 25: 0, 27: 3}
    limit = None
    for i in range(30):
        if i in limits:
            limit = limits[i]
            store.set(StoreKey.MAX_HISTORY_ITEMS, limit)
        total = ledger.add(_item(i))
        assert total == len(ledger.list()) <= limit


def test_zero_limit_keeps_nothing(tmp_path):
    store, ledger = _ledger(tmp_path)
    store.set(StoreKey.MAX_HISTORY_ITEMS, 0)
    assert ledger.add(_item(1)) == 0
    assert ledger.list() == []


def test_remove_deletes_at_most_one_entry(tmp_path):
    store, ledger = _ledger(tmp_path)
    ledger.add(_item(1))
    ledger.add(_item(1))
    ledger.add(_item(2))
    assert ledger.remove("h1") is True
    assert [it.id for it in ledger.list()] == ["h2", "h1"]
    assert ledger.remove("missing") is False
    assert len(ledger.list()) == 2


def test_clear_empties_history(tmp_path):
    _, ledger = _ledger(tmp_path)
    for i in range(3):
        ledger.add(_item(i))
    ledger.clear()
    assert ledger.list() == []


def test_concurrent_adds_do_not_lose_items(tmp_path):
    store, ledger = _ledger(tmp_path)
    store.set(StoreKey.MAX_HISTORY_ITEMS, 1000)
    start = threading.Barrier(8)

    def worker(n):
        start.wait()
        for j in range(25):
            ledger.add(_item(n * 100 + j))

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    ids = [it.id for it in ledger.list()]
    assert len(ids) == 200
    assert len(set(ids)) == 200


def test_concurrent_adds_respect_limit(tmp_path):
    store, ledger = _ledger(tmp_path)
    store.set(StoreKey.MAX_HISTORY_ITEMS, 20)
    totals = []

    def worker(n):
        for j in range(10):
            totals.append(ledger.add(_item(n * 100 + j)))

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(6)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert max(totals) <= 20
    assert len(ledger.list()) == 20
