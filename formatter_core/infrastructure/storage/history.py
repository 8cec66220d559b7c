"""整形历史记录。

最新的记录在最前；插入后超过 maxHistoryItems 的尾部（最旧）记录被淘汰。
上限每次插入时都从存储重新读取，与写入 history 在同一把锁内完成。
"""

from typing import List

from formatter_core.domain.models import HistoryItem
from formatter_core.domain.store_schema import SettingsStore, StoreKey


class HistoryLedger:
    def __init__(self, store: SettingsStore):
        self._store = store

    def add(self, item: HistoryItem) -> int:
        """插入一条记录，返回插入并淘汰后的总数。"""

        with self._store.locked():
            limit = self._store.get(StoreKey.MAX_HISTORY_ITEMS)
            items = [item, *self._store.get(StoreKey.HISTORY)]
            del items[limit:]
            self._store.set(StoreKey.HISTORY, items)
            return len(items)

    def list(self) -> List[HistoryItem]:
        return self._store.get(StoreKey.HISTORY)

    def remove(self, item_id: str) -> bool:
        """删除至多一条 id 匹配的记录。"""

        with self._store.locked():
            items = self._store.get(StoreKey.HISTORY)
            for idx, it in enumerate(items):
                if it.id == item_id:
                    del items[idx]
                    self._store.set(StoreKey.HISTORY, items)
                    return True
            return False

    def clear(self) -> None:
        self._store.set(StoreKey.HISTORY, [])
