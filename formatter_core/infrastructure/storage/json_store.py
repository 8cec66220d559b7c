import json
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional
from uuid import uuid4

import pydantic

from formatter_core.config.settings import settings
from formatter_core.domain.exceptions import ErrorCode, StorageError, ValidationError, classify
from formatter_core.domain.store_schema import STORE_SCHEMA, StoreKey, build_defaults
from formatter_core.infrastructure.logging.logger import logger


class JsonSettingsStore:
    """带类型的键值存储，整体持久化为一个 JSON 文件。

    - 所有读写共用一把可重入锁：写者独占，读者看到一致快照；
    - set() 在返回前完成落盘（临时文件 + os.replace）；
    - 需要显式 open()/close()，不是进程级单例。
    """

    def __init__(
        self,
        root: str | Path | None = None,
        name: Optional[str] = None,
        *,
        llm_base_url: Optional[str] = None,
        llm_api_key: Optional[str] = None,
    ):
        self._root = Path(root or settings.data_dir).resolve()
        self._path = self._root / f"{name or settings.store_name}.json"
        self._env_defaults = {"llm_base_url": llm_base_url, "llm_api_key": llm_api_key}
        self._lock = threading.RLock()
        self._data: Optional[Dict[str, Any]] = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def is_open(self) -> bool:
        return self._data is not None

    # ---- 生命周期 ----

    def open(self) -> "JsonSettingsStore":
        with self._lock:
            if self._data is not None:
                return self
            if self._path.exists():
                self._data = self._read_file()
            else:
                # 首次启动：写入默认值（包括来自环境变量的 LLM 配置），之后不再读取环境变量
                self._root.mkdir(parents=True, exist_ok=True)
                data = build_defaults(**self._env_defaults)
                self._write_file(data)
                self._data = data
                logger.info(f"store initialized: {self._path}")
        return self

    def close(self) -> None:
        with self._lock:
            self._data = None

    def __enter__(self) -> "JsonSettingsStore":
        return self.open()

    def __exit__(self, *exc) -> None:
        self.close()

    # ---- 读写 ----

    @contextmanager
    def locked(self) -> Iterator["JsonSettingsStore"]:
        """持有存储锁，用于跨多个键的“读-改-写”。"""

        with self._lock:
            yield self

    def get(self, key: StoreKey) -> Any:
        """读取键值；从未写入过的键返回默认值。"""

        field = STORE_SCHEMA[StoreKey(key)]
        with self._lock:
            data = self._require_open()
            if field.key.value not in data:
                return field.default()
            raw = data[field.key.value]
        try:
            return field.adapter.validate_python(raw)
        except pydantic.ValidationError as e:
            raise StorageError(
                f"Stored value for {field.key.value!r} does not match its declared type",
                {"key": field.key.value, "errors": e.errors(include_url=False, include_context=False)},
            )

    def set(self, key: StoreKey, value: Any) -> None:
        field = STORE_SCHEMA[StoreKey(key)]
        try:
            typed = field.adapter.validate_python(value)
        except pydantic.ValidationError as e:
            raise ValidationError(
                f"Invalid value for {field.key.value!r}",
                {"key": field.key.value, "errors": e.errors(include_url=False, include_context=False)},
            )
        encoded = field.adapter.dump_python(typed, mode="json", by_alias=True, exclude_none=True)
        with self._lock:
            data = self._require_open()
            new_data = dict(data)
            new_data[field.key.value] = encoded
            self._write_file(new_data)
            self._data = new_data

    def update(self, key: StoreKey, func: Callable[[Any], Any]) -> Any:
        """原子地读取、变换并写回一个键，返回写入后的值。"""

        with self._lock:
            new_value = func(self.get(key))
            self.set(key, new_value)
            return new_value

    # ---- 文件 ----

    def _require_open(self) -> Dict[str, Any]:
        if self._data is None:
            raise StorageError("Store is not open", {"path": str(self._path)})
        return self._data

    def _read_file(self) -> Dict[str, Any]:
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise StorageError(f"STORE_READ_ERROR: {e}", {"path": str(self._path)})
        if not isinstance(data, dict):
            raise StorageError("Store file is not a JSON object", {"path": str(self._path)})
        return data

    def _write_file(self, data: Dict[str, Any]) -> None:
        tmp_path = self._root / f"{self._path.stem}.{uuid4().hex}.json.tmp"
        try:
            tmp_path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            err = classify(e)
            if err.code == ErrorCode.STORAGE_QUOTA_EXCEEDED:
                raise err
            raise StorageError(f"STORE_WRITE_ERROR: {e}", {"path": str(self._path)})
