"""命令 handler。

每个 handler 接收已通过校验的请求模型，返回普通值或 pydantic 模型；
失败时抛出 AppError（或返回 Err），由 CommandDispatcher 统一转换为失败信封。
"""

from __future__ import annotations

import platform
import time
from pathlib import Path
from typing import Callable, Optional

from formatter_core.domain.exceptions import AppError, ErrorCode, normalize_llm_error
from formatter_core.domain.result import Err
from formatter_core.domain.store_schema import SettingsStore, StoreKey
from formatter_core.infrastructure.clipboard import Clipboard
from formatter_core.infrastructure.logging.logger import logger
from formatter_core.infrastructure.retry import RetryOptions, Sleeper, with_retry
from formatter_core.infrastructure.storage.history import HistoryLedger
from formatter_core.providers.base import TextFormatter

from . import schemas as s
from .dispatcher import CommandDispatcher


class CommandHandlers:
    def __init__(
        self,
        store: SettingsStore,
        *,
        clipboard: Clipboard,
        text_formatter: Optional[TextFormatter] = None,
        retry_options: Optional[RetryOptions] = None,
        sleep: Sleeper = time.sleep,
        app_version: str = "0.0.0",
        log_dir: Optional[Path] = None,
    ):
        self._store = store
        self._history = HistoryLedger(store)
        self._clipboard = clipboard
        self._formatter = text_formatter
        self._retry_options = retry_options or RetryOptions()
        self._sleep = sleep
        self._app_version = app_version
        self._log_dir = log_dir

    def register_all(self, dispatcher: CommandDispatcher) -> None:
        routes: dict[str, Callable] = {
            "models:list": self.models_list,
            "models:add": self.models_add,
            "models:remove": self.models_remove,
            "llm:format": self.llm_format,
            "clipboard:copy": self.clipboard_copy,
            "store:get": self.store_get,
            "store:set": self.store_set,
            "store:getHistory": self.store_get_history,
            "store:saveHistory": self.store_save_history,
            "store:clearHistory": self.store_clear_history,
            "app:getVersion": self.app_get_version,
        }
        for name, handler in routes.items():
            spec = s.COMMANDS[name]
            dispatcher.register(name, spec.request, handler, spec.response)

    # ---- 模型管理 ----

    def models_list(self, req: s.ModelsListRequest) -> s.ModelsListResponse:
        # 尚无 LLM 客户端，refresh 无效果，只返回手动添加的模型
        with self._store.locked():
            models = self._store.get(StoreKey.CUSTOM_MODELS)
            default_model = self._store.get(StoreKey.DEFAULT_MODEL)
        return s.ModelsListResponse(models=models, default_model=default_model)

    def models_add(self, req: s.ModelsAddRequest):
        raise AppError(ErrorCode.UNKNOWN, "模型添加功能尚未实现。", {"id": req.id})

    def models_remove(self, req: s.ModelsRemoveRequest):
        raise AppError(ErrorCode.UNKNOWN, "模型删除功能尚未实现。", {"id": req.id})

    # ---- LLM ----

    def llm_format(self, req: s.LlmFormatRequest) -> s.LlmFormatResponse:
        if self._formatter is None:
            raise AppError(ErrorCode.UNKNOWN, "LLM 整形功能尚未实现。")
        formatter = self._formatter
        result = with_retry(
            lambda: formatter.format_text(req.text, req.model_id, req.options),
            self._retry_options,
            sleep=self._sleep,
            log_dir=self._log_dir,
        )
        if isinstance(result, Err):
            raise normalize_llm_error(result.error)
        logger.info(
            "text formatted",
            extra={"extra": {"provider": getattr(formatter, "name", ""), "model": req.model_id}},
        )
        return s.LlmFormatResponse(
            formatted_text=result.value,
            model_used=req.model_id,
            timestamp=int(time.time() * 1000),
        )

    # ---- 剪贴板 ----

    def clipboard_copy(self, req: s.ClipboardCopyRequest) -> s.ClipboardCopyResponse:
        self._clipboard.write_text(req.text)
        return s.ClipboardCopyResponse(copied=True)

    # ---- 持久化 ----

    def store_get(self, req: s.StoreGetRequest):
        return self._store.get(req.key)

    def store_set(self, req: s.StoreSetRequest) -> s.StoreSetResponse:
        self._store.set(req.key, req.value)
        return s.StoreSetResponse(saved=True)

    def store_get_history(self, req: s.EmptyRequest) -> s.StoreGetHistoryResponse:
        items = self._history.list()
        return s.StoreGetHistoryResponse(items=items, total=len(items))

    def store_save_history(self, req: s.StoreSaveHistoryRequest) -> s.StoreSaveHistoryResponse:
        total = self._history.add(req.item)
        return s.StoreSaveHistoryResponse(saved=True, total_items=total)

    def store_clear_history(self, req: s.EmptyRequest) -> s.StoreClearHistoryResponse:
        self._history.clear()
        return s.StoreClearHistoryResponse(cleared=True)

    # ---- 应用 ----

    def app_get_version(self, req: s.EmptyRequest) -> s.AppGetVersionResponse:
        return s.AppGetVersionResponse(
            version=self._app_version,
            host_runtime_version=platform.python_version(),
        )
