"""对外 API 服务模块。

Application 负责组装并管理命令核心的生命周期：

    with Application() as app:
        app.dispatch("store:getHistory")

open() 依次完成：日志 -> 打开存储 -> schema 迁移 -> 注册命令并就绪；
迁移或命令注册失败（例如存储版本高于当前程序）时关闭存储并直接抛出，分发器不会开始接受请求。
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Optional

from formatter_core import __version__
from formatter_core.config.settings import Settings, settings as default_settings
from formatter_core.infrastructure.clipboard import Clipboard, SystemClipboard
from formatter_core.infrastructure.logging.logger import logger, setup_logger
from formatter_core.infrastructure.retry import RetryOptions
from formatter_core.infrastructure.storage.json_store import JsonSettingsStore
from formatter_core.infrastructure.storage.migrations import migrate
from formatter_core.ipc.dispatcher import CommandDispatcher
from formatter_core.ipc.handlers import CommandHandlers
from formatter_core.providers.base import TextFormatter


class Application:
    def __init__(
        self,
        cfg: Optional[Settings] = None,
        *,
        clipboard: Optional[Clipboard] = None,
        text_formatter: Optional[TextFormatter] = None,
    ):
        self._settings = cfg or default_settings
        self._clipboard = clipboard or SystemClipboard()
        self._text_formatter = text_formatter
        self._shutdown = threading.Event()
        self._store: Optional[JsonSettingsStore] = None
        self._dispatcher: Optional[CommandDispatcher] = None
        self._executor: Optional[ThreadPoolExecutor] = None

    @property
    def store(self) -> JsonSettingsStore:
        if self._store is None:
            raise RuntimeError("Application is not open")
        return self._store

    @property
    def dispatcher(self) -> CommandDispatcher:
        if self._dispatcher is None:
            raise RuntimeError("Application is not open")
        return self._dispatcher

    def open(self) -> "Application":
        if self._dispatcher is not None:
            return self
        cfg = self._settings
        log_dir = cfg.resolved_log_dir
        setup_logger(log_dir, cfg.log_redact_content)

        store = JsonSettingsStore(
            cfg.data_dir,
            cfg.store_name,
            llm_base_url=cfg.llm_base_url,
            llm_api_key=cfg.llm_api_key,
        ).open()
        try:
            applied = migrate(store)
            logger.info(f"schema migration finished, {applied} step(s) applied")

            dispatcher = CommandDispatcher(log_dir=log_dir)
            CommandHandlers(
                store,
                clipboard=self._clipboard,
                text_formatter=self._text_formatter,
                retry_options=RetryOptions.from_settings(cfg),
                sleep=self._shutdown.wait,
                app_version=__version__,
                log_dir=log_dir,
            ).register_all(dispatcher)
            dispatcher.arm()
        except Exception:
            store.close()
            raise

        self._shutdown.clear()
        self._store = store
        self._dispatcher = dispatcher
        self._executor = ThreadPoolExecutor(
            max_workers=cfg.max_workers,
            thread_name_prefix="formatter-command",
        )
        return self

    def dispatch(self, name: str, payload: Any = None) -> dict:
        """同步执行一个命令，返回统一信封（dict）。"""

        return self.dispatcher.dispatch(name, payload)

    def submit(self, name: str, payload: Any = None) -> "Future[dict]":
        """在线程池中执行命令，允许多个命令同时在途。"""

        if self._executor is None:
            raise RuntimeError("Application is not open")
        return self._executor.submit(self.dispatcher.dispatch, name, payload)

    def close(self) -> None:
        # 先唤醒所有重试等待，再等待在途命令结束
        self._shutdown.set()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        if self._store is not None:
            self._store.close()
            self._store = None
        self._dispatcher = None

    def __enter__(self) -> "Application":
        return self.open()

    def __exit__(self, *exc) -> None:
        self.close()
