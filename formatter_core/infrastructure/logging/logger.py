import json
import logging
import sys
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from formatter_core.config.settings import settings
from formatter_core.domain.exceptions import AppError, classify


class JsonFormatter(logging.Formatter):
    def __init__(self, redact_content: bool = False):
        super().__init__()
        self._redact = redact_content

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        if self._redact:
            msg = (msg or "")[:64]
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "name": record.name,
            "msg": msg,
        }
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            payload.update(extra)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logger(log_dir: Optional[Path] = None, redact_content: Optional[bool] = None) -> logging.Logger:
    """给 formatter_core logger 挂上 app.log 文件输出（同一目录只挂一次）。"""

    log_dir = Path(log_dir or settings.resolved_log_dir)
    if redact_content is None:
        redact_content = settings.log_redact_content
    log_dir.mkdir(parents=True, exist_ok=True)
    target = str((log_dir / "app.log").resolve())
    for h in logger.handlers:
        if isinstance(h, logging.FileHandler) and h.baseFilename == target:
            return logger
    fh = logging.FileHandler(target, encoding="utf-8")
    fh.setLevel(logging.INFO)
    fh.setFormatter(JsonFormatter(redact_content))
    logger.addHandler(fh)
    return logger


logger = logging.getLogger("formatter_core")
logger.setLevel(logging.INFO)

_write_lock = threading.Lock()

# 写入 AppError.context 的标记键
_LOGGED = "logged"


def error_log_path(log_dir: Optional[Path] = None, when: Optional[datetime] = None) -> Path:
    """按日期命名的错误日志：error-YYYY-MM-DD.log"""

    day = (when or datetime.now(timezone.utc)).strftime("%Y-%m-%d")
    return Path(log_dir or settings.resolved_log_dir) / f"error-{day}.log"


def log_error(error: Any, log_dir: Optional[Path] = None) -> None:
    """把一次失败追加写入当日错误日志。

    写日志本身失败时只输出到控制台 logger，绝不向调用方抛出。
    同一个错误（含共享其 context 的改写副本）只记录一次，例如重试引擎已记录的最终失败
    不会在命令边界再写一遍。
    """

    err: AppError = classify(error)
    if err.context.get(_LOGGED):
        return
    entry = {
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "code": err.code.value,
        "message": err.message,
        "details": err.details,
        "context": err.context,
    }
    try:
        line = json.dumps(entry, ensure_ascii=False, default=str)
        path = error_log_path(log_dir)
        with _write_lock:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("a", encoding="utf-8") as f:
                f.write(line + "\n")
    except (OSError, TypeError, ValueError) as write_error:
        logger.warning(f"Failed to write error log: {write_error}")
    err.context[_LOGGED] = True
    logger.error(
        f"{err.code.value}: {err.message}",
        extra={"extra": {"code": err.code.value}},
    )


def install_excepthooks(log_dir: Optional[Path] = None) -> None:
    """未捕获异常（主线程与工作线程）统一写入错误日志。"""

    previous_hook = sys.excepthook

    def _hook(exc_type, exc, tb):
        log_error(_uncaught("uncaught-exception", exc), log_dir)
        previous_hook(exc_type, exc, tb)

    def _thread_hook(args: threading.ExceptHookArgs) -> None:
        if args.exc_value is not None:
            log_error(_uncaught("unhandled-thread-exception", args.exc_value), log_dir)

    sys.excepthook = _hook
    threading.excepthook = _thread_hook


def _uncaught(kind: str, exc: BaseException) -> AppError:
    err = classify(exc)
    # 未捕获是新的事件，即使该错误之前已记录过也要再写一条
    context = {k: v for k, v in err.context.items() if k != _LOGGED}
    err.context = {**context, "kind": kind}
    return err
