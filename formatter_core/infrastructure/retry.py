"""带错误分类的指数退避重试。

with_retry() 每次调用 attempt() 得到 Ok / Err，只根据 Err 中已分类的
error.retryable 决定是否重试：非网络类错误立即返回，网络类错误按
min(initial * multiplier**attempt, max) 毫秒退避，次数耗尽后统一返回 network-error。
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from formatter_core.config.settings import Settings
from formatter_core.domain.exceptions import AppError, ErrorCode, NetworkError
from formatter_core.domain.result import Err, Result, attempt
from formatter_core.infrastructure.logging.logger import log_error, logger


# 返回真值表示进程正在退出，重试应立即停止（例如 threading.Event.wait）
Sleeper = Callable[[float], Any]


@dataclass(frozen=True)
class RetryOptions:
    max_retries: int = 3
    initial_delay_ms: float = 1000
    max_delay_ms: float = 10000
    backoff_multiplier: float = 2

    @classmethod
    def from_settings(cls, cfg: Settings) -> "RetryOptions":
        return cls(
            max_retries=cfg.retry_max_retries,
            initial_delay_ms=cfg.retry_initial_delay_ms,
            max_delay_ms=cfg.retry_max_delay_ms,
            backoff_multiplier=cfg.retry_backoff_multiplier,
        )

    def delay_ms(self, attempt_no: int) -> float:
        """第 attempt_no 次（从 0 开始）失败后的等待时长。"""

        return min(self.initial_delay_ms * self.backoff_multiplier ** attempt_no, self.max_delay_ms)


def with_retry(
    operation: Callable[[], Any],
    options: Optional[RetryOptions] = None,
    *,
    sleep: Sleeper = time.sleep,
    log_dir=None,
) -> Result:
    """执行 operation，网络类失败自动重试，返回 Ok / Err。"""

    opts = options or RetryOptions()
    result = attempt(operation)
    attempt_no = 0
    while isinstance(result, Err):
        error = result.error
        log_error(error, log_dir)
        if not error.retryable:
            return result
        if attempt_no >= opts.max_retries:
            return Err(
                NetworkError(
                    details={
                        "retryCount": attempt_no,
                        "maxRetries": opts.max_retries,
                        "lastError": {"code": error.code.value, "message": error.message},
                    },
                    context={"retryCount": attempt_no, "maxRetries": opts.max_retries},
                )
            )
        delay = opts.delay_ms(attempt_no)
        logger.info(
            f"retrying after {error.code.value}",
            extra={"extra": {"attempt": attempt_no + 1, "delay_ms": delay}},
        )
        if sleep(delay / 1000.0):
            return Err(
                AppError(
                    ErrorCode.UNKNOWN,
                    "进程正在退出，已取消重试。",
                    {"retryCount": attempt_no, "maxRetries": opts.max_retries},
                )
            )
        attempt_no += 1
        result = attempt(operation)
    return result
