"""显式的成功/失败结果类型。

重试引擎与 handler 之间不依赖异常展开来传递失败：
attempt() 把一次调用的结果收敛为 Ok / Err，Err 内携带已分类的 AppError，
调用方直接检查 error.code / error.retryable 做决策。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, NoReturn, TypeVar, Union

from .exceptions import AppError, classify


T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    ok = True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    error: AppError

    ok = False

    def unwrap(self) -> NoReturn:
        raise self.error


Result = Union[Ok[T], Err]


def attempt(operation: Callable[[], Any]) -> Result:
    """执行一次 operation，把返回值或异常统一为 Result。

    operation 本身返回 Ok/Err 时原样透传。
    """

    try:
        value = operation()
    except Exception as exc:  # noqa: BLE001 - 所有失败都要进入分类
        return Err(classify(exc))
    if isinstance(value, (Ok, Err)):
        return value
    return Ok(value)
