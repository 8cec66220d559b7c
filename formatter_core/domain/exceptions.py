"""统一业务异常模型与错误分类。

所有跨模块抛出的业务级错误都应该继承自 AppError，
并携带一个封闭枚举 ErrorCode，便于在命令分发层统一转换为 ErrorInfo，
UI 侧只会看到 code/message/details 三元组。

classify() 是唯一的转换入口：任意异常（或非异常值）都会被映射为 AppError。
"""

from __future__ import annotations

import errno
import json
import time
import traceback
from enum import Enum
from typing import Any, Dict, Optional

import httpx
import pydantic

from .models import ErrorInfo


class ErrorCode(str, Enum):
    """错误码枚举（封闭集合）。"""

    # 网络
    NETWORK_ERROR = "network-error"
    NETWORK_TIMEOUT = "network-timeout"

    # LLM
    MODEL_NOT_FOUND = "model-not-found"
    RATE_LIMITED = "rate-limited"
    INVALID_RESPONSE = "invalid-response"

    # 校验
    VALIDATION_ERROR = "validation-error"
    INVALID_ID = "invalid-id"
    TEXT_TOO_LONG = "text-too-long"

    # 存储
    STORAGE_ERROR = "storage-error"
    STORAGE_QUOTA_EXCEEDED = "storage-quota-exceeded"

    UNKNOWN = "unknown"


RETRYABLE_CODES = frozenset({ErrorCode.NETWORK_ERROR, ErrorCode.NETWORK_TIMEOUT})

MAX_TEXT_LENGTH = 20000


def is_retryable(code: ErrorCode) -> bool:
    """只有网络类错误允许自动重试。"""

    return code in RETRYABLE_CODES


class AppError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（ErrorCode）。
        message: 用户可读错误信息。
        details: 透传给 UI 的诊断信息（可选）。
        context: 仅写入错误日志的上下文（如 stack、retryCount），不发给 UI。
        timestamp: 创建时间（毫秒）。
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Any = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.code = ErrorCode(code)
        self.message = message
        self.details = details
        self.context = context or {}
        self.timestamp = int(time.time() * 1000)
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return is_retryable(self.code)

    def to_info(self) -> ErrorInfo:
        return ErrorInfo(code=self.code.value, message=self.message, details=self.details)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code.value!r}, message={self.message!r})"


class NetworkError(AppError):
    """网络层错误，例如连接失败。"""

    def __init__(self, message: str = "网络错误，请检查连接。", details: Any = None, **kw):
        super().__init__(ErrorCode.NETWORK_ERROR, message, details, **kw)


class NetworkTimeoutError(AppError):
    """请求超时。"""

    def __init__(self, message: str = "网络请求超时。", details: Any = None, **kw):
        super().__init__(ErrorCode.NETWORK_TIMEOUT, message, details, **kw)


class LlmError(AppError):
    """LLM 后端返回的错误（模型不存在、限流、响应无效）。"""


class ValidationError(AppError):
    """参数校验失败。code 可以是 validation-error / invalid-id / text-too-long。"""

    def __init__(self, message: str, details: Any = None, code: ErrorCode = ErrorCode.VALIDATION_ERROR, **kw):
        super().__init__(code, message, details, **kw)


class StorageError(AppError):
    """持久化存储读写失败。"""

    def __init__(self, message: str, details: Any = None, code: ErrorCode = ErrorCode.STORAGE_ERROR, **kw):
        super().__init__(code, message, details, **kw)


class SchemaVersionError(StorageError):
    """存储文件的 schemaVersion 高于当前程序所知的最新版本。"""


def _stack_of(exc: BaseException) -> str:
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))


def _native_details(exc: BaseException) -> Dict[str, Any]:
    return {"type": type(exc).__name__, "stack": _stack_of(exc)}


def classify(failure: Any, *, default_code: Optional[ErrorCode] = None) -> AppError:
    """把任意失败转换为 AppError（全函数，不会抛出）。

    - AppError 原样返回；
    - httpx / 内置网络异常映射为网络类错误码；
    - pydantic 校验异常映射为 validation-error；
    - 其他异常使用 default_code（若提供）否则 unknown，并保留原始 message 与 stack。
    """

    if isinstance(failure, AppError):
        return failure

    if not isinstance(failure, BaseException):
        return AppError(
            default_code or ErrorCode.UNKNOWN,
            "Unknown error occurred",
            {"value": repr(failure)},
        )

    message = str(failure) or type(failure).__name__
    context = {"stack": _stack_of(failure)}

    if isinstance(failure, (httpx.TimeoutException, TimeoutError)):
        return NetworkTimeoutError(message, _native_details(failure), context=context)
    if isinstance(failure, httpx.HTTPStatusError):
        status = failure.response.status_code
        details = {"status": status, "url": str(failure.request.url)}
        if status == 429:
            return LlmError(ErrorCode.RATE_LIMITED, message, details, context=context)
        if status == 404:
            return LlmError(ErrorCode.MODEL_NOT_FOUND, message, details, context=context)
        return AppError(default_code or ErrorCode.UNKNOWN, message, details, context=context)
    if isinstance(failure, (httpx.TransportError, ConnectionError)):
        return NetworkError(message, _native_details(failure), context=context)
    if isinstance(failure, pydantic.ValidationError):
        return ValidationError(
            message,
            {"errors": failure.errors(include_url=False, include_context=False)},
            context=context,
        )
    if isinstance(failure, json.JSONDecodeError):
        return LlmError(ErrorCode.INVALID_RESPONSE, message, _native_details(failure), context=context)
    if isinstance(failure, OSError) and failure.errno in (errno.ENOSPC, errno.EDQUOT):
        return StorageError(
            message,
            _native_details(failure),
            code=ErrorCode.STORAGE_QUOTA_EXCEEDED,
            context=context,
        )

    return AppError(default_code or ErrorCode.UNKNOWN, message, _native_details(failure), context=context)


def normalize_llm_error(failure: Any) -> AppError:
    """为 LLM 类错误换上统一的用户提示文案。"""

    err = classify(failure)
    if err.code == ErrorCode.MODEL_NOT_FOUND:
        return LlmError(err.code, "选择的模型不存在，请检查模型列表。", err.details, context=err.context)
    if err.code == ErrorCode.RATE_LIMITED:
        return LlmError(err.code, "已达到速率限制，请稍后再试。", err.details, context=err.context)
    if err.code == ErrorCode.INVALID_RESPONSE:
        return LlmError(err.code, "LLM 返回了无效的响应。", err.details, context=err.context)
    return err


def normalize_validation_error(failure: Any) -> AppError:
    """为校验类错误换上统一的用户提示文案。"""

    err = classify(failure)
    if err.code == ErrorCode.TEXT_TOO_LONG:
        max_length = MAX_TEXT_LENGTH
        if isinstance(err.details, dict):
            max_length = err.details.get("maxLength") or MAX_TEXT_LENGTH
        return ValidationError(f"文本过长（最多 {max_length} 个字符）", err.details, code=err.code)
    if err.code == ErrorCode.INVALID_ID:
        return ValidationError("无效的 ID。", err.details, code=err.code)
    if err.code == ErrorCode.VALIDATION_ERROR:
        return ValidationError(err.message or "参数校验失败。", err.details)
    return err
