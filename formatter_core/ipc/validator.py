"""请求参数校验。

在任何 handler 副作用之前执行；所有拒绝路径都收敛为 ValidationError，
错误码按失败原因细化：
- text 超长 -> text-too-long（details.maxLength）
- 仅顶层 id / modelId 不合法 -> invalid-id
- 其他 -> validation-error
"""

from typing import Any, Dict, List, Type, TypeVar

import pydantic
from pydantic import BaseModel

from formatter_core.domain.exceptions import MAX_TEXT_LENGTH, ErrorCode, ValidationError

from .schemas import COMMANDS


M = TypeVar("M", bound=BaseModel)

_ID_FIELDS = {"id", "modelId", "model_id"}


def validate(command: str, raw_payload: Any) -> BaseModel:
    """按命令名查找请求 schema 并校验。"""

    spec = COMMANDS.get(command)
    if spec is None:
        raise ValidationError(f"Unknown command: {command}", {"command": command})
    return validate_payload(spec.request, raw_payload)


def validate_payload(schema: Type[M], raw_payload: Any) -> M:
    payload = {} if raw_payload is None else raw_payload
    try:
        return schema.model_validate(payload)
    except pydantic.ValidationError as e:
        raise _to_app_error(
            e.errors(include_url=False, include_context=False, include_input=False),
            e.errors(include_url=False, include_input=False),
        )
    except Exception as e:  # noqa: BLE001 - 校验必须是全函数，任何异常都转换为校验错误
        raise ValidationError(str(e) or "参数校验失败。", {"type": type(e).__name__})


def _to_app_error(errors: List[Dict[str, Any]], full_errors: List[Dict[str, Any]]) -> ValidationError:
    details: Dict[str, Any] = {"errors": errors}
    for err in full_errors:
        loc = err.get("loc") or ()
        if loc and loc[0] == "text" and err.get("type") == "string_too_long":
            max_length = (err.get("ctx") or {}).get("max_length", MAX_TEXT_LENGTH)
            return ValidationError(
                f"文本过长（最多 {max_length} 个字符）",
                {**details, "maxLength": max_length},
                code=ErrorCode.TEXT_TOO_LONG,
            )
    if errors and all(len(err.get("loc") or ()) == 1 and err["loc"][0] in _ID_FIELDS for err in errors):
        return ValidationError("无效的 ID。", details, code=ErrorCode.INVALID_ID)
    return ValidationError(_summary(errors), details)


def _summary(errors: List[Dict[str, Any]]) -> str:
    if not errors:
        return "参数校验失败。"
    first = errors[0]
    where = ".".join(str(p) for p in first.get("loc") or ()) or "payload"
    more = f"（另有 {len(errors) - 1} 处错误）" if len(errors) > 1 else ""
    return f"{where}: {first.get('msg')}{more}"
