"""命令分发器。

dispatch() 是命令的唯一入口，按固定顺序组合：
校验 -> handler -> 响应 schema -> 信封；任何失败都经 classify() 转换、
写入错误日志后再放进失败信封。handler 只返回普通值（或 Ok/Err），从不自己构造信封。
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Type

import pydantic
from pydantic import BaseModel
from pydantic_core import to_jsonable_python

from formatter_core.domain.exceptions import AppError, ErrorCode, classify
from formatter_core.domain.models import FailureEnvelope, SuccessEnvelope
from formatter_core.domain.result import Err, Ok
from formatter_core.infrastructure.logging.logger import log_error, logger

from .schemas import COMMANDS, CommandSpec
from .validator import validate_payload


Handler = Callable[[BaseModel], Any]


class CommandRegistrationError(Exception):
    """命令注册阶段的配置错误（未知命令、重复注册、schema 不一致、缺少 handler）。"""


@dataclass(frozen=True)
class RegisteredCommand:
    name: str
    request_schema: Type[BaseModel]
    response_schema: Optional[Type[BaseModel]]
    handler: Handler


class CommandDispatcher:
    def __init__(self, catalog: Mapping[str, CommandSpec] = COMMANDS, *, log_dir: Optional[Path] = None):
        self._catalog = catalog
        self._commands: Dict[str, RegisteredCommand] = {}
        self._log_dir = log_dir
        self._armed = False

    @property
    def armed(self) -> bool:
        return self._armed

    @property
    def command_names(self) -> list[str]:
        return sorted(self._commands)

    def register(
        self,
        name: str,
        request_schema: Type[BaseModel],
        handler: Handler,
        response_schema: Optional[Type[BaseModel]] = None,
    ) -> None:
        if self._armed:
            raise CommandRegistrationError(f"Dispatcher already armed, cannot register {name!r}")
        spec = self._catalog.get(name)
        if spec is None:
            raise CommandRegistrationError(f"Unknown command: {name!r}")
        if name in self._commands:
            raise CommandRegistrationError(f"Command registered twice: {name!r}")
        if request_schema is not spec.request:
            raise CommandRegistrationError(
                f"Request schema for {name!r} must be {spec.request.__name__}, got {request_schema.__name__}"
            )
        self._commands[name] = RegisteredCommand(
            name=name,
            request_schema=request_schema,
            response_schema=response_schema or spec.response,
            handler=handler,
        )

    def arm(self) -> None:
        """确认目录中的每个命令都已注册，然后开始接受请求。"""

        missing = sorted(set(self._catalog) - set(self._commands))
        if missing:
            raise CommandRegistrationError(f"Commands without handler: {', '.join(missing)}")
        self._armed = True
        logger.info(f"dispatcher armed with {len(self._commands)} commands")

    def dispatch(self, name: str, raw_payload: Any = None) -> dict:
        try:
            command = self._lookup(name)
            request = validate_payload(command.request_schema, raw_payload)
            result = command.handler(request)
            if isinstance(result, Err):
                result.unwrap()
            if isinstance(result, Ok):
                result = result.value
            data = self._serialize(command, result)
        except Exception as exc:  # noqa: BLE001 - 边界处所有失败都要转换为失败信封
            error = classify(exc)
            log_error(error, self._log_dir)
            return FailureEnvelope(error=error.to_info()).to_wire()
        return SuccessEnvelope(data=data).to_wire()

    def _lookup(self, name: str) -> RegisteredCommand:
        if not self._armed:
            raise AppError(ErrorCode.UNKNOWN, "命令分发器尚未就绪。", {"command": name})
        command = self._commands.get(name)
        if command is None:
            raise AppError(ErrorCode.UNKNOWN, f"Unknown command: {name}", {"command": name})
        return command

    @staticmethod
    def _serialize(command: RegisteredCommand, result: Any) -> Any:
        schema = command.response_schema
        if schema is None:
            return to_jsonable_python(result, by_alias=True, exclude_none=True)
        try:
            model = result if isinstance(result, schema) else schema.model_validate(result)
        except pydantic.ValidationError as e:
            raise AppError(
                ErrorCode.UNKNOWN,
                f"Handler for {command.name} returned a malformed response",
                {"errors": e.errors(include_url=False, include_context=False, include_input=False)},
            )
        return model.model_dump(mode="json", by_alias=True, exclude_none=True)
