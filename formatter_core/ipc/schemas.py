"""命令目录与每个命令的请求/响应 schema。

COMMANDS 是启动时构建一次的只读映射：命令名 -> (请求模型, 响应模型)。
响应模型为 None 表示返回值的类型由请求决定（store:get）。
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, List, Mapping, Optional, Type

from pydantic import BaseModel, Field, field_validator, model_validator

from formatter_core.domain.exceptions import MAX_TEXT_LENGTH
from formatter_core.domain.models import FormatOptions, HistoryItem, ModelInfo, Provider, WireModel
from formatter_core.domain.store_schema import STORE_SCHEMA, UI_EXPOSED_KEYS, StoreKey


# ---- 请求 ----


class EmptyRequest(WireModel):
    """无参数命令；传入的任何字段都被忽略。"""


class ModelsListRequest(WireModel):
    refresh: Optional[bool] = None


class ModelsAddRequest(WireModel):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    provider: Provider
    base_url: Optional[str] = Field(default=None, pattern=r"^https?://[^\s/]+\S*$")


class ModelsRemoveRequest(WireModel):
    id: str = Field(min_length=1)


class LlmFormatRequest(WireModel):
    text: str = Field(min_length=1, max_length=MAX_TEXT_LENGTH)
    model_id: str = Field(min_length=1)
    options: Optional[FormatOptions] = None


class ClipboardCopyRequest(WireModel):
    text: str = Field(min_length=1)


class StoreGetRequest(WireModel):
    key: StoreKey

    @field_validator("key")
    @classmethod
    def exposed_key(cls, key: StoreKey) -> StoreKey:
        if key not in UI_EXPOSED_KEYS:
            raise ValueError(f"key {key.value!r} is not accessible")
        return key


class StoreSetRequest(StoreGetRequest):
    # 必填；显式 null 对可选键表示清空
    value: Any

    @model_validator(mode="after")
    def value_matches_key_type(self) -> "StoreSetRequest":
        adapter = STORE_SCHEMA[self.key].adapter
        try:
            self.value = adapter.validate_python(self.value)
        except ValueError as e:
            raise ValueError(f"value does not match the declared type of {self.key.value!r}: {e}")
        return self


class StoreSaveHistoryRequest(WireModel):
    item: HistoryItem


# ---- 响应 ----


class ModelsListResponse(WireModel):
    models: List[ModelInfo]
    default_model: Optional[str] = None


class ModelsRemoveResponse(WireModel):
    removed: bool


class LlmFormatResponse(WireModel):
    formatted_text: str
    model_used: str
    timestamp: int


class ClipboardCopyResponse(WireModel):
    copied: bool


class StoreSetResponse(WireModel):
    saved: bool


class StoreGetHistoryResponse(WireModel):
    items: List[HistoryItem]
    total: int


class StoreSaveHistoryResponse(WireModel):
    saved: bool
    total_items: int


class StoreClearHistoryResponse(WireModel):
    cleared: bool


class AppGetVersionResponse(WireModel):
    version: str
    host_runtime_version: str


# ---- 命令目录 ----


@dataclass(frozen=True)
class CommandSpec:
    name: str
    request: Type[BaseModel]
    response: Optional[Type[BaseModel]]


COMMANDS: Mapping[str, CommandSpec] = MappingProxyType(
    {
        spec.name: spec
        for spec in (
            CommandSpec("models:list", ModelsListRequest, ModelsListResponse),
            CommandSpec("models:add", ModelsAddRequest, ModelInfo),
            CommandSpec("models:remove", ModelsRemoveRequest, ModelsRemoveResponse),
            CommandSpec("llm:format", LlmFormatRequest, LlmFormatResponse),
            CommandSpec("clipboard:copy", ClipboardCopyRequest, ClipboardCopyResponse),
            CommandSpec("store:get", StoreGetRequest, None),
            CommandSpec("store:set", StoreSetRequest, StoreSetResponse),
            CommandSpec("store:getHistory", EmptyRequest, StoreGetHistoryResponse),
            CommandSpec("store:saveHistory", StoreSaveHistoryRequest, StoreSaveHistoryResponse),
            CommandSpec("store:clearHistory", EmptyRequest, StoreClearHistoryResponse),
            CommandSpec("app:getVersion", EmptyRequest, AppGetVersionResponse),
        )
    }
)
