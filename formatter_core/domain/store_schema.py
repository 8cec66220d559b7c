"""持久化存储的键与类型表。

每个 StoreKey 对应唯一一个静态值类型（STORE_SCHEMA），
写入前用该类型的 TypeAdapter 校验，保证 set 永远不会改变某个键的声明类型。
"""

from contextlib import AbstractContextManager
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Callable, Dict, List, Optional, Protocol

from pydantic import AfterValidator, Field, TypeAdapter

from .models import FormatOptions, HistoryItem, LlmProvider, ModelInfo, WindowBounds


DEFAULT_LLM_BASE_URL = "http://localhost:11434"
DEFAULT_MODEL = "llama3:8b-instruct"
DEFAULT_MAX_HISTORY_ITEMS = 20


class StoreKey(str, Enum):
    SELECTED_MODEL = "selectedModel"
    DEFAULT_MODEL = "defaultModel"
    MAX_HISTORY_ITEMS = "maxHistoryItems"
    FORMAT_OPTIONS = "formatOptions"
    LLM_BASE_URL = "llmBaseUrl"
    LLM_API_KEY = "llmApiKey"
    LLM_PROVIDER = "llmProvider"
    HISTORY = "history"
    CUSTOM_MODELS = "customModels"
    WINDOW_BOUNDS = "windowBounds"
    CUSTOM_PROMPT_TEMPLATE = "customPromptTemplate"
    SCHEMA_VERSION = "schemaVersion"


def _unique_model_ids(models: List[ModelInfo]) -> List[ModelInfo]:
    seen = set()
    for m in models:
        if m.id in seen:
            raise ValueError(f"duplicate model id: {m.id}")
        seen.add(m.id)
    return models


CustomModels = Annotated[List[ModelInfo], AfterValidator(_unique_model_ids)]


@dataclass(frozen=True)
class StoreField:
    """单个键的声明：值类型 + 默认值工厂。"""

    key: StoreKey
    annotation: Any
    default: Callable[[], Any]

    @property
    def adapter(self) -> TypeAdapter:
        return _ADAPTERS[self.key]


STORE_SCHEMA: Dict[StoreKey, StoreField] = {
    f.key: f
    for f in (
        StoreField(StoreKey.SELECTED_MODEL, Optional[str], lambda: None),
        StoreField(StoreKey.DEFAULT_MODEL, Annotated[str, Field(min_length=1)], lambda: DEFAULT_MODEL),
        StoreField(StoreKey.MAX_HISTORY_ITEMS, Annotated[int, Field(ge=0, strict=True)], lambda: DEFAULT_MAX_HISTORY_ITEMS),
        StoreField(StoreKey.FORMAT_OPTIONS, FormatOptions, FormatOptions),
        StoreField(StoreKey.LLM_BASE_URL, str, lambda: DEFAULT_LLM_BASE_URL),
        StoreField(StoreKey.LLM_API_KEY, Optional[str], lambda: None),
        StoreField(StoreKey.LLM_PROVIDER, LlmProvider, lambda: "auto"),
        StoreField(StoreKey.HISTORY, List[HistoryItem], list),
        StoreField(StoreKey.CUSTOM_MODELS, CustomModels, list),
        StoreField(StoreKey.WINDOW_BOUNDS, Optional[WindowBounds], lambda: None),
        StoreField(StoreKey.CUSTOM_PROMPT_TEMPLATE, Optional[str], lambda: None),
        StoreField(StoreKey.SCHEMA_VERSION, Annotated[int, Field(ge=0, strict=True)], lambda: 0),
    )
}

_ADAPTERS: Dict[StoreKey, TypeAdapter] = {k: TypeAdapter(f.annotation) for k, f in STORE_SCHEMA.items()}

# UI 通过 store:get / store:set 可以直接读写的键
UI_EXPOSED_KEYS = (
    StoreKey.SELECTED_MODEL,
    StoreKey.DEFAULT_MODEL,
    StoreKey.MAX_HISTORY_ITEMS,
    StoreKey.FORMAT_OPTIONS,
    StoreKey.LLM_BASE_URL,
    StoreKey.LLM_API_KEY,
)


def build_defaults(llm_base_url: Optional[str] = None, llm_api_key: Optional[str] = None) -> Dict[str, Any]:
    """生成首次启动时写入文件的默认值（JSON 形式）。

    llmBaseUrl / llmApiKey 取自进程环境变量，只在首次初始化时读取一次。
    """

    data: Dict[str, Any] = {}
    for key, field in STORE_SCHEMA.items():
        data[key.value] = field.adapter.dump_python(field.default(), mode="json", by_alias=True, exclude_none=True)
    if llm_base_url:
        data[StoreKey.LLM_BASE_URL.value] = llm_base_url
    if llm_api_key:
        data[StoreKey.LLM_API_KEY.value] = llm_api_key
    return data


class SettingsStore(Protocol):
    def get(self, key: StoreKey) -> Any:
        ...

    def set(self, key: StoreKey, value: Any) -> None:
        ...

    def update(self, key: StoreKey, func: Callable[[Any], Any]) -> Any:
        ...

    def locked(self) -> AbstractContextManager:
        ...
