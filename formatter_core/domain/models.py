"""进程边界上共享的数据模型。

本模块定义 UI 进程与命令核心之间交换的标准结构：

- FormatOptions: 整形选项（去除口头禅、推断段落等）。
- ModelInfo: 一个可选的 LLM 模型。
- HistoryItem: 一条整形历史记录，创建后不可变。
- WindowBounds: 窗口位置与尺寸。
- ErrorInfo / SuccessEnvelope / FailureEnvelope: 统一的成功/失败响应信封。

线上字段统一使用 camelCase（originalText、modelUsed ...），
Python 侧使用 snake_case，两者通过 alias 自动转换。
"""

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


Provider = Literal["ollama", "lmstudio", "llamacpp"]
LlmProvider = Literal["ollama", "lmstudio", "llamacpp", "auto"]


class WireModel(BaseModel):
    """所有边界模型的基类：camelCase 别名，忽略未知字段。"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        protected_namespaces=(),
    )

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class FormatOptions(WireModel):
    remove_fillers: Optional[bool] = None
    infer_paragraphs: Optional[bool] = None
    make_bullet_points: Optional[bool] = None
    custom_instruction: Optional[str] = Field(default=None, max_length=500)


class ModelInfo(WireModel):
    """一个可选的 LLM 模型；id 在 customModels 集合内唯一。"""

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    provider: Provider
    context_window: Optional[int] = Field(default=None, gt=0)


class HistoryItem(WireModel):
    """一条整形历史。"""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    original_text: str
    formatted_text: str
    model_used: str
    # 毫秒时间戳，整数原样保留，也接受小数
    timestamp: Union[int, float]
    options: Optional[FormatOptions] = None


class WindowBounds(WireModel):
    x: int
    y: int
    width: int = Field(ge=0)
    height: int = Field(ge=0)


class ErrorInfo(WireModel):
    """UI 可见的错误三元组，只由异常层（AppError.to_info）创建。"""

    code: str
    message: str
    details: Any = None


class SuccessEnvelope(WireModel):
    success: Literal[True] = True
    data: Any = None

    def to_wire(self) -> dict:
        # data 可以合法地为 None（例如 selectedModel 未设置），不能被 exclude_none 丢掉
        return {"success": True, "data": self.data}


class FailureEnvelope(WireModel):
    success: Literal[False] = False
    error: ErrorInfo

    def to_wire(self) -> dict:
        return {"success": False, "error": self.error.to_wire()}
