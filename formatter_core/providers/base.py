"""文本整形后端抽象接口。

命令核心不直接依赖任何 LLM SDK，而是依赖此协议：
llm:format 在注入了实现时通过重试引擎调用 format_text()，
实现方可以直接抛出 httpx 异常，classify() 会把它们映射为网络类错误码。
"""

from typing import Optional, Protocol

from formatter_core.domain.models import FormatOptions


class TextFormatter(Protocol):
    """LLM 整形后端协议。

    - name: 后端名称，用于日志。
    - format_text(...): 返回整形后的文本。
    """

    name: str

    def format_text(self, text: str, model_id: str, options: Optional[FormatOptions] = None) -> str:
        ...
