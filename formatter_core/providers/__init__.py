"""LLM 后端集成层。

当前只定义后端协议 (base)，具体的 HTTP 客户端不在本包内实现。
"""

from formatter_core.providers.base import TextFormatter

__all__ = ["TextFormatter"]
