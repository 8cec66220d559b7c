"""Formatter Core 顶层包。

该包实现转写文本整形工具主进程侧的命令核心：
命令分发与参数校验、统一错误模型与重试、
带版本迁移的本地持久化存储以及有上限的整形历史。
"""

__version__ = "0.1.0"

from formatter_core.api.service import Application  # noqa: E402

__all__ = ["Application", "__version__"]
