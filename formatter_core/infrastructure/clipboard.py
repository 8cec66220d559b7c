"""系统剪贴板写入。

默认实现交给 pyperclip：它调用平台自带的剪贴板工具
（pbcopy / xclip / xsel / wl-copy / Win32 API），由这些外部进程持有剪贴板内容，
因此可以在任意线程调用，调用返回后内容仍然有效。
"""

from typing import Protocol

import pyperclip

from formatter_core.domain.exceptions import AppError, ErrorCode


class Clipboard(Protocol):
    def write_text(self, text: str) -> None:
        """写入失败时抛出 AppError。"""
        ...


class SystemClipboard:
    def write_text(self, text: str) -> None:
        try:
            pyperclip.copy(text)
        except pyperclip.PyperclipException as e:
            raise AppError(
                ErrorCode.UNKNOWN,
                "无法写入系统剪贴板。",
                {"type": type(e).__name__, "reason": str(e)},
            )
