"""UI 进程与命令核心之间的命令边界（目录、校验、分发、handler）。"""

from .dispatcher import CommandDispatcher, CommandRegistrationError
from .schemas import COMMANDS

__all__ = ["COMMANDS", "CommandDispatcher", "CommandRegistrationError"]
