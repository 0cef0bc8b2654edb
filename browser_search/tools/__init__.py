from .tool import Tool, ToolUsageError

__all__ = ["Tool", "ToolUsageError"]
