from .app import CountlyApp
from .context import InvocationContext
from .prompt import (
    PromptArgument,
    PromptDefinition,
    PromptMessage,
    PromptResult,
    ResourceContent,
    ResourceDefinition,
)
from .tool import ToolContent, ToolDefinition, ToolResult

__all__ = [
    "CountlyApp",
    "InvocationContext",
    "PromptArgument",
    "PromptDefinition",
    "PromptMessage",
    "PromptResult",
    "ResourceContent",
    "ResourceDefinition",
    "ToolContent",
    "ToolDefinition",
    "ToolResult",
]
