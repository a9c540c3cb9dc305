"""
toolgate - the execution gateway between an LLM and a developer workspace.

A model-generated tool call goes through three steps:

1. Validation: the raw parameter bag is type-checked and every path is
   resolved against the workspace sandbox
2. Execution: file, search, terminal or network work, with cooperative
   cancellation for anything slow
3. Serialization: the structured result becomes deterministic text for the
   model's context

Failures at any step come back to the model as readable messages, never as
exceptions past the call boundary.
"""

__version__ = "0.1.0"

from toolgate.cache import TTLCache
from toolgate.cancellation import CancellationToken
from toolgate.config import (
    FileToolConfig,
    GatewayConfig,
    LLMConfig,
    NetworkConfig,
    TerminalConfig,
)
from toolgate.danger import DangerLevel, classify
from toolgate.errors import (
    ExecutionError,
    NetworkUnavailableError,
    ResourceBusyError,
    ToolGatewayError,
    ValidationError,
)
from toolgate.events import CallTrace, EventLog, EventType, GatewayEvent
from toolgate.gateway import PendingToolCall, ToolGateway
from toolgate.schemas import TOOL_SCHEMAS, get_tool_schemas
from toolgate.secret_scanner import SecretScanner
from toolgate.types import Resource, ResolveReason, ToolCall, ToolName, ToolResult
from toolgate.workspace import Workspace

__all__ = [
    "ToolGateway",
    "PendingToolCall",
    "Workspace",
    "Resource",
    "ToolName",
    "ToolCall",
    "ToolResult",
    "ResolveReason",
    "GatewayConfig",
    "TerminalConfig",
    "NetworkConfig",
    "FileToolConfig",
    "LLMConfig",
    "CancellationToken",
    "TTLCache",
    "DangerLevel",
    "classify",
    "SecretScanner",
    "CallTrace",
    "EventLog",
    "EventType",
    "GatewayEvent",
    "TOOL_SCHEMAS",
    "get_tool_schemas",
    "ToolGatewayError",
    "ValidationError",
    "ExecutionError",
    "NetworkUnavailableError",
    "ResourceBusyError",
]
