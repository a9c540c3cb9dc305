"""Exceptions raised inside the gateway.

None of these escape ToolGateway.call(); they are turned into failed
ToolResults whose message is shown to the model so it can self-correct.
"""


class ToolGatewayError(Exception):
    """Base class for gateway errors."""
    pass


class ValidationError(ToolGatewayError):
    """Raised when a raw parameter is missing, malformed, or outside the sandbox."""
    pass


class ExecutionError(ToolGatewayError):
    """Raised when a validated tool call fails while running."""
    pass


class NetworkUnavailableError(ExecutionError):
    """Raised when a network tool is called in offline or privacy mode."""
    pass


class ResourceBusyError(ToolGatewayError):
    """Raised when another writer is already streaming changes into a file."""
    pass
