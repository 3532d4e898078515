"""promptkernel exception hierarchy.

All promptkernel-specific exceptions inherit from PromptKernelError,
enabling structured error handling and cleaner catch clauses.
"""


class PromptKernelError(Exception):
    """Base exception for all promptkernel errors."""

    def __init__(self, message: str = "", *, retryable: bool = False) -> None:
        super().__init__(message)
        self.retryable = retryable


class InvalidRequestError(PromptKernelError):
    """Execution settings cannot be turned into a provider request."""


class ProviderError(PromptKernelError):
    """Error communicating with an LLM provider."""

    def __init__(self, message: str = "", *, retryable: bool = True) -> None:
        super().__init__(message, retryable=retryable)


class ToolError(PromptKernelError):
    """Error executing a tool."""


class ConfigError(PromptKernelError):
    """Invalid or missing configuration."""
