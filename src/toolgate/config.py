"""
Configuration for the tool gateway.

All configuration is loaded from environment variables. Workspace roots are
the exception: they are always passed explicitly, because the sandbox
boundary must never depend on whatever environment the process inherited.

Every window and cap here is an upper bound the gateway enforces, not a
hint to collaborators.
"""

import os
from dataclasses import dataclass, field


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class TerminalConfig:
    """
    Configuration for terminal runs.

    inactive_seconds is the window after which a temporary run with no new
    output is killed and resolved as a timeout. background_check_seconds is
    how long run_persistent_command waits before handing back partial output.
    """
    inactive_seconds: float = 8.0
    background_check_seconds: float = 5.0
    max_output_chars: int = 20000
    shell: str = "/bin/sh"

    @classmethod
    def from_env(cls) -> "TerminalConfig":
        """Load configuration from environment variables."""
        return cls(
            inactive_seconds=float(os.getenv("TOOLGATE_TERMINAL_INACTIVE_SECONDS", "8")),
            background_check_seconds=float(os.getenv("TOOLGATE_TERMINAL_BACKGROUND_SECONDS", "5")),
            max_output_chars=int(os.getenv("TOOLGATE_TERMINAL_MAX_OUTPUT_CHARS", "20000")),
            shell=os.getenv("TOOLGATE_TERMINAL_SHELL", "/bin/sh"),
        )


@dataclass
class NetworkConfig:
    """
    Configuration for web_search and browse_url.

    offline and privacy_mode both close the network gate before any cache
    lookup happens.
    """
    offline: bool = False
    privacy_mode: bool = False
    headless_browsing: bool = True
    cache_capacity: int = 100
    cache_ttl_seconds: float = 3600.0
    search_timeout_seconds: float = 10.0
    fetch_timeout_seconds: float = 15.0
    retry_delay_seconds: float = 0.5
    max_browse_chars: int = 50000
    user_agent: str = "toolgate/0.1 (+https://github.com/toolgate/toolgate)"

    @classmethod
    def from_env(cls) -> "NetworkConfig":
        """Load configuration from environment variables."""
        return cls(
            offline=_env_bool("TOOLGATE_OFFLINE", False),
            privacy_mode=_env_bool("TOOLGATE_PRIVACY_MODE", False),
            headless_browsing=_env_bool("TOOLGATE_HEADLESS_BROWSING", True),
            cache_capacity=int(os.getenv("TOOLGATE_CACHE_CAPACITY", "100")),
            cache_ttl_seconds=float(os.getenv("TOOLGATE_CACHE_TTL_SECONDS", "3600")),
            search_timeout_seconds=float(os.getenv("TOOLGATE_SEARCH_TIMEOUT_SECONDS", "10")),
            fetch_timeout_seconds=float(os.getenv("TOOLGATE_FETCH_TIMEOUT_SECONDS", "15")),
            retry_delay_seconds=float(os.getenv("TOOLGATE_RETRY_DELAY_SECONDS", "0.5")),
            max_browse_chars=int(os.getenv("TOOLGATE_MAX_BROWSE_CHARS", "50000")),
        )


@dataclass
class FileToolConfig:
    """Page sizes and settle delays for the file and search tools."""
    file_page_chars: int = 500000
    children_page_size: int = 500
    max_dir_tree_chars: int = 20000
    edit_lint_delay_seconds: float = 2.0
    read_lint_delay_seconds: float = 1.0
    max_lint_items: int = 100
    include_lint_errors: bool = True
    browse_display_chars: int = 10000

    @classmethod
    def from_env(cls) -> "FileToolConfig":
        """Load configuration from environment variables."""
        return cls(
            file_page_chars=int(os.getenv("TOOLGATE_FILE_PAGE_CHARS", "500000")),
            children_page_size=int(os.getenv("TOOLGATE_CHILDREN_PAGE_SIZE", "500")),
            max_dir_tree_chars=int(os.getenv("TOOLGATE_MAX_DIR_TREE_CHARS", "20000")),
            edit_lint_delay_seconds=float(os.getenv("TOOLGATE_EDIT_LINT_DELAY_SECONDS", "2")),
            read_lint_delay_seconds=float(os.getenv("TOOLGATE_READ_LINT_DELAY_SECONDS", "1")),
            max_lint_items=int(os.getenv("TOOLGATE_MAX_LINT_ITEMS", "100")),
            include_lint_errors=_env_bool("TOOLGATE_INCLUDE_LINT_ERRORS", True),
            browse_display_chars=int(os.getenv("TOOLGATE_BROWSE_DISPLAY_CHARS", "10000")),
        )


@dataclass
class LLMConfig:
    """Configuration for the natural-language shell translator's LLM endpoint."""
    base_url: str
    api_key: str
    model: str
    temperature: float = 0.0
    max_tokens: int = 256
    timeout_seconds: float = 30.0

    @classmethod
    def from_env(cls) -> "LLMConfig":
        """Load configuration from environment variables."""
        return cls(
            base_url=os.getenv("LLM_BASE_URL", "http://localhost:8000/v1"),
            api_key=os.getenv("LLM_API_KEY", ""),
            model=os.getenv("LLM_MODEL", ""),
            temperature=float(os.getenv("LLM_TEMPERATURE", "0.0")),
            max_tokens=int(os.getenv("LLM_MAX_TOKENS", "256")),
            timeout_seconds=float(os.getenv("LLM_TIMEOUT_SECONDS", "30")),
        )


@dataclass
class GatewayConfig:
    """Combined configuration for a ToolGateway."""
    terminal: TerminalConfig = field(default_factory=TerminalConfig)
    network: NetworkConfig = field(default_factory=NetworkConfig)
    files: FileToolConfig = field(default_factory=FileToolConfig)
    llm: LLMConfig | None = None

    @classmethod
    def from_env(cls) -> "GatewayConfig":
        """Load all sections from environment variables."""
        return cls(
            terminal=TerminalConfig.from_env(),
            network=NetworkConfig.from_env(),
            files=FileToolConfig.from_env(),
            llm=LLMConfig.from_env(),
        )
