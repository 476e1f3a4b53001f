"""
Executor Infrastructure Module
Configuration, errors, chain access and the agent store transport
"""

from .errors import (
    ExecutorError,
    ValidationError,
    NotFoundError,
    StoreError,
    ConfigurationError,
    UnknownAgentTypeError,
    ChainError,
    ChainTimeoutError,
    TransactionRevertedError,
    QuoteError,
    InsufficientBalanceError,
    ErrorCode,
    ErrorTracker,
    error_tracker,
    register_exception_handlers,
)

from .config import (
    ExecutorConfig,
    Environment,
    SecretsManager,
    config,
    secrets,
    get_config,
    get_secrets,
    reload_config,
)

__all__ = [
    # Errors
    "ExecutorError",
    "ValidationError",
    "NotFoundError",
    "StoreError",
    "ConfigurationError",
    "UnknownAgentTypeError",
    "ChainError",
    "ChainTimeoutError",
    "TransactionRevertedError",
    "QuoteError",
    "InsufficientBalanceError",
    "ErrorCode",
    "ErrorTracker",
    "error_tracker",
    "register_exception_handlers",

    # Config
    "ExecutorConfig",
    "Environment",
    "SecretsManager",
    "config",
    "secrets",
    "get_config",
    "get_secrets",
    "reload_config",
]
