"""Domain errors for redisops."""

from typing import Optional


class RedisOpsError(RuntimeError):
    """Base class for every failure raised by redisops."""


class ConfigurationError(RedisOpsError):
    """Raised when the configuration file or CLI options are unusable."""


class ConnectionFailedError(RedisOpsError):
    """Raised when a connection cannot be established or the probe fails."""


class ParameterValidationError(RedisOpsError):
    """Raised before any store call when an item's parameters are invalid."""


class UnknownOperationError(ParameterValidationError):
    """Raised when an operation id is not part of the registry."""


class StoreProtocolError(RedisOpsError):
    """Raised when the store rejects or fails a command."""


class ItemExecutionError(RedisOpsError):
    """Raised when a non-isolated item failure aborts the whole run."""

    def __init__(self, message: str, item_index: Optional[int] = None):
        super().__init__(message)
        self.item_index = item_index
