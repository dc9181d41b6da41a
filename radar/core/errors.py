# radar/core/errors.py


class RadarError(Exception):
    """Base class for errors raised by the radar pipeline."""


class NotInitializedError(RadarError, RuntimeError):
    """Pipeline used before its persisted state was loaded."""


class ProviderError(RadarError):
    """An RPC request to the chain provider failed (transient, retryable)."""

    def __init__(self, method: str, cause: BaseException):
        super().__init__(f"{method} failed: {cause}")
        self.method = method
        self.cause = cause


class RetryBudgetExhausted(RadarError):
    """Historical scan gave up on a block after spending its retry budget."""

    def __init__(self, block_number: int, attempts: int, cause: BaseException):
        super().__init__(f"block {block_number}: retry attempts exceeded ({attempts}): {cause}")
        self.block_number = block_number
        self.attempts = attempts
        self.cause = cause


class StorageError(RadarError):
    """Persisted data cannot be used."""
