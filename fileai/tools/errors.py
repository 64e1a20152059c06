"""Error taxonomy for the chunked completion pipeline."""
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Classification of a provider failure, derived from its error code."""
    RATE_LIMITED = "rate_limited"
    PROVIDER = "provider"


class CompletionError(Exception):
    """Raised by a completion client when the provider call fails."""

    def __init__(self, kind: ErrorKind, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.code = code

    @property
    def is_rate_limited(self) -> bool:
        return self.kind is ErrorKind.RATE_LIMITED


class PipelineError(Exception):
    """Terminal failure of a pipeline call. No partial output survives it."""
    error = "pipeline_error"

    def __init__(self, chunk_index: int, kind: ErrorKind, message: str):
        super().__init__(f"chunk {chunk_index}: {message}")
        self.chunk_index = chunk_index
        self.kind = kind
        self.message = message

    def to_dict(self) -> dict:
        """Failure value for callers that report errors to their own clients."""
        return {
            "error": self.error,
            "kind": self.kind.value,
            "chunk_index": self.chunk_index,
            "message": self.message,
        }


class RetryBudgetExhausted(PipelineError):
    """Chunk stayed rate limited for every allowed attempt."""
    error = "retry_budget_exhausted"

    def __init__(self, chunk_index: int, attempts: int, message: str = "rate limit exceeded"):
        super().__init__(chunk_index, ErrorKind.RATE_LIMITED, message)
        self.attempts = attempts

    def __str__(self) -> str:
        return (
            f"retry budget exhausted on chunk {self.chunk_index} "
            f"after {self.attempts} attempts: {self.message}"
        )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["attempts"] = self.attempts
        return data


class ProviderFailure(PipelineError):
    """Non-retryable provider failure (invalid request, policy rejection, network)."""
    error = "provider_error"

    def __init__(self, chunk_index: int, message: str, code: Optional[int] = None):
        super().__init__(chunk_index, ErrorKind.PROVIDER, message)
        self.code = code

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["code"] = self.code
        return data


class UnsupportedFileType(ValueError):
    """Upload has an extension the file actions cannot read."""
