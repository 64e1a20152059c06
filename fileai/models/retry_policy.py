"""Retry and pacing policy for provider calls."""
from pydantic import BaseModel, field_validator


class RetryPolicy(BaseModel):
    """
    Per-chunk retry budget and the two pipeline timers.

    base_delay drives exponential backoff after a rate-limit rejection;
    inter_request_delay is the fixed pause after every successful chunk.
    Both are in seconds.
    """
    max_retries: int = 3  # total attempts per chunk
    base_delay: float = 1.0
    inter_request_delay: float = 1.0

    @field_validator('max_retries')
    @classmethod
    def validate_max_retries(cls, v: int) -> int:
        if v < 1:
            raise ValueError('max_retries must be at least 1')
        return v

    @field_validator('base_delay', 'inter_request_delay')
    @classmethod
    def validate_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError('delays must be non-negative')
        return v
