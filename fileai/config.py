"""Environment-driven settings for the file-processing backend."""
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

from fileai.models.retry_policy import RetryPolicy


class Settings(BaseModel):
    """Runtime configuration, normally built from environment variables."""
    google_api_key: Optional[str] = None
    chat_model: str = "gemini-2.0-flash"
    max_chunk_tokens: int = 3000
    max_output_tokens: int = 2000
    max_retries: int = 3
    base_delay_seconds: float = 1.0
    inter_request_delay_seconds: float = 1.0
    uploads_dir: Path = Path("storage/uploads")

    @field_validator('max_chunk_tokens', 'max_output_tokens')
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Ensure token limits are positive."""
        if v <= 0:
            raise ValueError('token limits must be positive')
        return v

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        """
        Build settings from the environment (and .env when dotenv=True).

        Unset variables fall back to the field defaults.
        """
        if dotenv:
            load_dotenv()

        env_map = {
            "google_api_key": "GOOGLE_API_KEY",
            "chat_model": "CHAT_MODEL",
            "max_chunk_tokens": "MAX_CHUNK_TOKENS",
            "max_output_tokens": "MAX_OUTPUT_TOKENS",
            "max_retries": "MAX_RETRIES",
            "base_delay_seconds": "BASE_DELAY_SECONDS",
            "inter_request_delay_seconds": "INTER_REQUEST_DELAY_SECONDS",
            "uploads_dir": "UPLOADS_DIR",
        }
        values = {
            field: os.getenv(var)
            for field, var in env_map.items()
            if os.getenv(var) not in (None, "")
        }
        return cls(**values)

    def retry_policy(self) -> RetryPolicy:
        """Retry/pacing policy described by these settings."""
        return RetryPolicy(
            max_retries=self.max_retries,
            base_delay=self.base_delay_seconds,
            inter_request_delay=self.inter_request_delay_seconds,
        )
