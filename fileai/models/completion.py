"""Completion request and result models for the chunk pipeline."""
from pydantic import BaseModel, Field, field_validator


class CompletionRequest(BaseModel):
    """One chunk submitted to the completion provider."""
    chunk: str
    instruction: str  # system instruction shared by every chunk of a call
    model: str
    max_output_tokens: int = 2000

    @field_validator('max_output_tokens')
    @classmethod
    def validate_max_output_tokens(cls, v: int) -> int:
        """Ensure the output cap is positive."""
        if v <= 0:
            raise ValueError('max_output_tokens must be positive')
        return v


class ChunkResult(BaseModel):
    """Generated text for a single chunk."""
    index: int  # 0-indexed position in the document
    text: str
    attempts: int = 1


class PipelineResult(BaseModel):
    """Combined output of a pipeline call."""
    text: str = ""
    chunks: list[ChunkResult] = Field(default_factory=list)

    @property
    def num_chunks(self) -> int:
        return len(self.chunks)
