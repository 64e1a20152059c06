"""Extracted text model for uploaded PDFs."""
from pydantic import BaseModel, field_validator


class ExtractedText(BaseModel):
    """Text extracted from a PDF upload."""
    num_pages: int
    full_text: str = ""  # page texts joined with newlines

    @field_validator('num_pages')
    @classmethod
    def validate_num_pages(cls, v: int) -> int:
        """Ensure num_pages is non-negative."""
        if v < 0:
            raise ValueError('num_pages must be non-negative')
        return v
