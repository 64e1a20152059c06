"""File action request/result models."""
from typing import Literal, Optional

from pydantic import BaseModel

FileAction = Literal["fix", "translate", "analyze", "custom"]


class FileActionResult(BaseModel):
    """Outcome of running an action over one uploaded file."""
    file_id: str
    action: FileAction
    text: str
    output_path: Optional[str] = None  # None for "analyze", which writes no file
    num_chunks: int = 0
