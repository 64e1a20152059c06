"""Run fix/translate/analyze/custom actions over uploaded files."""
import logging
from pathlib import Path
from typing import Callable, Optional

from fileai.config import Settings
from fileai.models.completion import ChunkResult
from fileai.models.file_action import FileAction, FileActionResult
from fileai.tools.completion_client import CompletionClient
from fileai.tools.errors import UnsupportedFileType
from fileai.tools.pdf_extract import extract_text_from_pdf, write_text_pdf
from fileai.tools.pipeline import run_pipeline

logger = logging.getLogger(__name__)

DEFAULT_INSTRUCTIONS = {
    "fix": "Fix the spelling, grammar and punctuation errors in the text. Return only the corrected text.",
    "translate": "Translate the text into English. Return only the translation.",
    "analyze": "Analyze the text and give a short summary.",
}

TEXT_SUFFIXES = {".txt", ".md", ".markdown", ".csv", ".json", ".html", ".htm", ".xml", ".rst", ""}


def resolve_instruction(action: FileAction, prompt: Optional[str] = None) -> str:
    """
    Pick the instruction sent with every chunk for an action.

    "fix" always uses its fixed instruction; "translate" and "analyze" use the
    prompt when one is given; "custom" requires a prompt.
    """
    if action == "fix":
        return DEFAULT_INSTRUCTIONS["fix"]
    if action in ("translate", "analyze"):
        return prompt or DEFAULT_INSTRUCTIONS[action]
    if action == "custom":
        if not prompt or not prompt.strip():
            raise ValueError("custom action requires a prompt")
        return prompt
    raise ValueError(f"Unknown action: {action}")


def load_document_text(path: Path) -> str:
    """Read the text content of a PDF or plain-text upload."""
    suffix = path.suffix.lower()

    if suffix == ".pdf":
        extracted, error = extract_text_from_pdf(path)
        if extracted is None:
            raise ValueError(error)
        if not extracted.full_text.strip():
            raise ValueError(f"No text could be extracted from {path.name}")
        logger.info(f"Extracted {extracted.num_pages} page(s) from {path.name}")
        return extracted.full_text

    if suffix in TEXT_SUFFIXES:
        return path.read_text(encoding="utf-8")

    raise UnsupportedFileType(f"Unsupported file type: {suffix}")


def output_path_for(input_path: Path, action: FileAction) -> Path:
    """Derived file name: <stem>_<action><suffix> next to the input."""
    return input_path.with_name(f"{input_path.stem}_{action}{input_path.suffix}")


def run_file_action(
    file_id: str,
    action: FileAction,
    client: CompletionClient,
    settings: Optional[Settings] = None,
    prompt: Optional[str] = None,
    uploads_dir: Optional[Path] = None,
    sleep: Optional[Callable[[float], None]] = None,
    progress_callback: Optional[Callable[[ChunkResult, int], None]] = None,
) -> FileActionResult:
    """
    Transform one uploaded file with the chunked completion pipeline.

    Every action except "analyze" writes its result next to the upload
    (PDF inputs get a rendered PDF, text inputs a UTF-8 text file).

    Args:
        file_id: File name inside the uploads directory
        action: fix, translate, analyze or custom
        client: Completion client
        settings: Settings (defaults to Settings.from_env())
        prompt: Optional instruction override (required for custom)
        uploads_dir: Overrides settings.uploads_dir
        sleep: Sleep used for backoff and pacing (defaults to time.sleep)
        progress_callback: Forwarded to run_pipeline

    Raises:
        FileNotFoundError: upload does not exist
        ValueError: unknown action, missing custom prompt or unreadable document
        PipelineError: a chunk failed terminally
    """
    settings = settings or Settings.from_env()
    instruction = resolve_instruction(action, prompt)

    uploads_dir = uploads_dir or settings.uploads_dir
    input_path = uploads_dir / file_id
    # file_id is a bare name; refuse anything that escapes the uploads dir
    if Path(file_id).name != file_id or not input_path.is_file():
        raise FileNotFoundError(f"File not found: {file_id}")

    text = load_document_text(input_path)
    logger.info(f"Running '{action}' on {file_id} ({len(text)} chars)")

    pipeline_kwargs = {}
    if sleep is not None:
        pipeline_kwargs["sleep"] = sleep

    result = run_pipeline(
        text,
        instruction,
        settings.chat_model,
        client,
        policy=settings.retry_policy(),
        max_chunk_tokens=settings.max_chunk_tokens,
        max_output_tokens=settings.max_output_tokens,
        progress_callback=progress_callback,
        **pipeline_kwargs,
    )

    output_path = None
    if action != "analyze":
        output_path = output_path_for(input_path, action)
        if input_path.suffix.lower() == ".pdf":
            write_text_pdf(result.text, output_path)
        else:
            output_path.write_text(result.text, encoding="utf-8")
        logger.info(f"Wrote {output_path}")

    return FileActionResult(
        file_id=file_id,
        action=action,
        text=result.text,
        output_path=str(output_path) if output_path else None,
        num_chunks=result.num_chunks,
    )
