"""Text-completion provider client (Google GenAI) with classified errors."""
import logging
import os
from typing import Any, Optional, Protocol

import httpx
from google import genai
from google.genai import errors, types

from fileai.models.completion import CompletionRequest
from fileai.tools.errors import CompletionError, ErrorKind

logger = logging.getLogger(__name__)

RATE_LIMIT_CODE = 429
RATE_LIMIT_STATUS = "RESOURCE_EXHAUSTED"


class CompletionClient(Protocol):
    """Anything that turns a CompletionRequest into generated text."""

    def complete(self, request: CompletionRequest) -> str:
        ...


def classify_api_error(exc: errors.APIError) -> CompletionError:
    """Map a provider APIError to a CompletionError using its code, not its message."""
    code = getattr(exc, "code", None)
    status = getattr(exc, "status", None)
    message = getattr(exc, "message", None) or str(exc)

    if code == RATE_LIMIT_CODE or status == RATE_LIMIT_STATUS:
        kind = ErrorKind.RATE_LIMITED
    else:
        kind = ErrorKind.PROVIDER

    return CompletionError(kind, message, code=code)


class GeminiCompletionClient:
    """
    Completion client backed by google-genai's generate_content.

    The request instruction is sent as the system instruction and the chunk as
    the user content. Every failure leaves as a CompletionError.
    """

    def __init__(self, api_key: Optional[str] = None, client: Optional[Any] = None):
        if client is None:
            api_key = api_key or os.getenv("GOOGLE_API_KEY")
            client = genai.Client(api_key=api_key) if api_key else genai.Client()
        self._client = client

    def complete(self, request: CompletionRequest) -> str:
        logger.debug(
            f"generate_content model={request.model} chunk_chars={len(request.chunk)} "
            f"max_output_tokens={request.max_output_tokens}"
        )
        try:
            response = self._client.models.generate_content(
                model=request.model,
                contents=request.chunk,
                config=types.GenerateContentConfig(
                    system_instruction=request.instruction or None,
                    max_output_tokens=request.max_output_tokens,
                ),
            )
        except errors.APIError as e:
            raise classify_api_error(e) from e
        except httpx.HTTPError as e:
            raise CompletionError(ErrorKind.PROVIDER, f"Network error: {e}") from e

        return response.text or ""
