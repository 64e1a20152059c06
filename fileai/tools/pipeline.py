"""Chunked, rate-limited completion pipeline.

A document is split into token-bounded chunks which are submitted one at a
time to a completion provider. Rate-limit rejections are retried with
exponential backoff, every other provider failure aborts the whole call, and
successful chunk results are joined in order with blank lines.
"""
import logging
import time
from typing import Callable, Optional

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from fileai.models.completion import ChunkResult, CompletionRequest, PipelineResult
from fileai.models.retry_policy import RetryPolicy
from fileai.tools.chunking import DEFAULT_MAX_TOKENS, TextChunker
from fileai.tools.completion_client import CompletionClient
from fileai.tools.errors import CompletionError, ProviderFailure, RetryBudgetExhausted

logger = logging.getLogger(__name__)

CHUNK_SEPARATOR = "\n\n"
DEFAULT_MAX_OUTPUT_TOKENS = 2000
MAX_BACKOFF_SECONDS = 300


def _is_rate_limited(exc: BaseException) -> bool:
    return isinstance(exc, CompletionError) and exc.is_rate_limited


def _log_retry(chunk_index: int, policy: RetryPolicy) -> Callable[[RetryCallState], None]:
    def before_sleep(retry_state: RetryCallState) -> None:
        logger.warning(
            f"Chunk {chunk_index}: rate limited on attempt "
            f"{retry_state.attempt_number}/{policy.max_retries}, "
            f"retrying in {retry_state.next_action.sleep:.2f}s"
        )
    return before_sleep


def submit_chunk(
    client: CompletionClient,
    request: CompletionRequest,
    chunk_index: int,
    policy: Optional[RetryPolicy] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> ChunkResult:
    """
    Submit one chunk, retrying only while the provider reports rate limiting.

    Args:
        client: Completion client
        request: Chunk, instruction and model for this call
        chunk_index: Position of the chunk (reported in failures)
        policy: Retry budget and backoff base (defaults to RetryPolicy())
        sleep: Blocking sleep used between attempts

    Returns:
        ChunkResult with the generated text and the number of attempts used

    Raises:
        RetryBudgetExhausted: rate limited on every one of policy.max_retries attempts
        ProviderFailure: any other provider error (never retried)
    """
    policy = policy or RetryPolicy()
    attempts = 0

    # A new Retrying per call keeps attempt counters local to this chunk
    retrying = Retrying(
        reraise=True,
        stop=stop_after_attempt(policy.max_retries),
        wait=wait_exponential(multiplier=policy.base_delay, min=0, max=MAX_BACKOFF_SECONDS),
        retry=retry_if_exception(_is_rate_limited),
        before_sleep=_log_retry(chunk_index, policy),
        sleep=sleep,
    )
    try:
        for attempt in retrying:
            with attempt:
                attempts = attempt.retry_state.attempt_number
                text = client.complete(request)
    except CompletionError as e:
        if e.is_rate_limited:
            logger.error(f"Chunk {chunk_index}: still rate limited after {attempts} attempts")
            raise RetryBudgetExhausted(chunk_index, attempts, e.message) from e
        logger.error(f"Chunk {chunk_index}: provider error (code={e.code}): {e.message}")
        raise ProviderFailure(chunk_index, e.message, code=e.code) from e

    return ChunkResult(index=chunk_index, text=text, attempts=attempts)


def run_pipeline(
    text: str,
    instruction: str,
    model: str,
    client: CompletionClient,
    policy: Optional[RetryPolicy] = None,
    max_chunk_tokens: int = DEFAULT_MAX_TOKENS,
    max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS,
    chunker: Optional[TextChunker] = None,
    sleep: Callable[[float], None] = time.sleep,
    progress_callback: Optional[Callable[[ChunkResult, int], None]] = None,
) -> PipelineResult:
    """
    Run an instruction over a whole document, chunk by chunk, in order.

    Chunks are processed strictly sequentially. After each successful chunk
    except the last, the pipeline pauses for policy.inter_request_delay.

    Args:
        text: Document text
        instruction: System instruction applied to every chunk
        model: Provider model identifier
        client: Completion client
        policy: Retry/pacing policy (defaults to RetryPolicy())
        max_chunk_tokens: Token budget per chunk (ignored if chunker is given)
        max_output_tokens: Output cap per provider request
        chunker: Pre-configured TextChunker
        sleep: Blocking sleep for backoff and pacing
        progress_callback: Optional callback(chunk_result, total_chunks)

    Returns:
        PipelineResult; empty for empty text, with no provider calls

    Raises:
        PipelineError: the first chunk that fails terminally aborts the call
    """
    policy = policy or RetryPolicy()
    chunker = chunker or TextChunker(max_tokens=max_chunk_tokens)

    chunks = chunker.split_text(text)
    if not chunks:
        logger.info("Empty document, nothing to submit")
        return PipelineResult()

    logger.info(f"Processing {len(chunks)} chunk(s) with model {model}")

    results = []
    for index, chunk in enumerate(chunks):
        request = CompletionRequest(
            chunk=chunk,
            instruction=instruction,
            model=model,
            max_output_tokens=max_output_tokens,
        )
        # Fresh retry state for every chunk
        result = submit_chunk(client, request, index, policy=policy, sleep=sleep)
        results.append(result)
        logger.info(f"Chunk {index + 1}/{len(chunks)} done ({result.attempts} attempt(s))")

        if progress_callback:
            progress_callback(result, len(chunks))

        if index < len(chunks) - 1 and policy.inter_request_delay > 0:
            sleep(policy.inter_request_delay)

    return PipelineResult(
        text=CHUNK_SEPARATOR.join(r.text for r in results),
        chunks=results,
    )


def process_text(
    text: str,
    instruction: str,
    model: str,
    client: CompletionClient,
    **kwargs,
) -> str:
    """Run the pipeline and return only the combined text."""
    return run_pipeline(text, instruction, model, client, **kwargs).text
