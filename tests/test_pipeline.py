"""Tests for fileai.tools.pipeline."""
import pytest

from fileai.models.completion import CompletionRequest
from fileai.models.retry_policy import RetryPolicy
from fileai.tools.chunking import TextChunker
from fileai.tools.errors import ErrorKind, PipelineError, ProviderFailure, RetryBudgetExhausted
from fileai.tools.pipeline import process_text, run_pipeline, submit_chunk

from conftest import FakeClient, provider_error, rate_limited

THREE_PARAGRAPHS = "alpha.\n\nbravo.\n\ncharlie."


def three_chunker() -> TextChunker:
    # One character per token so the paragraphs land in exactly three chunks
    return TextChunker(max_tokens=8, chars_per_token=1)


def make_request(chunk: str = "some text") -> CompletionRequest:
    return CompletionRequest(chunk=chunk, instruction="Fix it.", model="test-model")


def test_three_chunker_yields_three_chunks() -> None:
    assert three_chunker().split_text(THREE_PARAGRAPHS) == ["alpha.", "bravo.", "charlie."]


def test_empty_text_makes_no_provider_calls(sleep) -> None:
    client = FakeClient()
    result = run_pipeline("", "Fix it.", "test-model", client, sleep=sleep)
    assert result.text == ""
    assert result.num_chunks == 0
    assert client.requests == []
    assert sleep.calls == []


def test_results_joined_in_order(sleep) -> None:
    client = FakeClient(["result1", "result2", "result3"])
    result = run_pipeline(
        THREE_PARAGRAPHS, "Fix it.", "test-model", client,
        chunker=three_chunker(), sleep=sleep,
    )
    assert result.text == "result1" + "\n\n" + "result2" + "\n\n" + "result3"
    assert [c.index for c in result.chunks] == [0, 1, 2]
    assert [r.chunk for r in client.requests] == ["alpha.", "bravo.", "charlie."]
    assert all(r.instruction == "Fix it." and r.model == "test-model" for r in client.requests)


def test_inter_request_delay_between_chunks_only(sleep) -> None:
    client = FakeClient()
    policy = RetryPolicy(inter_request_delay=0.25)
    run_pipeline(
        THREE_PARAGRAPHS, "Fix it.", "test-model", client,
        policy=policy, chunker=three_chunker(), sleep=sleep,
    )
    assert sleep.calls == [0.25, 0.25]


def test_rate_limited_twice_then_success(sleep) -> None:
    client = FakeClient([rate_limited(), rate_limited(), "done"])
    result = submit_chunk(client, make_request(), 0, sleep=sleep)
    assert result.text == "done"
    assert result.attempts == 3
    assert len(client.requests) == 3
    assert sleep.calls == [1.0, 2.0]


def test_backoff_uses_base_delay(sleep) -> None:
    client = FakeClient([rate_limited(), rate_limited(), rate_limited(), "done"])
    policy = RetryPolicy(max_retries=5, base_delay=0.5)
    result = submit_chunk(client, make_request(), 0, policy=policy, sleep=sleep)
    assert result.attempts == 4
    assert sleep.calls == [0.5, 1.0, 2.0]


def test_always_rate_limited_exhausts_budget(sleep) -> None:
    client = FakeClient([rate_limited()] * 10)
    with pytest.raises(RetryBudgetExhausted) as exc_info:
        run_pipeline(
            THREE_PARAGRAPHS, "Fix it.", "test-model", client,
            chunker=three_chunker(), sleep=sleep,
        )
    err = exc_info.value
    assert err.chunk_index == 0
    assert err.attempts == 3
    assert err.kind is ErrorKind.RATE_LIMITED
    assert len(client.requests) == 3
    assert sleep.calls == [1.0, 2.0]


def test_budget_exhausted_names_later_chunk(sleep) -> None:
    client = FakeClient(["ok"] + [rate_limited()] * 2)
    policy = RetryPolicy(max_retries=2)
    with pytest.raises(RetryBudgetExhausted) as exc_info:
        run_pipeline(
            THREE_PARAGRAPHS, "Fix it.", "test-model", client,
            policy=policy, chunker=three_chunker(), sleep=sleep,
        )
    assert exc_info.value.chunk_index == 1
    assert exc_info.value.attempts == 2
    assert "chunk 1" in str(exc_info.value)


def test_provider_error_on_second_chunk_is_not_retried(sleep) -> None:
    client = FakeClient(["result1", provider_error("Content blocked"), "result3"])
    with pytest.raises(ProviderFailure) as exc_info:
        run_pipeline(
            THREE_PARAGRAPHS, "Fix it.", "test-model", client,
            chunker=three_chunker(), sleep=sleep,
        )
    err = exc_info.value
    assert err.chunk_index == 1
    assert err.message == "Content blocked"
    assert err.code == 400
    # chunk 3 never attempted, chunk 2 attempted once
    assert [r.chunk for r in client.requests] == ["alpha.", "bravo."]
    # only the pause after the first success
    assert sleep.calls == [1.0]


def test_retry_state_resets_per_chunk(sleep) -> None:
    client = FakeClient([
        rate_limited(), rate_limited(), "r1",
        rate_limited(), rate_limited(), "r2",
        "r3",
    ])
    policy = RetryPolicy(inter_request_delay=0)
    result = run_pipeline(
        THREE_PARAGRAPHS, "Fix it.", "test-model", client,
        policy=policy, chunker=three_chunker(), sleep=sleep,
    )
    assert result.text == "r1\n\nr2\n\nr3"
    assert [c.attempts for c in result.chunks] == [3, 3, 1]
    assert sleep.calls == [1.0, 2.0, 1.0, 2.0]


def test_unexpected_exceptions_propagate(sleep) -> None:
    client = FakeClient([RuntimeError("boom")])
    with pytest.raises(RuntimeError):
        submit_chunk(client, make_request(), 0, sleep=sleep)
    assert sleep.calls == []


def test_progress_callback_sees_each_chunk(sleep) -> None:
    seen = []
    run_pipeline(
        THREE_PARAGRAPHS, "Fix it.", "test-model", FakeClient(),
        chunker=three_chunker(), sleep=sleep,
        progress_callback=lambda result, total: seen.append((result.index, total)),
    )
    assert seen == [(0, 3), (1, 3), (2, 3)]


def test_process_text_returns_combined_string(sleep) -> None:
    text = process_text(
        THREE_PARAGRAPHS, "Shout.", "test-model", FakeClient(),
        chunker=three_chunker(), sleep=sleep,
    )
    assert text == "ALPHA.\n\nBRAVO.\n\nCHARLIE."


def test_failure_to_dict() -> None:
    exhausted = RetryBudgetExhausted(2, 3).to_dict()
    assert exhausted == {
        "error": "retry_budget_exhausted",
        "kind": "rate_limited",
        "chunk_index": 2,
        "message": "rate limit exceeded",
        "attempts": 3,
    }
    failure = ProviderFailure(0, "bad request", code=400)
    assert isinstance(failure, PipelineError)
    assert failure.to_dict()["error"] == "provider_error"
    assert failure.to_dict()["kind"] == "provider"


def test_retry_policy_validation() -> None:
    with pytest.raises(ValueError):
        RetryPolicy(max_retries=0)
    with pytest.raises(ValueError):
        RetryPolicy(base_delay=-1)


def test_zero_base_delay_retries_without_waiting(sleep) -> None:
    client = FakeClient([rate_limited(), "done"])
    policy = RetryPolicy(base_delay=0)
    result = submit_chunk(client, make_request(), 0, policy=policy, sleep=sleep)
    assert result.attempts == 2
    assert sleep.calls == [0]


def test_each_retry_is_logged(sleep, caplog: pytest.LogCaptureFixture) -> None:
    client = FakeClient([rate_limited(), rate_limited(), "done"])
    with caplog.at_level("WARNING", logger="fileai.tools.pipeline"):
        submit_chunk(client, make_request(), 4, sleep=sleep)
    warnings = [r.getMessage() for r in caplog.records if r.levelname == "WARNING"]
    assert warnings == [
        "Chunk 4: rate limited on attempt 1/3, retrying in 1.00s",
        "Chunk 4: rate limited on attempt 2/3, retrying in 2.00s",
    ]


def test_single_attempt_budget_never_sleeps(sleep) -> None:
    client = FakeClient([rate_limited()])
    with pytest.raises(RetryBudgetExhausted) as exc_info:
        submit_chunk(client, make_request(), 0, policy=RetryPolicy(max_retries=1), sleep=sleep)
    assert exc_info.value.attempts == 1
    assert sleep.calls == []
