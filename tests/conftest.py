"""Shared fakes for pipeline tests."""
import pytest

from fileai.tools.errors import CompletionError, ErrorKind


class FakeClient:
    """
    Completion client driven by a script of outcomes.

    Each entry in `script` is either a string (returned) or an exception
    (raised); once the script is used up, the chunk text is echoed back in
    upper case.
    """

    def __init__(self, script=None):
        self.script = list(script or [])
        self.requests = []

    def complete(self, request):
        self.requests.append(request)
        if self.script:
            outcome = self.script.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        return request.chunk.upper()


class RecordingSleep:
    """Stand-in for time.sleep that only records the requested delays."""

    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


def rate_limited():
    return CompletionError(ErrorKind.RATE_LIMITED, "Resource has been exhausted", code=429)


def provider_error(message="Invalid argument"):
    return CompletionError(ErrorKind.PROVIDER, message, code=400)


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()
