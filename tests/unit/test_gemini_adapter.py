"""
Unit tests for the Gemini adapter.

A fake client is injected so no request ever leaves the process.
"""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Any

import httpx
import pytest
from google.genai import errors, types
from pydantic import SecretStr

from medscan_analyzer.core.exceptions import (
    EmptyResponseError,
    ErrorKind,
    MissingCredentialError,
    ProviderError,
)
from medscan_analyzer.domain.models import EncodedFile
from medscan_analyzer.providers.gemini_adapter import SAFETY_SETTINGS, GeminiAdapter

API_KEY = "AIza-test-gemini-2d8e4b6f0a"


def _api_error(cls: type[errors.APIError], code: int, status: str, message: str) -> errors.APIError:
    return cls(code, {"error": {"code": code, "status": status, "message": message}})


def _response(*texts: str, finish_reason: Any = "STOP", block_reason: Any = None) -> Any:
    parts = [SimpleNamespace(text=t) for t in texts]
    candidate = SimpleNamespace(finish_reason=finish_reason, content=SimpleNamespace(parts=parts))
    return SimpleNamespace(
        prompt_feedback=SimpleNamespace(block_reason=block_reason),
        candidates=[candidate],
    )


class FakeModels:
    """Replays a scripted sequence of results or exceptions."""

    def __init__(self, *outcomes: Any) -> None:
        self.outcomes = list(outcomes)
        self.calls: list[dict[str, Any]] = []

    async def generate_content(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def _adapter(*outcomes: Any, api_key: str | None = API_KEY) -> tuple[GeminiAdapter, FakeModels]:
    models = FakeModels(*outcomes)
    client = SimpleNamespace(aio=SimpleNamespace(models=models))
    adapter = GeminiAdapter(
        SecretStr(api_key) if api_key else None,
        client=client,
        retry_backoff_seconds=0,
    )
    return adapter, models


@pytest.fixture
def files() -> list[EncodedFile]:
    return [EncodedFile(name="a.png", mime_type="image/png", byte_size=3, base64_payload="YWJj")]


class TestRequestShape:
    """Tests for the outgoing request."""

    def test_contents_and_config(self, files: list[EncodedFile]) -> None:
        adapter, models = _adapter(_response("## Report"))

        asyncio.run(adapter.analyze("prompt text", files))

        call = models.calls[0]
        assert call["model"] == "gemini-2.0-flash"
        parts = call["contents"][0].parts
        assert parts[0].text == "prompt text"
        assert parts[1].inline_data.data == b"abc"
        assert parts[1].inline_data.mime_type == "image/png"

        config = call["config"]
        assert config.temperature == 0.2
        assert config.top_k == 40
        assert config.top_p == 0.95
        assert config.safety_settings == SAFETY_SETTINGS

    def test_safety_thresholds(self) -> None:
        assert len(SAFETY_SETTINGS) == 4
        assert {s.threshold for s in SAFETY_SETTINGS} == {types.HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE}


class TestResponses:
    """Tests for response extraction."""

    def test_joins_parts(self, files: list[EncodedFile]) -> None:
        adapter, _ = _adapter(_response("## Patient Information\n", "details"))

        assert asyncio.run(adapter.analyze("p", files)) == "## Patient Information\ndetails"

    def test_blank_report(self, files: list[EncodedFile]) -> None:
        adapter, _ = _adapter(_response())

        assert asyncio.run(adapter.analyze("p", files)) == ""

    def test_no_candidates(self, files: list[EncodedFile]) -> None:
        adapter, _ = _adapter(SimpleNamespace(prompt_feedback=None, candidates=[]))

        with pytest.raises(EmptyResponseError):
            asyncio.run(adapter.analyze("p", files))

    @pytest.mark.parametrize("finish_reason", ["SAFETY", types.FinishReason.SAFETY])
    def test_safety_stop(self, files: list[EncodedFile], finish_reason: Any) -> None:
        adapter, _ = _adapter(_response("partial", finish_reason=finish_reason))

        with pytest.raises(EmptyResponseError):
            asyncio.run(adapter.analyze("p", files))

    def test_prompt_blocked(self, files: list[EncodedFile]) -> None:
        adapter, _ = _adapter(_response(block_reason=types.BlockedReason.SAFETY))

        with pytest.raises(EmptyResponseError):
            asyncio.run(adapter.analyze("p", files))


class TestErrors:
    """Tests for error classification and retries."""

    def test_missing_key_fails_before_io(self, files: list[EncodedFile]) -> None:
        adapter, models = _adapter(_response("x"), api_key=None)

        with pytest.raises(MissingCredentialError):
            asyncio.run(adapter.analyze("p", files))

        assert models.calls == []

    @pytest.mark.parametrize(
        ("error", "kind"),
        [
            (_api_error(errors.ClientError, 400, "INVALID_ARGUMENT", "API key not valid."), ErrorKind.INVALID_CREDENTIAL),
            (_api_error(errors.ClientError, 403, "PERMISSION_DENIED", "denied"), ErrorKind.INVALID_CREDENTIAL),
            (_api_error(errors.ClientError, 429, "RESOURCE_EXHAUSTED", "slow down"), ErrorKind.QUOTA_EXCEEDED),
            (_api_error(errors.ClientError, 404, "NOT_FOUND", "model missing"), ErrorKind.MODEL_UNAVAILABLE),
            (_api_error(errors.ClientError, 400, "INVALID_ARGUMENT", "bad image"), ErrorKind.MALFORMED_REQUEST),
            (_api_error(errors.ServerError, 500, "INTERNAL", "boom"), ErrorKind.PROVIDER_ERROR),
        ],
    )
    def test_classification(self, files: list[EncodedFile], error: Exception, kind: ErrorKind) -> None:
        adapter, models = _adapter(error)

        with pytest.raises(Exception) as exc_info:
            asyncio.run(adapter.analyze("p", files))

        assert exc_info.value.kind == kind
        assert len(models.calls) == 1

    def test_transport_error_retried(self, files: list[EncodedFile]) -> None:
        adapter, models = _adapter(httpx.ConnectError("refused"), _response("## Report"))

        assert asyncio.run(adapter.analyze("p", files)) == "## Report"
        assert len(models.calls) == 2

    def test_transport_error_gives_up(self, files: list[EncodedFile]) -> None:
        adapter, models = _adapter(*(httpx.ConnectError("refused") for _ in range(3)))

        with pytest.raises(ProviderError) as exc_info:
            asyncio.run(adapter.analyze("p", files))

        assert len(models.calls) == 3
        assert exc_info.value.caller_message().startswith("Gemini error:")

    def test_timeout_not_retried(self, files: list[EncodedFile]) -> None:
        adapter, models = _adapter(httpx.ReadTimeout("slow"), _response("never reached"))

        with pytest.raises(ProviderError) as exc_info:
            asyncio.run(adapter.analyze("p", files))

        assert len(models.calls) == 1
        assert "timed out" in exc_info.value.caller_message()

    def test_key_scrubbed_from_message(self, files: list[EncodedFile]) -> None:
        adapter, _ = _adapter(_api_error(errors.ServerError, 503, "UNAVAILABLE", f"key={API_KEY} overloaded"))

        with pytest.raises(ProviderError) as exc_info:
            asyncio.run(adapter.analyze("p", files))

        assert API_KEY not in exc_info.value.caller_message()
