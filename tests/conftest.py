"""
Pytest configuration and fixtures.

Provides shared fixtures and configuration for all tests.
"""

from __future__ import annotations

import tempfile
from collections.abc import Callable, Generator, Sequence
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from medscan_analyzer.core.config import Settings
from medscan_analyzer.domain.models import (
    AnalysisRequest,
    EncodedFile,
    ProviderId,
    RawFile,
)
from medscan_analyzer.services.analysis import AnalysisService
from medscan_analyzer.services.dispatcher import Dispatcher
from medscan_analyzer.web.app import create_app

OPENAI_TEST_KEY = "sk-test-openai-7f3a9c1e5b"
GEMINI_TEST_KEY = "AIza-test-gemini-2d8e4b6f0a"

MB = 1_048_576

REPORT = """## Patient Information
J. Doe, 42 years.

## Findings and Observations
No acute findings.

## Diagnosis
Unremarkable study.

## Recommendations
None.

## Follow-up
Routine.
"""


class FakeAdapter:
    """Adapter test double that records calls and never touches the network."""

    def __init__(
        self,
        provider: ProviderId,
        report: str = REPORT,
        error: Exception | None = None,
    ) -> None:
        self.provider = provider
        self.model = f"fake-{provider.value}"
        self.report = report
        self.error = error
        self.calls: list[tuple[str, list[EncodedFile]]] = []

    async def analyze(self, prompt: str, files: Sequence[EncodedFile]) -> str:
        self.calls.append((prompt, list(files)))
        if self.error is not None:
            raise self.error
        return self.report


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_settings() -> Settings:
    """Settings with fake credentials and no .env lookup."""
    return Settings(
        _env_file=None,
        openai_api_key=OPENAI_TEST_KEY,
        gemini_api_key=GEMINI_TEST_KEY,
        environment="testing",
        log_level="DEBUG",
    )


@pytest.fixture
def fake_adapters() -> dict[ProviderId, FakeAdapter]:
    return {provider: FakeAdapter(provider) for provider in ProviderId}


@pytest.fixture
def service(test_settings: Settings, fake_adapters: dict[ProviderId, FakeAdapter]) -> AnalysisService:
    return AnalysisService(test_settings, dispatcher=Dispatcher(fake_adapters))


@pytest.fixture
def api_client(test_settings: Settings, service: AnalysisService) -> Generator[TestClient, None, None]:
    app = create_app(test_settings, service=service)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def make_raw_file() -> Callable[..., RawFile]:
    """Build an in-memory RawFile of a given size with a repeating pattern."""

    def _make(name: str = "scan.png", size: int = 1024, mime_type: str = "image/png") -> RawFile:
        pattern = bytes(range(256))
        data = (pattern * (size // 256 + 1))[:size]
        return RawFile.from_bytes(name, data, mime_type)

    return _make


@pytest.fixture
def sample_request(make_raw_file: Callable[..., RawFile]) -> AnalysisRequest:
    """One 2 MB PNG for J. Doe, 42."""
    return AnalysisRequest(
        subject_name="J. Doe",
        subject_age="42",
        files=(make_raw_file("chest-xray.png", 2 * MB),),
    )
