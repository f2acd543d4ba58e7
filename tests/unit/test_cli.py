"""Unit tests for the command-line interface."""

from __future__ import annotations

from pathlib import Path

import pytest
import typer
from typer.testing import CliRunner

from medscan_analyzer.cli import app as cli
from medscan_analyzer.core.config import Settings
from medscan_analyzer.core.exceptions import QuotaExceededError
from medscan_analyzer.domain.models import AnalysisRequest, AnalysisResult, ProviderId, RawFile
from medscan_analyzer.services import analysis
from tests.conftest import OPENAI_TEST_KEY, REPORT

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_settings(monkeypatch: pytest.MonkeyPatch, test_settings: Settings) -> Settings:
    monkeypatch.setattr(cli, "settings", test_settings)
    return test_settings


@pytest.fixture
def scan(temp_dir: Path) -> Path:
    path = temp_dir / "chest-xray.png"
    path.write_bytes(b"\x89PNG" + b"\x00" * 1024)
    return path


class TestInfoCommands:
    def test_providers(self) -> None:
        result = runner.invoke(cli.app, ["providers"])

        assert result.exit_code == 0
        assert "openai" in result.stdout
        assert "gemini" in result.stdout

    def test_config_hides_keys(self) -> None:
        result = runner.invoke(cli.app, ["config"])

        assert result.exit_code == 0
        assert "configured" in result.stdout
        assert OPENAI_TEST_KEY not in result.stdout

    def test_version(self) -> None:
        result = runner.invoke(cli.app, ["version"])

        assert result.exit_code == 0
        assert "1.0.0" in result.stdout


class TestAnalyzeCommand:
    def test_local_analysis_writes_report(
        self,
        monkeypatch: pytest.MonkeyPatch,
        scan: Path,
        temp_dir: Path,
    ) -> None:
        captured = {}

        def fake_local(provider, request, on_progress):
            captured["provider"] = provider
            captured["request"] = request
            return REPORT

        monkeypatch.setattr(cli, "_analyze_locally", fake_local)
        output = temp_dir / "report.md"

        result = runner.invoke(
            cli.app,
            ["analyze", str(scan), "--name", "J. Doe", "--age", "42", "-p", "gemini", "-o", str(output)],
        )

        assert result.exit_code == 0, result.stdout
        assert captured["provider"].value == "gemini"
        assert captured["request"].files[0].name == "chest-xray.png"
        assert output.read_text(encoding="utf-8") == REPORT

    def test_failure_exits_nonzero(self, monkeypatch: pytest.MonkeyPatch, scan: Path) -> None:
        def failing(provider, request, on_progress):
            raise QuotaExceededError("429")

        monkeypatch.setattr(cli, "_analyze_locally", failing)

        result = runner.invoke(cli.app, ["analyze", str(scan), "--name", "J. Doe", "--age", "42"])

        assert result.exit_code == 1
        assert "QuotaExceeded" in result.stdout

    def test_too_many_files(self, temp_dir: Path) -> None:
        paths = []
        for i in range(6):
            path = temp_dir / f"{i}.png"
            path.write_bytes(b"x")
            paths.append(str(path))

        result = runner.invoke(cli.app, ["analyze", *paths, "--name", "J. Doe", "--age", "42"])

        assert result.exit_code == 2


class TestLocalAnalysis:
    def test_blank_report_returned(self, monkeypatch: pytest.MonkeyPatch, scan: Path) -> None:
        class BlankService:
            def __init__(self, settings: Settings) -> None:
                pass

            async def analyze(self, provider, request, progress=None) -> AnalysisResult:
                return AnalysisResult.success("", provider=provider)

        monkeypatch.setattr(analysis, "AnalysisService", BlankService)
        request = AnalysisRequest(subject_name="J. Doe", subject_age="42", files=(RawFile.from_path(scan),))

        assert cli._analyze_locally(ProviderId.OPENAI, request, None) == ""

    def test_failure_exits(self, monkeypatch: pytest.MonkeyPatch, scan: Path) -> None:
        class FailingService:
            def __init__(self, settings: Settings) -> None:
                pass

            async def analyze(self, provider, request, progress=None) -> AnalysisResult:
                return AnalysisResult.failure(QuotaExceededError("429"), provider=provider)

        monkeypatch.setattr(analysis, "AnalysisService", FailingService)
        request = AnalysisRequest(subject_name="J. Doe", subject_age="42", files=(RawFile.from_path(scan),))

        with pytest.raises(typer.Exit):
            cli._analyze_locally(ProviderId.OPENAI, request, None)
