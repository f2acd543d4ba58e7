"""Unit tests for prompt rendering."""

from __future__ import annotations

from medscan_analyzer.domain.models import AnalysisRequest, RawFile
from medscan_analyzer.services.prompt import (
    PREAMBLE,
    REPORT_SECTIONS,
    build_prompt,
    build_prompt_for,
)


class TestBuildPrompt:
    """Tests for build_prompt."""

    def test_deterministic(self) -> None:
        assert build_prompt("J. Doe", "42", "cough") == build_prompt("J. Doe", "42", "cough")

    def test_contains_subject_fields(self) -> None:
        prompt = build_prompt("J. Doe", "42", "Persistent cough for 3 weeks")

        assert prompt.startswith(PREAMBLE)
        assert "- Name: J. Doe" in prompt
        assert "- Age: 42" in prompt
        assert "- Additional Notes: Persistent cough for 3 weeks" in prompt

    def test_notes_omitted_when_absent(self) -> None:
        for notes in (None, "", "   "):
            prompt = build_prompt("J. Doe", "42", notes)

            assert "Additional Notes" not in prompt

    def test_sections_in_order(self) -> None:
        prompt = build_prompt("J. Doe", "42")

        positions = [prompt.index(f"{i}. {s}") for i, s in enumerate(REPORT_SECTIONS, start=1)]
        assert positions == sorted(positions)
        assert "## Heading" in prompt

    def test_same_text_for_request(self) -> None:
        request = AnalysisRequest(
            subject_name="J. Doe",
            subject_age="42",
            notes="cough",
            files=(RawFile.from_bytes("a.png", b"a"),),
        )

        assert build_prompt_for(request) == build_prompt("J. Doe", "42", "cough")
