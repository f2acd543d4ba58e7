"""
Provider-independent prompt rendering.

The same patient fields always render to the same text, whichever backend
will receive it.
"""

from __future__ import annotations

from ..domain.models import AnalysisRequest, EncodedAnalysisRequest

REPORT_SECTIONS: tuple[str, ...] = (
    "Patient Information",
    "Findings and Observations",
    "Diagnosis",
    "Recommendations",
    "Follow-up",
)

PREAMBLE = (
    "You are a medical expert, but not a doctor. Your task is to analyze the "
    "attached medical documents and assist the doctor in diagnosing the patient.\n"
    "The doctor's vote is the final answer. But you can help the doctor by "
    "providing your analysis and recommendations.\n"
    "\n"
    "Generate a detailed medical analysis report based on these documents."
)

FORMAT_DIRECTIVE = (
    "Use exactly these section headings, in this order, as Markdown level-2 "
    "headings (## Heading). Format the report in Markdown with proper "
    "headings, lists, and emphasis where appropriate."
)


def build_prompt(subject_name: str, subject_age: str, notes: str | None = None) -> str:
    """
    Render the analysis instructions for one request.

    Args:
        subject_name: Patient name
        subject_age: Patient age, as entered
        notes: Optional clinical notes; omitted entirely when absent or blank

    Returns:
        The prompt text
    """
    lines = [
        PREAMBLE,
        "",
        "Patient Information:",
        f"- Name: {subject_name}",
        f"- Age: {subject_age}",
    ]
    if notes and notes.strip():
        lines.append(f"- Additional Notes: {notes.strip()}")
    lines += [
        "",
        "Analyze the attached medical documents and provide a comprehensive "
        "report including the following sections:",
    ]
    lines += [f"{i}. {section}" for i, section in enumerate(REPORT_SECTIONS, start=1)]
    lines += ["", FORMAT_DIRECTIVE]
    return "\n".join(lines)


def build_prompt_for(request: AnalysisRequest | EncodedAnalysisRequest) -> str:
    return build_prompt(request.subject_name, request.subject_age, request.notes)
