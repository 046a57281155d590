"""
PDF rendering for completed assessments.

Reports are laid out with reportlab's platypus flowables. Documents are built
in invariant mode, so the same report data always yields the same bytes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from html import escape
from io import BytesIO

from reportlab.lib.colors import HexColor, white
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from src.domain.errors import PipelineError
from src.domain.recommendation_document import RecommendationDocument
from src.domain.services.recommendations import QuestionResponse

DEFAULT_SLUG = "assessment"

ANSWER_LABELS = {
    -2: "Strongly disagree",
    -1: "Disagree",
    0: "Neutral",
    1: "Agree",
    2: "Strongly agree",
}

PRIMARY = HexColor("#1E3A8A")
ACCENT = HexColor("#2563EB")
MUTED = HexColor("#6B7280")
ROW_ALT = HexColor("#F3F4F6")
GRID = HexColor("#D1D5DB")
DARK = HexColor("#111827")

_WHITESPACE = re.compile(r"\s+")
_NOT_SLUG = re.compile(r"[^a-z0-9-]")


class ReportRenderError(PipelineError):
    """Raised when a report cannot be laid out."""


@dataclass(slots=True)
class ReportData:
    """Inputs for one rendered report."""

    assessment_id: int
    company_name: str | None
    completed_on: datetime
    score: int
    document: RecommendationDocument
    responses: list[QuestionResponse] = field(default_factory=list)


def slugify(value: str | None) -> str:
    slug = _WHITESPACE.sub("-", (value or "").strip().lower())
    slug = _NOT_SLUG.sub("", slug)
    return slug or DEFAULT_SLUG


def completion_date(completed_on: datetime) -> str:
    """Calendar date of completion in UTC; naive timestamps are already UTC."""
    if completed_on.tzinfo is not None:
        completed_on = completed_on.astimezone(UTC)
    return completed_on.strftime("%Y-%m-%d")


def build_artifact_filename(company_name: str | None, completed_on: datetime) -> str:
    return f"{slugify(company_name)}-{completion_date(completed_on)}.pdf"


class ReportRenderer:
    """Lays out a readiness report as PDF bytes."""

    def __init__(self) -> None:
        self.styles = _make_styles()

    def render(self, report: ReportData) -> bytes:
        buffer = BytesIO()
        company = report.company_name or "Your organization"
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            leftMargin=20 * mm,
            rightMargin=20 * mm,
            topMargin=20 * mm,
            bottomMargin=20 * mm,
            title=f"{company} AI Readiness Assessment",
            author="AI Readiness Assessment",
            invariant=1,
        )

        try:
            doc.build(self._story(report, company))
        except Exception as exc:
            raise ReportRenderError(
                f"Failed to render report for assessment {report.assessment_id}: {exc}"
            ) from exc
        return buffer.getvalue()

    def _story(self, report: ReportData, company: str) -> list:
        s = self.styles
        document = report.document
        story: list = [
            Paragraph(escape(f"{company} AI Readiness Assessment"), s["title"]),
            Paragraph(
                escape(f"Completed on {completion_date(report.completed_on)}"),
                s["meta"],
            ),
        ]
        story.extend(
            [
                Spacer(1, 6 * mm),
                Paragraph(f"Overall score: <b>{report.score} / 100</b>", s["score"]),
                Spacer(1, 6 * mm),
            ]
        )

        if document.intro:
            story.extend(_paragraphs(document.intro, s["body"]))

        story.append(Paragraph("Category overview", s["h2"]))
        story.append(self._category_table(document))

        for category in document.categories:
            story.append(Paragraph(escape(category.name), s["h3"]))
            story.append(
                Paragraph(
                    escape(f"Current score: {category.current_score:.1f} / 10"),
                    s["body"],
                )
            )
            if category.benchmark is not None:
                story.append(
                    Paragraph(escape(f"Benchmark: {category.benchmark:.1f} / 10"), s["body"])
                )
            if category.trend:
                story.append(Paragraph(escape(f"Trend: {category.trend}"), s["body"]))
            for practice in category.best_practices:
                story.append(Paragraph(escape(practice), s["bullet"], bulletText="•"))

        if document.outro:
            story.append(Paragraph("Next steps", s["h2"]))
            story.extend(_paragraphs(document.outro, s["body"]))

        if report.responses:
            story.append(Paragraph("Your responses", s["h2"]))
            story.append(self._responses_table(report.responses))
        return story

    def _category_table(self, document: RecommendationDocument) -> Table:
        cell = self.styles["cell"]
        rows = [["Category", "Score", "Benchmark", "Trend"]]
        for category in document.categories:
            rows.append(
                [
                    Paragraph(escape(category.name), cell),
                    f"{category.current_score:.1f}",
                    "-" if category.benchmark is None else f"{category.benchmark:.1f}",
                    Paragraph(escape(category.trend or "-"), cell),
                ]
            )
        return _styled_table(rows, [70 * mm, 22 * mm, 26 * mm, 52 * mm])

    def _responses_table(self, responses: list[QuestionResponse]) -> Table:
        cell = self.styles["cell"]
        rows = [["Question", "Answer"]]
        for response in responses:
            rows.append(
                [
                    Paragraph(escape(response.question), cell),
                    Paragraph(escape(_answer_label(response.answer)), cell),
                ]
            )
        return _styled_table(rows, [130 * mm, 40 * mm])


def _answer_label(value: object) -> str:
    if value is None:
        return "Skipped"
    if isinstance(value, int) and not isinstance(value, bool) and value in ANSWER_LABELS:
        return ANSWER_LABELS[value]
    return str(value)


def _paragraphs(text: str, style: ParagraphStyle) -> list[Paragraph]:
    return [Paragraph(escape(chunk.strip()), style) for chunk in text.split("\n") if chunk.strip()]


def _styled_table(rows: list[list], col_widths: list[float]) -> Table:
    table = Table(rows, colWidths=col_widths, repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), PRIMARY),
                ("TEXTCOLOR", (0, 0), (-1, 0), white),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 9),
                ("ROWBACKGROUNDS", (0, 1), (-1, -1), [white, ROW_ALT]),
                ("GRID", (0, 0), (-1, -1), 0.5, GRID),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("TOPPADDING", (0, 0), (-1, -1), 4),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
            ]
        )
    )
    return table


def _make_styles() -> dict[str, ParagraphStyle]:
    base = getSampleStyleSheet()
    return {
        "title": ParagraphStyle(
            "ReportTitle",
            parent=base["Title"],
            fontSize=20,
            leading=26,
            textColor=PRIMARY,
            fontName="Helvetica-Bold",
        ),
        "meta": ParagraphStyle(
            "ReportMeta", parent=base["Normal"], fontSize=10, textColor=MUTED, leading=14
        ),
        "score": ParagraphStyle(
            "ReportScore", parent=base["Normal"], fontSize=14, textColor=DARK, leading=18
        ),
        "h2": ParagraphStyle(
            "ReportH2",
            parent=base["Heading2"],
            fontSize=14,
            textColor=PRIMARY,
            spaceBefore=12,
            spaceAfter=6,
            fontName="Helvetica-Bold",
        ),
        "h3": ParagraphStyle(
            "ReportH3",
            parent=base["Heading3"],
            fontSize=12,
            textColor=ACCENT,
            spaceBefore=10,
            spaceAfter=4,
            fontName="Helvetica-Bold",
        ),
        "body": ParagraphStyle(
            "ReportBody",
            parent=base["Normal"],
            fontSize=10,
            textColor=DARK,
            leading=14,
            spaceAfter=4,
        ),
        "bullet": ParagraphStyle(
            "ReportBullet",
            parent=base["Normal"],
            fontSize=10,
            textColor=DARK,
            leading=14,
            leftIndent=14,
            bulletIndent=4,
            spaceAfter=2,
        ),
        "cell": ParagraphStyle("ReportCell", parent=base["Normal"], fontSize=9, leading=12),
    }
