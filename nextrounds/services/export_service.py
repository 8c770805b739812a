"""
Export Service - renders generated questions as PDF, CSV or DOCX.

All builders take {category: [{question, how_to_answer, example}]} and
return the file as bytes.
"""
import csv
import io
from datetime import datetime, timezone
from typing import Dict, List
from xml.sax.saxutils import escape

from docx import Document
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer

TITLE = "Interview Questions"
CSV_COLUMNS = ["Category", "Question", "How to Answer", "Example Answer"]

EXPORT_FORMATS = {
    "pdf": {"media_type": "application/pdf", "pro_only": False},
    "csv": {"media_type": "text/csv", "pro_only": True},
    "docx": {
        "media_type": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "pro_only": True,
    },
}

Questions = Dict[str, List[dict]]


def export_filename(fmt: str) -> str:
    return f"interview-questions.{fmt}"


def _markup(text: str) -> str:
    """Escape text for a reportlab Paragraph, keeping line breaks."""
    return escape(text or "").replace("\n", "<br/>")


class PDFExporter:
    """PDF rendering with reportlab platypus."""

    def __init__(self):
        self.styles = getSampleStyleSheet()
        self.styles.add(ParagraphStyle(
            name="ExportTitle",
            parent=self.styles["Heading1"],
            fontSize=18,
            spaceAfter=6,
            alignment=TA_CENTER,
            fontName="Helvetica-Bold",
            textColor="#1f2937"
        ))
        self.styles.add(ParagraphStyle(
            name="Category",
            parent=self.styles["Heading2"],
            fontSize=14,
            spaceBefore=12,
            spaceAfter=6,
            textColor="#2563eb"
        ))
        self.styles.add(ParagraphStyle(
            name="Question",
            parent=self.styles["Normal"],
            fontSize=11,
            spaceAfter=4,
            fontName="Helvetica-Bold"
        ))
        self.styles.add(ParagraphStyle(
            name="Body",
            parent=self.styles["Normal"],
            fontSize=10,
            spaceAfter=6,
            leftIndent=14
        ))

    def build(self, questions: Questions) -> bytes:
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(buffer, pagesize=A4, topMargin=0.6 * inch, title=TITLE)
        story = [
            Paragraph(TITLE, self.styles["ExportTitle"]),
            Paragraph(
                f"Generated {datetime.now(timezone.utc).strftime('%B %d, %Y')}",
                self.styles["Normal"]
            ),
            Spacer(1, 12),
        ]

        number = 0
        for category, items in questions.items():
            story.append(Paragraph(_markup(category), self.styles["Category"]))
            for item in items:
                number += 1
                story.append(Paragraph(f"Q{number}: {_markup(item.get('question'))}", self.styles["Question"]))
                if item.get("how_to_answer"):
                    story.append(Paragraph(
                        f"<b>How to answer:</b> {_markup(item['how_to_answer'])}", self.styles["Body"]
                    ))
                if item.get("example"):
                    story.append(Paragraph(
                        f"<b>Example:</b> {_markup(item['example'])}", self.styles["Body"]
                    ))
                story.append(Spacer(1, 6))

        doc.build(story)
        return buffer.getvalue()


def build_pdf(questions: Questions) -> bytes:
    return PDFExporter().build(questions)


def build_csv(questions: Questions) -> bytes:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(CSV_COLUMNS)
    for category, items in questions.items():
        for item in items:
            writer.writerow([
                category,
                item.get("question", ""),
                item.get("how_to_answer", ""),
                item.get("example", ""),
            ])
    return buffer.getvalue().encode("utf-8")


def build_docx(questions: Questions) -> bytes:
    doc = Document()
    doc.add_heading(TITLE, level=0)
    doc.add_paragraph(f"Generated {datetime.now(timezone.utc).strftime('%B %d, %Y')}")

    number = 0
    for category, items in questions.items():
        doc.add_heading(category, level=1)
        for item in items:
            number += 1
            doc.add_heading(f"Q{number}: {item.get('question', '')}", level=3)
            if item.get("how_to_answer"):
                p = doc.add_paragraph()
                p.add_run("How to answer: ").bold = True
                p.add_run(item["how_to_answer"])
            if item.get("example"):
                p = doc.add_paragraph()
                p.add_run("Example: ").bold = True
                p.add_run(item["example"])

    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


BUILDERS = {
    "pdf": build_pdf,
    "csv": build_csv,
    "docx": build_docx,
}


def render_export(fmt: str, questions: Questions) -> bytes:
    return BUILDERS[fmt](questions)
