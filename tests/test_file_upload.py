"""
Tests for resume validation and text extraction.
"""

import asyncio
import io

import pytest
from docx import Document
from fastapi import HTTPException, UploadFile
from reportlab.pdfgen import canvas

from nextrounds.utils import file_upload
from nextrounds.utils.file_upload import (
    check_resume_size, check_resume_type, clean_text, extract_resume_text, get_file_extension,
    max_size_bytes, read_resume, resume_content_type
)


def upload(filename, content, size=None):
    return UploadFile(file=io.BytesIO(content), filename=filename, size=size)


def extract(filename, content):
    data, ext = asyncio.run(read_resume(upload(filename, content)))
    return extract_resume_text(data, ext)


def make_pdf(text):
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer)
    pdf.drawString(72, 720, text)
    pdf.save()
    return buffer.getvalue()


def make_docx(paragraphs, table_row=None):
    doc = Document()
    for text in paragraphs:
        doc.add_paragraph(text)
    if table_row:
        table = doc.add_table(rows=1, cols=len(table_row))
        for cell, value in zip(table.rows[0].cells, table_row):
            cell.text = value
    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


def test_get_file_extension():
    assert get_file_extension("Resume.PDF") == ".pdf"
    assert get_file_extension("my.resume.docx") == ".docx"
    assert get_file_extension("resume") == ""


def test_clean_text_collapses_whitespace():
    assert clean_text("a\t\t b\r\n\r\n\r\nc  ") == "a b\n\nc"


# ============================================================
# TYPE AND SIZE CHECKS
# ============================================================

def test_check_resume_size_rejects_oversize():
    with pytest.raises(HTTPException) as exc:
        check_resume_size(max_size_bytes() + 1)
    assert exc.value.status_code == 400
    assert "File too large" in exc.value.detail


def test_check_resume_type_rejects_missing_name():
    with pytest.raises(HTTPException) as exc:
        check_resume_type("")
    assert exc.value.detail == "No filename provided"


def test_check_resume_type_rejects_legacy_doc():
    with pytest.raises(HTTPException) as exc:
        check_resume_type("resume.doc")
    assert "Legacy .doc" in exc.value.detail


def test_type_is_checked_before_size():
    oversized = upload("malware.exe", b"x" * 32, size=max_size_bytes() + 1)

    with pytest.raises(HTTPException) as exc:
        asyncio.run(read_resume(oversized))
    assert exc.value.detail.startswith("Invalid file type")


def test_declared_size_rejected_before_reading():
    oversized = upload("resume.pdf", b"%PDF-1.4", size=max_size_bytes() + 1)

    with pytest.raises(HTTPException) as exc:
        asyncio.run(read_resume(oversized))
    assert "File too large" in exc.value.detail
    assert oversized.file.tell() == 0


def test_undeclared_size_reads_at_most_one_byte_past_limit(monkeypatch):
    monkeypatch.setattr(file_upload.settings, "max_resume_size_mb", 1)
    oversized = upload("resume.txt", b"a" * (3 * 1024 * 1024))

    with pytest.raises(HTTPException) as exc:
        asyncio.run(read_resume(oversized))
    assert "Maximum size is 1MB" in exc.value.detail
    assert oversized.file.tell() == max_size_bytes() + 1


def test_read_resume_at_limit_is_accepted(monkeypatch):
    monkeypatch.setattr(file_upload.settings, "max_resume_size_mb", 1)
    content = b"a" * max_size_bytes()

    data, ext = asyncio.run(read_resume(upload("Resume.TXT", content)))

    assert data == content
    assert ext == ".txt"


def test_resume_content_type_falls_back_to_extension():
    assert resume_content_type(upload("resume.txt", b""), ".txt") == "text/plain"


# ============================================================
# TEXT EXTRACTION
# ============================================================

def test_extracts_txt():
    text = extract("resume.txt", b"Jane Doe\n\n\n\nPython developer")
    assert text == "Jane Doe\n\nPython developer"


def test_extracts_latin1_txt():
    text = extract("resume.txt", "Renée Müller, engineer".encode("latin-1"))
    assert text == "Renée Müller, engineer"


def test_extracts_cp1252_smart_quotes():
    text = extract("resume.txt", b"\x93Shipped\x94 the billing rewrite \x96 on time")
    assert text == "“Shipped” the billing rewrite – on time"


def test_bytes_undefined_in_cp1252_fall_back_to_latin1():
    text = extract("resume.txt", b"Jane Doe \x81 Python developer")
    assert text == "Jane Doe \x81 Python developer"


def test_extracts_pdf():
    text = extract("resume.pdf", make_pdf("Senior Data Scientist at Acme"))
    assert "Senior Data Scientist" in text


def test_extracts_docx_paragraphs_and_tables():
    content = make_docx(["Jane Doe", "Product Manager"], table_row=["Skills", "Roadmaps"])

    text = extract("resume.docx", content)

    assert "Product Manager" in text
    assert "Skills | Roadmaps" in text


def test_corrupt_pdf_is_400():
    with pytest.raises(HTTPException) as exc:
        extract("resume.pdf", b"this is not a pdf at all")
    assert exc.value.status_code == 400
    assert "Failed to extract text from PDF" in exc.value.detail


def test_empty_docx_is_400():
    with pytest.raises(HTTPException) as exc:
        extract("resume.docx", make_docx([]))
    assert "Could not extract enough text" in exc.value.detail
