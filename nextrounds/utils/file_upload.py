"""
Resume Upload - validate an uploaded resume and pull out its text.

Accepted: .pdf (PyPDF2), .docx (python-docx), .txt.
Legacy .doc files are refused with a conversion hint.
"""

import io
import re
from typing import Tuple

from docx import Document
from fastapi import UploadFile, HTTPException
from PyPDF2 import PdfReader

from nextrounds.core.config import get_settings
from nextrounds.core.logging_config import get_logger

settings = get_settings()
logger = get_logger(__name__)

ALLOWED_EXTENSIONS = {".pdf", ".docx", ".txt"}
# latin-1 decodes any byte sequence, so it must come last
TEXT_ENCODINGS = ("utf-8", "cp1252", "latin-1")
MIN_TEXT_LENGTH = 10

CONTENT_TYPES = {
    ".pdf": "application/pdf",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".txt": "text/plain",
}


def get_file_extension(filename: str) -> str:
    if "." not in filename:
        return ""
    return "." + filename.rsplit(".", 1)[1].lower()


def max_size_bytes() -> int:
    return settings.max_resume_size_mb * 1024 * 1024


def clean_text(text: str) -> str:
    """Collapse runs of whitespace and blank lines."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n\s*\n+", "\n\n", text)
    return text.strip()


def check_resume_type(filename: str) -> str:
    """
    Validate the name of an uploaded resume.

    Returns:
        lowercase extension
    """
    if not filename:
        raise HTTPException(status_code=400, detail="No filename provided")

    ext = get_file_extension(filename)
    if ext == ".doc":
        raise HTTPException(
            status_code=400,
            detail="Legacy .doc files are not supported. Please save the file as .docx or PDF and try again."
        )
    if ext not in ALLOWED_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail="Invalid file type. Please upload a PDF, DOCX, or TXT file."
        )
    return ext


def check_resume_size(size: int):
    if size > max_size_bytes():
        raise HTTPException(
            status_code=400,
            detail=f"File too large. Maximum size is {settings.max_resume_size_mb}MB."
        )


async def read_resume(file: UploadFile) -> Tuple[bytes, str]:
    """
    Read an upload after checking its type, never holding more than
    the size limit plus one byte.

    Returns:
        (content, extension)
    """
    ext = check_resume_type(file.filename)
    if file.size is not None:
        check_resume_size(file.size)

    content = await file.read(max_size_bytes() + 1)
    check_resume_size(len(content))
    return content, ext


def extract_resume_text(content: bytes, ext: str) -> str:
    """
    Extract and normalise the text of a validated resume.

    Raises:
        HTTPException 400 on extraction errors or near-empty text
    """
    if ext == ".pdf":
        text = extract_from_pdf(content)
    elif ext == ".docx":
        text = extract_from_docx(content)
    else:
        text = extract_from_txt(content)

    text = clean_text(text)
    if len(text) < MIN_TEXT_LENGTH:
        raise HTTPException(
            status_code=400,
            detail="Could not extract enough text from the resume. The file may be empty, scanned, or corrupted."
        )
    return text


def resume_content_type(file: UploadFile, ext: str) -> str:
    return file.content_type or CONTENT_TYPES[ext]


def extract_from_pdf(content: bytes) -> str:
    try:
        reader = PdfReader(io.BytesIO(content))
        pages = [page.extract_text() or "" for page in reader.pages]
        return "\n".join(pages)
    except Exception as e:
        logger.warning(f"PDF extraction failed: {e}")
        raise HTTPException(status_code=400, detail=f"Failed to extract text from PDF: {e}")


def extract_from_docx(content: bytes) -> str:
    try:
        doc = Document(io.BytesIO(content))
        parts = [para.text for para in doc.paragraphs if para.text.strip()]
        for table in doc.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if cells:
                    parts.append(" | ".join(cells))
        return "\n".join(parts)
    except Exception as e:
        logger.warning(f"DOCX extraction failed: {e}")
        raise HTTPException(status_code=400, detail=f"Failed to extract text from DOCX: {e}")


def extract_from_txt(content: bytes) -> str:
    for encoding in TEXT_ENCODINGS:
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise HTTPException(status_code=400, detail="Could not decode text file")


def get_supported_formats() -> dict:
    return {
        "supported_formats": [
            {"extension": ".pdf", "name": "PDF", "content_type": CONTENT_TYPES[".pdf"]},
            {"extension": ".docx", "name": "Word Document", "content_type": CONTENT_TYPES[".docx"]},
            {"extension": ".txt", "name": "Plain Text", "content_type": CONTENT_TYPES[".txt"]},
        ],
        "max_size_mb": settings.max_resume_size_mb,
    }
