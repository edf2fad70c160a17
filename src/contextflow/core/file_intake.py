"""Validate uploaded files and extract their text for the knowledge base."""

from __future__ import annotations

import json
from io import BytesIO
from pathlib import PurePath

import structlog

from .models import UploadedFile, new_id, utc_now_iso

SUPPORTED_EXTENSIONS = (
    ".csv",
    ".txt",
    ".json",
    ".md",
    ".pdf",
    ".doc",
    ".docx",
    ".xlsx",
    ".xlsm",
    ".xls",
    ".ppt",
    ".pptx",
)
DEFAULT_MIME_TYPE = "text/plain"

log = structlog.get_logger(__name__)


class FileValidationError(ValueError):
    """Upload rejected before anything is stored."""


def file_extension(name: str) -> str:
    # Dotfiles such as ".csv" still count as having an extension.
    _, dot, ext = PurePath(name).name.rpartition(".")
    return f".{ext.lower()}" if dot else ""


def _docx_text(raw: bytes) -> str:
    from docx import Document

    document = Document(BytesIO(raw))
    return "\n".join(paragraph.text for paragraph in document.paragraphs)


def _pdf_text(raw: bytes) -> str:
    from pypdf import PdfReader

    reader = PdfReader(BytesIO(raw))
    pages = [page.extract_text() or "" for page in reader.pages]
    return "\n\n".join(text.strip() for text in pages if text.strip())


def extract_text(name: str, raw: bytes) -> str:
    """Best-effort text for the knowledge base; binary formats fall back to lossy UTF-8."""
    ext = file_extension(name)
    try:
        if ext == ".docx":
            return _docx_text(raw)
        if ext == ".pdf":
            return _pdf_text(raw)
    except Exception as exc:
        log.warning("text_extraction_failed", file_name=name, extension=ext, error=str(exc))
    return raw.decode("utf-8", errors="replace")


def validate_upload(name: str, raw: bytes) -> str:
    """Check extension, emptiness and JSON well-formedness; return extracted text."""
    ext = file_extension(name)
    if ext not in SUPPORTED_EXTENSIONS:
        raise FileValidationError(
            f"Unsupported file format. Please upload one of: {', '.join(SUPPORTED_EXTENSIONS)}"
        )
    if not raw:
        raise FileValidationError("The file appears to be corrupted or empty.")

    content = extract_text(name, raw)
    if ext == ".json":
        try:
            json.loads(content)
        except (ValueError, RecursionError) as exc:
            raise FileValidationError("Corrupted JSON detected. Please check your file content.") from exc
    return content


def build_uploaded_file(name: str, raw: bytes, mime_type: str | None = None) -> UploadedFile:
    content = validate_upload(name, raw)
    return UploadedFile(
        id=new_id("file"),
        name=name,
        type=mime_type or DEFAULT_MIME_TYPE,
        size=len(raw),
        content=content,
        upload_date=utc_now_iso(),
        is_indexed=True,
    )
