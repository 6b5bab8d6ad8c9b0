"""
PDF intake: upload validation and plain-text extraction.

Main functions:
    validate_upload: Reject missing, non-PDF or oversize payloads before any work.
    extract_text_from_pdf: Parse PDF bytes into normalized plain text.
"""

from typing import Optional

from rescribe.contexts.intake.logger import _log_debug, _log_info, _log_warning
from rescribe.exceptions import InputValidationError, PDFExtractionError
from rescribe.utils.pdf_processing import extract_page_texts
from rescribe.utils.text_processing import normalize_extracted_text

PDF_MEDIA_TYPE = "application/pdf"
PDF_MAGIC = b"%PDF-"
DEFAULT_MAX_UPLOAD_BYTES = 20 * 1024 * 1024


def validate_upload(
    data: Optional[bytes],
    content_type: Optional[str],
    max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
) -> None:
    """
    Validate an uploaded file before extraction.

    Args:
        data: Raw file bytes (None or empty when nothing was uploaded)
        content_type: Declared media type of the upload
        max_bytes: Size limit in bytes (default: 20 MiB)

    Raises:
        InputValidationError: With code NO_FILE, INVALID_FILE_TYPE or FILE_TOO_LARGE
    """
    if not data:
        raise InputValidationError(
            "No PDF file selected",
            details="Please select a PDF file to upload",
            code="NO_FILE",
        )

    media_type = (content_type or "").split(";")[0].strip().lower()
    if media_type != PDF_MEDIA_TYPE:
        raise InputValidationError(
            "Invalid file type",
            details="Only PDF files are supported. Please upload a PDF file.",
            code="INVALID_FILE_TYPE",
        )

    if len(data) > max_bytes:
        limit_mb = max_bytes // (1024 * 1024)
        raise InputValidationError(
            "File size exceeds limit",
            details=f"Maximum file size is {limit_mb}MB. Please upload a smaller PDF.",
            code="FILE_TOO_LARGE",
        )


def extract_text_from_pdf(data: bytes) -> str:
    """
    Extract plain text from PDF bytes.

    Page texts are joined with newlines and normalized (tabs and inline whitespace
    collapsed, blank lines squeezed, result trimmed).

    Args:
        data: PDF file content

    Returns:
        Normalized text, never empty

    Raises:
        PDFExtractionError: If data is not a parseable PDF or holds no selectable text
    """
    if not isinstance(data, (bytes, bytearray)) or not data:
        raise PDFExtractionError("Invalid PDF buffer provided")

    if not bytes(data[:1024]).lstrip().startswith(PDF_MAGIC):
        raise PDFExtractionError(
            "Could not extract text from PDF",
            details="The uploaded file is not a valid PDF document.",
        )

    try:
        page_texts = extract_page_texts(bytes(data))
    except Exception as e:
        _log_warning(f"PDF parsing failed: {e}")
        raise PDFExtractionError(
            "Could not extract text from PDF",
            details=f"The PDF could not be parsed: {e}",
        ) from e

    _log_debug(f"Parsed {len(page_texts)} page(s)")
    text = normalize_extracted_text("\n".join(page_texts))

    if not text:
        raise PDFExtractionError(
            "Could not extract text from PDF",
            details=(
                "The PDF appears to be empty or contains only images. "
                "Please use a PDF with selectable text."
            ),
        )

    _log_info(f"Extracted {len(text)} characters of resume text")
    return text
