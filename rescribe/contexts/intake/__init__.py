"""
Intake Context

Responsibilities:
- Validates uploaded PDF payloads (presence, media type, size)
- Extracts plain resume text from PDF bytes

Owns: Upload validation, text extraction
Never: Calls AI providers or the LaTeX compiler
"""

from rescribe.contexts.intake.pdf_text import (
    DEFAULT_MAX_UPLOAD_BYTES,
    extract_text_from_pdf,
    validate_upload,
)

__all__ = ["DEFAULT_MAX_UPLOAD_BYTES", "extract_text_from_pdf", "validate_upload"]
