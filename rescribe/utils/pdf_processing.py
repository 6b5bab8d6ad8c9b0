"""
PDF processing utilities.

Helper functions:
    page_count: Quick page count without full extraction.
    extract_page_texts: Per-page text extraction from in-memory PDF bytes.
"""

from io import BytesIO
from pathlib import Path
from typing import List, Optional, Union

import pdfplumber
from PyPDF2 import PdfReader


def page_count(pdf_path: Union[str, Path]) -> Optional[int]:
    """Get page count from PDF, or None if unreadable."""
    try:
        reader = PdfReader(str(pdf_path))
        return len(reader.pages)
    except Exception:
        return None


def extract_page_texts(data: bytes) -> List[str]:
    """
    Extract the text of each page from PDF bytes.

    Pages without a text layer (scanned images) yield empty strings.

    Raises:
        Whatever pdfplumber raises for unreadable documents
    """
    with pdfplumber.open(BytesIO(data)) as pdf:
        return [page.extract_text() or "" for page in pdf.pages]
