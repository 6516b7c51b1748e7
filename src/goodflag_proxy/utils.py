"""
Utility functions for form values and filenames.

This module provides helper functions for:
- Normalizing optional multipart form values
- Deriving the filename of a signed document
- Reading and writing Content-Disposition headers
"""

from __future__ import annotations

import re
from pathlib import PurePath
from typing import Optional
from urllib.parse import quote, unquote

# The RFC 5987 form wins over a plain (optionally quoted) filename
ENCODED_FILENAME_PATTERN = re.compile(r"filename\*=UTF-8''([^;]+)", re.IGNORECASE)
PLAIN_FILENAME_PATTERN = re.compile(r"filename=\"?([^;\"]+)\"?", re.IGNORECASE)

# Characters replaced in the ASCII fallback of a Content-Disposition filename
UNSAFE_HEADER_CHARS = re.compile(r"[^A-Za-z0-9._ -]+")


def clean_text(value: Optional[str]) -> Optional[str]:
    """
    Strip a form value and treat blank input as missing.

    Example:
        >>> clean_text("  jane@example.com ")
        "jane@example.com"
        >>> clean_text("   ")
        None
    """
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None


def signed_file_name(original: str) -> str:
    """
    Derive the filename of a signed document from the uploaded filename.

    The ``-signed`` suffix goes before the last extension. A name without an
    extension gets ``-signed.pdf`` appended.

    Example:
        >>> signed_file_name("contract.pdf")
        "contract-signed.pdf"
        >>> signed_file_name("README")
        "README-signed.pdf"
    """
    dot_index = original.rfind(".")
    if dot_index == -1:
        return f"{original}-signed.pdf"
    return f"{original[:dot_index]}-signed{original[dot_index:]}"


def is_pdf_upload(file_name: str, content_type: Optional[str]) -> bool:
    """
    Accept an upload when it declares no type, declares a PDF type, or is
    named like a PDF.
    """
    if not content_type:
        return True
    return content_type == "application/pdf" or PurePath(file_name).suffix.lower() == ".pdf"


def parse_content_disposition(header: Optional[str]) -> Optional[str]:
    """
    Extract the filename from a Content-Disposition header.

    Returns None when the header is absent or carries no filename.
    Percent-encoded names are decoded.
    """
    if not header:
        return None
    match = ENCODED_FILENAME_PATTERN.search(header) or PLAIN_FILENAME_PATTERN.search(header)
    if not match:
        return None
    encoded = match.group(1).strip()
    try:
        return unquote(encoded, errors="strict")
    except UnicodeDecodeError:
        return encoded


def attachment_disposition(file_name: str) -> str:
    """Build an attachment Content-Disposition that survives non-ASCII names."""
    fallback = UNSAFE_HEADER_CHARS.sub("_", file_name).strip() or "document.pdf"
    if fallback == file_name:
        return f'attachment; filename="{file_name}"'
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(file_name)}"
