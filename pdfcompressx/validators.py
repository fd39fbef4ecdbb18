"""Validation helpers for :mod:`pdfcompressx`."""

from __future__ import annotations

import logging
import os

from .document import Document
from .exceptions import InvalidPDFError
from .parser import parse
from .utils import read_source

_LOGGER = logging.getLogger("pdfcompressx")


def validate_pdf(source: bytes | str | os.PathLike[str], *, ignore_encryption: bool = False) -> Document:
    """Re-parse *source* (bytes or a path) and check it has at least one page.

    Returns the parsed document so callers can inspect it further.
    """

    data = read_source(source)
    _LOGGER.debug("Validating PDF of %s bytes", len(data))

    try:
        document = parse(data, ignore_encryption=ignore_encryption)
        pages = document.pages()
    except InvalidPDFError:
        raise
    except Exception as exc:
        raise InvalidPDFError(f"Failed to parse PDF: {exc}") from exc
    if not pages:
        raise InvalidPDFError("PDF contains no pages")
    return document


__all__ = ["validate_pdf"]
