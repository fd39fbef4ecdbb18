"""Custom exception types for :mod:`pdfcompressx`."""

from __future__ import annotations

from typing import Any


class PDFCompressXError(Exception):
    """Base exception for all pdfcompressx related errors."""


class InvalidPDFError(PDFCompressXError):
    """Raised when a PDF file fails validation or is malformed."""


class ParseError(InvalidPDFError):
    """Raised when input bytes cannot be parsed into a document graph."""


class DanglingReferenceError(PDFCompressXError, LookupError):
    """Raised when a reference does not resolve to an object in the table."""

    def __init__(self, reference: Any) -> None:
        super().__init__(f"Object {reference} is not present in the object table")
        self.reference = reference


class CompressionError(PDFCompressXError):
    """Raised when compression fails or produces an invalid document."""


class InsufficientCompressionError(CompressionError):
    """Signals that the main pipeline saved less than the required minimum."""

    def __init__(self, ratio_percent: int, minimum_percent: int) -> None:
        super().__init__(
            f"Compression ratio {ratio_percent}% is below the {minimum_percent}% minimum"
        )
        self.ratio_percent = ratio_percent
        self.minimum_percent = minimum_percent


class CompressionFailedError(CompressionError):
    """Raised when both the main pipeline and the fallback path fail."""


__all__ = [
    "PDFCompressXError",
    "InvalidPDFError",
    "ParseError",
    "DanglingReferenceError",
    "CompressionError",
    "InsufficientCompressionError",
    "CompressionFailedError",
]
