"""Top-level package for pdfcompressx."""

from __future__ import annotations

from .compressor import BatchItem, CompressionResult, compress, compress_many, compress_pdf
from .document import Document, ObjectReference
from .exceptions import (
    CompressionError,
    CompressionFailedError,
    InvalidPDFError,
    ParseError,
    PDFCompressXError,
)
from .info import CompressionInfo, get_compression_info
from .options import CompressionOptions
from .parser import parse
from .serializer import serialize
from .validators import validate_pdf

__all__ = [
    "BatchItem",
    "CompressionInfo",
    "CompressionOptions",
    "CompressionResult",
    "Document",
    "ObjectReference",
    "compress",
    "compress_many",
    "compress_pdf",
    "get_compression_info",
    "parse",
    "serialize",
    "validate_pdf",
    "CompressionError",
    "CompressionFailedError",
    "InvalidPDFError",
    "ParseError",
    "PDFCompressXError",
]
