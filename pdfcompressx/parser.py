"""Parse raw PDF bytes into a :class:`~pdfcompressx.document.Document`.

Low-level tokenising is delegated to :class:`pypdf.PdfReader`. The parser
walks the object graph from the trailer, copies every reachable indirect
object into the document table, and rebinds all references so they resolve
through that table from then on.
"""

from __future__ import annotations

import logging
import re
from collections import deque
from io import BytesIO

from pypdf import PdfReader
from pypdf.generic import (
    ArrayObject,
    DictionaryObject,
    IndirectObject,
    NullObject,
    StreamObject,
)

from .document import Document, ObjectReference, iter_references
from .exceptions import ParseError

__all__ = ["parse"]

_LOGGER = logging.getLogger("pdfcompressx.parser")

_HEADER_VERSION = re.compile(r"%PDF-(\d\.\d)")


def _open_reader(data: bytes, *, ignore_encryption: bool, password: str) -> PdfReader:
    try:
        reader = PdfReader(BytesIO(data), strict=False)
    except Exception as exc:
        raise ParseError(f"Failed to parse PDF: {exc}") from exc

    if reader.is_encrypted:
        if not ignore_encryption:
            raise ParseError("PDF is encrypted")
        _LOGGER.debug("Attempting to decrypt encrypted PDF")
        try:
            decrypted = reader.decrypt(password)
        except Exception as exc:
            raise ParseError(f"Unable to decrypt encrypted PDF: {exc}") from exc
        if not decrypted:
            raise ParseError("Unable to decrypt encrypted PDF with the supplied password")
    return reader


def _header_version(reader: PdfReader) -> str:
    try:
        match = _HEADER_VERSION.match(reader.pdf_header)
    except Exception:  # pragma: no cover - header already validated by pypdf
        match = None
    return match.group(1) if match else "1.7"


def _load_graph(reader: PdfReader, document: Document, roots: list[IndirectObject]) -> None:
    queue = deque(roots)
    while queue:
        handle = queue.popleft()
        reference = ObjectReference.of(handle)
        if reference in document:
            continue
        try:
            value = reader.get_object(handle)
        except Exception as exc:
            _LOGGER.warning("Unable to read object %s: %s", reference, exc)
            continue
        if value is None or isinstance(value, NullObject):
            _LOGGER.debug("Object %s is absent from the source file", reference)
            continue
        if isinstance(value, StreamObject):
            # the serializer recomputes lengths; an indirect /Length would
            # otherwise survive as an orphan object
            Document.delete_entry(value, "/Length")
        queue.extend(iter_references(value))
        document.store(reference, document.bind(value))


def parse(data: bytes, *, ignore_encryption: bool = False, password: str = "") -> Document:
    """Parse *data* into a :class:`Document`.

    Raises :class:`~pdfcompressx.exceptions.ParseError` for malformed input,
    and for encrypted input unless *ignore_encryption* is set and *password*
    (empty by default) opens it.
    """

    if not data:
        raise ParseError("Input is empty")

    reader = _open_reader(data, ignore_encryption=ignore_encryption, password=password)
    source_trailer = reader.trailer
    root = dict.get(source_trailer, "/Root")
    if not isinstance(root, IndirectObject):
        raise ParseError("Document trailer has no catalog reference")

    document = Document(version=_header_version(reader))
    roots = [root]
    info = dict.get(source_trailer, "/Info")
    if isinstance(info, IndirectObject):
        roots.append(info)
    try:
        _load_graph(reader, document, roots)
    except Exception as exc:
        raise ParseError(f"Failed to load document objects: {exc}") from exc

    if not isinstance(document.get_object(root), DictionaryObject):
        raise ParseError("Document catalog is missing or not a dictionary")

    document.set_entry(document.trailer, "/Root", document.reference(ObjectReference.of(root)))
    if isinstance(info, IndirectObject) and ObjectReference.of(info) in document:
        document.set_entry(document.trailer, "/Info", document.reference(ObjectReference.of(info)))
    elif isinstance(info, DictionaryObject):
        document.set_entry(document.trailer, "/Info", document.add_object(document.bind(info)))

    identifier = dict.get(source_trailer, "/ID")
    if isinstance(identifier, IndirectObject):
        identifier = document.get_object(identifier) or reader.get_object(identifier)
    if isinstance(identifier, ArrayObject):
        document.set_entry(document.trailer, "/ID", ArrayObject(identifier))

    _LOGGER.debug(
        "Parsed PDF %s with %s objects", document.version, len(document)
    )
    return document
