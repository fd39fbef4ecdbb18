"""Write a :class:`~pdfcompressx.document.Document` back to PDF bytes.

The object table is rebuilt as a :mod:`pikepdf` document and saved by qpdf.
By default non-stream objects are packed into compressed object streams and
the file ends with a cross-reference stream, which requires PDF 1.5.
``object_streams=False`` keeps one entry per object and a classic ``xref``
table. Stream payloads keep the filters chosen by the earlier passes; qpdf
only flate-compresses streams that carry no filter at all.
"""

from __future__ import annotations

import logging
from io import BytesIO
from typing import Any

import pikepdf
from pypdf.generic import (
    BooleanObject,
    ByteStringObject,
    FloatObject,
    IndirectObject,
    NameObject,
    NullObject,
    NumberObject,
    StreamObject,
    TextStringObject,
)

from .document import Document, ObjectReference

__all__ = ["serialize"]

_LOGGER = logging.getLogger("pdfcompressx.serializer")

# Trailer entries carried over; qpdf writes its own /Size and /ID.
_TRAILER_KEYS = ("/Root", "/Info")


def _output_version(document: Document, object_streams: bool) -> str:
    if not object_streams:
        return document.version
    major, _, minor = document.version.partition(".")
    try:
        if (int(major), int(minor or 0)) >= (1, 5):
            return document.version
    except ValueError:
        _LOGGER.debug("Unrecognised PDF version %r", document.version)
    return "1.5"


class _GraphBuilder:
    """Copies the object table into a pikepdf document, slot by slot."""

    def __init__(self, document: Document, pdf: pikepdf.Pdf) -> None:
        self.document = document
        self.pdf = pdf
        self.handles: dict[ObjectReference, pikepdf.Object] = {}

    def build(self) -> None:
        objects = list(self.document.iter_objects())
        # Containers get empty placeholders first so cycles resolve.
        for reference, value in objects:
            if isinstance(value, StreamObject):
                self.handles[reference] = self.pdf.make_indirect(pikepdf.Stream(self.pdf, value._data or b""))
            elif isinstance(value, dict):
                self.handles[reference] = self.pdf.make_indirect(pikepdf.Dictionary())
            elif isinstance(value, list):
                self.handles[reference] = self.pdf.make_indirect(pikepdf.Array())
            else:
                self.handles[reference] = self.pdf.make_indirect(self.convert(value))

        for reference, value in objects:
            handle = self.handles[reference]
            if isinstance(value, dict):
                self._fill_dictionary(handle, value)
            elif isinstance(value, list):
                handle.extend([self.convert(item) for item in value])

    def _fill_dictionary(self, target: pikepdf.Object, source: dict[Any, Any]) -> None:
        streamed = isinstance(source, StreamObject)
        for key, item in dict.items(source):
            if streamed and key == "/Length":
                continue
            converted = self.convert(item)
            if converted is not None:
                target[str(key)] = converted

    def convert(self, value: Any) -> Any:
        if isinstance(value, IndirectObject):
            return self.handles.get(ObjectReference.of(value))
        if isinstance(value, StreamObject):
            raise TypeError("streams must be indirect objects")
        if isinstance(value, dict):
            dictionary = pikepdf.Dictionary()
            self._fill_dictionary(dictionary, value)
            return dictionary
        if isinstance(value, list):
            return pikepdf.Array([self.convert(item) for item in value])
        if isinstance(value, BooleanObject):
            return bool(value)
        if isinstance(value, NameObject):
            return pikepdf.Name(str(value))
        if isinstance(value, TextStringObject):
            return pikepdf.String(value.get_original_bytes())
        if isinstance(value, (ByteStringObject, bytes)):
            return pikepdf.String(bytes(value))
        if isinstance(value, (FloatObject, float)):
            return float(value)
        if isinstance(value, (NumberObject, int)):
            return int(value)
        if value is None or isinstance(value, NullObject):
            return None
        if isinstance(value, str):
            return pikepdf.String(value)
        raise TypeError(f"cannot serialize {type(value).__name__}")


def serialize(document: Document, *, object_streams: bool = True) -> bytes:
    """Serialize every object in *document* and return the file bytes.

    References are written as-is; callers run garbage collection first.
    References to missing slots are written as ``null``.
    """

    mode = pikepdf.ObjectStreamMode.generate if object_streams else pikepdf.ObjectStreamMode.disable
    output = BytesIO()
    with pikepdf.new() as pdf:
        builder = _GraphBuilder(document, pdf)
        builder.build()

        for key in _TRAILER_KEYS:
            if key in pdf.trailer:
                del pdf.trailer[key]
            value = dict.get(document.trailer, key)
            converted = builder.convert(value) if value is not None else None
            if converted is not None:
                pdf.trailer[key] = converted

        pdf.save(
            output,
            compress_streams=True,
            stream_decode_level=pikepdf.StreamDecodeLevel.none,
            object_stream_mode=mode,
            min_version=_output_version(document, object_streams),
            fix_metadata_version=False,
            deterministic_id=True,
        )

    _LOGGER.debug(
        "Serialized %s objects into %s bytes (object streams: %s)",
        len(builder.handles), output.tell(), object_streams,
    )
    return output.getvalue()
