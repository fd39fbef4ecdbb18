"""Page content stream re-encoding."""

from __future__ import annotations

import base64
import logging

from pypdf.generic import ArrayObject, EncodedStreamObject, IndirectObject, StreamObject

from .document import Document, ObjectReference, build_stream, filter_names, flate_stream
from .options import TierPolicy
from .utils import attempt

__all__ = ["compress_content_streams", "encode_stream"]

_LOGGER = logging.getLogger("pdfcompressx.streams")


def encode_stream(
    entries: dict, data: bytes, level: int, *, ascii_encode: bool = False
) -> EncodedStreamObject:
    """Flate-compress *data* into a new stream, optionally wrapped in ASCII85.

    The wrapped stream lists its filters in decode order,
    ``[/ASCII85Decode /FlateDecode]``.
    """

    stream = flate_stream(entries, data, level)
    if not ascii_encode:
        return stream
    return build_stream(
        stream, base64.a85encode(stream._data) + b"~>", ("/ASCII85Decode", "/FlateDecode")
    )


def _content_handles(document: Document, page_dictionary: object) -> list[IndirectObject]:
    contents = dict.get(page_dictionary, "/Contents")
    if isinstance(contents, IndirectObject):
        resolved = document.get_object(contents)
        if isinstance(resolved, ArrayObject):
            contents = resolved
        else:
            return [contents]
    if isinstance(contents, ArrayObject):
        return [item for item in contents if isinstance(item, IndirectObject)]
    return []


def _recompress(document: Document, reference: ObjectReference, level: int, ascii_encode: bool) -> bool:
    stream = document.lookup(reference)
    if not isinstance(stream, StreamObject):
        raise TypeError(f"expected a content stream, got {type(stream).__name__}")
    encoded = encode_stream(stream, stream.get_data(), level, ascii_encode=ascii_encode)
    if filter_names(encoded) == filter_names(stream) and len(encoded._data) >= len(stream._data):
        return False
    document.replace(reference, encoded)
    return True


def compress_content_streams(document: Document, policy: TierPolicy, *, ascii_encode: bool = False) -> int:
    """Re-encode every page content stream with a single flate filter.

    With *ascii_encode* on the high tier the flate output is additionally
    ASCII85-encoded. Streams whose current filters cannot be decoded are
    left untouched, and so are flate streams that would not shrink.
    Returns the number of streams rewritten.
    """

    ascii_encode = ascii_encode and policy.name == "high"
    seen: set[ObjectReference] = set()
    rewritten = 0
    for page in document.pages():
        for handle in _content_handles(document, page.dictionary):
            reference = ObjectReference.of(handle)
            if reference in seen:
                continue
            seen.add(reference)
            outcome = attempt(
                _recompress, document, reference, policy.flate_level, ascii_encode,
                description=f"content stream {reference}", logger=_LOGGER,
            )
            if outcome.ok and outcome.value:
                rewritten += 1
    return rewritten
