"""Detection and merging of byte-identical indirect objects."""

from __future__ import annotations

import dataclasses
import hashlib
import logging
from io import BytesIO
from typing import Any

from pypdf.generic import IndirectObject, NullObject, PdfObject, StreamObject

from .document import Document, ObjectReference, rewrite_references

__all__ = ["DuplicateReport", "canonical_form", "detect_duplicates", "merge_duplicates"]

_LOGGER = logging.getLogger("pdfcompressx.duplicates")

_UNMERGEABLE_TYPES = frozenset({"/Page", "/Pages", "/Catalog"})


@dataclasses.dataclass(slots=True)
class DuplicateReport:
    """Duplicates found in one scan, each mapped to the first equal object."""

    duplicates: dict[ObjectReference, ObjectReference] = dataclasses.field(default_factory=dict)

    @property
    def count(self) -> int:
        return len(self.duplicates)


def _write_canonical(value: Any, buffer: BytesIO) -> None:
    if isinstance(value, IndirectObject):
        buffer.write(f"{value.idnum} {value.generation} R".encode("ascii"))
    elif isinstance(value, dict):
        buffer.write(b"<<")
        for key in sorted(dict.keys(value)):
            buffer.write(str(key).encode("utf-8"))
            buffer.write(b" ")
            _write_canonical(dict.__getitem__(value, key), buffer)
            buffer.write(b" ")
        buffer.write(b">>")
        if isinstance(value, StreamObject):
            buffer.write(b"stream")
            buffer.write(hashlib.sha256(value._data or b"").digest())
    elif isinstance(value, list):
        buffer.write(b"[")
        for item in value:
            _write_canonical(item, buffer)
            buffer.write(b" ")
        buffer.write(b"]")
    elif isinstance(value, PdfObject):
        value.write_to_stream(buffer)
    else:
        buffer.write(repr(value).encode("utf-8"))


def canonical_form(value: Any) -> bytes:
    """Serialize *value* so that equal objects produce equal bytes.

    Dictionary keys are sorted and stream payloads are folded into a digest,
    so insertion order and payload size do not matter.
    """

    buffer = BytesIO()
    _write_canonical(value, buffer)
    return buffer.getvalue()


def detect_duplicates(document: Document) -> DuplicateReport:
    report = DuplicateReport()
    seen: dict[bytes, ObjectReference] = {}
    for reference, value in document.iter_objects():
        if isinstance(value, NullObject):
            continue
        digest = hashlib.sha256(canonical_form(value)).digest()
        original = seen.setdefault(digest, reference)
        if original != reference:
            report.duplicates[reference] = original
    if report.count:
        _LOGGER.debug("Found %s duplicate objects", report.count)
    return report


def _mergeable(value: Any) -> bool:
    return not (isinstance(value, dict) and dict.get(value, "/Type") in _UNMERGEABLE_TYPES)


def merge_duplicates(document: Document, report: DuplicateReport) -> int:
    """Point every reference at the first copy of each duplicate and drop the rest.

    Page tree nodes and the catalog are never merged. Returns the number of
    objects removed from the table.
    """

    mapping = {
        duplicate: original
        for duplicate, original in report.duplicates.items()
        if _mergeable(document.get_object(duplicate))
    }
    if not mapping:
        return 0

    def _replace(handle: IndirectObject) -> PdfObject:
        target = mapping.get(ObjectReference.of(handle))
        return handle if target is None else document.reference(target)

    visited: set[int] = set()
    for _, value in document.iter_objects():
        rewrite_references(value, _replace, visited)
    rewrite_references(document.trailer, _replace, visited)
    for duplicate in mapping:
        document.remove(duplicate)
    _LOGGER.debug("Merged %s duplicate objects", len(mapping))
    return len(mapping)
