"""Structural pruning of optional catalog and page entries."""

from __future__ import annotations

import logging
from typing import Callable

from pypdf.generic import DictionaryObject, IndirectObject

from .document import Document
from .options import TierPolicy
from .utils import attempt

__all__ = ["prune_document"]

_LOGGER = logging.getLogger("pdfcompressx.pruner")

_STRUCTURE_ENTRIES: tuple[tuple[str, str], ...] = (
    ("/StructTreeRoot", "Structure tree removed"),
    ("/MarkInfo", "Mark info removed"),
    ("/ViewerPreferences", "Viewer preferences removed"),
    ("/Names", "Name dictionary removed"),
)

# Viewer behaviour entries; rendering does not depend on them.
_VIEWER_ENTRIES: tuple[tuple[str, str], ...] = (
    ("/OpenAction", "Open action removed"),
    ("/AA", "Document actions removed"),
    ("/URI", "URI base removed"),
    ("/PageLayout", "Page layout removed"),
    ("/PageMode", "Page mode removed"),
    ("/Legal", "Legal attestation removed"),
    ("/Lang", "Language tag removed"),
)


def _step(applied: list[str], message: str, action: Callable[[], bool]) -> bool:
    outcome = attempt(action, description=message.lower(), logger=_LOGGER)
    if outcome.ok and outcome.value:
        applied.append(message)
        return True
    if outcome.ok:
        _LOGGER.debug("Nothing to do for '%s'", message)
    return False


def _remove_document_metadata(document: Document) -> bool:
    removed = False
    info = dict.get(document.trailer, "/Info")
    if info is not None:
        if isinstance(info, IndirectObject):
            document.remove(info)
        removed = document.delete_entry(document.trailer, "/Info")
    return document.delete_entry(document.catalog, "/Metadata") or removed


def _remove_from_pages(document: Document, keys: tuple[str, ...]) -> bool:
    removed = 0
    for page in document.pages():
        for key in keys:
            outcome = attempt(
                document.delete_entry, page.dictionary, key,
                description=f"{key} on page {page.reference}", logger=_LOGGER,
            )
            if outcome.ok and outcome.value:
                removed += 1
    return removed > 0


def _remove_outlines(document: Document) -> bool:
    catalog = document.catalog
    if not document.delete_entry(catalog, "/Outlines"):
        return False
    if dict.get(catalog, "/PageMode") == "/UseOutlines":
        document.delete_entry(catalog, "/PageMode")
    return True


def _remove_named_destinations(document: Document) -> bool:
    catalog = document.catalog
    removed = document.delete_entry(catalog, "/Dests")
    names = document.get_entry(catalog, "/Names")
    if isinstance(names, DictionaryObject) and document.delete_entry(names, "/Dests"):
        removed = True
    return removed


def _remove_page_pieces(document: Document) -> bool:
    removed = _remove_from_pages(document, ("/PieceInfo", "/StructParents"))
    catalog = document.catalog
    for key in ("/PieceInfo", "/SpiderInfo"):
        removed = document.delete_entry(catalog, key) or removed
    return removed


def _remove_embedded_metadata(document: Document) -> int:
    """Drop XMP streams attached to objects other than the catalog."""

    removed = 0
    for reference, value in document.iter_objects():
        if not isinstance(value, DictionaryObject) or "/Metadata" not in value:
            continue
        metadata = document.get_entry(value, "/Metadata")
        if isinstance(metadata, DictionaryObject) and dict.get(metadata, "/Type") not in (None, "/Metadata"):
            continue
        outcome = attempt(
            document.delete_entry, value, "/Metadata",
            description=f"metadata stream of {reference}", logger=_LOGGER,
        )
        if outcome.ok and outcome.value:
            removed += 1
    return removed


def prune_document(
    document: Document,
    policy: TierPolicy,
    applied: list[str],
    *,
    strip_metadata: bool = True,
) -> None:
    """Delete optional subtrees from the catalog and every page.

    Each removal is independent: an unexpected type or a broken reference is
    logged and skipped, and only removals that actually happened are reported
    in *applied*.
    """

    catalog = document.catalog

    _step(applied, "Document metadata removed", lambda: _remove_document_metadata(document))

    if policy.strip_annotations:
        _step(applied, "Page annotations removed", lambda: _remove_from_pages(document, ("/Annots",)))
        _step(applied, "Interactive form removed", lambda: document.delete_entry(catalog, "/AcroForm"))

    if policy.strip_outlines:
        _step(applied, "Outlines removed", lambda: _remove_outlines(document))
        _step(applied, "Named destinations removed", lambda: _remove_named_destinations(document))

    if policy.strip_structure:
        for key, message in _STRUCTURE_ENTRIES:
            _step(applied, message, lambda key=key: document.delete_entry(catalog, key))
        _step(applied, "Page thumbnails removed", lambda: _remove_from_pages(document, ("/Thumb",)))
        _step(applied, "Page-piece data removed", lambda: _remove_page_pieces(document))
        _step(applied, "Page transitions removed", lambda: _remove_from_pages(document, ("/Trans",)))
        for key, message in _VIEWER_ENTRIES:
            _step(applied, message, lambda key=key: document.delete_entry(catalog, key))

    if strip_metadata:
        count = _remove_embedded_metadata(document)
        if count:
            applied.append(f"Embedded metadata streams removed ({count})")
