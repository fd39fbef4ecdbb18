"""Font dictionary slimming."""

from __future__ import annotations

import logging

from pypdf.generic import ArrayObject, DictionaryObject, IndirectObject

from .document import Document, ObjectReference
from .options import TierPolicy
from .utils import attempt

__all__ = ["optimize_fonts"]

_LOGGER = logging.getLogger("pdfcompressx.fonts")


def _font_dictionaries(document: Document, font: DictionaryObject) -> list[DictionaryObject]:
    fonts = [font]
    descendants = document.get_entry(font, "/DescendantFonts")
    if isinstance(descendants, ArrayObject):
        for item in descendants:
            descendant = document.resolve(item)
            if isinstance(descendant, DictionaryObject):
                fonts.append(descendant)
    return fonts


def _optimize_font(document: Document, handle: object, policy: TierPolicy) -> bool:
    font = document.resolve(handle)
    if not isinstance(font, DictionaryObject):
        raise TypeError(f"expected a font dictionary, got {type(font).__name__}")

    changed = False
    for current in _font_dictionaries(document, font):
        changed = document.delete_entry(current, "/Metadata") or changed
        descriptor = document.get_entry(current, "/FontDescriptor")
        if isinstance(descriptor, DictionaryObject):
            changed = document.delete_entry(descriptor, "/Metadata") or changed
        if policy.strip_font_descriptors:
            changed = document.delete_entry(current, "/FontDescriptor") or changed
    if policy.strip_font_descriptors:
        changed = document.delete_entry(font, "/ToUnicode") or changed
    return changed


def optimize_fonts(document: Document, policy: TierPolicy) -> int:
    """Strip optional font data referenced from page resources.

    Font and descriptor ``/Metadata`` is always removed. On the high tier the
    ``/FontDescriptor`` (embedded programs included) and ``/ToUnicode`` maps
    go as well, which affects rendering fidelity and text extraction.
    Returns the number of fonts that changed.
    """

    seen: set[ObjectReference] = set()
    changed = 0
    for page in document.pages():
        resources = document.page_resources(page)
        fonts = document.get_entry(resources, "/Font") if resources is not None else None
        if not isinstance(fonts, DictionaryObject):
            continue
        for name, handle in list(dict.items(fonts)):
            if isinstance(handle, IndirectObject):
                reference = ObjectReference.of(handle)
                if reference in seen:
                    continue
                seen.add(reference)
            outcome = attempt(
                _optimize_font, document, handle, policy,
                description=f"font {name} on page {page.reference}", logger=_LOGGER,
            )
            if outcome.ok and outcome.value:
                changed += 1
    return changed
