"""Information utilities for :mod:`pdfcompressx`."""

from __future__ import annotations

import dataclasses
import logging
import os

from pypdf.generic import ArrayObject, DictionaryObject, IndirectObject

from .document import Document, ObjectReference, Page
from .images import iter_page_images
from .parser import parse
from .utils import read_source

_LOGGER = logging.getLogger("pdfcompressx")


@dataclasses.dataclass(slots=True)
class CompressionInfo:
    """Describes metrics about a PDF file relevant for compression."""

    file_size_bytes: int
    page_count: int
    image_count: int
    font_count: int
    average_image_dpi: float | None
    potential_savings_bytes: int
    has_metadata: bool


def _page_size_inches(document: Document, page: Page) -> tuple[float, float]:
    box = document.inherited_entry(page.dictionary, "/MediaBox")
    if isinstance(box, ArrayObject) and len(box) == 4:
        try:
            x0, y0, x1, y1 = (float(document.resolve(value)) for value in box)
            return abs(x1 - x0) / 72.0, abs(y1 - y0) / 72.0
        except (TypeError, ValueError):
            _LOGGER.debug("Unusable MediaBox on page %s", page.reference)
    # US Letter
    return 8.5, 11.0


def _estimate_image_dpi(document: Document, pages: list[Page]) -> tuple[int, float | None]:
    seen: set[ObjectReference] = set()
    image_count = 0
    dpi_values: list[float] = []

    for page in pages:
        page_width_inch, page_height_inch = _page_size_inches(document, page)
        for _, image in iter_page_images(document, document.page_resources(page), seen):
            image_count += 1
            width_px = document.get_entry(image, "/Width")
            height_px = document.get_entry(image, "/Height")
            if not isinstance(width_px, (int, float)) or not isinstance(height_px, (int, float)):
                continue
            dpi_x = width_px / max(page_width_inch, 1e-6)
            dpi_y = height_px / max(page_height_inch, 1e-6)
            dpi_values.append((dpi_x + dpi_y) / 2.0)

    average_dpi = sum(dpi_values) / len(dpi_values) if dpi_values else None
    return image_count, average_dpi


def _count_fonts(document: Document, pages: list[Page]) -> int:
    seen: set[ObjectReference | int] = set()
    for page in pages:
        resources = document.page_resources(page)
        fonts = document.get_entry(resources, "/Font") if resources is not None else None
        if not isinstance(fonts, DictionaryObject):
            continue
        for handle in dict.values(fonts):
            seen.add(ObjectReference.of(handle) if isinstance(handle, IndirectObject) else id(handle))
    return len(seen)


def _estimate_potential_savings(file_size_bytes: int, image_count: int) -> int:
    if image_count == 0:
        return int(file_size_bytes * 0.05)
    weight = min(0.35 + image_count * 0.02, 0.6)
    return int(file_size_bytes * weight)


def get_compression_info(source: bytes | str | os.PathLike[str]) -> CompressionInfo:
    """Return :class:`CompressionInfo` for a PDF given as bytes or a path."""

    data = read_source(source)
    document = parse(data)
    pages = document.pages()
    image_count, average_dpi = _estimate_image_dpi(document, pages)

    info = CompressionInfo(
        file_size_bytes=len(data),
        page_count=len(pages),
        image_count=image_count,
        font_count=_count_fonts(document, pages),
        average_image_dpi=average_dpi,
        potential_savings_bytes=_estimate_potential_savings(len(data), image_count),
        has_metadata=document.info is not None or "/Metadata" in document.catalog,
    )
    _LOGGER.debug("Compression info: %s", info)
    return info


__all__ = ["CompressionInfo", "get_compression_info"]
