from __future__ import annotations

import zlib

from pypdf import PdfWriter
from pypdf.generic import ArrayObject, NameObject

from pdfcompressx.document import filter_names
from pdfcompressx.options import CompressionOptions, resolve_policy
from pdfcompressx.parser import parse
from pdfcompressx.streams import compress_content_streams

from conftest import TEXT_CONTENT, add_page, add_stream, write_pdf


def _contents(document, page: int = 0):
    return document.get_entry(document.pages()[page].dictionary, "/Contents")


def test_content_stream_flate_encoded(text_pdf: bytes) -> None:
    document = parse(text_pdf)

    count = compress_content_streams(document, resolve_policy(CompressionOptions(tier="low")))
    stream = _contents(document)

    assert count == 1
    assert filter_names(stream) == ["/FlateDecode"]
    assert len(stream._data) < len(TEXT_CONTENT)
    assert stream.get_data() == TEXT_CONTENT


def test_ascii_wrapping_only_on_high_tier(text_pdf: bytes) -> None:
    high = parse(text_pdf)
    medium = parse(text_pdf)

    compress_content_streams(high, resolve_policy(CompressionOptions(tier="high")), ascii_encode=True)
    compress_content_streams(medium, resolve_policy(CompressionOptions(tier="medium")), ascii_encode=True)

    assert filter_names(_contents(high)) == ["/ASCII85Decode", "/FlateDecode"]
    assert _contents(high)._data.endswith(b"~>")
    assert _contents(high).get_data() == TEXT_CONTENT
    assert filter_names(_contents(medium)) == ["/FlateDecode"]


def test_content_arrays_and_shared_streams() -> None:
    writer = PdfWriter()
    shared = add_stream(writer, b"q 1 0 0 1 0 0 cm Q\n" * 20)
    first = add_page(writer)
    first[NameObject("/Contents")] = ArrayObject([first.raw_get("/Contents"), shared])
    second = add_page(writer)
    second[NameObject("/Contents")] = shared
    document = parse(write_pdf(writer))

    count = compress_content_streams(document, resolve_policy(CompressionOptions()))

    assert count == 2
    assert _contents(document, page=1).get_data() == b"q 1 0 0 1 0 0 cm Q\n" * 20


def test_undecodable_stream_left_untouched() -> None:
    writer = PdfWriter()
    page = add_page(writer)
    page[NameObject("/Contents")] = add_stream(writer, b"opaque", {"/Filter": NameObject("/BogusDecode")})
    document = parse(write_pdf(writer))

    count = compress_content_streams(document, resolve_policy(CompressionOptions()))

    assert count == 0
    assert _contents(document)._data == b"opaque"


def test_already_compact_stream_not_reported() -> None:
    writer = PdfWriter()
    page = writer.add_blank_page(width=612, height=792)
    compact = zlib.compress(TEXT_CONTENT, 9)
    page[NameObject("/Contents")] = add_stream(writer, compact, {"/Filter": NameObject("/FlateDecode")})
    document = parse(write_pdf(writer))

    count = compress_content_streams(document, resolve_policy(CompressionOptions(tier="medium")))

    assert count == 0
    assert _contents(document)._data == compact
    assert filter_names(_contents(document)) == ["/FlateDecode"]


def test_ascii_wrapping_reported_on_compact_stream() -> None:
    writer = PdfWriter()
    page = writer.add_blank_page(width=612, height=792)
    page[NameObject("/Contents")] = add_stream(
        writer, zlib.compress(TEXT_CONTENT, 9), {"/Filter": NameObject("/FlateDecode")}
    )
    document = parse(write_pdf(writer))

    count = compress_content_streams(document, resolve_policy(CompressionOptions(tier="high")), ascii_encode=True)

    assert count == 1
    assert filter_names(_contents(document)) == ["/ASCII85Decode", "/FlateDecode"]
