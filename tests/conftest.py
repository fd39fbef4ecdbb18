from __future__ import annotations

import sys
import zlib
from io import BytesIO
from pathlib import Path
from typing import Any

import pytest
from PIL import Image
from pypdf import PdfWriter
from pypdf.generic import (
    ArrayObject,
    BooleanObject,
    DecodedStreamObject,
    DictionaryObject,
    FloatObject,
    IndirectObject,
    NameObject,
    NumberObject,
    TextStringObject,
)

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

TEXT_CONTENT = b"BT /F1 12 Tf 72 720 Td (The quick brown fox jumps over the lazy dog) Tj ET\n" * 60
IMAGE_CONTENT = b"q 200 0 0 150 72 500 cm /Im0 Do Q\n"
XMP_PACKET = (
    b'<?xpacket begin="" id="W5M0MpCehiHzreSzNTczkc9d"?>'
    b'<x:xmpmeta xmlns:x="adobe:ns:meta/"><rdf:RDF/></x:xmpmeta>'
    b'<?xpacket end="w"?>'
)
LONG_TEXT = "Quarterly structural report " * 8


def write_pdf(writer: PdfWriter) -> bytes:
    buffer = BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def add_stream(writer: PdfWriter, payload: bytes, entries: dict[str, Any] | None = None) -> IndirectObject:
    stream = DecodedStreamObject()
    stream.set_data(payload)
    for key, value in (entries or {}).items():
        stream[NameObject(key)] = value
    return writer._add_object(stream)


def add_metadata_stream(writer: PdfWriter) -> IndirectObject:
    return add_stream(
        writer, XMP_PACKET, {"/Type": NameObject("/Metadata"), "/Subtype": NameObject("/XML")}
    )


def add_image(
    writer: PdfWriter,
    size: tuple[int, int] = (64, 48),
    *,
    encoding: str = "jpeg",
    declared: tuple[int, int] | None = None,
    color: tuple[int, int, int] = (180, 40, 40),
    pattern: bool = False,
    extra: dict[str, Any] | None = None,
) -> IndirectObject:
    if pattern:
        picture = Image.effect_mandelbrot(size, (-2.0, -1.5, 1.0, 1.5), 100).convert("RGB")
    else:
        picture = Image.new("RGB", size, color)
    if encoding == "jpeg":
        buffer = BytesIO()
        picture.save(buffer, format="JPEG", quality=90)
        payload = buffer.getvalue()
        filters = NameObject("/DCTDecode")
    else:
        payload = zlib.compress(picture.tobytes())
        filters = NameObject("/FlateDecode")
    width, height = declared or size
    entries: dict[str, Any] = {
        "/Type": NameObject("/XObject"),
        "/Subtype": NameObject("/Image"),
        "/Width": NumberObject(width),
        "/Height": NumberObject(height),
        "/ColorSpace": NameObject("/DeviceRGB"),
        "/BitsPerComponent": NumberObject(8),
        "/Filter": filters,
    }
    entries.update(extra or {})
    return add_stream(writer, payload, entries)


def add_form(writer: PdfWriter, images: dict[str, IndirectObject]) -> IndirectObject:
    resources = DictionaryObject({NameObject("/XObject"): _name_dict(images)})
    return add_stream(
        writer,
        b"q /Im0 Do Q",
        {
            "/Type": NameObject("/XObject"),
            "/Subtype": NameObject("/Form"),
            "/BBox": ArrayObject([NumberObject(0), NumberObject(0), NumberObject(100), NumberObject(100)]),
            "/Resources": resources,
        },
    )


def add_font(writer: PdfWriter, *, embedded: bool = True) -> IndirectObject:
    font = DictionaryObject(
        {
            NameObject("/Type"): NameObject("/Font"),
            NameObject("/Subtype"): NameObject("/TrueType" if embedded else "/Type1"),
            NameObject("/BaseFont"): NameObject("/Arial" if embedded else "/Helvetica"),
        }
    )
    if embedded:
        descriptor = DictionaryObject(
            {
                NameObject("/Type"): NameObject("/FontDescriptor"),
                NameObject("/FontName"): NameObject("/Arial"),
                NameObject("/Flags"): NumberObject(32),
                NameObject("/ItalicAngle"): FloatObject(0),
                NameObject("/FontFile2"): add_stream(writer, b"\x00\x01\x00\x00" * 256),
                NameObject("/Metadata"): add_metadata_stream(writer),
            }
        )
        font[NameObject("/FontDescriptor")] = writer._add_object(descriptor)
        font[NameObject("/ToUnicode")] = add_stream(writer, b"/CIDInit /ProcSet findresource begin end")
        font[NameObject("/Metadata")] = add_metadata_stream(writer)
    return writer._add_object(font)


def _name_dict(values: dict[str, Any]) -> DictionaryObject:
    return DictionaryObject({NameObject(key): value for key, value in values.items()})


def add_page(
    writer: PdfWriter,
    *,
    content: bytes = TEXT_CONTENT,
    fonts: dict[str, IndirectObject] | None = None,
    images: dict[str, IndirectObject] | None = None,
) -> DictionaryObject:
    page = writer.add_blank_page(width=612, height=792)
    resources = DictionaryObject()
    if fonts:
        resources[NameObject("/Font")] = _name_dict(fonts)
    if images:
        resources[NameObject("/XObject")] = _name_dict(images)
    page[NameObject("/Resources")] = resources
    page[NameObject("/Contents")] = add_stream(writer, content)
    return page


def add_annotation(writer: PdfWriter, page: DictionaryObject) -> None:
    annotation = DictionaryObject(
        {
            NameObject("/Type"): NameObject("/Annot"),
            NameObject("/Subtype"): NameObject("/Text"),
            NameObject("/Rect"): ArrayObject([NumberObject(10), NumberObject(10), NumberObject(30), NumberObject(30)]),
            NameObject("/Contents"): TextStringObject("Reviewer note"),
        }
    )
    page[NameObject("/Annots")] = ArrayObject([writer._add_object(annotation)])


@pytest.fixture()
def text_pdf() -> bytes:
    writer = PdfWriter()
    add_page(writer, fonts={"/F1": add_font(writer, embedded=False)})
    writer.add_metadata({"/Title": LONG_TEXT, "/Author": LONG_TEXT, "/Subject": LONG_TEXT})
    return write_pdf(writer)


@pytest.fixture()
def image_pdf() -> bytes:
    writer = PdfWriter()
    images = {
        "/Im0": add_image(writer, (400, 300), encoding="jpeg"),
        "/Im1": add_image(writer, (200, 100), encoding="raw", color=(20, 120, 220)),
    }
    add_page(writer, content=IMAGE_CONTENT + b"q 50 0 0 25 72 100 cm /Im1 Do Q\n", images=images)
    return write_pdf(writer)


@pytest.fixture()
def rich_pdf() -> bytes:
    writer = PdfWriter()
    image = add_image(writer, (400, 300), encoding="jpeg")
    font = add_font(writer)
    first = add_page(writer, content=TEXT_CONTENT + IMAGE_CONTENT, fonts={"/F1": font}, images={"/Im0": image})
    add_page(writer, content=TEXT_CONTENT + IMAGE_CONTENT, fonts={"/F1": font}, images={"/Im0": image})
    add_annotation(writer, first)
    first[NameObject("/Thumb")] = add_image(writer, (16, 16), encoding="raw")
    first[NameObject("/PieceInfo")] = DictionaryObject({NameObject("/App"): DictionaryObject()})

    writer.add_outline_item("Chapter 1", 0)
    writer.page_mode = "/UseOutlines"
    catalog = writer._root_object
    catalog[NameObject("/AcroForm")] = writer._add_object(
        DictionaryObject({NameObject("/Fields"): ArrayObject()})
    )
    catalog[NameObject("/StructTreeRoot")] = writer._add_object(
        DictionaryObject({NameObject("/Type"): NameObject("/StructTreeRoot")})
    )
    catalog[NameObject("/MarkInfo")] = DictionaryObject({NameObject("/Marked"): BooleanObject(True)})
    catalog[NameObject("/ViewerPreferences")] = DictionaryObject(
        {NameObject("/HideToolbar"): BooleanObject(True)}
    )
    catalog[NameObject("/Metadata")] = add_metadata_stream(writer)
    writer.add_metadata({"/Title": "Rich document", "/Author": "pdfcompressx", "/Subject": "tests"})
    return write_pdf(writer)


@pytest.fixture()
def write_file(tmp_path: Path):
    def _write(name: str, data: bytes) -> Path:
        path = tmp_path / name
        path.write_bytes(data)
        return path

    return _write


@pytest.fixture()
def sample_pdf(rich_pdf: bytes, write_file) -> Path:
    return write_file("sample.pdf", rich_pdf)
