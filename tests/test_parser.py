from __future__ import annotations

import re

import pytest
from pypdf import PdfWriter
from pypdf.generic import StreamObject

from pdfcompressx.exceptions import InvalidPDFError, ParseError
from pdfcompressx.parser import parse

from conftest import LONG_TEXT, TEXT_CONTENT, add_page, write_pdf


def test_parse_loads_reachable_objects(text_pdf: bytes) -> None:
    document = parse(text_pdf)

    assert re.fullmatch(r"\d\.\d", document.version)
    assert len(document.pages()) == 1
    assert document.info["/Title"] == LONG_TEXT


def test_parse_drops_stream_lengths(text_pdf: bytes) -> None:
    document = parse(text_pdf)

    streams = [value for _, value in document.iter_objects() if isinstance(value, StreamObject)]
    assert streams
    assert all("/Length" not in stream for stream in streams)
    page = document.pages()[0]
    assert document.get_entry(page.dictionary, "/Contents").get_data() == TEXT_CONTENT


@pytest.mark.parametrize("data", [b"", b"not a pdf at all", b"%PDF-1.4\n%%EOF"])
def test_parse_rejects_malformed_input(data: bytes) -> None:
    with pytest.raises(ParseError):
        parse(data)


def test_parse_error_is_invalid_pdf_error() -> None:
    with pytest.raises(InvalidPDFError):
        parse(b"garbage")


def _encrypted_pdf() -> bytes:
    writer = PdfWriter()
    add_page(writer)
    writer.encrypt(user_password="secret", algorithm="RC4-128")
    return write_pdf(writer)


def test_parse_refuses_encrypted_input() -> None:
    with pytest.raises(ParseError, match="encrypted"):
        parse(_encrypted_pdf())


def test_parse_decrypts_when_allowed() -> None:
    document = parse(_encrypted_pdf(), ignore_encryption=True, password="secret")

    page = document.pages()[0]
    assert document.get_entry(page.dictionary, "/Contents").get_data() == TEXT_CONTENT


def test_parse_wrong_password_fails() -> None:
    with pytest.raises(ParseError):
        parse(_encrypted_pdf(), ignore_encryption=True, password="wrong")
