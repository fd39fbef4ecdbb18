from __future__ import annotations

from io import BytesIO

from PIL import Image
from pypdf import PdfWriter
from pypdf.generic import BooleanObject, DictionaryObject, NameObject, NumberObject

from pdfcompressx.document import filter_names
from pdfcompressx.images import transform_images
from pdfcompressx.options import CompressionOptions, resolve_policy
from pdfcompressx.parser import parse

from conftest import IMAGE_CONTENT, add_form, add_image, add_metadata_stream, add_page, add_stream, write_pdf


def _transform(data: bytes, **overrides):
    options = CompressionOptions(**overrides)
    document = parse(data)
    return document, transform_images(document, options, resolve_policy(options))


def _image(document, name: str = "/Im0", page: int = 0):
    resources = document.page_resources(document.pages()[page])
    return document.get_entry(resources, "/XObject")[name]


def _single_image_pdf(**kwargs) -> bytes:
    writer = PdfWriter()
    add_page(writer, content=IMAGE_CONTENT, images={"/Im0": add_image(writer, **kwargs)})
    return write_pdf(writer)


def test_large_image_scaled_for_high_tier() -> None:
    writer = PdfWriter()
    image = add_image(
        writer,
        (64, 48),
        encoding="raw",
        declared=(3000, 4000),
        extra={
            "/Interpolate": BooleanObject(True),
            "/Metadata": add_metadata_stream(writer),
            "/SMask": add_image(writer, (8, 8), encoding="raw"),
            "/DecodeParms": DictionaryObject({NameObject("/Predictor"): NumberObject(1)}),
        },
    )
    add_page(writer, content=IMAGE_CONTENT, images={"/Im0": image})

    document, transforms = _transform(
        write_pdf(writer), tier="high", target_image_resolution=72, jpeg_quality=50
    )
    result = _image(document)

    assert len(transforms) == 1
    assert (result["/Width"], result["/Height"]) == (900, 1200)
    assert result["/BitsPerComponent"] == 2
    assert filter_names(result) == ["/DCTDecode"]
    for key in ("/DecodeParms", "/ColorSpace", "/Metadata", "/Interpolate", "/SMask"):
        assert key not in result
    assert transforms[0].payload_recoded is False


def test_small_image_clamped_to_minimum() -> None:
    document, transforms = _transform(
        _single_image_pdf(size=(40, 40)), tier="high", target_image_resolution=72
    )
    result = _image(document)

    assert transforms[0].new_size == (32, 32)
    assert (result["/Width"], result["/Height"]) == (32, 32)


def test_jpeg_payload_resampled_and_recoded() -> None:
    document, transforms = _transform(_single_image_pdf(size=(400, 300)), tier="medium")
    result = _image(document)

    assert (result["/Width"], result["/Height"]) == (320, 240)
    assert result["/BitsPerComponent"] == 4
    assert transforms[0].payload_recoded is True
    with Image.open(BytesIO(result._data)) as picture:
        assert picture.format == "JPEG"
        assert picture.size == (320, 240)


def test_raw_payload_recoded_as_jpeg() -> None:
    document, _ = _transform(_single_image_pdf(size=(200, 100), encoding="raw"), tier="low")
    result = _image(document)

    assert filter_names(result) == ["/DCTDecode"]
    assert result["/BitsPerComponent"] == 8
    with Image.open(BytesIO(result._data)) as picture:
        assert picture.size == (180, 90)


def test_raw_payload_kept_as_flate_without_recoding() -> None:
    document, transforms = _transform(
        _single_image_pdf(size=(200, 100), encoding="raw"), recode_images_as_jpeg=False
    )
    result = _image(document)

    assert transforms[0].payload_recoded is True
    assert filter_names(result) == ["/FlateDecode"]
    assert (result["/Width"], result["/Height"]) == (160, 80)
    assert result["/BitsPerComponent"] == 8
    assert len(result.get_data()) == 160 * 80 * 3
    assert "/ColorSpace" not in result


def test_shared_image_transformed_once() -> None:
    writer = PdfWriter()
    image = add_image(writer, (400, 300))
    add_page(writer, content=IMAGE_CONTENT, images={"/Im0": image})
    add_page(writer, content=IMAGE_CONTENT, images={"/Im0": image})

    document, transforms = _transform(write_pdf(writer), tier="medium")

    assert len(transforms) == 1
    assert _image(document, page=0)["/Width"] == 320
    assert _image(document, page=1)["/Width"] == 320


def test_images_inside_form_xobjects() -> None:
    writer = PdfWriter()
    form = add_form(writer, {"/Im0": add_image(writer, (100, 100))})
    add_page(writer, content=b"q /Fm0 Do Q", images={"/Fm0": form})

    document, transforms = _transform(write_pdf(writer), tier="medium", target_image_resolution=72)

    assert len(transforms) == 1
    assert transforms[0].new_size == (50, 50)
    assert document.lookup(transforms[0].reference)["/Width"] == 50


def test_image_without_numeric_dimensions_is_skipped() -> None:
    writer = PdfWriter()
    image = add_image(writer, (64, 48), extra={"/Width": NameObject("/Unknown")})
    add_page(writer, content=IMAGE_CONTENT, images={"/Im0": image})

    document, transforms = _transform(write_pdf(writer))

    assert transforms == []
    assert _image(document)["/Width"] == "/Unknown"


def test_undecodable_payload_keeps_bytes() -> None:
    writer = PdfWriter()
    image = add_stream(
        writer,
        b"\x00\x01\x02not-a-real-codec",
        {
            "/Type": NameObject("/XObject"),
            "/Subtype": NameObject("/Image"),
            "/Width": NumberObject(100),
            "/Height": NumberObject(100),
            "/BitsPerComponent": NumberObject(1),
            "/Filter": NameObject("/CCITTFaxDecode"),
        },
    )
    add_page(writer, content=IMAGE_CONTENT, images={"/Im0": image})

    document, transforms = _transform(write_pdf(writer), tier="medium")
    result = _image(document)

    assert transforms[0].payload_recoded is False
    assert result._data == b"\x00\x01\x02not-a-real-codec"
    assert result["/Width"] == 80
