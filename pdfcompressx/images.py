"""Image XObject resampling and recoding.

Every image reachable from page resources (directly or through form
XObjects) is visited once. Its ``/Width``/``/Height`` are scaled by the
factor for the requested resolution and tier, and the dictionary is
rewritten for the target encoding. When the pixel payload can be decoded,
Pillow resamples it to the new dimensions and re-encodes it so the bytes
agree with the dictionary; otherwise only the dictionary is rewritten.
"""

from __future__ import annotations

import dataclasses
import logging
from io import BytesIO
from typing import Iterator

from PIL import Image
from pypdf.generic import (
    ArrayObject,
    DictionaryObject,
    IndirectObject,
    NameObject,
    NumberObject,
    StreamObject,
)

from .document import Document, ObjectReference, build_stream, filter_names, flate_stream
from .options import (
    CompressionOptions,
    TierPolicy,
    bits_per_component,
    scale_factor,
    scaled_dimension,
)
from .utils import attempt

__all__ = ["ImageTransform", "iter_page_images", "transform_images"]

_LOGGER = logging.getLogger("pdfcompressx.images")

_JPEG_FILTERS = frozenset({"/DCTDecode", "/DCT"})
_RAW_FILTERS = frozenset(
    {
        "/FlateDecode", "/Fl",
        "/LZWDecode", "/LZW",
        "/ASCII85Decode", "/A85",
        "/ASCIIHexDecode", "/AHx",
        "/RunLengthDecode", "/RL",
    }
)
_DEVICE_MODES = {
    "/DeviceGray": "L", "/G": "L",
    "/DeviceRGB": "RGB", "/RGB": "RGB",
    "/DeviceCMYK": "CMYK", "/CMYK": "CMYK",
}
_ICC_MODES = {1: "L", 3: "RGB", 4: "CMYK"}
_CHANNELS = {"L": 1, "RGB": 3, "CMYK": 4}

_ALWAYS_REMOVED = ("/Metadata", "/ColorSpace", "/Interpolate")
_SOFT_MASK_ENTRIES = ("/SMask", "/Intent")


@dataclasses.dataclass(slots=True)
class ImageTransform:
    """What happened to one image object."""

    reference: ObjectReference
    original_size: tuple[int, int]
    new_size: tuple[int, int]
    payload_recoded: bool


def iter_page_images(
    document: Document,
    resources: DictionaryObject | None,
    seen: set[ObjectReference],
) -> Iterator[tuple[ObjectReference, StreamObject]]:
    """Yield image XObjects reachable from *resources* that are not in *seen*."""

    stack: list[object] = [resources]
    while stack:
        current = stack.pop()
        if not isinstance(current, DictionaryObject):
            continue
        xobjects = document.get_entry(current, "/XObject")
        if not isinstance(xobjects, DictionaryObject):
            continue
        for handle in list(dict.values(xobjects)):
            if not isinstance(handle, IndirectObject):
                continue
            reference = ObjectReference.of(handle)
            if reference in seen:
                continue
            seen.add(reference)
            value = document.get_object(reference)
            if not isinstance(value, StreamObject):
                continue
            subtype = dict.get(value, "/Subtype")
            if subtype == "/Image":
                yield reference, value
            elif subtype == "/Form":
                stack.append(document.get_entry(value, "/Resources"))


def _number(value: object) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


def _pixel_mode(document: Document, image: StreamObject) -> str | None:
    colorspace = document.get_entry(image, "/ColorSpace")
    if isinstance(colorspace, NameObject):
        return _DEVICE_MODES.get(str(colorspace))
    if isinstance(colorspace, ArrayObject) and colorspace and colorspace[0] == "/ICCBased":
        profile = document.resolve(colorspace[1]) if len(colorspace) > 1 else None
        if isinstance(profile, DictionaryObject):
            return _ICC_MODES.get(_number(document.get_entry(profile, "/N")) or 0)
    return None


def _decode_picture(document: Document, image: StreamObject, size: tuple[int, int]) -> Image.Image | None:
    """Decode the payload of *image* with Pillow, or ``None`` when unsupported."""

    if dict.get(image, "/ImageMask"):
        return None
    filters = filter_names(image)
    if filters and filters[-1] in _JPEG_FILTERS and all(name in _RAW_FILTERS for name in filters[:-1]):
        picture = Image.open(BytesIO(image.get_data()))
        picture.load()
        # Adobe CMYK JPEGs are often stored inverted; leave them alone.
        return None if picture.mode == "CMYK" else picture
    if not all(name in _RAW_FILTERS for name in filters):
        return None
    if _number(document.get_entry(image, "/BitsPerComponent")) != 8 or "/Decode" in image:
        return None
    mode = _pixel_mode(document, image)
    if mode is None:
        return None
    data = image.get_data()
    expected = size[0] * size[1] * _CHANNELS[mode]
    if len(data) < expected:
        _LOGGER.debug("Image payload is %s bytes, expected %s", len(data), expected)
        return None
    return Image.frombytes(mode, size, data[:expected])


def _recode_payload(
    document: Document,
    image: StreamObject,
    size: tuple[int, int],
    new_size: tuple[int, int],
    options: CompressionOptions,
    policy: TierPolicy,
) -> StreamObject | None:
    picture = _decode_picture(document, image, size)
    if picture is None:
        return None

    resized = picture.resize(new_size, Image.LANCZOS) if picture.size != new_size else picture
    was_jpeg = bool(filter_names(image)) and filter_names(image)[-1] in _JPEG_FILTERS
    if options.recode_images_as_jpeg or was_jpeg:
        quality = options.jpeg_quality if options.recode_images_as_jpeg else policy.image_quality
        if resized.mode not in ("L", "RGB"):
            resized = resized.convert("RGB")
        buffer = BytesIO()
        resized.save(buffer, format="JPEG", quality=quality, optimize=True)
        stream = build_stream(image, buffer.getvalue(), ("/DCTDecode",))
    else:
        stream = flate_stream(image, resized.tobytes(), policy.flate_level)
    stream[NameObject("/BitsPerComponent")] = NumberObject(8)
    return stream


def _transform_image(
    document: Document,
    reference: ObjectReference,
    image: StreamObject,
    options: CompressionOptions,
    policy: TierPolicy,
    factor: float,
) -> ImageTransform | None:
    width = _number(document.get_entry(image, "/Width"))
    height = _number(document.get_entry(image, "/Height"))
    if width is None or height is None:
        _LOGGER.debug("Image %s has no usable dimensions; skipping", reference)
        return None

    new_size = (scaled_dimension(width, factor), scaled_dimension(height, factor))
    outcome = attempt(
        _recode_payload, document, image, (width, height), new_size, options, policy,
        description=f"payload of image {reference}", logger=_LOGGER,
    )
    recoded = outcome.value if outcome.ok else None
    if recoded is None:
        _LOGGER.debug("Keeping original payload of image %s", reference)
    target = recoded if recoded is not None else image

    document.set_entry(target, "/Width", NumberObject(new_size[0]))
    document.set_entry(target, "/Height", NumberObject(new_size[1]))
    if options.recode_images_as_jpeg:
        document.set_entry(target, "/Filter", NameObject("/DCTDecode"))
        document.delete_entry(target, "/DecodeParms")
        depth = bits_per_component(options.tier, options.jpeg_quality)
        document.set_entry(target, "/BitsPerComponent", NumberObject(depth))
    for key in _ALWAYS_REMOVED:
        document.delete_entry(target, key)
    if policy.strip_soft_masks:
        for key in _SOFT_MASK_ENTRIES:
            document.delete_entry(target, key)

    if recoded is not None:
        document.replace(reference, recoded)
    return ImageTransform(reference, (width, height), new_size, recoded is not None)


def transform_images(
    document: Document,
    options: CompressionOptions,
    policy: TierPolicy,
) -> list[ImageTransform]:
    """Resample and recode every image XObject used by the document's pages.

    Returns one :class:`ImageTransform` per image touched; an empty list
    means no image was changed.
    """

    factor = scale_factor(options.target_image_resolution, options.tier)
    seen: set[ObjectReference] = set()
    candidates: list[tuple[ObjectReference, StreamObject]] = []
    for page in document.pages():
        candidates.extend(iter_page_images(document, document.page_resources(page), seen))

    transforms: list[ImageTransform] = []
    for reference, image in candidates:
        outcome = attempt(
            _transform_image, document, reference, image, options, policy, factor,
            description=f"image {reference}", logger=_LOGGER,
        )
        if outcome.ok and outcome.value is not None:
            transforms.append(outcome.value)
    _LOGGER.debug("Transformed %s of %s images", len(transforms), len(candidates))
    return transforms
