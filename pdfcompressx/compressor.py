"""Compression engine for :mod:`pdfcompressx`."""

from __future__ import annotations

import dataclasses
import enum
import logging
import math
import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Iterable

from .document import Document
from .duplicates import detect_duplicates, merge_duplicates
from .exceptions import CompressionFailedError, InsufficientCompressionError
from .fonts import optimize_fonts
from .images import transform_images
from .options import MIN_RATIO_PERCENT, CompressionOptions, TierName, resolve_policy
from .parser import parse
from .pruner import prune_document
from .serializer import serialize
from .streams import compress_content_streams
from .utils import ensure_parent_dir, resolve_path, sizeof_fmt
from .validators import validate_pdf

_LOGGER = logging.getLogger("pdfcompressx")

FALLBACK_APPLIED = "Fallback compression applied"
ORIGINAL_RETAINED = "Original document retained"

_MAX_MERGE_ROUNDS = 4


class PipelineState(enum.Enum):
    PARSED = "parsed"
    PRUNED = "pruned"
    IMAGES_PROCESSED = "images-processed"
    FONTS_PROCESSED = "fonts-processed"
    STREAMS_PROCESSED = "streams-processed"
    SERIALIZED = "serialized"
    FAILED = "failed"
    FALLBACK = "fallback"
    DONE = "done"


@dataclasses.dataclass(slots=True)
class CompressionResult:
    """Represents the outcome of a compression run."""

    output_bytes: bytes = dataclasses.field(repr=False)
    original_size: int
    output_size: int
    ratio_percent: int
    applied_optimizations: list[str]
    tier_used: TierName
    fallback_used: bool = False
    input_path: Path | None = None
    output_path: Path | None = None

    @property
    def bytes_saved(self) -> int:
        return max(self.original_size - self.output_size, 0)

    @property
    def compression_ratio(self) -> float:
        if self.original_size == 0:
            return 1.0
        return self.output_size / self.original_size


@dataclasses.dataclass(slots=True)
class BatchItem:
    """One file of a :func:`compress_many` run."""

    input_path: Path
    output_path: Path
    result: CompressionResult | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def ratio_percent(original_size: int, output_size: int) -> int:
    """Percentage saved, rounded half up; zero for empty input."""

    if original_size <= 0:
        return 0
    return math.floor((original_size - output_size) / original_size * 100 + 0.5)


class CompressionPipeline:
    """Runs the transform steps in order over one freshly parsed document."""

    def __init__(self, options: CompressionOptions) -> None:
        self.options = options
        self.policy = resolve_policy(options)
        self.state: PipelineState | None = None
        self.applied: list[str] = []

    def advance(self, state: PipelineState) -> None:
        _LOGGER.debug(
            "Pipeline %s -> %s", self.state.value if self.state else "start", state.value
        )
        self.state = state

    def run(self, data: bytes) -> bytes:
        options, policy, applied = self.options, self.policy, self.applied

        document = parse(data, ignore_encryption=options.ignore_encryption)
        self.advance(PipelineState.PARSED)

        prune_document(document, policy, applied, strip_metadata=options.strip_metadata)
        self.advance(PipelineState.PRUNED)

        images = transform_images(document, options, policy)
        if images:
            applied.append(
                f"Images compressed ({len(images)} at {options.target_image_resolution} DPI target)"
            )
        self.advance(PipelineState.IMAGES_PROCESSED)

        fonts = optimize_fonts(document, policy)
        if fonts:
            applied.append(f"Fonts optimized ({fonts})")
        self.advance(PipelineState.FONTS_PROCESSED)

        streams = compress_content_streams(
            document, policy, ascii_encode=options.ascii_encode_streams
        )
        if streams:
            applied.append(f"Content streams compressed ({streams})")
        self.advance(PipelineState.STREAMS_PROCESSED)

        removed = document.collect_garbage()
        removed += self._deduplicate(document)
        if removed:
            applied.append(f"Unused objects removed ({removed})")

        output = serialize(document)
        applied.append("Compact object streams generated")
        self.advance(PipelineState.SERIALIZED)
        return output

    def _deduplicate(self, document: Document) -> int:
        """Report duplicates and, when the policy allows, merge them.

        Merging a leaf can make its parents identical, so merging repeats a
        few times. Returns objects dropped by the garbage collection that
        follows a merge.
        """

        report = detect_duplicates(document)
        if not report.count:
            return 0
        self.applied.append(f"Duplicate objects detected ({report.count})")
        if not self.policy.merge_duplicates:
            return 0

        merged = 0
        removed = 0
        for _ in range(_MAX_MERGE_ROUNDS):
            count = merge_duplicates(document, report)
            if not count:
                break
            merged += count
            removed += document.collect_garbage()
            report = detect_duplicates(document)
        if merged:
            self.applied.append(f"Duplicate objects merged ({merged})")
        return removed


def _strip_document_info(document: Document) -> bool:
    # Title, Author and Subject go with the rest of the info dictionary.
    return document.delete_entry(document.trailer, "/Info")


def compress_fallback(data: bytes, options: CompressionOptions) -> CompressionResult:
    """Minimal recovery path: drop the document info and rewrite compactly.

    Raises :class:`~pdfcompressx.exceptions.CompressionFailedError` if even
    this cannot produce a document. When the rewrite is larger than the input
    the input itself is returned.
    """

    applied: list[str] = []
    try:
        document = parse(data, ignore_encryption=options.ignore_encryption)
        if _strip_document_info(document):
            applied.append("Document metadata removed")
        document.collect_garbage()
        output = serialize(document)
    except Exception as exc:
        raise CompressionFailedError(f"Compression failed: {exc}") from exc

    applied.append(FALLBACK_APPLIED)
    if len(output) > len(data):
        _LOGGER.info("Fallback output is larger than the input; keeping the original")
        output = data
        applied = [FALLBACK_APPLIED, ORIGINAL_RETAINED]

    return CompressionResult(
        output_bytes=output,
        original_size=len(data),
        output_size=len(output),
        ratio_percent=ratio_percent(len(data), len(output)),
        applied_optimizations=applied,
        tier_used=options.tier,
        fallback_used=True,
    )


def compress(data: bytes, options: CompressionOptions | None = None) -> CompressionResult:
    """Compress the PDF in *data* and report what was done.

    The main pipeline runs first. If it raises, or saves less than
    :data:`~pdfcompressx.options.MIN_RATIO_PERCENT` percent, the fallback
    path runs instead. Only :class:`CompressionFailedError` escapes.
    """

    options = options or CompressionOptions()
    data = bytes(data)
    original_size = len(data)
    pipeline = CompressionPipeline(options)

    try:
        output = pipeline.run(data)
        ratio = ratio_percent(original_size, len(output))
        if ratio < MIN_RATIO_PERCENT:
            raise InsufficientCompressionError(ratio, MIN_RATIO_PERCENT)
    except InsufficientCompressionError as exc:
        _LOGGER.info("%s; using fallback compression", exc)
    except Exception as exc:
        _LOGGER.warning(
            "Compression pipeline failed after state %s: %s",
            pipeline.state.value if pipeline.state else "start", exc,
        )
        pipeline.advance(PipelineState.FAILED)
    else:
        pipeline.advance(PipelineState.DONE)
        _LOGGER.info(
            "Compressed %s to %s (%s%% saved)",
            sizeof_fmt(original_size), sizeof_fmt(len(output)), ratio,
        )
        return CompressionResult(
            output_bytes=output,
            original_size=original_size,
            output_size=len(output),
            ratio_percent=ratio,
            applied_optimizations=pipeline.applied,
            tier_used=options.tier,
        )

    pipeline.advance(PipelineState.FALLBACK)
    result = compress_fallback(data, options)
    pipeline.advance(PipelineState.DONE)
    return result


def _options_with(options: CompressionOptions | None, overrides: dict[str, Any]) -> CompressionOptions:
    if options is None:
        return CompressionOptions(**overrides)
    return dataclasses.replace(options, **overrides) if overrides else options


def compress_pdf(
    input_path: str | os.PathLike[str],
    output_path: str | os.PathLike[str],
    options: CompressionOptions | None = None,
    *,
    post_validate: bool = False,
    **overrides: Any,
) -> CompressionResult:
    """Compress *input_path* writing the output to *output_path*.

    Keyword *overrides* (``tier="high"``, ``jpeg_quality=60``...) are applied
    on top of *options*.
    """

    options = _options_with(options, overrides)
    source = resolve_path(input_path)
    destination = resolve_path(output_path)

    if not source.exists():
        raise FileNotFoundError(source)

    result = compress(source.read_bytes(), options)
    ensure_parent_dir(destination)
    destination.write_bytes(result.output_bytes)
    result.input_path = source
    result.output_path = destination

    if post_validate:
        validate_pdf(destination)

    return result


def compress_many(
    input_paths: Iterable[str | os.PathLike[str]],
    output_dir: str | os.PathLike[str],
    options: CompressionOptions | None = None,
    *,
    max_workers: int | None = None,
) -> list[BatchItem]:
    """Compress several files concurrently into *output_dir*.

    Each file is compressed independently; a failure is recorded on its
    :class:`BatchItem` instead of aborting the batch. Items are returned in
    input order.
    """

    options = options or CompressionOptions()
    directory = resolve_path(output_dir)
    items = [
        BatchItem(resolve_path(path), directory / Path(path).name)
        for path in input_paths
    ]

    def _run(item: BatchItem) -> BatchItem:
        try:
            item.result = compress_pdf(item.input_path, item.output_path, options)
        except Exception as exc:
            _LOGGER.warning("Failed to compress %s: %s", item.input_path, exc)
            item.error = exc
        return item

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        return list(executor.map(_run, items))


__all__ = [
    "BatchItem",
    "CompressionPipeline",
    "CompressionResult",
    "PipelineState",
    "compress",
    "compress_fallback",
    "compress_many",
    "compress_pdf",
    "ratio_percent",
]
