"""Object graph accessor for parsed PDF documents.

A :class:`Document` owns every indirect object in a single table keyed by
:class:`ObjectReference`. Dictionaries and arrays inside the graph hold
:class:`~pypdf.generic.IndirectObject` handles bound to the document, so
resolving a handle (including pypdf's own ``dictionary["/Key"]`` access)
always goes through the table. Removing a table entry leaves referrers
dangling; nothing chases them down.
"""

from __future__ import annotations

import dataclasses
import logging
from collections import deque
from typing import Any, Callable, Iterator, NamedTuple

from pypdf.generic import (
    ArrayObject,
    DictionaryObject,
    DecodedStreamObject,
    EncodedStreamObject,
    IndirectObject,
    NameObject,
    NullObject,
    PdfObject,
)

from .exceptions import DanglingReferenceError

__all__ = [
    "Document",
    "ObjectReference",
    "Page",
    "build_stream",
    "filter_names",
    "flate_stream",
    "iter_references",
    "rewrite_references",
]

_LOGGER = logging.getLogger("pdfcompressx.document")

# Entries describing how a stream payload is transported; rewritten whenever
# the payload is replaced.
_TRANSPORT_KEYS = frozenset({"/Length", "/Filter", "/DecodeParms", "/DL"})


class ObjectReference(NamedTuple):
    """Number and generation naming a slot in the object table."""

    number: int
    generation: int = 0

    @classmethod
    def of(cls, value: "IndirectObject | ObjectReference | tuple[int, int]") -> "ObjectReference":
        if isinstance(value, IndirectObject):
            return cls(int(value.idnum), int(value.generation))
        number, generation = value
        return cls(int(number), int(generation))

    def __str__(self) -> str:
        return f"{self.number} {self.generation} R"


@dataclasses.dataclass(slots=True)
class Page:
    """Leaf of the page tree together with the slot it lives in."""

    reference: ObjectReference | None
    dictionary: DictionaryObject


def iter_references(value: Any) -> Iterator[IndirectObject]:
    """Yield every reference nested inside *value* (including *value* itself)."""

    stack = [value]
    while stack:
        current = stack.pop()
        if isinstance(current, IndirectObject):
            yield current
        elif isinstance(current, dict):
            stack.extend(dict.values(current))
        elif isinstance(current, list):
            stack.extend(current)


def rewrite_references(
    value: Any,
    replace: Callable[[IndirectObject], PdfObject],
    visited: set[int] | None = None,
) -> None:
    """Replace, in place, every reference held by containers nested in *value*.

    *visited* tracks container identities so a direct object shared by two
    owners is rewritten only once when the caller makes several passes.
    """

    seen = visited if visited is not None else set()
    stack = [value]
    while stack:
        current = stack.pop()
        if id(current) in seen:
            continue
        if isinstance(current, dict):
            seen.add(id(current))
            for key, item in list(dict.items(current)):
                if isinstance(item, IndirectObject):
                    current[key] = replace(item)
                else:
                    stack.append(item)
        elif isinstance(current, list):
            seen.add(id(current))
            for index, item in enumerate(current):
                if isinstance(item, IndirectObject):
                    current[index] = replace(item)
                else:
                    stack.append(item)


def filter_names(stream: DictionaryObject) -> list[str]:
    """Return the decode filter chain of *stream* as plain names."""

    filters = dict.get(stream, "/Filter")
    if filters is None:
        return []
    if isinstance(filters, NameObject):
        return [str(filters)]
    if isinstance(filters, ArrayObject):
        return [str(item) for item in filters if isinstance(item, NameObject)]
    return []


def build_stream(
    entries: dict[Any, Any],
    payload: bytes,
    filters: tuple[str, ...] | list[str] = (),
) -> EncodedStreamObject:
    """Create a stream carrying *payload* already encoded with *filters*.

    Every non-transport entry of *entries* is copied over, so callers can
    replace a stream's payload without losing its metadata.
    """

    stream = EncodedStreamObject()
    for key, value in dict.items(entries):
        if key not in _TRANSPORT_KEYS:
            stream[NameObject(key)] = value
    if len(filters) == 1:
        stream[NameObject("/Filter")] = NameObject(filters[0])
    elif filters:
        stream[NameObject("/Filter")] = ArrayObject(NameObject(name) for name in filters)
    stream._data = payload
    return stream


def flate_stream(entries: dict[Any, Any], data: bytes, level: int = -1) -> EncodedStreamObject:
    """Create a ``/FlateDecode`` stream holding *data* with the entries of *entries*."""

    decoded = DecodedStreamObject()
    for key, value in dict.items(entries):
        if key not in _TRANSPORT_KEYS:
            decoded[NameObject(key)] = value
    decoded.set_data(data)
    return decoded.flate_encode(level=level)


class Document:
    """Indirect object table plus the trailer entries naming its roots."""

    def __init__(self, *, version: str = "1.7", trailer: DictionaryObject | None = None) -> None:
        self.version = version
        self.trailer = trailer if trailer is not None else DictionaryObject()
        self._objects: dict[ObjectReference, PdfObject] = {}

    def __len__(self) -> int:
        return len(self._objects)

    def __contains__(self, reference: object) -> bool:
        if isinstance(reference, (IndirectObject, tuple)):
            return ObjectReference.of(reference) in self._objects  # type: ignore[arg-type]
        return False

    # -- Table access -------------------------------------------------------

    def get_object(self, reference: IndirectObject | ObjectReference | tuple[int, int]) -> PdfObject | None:
        """Hook used by bound :class:`IndirectObject` handles; ``None`` when absent."""

        return self._objects.get(ObjectReference.of(reference))

    def lookup(self, reference: IndirectObject | ObjectReference | tuple[int, int]) -> PdfObject:
        key = ObjectReference.of(reference)
        try:
            return self._objects[key]
        except KeyError:
            raise DanglingReferenceError(key) from None

    def resolve(self, value: Any) -> Any:
        """Return *value* with a top-level reference replaced by its referent."""

        if isinstance(value, IndirectObject):
            return self.lookup(value)
        return value

    def reference(self, reference: ObjectReference | tuple[int, int]) -> IndirectObject:
        """Return a handle bound to this document for *reference*."""

        key = ObjectReference.of(reference)
        return IndirectObject(key.number, key.generation, self)

    def store(self, reference: ObjectReference | tuple[int, int], value: PdfObject) -> None:
        self._objects[ObjectReference.of(reference)] = value

    def add_object(self, value: PdfObject) -> IndirectObject:
        number = max((key.number for key in self._objects), default=0) + 1
        key = ObjectReference(number, 0)
        self._objects[key] = value
        return self.reference(key)

    def replace(self, reference: IndirectObject | ObjectReference | tuple[int, int], value: PdfObject) -> None:
        key = ObjectReference.of(reference)
        if key not in self._objects:
            raise DanglingReferenceError(key)
        self._objects[key] = value

    def remove(self, reference: IndirectObject | ObjectReference | tuple[int, int]) -> bool:
        return self._objects.pop(ObjectReference.of(reference), None) is not None

    def iter_objects(self) -> Iterator[tuple[ObjectReference, PdfObject]]:
        """Iterate over a snapshot of the table, safe against mutation while looping."""

        return iter(sorted(self._objects.items()))

    def bind(self, value: Any) -> Any:
        """Rebind every reference nested in *value* to this document."""

        rewrite_references(value, lambda handle: self.reference(ObjectReference.of(handle)))
        return value

    # -- Dictionary access --------------------------------------------------

    def get_entry(self, dictionary: DictionaryObject, key: str, default: Any = None) -> Any:
        """Resolved value stored under *key*, or *default* when absent or dangling."""

        value = dict.get(dictionary, key)
        if value is None:
            return default
        try:
            return self.resolve(value)
        except DanglingReferenceError:
            _LOGGER.debug("Entry %s points to a removed object", key)
            return default

    @staticmethod
    def set_entry(dictionary: DictionaryObject, key: str, value: PdfObject) -> None:
        dictionary[NameObject(key)] = value

    @staticmethod
    def delete_entry(dictionary: DictionaryObject, key: str) -> bool:
        """Remove *key* from *dictionary*; deleting an absent key is a no-op."""

        if key in dictionary:
            del dictionary[key]
            return True
        return False

    def inherited_entry(self, node: DictionaryObject, key: str) -> Any:
        """Look *key* up on *node* and then along its ``/Parent`` chain."""

        seen: set[ObjectReference] = set()
        current: Any = node
        while isinstance(current, DictionaryObject):
            if key in current:
                return self.get_entry(current, key)
            parent = dict.get(current, "/Parent")
            if not isinstance(parent, IndirectObject):
                return None
            parent_ref = ObjectReference.of(parent)
            if parent_ref in seen:
                return None
            seen.add(parent_ref)
            current = self.get_entry(current, "/Parent")
        return None

    # -- Document structure -------------------------------------------------

    @property
    def catalog(self) -> DictionaryObject:
        catalog = self.resolve(dict.get(self.trailer, "/Root"))
        if not isinstance(catalog, DictionaryObject):
            raise DanglingReferenceError(dict.get(self.trailer, "/Root"))
        return catalog

    @property
    def info(self) -> DictionaryObject | None:
        info = self.get_entry(self.trailer, "/Info")
        return info if isinstance(info, DictionaryObject) else None

    def pages(self) -> list[Page]:
        """Return the leaves of the page tree in document order."""

        found: list[Page] = []
        seen: set[ObjectReference] = set()
        stack: list[Any] = [dict.get(self.catalog, "/Pages")]
        while stack:
            item = stack.pop()
            reference = ObjectReference.of(item) if isinstance(item, IndirectObject) else None
            if reference is not None:
                if reference in seen:
                    _LOGGER.debug("Page tree revisits %s; skipping", reference)
                    continue
                seen.add(reference)
            try:
                node = self.resolve(item)
            except DanglingReferenceError:
                continue
            if not isinstance(node, DictionaryObject):
                continue
            kids = self.get_entry(node, "/Kids")
            if dict.get(node, "/Type") == "/Pages" or (
                dict.get(node, "/Type") is None and isinstance(kids, ArrayObject)
            ):
                if isinstance(kids, ArrayObject):
                    stack.extend(reversed(kids))
                continue
            found.append(Page(reference, node))
        return found

    def page_resources(self, page: Page | DictionaryObject) -> DictionaryObject | None:
        dictionary = page.dictionary if isinstance(page, Page) else page
        resources = self.inherited_entry(dictionary, "/Resources")
        return resources if isinstance(resources, DictionaryObject) else None

    # -- Garbage collection -------------------------------------------------

    def reachable(self) -> set[ObjectReference]:
        """References reachable from the trailer that resolve to table entries."""

        live: set[ObjectReference] = set()
        queue = deque(iter_references(self.trailer))
        while queue:
            reference = ObjectReference.of(queue.popleft())
            if reference in live or reference not in self._objects:
                continue
            live.add(reference)
            queue.extend(iter_references(self._objects[reference]))
        return live

    def collect_garbage(self) -> int:
        """Drop unreachable objects and renumber the survivors densely.

        References to absent objects become ``null``. Returns the number of
        table entries removed.
        """

        live = sorted(self.reachable())
        removed = len(self._objects) - len(live)
        mapping = {old: ObjectReference(number, 0) for number, old in enumerate(live, start=1)}

        def _replace(handle: IndirectObject) -> PdfObject:
            target = mapping.get(ObjectReference.of(handle))
            if target is None:
                return NullObject()
            return self.reference(target)

        visited: set[int] = set()
        for old in live:
            rewrite_references(self._objects[old], _replace, visited)
        rewrite_references(self.trailer, _replace, visited)
        self._objects = {mapping[old]: self._objects[old] for old in live}
        if removed:
            _LOGGER.debug("Removed %s unreachable objects", removed)
        return removed
