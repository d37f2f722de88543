"""High-level buffer facade combining byte content and tracked references."""

from __future__ import annotations

from collections.abc import MutableSequence
from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Any, ContextManager, Iterable, Iterator, Optional

from index_ref_buffer.runtime import telemetry

from .document import ByteDocument, BytesLike
from .errors import ShrinkingReplacementError, StaleReferenceError
from .references import IndexRef, ReferenceTable
from .validation import (
    Bounds,
    ensure_byte,
    ensure_bytes,
    ensure_insert_index,
    resolve_bounds,
)


@dataclass(frozen=True, slots=True)
class BufferView:
    version: int
    content: bytes
    positions: tuple[int, ...]


class IndexRefBuffer:
    """A byte buffer which can hand out auto-updating index references.

    The buffer may only grow. Inserting or replacing content shifts every
    tracked position at or after the affected point so that a reference keeps
    naming the same byte. A position inside a replaced range is left where it
    was and no longer tracks its original byte.
    """

    def __init__(
        self,
        *,
        name: str = "default",
        document: Optional[ByteDocument] = None,
        table: Optional[ReferenceTable] = None,
    ) -> None:
        self.name = name
        self.document = document if document is not None else ByteDocument()
        self.table = table if table is not None else ReferenceTable()

    @classmethod
    def from_bytes(
        cls, data: BytesLike | Iterable[int], *, name: str = "default"
    ) -> "IndexRefBuffer":
        return cls(name=name, document=ByteDocument.from_bytes(ensure_bytes(data)))

    # -- read access -----------------------------------------------------

    @property
    def content(self) -> bytes:
        return self.document.snapshot()

    @property
    def length(self) -> int:
        return len(self.document)

    def __len__(self) -> int:
        return len(self.document)

    def is_empty(self) -> bool:
        return len(self.document) == 0

    def __getitem__(self, key: int | slice) -> int | bytes:
        return self.document[key]

    def __iter__(self) -> Iterator[int]:
        return iter(self.document)

    def __contains__(self, item: object) -> bool:
        return item in self.document

    def __bytes__(self) -> bytes:
        return self.document.snapshot()

    def find(
        self, sub: BytesLike | int, start: int = 0, end: Optional[int] = None
    ) -> int:
        return self.document.find(sub, start, len(self.document) if end is None else end)

    # -- references ------------------------------------------------------

    def create_reference(self, position: int) -> IndexRef:
        """Track ``position`` and return a handle to it.

        The position is not checked against the current length; an out of
        range position is stored as-is.
        """

        ref = self.table.issue(position)
        telemetry.record_event(
            "buffer.reference",
            level="debug",
            data={"buffer": self.name, "slot": ref.slot, "position": position},
        )
        return ref

    def resolve(self, ref: IndexRef) -> int:
        return self.table.lookup(ref)

    def read(self, ref: IndexRef) -> int:
        """Return the byte a reference currently points at."""

        position = self.table.lookup(ref)
        if position >= len(self.document):
            raise StaleReferenceError(
                f"reference {ref!r} resolves to {position}, "
                f"past the end of {len(self.document)} bytes",
                index=position,
            )
        return self.document[position]  # type: ignore[return-value]

    def references(self) -> tuple[tuple[IndexRef, int], ...]:
        return self.table.items()

    @property
    def reference_count(self) -> int:
        return len(self.table)

    # -- growth at the end -------------------------------------------------

    def push(self, value: int) -> None:
        self.document.append(ensure_byte(value))

    def extend(self, data: BytesLike | Iterable[int]) -> None:
        self.document.extend(ensure_bytes(data))

    def append(self, other: MutableSequence[int]) -> None:
        """Move every byte of ``other`` to the end of the buffer, emptying it.

        ``other`` must be a mutable sequence such as a ``bytearray``. Another
        ``IndexRefBuffer`` cannot be drained since buffers only grow; use
        ``extend(bytes(other))`` to copy one instead.
        """

        if isinstance(other, IndexRefBuffer) or not isinstance(
            other, MutableSequence
        ):
            raise TypeError(
                f"append drains a mutable sequence, not {type(other).__name__}"
            )
        data = ensure_bytes(other)
        other.clear()
        self.document.extend(data)

    # -- shifting mutations ----------------------------------------------

    def insert(self, index: int, value: int) -> None:
        with Mutation(self, "insert", index=index) as mutation:
            ensure_insert_index(len(self.document), index)
            self.document.insert(index, ensure_byte(value))
            mutation.note("moved", self.table.shift_from(index, 1))

    def insert_slice(self, index: int, data: BytesLike | Iterable[int]) -> None:
        with Mutation(self, "insert_slice", index=index) as mutation:
            ensure_insert_index(len(self.document), index)
            elements = ensure_bytes(data)
            self.document.splice(index, index, elements)
            mutation.note("moved", self.table.shift_from(index, len(elements)))

    def replace(
        self,
        bounds: Bounds,
        replacement: BytesLike | Iterable[int],
        *,
        inclusive_end: bool = False,
    ) -> bytes:
        """Replace ``bounds`` with ``replacement`` and return the removed bytes.

        Raises ``ShrinkingReplacementError`` if the replacement is shorter than
        the range. Positions at or after the end of the range move by the
        growth; positions before or inside it stay put.
        """

        with Mutation(self, "replace") as mutation:
            start, end = resolve_bounds(
                bounds, len(self.document), inclusive_end=inclusive_end
            )
            data = ensure_bytes(replacement)
            mutation.note("bounds", f"{start}..{end}")
            if len(data) < end - start:
                raise ShrinkingReplacementError((start, end), len(data))
            removed = self.document.splice(start, end, data)
            growth = len(data) - (end - start)
            mutation.note("moved", self.table.shift_from(end, growth))
            return removed

    splice = replace

    def patch(
        self, ref: IndexRef, data: BytesLike | Iterable[int], *, offset: int = 0
    ) -> bytes:
        """Overwrite bytes starting at ``resolve(ref) + offset`` in place.

        The patched range must already exist; the length of the buffer and
        every tracked position stay the same. Returns the overwritten bytes.
        """

        with Mutation(self, "patch", slot=ref.slot) as mutation:
            start = self.table.lookup(ref) + offset
            elements = ensure_bytes(data)
            start, end = resolve_bounds(
                (start, start + len(elements)), len(self.document)
            )
            mutation.note("bounds", f"{start}..{end}")
            return self.document.splice(start, end, elements)

    # -- whole-buffer helpers ----------------------------------------------

    def snapshot(self) -> BufferView:
        return BufferView(
            version=self.document.version,
            content=self.document.snapshot(),
            positions=self.table.positions(),
        )

    def copy(self, *, name: Optional[str] = None) -> "IndexRefBuffer":
        """Independent copy; references issued so far resolve on both buffers."""

        return IndexRefBuffer(
            name=name or self.name,
            document=self.document.copy(),
            table=self.table.copy(),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IndexRefBuffer):
            return NotImplemented
        return (
            self.document.snapshot() == other.document.snapshot()
            and self.table.positions() == other.table.positions()
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return (
            f"<IndexRefBuffer {self.name!r}: {len(self.document)} bytes, "
            f"{len(self.table)} references>"
        )


class Mutation(AbstractContextManager["Mutation"]):
    """Wraps one mutating call in a telemetry span when tracing is enabled."""

    def __init__(self, buffer: IndexRefBuffer, label: str, **metadata: Any) -> None:
        self.buffer = buffer
        self.label = label
        self.metadata = metadata
        self._span_cm: Optional[ContextManager[telemetry.SpanHandle]] = None
        self._handle: Optional[telemetry.SpanHandle] = None

    def __enter__(self) -> "Mutation":
        if telemetry.mutations_traced():
            self._span_cm = telemetry.span(
                name=f"buffer::{self.label}",
                component="buffer",
                metadata={"buffer": self.buffer.name, **self.metadata},
            )
            self._handle = self._span_cm.__enter__()
        return self

    def note(self, key: str, value: Any) -> None:
        if self._handle is not None:
            self._handle.add_metadata(key, value)

    def __exit__(self, exc_type, exc, tb) -> bool:
        if self._span_cm is not None:
            self._span_cm.__exit__(exc_type, exc, tb)
        return False
