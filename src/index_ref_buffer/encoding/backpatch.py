"""Binary encoder that reserves fields and fills them in once known.

Typical use is a length prefix whose value depends on everything written
after it::

    writer = BackpatchWriter()
    length = writer.begin_length("I")
    writer.write(b"payload")
    writer.end_length(length)

Reserved fields are tracked through ``IndexRef`` handles, so they stay valid
when headers are inserted in front of them later on.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from index_ref_buffer.buffer import IndexRef, IndexRefBuffer
from index_ref_buffer.buffer.document import BytesLike
from index_ref_buffer.runtime import telemetry

BYTE_ORDERS = {"<", ">", "!", "="}


@dataclass(frozen=True, slots=True)
class LengthField:
    """A reserved length prefix and the start of the body it measures."""

    field: IndexRef
    body: IndexRef
    fmt: str


class BackpatchWriter:
    def __init__(
        self, buffer: Optional[IndexRefBuffer] = None, *, byte_order: str = "<"
    ) -> None:
        if byte_order not in BYTE_ORDERS:
            raise ValueError(
                f"Unknown byte order '{byte_order}', expected one of {sorted(BYTE_ORDERS)}"
            )
        self.buffer = buffer if buffer is not None else IndexRefBuffer(name="backpatch")
        self.byte_order = byte_order

    def _pack(self, fmt: str, *values: Any) -> bytes:
        return struct.pack(self.byte_order + fmt, *values)

    def _size(self, fmt: str) -> int:
        return struct.calcsize(self.byte_order + fmt)

    def tell(self) -> int:
        return len(self.buffer)

    def mark(self) -> IndexRef:
        """Reference the next byte to be written."""

        return self.buffer.create_reference(len(self.buffer))

    def write(self, data: BytesLike | Iterable[int]) -> None:
        self.buffer.extend(data)

    def write_struct(self, fmt: str, *values: Any) -> None:
        self.buffer.extend(self._pack(fmt, *values))

    def reserve(self, fmt: str) -> IndexRef:
        """Write a zeroed placeholder for ``fmt`` and return a reference to it."""

        ref = self.mark()
        self.buffer.extend(bytes(self._size(fmt)))
        return ref

    def fill(self, ref: IndexRef, fmt: str, *values: Any) -> None:
        self.buffer.patch(ref, self._pack(fmt, *values))

    def insert_struct(self, ref: IndexRef, fmt: str, *values: Any) -> IndexRef:
        """Insert a packed value right before the byte ``ref`` points at.

        ``ref`` moves forward past the inserted bytes. Returns a reference to
        the inserted value.
        """

        position = self.buffer.resolve(ref)
        self.buffer.insert_slice(position, self._pack(fmt, *values))
        return self.buffer.create_reference(position)

    def begin_length(self, fmt: str = "I") -> LengthField:
        field = self.reserve(fmt)
        return LengthField(field=field, body=self.mark(), fmt=fmt)

    def end_length(self, length_field: LengthField, *, adjust: int = 0) -> int:
        """Fill ``length_field`` with the number of bytes written since it began."""

        length = len(self.buffer) - self.buffer.resolve(length_field.body) + adjust
        with telemetry.span(
            "backpatch::end_length",
            component="encoding",
            metadata={"buffer": self.buffer.name, "slot": length_field.field.slot},
        ) as handle:
            handle.add_metadata("length", length)
            try:
                packed = self._pack(length_field.fmt, length)
            except struct.error as exc:
                raise ValueError(
                    f"length {length} does not fit format '{length_field.fmt}'"
                ) from exc
            self.buffer.patch(length_field.field, packed)
        return length

    def getvalue(self) -> bytes:
        return self.buffer.content


__all__ = ["BackpatchWriter", "LengthField"]
