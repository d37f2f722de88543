"""Byte storage for index referencable buffers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator, Union

BytesLike = Union[bytes, bytearray, memoryview]


@dataclass(slots=True)
class ByteDocument:
    """Growable byte content plus a version counter.

    The document knows nothing about references; it only performs the raw
    splices. ``IndexRefBuffer`` keeps the reference table consistent around
    every call made here.
    """

    _data: bytearray = field(default_factory=bytearray)
    version: int = 0

    @classmethod
    def from_bytes(cls, data: BytesLike | Iterable[int]) -> "ByteDocument":
        return cls(_data=bytearray(data), version=0)

    def __len__(self) -> int:
        return len(self._data)

    def snapshot(self) -> bytes:
        """Return the current content without exposing internal mutability."""

        return bytes(self._data)

    def __getitem__(self, key: int | slice) -> int | bytes:
        value = self._data[key]
        return bytes(value) if isinstance(key, slice) else value

    def __iter__(self) -> Iterator[int]:
        return iter(self._data)

    def __contains__(self, item: object) -> bool:
        return item in self._data

    def find(self, sub: BytesLike | int, start: int, end: int) -> int:
        return self._data.find(sub, start, end)

    def append(self, value: int) -> None:
        self._data.append(value)
        self._touch()

    def extend(self, data: BytesLike | Iterable[int]) -> None:
        self._data.extend(data)
        self._touch()

    def insert(self, index: int, value: int) -> None:
        self._data.insert(index, value)
        self._touch()

    def splice(self, start: int, end: int, data: bytes) -> bytes:
        """Replace ``[start:end]`` with ``data`` and return the removed bytes."""

        removed = bytes(self._data[start:end])
        self._data[start:end] = data
        self._touch()
        return removed

    def copy(self) -> "ByteDocument":
        return ByteDocument(_data=bytearray(self._data), version=self.version)

    def _touch(self) -> None:
        self.version += 1
