"""Byte buffers with auto-updating index references."""

from .buffer import BufferView, IndexRefBuffer, Mutation
from .document import ByteDocument
from .errors import (
    BufferValidationError,
    ForeignReferenceError,
    IndexOutOfRangeError,
    InvalidReferenceError,
    ShrinkingReplacementError,
    StaleReferenceError,
)
from .references import IndexRef, OwnerToken, ReferenceTable
from .validation import ensure_byte, ensure_bytes, ensure_insert_index, resolve_bounds

__all__ = [
    "ByteDocument",
    "ReferenceTable",
    "IndexRef",
    "OwnerToken",
    "IndexRefBuffer",
    "BufferView",
    "Mutation",
    "BufferValidationError",
    "ShrinkingReplacementError",
    "IndexOutOfRangeError",
    "ForeignReferenceError",
    "InvalidReferenceError",
    "StaleReferenceError",
    "ensure_byte",
    "ensure_bytes",
    "ensure_insert_index",
    "resolve_bounds",
]
