"""Exceptions raised when a buffer precondition is violated.

None of these are meant to be recovered from at runtime: they signal a
programming error in the caller. They are always raised before the buffer
is touched, so a rejected call leaves content and references unchanged.
"""

from __future__ import annotations

from typing import Optional, Tuple


class BufferValidationError(RuntimeError):
    """Base class for rejected buffer operations."""

    def __init__(
        self,
        message: str,
        *,
        index: Optional[int] = None,
        bounds: Optional[Tuple[int, int]] = None,
    ) -> None:
        super().__init__(message)
        self.index = index
        self.bounds = bounds


class ShrinkingReplacementError(BufferValidationError):
    """Raised when a replacement is shorter than the range it replaces."""

    def __init__(self, bounds: Tuple[int, int], replacement_len: int) -> None:
        start, end = bounds
        super().__init__(
            "index referencable buffers may only grow, shrinking is not allowed "
            f"(range {start}..{end} of {end - start} bytes, "
            f"replacement of {replacement_len} bytes)",
            bounds=bounds,
        )
        self.replacement_len = replacement_len


class IndexOutOfRangeError(BufferValidationError, IndexError):
    """Raised when an insertion index or replaced range exceeds the content."""


class ForeignReferenceError(BufferValidationError):
    """Raised when a reference is presented to a buffer that did not issue it."""


class InvalidReferenceError(BufferValidationError, IndexError):
    """Raised when a reference points at a slot the table does not have."""


class StaleReferenceError(BufferValidationError, IndexError):
    """Raised when a reference resolves past the end of the content."""


__all__ = [
    "BufferValidationError",
    "ShrinkingReplacementError",
    "IndexOutOfRangeError",
    "ForeignReferenceError",
    "InvalidReferenceError",
    "StaleReferenceError",
]
