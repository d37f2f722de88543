"""Validation helpers shared across buffer operations."""

from __future__ import annotations

from typing import Optional, Tuple, Union

from .errors import BufferValidationError, IndexOutOfRangeError

Bounds = Union[slice, range, Tuple[Optional[int], Optional[int]]]


def ensure_insert_index(length: int, index: int) -> int:
    if isinstance(index, bool) or not isinstance(index, int):
        raise TypeError(f"index must be an int, not {type(index).__name__}")
    if index < 0 or index > length:
        raise IndexOutOfRangeError(
            f"insertion index {index} is out of range for length {length}",
            index=index,
        )
    return index


def ensure_byte(value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"byte value must be an int, not {type(value).__name__}")
    if not 0 <= value <= 0xFF:
        raise ValueError("byte must be in range(0, 256)")
    return value


def ensure_bytes(data: object) -> bytes:
    """Copy ``data`` into immutable bytes, rejecting a bare int size."""

    if isinstance(data, int):
        raise TypeError("expected bytes or an iterable of ints, not int")
    return bytes(data)  # type: ignore[call-overload]


def resolve_bounds(
    bounds: Bounds, length: int, *, inclusive_end: bool = False
) -> Tuple[int, int]:
    """Turn ``bounds`` into a concrete ``(start, end)`` pair, end exclusive.

    ``None`` on either side means unbounded. Negative indices are rejected
    rather than counted from the end, since positions are unsigned.
    """

    if isinstance(bounds, (slice, range)):
        if bounds.step not in (None, 1):
            raise BufferValidationError(
                f"replacement bounds must be contiguous, got step {bounds.step}"
            )
        start, end = bounds.start, bounds.stop
    else:
        try:
            start, end = bounds
        except (TypeError, ValueError) as exc:
            raise TypeError(
                "bounds must be a slice, a range or a (start, end) pair"
            ) from exc

    for bound in (start, end):
        if bound is None:
            continue
        if isinstance(bound, bool) or not isinstance(bound, int):
            raise TypeError(
                f"bounds must be ints or None, not {type(bound).__name__}"
            )

    start = 0 if start is None else start
    if end is None:
        end = length
    elif inclusive_end:
        end += 1

    if start < 0 or end < 0:
        raise IndexOutOfRangeError(
            f"negative bounds {start}..{end} are not supported", bounds=(start, end)
        )
    if start > end:
        raise IndexOutOfRangeError(
            f"range start {start} is past its end {end}", bounds=(start, end)
        )
    if end > length:
        raise IndexOutOfRangeError(
            f"range end {end} is out of range for length {length}",
            bounds=(start, end),
        )
    return start, end


__all__ = [
    "Bounds",
    "ensure_byte",
    "ensure_bytes",
    "ensure_insert_index",
    "resolve_bounds",
]
