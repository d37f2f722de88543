"""Reference handles and the position table that keeps them up to date."""

from __future__ import annotations

from dataclasses import dataclass, field
from itertools import count
from typing import Dict, List, Mapping, Optional, Tuple

from .errors import ForeignReferenceError, InvalidReferenceError

_OWNER_SERIALS = count(1)


@dataclass(frozen=True, slots=True)
class OwnerToken:
    """Identity of the table that issued a reference."""

    serial: int = field(default_factory=lambda: next(_OWNER_SERIALS))


@dataclass(frozen=True, slots=True, repr=False, init=False)
class IndexRef:
    """Opaque handle to an auto-updating position in an ``IndexRefBuffer``.

    The handle stores no position. It names a slot in the issuing buffer's
    reference table, and only that buffer can turn it into an index.
    Handles are issued by ``IndexRefBuffer.create_reference``; calling the
    class directly raises ``TypeError``.
    """

    _slot: int
    _owner: OwnerToken

    def __init__(self, *args: object, **kwargs: object) -> None:
        raise TypeError(
            "IndexRef handles are issued by IndexRefBuffer.create_reference"
        )

    @classmethod
    def _issue(cls, slot: int, owner: OwnerToken) -> "IndexRef":
        ref = object.__new__(cls)
        object.__setattr__(ref, "_slot", slot)
        object.__setattr__(ref, "_owner", owner)
        return ref

    @property
    def slot(self) -> int:
        return self._slot

    @property
    def owner(self) -> OwnerToken:
        return self._owner

    def __repr__(self) -> str:
        return f"IndexRef(slot={self._slot})"


class ReferenceTable:
    """Ordered side table of tracked positions, indexed by slot.

    Slots are assigned in creation order and never reused or moved; only the
    stored position of a slot changes. Every shift walks the whole table, which
    is fine for the handful of backpatch references a buffer usually carries.
    """

    def __init__(
        self,
        positions: Optional[List[int]] = None,
        *,
        lineage: Optional[Mapping[OwnerToken, int]] = None,
    ) -> None:
        self._positions: List[int] = list(positions or [])
        self._owner = OwnerToken()
        # tables this one was copied from, with the slot count each had then
        self._lineage: Dict[OwnerToken, int] = dict(lineage or {})

    @property
    def owner(self) -> OwnerToken:
        return self._owner

    def __len__(self) -> int:
        return len(self._positions)

    def issue(self, position: int) -> IndexRef:
        if isinstance(position, bool) or not isinstance(position, int):
            raise TypeError(
                f"reference position must be an int, not {type(position).__name__}"
            )
        if position < 0:
            raise ValueError(f"reference position must be unsigned, got {position}")
        slot = len(self._positions)
        self._positions.append(position)
        return IndexRef._issue(slot, self._owner)

    def lookup(self, ref: IndexRef) -> int:
        return self._positions[self._checked_slot(ref)]

    def shift_from(self, threshold: int, delta: int) -> int:
        """Add ``delta`` to every position ``>= threshold``; return how many moved."""

        if delta == 0:
            return 0
        moved = 0
        positions = self._positions
        for slot, position in enumerate(positions):
            if position >= threshold:
                positions[slot] = position + delta
                moved += 1
        return moved

    def items(self) -> Tuple[Tuple[IndexRef, int], ...]:
        return tuple(
            (IndexRef._issue(slot, self._owner), position)
            for slot, position in enumerate(self._positions)
        )

    def positions(self) -> Tuple[int, ...]:
        return tuple(self._positions)

    def copy(self) -> "ReferenceTable":
        lineage = dict(self._lineage)
        lineage[self._owner] = len(self._positions)
        return ReferenceTable(self._positions, lineage=lineage)

    def _checked_slot(self, ref: IndexRef) -> int:
        if not isinstance(ref, IndexRef):
            raise TypeError(f"expected an IndexRef, not {type(ref).__name__}")
        if ref.owner == self._owner:
            limit = len(self._positions)
        elif ref.owner in self._lineage:
            limit = self._lineage[ref.owner]
        else:
            raise ForeignReferenceError(
                f"reference {ref!r} was issued by a different buffer",
                index=ref.slot,
            )
        if not 0 <= ref.slot < limit:
            raise InvalidReferenceError(
                f"reference slot {ref.slot} is out of range for a table of {limit}",
                index=ref.slot,
            )
        return ref.slot


__all__ = ["IndexRef", "OwnerToken", "ReferenceTable"]
