"""
Bank-scoped identity salting.

salted_id(raw_id, bank_id) = first 8 bytes (little-endian) of
SHA-256(le64(raw_id) || u8(bank_id)). Deterministic across calls and
processes; the same raw id salted by two banks yields unrelated tokens.
"""

from __future__ import annotations

import hashlib
from typing import Iterable

ID_BITS = 64
BANK_ID_BITS = 8
MAX_RAW_ID = (1 << ID_BITS) - 1
MAX_BANK_ID = (1 << BANK_ID_BITS) - 1


def salted_id(raw_id: int, bank_id: int) -> int:
    """Return the 64-bit salted identity of raw_id for bank_id."""
    if not 0 <= raw_id <= MAX_RAW_ID:
        raise ValueError(f"raw_id must fit in {ID_BITS} bits, got {raw_id}")
    if not 0 <= bank_id <= MAX_BANK_ID:
        raise ValueError(f"bank_id must fit in {BANK_ID_BITS} bits, got {bank_id}")
    h = hashlib.sha256()
    h.update(raw_id.to_bytes(8, "little"))
    h.update(bytes([bank_id]))
    return int.from_bytes(h.digest()[:8], "little")


def salted_ids(raw_ids: Iterable[int], bank_id: int) -> list[int]:
    """Salt every raw id for one bank, preserving order."""
    return [salted_id(r, bank_id) for r in raw_ids]
