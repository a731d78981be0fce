"""
Data models for the aggregation protocol and their queue encoding.

Queue payloads are compact UTF-8 JSON objects:
    record:        {"bank_id": 3, "enc_id": {...}, "enc_score": {...}}
    aggregate row: {"identity": 123, "enc_sum": {...}, "enc_count": {...}}
where each {...} is a ciphertext payload from PaillierEngine.to_payload().
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from backend_secagg.core.exceptions import InvalidClientRecordError, RecordSerializationError
from backend_secagg.crypto.fhe import Ciphertext, KeyContext, PaillierEngine
from backend_secagg.crypto.salting import MAX_BANK_ID, MAX_RAW_ID

MAX_RISK_SCORE = 255


@dataclass(frozen=True)
class ClientRecord:
    """Bank-local plaintext record. Never leaves the bank's process."""

    client_id: int
    risk_score: int

    def __post_init__(self) -> None:
        if not 0 <= self.client_id <= MAX_RAW_ID:
            raise InvalidClientRecordError("client_id must fit in 64 bits", client_id=self.client_id)
        if not 0 <= self.risk_score <= MAX_RISK_SCORE:
            raise InvalidClientRecordError(
                f"risk_score must be between 0 and {MAX_RISK_SCORE}",
                risk_score=self.risk_score,
            )


@dataclass(frozen=True)
class EncryptedRecord:
    """One published contribution: salted identity and score, both encrypted."""

    bank_id: int
    enc_id: Ciphertext
    enc_score: Ciphertext


@dataclass
class AggregateEntry:
    """Running (sum, count) for one identity, held as ciphertexts throughout."""

    enc_sum: Ciphertext
    enc_count: Ciphertext


@dataclass(frozen=True)
class EncryptedAggregateRow:
    """Final aggregate for one identity as written to the aggregates queue."""

    identity: int
    enc_sum: Ciphertext
    enc_count: Ciphertext


@dataclass(frozen=True)
class AggregationResult:
    records_processed: int
    distinct_identities: int
    snapshot_length: int


@dataclass(frozen=True)
class RevealedAverage:
    identity: int
    total: int
    count: int
    average: float


@dataclass
class RevealReport:
    bank_id: int
    rows_scanned: int = 0
    averages: list[RevealedAverage] = field(default_factory=list)

    @property
    def revealed(self) -> int:
        return len(self.averages)


def _dumps(obj: dict[str, Any]) -> bytes:
    return json.dumps(obj, separators=(",", ":")).encode("utf-8")


def _loads(raw: bytes, kind: str) -> dict[str, Any]:
    try:
        obj = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise RecordSerializationError(f"{kind} payload is not valid JSON") from exc
    if not isinstance(obj, dict):
        raise RecordSerializationError(f"{kind} payload must be a JSON object")
    return obj


def encode_record(engine: PaillierEngine, keys: KeyContext, record: EncryptedRecord) -> bytes:
    if not 0 <= record.bank_id <= MAX_BANK_ID:
        raise RecordSerializationError("bank_id must fit in 8 bits", bank_id=record.bank_id)
    return _dumps({
        "bank_id": record.bank_id,
        "enc_id": engine.to_payload(keys, record.enc_id),
        "enc_score": engine.to_payload(keys, record.enc_score),
    })


def decode_record(engine: PaillierEngine, keys: KeyContext, raw: bytes) -> EncryptedRecord:
    obj = _loads(raw, "record")
    try:
        bank_id = int(obj["bank_id"])
        enc_id, enc_score = obj["enc_id"], obj["enc_score"]
    except (KeyError, TypeError, ValueError) as exc:
        raise RecordSerializationError("record payload is missing fields") from exc
    return EncryptedRecord(
        bank_id=bank_id,
        enc_id=engine.from_payload(keys, enc_id),
        enc_score=engine.from_payload(keys, enc_score),
    )


def encode_aggregate_row(engine: PaillierEngine, keys: KeyContext, row: EncryptedAggregateRow) -> bytes:
    return _dumps({
        "identity": row.identity,
        "enc_sum": engine.to_payload(keys, row.enc_sum),
        "enc_count": engine.to_payload(keys, row.enc_count),
    })


def decode_aggregate_row(engine: PaillierEngine, keys: KeyContext, raw: bytes) -> EncryptedAggregateRow:
    obj = _loads(raw, "aggregate row")
    try:
        identity = int(obj["identity"])
        enc_sum, enc_count = obj["enc_sum"], obj["enc_count"]
    except (KeyError, TypeError, ValueError) as exc:
        raise RecordSerializationError("aggregate row payload is missing fields") from exc
    return EncryptedAggregateRow(
        identity=identity,
        enc_sum=engine.from_payload(keys, enc_sum),
        enc_count=engine.from_payload(keys, enc_count),
    )


def peek_row_identity(raw: bytes) -> int:
    """Read only the plaintext identity of an aggregate row, leaving ciphertexts untouched."""
    obj = _loads(raw, "aggregate row")
    try:
        return int(obj["identity"])
    except (KeyError, TypeError, ValueError) as exc:
        raise RecordSerializationError("aggregate row payload has no identity") from exc
