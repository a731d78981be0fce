"""
Aggregator: group published records by identity and accumulate (sum, count)
entirely on ciphertexts.

Only the identity is decrypted, which is what makes grouping possible; scores
are added homomorphically and never decrypted here. Entries are seeded with
trivial encryptions of 0 and every record adds its score to the sum and a
trivial encryption of 1 to the count, so a count always equals the number of
records seen for that identity.

The pass reads a snapshot of the records queue and then replaces the whole
aggregates queue in one atomic step. Re-running over an unchanged records
queue leaves identical aggregates; any decode or decrypt failure aborts the
pass before the aggregates queue is touched.
"""

from __future__ import annotations

from typing import Iterable

from backend_secagg.crypto.fhe import KeyContext, PaillierEngine
from backend_secagg.protocol.models import (
    AggregateEntry,
    AggregationResult,
    EncryptedAggregateRow,
    EncryptedRecord,
    decode_record,
    encode_aggregate_row,
)
from backend_secagg.secagg_logging import get_logger
from backend_secagg.transport.queue import RecordQueue, take_snapshot

logger = get_logger(__name__)


def accumulate(
    records: Iterable[EncryptedRecord],
    engine: PaillierEngine,
    keys: KeyContext,
) -> dict[int, AggregateEntry]:
    """
    Fold records into per-identity encrypted (sum, count) entries.

    Returns a dict keyed by decrypted identity, in first-seen order.
    """
    entries: dict[int, AggregateEntry] = {}
    for record in records:
        identity = engine.decrypt(keys, record.enc_id)
        entry = entries.get(identity)
        if entry is None:
            entry = AggregateEntry(
                enc_sum=engine.trivial_encrypt(keys, 0),
                enc_count=engine.trivial_encrypt(keys, 0),
            )
            entries[identity] = entry
        entry.enc_sum = engine.add(keys, entry.enc_sum, record.enc_score)
        entry.enc_count = engine.add(keys, entry.enc_count, engine.trivial_encrypt(keys, 1))
    return entries


def to_rows(entries: dict[int, AggregateEntry]) -> list[EncryptedAggregateRow]:
    return [
        EncryptedAggregateRow(identity=identity, enc_sum=e.enc_sum, enc_count=e.enc_count)
        for identity, e in entries.items()
    ]


def aggregate(
    queue: RecordQueue,
    engine: PaillierEngine,
    keys: KeyContext,
    records_queue: str = "records",
    aggregates_queue: str = "aggregates",
) -> AggregationResult:
    """Run one aggregation pass from records_queue into aggregates_queue."""
    snapshot = take_snapshot(queue, records_queue)
    records = [decode_record(engine, keys, raw) for raw in snapshot.items]
    entries = accumulate(records, engine, keys)
    payloads = [encode_aggregate_row(engine, keys, row) for row in to_rows(entries)]
    queue.replace(aggregates_queue, payloads)

    result = AggregationResult(
        records_processed=len(records),
        distinct_identities=len(entries),
        snapshot_length=snapshot.length,
    )
    logger.info(
        "aggregation_complete",
        records=result.records_processed,
        distinct_identities=result.distinct_identities,
        records_queue=records_queue,
        aggregates_queue=aggregates_queue,
    )
    return result
