"""
Revealer: decrypt aggregates only for the bank's own salted identities.

Each aggregate row's plaintext identity is checked against the bank's
identity set before anything else is parsed; rows outside the set are
skipped without decoding or decrypting their ciphertexts.
"""

from __future__ import annotations

from typing import Iterable

from backend_secagg.crypto.fhe import KeyContext, PaillierEngine
from backend_secagg.protocol.models import (
    EncryptedAggregateRow,
    RevealedAverage,
    RevealReport,
    decode_aggregate_row,
    peek_row_identity,
)
from backend_secagg.secagg_logging import get_logger
from backend_secagg.transport.queue import RecordQueue, take_snapshot

logger = get_logger(__name__)


def reveal_row(engine: PaillierEngine, keys: KeyContext, row: EncryptedAggregateRow) -> RevealedAverage:
    """Decrypt one row. A decrypted count of 0 is floored to 1."""
    total = engine.decrypt(keys, row.enc_sum)
    count = max(engine.decrypt(keys, row.enc_count), 1)
    return RevealedAverage(identity=row.identity, total=total, count=count, average=total / count)


def reveal(
    bank_id: int,
    own_ids: Iterable[int],
    queue: RecordQueue,
    engine: PaillierEngine,
    keys: KeyContext,
    aggregates_queue: str = "aggregates",
) -> RevealReport:
    """Scan all aggregate rows and report averages for rows owned by bank_id."""
    owned = set(own_ids)
    snapshot = take_snapshot(queue, aggregates_queue)
    report = RevealReport(bank_id=bank_id, rows_scanned=snapshot.length)
    for raw in snapshot.items:
        if peek_row_identity(raw) not in owned:
            continue
        row = decode_aggregate_row(engine, keys, raw)
        report.averages.append(reveal_row(engine, keys, row))

    logger.info(
        "reveal_complete",
        bank_id=bank_id,
        rows_scanned=report.rows_scanned,
        revealed=report.revealed,
        own_identities=len(owned),
    )
    return report
