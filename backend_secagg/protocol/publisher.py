"""
Publisher: salt, encrypt and queue one bank's client records.

All payloads are encoded before anything is sent, then appended with a single
atomic multi-value append. Either every record of the bank is queued or none
is; any failure propagates to the caller.
"""

from __future__ import annotations

from typing import Sequence

from backend_secagg.crypto.fhe import KeyContext, PaillierEngine
from backend_secagg.crypto.salting import salted_id
from backend_secagg.protocol.models import ClientRecord, EncryptedRecord, encode_record
from backend_secagg.secagg_logging import get_logger
from backend_secagg.transport.queue import RecordQueue

logger = get_logger(__name__)


def encrypt_client(
    engine: PaillierEngine,
    keys: KeyContext,
    bank_id: int,
    client: ClientRecord,
) -> tuple[int, EncryptedRecord]:
    """Return (salted identity, encrypted record) for one client."""
    identity = salted_id(client.client_id, bank_id)
    record = EncryptedRecord(
        bank_id=bank_id,
        enc_id=engine.encrypt(keys, identity),
        enc_score=engine.encrypt(keys, client.risk_score),
    )
    return identity, record


def publish_records(
    bank_id: int,
    clients: Sequence[ClientRecord],
    queue: RecordQueue,
    engine: PaillierEngine,
    keys: KeyContext,
    queue_name: str = "records",
) -> list[int]:
    """
    Publish every client of bank_id to queue_name.

    Returns the salted identities in client order; the Revealer later tests
    aggregate rows for membership in this list.
    """
    identities: list[int] = []
    payloads: list[bytes] = []
    for client in clients:
        identity, record = encrypt_client(engine, keys, bank_id, client)
        identities.append(identity)
        payloads.append(encode_record(engine, keys, record))

    if payloads:
        queue.append_many(queue_name, payloads)
    logger.info(
        "publisher_records_queued",
        bank_id=bank_id,
        count=len(payloads),
        queue=queue_name,
        key_id=keys.key_id,
    )
    return identities
