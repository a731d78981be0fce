"""
Tests for the publisher (publisher.publish_records).
"""

from __future__ import annotations

import pytest

from backend_secagg.core.exceptions import (
    InvalidClientRecordError,
    PlaintextRangeError,
    QueueTransportError,
)
from backend_secagg.crypto.fhe import PaillierEngine
from backend_secagg.crypto.salting import salted_id
from backend_secagg.protocol.models import ClientRecord, decode_record
from backend_secagg.protocol.publisher import publish_records
from backend_secagg.transport.queue import InMemoryQueue

CLIENTS = [ClientRecord(42, 10), ClientRecord(7, 100), ClientRecord(2**64 - 1, 255)]


def test_publish_returns_salted_ids_in_order(queue, engine, session_keys):
    ids = publish_records(3, CLIENTS, queue, engine, session_keys)
    assert ids == [salted_id(c.client_id, 3) for c in CLIENTS]


def test_published_records_decrypt_to_salted_identity_and_score(queue, engine, session_keys):
    publish_records(3, CLIENTS, queue, engine, session_keys, queue_name="records")
    raw = queue.read_range("records", 0, queue.length("records"))
    assert len(raw) == len(CLIENTS)
    for payload, client in zip(raw, CLIENTS):
        record = decode_record(engine, session_keys, payload)
        assert record.bank_id == 3
        assert engine.decrypt(session_keys, record.enc_id) == salted_id(client.client_id, 3)
        assert engine.decrypt(session_keys, record.enc_score) == client.risk_score


def test_payload_carries_no_plaintext(queue, engine, session_keys):
    publish_records(1, [ClientRecord(42, 77)], queue, engine, session_keys)
    payload = queue.read_range("records", 0, 1)[0].decode("utf-8")
    assert str(salted_id(42, 1)) not in payload
    assert '"77"' not in payload and ":77," not in payload


def test_publisher_works_with_evaluation_only_key(queue, engine, session_keys):
    ids = publish_records(0, CLIENTS[:1], queue, engine, session_keys.evaluation_only())
    record = decode_record(engine, session_keys, queue.read_range("records", 0, 1)[0])
    assert engine.decrypt(session_keys, record.enc_id) == ids[0]


def test_empty_client_list(queue, engine, session_keys):
    assert publish_records(0, [], queue, engine, session_keys) == []
    assert queue.length("records") == 0


def test_encryption_failure_queues_nothing(queue, session_keys):
    """Salted ids are 64-bit; an 8-bit engine fails on the first record before any append."""
    narrow = PaillierEngine(value_bits=8)
    with pytest.raises(PlaintextRangeError):
        publish_records(0, CLIENTS, queue, narrow, session_keys)
    assert queue.length("records") == 0


class _FailingQueue(InMemoryQueue):
    def append_many(self, name, payloads):
        raise QueueTransportError("queue append_many failed", op="append_many", queue=name)


def test_transport_failure_propagates(engine, session_keys):
    q = _FailingQueue()
    with pytest.raises(QueueTransportError):
        publish_records(0, CLIENTS, q, engine, session_keys)
    assert q.length("records") == 0


@pytest.mark.parametrize("client_id,score", [(-1, 5), (2**64, 5), (1, 256), (1, -3)])
def test_client_record_validation(client_id, score):
    with pytest.raises(InvalidClientRecordError):
        ClientRecord(client_id, score)
