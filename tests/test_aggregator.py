"""
Tests for encrypted-domain aggregation (aggregator.accumulate / aggregate).

Records are built directly with chosen identities so expected sums and counts
are known; the aggregates queue is then decrypted with the session key.
"""

from __future__ import annotations

import random
from collections import defaultdict

import pytest

from backend_secagg.core.exceptions import KeyMismatchError, RecordSerializationError
from backend_secagg.protocol.aggregator import accumulate, aggregate
from backend_secagg.protocol.models import (
    EncryptedRecord,
    decode_aggregate_row,
    encode_record,
)


def _record(engine, keys, identity, score, bank_id=0):
    return EncryptedRecord(
        bank_id=bank_id,
        enc_id=engine.encrypt(keys, identity),
        enc_score=engine.encrypt(keys, score),
    )


def _queue_contributions(queue, engine, keys, contributions):
    payloads = [encode_record(engine, keys, _record(engine, keys, i, s, bank_id=n % 5))
                for n, (i, s) in enumerate(contributions)]
    queue.append_many("records", payloads)


def _decrypt_aggregates(queue, engine, keys):
    out = {}
    for raw in queue.read_range("aggregates", 0, queue.length("aggregates")):
        row = decode_aggregate_row(engine, keys, raw)
        out[row.identity] = (engine.decrypt(keys, row.enc_sum), engine.decrypt(keys, row.enc_count))
    return out


def test_concrete_scenario(queue, engine, session_keys):
    _queue_contributions(queue, engine, session_keys, [(42, 10), (42, 30), (7, 100)])
    result = aggregate(queue, engine, session_keys)
    assert result.distinct_identities == 2
    assert result.records_processed == 3
    assert _decrypt_aggregates(queue, engine, session_keys) == {42: (40, 2), 7: (100, 1)}


def test_rows_in_first_seen_order(queue, engine, session_keys):
    _queue_contributions(queue, engine, session_keys, [(9, 1), (3, 1), (9, 1), (5, 1)])
    aggregate(queue, engine, session_keys)
    raws = queue.read_range("aggregates", 0, 10)
    assert [decode_aggregate_row(engine, session_keys, r).identity for r in raws] == [9, 3, 5]


def test_accumulate_matches_plain_sums(engine, session_keys):
    rng = random.Random(2024)
    identities = [rng.getrandbits(64) for _ in range(6)]
    contributions = [(rng.choice(identities), rng.randint(0, 255)) for _ in range(40)]
    expected = defaultdict(lambda: [0, 0])
    for identity, score in contributions:
        expected[identity][0] += score
        expected[identity][1] += 1

    entries = accumulate(
        [_record(engine, session_keys, i, s) for i, s in contributions], engine, session_keys
    )
    assert set(entries) == set(expected)
    for identity, entry in entries.items():
        assert engine.decrypt(session_keys, entry.enc_sum) == expected[identity][0]
        assert engine.decrypt(session_keys, entry.enc_count) == expected[identity][1]


def test_scores_are_never_decrypted(queue, spy_engine, session_keys):
    scores = [211, 212, 213]
    _queue_contributions(queue, spy_engine, session_keys, [(1, scores[0]), (2, scores[1]), (1, scores[2])])
    aggregate(queue, spy_engine, session_keys)
    assert spy_engine.decrypted == [1, 2, 1]


def test_rerun_is_idempotent(queue, engine, session_keys):
    _queue_contributions(queue, engine, session_keys, [(42, 10), (42, 30), (7, 100)])
    aggregate(queue, engine, session_keys)
    first = _decrypt_aggregates(queue, engine, session_keys)
    aggregate(queue, engine, session_keys)
    assert queue.length("aggregates") == 2
    assert _decrypt_aggregates(queue, engine, session_keys) == first


def test_empty_records_clears_aggregates(queue, engine, session_keys):
    queue.append("aggregates", b"stale")
    result = aggregate(queue, engine, session_keys)
    assert result.distinct_identities == 0
    assert queue.length("aggregates") == 0


def test_malformed_record_aborts_without_touching_aggregates(queue, engine, session_keys):
    _queue_contributions(queue, engine, session_keys, [(42, 10)])
    queue.append("records", b"{broken")
    queue.append("aggregates", b"previous")
    with pytest.raises(RecordSerializationError):
        aggregate(queue, engine, session_keys)
    assert queue.read_range("aggregates", 0, 5) == [b"previous"]


def test_record_from_other_key_aborts(queue, engine, session_keys, other_keys):
    queue.append("records", encode_record(engine, other_keys, _record(engine, other_keys, 42, 10)))
    with pytest.raises(KeyMismatchError):
        aggregate(queue, engine, session_keys)
    assert queue.length("aggregates") == 0


def test_custom_queue_names(queue, engine, session_keys):
    queue.append("r2", encode_record(engine, session_keys, _record(engine, session_keys, 1, 5)))
    result = aggregate(queue, engine, session_keys, records_queue="r2", aggregates_queue="a2")
    assert result.distinct_identities == 1
    assert queue.length("a2") == 1
    assert queue.length("aggregates") == 0
