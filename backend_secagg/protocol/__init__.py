"""
Secure aggregation protocol: publish, aggregate, reveal.
"""

from backend_secagg.protocol.aggregator import accumulate, aggregate
from backend_secagg.protocol.models import (
    AggregateEntry,
    AggregationResult,
    ClientRecord,
    EncryptedAggregateRow,
    EncryptedRecord,
    RevealedAverage,
    RevealReport,
)
from backend_secagg.protocol.publisher import publish_records
from backend_secagg.protocol.revealer import reveal

__all__ = [
    "AggregateEntry",
    "AggregationResult",
    "ClientRecord",
    "EncryptedAggregateRow",
    "EncryptedRecord",
    "RevealedAverage",
    "RevealReport",
    "accumulate",
    "aggregate",
    "publish_records",
    "reveal",
]
