"""Durable, per-key ordered message queue."""

from .durable import Clock, DurableQueue, utc_now
from .models import DeliveryReceipt, Lease, QueueMessage, QueueStats, make_ordering_key
from .sweeper import LeaseSweeper

__all__ = [
    "Clock",
    "DeliveryReceipt",
    "DurableQueue",
    "Lease",
    "LeaseSweeper",
    "QueueMessage",
    "QueueStats",
    "make_ordering_key",
    "utc_now",
]
