"""Durable event log."""

from .log import EventLog, InMemoryEventLog, SqlEventLog
from .models import EventLogRecord

__all__ = ["EventLog", "EventLogRecord", "InMemoryEventLog", "SqlEventLog"]
