"""Event log and state snapshot persistence."""

from claimgate.persistence.event_log import EventKind, EventLog, EventRecord
from claimgate.persistence.state_store import StateStore

__all__ = ["EventKind", "EventLog", "EventRecord", "StateStore"]
