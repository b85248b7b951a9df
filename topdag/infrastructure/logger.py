"""
TOPDAG MUTATION LOGGER - The Audit Trail

Structured record of every committed (and every rejected) graph mutation.
Standard-library logging carries free-form diagnostics; this module carries
machine-readable events that tests and tooling can query.

Architecture:
- MutationEvent: msgspec.Struct describing one mutation
- EventBuffer: In-memory ring buffer for recent events
- FileLogger: Optional append-only JSONL sink
- MutationLogger: The interface the Dag talks to

Usage:
    logger = MutationLogger()
    logger.log_node_added("a", ["b", "c"])
    logger.log_node_removed("a")

    recent = logger.get_recent_events(10)
    for event in logger.get_events_for_key("a"):
        print(f"{event.sequence}: {event.mutation_type}")
"""
import io
import itertools
import logging
from collections import deque
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional

import msgspec

from topdag.infrastructure.config import DagConfig

logger = logging.getLogger(__name__)


# =============================================================================
# EVENT TYPES
# =============================================================================

class MutationType(str, Enum):
    """Types of graph mutations for event tracking."""
    NODE_ADDED = "NODE_ADDED"
    NODE_REMOVED = "NODE_REMOVED"
    GRAPH_TRIMMED = "GRAPH_TRIMMED"
    CYCLE_REJECTED = "CYCLE_REJECTED"


class MutationEvent(msgspec.Struct, kw_only=True):
    """
    Individual mutation event.

    Keys are rendered with repr() so events stay serializable whatever key
    type the graph uses, and so that 1 and "1" remain distinct.
    """
    timestamp: str
    sequence: int
    mutation_type: str                  # MutationType value
    key: Optional[str] = None
    outgoing: List[str] = []

    # For trim events
    nodes_retained: int = 0
    nodes_removed: int = 0


def format_key(key: Any) -> str:
    """Render a graph key for an event record."""
    return repr(key)


# =============================================================================
# EVENT BUFFER
# =============================================================================

class EventBuffer:
    """
    Bounded in-memory history of one logger's events.

    Sequence numbers are issued here and keep counting after old events
    fall off the end. Like the Dag it serves, it is not thread-safe.
    """

    def __init__(self, max_size: int = 10000):
        self._events: deque[MutationEvent] = deque(maxlen=max_size)
        self._counter = itertools.count(1)

    def append(self, event: MutationEvent) -> None:
        self._events.append(event)

    def get_last(self, n: int) -> List[MutationEvent]:
        """The newest n events, oldest first."""
        if n <= 0:
            return []
        start = max(len(self._events) - n, 0)
        return list(itertools.islice(self._events, start, None))

    def get_by_key(self, key: str) -> List[MutationEvent]:
        return [e for e in self._events if e.key == key]

    def get_by_type(self, mutation_type: str) -> List[MutationEvent]:
        return [e for e in self._events if e.mutation_type == mutation_type]

    def next_sequence(self) -> int:
        return next(self._counter)

    def clear(self) -> None:
        """Forget buffered events. Sequence numbers are not reused."""
        self._events.clear()

    def __len__(self) -> int:
        return len(self._events)


# =============================================================================
# FILE LOGGER
# =============================================================================

class FileLogger:
    """
    Append-only JSONL sink for mutation events.

    Every event becomes one line of <log_path>/mutations.jsonl. The file is
    opened on the first write and stays open until close(); writing after
    close() reopens it in append mode.
    """

    FILENAME = "mutations.jsonl"

    def __init__(self, log_path: Path):
        log_path.mkdir(parents=True, exist_ok=True)
        self.path = log_path / self.FILENAME
        self._handle: Optional[io.TextIOWrapper] = None
        self._encoder = msgspec.json.Encoder()

    @property
    def closed(self) -> bool:
        """True while no file handle is held."""
        return self._handle is None

    def write(self, event: MutationEvent) -> None:
        """Append one event and flush it."""
        try:
            if self._handle is None:
                self._handle = open(self.path, "a", encoding="utf-8")
            self._handle.write(self._encoder.encode(event).decode("utf-8") + "\n")
            self._handle.flush()
        except OSError as e:
            logger.warning("Failed to write mutation event %d to %s: %s", event.sequence, self.path, e)

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def read_log(self) -> List[MutationEvent]:
        """Decode every event written to the file so far."""
        if not self.path.exists():
            return []
        decoder = msgspec.json.Decoder(type=MutationEvent)
        with open(self.path, "rb") as f:
            return [decoder.decode(line) for line in f if line.strip()]


# =============================================================================
# MUTATION LOGGER (Main Interface)
# =============================================================================

class MutationLogger:
    """
    Main logging interface for graph mutations.

    Events always go to the in-memory buffer, and to a JSONL file when
    the config enables it. Subscribers receive every event synchronously.

    Usage:
        logger = MutationLogger(DagConfig(event_buffer_size=100))
        logger.subscribe(print)
        logger.log_node_added("a", ["b"])
    """

    def __init__(self, config: Optional[DagConfig] = None):
        self.config = config or DagConfig()

        self._buffer = EventBuffer(self.config.event_buffer_size)
        self._file_logger: Optional[FileLogger] = None

        if self.config.enable_file_log and self.config.log_path:
            self._file_logger = FileLogger(Path(self.config.log_path))

        self._subscribers: List[Callable[[MutationEvent], None]] = []

    @property
    def file_logger(self) -> Optional[FileLogger]:
        """The JSONL sink, if file logging is enabled."""
        return self._file_logger

    def _now(self) -> str:
        """Get current UTC timestamp."""
        return datetime.now(timezone.utc).isoformat()

    def _emit(self, event: MutationEvent) -> MutationEvent:
        self._buffer.append(event)

        if self._file_logger is not None:
            self._file_logger.write(event)

        for subscriber in self._subscribers:
            subscriber(event)

        return event

    def subscribe(self, callback: Callable[[MutationEvent], None]) -> None:
        """Register a callback invoked with every emitted event."""
        self._subscribers.append(callback)

    # =========================================================================
    # LOGGING METHODS
    # =========================================================================

    def log_node_added(self, key: Any, outgoing: Iterable[Any] = ()) -> MutationEvent:
        """Log a committed add_node."""
        return self._emit(MutationEvent(
            timestamp=self._now(),
            sequence=self._buffer.next_sequence(),
            mutation_type=MutationType.NODE_ADDED.value,
            key=format_key(key),
            outgoing=[format_key(dest) for dest in outgoing],
        ))

    def log_node_removed(self, key: Any) -> MutationEvent:
        """Log a committed remove_node."""
        return self._emit(MutationEvent(
            timestamp=self._now(),
            sequence=self._buffer.next_sequence(),
            mutation_type=MutationType.NODE_REMOVED.value,
            key=format_key(key),
        ))

    def log_trimmed(self, retained: int, removed: int) -> MutationEvent:
        """Log a completed trim."""
        return self._emit(MutationEvent(
            timestamp=self._now(),
            sequence=self._buffer.next_sequence(),
            mutation_type=MutationType.GRAPH_TRIMMED.value,
            nodes_retained=retained,
            nodes_removed=removed,
        ))

    def log_cycle_rejected(self, key: Any, outgoing: Iterable[Any] = ()) -> MutationEvent:
        """Log an add_node that was refused by the cycle guard."""
        return self._emit(MutationEvent(
            timestamp=self._now(),
            sequence=self._buffer.next_sequence(),
            mutation_type=MutationType.CYCLE_REJECTED.value,
            key=format_key(key),
            outgoing=[format_key(dest) for dest in outgoing],
        ))

    # =========================================================================
    # QUERY METHODS
    # =========================================================================

    def get_recent_events(self, n: int = 100) -> List[MutationEvent]:
        """Get the n most recent events."""
        return self._buffer.get_last(n)

    def get_events_for_key(self, key: Any) -> List[MutationEvent]:
        """Get all buffered events for a node key."""
        return self._buffer.get_by_key(format_key(key))

    def get_events_by_type(self, mutation_type: MutationType) -> List[MutationEvent]:
        """Get all buffered events of one type."""
        return self._buffer.get_by_type(mutation_type.value)

    def clear(self) -> None:
        """Drop all buffered events."""
        self._buffer.clear()

    def close(self) -> None:
        """Close the file sink, if any."""
        if self._file_logger is not None:
            self._file_logger.close()

    def __len__(self) -> int:
        return len(self._buffer)
