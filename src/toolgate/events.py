"""
Append-only event log for gateway calls.

Every tool call leaves a trail of events keyed by its call id, so a run can
be replayed or inspected after the fact without re-executing anything. With
a sink path set, each event is also appended to that file as one JSON line
the moment it is logged, so a run that dies midway still leaves its trail.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Types of events in the gateway event log."""
    TOOL_CALL_RECEIVED = "tool_call_received"
    PARAM_VALIDATION = "param_validation"
    TOOL_EXECUTION_START = "tool_execution_start"
    TOOL_EXECUTION_END = "tool_execution_end"
    SEARCH_FALLBACK = "search_fallback"
    CACHE_HIT = "cache_hit"
    DANGER_WARNING = "danger_warning"
    TOOL_RESULT_RETURNED = "tool_result_returned"
    ERROR = "error"


@dataclass
class GatewayEvent:
    """A single event in the gateway event log."""
    timestamp: datetime
    event_type: EventType
    tool_call_id: str
    data: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "tool_call_id": self.tool_call_id,
            "data": self.data,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GatewayEvent":
        return cls(
            timestamp=datetime.fromisoformat(data["timestamp"]),
            event_type=EventType(data["event_type"]),
            tool_call_id=data["tool_call_id"],
            data=data.get("data", {}),
        )


@dataclass
class CallTrace:
    """Everything the log knows about one tool call."""
    tool_call_id: str
    events: list[GatewayEvent] = field(default_factory=list)

    @property
    def tool_name(self) -> str | None:
        for event in self.events:
            if "tool_name" in event.data:
                return event.data["tool_name"]
        return None

    @property
    def finished(self) -> bool:
        return any(e.event_type == EventType.TOOL_RESULT_RETURNED for e in self.events)

    @property
    def success(self) -> bool | None:
        """The returned result's success flag, None while the call is in flight."""
        for event in reversed(self.events):
            if event.event_type == EventType.TOOL_RESULT_RETURNED:
                return bool(event.data.get("success"))
        return None

    @property
    def interrupted(self) -> bool:
        return any(
            e.event_type == EventType.TOOL_EXECUTION_END and e.data.get("interrupted")
            for e in self.events
        )

    @property
    def duration_seconds(self) -> float | None:
        if not self.finished:
            return None
        return (self.events[-1].timestamp - self.events[0].timestamp).total_seconds()

    def count(self, event_type: EventType) -> int:
        return sum(1 for e in self.events if e.event_type == event_type)

    def summary(self) -> str:
        if self.success is None:
            status = "running"
        elif self.interrupted:
            status = "interrupted"
        else:
            status = "ok" if self.success else "failed"
        line = f"{self.tool_call_id} {self.tool_name or '?'} {status}"
        if self.duration_seconds is not None:
            line += f" {self.duration_seconds:.3f}s"
        extras = [
            f"{n} {label}"
            for n, label in (
                (self.count(EventType.SEARCH_FALLBACK), "fallback(s)"),
                (self.count(EventType.CACHE_HIT), "cache hit(s)"),
                (self.count(EventType.DANGER_WARNING), "danger warning(s)"),
            )
            if n
        ]
        if extras:
            line += f" [{', '.join(extras)}]"
        return line


@dataclass
class EventLog:
    """Append-only event log for gateway operations, optionally streamed to a JSON-lines file."""
    events: list[GatewayEvent] = field(default_factory=list)
    sink_path: Path | None = None

    def append(self, event: GatewayEvent) -> None:
        self.events.append(event)
        if self.sink_path is not None:
            self._write_to_sink(event)

    def _write_to_sink(self, event: GatewayEvent) -> None:
        try:
            with open(self.sink_path, "a", encoding="utf-8") as f:
                f.write(event.to_json() + "\n")
        except OSError as e:
            # the in-memory log stays complete; only the file copy misses this event
            logger.warning(f"Could not append event to {self.sink_path}: {e}")

    def log_event(
        self,
        event_type: EventType,
        tool_call_id: str = "",
        **data: Any,
    ) -> GatewayEvent:
        event = GatewayEvent(
            timestamp=datetime.now(UTC),
            event_type=event_type,
            tool_call_id=tool_call_id,
            data=data,
        )
        self.append(event)
        return event

    def get_events_for_call(self, tool_call_id: str) -> list[GatewayEvent]:
        return [e for e in self.events if e.tool_call_id == tool_call_id]

    def of_type(self, event_type: EventType) -> list[GatewayEvent]:
        return [e for e in self.events if e.event_type == event_type]

    def calls(self) -> list[CallTrace]:
        """One trace per call id, in the order the calls first appeared."""
        traces: dict[str, CallTrace] = {}
        for event in self.events:
            traces.setdefault(event.tool_call_id, CallTrace(event.tool_call_id)).events.append(event)
        return list(traces.values())

    def trace(self, tool_call_id: str) -> CallTrace | None:
        events = self.get_events_for_call(tool_call_id)
        return CallTrace(tool_call_id, events) if events else None

    def clear(self) -> None:
        self.events.clear()

    def save(self, path: Path) -> None:
        path.write_text("".join(e.to_json() + "\n" for e in self.events), encoding="utf-8")

    @classmethod
    def load(cls, path: Path) -> "EventLog":
        log = cls()
        for line in path.read_text(encoding="utf-8").splitlines():
            if line.strip():
                log.append(GatewayEvent.from_dict(json.loads(line)))
        return log
