"""Tests for the gateway event log."""

import json

from toolgate.events import CallTrace, EventLog, EventType


class TestEventLog:
    """Tests for EventLog."""

    def test_filters(self):
        """Events can be filtered by call id and by type."""
        log = EventLog()
        log.log_event(EventType.TOOL_CALL_RECEIVED, "a", tool_name="ls_dir")
        log.log_event(EventType.TOOL_CALL_RECEIVED, "b", tool_name="read_file")
        log.log_event(EventType.ERROR, "a", error="boom")
        assert [e.event_type for e in log.get_events_for_call("a")] == [
            EventType.TOOL_CALL_RECEIVED,
            EventType.ERROR,
        ]
        assert [e.tool_call_id for e in log.of_type(EventType.TOOL_CALL_RECEIVED)] == ["a", "b"]

    def test_save_and_load(self, tmp_path):
        """A saved log loads back with the same events."""
        log = EventLog()
        log.log_event(EventType.CACHE_HIT, "c1", key="search:python:5")
        log.log_event(EventType.TOOL_EXECUTION_END, "c1", success=True, interrupted=False)
        path = tmp_path / "events.jsonl"
        log.save(path)

        loaded = EventLog.load(path)
        assert [e.to_dict() for e in loaded.events] == [e.to_dict() for e in log.events]
        assert loaded.events[0].timestamp == log.events[0].timestamp

    def test_clear(self):
        """clear() empties the log."""
        log = EventLog()
        log.log_event(EventType.ERROR, "x", error="e")
        log.clear()
        assert log.events == []


class TestEventSink:
    """Tests for streaming events to a JSON-lines file."""

    def test_each_event_is_written_when_logged(self, tmp_path):
        """The file grows by one line per event, without calling save()."""
        path = tmp_path / "events.jsonl"
        log = EventLog(sink_path=path)
        log.log_event(EventType.TOOL_CALL_RECEIVED, "a", tool_name="ls_dir")
        assert len(path.read_text().splitlines()) == 1
        log.log_event(EventType.TOOL_EXECUTION_START, "a", tool_name="ls_dir")
        lines = [json.loads(line) for line in path.read_text().splitlines()]
        assert [line["event_type"] for line in lines] == ["tool_call_received", "tool_execution_start"]

    def test_streamed_file_loads_back(self, tmp_path):
        """A streamed file is readable by load()."""
        path = tmp_path / "events.jsonl"
        log = EventLog(sink_path=path)
        log.log_event(EventType.CACHE_HIT, "c1", key="browse:https://a.test/")
        assert [e.to_dict() for e in EventLog.load(path).events] == [e.to_dict() for e in log.events]

    def test_unwritable_sink_keeps_memory_log(self, tmp_path):
        """A sink that cannot be written does not lose the in-memory event."""
        log = EventLog(sink_path=tmp_path / "missing-dir" / "events.jsonl")
        log.log_event(EventType.ERROR, "x", error="e")
        assert len(log.events) == 1


class TestCallTraces:
    """Tests for per-call grouping."""

    def _log_call(self, log, call_id, tool_name, success, **end):
        log.log_event(EventType.TOOL_CALL_RECEIVED, call_id, tool_name=tool_name)
        log.log_event(EventType.TOOL_EXECUTION_END, call_id, success=success, **end)
        log.log_event(EventType.TOOL_RESULT_RETURNED, call_id, success=success, content_length=3)

    def test_calls_grouped_in_first_seen_order(self):
        """calls() returns one trace per call id, in arrival order."""
        log = EventLog()
        log.log_event(EventType.TOOL_CALL_RECEIVED, "b", tool_name="read_file")
        log.log_event(EventType.TOOL_CALL_RECEIVED, "a", tool_name="ls_dir")
        log.log_event(EventType.CACHE_HIT, "b", key="k")
        traces = log.calls()
        assert [t.tool_call_id for t in traces] == ["b", "a"]
        assert [len(t.events) for t in traces] == [2, 1]

    def test_trace_outcome(self):
        """A trace knows its tool, its outcome and whether it finished."""
        log = EventLog()
        self._log_call(log, "ok", "ls_dir", True, interrupted=False)
        self._log_call(log, "bad", "read_file", False)
        log.log_event(EventType.TOOL_CALL_RECEIVED, "open", tool_name="run_command")

        ok, bad, running = log.trace("ok"), log.trace("bad"), log.trace("open")
        assert (ok.tool_name, ok.success, ok.finished) == ("ls_dir", True, True)
        assert (bad.success, bad.interrupted) == (False, False)
        assert running.success is None and running.duration_seconds is None
        assert ok.duration_seconds >= 0
        assert log.trace("nope") is None

    def test_summary(self):
        """summary() is one line with the status and notable events."""
        log = EventLog()
        log.log_event(EventType.TOOL_CALL_RECEIVED, "c1", tool_name="run_command")
        log.log_event(EventType.DANGER_WARNING, "c1", command="rm -rf x", level="dangerous")
        log.log_event(EventType.TOOL_EXECUTION_END, "c1", success=True, interrupted=True)
        log.log_event(EventType.TOOL_RESULT_RETURNED, "c1", success=True, content_length=10)
        summary = log.trace("c1").summary()
        assert summary.startswith("c1 run_command interrupted ")
        assert summary.endswith("[1 danger warning(s)]")
        assert CallTrace("empty").summary() == "empty ? running"
