# pylint: disable=missing-module-docstring,missing-function-docstring

from orchestrator.reducer import reduce
from orchestrator.state_dataclass import OrchestratorState
from orchestrator.events import Begin, End, EventType, Teardown
from orchestrator.commands import LogEvent, PublishUpdate
from orchestrator.enums.state import State


def test_reducer_emits_logevent_with_required_fields():
    state = OrchestratorState(state=State.IDLE)

    event = Begin(
        event_type=EventType.BEGIN,
        ts_ms=123,
    )

    _, commands = reduce(state, event)

    log_events = [c for c in commands if isinstance(c, LogEvent)]
    assert log_events, "Reducer must emit at least one LogEvent"

    for log in log_events:
        payload = log.event
        assert payload["ts_ms"] == 123
        assert "state" in payload
        assert payload["event_type"] == "BEGIN"
        assert "decision" in payload
        assert "session_id" in payload
        assert "in_flight" in payload
        assert "details" in payload


def test_state_changed_log_is_ordered_last():
    _, commands = reduce(
        OrchestratorState(),
        Begin(event_type=EventType.BEGIN, ts_ms=0),
    )

    last = commands[-1]
    assert isinstance(last, LogEvent)
    assert last.event["decision"] == "state_changed"
    assert last.event["details"]["from_state"] == "IDLE"
    assert last.event["details"]["to_state"] == "REQUESTING_PERMISSION"


def test_ignored_event_emits_single_ignore_log():
    state = OrchestratorState()
    new_state, commands = reduce(state, End(event_type=EventType.END, ts_ms=5))

    assert new_state == state
    assert len(commands) == 1
    assert isinstance(commands[0], LogEvent)
    assert commands[0].event["decision"] == "ignore"
    assert commands[0].event["details"]["reason"] == "no_active_session"


def test_teardown_publishes_no_update():
    state, _ = reduce(
        OrchestratorState(),
        Begin(event_type=EventType.BEGIN, ts_ms=0),
    )

    new_state, commands = reduce(
        state,
        Teardown(event_type=EventType.TEARDOWN, ts_ms=1, reason="client_disconnect"),
    )

    assert new_state.state is State.IDLE
    assert new_state.session_id == 0
    assert new_state.last_session_id == 1
    assert not any(isinstance(c, PublishUpdate) for c in commands)
