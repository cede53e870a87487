from core.connection_fsm import ConnectionEvent, ConnectionStateMachine
from core.models import ConnectionStatus


def test_happy_path_then_failure():
    fsm = ConnectionStateMachine("OKX:BTC-USD")
    seen = []
    fsm.on_change(lambda state: seen.append((state.status, state.reason)))

    assert fsm.transition(ConnectionEvent.START)
    assert fsm.transition(ConnectionEvent.OPENED)
    assert fsm.transition(ConnectionEvent.FAILED, "closed")
    assert seen == [
        (ConnectionStatus.CONNECTING, None),
        (ConnectionStatus.OPEN, None),
        (ConnectionStatus.DEGRADED, "closed"),
    ]


def test_degraded_is_terminal_until_dispose():
    fsm = ConnectionStateMachine("Bybit:ETH-USD")
    fsm.transition(ConnectionEvent.START)
    fsm.transition(ConnectionEvent.FAILED, "refused")

    assert not fsm.transition(ConnectionEvent.OPENED)
    assert not fsm.transition(ConnectionEvent.START)
    assert fsm.status == ConnectionStatus.DEGRADED
    assert fsm.state.reason == "refused"

    assert fsm.transition(ConnectionEvent.DISPOSE)
    assert fsm.status == ConnectionStatus.CLOSED
    assert not fsm.transition(ConnectionEvent.DISPOSE)


def test_unsupported_venue_skips_connecting():
    fsm = ConnectionStateMachine("Kraken:BTC-USD")
    assert fsm.transition(ConnectionEvent.UNSUPPORTED, "Unsupported venue: Kraken")
    assert fsm.state.is_fallback


def test_rejected_event_does_not_notify():
    fsm = ConnectionStateMachine("OKX:BTC-USD")
    seen = []
    fsm.on_change(seen.append)
    assert not fsm.transition(ConnectionEvent.OPENED)
    assert seen == []
    assert fsm.status == ConnectionStatus.IDLE
