import asyncio

import pytest

from core.errors import TransportClosedError
from core.models import BookSnapshot, ConnectionStatus, Venue
from exchanges.connection_supervisor import ConnectionSupervisor
from utils.mock_orderbook import MockBookGenerator
from tests.conftest import wait_for


class Recorder:
    def __init__(self):
        self.snapshots = []
        self.statuses = []

    def on_snapshot(self, snapshot):
        self.snapshots.append(snapshot)

    def on_status(self, state):
        self.statuses.append(state)

    @property
    def status_values(self):
        return [state.status for state in self.statuses]


def _supervisor(venue, symbol, recorder, settings, factory, seed=1):
    return ConnectionSupervisor(
        venue,
        symbol,
        on_snapshot=recorder.on_snapshot,
        on_status=recorder.on_status,
        settings=settings,
        transport_factory=factory,
        mock_generator=MockBookGenerator(Venue.parse(venue), seed=seed),
    )


def test_supervisor_requires_session_or_factory(make_settings):
    recorder = Recorder()
    with pytest.raises(ValueError):
        ConnectionSupervisor("OKX", "BTC-USD", recorder.on_snapshot, recorder.on_status, settings=make_settings())


@pytest.mark.asyncio
async def test_subscribes_after_open_and_relays_books(make_settings, transports, okx_book_message):
    recorder = Recorder()
    supervisor = _supervisor("OKX", "BTC-USD", recorder, make_settings(), transports)
    supervisor.start()

    await wait_for(lambda: recorder.status_values[-1:] == [ConnectionStatus.OPEN])
    transport = transports.last
    assert recorder.status_values == [ConnectionStatus.CONNECTING, ConnectionStatus.OPEN]
    assert transport.url == "wss://ws.okx.com:8443/ws/v5/public"
    assert transport.sent == [
        {"op": "subscribe", "args": [{"channel": "books", "instId": "BTC-USDT"}]}
    ]

    transport.feed({"event": "subscribe", "arg": {"channel": "books", "instId": "BTC-USDT"}})
    transport.feed("not json")
    transport.feed(okx_book_message)
    await wait_for(lambda: recorder.snapshots)

    snapshot = recorder.snapshots[0]
    assert isinstance(snapshot, BookSnapshot)
    assert snapshot.bids[0] == (41004.9, 0.5)
    assert snapshot.asks[0] == (41005.1, 1.2)
    assert supervisor.state.status == ConnectionStatus.OPEN

    await supervisor.dispose()
    assert transport.closed


@pytest.mark.asyncio
async def test_connect_failure_degrades_to_mock(make_settings, failing_transports):
    recorder = Recorder()
    supervisor = _supervisor("OKX", "BTC-USD", recorder, make_settings(), failing_transports)
    supervisor.start()

    await wait_for(lambda: recorder.snapshots)
    assert recorder.status_values == [ConnectionStatus.CONNECTING, ConnectionStatus.DEGRADED]
    assert recorder.statuses[-1].reason == "WebSocket failed to connect OKX"
    assert 41000 <= recorder.snapshots[0].last_price <= 42000
    assert failing_transports.last.closed
    await supervisor.dispose()


@pytest.mark.asyncio
async def test_venue_close_degrades_with_reason(make_settings, transports):
    recorder = Recorder()
    supervisor = _supervisor("Deribit", "ETH-USD", recorder, make_settings(), transports)
    supervisor.start()
    await wait_for(lambda: supervisor.state.status == ConnectionStatus.OPEN)

    transports.last.fail(TransportClosedError("websocket closed by venue (code=1000)"))
    await wait_for(lambda: supervisor.state.status == ConnectionStatus.DEGRADED)
    await wait_for(lambda: recorder.snapshots)

    assert recorder.statuses[-1].reason == "WebSocket connection to Deribit closed"
    assert 43900 <= recorder.snapshots[-1].last_price <= 44900
    await supervisor.dispose()


@pytest.mark.asyncio
async def test_stream_end_counts_as_close(make_settings, transports):
    recorder = Recorder()
    supervisor = _supervisor("OKX", "BTC-USD", recorder, make_settings(), transports)
    supervisor.start()
    await wait_for(lambda: supervisor.state.status == ConnectionStatus.OPEN)

    transports.last._queue.put_nowait(None)
    await wait_for(lambda: supervisor.state.status == ConnectionStatus.DEGRADED)
    assert "closed" in supervisor.state.reason
    await supervisor.dispose()


@pytest.mark.asyncio
async def test_unsupported_venue_never_opens_transport(make_settings, transports):
    recorder = Recorder()
    supervisor = _supervisor("Kraken", "BTC-USD", recorder, make_settings(), transports)
    supervisor.start()

    await wait_for(lambda: recorder.snapshots)
    assert transports.created == []
    assert recorder.status_values == [ConnectionStatus.DEGRADED]
    assert recorder.statuses[0].reason == "Unsupported venue: Kraken"
    assert 45000 <= recorder.snapshots[0].last_price <= 46000
    await supervisor.dispose()


@pytest.mark.asyncio
async def test_symbol_without_quote_degrades(make_settings, transports):
    recorder = Recorder()
    supervisor = _supervisor("OKX", "BTC", recorder, make_settings(), transports)
    supervisor.start()

    await wait_for(lambda: recorder.snapshots)
    assert transports.created == []
    assert supervisor.state.status == ConnectionStatus.DEGRADED
    assert supervisor.state.reason == "Unsupported symbol BTC on OKX"
    await supervisor.dispose()


@pytest.mark.asyncio
async def test_dispose_during_debounce_opens_nothing(make_settings, transports):
    recorder = Recorder()
    supervisor = _supervisor("OKX", "BTC-USD", recorder, make_settings(debounce_ms=200), transports)
    supervisor.start()
    await asyncio.sleep(0.01)
    await supervisor.dispose()
    await asyncio.sleep(0.25)

    assert transports.created == []
    assert recorder.statuses == []
    assert recorder.snapshots == []
    assert supervisor.state.status == ConnectionStatus.CLOSED


@pytest.mark.asyncio
async def test_fallback_keeps_serving_until_disposed(make_settings, failing_transports):
    recorder = Recorder()
    supervisor = _supervisor("OKX", "BTC-USD", recorder, make_settings(throttle_ms=20), failing_transports)
    supervisor.start()

    await wait_for(lambda: len(recorder.snapshots) >= 3)
    await supervisor.dispose()
    delivered = len(recorder.snapshots)
    statuses = len(recorder.statuses)
    await asyncio.sleep(0.1)

    assert len(recorder.snapshots) == delivered
    assert len(recorder.statuses) == statuses


@pytest.mark.asyncio
async def test_bybit_keepalive_pings(make_settings, transports):
    recorder = Recorder()
    supervisor = _supervisor("Bybit", "BTC-USD", recorder, make_settings(keepalive_sec=0.02), transports)
    supervisor.start()
    await wait_for(lambda: transports.created and len(transports.last.sent) >= 3)

    sent = transports.last.sent
    assert sent[0] == {"op": "subscribe", "args": ["orderbook.50.BTCUSDT"]}
    assert sent[1:3] == [{"op": "ping"}, {"op": "ping"}]
    await supervisor.dispose()
    count = len(sent)
    await asyncio.sleep(0.06)
    assert len(sent) == count


@pytest.mark.asyncio
async def test_configured_url_overrides_adapter_endpoint(make_settings, transports):
    settings = make_settings()
    settings.venues[Venue.OKX].url = "ws://127.0.0.1:9999/ws"
    recorder = Recorder()
    supervisor = _supervisor("OKX", "BTC-USD", recorder, settings, transports)
    supervisor.start()
    await wait_for(lambda: transports.created)
    assert transports.last.url == "ws://127.0.0.1:9999/ws"
    assert transports.last.heartbeat == 30.0
    await supervisor.dispose()


@pytest.mark.asyncio
async def test_consumer_error_keeps_live_feed(make_settings, transports, okx_book_message):
    recorder = Recorder()
    delivered = []

    def broken_consumer(snapshot):
        delivered.append(snapshot)
        raise RuntimeError("listener bug")

    supervisor = ConnectionSupervisor(
        "OKX",
        "BTC-USD",
        on_snapshot=broken_consumer,
        on_status=recorder.on_status,
        settings=make_settings(),
        transport_factory=transports,
        mock_generator=MockBookGenerator(Venue.OKX, seed=1),
    )
    supervisor.start()
    await wait_for(lambda: supervisor.state.status == ConnectionStatus.OPEN)

    transports.last.feed(okx_book_message)
    await wait_for(lambda: delivered)
    await asyncio.sleep(0.05)

    assert supervisor.state.status == ConnectionStatus.OPEN
    assert not transports.last.closed
    await supervisor.dispose()
