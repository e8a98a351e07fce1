import threading
import time

import httpx

from imposter.services.rooms import state_machine as sm
from imposter.services.rooms.sync import HttpTransport, RoomTransport, StoreTransport, SyncLoop


class FakeTransport(RoomTransport):
    def __init__(self, responses):
        self.responses = list(responses)
        self.heartbeats = []
        self.left = []

    def fetch(self, room_code):
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        return item

    def heartbeat(self, room_code, peer_id, username):
        self.heartbeats.append((room_code, peer_id, username))

    def leave(self, room_code, peer_id):
        self.left.append((room_code, peer_id))
        return {'success': True}


def _doc(version):
    return {'roomCode': 'ABC123', 'version': version, 'gameState': 'lobby'}


def test_tick_notifies_on_every_read():
    seen = []
    loop = SyncLoop(FakeTransport([_doc(1), _doc(1), _doc(2)]), 'ABC123', on_change=seen.append)
    assert loop.tick() is True
    assert loop.tick() is False
    assert loop.tick() is True
    assert [d['version'] for d in seen] == [1, 1, 2]
    assert loop.version == 2


def test_unsubscribe_stops_delivery():
    seen = []
    loop = SyncLoop(FakeTransport([_doc(1)]), 'ABC123')
    unsubscribe = loop.subscribe(seen.append)
    loop.tick()
    unsubscribe()
    loop.tick()
    assert len(seen) == 1


def test_errors_back_off_and_reset():
    failure = httpx.ConnectError('down')
    transport = FakeTransport([failure] * 5 + [_doc(3)])
    loop = SyncLoop(transport, 'ABC123', poll_interval_ms=500, backoff_max_ms=8000)
    delays = []
    for _ in range(5):
        assert loop.tick() is False
        delays.append(loop.delay_ms)
    assert delays == [1000, 2000, 4000, 8000, 8000]
    assert loop.tick() is True
    assert loop.errors == 0
    assert loop.delay_ms == 500


def test_missing_room_stops_loop():
    loop = SyncLoop(FakeTransport([None]), 'ABC123')
    assert loop.tick() is False
    assert loop.missing is True
    assert loop.stopped is True


def test_heartbeat_respects_interval():
    now = [0.0]
    transport = FakeTransport([_doc(1)])
    loop = SyncLoop(transport, 'ABC123', peer_id='p1', username='Bob',
                    heartbeat_interval_ms=3000, clock=lambda: now[0])
    assert loop.maybe_heartbeat() is True
    now[0] = 2.9
    assert loop.maybe_heartbeat() is False
    now[0] = 3.0
    assert loop.maybe_heartbeat() is True
    assert transport.heartbeats == [('ABC123', 'p1', 'Bob')] * 2


def test_no_heartbeat_without_peer_id():
    transport = FakeTransport([_doc(1)])
    assert SyncLoop(transport, 'ABC123').maybe_heartbeat() is False
    assert transport.heartbeats == []


def test_leave_stops_then_leaves():
    transport = FakeTransport([_doc(1)])
    loop = SyncLoop(transport, 'ABC123', peer_id='p1')
    assert loop.leave() == {'success': True}
    assert loop.stopped
    assert transport.left == [('ABC123', 'p1')]


def test_background_run_delivers_and_stops():
    got = threading.Event()
    loop = SyncLoop(FakeTransport([_doc(1)]), 'ABC123', on_change=lambda d: got.set(), poll_interval_ms=10)
    loop.start()
    try:
        assert got.wait(2.0)
    finally:
        loop.stop()
    assert loop.stopped


def test_failing_subscriber_does_not_stop_polling():
    seen = []

    def render(doc):
        raise ValueError('render failed')

    loop = SyncLoop(FakeTransport([_doc(1), _doc(2)]), 'ABC123', on_change=render)
    loop.subscribe(seen.append)
    assert loop.tick() is True
    assert loop.tick() is True
    assert [d['version'] for d in seen] == [1, 2]
    assert loop.version == 2


def test_background_run_survives_failing_subscriber():
    fetched = []

    class CountingTransport(FakeTransport):
        def fetch(self, room_code):
            fetched.append(room_code)
            return super().fetch(room_code)

    def render(doc):
        raise ValueError('render failed')

    loop = SyncLoop(CountingTransport([_doc(1)]), 'ABC123', on_change=render, poll_interval_ms=10)
    loop.start()
    try:
        deadline = time.monotonic() + 2.0
        while len(fetched) < 3 and time.monotonic() < deadline:
            time.sleep(0.01)
        assert len(fetched) >= 3
        assert loop._thread.is_alive()
    finally:
        loop.stop()


def _http_transport(handler):
    client = httpx.Client(transport=httpx.MockTransport(handler), base_url='http://game.test')
    return HttpTransport('http://game.test', peer_id='p1', client=client)


def test_http_transport_fetch_and_missing():
    def handler(request):
        if request.url.path == '/api/rooms/ABC123':
            assert request.url.params['peer_id'] == 'p1'
            return httpx.Response(200, json={'success': True, 'room': _doc(4)})
        return httpx.Response(404, json={'success': False, 'error': 'room_not_found'})

    transport = _http_transport(handler)
    assert transport.fetch('ABC123')['version'] == 4
    assert transport.fetch('GONE00') is None


def test_http_transport_server_error_is_swallowed_by_loop():
    transport = _http_transport(lambda request: httpx.Response(503))
    loop = SyncLoop(transport, 'ABC123')
    assert loop.tick() is False
    assert loop.errors == 1


def test_http_transport_send_intent():
    captured = {}

    def handler(request):
        captured['path'] = request.url.path
        captured['body'] = request.read()
        return httpx.Response(403, json={'success': False, 'error': 'not_host'})

    transport = _http_transport(handler)
    result = transport.send('ABC123', 'start')
    assert result == {'success': False, 'error': 'not_host'}
    assert captured['path'] == '/api/rooms/ABC123/start'
    assert b'"peer_id"' in captured['body']


def test_store_transport_sees_new_versions(flask_app):
    code = sm.create_room('p0', 'Ann', {})['roomCode']
    loop = SyncLoop(StoreTransport(flask_app), code)
    assert loop.tick() is True
    assert loop.tick() is False
    sm.join_room(code, 'p1', 'Ben')
    assert loop.tick() is True
    assert [p['id'] for p in loop.room['players']] == ['p0', 'p1']
