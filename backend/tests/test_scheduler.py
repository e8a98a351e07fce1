from imposter.services.rooms import scheduler, state_machine as sm, store
from imposter.services.rooms.errors import RoomNotFound, StaleWrite

T0 = 1_700_000_000_000


def _round_in_role(n=3):
    code = sm.create_room('p0', 'P0', {'word': 'Lion', 'hint': 'Big cat'}, now=T0)['roomCode']
    for i in range(1, n):
        sm.join_room(code, f'p{i}', f'P{i}', now=T0 + i)
    sm.start_round(code, 'p0', now=T0 + 100)
    return code


def test_tick_advances_expired_role_reveal(flask_app):
    code = _round_in_role()
    room = scheduler.tick_room(flask_app, code, now=T0 + 100 + 5000)
    assert room['gameState'] == 'clueing'


def test_tick_survives_stale_write(flask_app, monkeypatch):
    code = _round_in_role()

    def contended(*args, **kwargs):
        raise StaleWrite(code)

    monkeypatch.setattr(store, 'mutate', contended)
    room = scheduler.tick_room(flask_app, code, now=T0 + 100 + 5000)
    assert room is not None
    assert room['gameState'] == 'role'


def test_tick_stops_when_room_vanishes_mid_tick(flask_app, monkeypatch):
    code = _round_in_role()

    def gone(*args, **kwargs):
        raise RoomNotFound(code)

    monkeypatch.setattr(store, 'mutate', gone)
    assert scheduler.tick_room(flask_app, code, now=T0 + 200) is None


def test_tick_on_missing_room(flask_app):
    assert scheduler.tick_room(flask_app, 'NOPE00') is None


def test_ticker_is_off_in_tests(flask_app):
    scheduler.schedule_room_ticker(flask_app, 'ABC123')
    assert 'ABC123' not in scheduler._tickers
