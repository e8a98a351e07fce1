from __future__ import annotations

import time
from typing import Set

from imposter import socketio

from .document import ENDED, LOBBY
from .errors import RoomError, RoomNotFound
from . import presence, state_machine, store

_tickers: Set[str] = set()


def tick_room(app, room_code: str, now: int | None = None) -> dict | None:
    """One server tick for a room: presence refresh, then phase auto-advance.

    Returns the latest document, or None once the room is gone. A failed
    write is logged and the last committed document returned, so the ticker
    keeps running.
    """
    with app.app_context():
        if not store.exists(room_code):
            return None
        try:
            presence.refresh(room_code, now=now)
            result = state_machine.auto_advance(room_code, now=now)
        except RoomNotFound:
            return None
        except RoomError as exc:
            app.logger.warning(f"[timer-error] room={room_code} error={exc.code}")
            return store.get(room_code)
        if not result.get('success'):
            app.logger.warning(f"[timer-error] room={room_code} error={result.get('error')}")
            if result.get('error') == RoomNotFound.code:
                return None
            return store.get(room_code)
        return result.get('room')


def schedule_room_ticker(app, room_code: str) -> None:
    """Start the background ticker for a room, once per room.

    - No-ops in TESTING mode unless ENABLE_SCHEDULER_IN_TESTS
    - Ticks every ROOM_TICK_SEC while the room is mid-round
    - Stops when the room returns to the lobby, ends, or is deleted
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return
    interval = float(app.config.get('ROOM_TICK_SEC', 0.5))
    if interval <= 0:
        return
    if room_code in _tickers:
        app.logger.info(f"[timer-skip] room={room_code} already scheduled")
        return
    _tickers.add(room_code)
    app.logger.info(f"[timer-set] room={room_code} interval={interval}s")

    def _worker(code: str):
        try:
            while True:
                time.sleep(interval)
                room = tick_room(app, code)
                if room is None or room.get('gameState') in (LOBBY, ENDED):
                    break
        finally:
            _tickers.discard(code)
            app.logger.info(f"[timer-stop] room={code}")

    socketio.start_background_task(_worker, room_code)


def schedule_gc(app) -> None:
    """Periodic room garbage collection."""
    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return
    if '*gc*' in _tickers:
        return
    _tickers.add('*gc*')
    interval = max(1, int(app.config.get('EMPTY_ROOM_TTL_SEC', 60)))

    def _worker():
        while True:
            time.sleep(interval)
            with app.app_context():
                store.purge_expired()

    socketio.start_background_task(_worker)
