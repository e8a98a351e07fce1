"""Client-side sync loop.

A ``SyncLoop`` keeps a local copy of one room document current by polling a
``RoomTransport`` and handing every snapshot to its subscribers. Two
transports ship: ``StoreTransport`` reads the RoomStore in-process (bots,
tests, the CLI) and ``HttpTransport`` talks to the room HTTP API.

Errors never escape the loop. Read errors are logged, counted and retried with
exponential backoff capped at ``backoff_max_ms``; the first good read resets
the delay. A subscriber that raises is logged and the next subscriber still runs.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Callable

import httpx

logger = logging.getLogger(__name__)

Subscriber = Callable[[dict], None]


class RoomTransport:
    def fetch(self, room_code: str) -> dict | None:
        """Latest room document, or None if the room does not exist."""
        raise NotImplementedError

    def heartbeat(self, room_code: str, peer_id: str, username: str) -> None:
        raise NotImplementedError

    def leave(self, room_code: str, peer_id: str) -> dict:
        raise NotImplementedError


class StoreTransport(RoomTransport):
    """Reads through the RoomStore inside the given app's context."""

    def __init__(self, app):
        self.app = app

    def fetch(self, room_code: str) -> dict | None:
        from . import presence, store

        with self.app.app_context():
            if not store.exists(room_code):
                return None
            room, _ = presence.refresh(room_code)
            return room

    def heartbeat(self, room_code: str, peer_id: str, username: str) -> None:
        from . import presence

        with self.app.app_context():
            presence.heartbeat(room_code, peer_id, username)

    def leave(self, room_code: str, peer_id: str) -> dict:
        from . import state_machine

        with self.app.app_context():
            return state_machine.leave_room(room_code, peer_id)


class HttpTransport(RoomTransport):
    """Remote transport over the room HTTP API."""

    def __init__(self, base_url: str, peer_id: str | None = None, client: httpx.Client | None = None,
                 timeout: float = 10.0):
        self.peer_id = peer_id
        self.client = client or httpx.Client(base_url=base_url, timeout=httpx.Timeout(timeout, connect=5.0))

    def fetch(self, room_code: str) -> dict | None:
        params = {'peer_id': self.peer_id} if self.peer_id else None
        resp = self.client.get(f"/api/rooms/{room_code}", params=params)
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return resp.json()['room']

    def heartbeat(self, room_code: str, peer_id: str, username: str) -> None:
        resp = self.client.post(
            f"/api/rooms/{room_code}/heartbeat",
            json={'peer_id': peer_id, 'username': username},
        )
        resp.raise_for_status()

    def leave(self, room_code: str, peer_id: str) -> dict:
        return self.send(room_code, 'leave', peer_id=peer_id)

    def send(self, room_code: str, action: str, **payload) -> dict:
        """POST an intent, e.g. ``send(code, 'votes', target_id=...)``.

        Domain failures come back as ``{'success': False, 'error': code}``.
        """
        body = {'peer_id': self.peer_id}
        body.update(payload)
        resp = self.client.post(f"/api/rooms/{room_code}/{action}", json=body)
        if resp.status_code >= 500:
            resp.raise_for_status()
        return resp.json()

    def close(self) -> None:
        self.client.close()


class SyncLoop:
    def __init__(
        self,
        transport: RoomTransport,
        room_code: str,
        on_change: Subscriber | None = None,
        peer_id: str | None = None,
        username: str | None = None,
        poll_interval_ms: int = 500,
        heartbeat_interval_ms: int = 3000,
        backoff_max_ms: int = 8000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.transport = transport
        self.room_code = room_code
        self.peer_id = peer_id
        self.username = username
        self.poll_interval_ms = poll_interval_ms
        self.heartbeat_interval_ms = heartbeat_interval_ms
        self.backoff_max_ms = backoff_max_ms
        self.clock = clock

        self.room: dict | None = None
        self.version: int | None = None
        self.errors = 0
        self.missing = False
        self._subscribers: list[Subscriber] = []
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._last_heartbeat: float | None = None
        if on_change is not None:
            self.subscribe(on_change)

    def subscribe(self, fn: Subscriber) -> Callable[[], None]:
        self._subscribers.append(fn)

        def _unsubscribe():
            if fn in self._subscribers:
                self._subscribers.remove(fn)

        return _unsubscribe

    @property
    def delay_ms(self) -> int:
        if not self.errors:
            return self.poll_interval_ms
        return min(self.poll_interval_ms * (2 ** self.errors), self.backoff_max_ms)

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def tick(self) -> bool:
        """One poll. Subscribers see every successful read; returns True if the version moved."""
        try:
            room = self.transport.fetch(self.room_code)
        except Exception as exc:
            self.errors += 1
            logger.warning(f"[poll-error] room={self.room_code} errors={self.errors} retry_in={self.delay_ms}ms: {exc}")
            return False
        self.errors = 0
        if room is None:
            self.missing = True
            logger.info(f"[poll-missing] room={self.room_code}")
            self.stop()
            return False

        changed = room.get('version') != self.version
        self.room, self.version = room, room.get('version')
        for fn in list(self._subscribers):
            try:
                fn(room)
            except Exception as exc:
                logger.warning(f"[subscriber-error] room={self.room_code} version={self.version}: {exc}")
        return changed

    def maybe_heartbeat(self) -> bool:
        if not self.peer_id:
            return False
        now = self.clock()
        if self._last_heartbeat is not None and (now - self._last_heartbeat) * 1000 < self.heartbeat_interval_ms:
            return False
        self._last_heartbeat = now
        try:
            self.transport.heartbeat(self.room_code, self.peer_id, self.username or '')
        except Exception as exc:
            logger.warning(f"[heartbeat-error] room={self.room_code} peer={self.peer_id}: {exc}")
            return False
        return True

    def run(self) -> None:
        while not self._stop.is_set():
            self.maybe_heartbeat()
            self.tick()
            self._stop.wait(self.delay_ms / 1000.0)

    def start(self) -> 'SyncLoop':
        if self._thread is None or not self._thread.is_alive():
            self._stop.clear()
            self._thread = threading.Thread(target=self.run, name=f"sync-{self.room_code}", daemon=True)
            self._thread.start()
        return self

    def stop(self) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=1.0)

    def leave(self) -> dict:
        """Stop polling, then leave the room."""
        self.stop()
        return self.transport.leave(self.room_code, self.peer_id)
