from __future__ import annotations

from flask import current_app

from . import store
from .document import ENDED, find_player, new_player, now_ms


def _timeout_ms() -> int:
    return int(current_app.config.get('PRESENCE_TIMEOUT_MS', 15000))


def is_active(room: dict, peer_id: str, now: int, timeout_ms: int = 15000) -> bool:
    last = (room.get('playersLastSeen') or {}).get(peer_id) or 0
    return (now - last) <= timeout_ms


def active_players(room: dict, now: int, timeout_ms: int = 15000) -> list[dict]:
    return [p for p in room.get('players') or [] if is_active(room, p['id'], now, timeout_ms)]


def failover_host(room: dict, now: int, timeout_ms: int = 15000) -> bool:
    """Promote the earliest-joined active player if the host has gone quiet.

    Returns True when the host changed. With no active player the host is
    left alone.
    """
    host = room.get('host')
    if host and is_active(room, host, now, timeout_ms) and find_player(room, host):
        return False
    candidates = [p for p in active_players(room, now, timeout_ms) if p['id'] != host]
    if not candidates:
        return False
    room['host'] = candidates[0]['id']
    room['hostUsername'] = candidates[0]['username']
    return True


def touch(room: dict, peer_id: str, username: str, now: int) -> None:
    """Stamp the peer as seen. A named stranger is added as a player; a nameless one is only stamped."""
    room.setdefault('playersLastSeen', {})[peer_id] = now
    username = (username or '').strip()
    if username and room.get('gameState') != ENDED and not find_player(room, peer_id):
        room.setdefault('players', []).append(new_player(peer_id, username, now))


def heartbeat(code: str, peer_id: str, username: str, now: int | None = None) -> dict:
    """Record a heartbeat, merging into ``playersLastSeen``."""
    now = now if now is not None else now_ms()
    room, _ = store.mutate(code, lambda doc: touch(doc, peer_id, username, now), now=now)
    return room


def refresh(code: str, now: int | None = None) -> tuple[dict, bool]:
    """Recompute liveness and fail the host over if needed.

    Writes only when the host actually changes.
    """
    now = now if now is not None else now_ms()
    timeout_ms = _timeout_ms()
    room, changed = store.mutate(code, lambda doc: failover_host(doc, now, timeout_ms), now=now)
    if changed:
        current_app.logger.info(f"[host-failover] room={room['roomCode']} host={room['host']}")
    return room, changed


def expire(code: str, peer_id: str, now: int | None = None) -> tuple[dict, bool]:
    """Connection-level liveness: the peer's transport closed."""
    now = now if now is not None else now_ms()
    timeout_ms = _timeout_ms()

    def _expire(doc: dict) -> bool:
        if peer_id in (doc.get('playersLastSeen') or {}):
            doc['playersLastSeen'][peer_id] = 0
        return failover_host(doc, now, timeout_ms)

    room, changed = store.mutate(code, _expire, now=now)
    if changed:
        current_app.logger.info(f"[host-failover] room={room['roomCode']} host={room['host']} reason=disconnect")
    return room, changed
