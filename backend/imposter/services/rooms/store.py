"""RoomStore: durable keyed storage of one JSON document per room.

Writes are compare-and-swap on the ``room.version`` column: a mutation is
applied to a fresh copy of the document and committed only if nobody else
committed in between; otherwise it is re-applied to the newer copy. Within
this process a per-room lock serializes mutations so retries are only needed
when several processes share the database.
"""
from __future__ import annotations

import json
from threading import Lock, RLock
from typing import Callable

from flask import current_app
from sqlalchemy.exc import IntegrityError

from imposter import db, socketio
from imposter.models import Room
from .document import generate_room_code, normalize_room_code, now_ms, view_for
from .errors import RoomNotFound, StaleWrite

_locks_guard = Lock()
_locks: dict[str, RLock] = {}


def room_lock(code: str) -> RLock:
    with _locks_guard:
        lock = _locks.get(code)
        if lock is None:
            lock = _locks[code] = RLock()
        return lock


def _dump(doc: dict) -> str:
    body = {k: v for k, v in doc.items() if k != 'version'}
    return json.dumps(body, sort_keys=True)


def publish(doc: dict) -> None:
    """Push a committed snapshot to every subscriber of the room.

    The channel is shared, so the pushed copy carries no secrets; a peer reads
    its own role through the HTTP API.
    """
    code = doc['roomCode']
    socketio.emit(
        'room_update',
        {'roomCode': code, 'version': doc['version'], 'room': view_for(doc)},
        to=f"room:{code}",
        namespace='/ws',
    )


def get(code: str) -> dict | None:
    row = Room.query.filter_by(room_code=normalize_room_code(code)).first()
    return row.load() if row else None


def exists(code: str) -> bool:
    return Room.query.filter_by(room_code=normalize_room_code(code)).first() is not None


def unique_room_code(attempts: int = 20) -> str:
    for _ in range(attempts):
        code = generate_room_code()
        if not exists(code):
            return code
    raise StaleWrite('could not allocate a free room code')


def create(build: Callable[[str], dict], attempts: int = 5) -> dict:
    """Insert a new room. ``build(code)`` returns the initial document."""
    for _ in range(attempts):
        code = unique_room_code()
        doc = build(code)
        row = Room(
            room_code=code,
            version=1,
            document=_dump(doc),
            created_at=doc['createdAt'],
            updated_at=doc['updatedAt'],
        )
        db.session.add(row)
        try:
            db.session.commit()
        except IntegrityError:
            # Lost a race for the same code between the check and the insert.
            db.session.rollback()
            current_app.logger.info(f"[room-code-collision] room={code}")
            continue
        doc = row.load()
        publish(doc)
        return doc
    raise StaleWrite('could not allocate a free room code')


def mutate(code: str, fn: Callable[[dict], object], now: int | None = None) -> tuple[dict, object]:
    """Read-modify-write a room document with compare-and-swap.

    ``fn`` mutates the document in place and may return a value, which is
    passed back alongside the committed document. ``RoomError`` raised by ``fn``
    propagates without writing. A mutation that leaves the document unchanged
    is not written.
    """
    code = normalize_room_code(code)
    retries = int(current_app.config.get('STORE_CAS_RETRIES', 5))
    with room_lock(code):
        for attempt in range(max(1, retries)):
            row = Room.query.populate_existing().filter_by(room_code=code).first()
            if row is None:
                raise RoomNotFound(code)
            expected = row.version
            before = row.document
            doc = row.load()
            result = fn(doc)
            stamp = now if now is not None else now_ms()
            if _dump(doc) == before:
                return doc, result
            doc['updatedAt'] = stamp
            body = _dump(doc)
            updated = Room.query.filter_by(room_code=code, version=expected).update(
                {'document': body, 'version': expected + 1, 'updated_at': stamp},
                synchronize_session=False,
            )
            if updated == 1:
                db.session.commit()
                doc['version'] = expected + 1
                publish(doc)
                return doc, result
            db.session.rollback()
            current_app.logger.info(f"[cas-retry] room={code} expected_version={expected} attempt={attempt + 1}")
    raise StaleWrite(code)


def delete(code: str) -> bool:
    code = normalize_room_code(code)
    with room_lock(code):
        deleted = Room.query.filter_by(room_code=code).delete()
        db.session.commit()
    with _locks_guard:
        _locks.pop(code, None)
    return bool(deleted)


def purge_expired(now: int | None = None) -> list[str]:
    """Delete rooms untouched for ROOM_TTL_SEC, or empty for EMPTY_ROOM_TTL_SEC."""
    now = now if now is not None else now_ms()
    cfg = current_app.config
    ttl_ms = int(cfg.get('ROOM_TTL_SEC', 6 * 3600)) * 1000
    empty_ttl_ms = int(cfg.get('EMPTY_ROOM_TTL_SEC', 60)) * 1000

    removed = []
    for row in Room.query.filter(Room.updated_at <= now - empty_ttl_ms).all():
        expired = row.updated_at <= now - ttl_ms
        if expired or not json.loads(row.document).get('players'):
            removed.append(row.room_code)
    for code in removed:
        delete(code)
    if removed:
        current_app.logger.info(f"[room-gc] removed={','.join(removed)}")
    return removed
