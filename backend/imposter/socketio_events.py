from flask_socketio import join_room, leave_room, emit
from flask import current_app, request
from typing import Dict, Any

from imposter import socketio
from imposter.services.rooms import presence, store
from imposter.services.rooms.document import normalize_room_code, view_for
from imposter.services.rooms.errors import RoomError


_sid_to_ctx: Dict[str, Dict[str, Any]] = {}


def _get_sid() -> str:
    return request.sid  # type: ignore


def _channel(room_code: str) -> str:
    return f"room:{room_code}"


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(reason=None):
    """A closed transport marks the peer stale at once; the host fails over if needed."""
    ctx = _sid_to_ctx.pop(_get_sid(), None)
    if not ctx or not ctx.get('peer_id'):
        return
    try:
        presence.expire(ctx['room_code'], ctx['peer_id'])
    except RoomError as exc:
        current_app.logger.info(f"[disconnect] room={ctx['room_code']} peer={ctx['peer_id']} skipped={exc.code}")


def handle_subscribe(data):
    room_code = normalize_room_code((data or {}).get('room_code'))
    peer_id = (data or {}).get('peer_id')
    username = (data or {}).get('username')
    if not room_code:
        emit('error', {'error': 'invalid_payload', 'message': 'room_code is required'})
        return
    room = store.get(room_code)
    if room is None:
        emit('error', {'error': 'room_not_found', 'room_code': room_code})
        return
    join_room(_channel(room_code))
    _sid_to_ctx[_get_sid()] = {'room_code': room_code, 'peer_id': peer_id}
    if peer_id and username:
        room = presence.heartbeat(room_code, peer_id, username)
    emit('subscribed', {'room': _channel(room_code)})
    emit('room_update', {'roomCode': room_code, 'version': room['version'], 'room': view_for(room, peer_id)})


def handle_unsubscribe(data):
    room_code = normalize_room_code((data or {}).get('room_code'))
    if not room_code:
        emit('error', {'error': 'invalid_payload', 'message': 'room_code is required'})
        return
    leave_room(_channel(room_code))
    ctx = _sid_to_ctx.get(_get_sid())
    if ctx and ctx.get('room_code') == room_code:
        _sid_to_ctx.pop(_get_sid(), None)
    emit('unsubscribed', {'room': _channel(room_code)})


def handle_heartbeat(data):
    room_code = normalize_room_code((data or {}).get('room_code'))
    peer_id = (data or {}).get('peer_id')
    if not room_code or not peer_id:
        emit('error', {'error': 'invalid_payload', 'message': 'room_code and peer_id are required'})
        return
    try:
        room = presence.heartbeat(room_code, peer_id, (data or {}).get('username') or '')
    except RoomError as exc:
        emit('error', exc.to_result())
        return
    ctx = _sid_to_ctx.setdefault(_get_sid(), {'room_code': room_code})
    ctx['peer_id'] = peer_id
    emit('heartbeat_ack', {'roomCode': room_code, 'version': room['version']})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    handlers = {
        'connect': handle_connect,
        'disconnect': handle_disconnect,
        'subscribe': handle_subscribe,
        'unsubscribe': handle_unsubscribe,
        'heartbeat': handle_heartbeat,
        'ping': handle_ping,
    }
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        for event, handler in handlers.items():
            socketio.on_event(event, handler, namespace=namespace)
