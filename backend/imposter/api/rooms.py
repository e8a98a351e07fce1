from flask import Blueprint, jsonify, request, current_app
import time

from imposter.services.rooms import chat, presence, scheduler, state_machine, store, timers
from imposter.services.rooms.document import ENDED, LOBBY, now_ms, view_for
from imposter.services.rooms.errors import NotInRoom, RoomError, RoomNotFound, http_status


rooms = Blueprint('rooms', __name__)

_last_controller_action: dict[str, float] = {}


def _body() -> dict:
    return request.get_json(silent=True) or {}


def _peer_id():
    return request.args.get('peer_id') or _body().get('peer_id')


def _respond(result: dict, status: int = 200):
    if not result.get('success'):
        return jsonify(result), http_status(result.get('error'))
    if result.get('room'):
        result = dict(result, room=view_for(result['room'], _peer_id()))
    return jsonify(result), status


def _debounced(action: str, room_code: str, peer_id) -> bool:
    """Drop repeated host-control presses inside CONTROLLER_DEBOUNCE_MS."""
    debounce_ms = int(current_app.config.get('CONTROLLER_DEBOUNCE_MS', 0))
    if debounce_ms <= 0:
        return False
    key = f"{action}:{room_code.upper()}:{peer_id}"
    now = time.time() * 1000.0
    for stale in [k for k, at in _last_controller_action.items() if now - at >= debounce_ms]:
        del _last_controller_action[stale]
    if now - _last_controller_action.get(key, 0) < debounce_ms:
        return True
    _last_controller_action[key] = now
    return False


def _kick_ticker(result: dict) -> None:
    room = result.get('room') if result.get('success') else None
    if room and room.get('gameState') not in (LOBBY, ENDED):
        scheduler.schedule_room_ticker(current_app._get_current_object(), room['roomCode'])


def _then_auto_advance(result: dict) -> dict:
    """After a player action, let completion checks fire right away."""
    if not result.get('success'):
        return result
    advanced = state_machine.auto_advance(result['room']['roomCode'])
    if advanced.get('success'):
        result['room'] = advanced['room']
    return result


@rooms.route('', methods=['POST'])
def create_room():
    data = _body()
    result = state_machine.create_room(data.get('peer_id'), data.get('username'), data.get('config'))
    if result.get('success'):
        scheduler.schedule_gc(current_app._get_current_object())
    return _respond(result, 201)


@rooms.route('/<string:room_code>', methods=['GET'])
def get_room(room_code):
    """Snapshot read. Each poll also refreshes presence and fires due timers."""
    peer_id = request.args.get('peer_id')
    try:
        presence.refresh(room_code)
    except RoomError as exc:
        return _respond(exc.to_result())
    result = state_machine.auto_advance(room_code)
    if not result.get('success'):
        return _respond(result)
    room = result['room']
    durs = timers.durations()
    payload = {
        'success': True,
        'room': view_for(room, peer_id),
        'durations': durs,
        'remainingSeconds': timers.remaining_seconds(room, now_ms(), durs),
    }
    if peer_id:
        payload['isHost'] = room.get('host') == peer_id
    return jsonify(payload)


@rooms.route('/<string:room_code>/join', methods=['POST'])
def join_room(room_code):
    data = _body()
    return _respond(state_machine.join_room(room_code, data.get('peer_id'), data.get('username')))


@rooms.route('/<string:room_code>/leave', methods=['POST'])
def leave_room(room_code):
    data = _body()
    result = state_machine.leave_room(room_code, data.get('peer_id'))
    return _respond(_then_auto_advance(result))


@rooms.route('/<string:room_code>/heartbeat', methods=['POST'])
def heartbeat(room_code):
    data = _body()
    peer_id = data.get('peer_id')
    if not peer_id:
        return jsonify({'success': False, 'error': 'invalid_payload'}), 400
    try:
        room = presence.heartbeat(room_code, peer_id, data.get('username') or '')
    except RoomError as exc:
        return _respond(exc.to_result())
    return jsonify({'success': True, 'version': room['version']})


@rooms.route('/<string:room_code>/ready', methods=['POST'])
def set_ready(room_code):
    data = _body()
    return _respond(state_machine.set_ready(room_code, data.get('peer_id'), data.get('ready', True)))


@rooms.route('/<string:room_code>/start', methods=['POST'])
def start_game(room_code):
    data = _body()
    peer_id = data.get('peer_id')
    if _debounced('start', room_code, peer_id):
        return jsonify({'success': False, 'error': 'debounced'}), 202
    result = state_machine.start_round(room_code, peer_id, data.get('word'), data.get('hint'))
    _kick_ticker(result)
    return _respond(result)


@rooms.route('/<string:room_code>/role', methods=['GET'])
def my_role(room_code):
    room = store.get(room_code)
    if room is None:
        return _respond(RoomNotFound(room_code).to_result())
    info = state_machine.get_my_role_info(room, request.args.get('peer_id'), request.args.get('username'))
    if info is None:
        return _respond(NotInRoom(request.args.get('peer_id')).to_result())
    return jsonify({'success': True, 'role': info})


@rooms.route('/<string:room_code>/advance', methods=['POST'])
def advance_from_role_reveal(room_code):
    data = _body()
    peer_id = data.get('peer_id')
    if _debounced('advance', room_code, peer_id):
        return jsonify({'success': False, 'error': 'debounced'}), 202
    return _respond(state_machine.advance_from_role_reveal(room_code, peer_id))


@rooms.route('/<string:room_code>/clues', methods=['POST'])
def submit_clue(room_code):
    data = _body()
    result = state_machine.submit_clue(room_code, data.get('peer_id'), data.get('clue'))
    return _respond(_then_auto_advance(result))


@rooms.route('/<string:room_code>/clues/advance', methods=['POST'])
def advance_clue_turn(room_code):
    data = _body()
    return _respond(state_machine.advance_clue_turn(room_code, data.get('peer_id')))


@rooms.route('/<string:room_code>/voting', methods=['POST'])
def start_voting(room_code):
    data = _body()
    return _respond(state_machine.start_voting(room_code, data.get('peer_id')))


@rooms.route('/<string:room_code>/skip', methods=['POST'])
def skip_discussion(room_code):
    data = _body()
    return _respond(state_machine.skip_discussion(room_code, data.get('peer_id')))


@rooms.route('/<string:room_code>/votes', methods=['POST'])
def submit_vote(room_code):
    data = _body()
    result = state_machine.submit_vote(room_code, data.get('peer_id'), data.get('target_id'))
    return _respond(_then_auto_advance(result))


@rooms.route('/<string:room_code>/tally', methods=['POST'])
def end_voting_and_tally(room_code):
    data = _body()
    return _respond(state_machine.end_voting_and_tally(room_code, data.get('peer_id')))


@rooms.route('/<string:room_code>/summary', methods=['GET'])
def reveal_summary(room_code):
    room = store.get(room_code)
    if room is None:
        return _respond(RoomNotFound(room_code).to_result())
    return _respond(state_machine.reveal_summary(room, request.args.get('peer_id')))


@rooms.route('/<string:room_code>/reset', methods=['POST'])
def reset_to_lobby(room_code):
    data = _body()
    return _respond(state_machine.reset_to_lobby(room_code, data.get('peer_id')))


@rooms.route('/<string:room_code>/chat', methods=['POST'])
def send_chat(room_code):
    data = _body()
    return _respond(chat.send_chat_message(room_code, data.get('peer_id'), data.get('message')), 201)
