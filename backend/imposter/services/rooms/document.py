"""Room document shape and helpers.

A room is a plain JSON-serializable dict (camelCase keys, as sent to clients).
Only ``set_state`` may change ``gameState`` so the phase graph is enforced in
one place.
"""
from __future__ import annotations

import copy
import random
import string
import time
import uuid

from .errors import InvalidPhase, InvalidPayload

LOBBY = 'lobby'
ROLE = 'role'
PLAYING = 'playing'  # legacy alias of clueing
CLUEING = 'clueing'
VOTING = 'voting'
ENDED = 'ended'

GAME_STATES = (LOBBY, ROLE, PLAYING, CLUEING, VOTING, ENDED)
CLUE_STATES = (PLAYING, CLUEING)
JOINABLE_STATES = (LOBBY, ROLE, PLAYING, CLUEING, VOTING)

TRANSITIONS = {
    LOBBY: (ROLE,),
    ROLE: (CLUEING,),
    PLAYING: (VOTING,),
    CLUEING: (VOTING,),
    VOTING: (ENDED,),
    ENDED: (LOBBY,),
}

ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits
ROOM_CODE_LENGTH = 6


def now_ms() -> int:
    return int(time.time() * 1000)


def generate_room_code(length: int = ROOM_CODE_LENGTH) -> str:
    return ''.join(random.choices(ROOM_CODE_ALPHABET, k=length))


def generate_peer_id() -> str:
    return f"p_{now_ms()}_{uuid.uuid4().hex[:9]}"


def normalize_room_code(code) -> str:
    return str(code or '').strip().upper()


def new_player(peer_id: str, username: str, now: int, ready: bool = True) -> dict:
    return {'id': peer_id, 'username': username, 'ready': ready, 'joinedAt': now}


def normalize_game_config(raw: dict | None, default_discussion: int = 600) -> dict:
    raw = raw or {}
    try:
        player_count = int(raw.get('playerCount', 4))
        imposter_count = int(raw.get('imposterCount', 1))
        discussion = int(raw.get('discussionDuration', default_discussion))
    except (TypeError, ValueError):
        raise InvalidPayload('gameConfig numbers must be integers')
    categories = raw.get('categories') or []
    if not isinstance(categories, list):
        raise InvalidPayload('categories must be a list')
    return {
        'playerCount': max(3, min(10, player_count)),
        'imposterCount': max(1, imposter_count),
        'difficulty': str(raw.get('difficulty') or 'easy'),
        'discussionDuration': max(10, discussion),
        'word': str(raw.get('word') or ''),
        'hint': str(raw.get('hint') or ''),
        'categories': [str(c) for c in categories],
    }


def new_room_document(code: str, peer_id: str, username: str, game_config: dict, now: int) -> dict:
    return {
        'roomCode': code,
        'version': 0,
        'host': peer_id,
        'hostUsername': username,
        'gameConfig': game_config,
        'players': [new_player(peer_id, username, now)],
        'playersLastSeen': {peer_id: now},
        'gameState': LOBBY,
        'gameData': None,
        'chatMessages': [],
        'roundNumber': 0,
        'createdAt': now,
        'updatedAt': now,
    }


def find_player(room: dict, peer_id: str) -> dict | None:
    for p in room.get('players') or []:
        if p.get('id') == peer_id:
            return p
    return None


def player_index(room: dict, peer_id: str) -> int:
    for idx, p in enumerate(room.get('players') or []):
        if p.get('id') == peer_id:
            return idx
    return -1


def player_ids(room: dict) -> list[str]:
    return [p['id'] for p in room.get('players') or []]


def is_host(room: dict, peer_id: str) -> bool:
    return bool(peer_id) and room.get('host') == peer_id


def set_state(room: dict, new_state: str) -> None:
    current = room.get('gameState')
    if new_state not in TRANSITIONS.get(current, ()):
        raise InvalidPhase(f'cannot move from {current} to {new_state}')
    room['gameState'] = new_state


def game_data(room: dict) -> dict:
    if room.get('gameData') is None:
        room['gameData'] = {}
    return room['gameData']


def view_for(room: dict, peer_id: str | None = None) -> dict:
    """The document as ``peer_id`` may see it.

    Until the round ends the secret word and hint are blanked in
    ``gameConfig`` (only the host sees them in the lobby), and every role
    assignment except the peer's own is cut down to its username.
    """
    state = room.get('gameState')
    if state == ENDED or (state == LOBBY and is_host(room, peer_id)):
        return room
    view = copy.deepcopy(room)
    config = view.get('gameConfig') or {}
    for key in ('word', 'hint'):
        if key in config:
            config[key] = ''
    assignments = (view.get('gameData') or {}).get('roleAssignments') or {}
    for pid, role in assignments.items():
        if pid != peer_id:
            assignments[pid] = {'username': role.get('username', '')}
    return view
