"""Room state machine: phase transitions, roles, clues, votes and the tally.

Every public operation returns a result dict. Failures come back as
``{'success': False, 'error': code}``; a host-only operation called by anyone
but the current host returns ``error='not_host'`` and changes nothing.

Phase graph::

    lobby -> role -> clueing -> voting -> ended -> lobby
                     (playing is the legacy name for clueing)
"""
from __future__ import annotations

import json

from flask import current_app

from imposter import db
from imposter.models import RoundRecord
from imposter.services.games import accounts
from imposter.services.games.scoring import build_outcome, get_policy
from imposter.services.games.words import draw_word

from . import store, timers
from .document import (
    CLUE_STATES, CLUEING, ENDED, JOINABLE_STATES, LOBBY, ROLE, VOTING,
    find_player, game_data, generate_peer_id, is_host, new_player,
    new_room_document, normalize_game_config, now_ms, player_ids,
    player_index, set_state,
)
from .errors import (
    GameAlreadyFinished, InsufficientPlayers, InvalidPayload, InvalidPhase,
    InvalidTarget, NotHost, NotInRoom, NotYourTurn, RoomError,
    StaleAccusedLookup,
)

scoring = get_policy('online')


def _min_players() -> int:
    return int(current_app.config.get('MIN_PLAYERS', 3))


def _run(code: str, fn, now: int) -> dict:
    try:
        room, value = store.mutate(code, fn, now=now)
    except RoomError as exc:
        return exc.to_result()
    result = {'success': True, 'room': room}
    if isinstance(value, dict):
        result.update(value)
    return result


def _require_host(room: dict, peer_id: str) -> None:
    if not is_host(room, peer_id):
        raise NotHost(peer_id)


def _require_player(room: dict, peer_id: str) -> dict:
    player = find_player(room, peer_id)
    if player is None:
        raise NotInRoom(peer_id)
    return player


def _fallback_hint(word: str) -> str:
    return f"Starts with {word[:1].upper()}" if word else '?'


# ---- Lobby ----

def create_room(peer_id: str | None, username: str, config: dict | None = None, now: int | None = None) -> dict:
    now = now if now is not None else now_ms()
    username = (username or '').strip()
    if not username:
        return InvalidPayload('username is required').to_result()
    peer_id = peer_id or generate_peer_id()
    default_discussion = int(current_app.config.get('DEFAULT_DISCUSSION_DURATION_SEC', 600))
    try:
        game_config = normalize_game_config(config, default_discussion)
        if not game_config['word']:
            drawn = draw_word(game_config['categories'], game_config['difficulty'])
            game_config['word'], game_config['hint'] = drawn['word'], drawn['hint']
        game_config['hint'] = game_config['hint'] or _fallback_hint(game_config['word'])
        room = store.create(lambda code: new_room_document(code, peer_id, username, game_config, now))
    except RoomError as exc:
        return exc.to_result()
    current_app.logger.info(f"[room-create] room={room['roomCode']} host={peer_id}")
    return {'success': True, 'roomCode': room['roomCode'], 'peerId': peer_id, 'room': room}


def join_room(code: str, peer_id: str, username: str, now: int | None = None) -> dict:
    now = now if now is not None else now_ms()
    username = (username or '').strip()

    def _join(doc: dict) -> None:
        if not peer_id or not username:
            raise InvalidPayload('peer_id and username are required')
        if doc.get('gameState') not in JOINABLE_STATES:
            raise GameAlreadyFinished(doc.get('roomCode'))
        if find_player(doc, peer_id) is None:
            doc['players'].append(new_player(peer_id, username, now))
        doc.setdefault('playersLastSeen', {})[peer_id] = now

    return _run(code, _join, now)


def set_ready(code: str, peer_id: str, ready: bool, now: int | None = None) -> dict:
    now = now if now is not None else now_ms()

    def _ready(doc: dict) -> None:
        _require_player(doc, peer_id)['ready'] = bool(ready)

    return _run(code, _ready, now)


def leave_room(code: str, peer_id: str, now: int | None = None) -> dict:
    """Remove a player; the join-order successor inherits the host seat.

    A mid-round leave keeps the clue turn pointing at the next player and drops
    the leaver's vote, so completion checks count only who is still here.
    """
    now = now if now is not None else now_ms()

    def _leave(doc: dict) -> dict:
        idx = player_index(doc, peer_id)
        if idx < 0:
            raise NotInRoom(peer_id)
        doc['players'].pop(idx)
        (doc.get('playersLastSeen') or {}).pop(peer_id, None)

        data = doc.get('gameData') or {}
        if doc.get('gameState') in CLUE_STATES and idx < int(data.get('currentClueTurn') or 0):
            data['currentClueTurn'] = int(data['currentClueTurn']) - 1
        if doc.get('gameState') == VOTING:
            (data.get('votes') or {}).pop(peer_id, None)

        if doc.get('host') == peer_id and doc['players']:
            doc['host'] = doc['players'][0]['id']
            doc['hostUsername'] = doc['players'][0]['username']
        return {'newHost': doc.get('host')}

    result = _run(code, _leave, now)
    if result['success']:
        current_app.logger.info(f"[leave] room={result['room']['roomCode']} player={peer_id} host={result['newHost']}")
    return result


# ---- Round start and roles ----

def assign_roles(players: list[dict], imposter_count: int, word: str, hint: str) -> dict:
    """Online role policy: the first N players in join order are imposters."""
    n = max(1, min(int(imposter_count), len(players) - 1))
    assignments = {}
    for idx, p in enumerate(players):
        imposter = idx < n
        assignments[p['id']] = {
            'username': p['username'],
            'isImposter': imposter,
            'word': '' if imposter else word,
            'hint': (hint or _fallback_hint(word)) if imposter else '',
        }
    return assignments


def _start_locked(room: dict, now: int, word: str | None, hint: str | None) -> None:
    if room.get('gameState') != LOBBY:
        raise InvalidPhase(room.get('gameState'))
    players = room.get('players') or []
    if len(players) < _min_players():
        raise InsufficientPlayers(f'{len(players)} < {_min_players()}')

    cfg = room['gameConfig']
    if word:
        cfg['word'], cfg['hint'] = word, hint or _fallback_hint(word)
    elif room.get('roundNumber'):
        drawn = draw_word(cfg.get('categories'), cfg.get('difficulty'))
        cfg['word'], cfg['hint'] = drawn['word'], drawn['hint']
    cfg['imposterCount'] = max(1, min(int(cfg.get('imposterCount') or 1), len(players) - 1))

    set_state(room, ROLE)
    room['roundNumber'] = int(room.get('roundNumber') or 0) + 1
    room['gameData'] = {
        'roundStartedAt': now,
        'roleRevealStartedAt': now,
        'currentClueTurn': 0,
        'clues': {},
        'votes': {},
        'roleAssignments': {},
        'discussionDuration': int(cfg.get('discussionDuration') or 600),
    }


def _broadcast_locked(room: dict, assignments: dict) -> None:
    if room.get('gameState') not in (ROLE,) + CLUE_STATES:
        raise InvalidPhase(room.get('gameState'))
    table = {}
    for pid, assignment in assignments.items():
        player = find_player(room, pid)
        if player is None:
            continue
        entry = dict(assignment)
        entry['username'] = entry.get('username') or player['username']
        table[pid] = entry
    game_data(room)['roleAssignments'] = table


def start_game(code: str, peer_id: str, word: str | None = None, hint: str | None = None, now: int | None = None) -> dict:
    now = now if now is not None else now_ms()

    def _start(doc: dict) -> None:
        _require_host(doc, peer_id)
        _start_locked(doc, now, word, hint)

    return _run(code, _start, now)


def broadcast_roles(code: str, peer_id: str, assignments: dict, now: int | None = None) -> dict:
    now = now if now is not None else now_ms()

    def _broadcast(doc: dict) -> None:
        _require_host(doc, peer_id)
        _broadcast_locked(doc, assignments)

    return _run(code, _broadcast, now)


def start_round(code: str, peer_id: str, word: str | None = None, hint: str | None = None, now: int | None = None) -> dict:
    """Start the game and publish the role table in a single write."""
    now = now if now is not None else now_ms()

    def _start(doc: dict) -> None:
        _require_host(doc, peer_id)
        _start_locked(doc, now, word, hint)
        cfg = doc['gameConfig']
        _broadcast_locked(doc, assign_roles(doc['players'], cfg['imposterCount'], cfg['word'], cfg['hint']))

    result = _run(code, _start, now)
    if result['success']:
        room = result['room']
        current_app.logger.info(f"[start] room={room['roomCode']} round={room['roundNumber']} players={len(room['players'])}")
    return result


def get_my_role_info(room: dict | str, peer_id: str, username: str | None = None) -> dict | None:
    """Role lookup by peer-id, falling back to username for reconnected clients.

    ``room`` is a snapshot or a room code.
    """
    if isinstance(room, str):
        room = store.get(room) or {}
    table =(room.get('gameData') or {}).get('roleAssignments') or {}
    if peer_id in table:
        return table[peer_id]
    if username:
        for entry in table.values():
            if entry.get('username') == username:
                return entry
    return None


def advance_from_role_reveal(code: str, peer_id: str, now: int | None = None) -> dict:
    now = now if now is not None else now_ms()

    def _advance(doc: dict) -> None:
        _require_host(doc, peer_id)
        _enter_clueing(doc, now)

    return _run(code, _advance, now)


def _enter_clueing(room: dict, now: int) -> None:
    set_state(room, CLUEING)
    game_data(room)['cluePhaseStartedAt'] = now


# ---- Clues ----

def submit_clue(code: str, peer_id: str, text: str, now: int | None = None) -> dict:
    now = now if now is not None else now_ms()
    text = (text or '').strip()

    def _clue(doc: dict) -> None:
        if doc.get('gameState') not in CLUE_STATES:
            raise InvalidPhase(doc.get('gameState'))
        player = _require_player(doc, peer_id)
        if not text:
            raise InvalidPayload('empty clue')
        data = game_data(doc)
        turn = int(data.get('currentClueTurn') or 0)
        players = doc['players']
        if turn >= len(players) or players[turn]['id'] != peer_id:
            raise NotYourTurn(peer_id)
        data.setdefault('clues', {})[peer_id] = {
            'username': player['username'],
            'clue': text,
            'submittedAt': now,
        }

    return _run(code, _clue, now)


def _advance_clue_locked(room: dict, now: int) -> None:
    data = game_data(room)
    turn = int(data.get('currentClueTurn') or 0) + 1
    data['currentClueTurn'] = turn
    if turn >= len(room.get('players') or []):
        _start_voting_locked(room, now)


def advance_clue_turn(code: str, peer_id: str, now: int | None = None) -> dict:
    now = now if now is not None else now_ms()

    def _advance(doc: dict) -> None:
        _require_host(doc, peer_id)
        if doc.get('gameState') not in CLUE_STATES:
            raise InvalidPhase(doc.get('gameState'))
        _advance_clue_locked(doc, now)

    return _run(code, _advance, now)


# ---- Voting ----

def _start_voting_locked(room: dict, now: int) -> None:
    set_state(room, VOTING)
    data = game_data(room)
    data['votes'] = {}
    data['votingStartedAt'] = now


def start_voting(code: str, peer_id: str, now: int | None = None) -> dict:
    now = now if now is not None else now_ms()

    def _voting(doc: dict) -> None:
        _require_host(doc, peer_id)
        _start_voting_locked(doc, now)

    return _run(code, _voting, now)


def skip_discussion(code: str, peer_id: str, now: int | None = None) -> dict:
    return start_voting(code, peer_id, now=now)


def submit_vote(code: str, peer_id: str, target_id: str, now: int | None = None) -> dict:
    now = now if now is not None else now_ms()

    def _vote(doc: dict) -> None:
        if doc.get('gameState') != VOTING:
            raise InvalidPhase(doc.get('gameState'))
        voter = _require_player(doc, peer_id)
        if find_player(doc, target_id) is None:
            raise InvalidTarget(target_id)
        game_data(doc).setdefault('votes', {})[peer_id] = {
            'username': voter['username'],
            'targetId': target_id,
            'votedAt': now,
        }

    return _run(code, _vote, now)


def all_votes_cast(room: dict) -> bool:
    ids = set(player_ids(room))
    votes = (room.get('gameData') or {}).get('votes') or {}
    return bool(ids) and len(ids.intersection(votes)) >= len(ids)


def _tally_locked(room: dict, now: int) -> dict:
    set_state(room, ENDED)
    data = game_data(room)
    ids = player_ids(room)
    votes = data.get('votes') or {}
    roles = data.get('roleAssignments') or {}

    targets = [v.get('targetId') for voter, v in votes.items() if voter in ids]
    imposters = {pid for pid, a in roles.items() if a.get('isImposter')}
    outcome = build_outcome(ids, imposters, targets)
    points = scoring.points(outcome)

    accused = outcome.accused_id
    accused_role = None
    if accused is not None:
        accused_role = 'imposter' if accused in imposters else 'civilian'

    data.update({
        'tallies': outcome.tallies,
        'accusedPlayerId': accused,
        'accusedRole': accused_role,
        'wasImposter': outcome.civilians_won,
        'pointsEarned': points,
        'secretWord': room['gameConfig'].get('word'),
        'talliedAt': now,
    })
    return {
        'tallies': outcome.tallies,
        'accused': accused,
        'wasImposter': outcome.civilians_won,
        'pointsEarned': points,
    }


def _record_round(room: dict) -> None:
    data = room.get('gameData') or {}
    points = data.get('pointsEarned') or {}
    roles = data.get('roleAssignments') or {}
    civilians_won = bool(data.get('wasImposter'))
    record = RoundRecord(
        room_code=room['roomCode'],
        round_number=int(room.get('roundNumber') or 1),
        secret_word=data.get('secretWord'),
        accused_player_id=data.get('accusedPlayerId'),
        was_imposter=civilians_won,
        points=json.dumps(points),
    )
    db.session.add(record)
    db.session.commit()

    results = []
    for p in room.get('players') or []:
        imposter = bool((roles.get(p['id']) or {}).get('isImposter'))
        won = civilians_won != imposter
        results.append((p['username'], int(points.get(p['id'], 0)), won))
    accounts.record_round(results)
    current_app.logger.info(
        f"[tally] room={room['roomCode']} round={record.round_number} accused={record.accused_player_id} civilians_won={civilians_won}"
    )


def end_voting_and_tally(code: str, peer_id: str, now: int | None = None) -> dict:
    now = now if now is not None else now_ms()

    def _tally(doc: dict) -> dict:
        _require_host(doc, peer_id)
        return _tally_locked(doc, now)

    result = _run(code, _tally, now)
    if result['success']:
        _record_round(result['room'])
    return result


# ---- Round end ----

def reset_to_lobby(code: str, peer_id: str, now: int | None = None) -> dict:
    now = now if now is not None else now_ms()

    def _reset(doc: dict) -> None:
        _require_host(doc, peer_id)
        set_state(doc, LOBBY)
        doc['gameData'] = None
        doc['chatMessages'] = []
        for p in doc['players']:
            p['ready'] = False

    return _run(code, _reset, now)


def reveal_summary(room: dict, peer_id: str | None = None) -> dict:
    """Ended-round view. Refuses rather than guessing when the data is incomplete."""
    if room.get('gameState') != ENDED:
        return InvalidPhase(room.get('gameState')).to_result()
    data = room.get('gameData') or {}
    accused_id = data.get('accusedPlayerId')
    points = data.get('pointsEarned')
    if not accused_id or points is None:
        return StaleAccusedLookup('round has no tally').to_result()
    accused = find_player(room, accused_id)
    if accused is None:
        return StaleAccusedLookup(accused_id).to_result()
    return {
        'success': True,
        'accused': {'id': accused['id'], 'username': accused['username']},
        'accusedRole': data.get('accusedRole'),
        'wasImposter': bool(data.get('wasImposter')),
        'secretWord': data.get('secretWord') or 'UNKNOWN',
        'myPoints': points.get(peer_id, 0) if peer_id else None,
        'pointsEarned': points,
        'tallies': data.get('tallies') or {},
    }


# ---- Server-driven progress ----

def _auto_advance_locked(room: dict, now: int, durs: dict) -> dict:
    state = room.get('gameState')
    if not room.get('players'):
        return {}
    if state == ROLE and timers.is_expired(room, now, durs):
        _enter_clueing(room, now)
        return {'advanced': CLUEING}
    if state in CLUE_STATES:
        data = game_data(room)
        players = room['players']
        turn = int(data.get('currentClueTurn') or 0)
        clues = data.get('clues') or {}
        while turn < len(players) and players[turn]['id'] in clues:
            turn += 1
        if turn != int(data.get('currentClueTurn') or 0):
            data['currentClueTurn'] = turn
        if turn >= len(players) or timers.is_expired(room, now, durs):
            _start_voting_locked(room, now)
            return {'advanced': VOTING}
        return {}
    if state == VOTING and (all_votes_cast(room) or timers.is_expired(room, now, durs)):
        tally = _tally_locked(room, now)
        tally['advanced'] = ENDED
        return tally
    return {}


def auto_advance(code: str, now: int | None = None) -> dict:
    """Fire whatever the current phase is due for: expiry or completion.

    Runs with the host's authority on the server, so it is never duplicated
    by clients.
    """
    now = now if now is not None else now_ms()
    durs = timers.durations()
    result = _run(code, lambda doc: _auto_advance_locked(doc, now, durs), now)
    if result['success'] and result.get('advanced'):
        current_app.logger.info(f"[timer-fire] room={result['room']['roomCode']} advanced={result['advanced']}")
        if result['advanced'] == ENDED:
            _record_round(result['room'])
    return result
