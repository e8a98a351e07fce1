from __future__ import annotations

import re

from flask import current_app

from . import store
from .document import find_player, now_ms
from .errors import InvalidPayload, NotInRoom, RoomError

BAD_WORDS = ['badword1', 'badword2', 'ass', 'shit', 'fuck']

_BAD_WORD_PATTERNS = [re.compile(r'\b' + re.escape(w) + r'\b', re.IGNORECASE) for w in BAD_WORDS]


def filter_bad_words(text: str) -> str:
    """Mask blocklisted words with asterisks of the same length.

    Only whole words are matched: "ass assassin" becomes "*** assassin".
    """
    if not text:
        return text
    out = text
    for pattern in _BAD_WORD_PATTERNS:
        out = pattern.sub(lambda m: '*' * len(m.group(0)), out)
    return out


def append_message(room: dict, peer_id: str, username: str, text: str, now: int, limit: int = 100) -> dict:
    message = {
        'id': f"{peer_id}_{now}",
        'username': username,
        'message': filter_bad_words(text),
        'original': text,
        'timestamp': now,
    }
    log = room.setdefault('chatMessages', [])
    log.append(message)
    if len(log) > limit:
        del log[:len(log) - limit]
    return message


def send_chat_message(code: str, peer_id: str, text: str, now: int | None = None) -> dict:
    now = now if now is not None else now_ms()
    limit = int(current_app.config.get('CHAT_HISTORY_LIMIT', 100))
    text = (text or '').strip()

    def _send(doc: dict) -> dict:
        if not text:
            raise InvalidPayload('empty message')
        player = find_player(doc, peer_id)
        if player is None:
            raise NotInRoom(peer_id)
        return append_message(doc, peer_id, player['username'], text, now, limit)

    try:
        room, message = store.mutate(code, _send, now=now)
    except RoomError as exc:
        return exc.to_result()
    return {'success': True, 'message': message, 'room': room}
