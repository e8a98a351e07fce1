"""Phase deadlines.

Every deadline is recomputed from a stored ``*StartedAt`` timestamp, never
from a running countdown, so a tick that fires late (or a client that was
asleep) still sees the right remaining time.
"""
from __future__ import annotations

from flask import current_app

from .document import CLUE_STATES, ROLE, VOTING


def durations() -> dict:
    cfg = current_app.config
    return {
        'role': int(cfg.get('ROLE_REVEAL_DURATION_SEC', 5)),
        'voting': int(cfg.get('VOTING_DURATION_SEC', 30)),
        'discussion': int(cfg.get('DEFAULT_DISCUSSION_DURATION_SEC', 600)),
    }


def phase_deadline(room: dict, durs: dict) -> int | None:
    """Epoch-ms deadline of the current phase, or None if the phase is untimed."""
    data = room.get('gameData') or {}
    state = room.get('gameState')
    if state == ROLE:
        started = data.get('roleRevealStartedAt')
        return started + durs['role'] * 1000 if started else None
    if state in CLUE_STATES:
        started = data.get('cluePhaseStartedAt') or data.get('roundStartedAt')
        duration = data.get('discussionDuration') or durs['discussion']
        return started + int(duration) * 1000 if started else None
    if state == VOTING:
        started = data.get('votingStartedAt')
        return started + durs['voting'] * 1000 if started else None
    return None


def is_expired(room: dict, now: int, durs: dict) -> bool:
    deadline = phase_deadline(room, durs)
    return deadline is not None and now >= deadline


def remaining_seconds(room: dict, now: int, durs: dict) -> int | None:
    deadline = phase_deadline(room, durs)
    if deadline is None:
        return None
    return max(0, (deadline - now + 999) // 1000)
