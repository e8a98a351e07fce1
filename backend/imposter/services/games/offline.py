"""Single-device ("pass the phone") game loop.

Everything lives in memory on one device: seats are list indices, votes are
cast seat by seat in order, and cumulative scores survive ``next_round``.
"""
from __future__ import annotations

import random
from dataclasses import dataclass, field

from . import accounts
from .scoring import RoundOutcome, build_outcome, get_policy, xp_awards
from .words import draw_word


@dataclass
class OfflinePlayer:
    id: int
    name: str


@dataclass
class OfflineGame:
    players: list[OfflinePlayer]
    imposter_count: int = 1
    categories: list[str] | None = None
    difficulty: str = 'easy'
    secret_word: str = ''
    secret_hint: str = ''
    imposter_indices: list[int] = field(default_factory=list)
    votes: dict[int, int] = field(default_factory=dict)
    vote_tally: list[int] = field(default_factory=list)
    player_scores: list[int] = field(default_factory=list)
    round_number: int = 0
    outcome: RoundOutcome | None = None
    rng: random.Random = field(default_factory=random.Random, repr=False)

    policy = get_policy('offline')

    @classmethod
    def from_names(cls, names: list[str], **kwargs) -> 'OfflineGame':
        players = [OfflinePlayer(id=i, name=n) for i, n in enumerate(names)]
        return cls(players=players, **kwargs)

    def __post_init__(self):
        if len(self.players) < 3:
            raise ValueError('offline game needs at least 3 players')
        if not self.player_scores:
            self.player_scores = [0] * len(self.players)

    def start_round(self, word: str | None = None, hint: str | None = None) -> None:
        if word:
            self.secret_word, self.secret_hint = word, hint or f"Starts with {word[0].upper()}"
        else:
            drawn = draw_word(self.categories, self.difficulty, rng=self.rng)
            self.secret_word, self.secret_hint = drawn['word'], drawn['hint']
        count = max(1, min(self.imposter_count, len(self.players) - 1))
        self.imposter_indices = sorted(self.rng.sample(range(len(self.players)), count))
        self.votes = {}
        self.vote_tally = [0] * len(self.players)
        self.outcome = None
        self.round_number += 1

    def role_for(self, seat: int) -> dict:
        imposter = seat in self.imposter_indices
        return {
            'name': self.players[seat].name,
            'isImposter': imposter,
            'word': '' if imposter else self.secret_word,
            'hint': self.secret_hint if imposter else '',
        }

    @property
    def current_voter(self) -> int | None:
        """Next seat due to vote, or None once everyone has voted."""
        seat = len(self.votes)
        return seat if seat < len(self.players) else None

    def cast_vote(self, target: int) -> None:
        seat = self.current_voter
        if seat is None:
            raise ValueError('all votes are in')
        if not 0 <= target < len(self.players):
            raise ValueError(f'no seat {target}')
        self.votes[seat] = target
        self.vote_tally[target] += 1

    def finish_vote(self) -> dict:
        """Score the round and credit XP to the named accounts that exist."""
        seats = list(range(len(self.players)))
        self.outcome = build_outcome(seats, self.imposter_indices, self.votes.values())
        earned = self.policy.points(self.outcome)
        for seat, pts in earned.items():
            self.player_scores[seat] += pts
        for seat, xp in xp_awards(self.outcome).items():
            accounts.credit_xp(self.players[seat].name, xp)
        return {
            'accused': self.outcome.accused_id,
            'civiliansWon': self.outcome.civilians_won,
            'pointsEarned': earned,
            'scores': list(self.player_scores),
            'secretWord': self.secret_word,
        }

    def next_round(self, word: str | None = None, hint: str | None = None) -> None:
        self.start_round(word, hint)
