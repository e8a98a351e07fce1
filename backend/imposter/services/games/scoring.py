"""Round scoring.

Two named policies share one interface: ``OnlineScoring`` is applied by the
room tally, ``OfflineScoring`` by the single-device game. Both take a
``RoundOutcome`` and return the points earned this round per player key
(peer-id online, seat index offline).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Hashable, Iterable


@dataclass
class RoundOutcome:
    player_ids: list
    imposter_ids: set
    tallies: dict
    accused_id: Hashable | None = None
    votes_received: dict = field(default_factory=dict)

    @property
    def civilians_won(self) -> bool:
        return self.accused_id is not None and self.accused_id in self.imposter_ids

    def is_imposter(self, pid) -> bool:
        return pid in self.imposter_ids


def tally_votes(player_ids: Iterable, targets: Iterable) -> dict:
    """Count votes per candidate. Every player starts at 0; unknown targets are ignored."""
    tallies = {pid: 0 for pid in player_ids}
    for target in targets:
        if target in tallies:
            tallies[target] += 1
    return tallies


def pick_accused(player_ids: list, tallies: dict):
    """Highest tally wins; ties go to the lowest join (seat) index."""
    accused = None
    best = -1
    for pid in player_ids:
        count = tallies.get(pid, 0)
        if count > best:
            accused, best = pid, count
    return accused


def build_outcome(player_ids: list, imposter_ids: Iterable, targets: Iterable) -> RoundOutcome:
    tallies = tally_votes(player_ids, targets)
    return RoundOutcome(
        player_ids=list(player_ids),
        imposter_ids=set(imposter_ids),
        tallies=tallies,
        accused_id=pick_accused(player_ids, tallies),
        votes_received=dict(tallies),
    )


class ScoringPolicy:
    name = 'base'

    def points(self, outcome: RoundOutcome) -> dict:
        raise NotImplementedError


class OnlineScoring(ScoringPolicy):
    """Civilians win: civilian +10, imposter -5.
    Imposter escapes: imposter +15, accused civilian -5, other civilians +2.
    """
    name = 'online'

    def points(self, outcome: RoundOutcome) -> dict:
        earned = {}
        for pid in outcome.player_ids:
            imposter = outcome.is_imposter(pid)
            if outcome.civilians_won:
                earned[pid] = -5 if imposter else 10
            elif imposter:
                earned[pid] = 15
            elif pid == outcome.accused_id:
                earned[pid] = -5
            else:
                earned[pid] = 2
        return earned


class OfflineScoring(ScoringPolicy):
    """Civilians not accused +1; civilians +2 more on a correct accusation.
    Imposters +3 on a wrong accusation, +1 more if they drew no votes.
    """
    name = 'offline'

    def points(self, outcome: RoundOutcome) -> dict:
        earned = {pid: 0 for pid in outcome.player_ids}
        for pid in outcome.player_ids:
            if outcome.is_imposter(pid):
                if not outcome.civilians_won:
                    earned[pid] += 3
                    if outcome.votes_received.get(pid, 0) == 0:
                        earned[pid] += 1
                continue
            if pid != outcome.accused_id:
                earned[pid] += 1
            if outcome.civilians_won:
                earned[pid] += 2
        return earned


CIVILIAN_WIN_XP = 5
IMPOSTER_WIN_XP = 10


def xp_awards(outcome: RoundOutcome) -> dict:
    """XP for the winning side: civilians +5 each, or imposters +10 each."""
    if outcome.civilians_won:
        return {pid: CIVILIAN_WIN_XP for pid in outcome.player_ids if not outcome.is_imposter(pid)}
    return {pid: IMPOSTER_WIN_XP for pid in outcome.player_ids if outcome.is_imposter(pid)}


POLICIES = {OnlineScoring.name: OnlineScoring(), OfflineScoring.name: OfflineScoring()}


def get_policy(name: str) -> ScoringPolicy:
    return POLICIES[name]
