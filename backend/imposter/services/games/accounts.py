"""Account store collaborator: identity lookup and XP / coin credits.

Only existing accounts are credited; rounds played under a guest name leave
no trace.
"""
from __future__ import annotations

from flask import current_app, has_request_context, request

from imposter import db
from imposter.models import Account

XP_PER_COIN_THRESHOLD = 50
COINS_PER_THRESHOLD = 10


def get_current_identity() -> str | None:
    if not has_request_context():
        return None
    username = (request.headers.get('X-Username') or '').strip()
    return username or None


def get_account(username: str) -> Account | None:
    if not username:
        return None
    return Account.query.filter_by(username=username).first()


def _credit_xp(account: Account, amount: int) -> None:
    old_xp = account.xp or 0
    account.xp = old_xp + amount
    crossed = account.xp // XP_PER_COIN_THRESHOLD - old_xp // XP_PER_COIN_THRESHOLD
    if crossed > 0:
        account.coins = (account.coins or 0) + crossed * COINS_PER_THRESHOLD


def credit_xp(username: str, amount: int) -> bool:
    """Add XP; every 50 XP threshold crossed also grants 10 coins."""
    account = get_account(username)
    if account is None or not amount:
        return False
    _credit_xp(account, int(amount))
    db.session.commit()
    return True


def credit_currency(username: str, amount: int) -> bool:
    account = get_account(username)
    if account is None or not amount:
        return False
    account.coins = (account.coins or 0) + int(amount)
    db.session.commit()
    return True


def record_round(results: list[tuple[str, int, bool]]) -> int:
    """Book one finished round: ``results`` is ``(username, points, won)`` per player.

    Positive points are also credited as XP. Returns the number of accounts touched.
    """
    touched = 0
    for username, points, won in results:
        account = get_account(username)
        if account is None:
            continue
        account.games_played = (account.games_played or 0) + 1
        account.total_points = (account.total_points or 0) + points
        if won:
            account.games_won = (account.games_won or 0) + 1
        if points > 0:
            _credit_xp(account, points)
        touched += 1
    if touched:
        db.session.commit()
        current_app.logger.info(f"[accounts] credited={touched}")
    return touched
