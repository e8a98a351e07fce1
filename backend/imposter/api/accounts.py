from flask import Blueprint, jsonify, request
import json

from imposter.models import Account, Room, RoundRecord
from imposter.services.games.accounts import get_account, get_current_identity
from imposter.services.games.words import WORDS, draw_word
from imposter.services.rooms.document import normalize_room_code


accounts = Blueprint('accounts', __name__)


@accounts.route('/stats', methods=['GET'])
def stats():
    in_round = 0
    for (document,) in Room.query.with_entities(Room.document).all():
        if json.loads(document).get('gameState') not in ('lobby', 'ended'):
            in_round += 1
    return jsonify({
        'rooms': Room.query.count(),
        'roomsInRound': in_round,
        'roundsPlayed': RoundRecord.query.count(),
        'accounts': Account.query.count(),
    })


@accounts.route('/leaderboard', methods=['GET'])
def leaderboard():
    try:
        limit = max(1, min(int(request.args.get('limit', 10)), 100))
    except ValueError:
        limit = 10
    rows = (
        Account.query.order_by(Account.total_points.desc(), Account.username.asc())
        .limit(limit)
        .all()
    )
    return jsonify([a.to_dict() for a in rows])


@accounts.route('/accounts/me', methods=['GET'])
def my_account():
    username = get_current_identity()
    account = get_account(username) if username else None
    if account is None:
        return jsonify({'success': False, 'error': 'account_not_found'}), 404
    return jsonify(account.to_dict())


@accounts.route('/accounts/<string:username>', methods=['GET'])
def account_stats(username):
    account = get_account(username)
    if account is None:
        return jsonify({'success': False, 'error': 'account_not_found'}), 404
    return jsonify(account.to_dict())


@accounts.route('/rooms/<string:room_code>/history', methods=['GET'])
def room_history(room_code):
    records = (
        RoundRecord.query.filter_by(room_code=normalize_room_code(room_code))
        .order_by(RoundRecord.round_number.asc())
        .all()
    )
    return jsonify([r.to_dict() for r in records])


@accounts.route('/words/draw', methods=['GET'])
def draw():
    categories = [c for c in (request.args.get('categories') or '').split(',') if c]
    return jsonify(draw_word(categories, request.args.get('difficulty')))


@accounts.route('/words/categories', methods=['GET'])
def categories():
    return jsonify(sorted(WORDS))
