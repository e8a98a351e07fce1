from imposter import db
import json
from imposter.services.rooms.document import now_ms


class Room(db.Model):
    """One row per room; the whole room document lives in ``document``.

    ``version`` is bumped on every committed write and is the compare-and-swap
    token used by the room store.
    """
    __tablename__ = 'room'
    id = db.Column(db.Integer, primary_key=True)
    room_code = db.Column(db.String(6), unique=True, nullable=False, index=True)
    version = db.Column(db.Integer, nullable=False, default=0)
    document = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.BigInteger, nullable=False, default=now_ms)
    updated_at = db.Column(db.BigInteger, nullable=False, default=now_ms, index=True)

    def load(self) -> dict:
        doc = json.loads(self.document)
        doc['version'] = self.version
        return doc


class Account(db.Model):
    __tablename__ = 'account'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    xp = db.Column(db.Integer, nullable=False, default=0)
    coins = db.Column(db.Integer, nullable=False, default=0)
    games_played = db.Column(db.Integer, nullable=False, default=0)
    games_won = db.Column(db.Integer, nullable=False, default=0)
    total_points = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self):
        return {
            'username': self.username,
            'xp': self.xp,
            'coins': self.coins,
            'games_played': self.games_played,
            'games_won': self.games_won,
            'total_points': self.total_points,
        }


class RoundRecord(db.Model):
    __tablename__ = 'round_record'
    id = db.Column(db.Integer, primary_key=True)
    room_code = db.Column(db.String(6), nullable=False, index=True)
    round_number = db.Column(db.Integer, nullable=False, default=1)
    secret_word = db.Column(db.String(128), nullable=True)
    accused_player_id = db.Column(db.String(64), nullable=True)
    was_imposter = db.Column(db.Boolean, nullable=False, default=False)
    points = db.Column(db.Text, nullable=True)  # JSON-encoded {player_id: points}
    completed_at = db.Column(db.BigInteger, nullable=False, default=now_ms)

    def to_dict(self):
        return {
            'id': self.id,
            'room_code': self.room_code,
            'round_number': self.round_number,
            'secret_word': self.secret_word,
            'accused_player_id': self.accused_player_id,
            'was_imposter': self.was_imposter,
            'points': json.loads(self.points) if self.points else {},
            'completed_at': self.completed_at,
        }
