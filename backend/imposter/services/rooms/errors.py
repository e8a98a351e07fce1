"""Room error taxonomy.

Errors are raised inside room mutations and converted into result flags
(``{'success': False, 'error': code}``) at the service boundary, so callers
never see an exception for a domain failure.
"""


class RoomError(Exception):
    code = 'room_error'

    def __init__(self, message: str = ''):
        super().__init__(message or self.code)

    def to_result(self) -> dict:
        return {'success': False, 'error': self.code}


class RoomNotFound(RoomError):
    code = 'room_not_found'


class GameAlreadyFinished(RoomError):
    code = 'game_already_finished'


class NotHost(RoomError):
    code = 'not_host'


class InsufficientPlayers(RoomError):
    code = 'insufficient_players'


class StaleAccusedLookup(RoomError):
    code = 'stale_accused_lookup'


class InvalidPhase(RoomError):
    code = 'invalid_phase'


class NotInRoom(RoomError):
    code = 'not_in_room'


class NotYourTurn(RoomError):
    code = 'not_your_turn'


class InvalidTarget(RoomError):
    code = 'invalid_target'


class InvalidPayload(RoomError):
    code = 'invalid_payload'


class StaleWrite(RoomError):
    code = 'stale_write'


HTTP_STATUS = {
    RoomNotFound.code: 404,
    NotHost.code: 403,
    NotInRoom.code: 403,
    NotYourTurn.code: 403,
    StaleWrite.code: 409,
}


def http_status(code: str) -> int:
    return HTTP_STATUS.get(code, 400)
