"""Error kinds shared by the matchmaking core and the HTTP layer.

Callers branch on ``MatchmakingError.kind``; the message is for humans only.
"""
from enum import Enum


class ErrorKind(Enum):
    INSUFFICIENT_PRESENT_PLAYERS = 'insufficient_present_players'
    NO_VALID_MATCHUP = 'no_valid_matchup'
    MATCHUP_REPEATED = 'matchup_repeated'
    SUBMITTED_PLAYERS_NOT_PRESENT = 'submitted_players_not_present'
    MISSING_RATING_SNAPSHOT = 'missing_rating_snapshot'
    MISSING_RATING = 'missing_rating'
    BAD_TEAM_SHAPE = 'bad_team_shape'
    INTERNAL_ERROR = 'internal_error'
    GROUP_NOT_FOUND = 'group_not_found'
    PLAYER_NOT_FOUND = 'player_not_found'
    MATCH_NOT_FOUND = 'match_not_found'


_HTTP_STATUS = {
    ErrorKind.INSUFFICIENT_PRESENT_PLAYERS: 400,
    ErrorKind.NO_VALID_MATCHUP: 400,
    ErrorKind.MATCHUP_REPEATED: 400,
    ErrorKind.SUBMITTED_PLAYERS_NOT_PRESENT: 400,
    ErrorKind.MISSING_RATING_SNAPSHOT: 400,
    ErrorKind.MISSING_RATING: 400,
    ErrorKind.BAD_TEAM_SHAPE: 400,
    ErrorKind.INTERNAL_ERROR: 500,
    ErrorKind.GROUP_NOT_FOUND: 404,
    ErrorKind.PLAYER_NOT_FOUND: 404,
    ErrorKind.MATCH_NOT_FOUND: 404,
}


class MatchmakingError(Exception):
    """A locally detected failure with a closed, switchable kind."""

    def __init__(self, kind, message):
        super().__init__(message)
        self.kind = kind
        self.message = message

    @property
    def http_status(self):
        return _HTTP_STATUS.get(self.kind, 500)

    def to_dict(self):
        return {'error': self.message, 'code': self.kind.value}
