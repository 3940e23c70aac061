"""Payload parsing for group, player and score requests.

Every ``parse_*`` helper returns ``(value, error)``; exactly one is None.
Player mutations come back as one of the tagged variants below.
"""
import math
import re
import uuid
from dataclasses import dataclass

from dinkers.services.rating import round3

MIN_SCORE = 0
MAX_SCORE = 99
MIN_RATING = 0.0
MAX_RATING = 8.0
NAME_MAX_LEN = 80
GROUP_NAME_MIN_LEN = 2
SLUG_MIN_LEN = 2
SLUG_MAX_LEN = 80
PIN_MIN_LEN = 4
PIN_MAX_LEN = 32

_SLUG_RE = re.compile(r'^[a-z0-9-]+$')


@dataclass(frozen=True)
class AddPlayer:
    name: str
    rating: float
    action: str = 'add'


@dataclass(frozen=True)
class PresenceUpdate:
    player_id: str
    is_present: bool


@dataclass(frozen=True)
class SetPresence:
    updates: tuple
    action: str = 'presence'


@dataclass(frozen=True)
class UpdatePlayer:
    player_id: str
    name: str = None
    rating: float = None
    action: str = 'update'


@dataclass(frozen=True)
class CreateGroup:
    name: str
    pin: str
    slug: str = None


@dataclass(frozen=True)
class ScoreSubmission:
    player_ids: tuple
    team_a: tuple
    team_b: tuple
    score_a: int
    score_b: int


@dataclass(frozen=True)
class ScoreEdit:
    match_id: str
    score_a: int
    score_b: int


def _parse_uuid(raw_value):
    if not isinstance(raw_value, str):
        return None
    try:
        return str(uuid.UUID(raw_value.strip()))
    except ValueError:
        return None


def _parse_uuid_list(raw_ids, length):
    if not isinstance(raw_ids, list) or len(raw_ids) != length:
        return None
    parsed = [_parse_uuid(raw) for raw in raw_ids]
    if any(player_id is None for player_id in parsed):
        return None
    return parsed


def _parse_name(raw_value, min_len=1, max_len=NAME_MAX_LEN):
    if not isinstance(raw_value, str):
        return None
    name = raw_value.strip()
    if len(name) < min_len or len(name) > max_len:
        return None
    return name


def _parse_rating(raw_value):
    if isinstance(raw_value, bool) or not isinstance(raw_value, (int, float)):
        return None
    value = float(raw_value)
    if not math.isfinite(value) or value < MIN_RATING or value > MAX_RATING:
        return None
    return round3(value)


def _parse_score(raw_value):
    if isinstance(raw_value, bool):
        return None
    if isinstance(raw_value, float) and raw_value.is_integer():
        raw_value = int(raw_value)
    if not isinstance(raw_value, int):
        return None
    if raw_value < MIN_SCORE or raw_value > MAX_SCORE:
        return None
    return raw_value


def _parse_scores(data):
    score_a = _parse_score(data.get('score_a'))
    score_b = _parse_score(data.get('score_b'))
    if score_a is None or score_b is None:
        return None, f'Scores must be whole numbers between {MIN_SCORE} and {MAX_SCORE}'
    return (score_a, score_b), None


def parse_player_mutation(data):
    if not isinstance(data, dict):
        return None, 'Invalid JSON payload'
    action = data.get('action')

    if action == 'add':
        name = _parse_name(data.get('name'))
        if name is None:
            return None, f'Name must be 1-{NAME_MAX_LEN} characters'
        rating = _parse_rating(data.get('rating'))
        if rating is None:
            return None, f'Rating must be between {MIN_RATING:g} and {MAX_RATING:g}'
        return AddPlayer(name=name, rating=rating), None

    if action == 'presence':
        raw_updates = data.get('updates')
        if not isinstance(raw_updates, list):
            return None, 'Presence updates must be a list'
        updates = []
        for raw in raw_updates:
            if not isinstance(raw, dict):
                return None, 'Invalid presence update'
            player_id = _parse_uuid(raw.get('player_id'))
            is_present = raw.get('is_present')
            if player_id is None or not isinstance(is_present, bool):
                return None, 'Invalid presence update'
            updates.append(PresenceUpdate(player_id=player_id, is_present=is_present))
        return SetPresence(updates=tuple(updates)), None

    if action == 'update':
        player_id = _parse_uuid(data.get('player_id'))
        if player_id is None:
            return None, 'Valid player_id required'
        name = None
        if data.get('name') is not None:
            name = _parse_name(data.get('name'))
            if name is None:
                return None, f'Name must be 1-{NAME_MAX_LEN} characters'
        rating = None
        if data.get('rating') is not None:
            rating = _parse_rating(data.get('rating'))
            if rating is None:
                return None, f'Rating must be between {MIN_RATING:g} and {MAX_RATING:g}'
        return UpdatePlayer(player_id=player_id, name=name, rating=rating), None

    return None, 'Unknown player action'


def parse_create_group(data):
    if not isinstance(data, dict):
        return None, 'Invalid JSON payload'
    name = _parse_name(data.get('name'), min_len=GROUP_NAME_MIN_LEN)
    if name is None:
        return None, f'Group name must be {GROUP_NAME_MIN_LEN}-{NAME_MAX_LEN} characters'

    slug = data.get('slug')
    if slug is not None:
        if (
            not isinstance(slug, str)
            or not SLUG_MIN_LEN <= len(slug) <= SLUG_MAX_LEN
            or not _SLUG_RE.match(slug)
        ):
            return None, 'Slug may only contain lowercase letters, numbers and dashes'

    pin, error = parse_pin(data)
    if error:
        return None, error
    return CreateGroup(name=name, pin=pin, slug=slug), None


def parse_pin(data):
    if not isinstance(data, dict):
        return None, 'Invalid JSON payload'
    pin = data.get('pin')
    if not isinstance(pin, str) or not PIN_MIN_LEN <= len(pin) <= PIN_MAX_LEN:
        return None, f'PIN must be {PIN_MIN_LEN}-{PIN_MAX_LEN} characters'
    return pin, None


def validate_match_shape(player_ids, team_a, team_b):
    """Error text when the teams are not a 2+2 split of four unique players."""
    all_players = set(player_ids)
    team_players = list(team_a) + list(team_b)
    if len(all_players) != 4:
        return 'player_ids must include exactly 4 unique players'
    if len(set(team_players)) != 4:
        return 'Teams must contain 4 unique players'
    if set(team_players) != all_players:
        return 'Teams must be a split of player_ids'
    return None


def parse_score_submission(data):
    if not isinstance(data, dict):
        return None, 'Invalid JSON payload'
    player_ids = _parse_uuid_list(data.get('player_ids'), 4)
    team_a = _parse_uuid_list(data.get('team_a'), 2)
    team_b = _parse_uuid_list(data.get('team_b'), 2)
    if player_ids is None or team_a is None or team_b is None:
        return None, 'player_ids needs 4 player ids and each team needs 2'

    shape_error = validate_match_shape(player_ids, team_a, team_b)
    if shape_error:
        return None, shape_error

    scores, error = _parse_scores(data)
    if error:
        return None, error
    return ScoreSubmission(
        player_ids=tuple(player_ids),
        team_a=tuple(team_a),
        team_b=tuple(team_b),
        score_a=scores[0],
        score_b=scores[1],
    ), None


def parse_score_edit(data):
    if not isinstance(data, dict):
        return None, 'Invalid JSON payload'
    match_id = _parse_uuid(data.get('match_id'))
    if match_id is None:
        return None, 'Valid match_id required'
    scores, error = _parse_scores(data)
    if error:
        return None, error
    return ScoreEdit(match_id=match_id, score_a=scores[0], score_b=scores[1]), None
