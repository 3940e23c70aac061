"""
Doubles rating engine: zero-sum, leverage-weighted and safe to re-run on edits.

Key design decisions:
- Scale: ratings live in [0, 8] (club skill levels), not 1200-based ELO.
  The logistic uses a scale of 1.5 rating points instead of 400.
- Doubles: expected score uses team average rating.
  E = 1 / (1 + 10^((opp_avg - team_avg) / 1.5))
- Score margin: 1 + |diff| / 11 so an 11-0 counts twice as much as a 1-point game.
- Team swing: ΔT = 0.2 * margin * (actual - expected) * 2; the other team gets -ΔT.
- Leverage: each player's share of the team swing grows with the strength of the
  opposition relative to their own 70/30 blend with their partner, clamped to
  [0.65, 1.35] and normalized within the team.
- Rounding happens on the team total first; within a team the second player
  takes the remainder, so the four deltas cancel exactly unless a rating clamps.
- Reported deltas are recomputed from the rounded, clamped new rating so they
  always match the stored rating movement exactly.
- Edits re-rate from the pre-match snapshot and apply only the difference to the
  players' current ratings, so later matches are left intact.
"""
import math
from dataclasses import dataclass, field

from dinkers.services.errors import ErrorKind, MatchmakingError

MIN_RATING = 0.0
MAX_RATING = 8.0
ELO_SCALE = 1.5
BASE_K = 0.2
MARGIN_DIVISOR = 11
MIN_LEVERAGE = 0.65
MAX_LEVERAGE = 1.35
EDIT_TOLERANCE = 1e-6


@dataclass(frozen=True)
class RatingUpdate:
    deltas: dict
    new_ratings: dict
    diagnostics: dict = field(default_factory=dict)


@dataclass(frozen=True)
class RatingAdjustment:
    player_id: str
    delta: float

    def to_dict(self):
        return {'player_id': self.player_id, 'delta': self.delta}


def clamp(value, low, high):
    return max(low, min(high, value))


def round3(value):
    return math.floor(value * 1000 + 0.5) / 1000


def clamp_rating(value):
    return clamp(value, MIN_RATING, MAX_RATING)


def expected_score(team_avg, opponent_avg):
    """Win expectancy of a team against an opponent, both as average ratings."""
    return 1.0 / (1.0 + math.pow(10, (opponent_avg - team_avg) / ELO_SCALE))


def margin_multiplier(score_a, score_b):
    return 1 + abs(score_a - score_b) / MARGIN_DIVISOR


def player_leverage(player_rating, partner_rating, opponent_avg):
    context_rating = player_rating * 0.7 + partner_rating * 0.3
    gap = opponent_avg - context_rating
    return clamp(1 + gap / 4, MIN_LEVERAGE, MAX_LEVERAGE)


def _normalize_pair(first, second):
    total = first + second
    if total <= 0:
        return 0.5, 0.5
    return first / total, second / total


def _get_rating(ratings, player_id):
    try:
        value = float(ratings[player_id])
    except (KeyError, TypeError, ValueError):
        value = math.nan
    if not math.isfinite(value):
        raise MatchmakingError(
            ErrorKind.MISSING_RATING, f'Missing rating for player {player_id}'
        )
    return value


def _team_deltas(team, team_total, opponent_avg, ratings):
    """Split a rounded team total; the second player takes the rounding remainder."""
    first, second = team
    share_first, _ = _normalize_pair(
        player_leverage(ratings[first], ratings[second], opponent_avg),
        player_leverage(ratings[second], ratings[first], opponent_avg),
    )
    first_delta = round3(team_total * share_first)
    return {first: first_delta, second: round3(team_total - first_delta)}


def apply_match_rating(pre_match_ratings, team_a, team_b, score_a, score_b):
    """Rate a completed doubles match.

    Args:
        pre_match_ratings: player id -> rating just before the match.
        team_a, team_b: two player ids each.
        score_a, score_b: final points.

    Returns:
        RatingUpdate with per-player deltas, new ratings and diagnostics.

    Raises:
        MatchmakingError: BAD_TEAM_SHAPE or MISSING_RATING.
    """
    if len(team_a) != 2 or len(team_b) != 2:
        raise MatchmakingError(
            ErrorKind.BAD_TEAM_SHAPE,
            'Doubles rating update requires exactly 2 players per team',
        )

    ratings = {
        player_id: _get_rating(pre_match_ratings, player_id)
        for player_id in list(team_a) + list(team_b)
    }
    avg_a = (ratings[team_a[0]] + ratings[team_a[1]]) / 2
    avg_b = (ratings[team_b[0]] + ratings[team_b[1]]) / 2

    team_expected_a = expected_score(avg_a, avg_b)
    if score_a == score_b:
        actual_a = 0.5
    else:
        actual_a = 1.0 if score_a > score_b else 0.0

    margin = margin_multiplier(score_a, score_b)
    team_delta_a = BASE_K * margin * (actual_a - team_expected_a) * 2

    team_total_a = round3(team_delta_a)
    split_deltas = {}
    split_deltas.update(_team_deltas(team_a, team_total_a, avg_b, ratings))
    split_deltas.update(_team_deltas(team_b, -team_total_a, avg_a, ratings))

    deltas = {}
    new_ratings = {}
    for player_id, old_rating in ratings.items():
        new_rating = round3(clamp_rating(old_rating + split_deltas[player_id]))
        new_ratings[player_id] = new_rating
        # 6 places strips float noise without hiding sub-0.001 movement.
        deltas[player_id] = round(new_rating - old_rating, 6)

    return RatingUpdate(
        deltas=deltas,
        new_ratings=new_ratings,
        diagnostics={
            'team_expected_a': round3(team_expected_a),
            'margin_multiplier': round3(margin),
            'team_total_delta_a': round3(team_delta_a),
        },
    )


def build_edit_adjustments(player_ids, old_deltas, new_deltas):
    """Net per-player rating change needed to move from old to new deltas."""
    adjustments = []
    for player_id in player_ids:
        delta = new_deltas.get(player_id, 0) - old_deltas.get(player_id, 0)
        if abs(delta) < EDIT_TOLERANCE:
            continue
        adjustments.append(RatingAdjustment(player_id=player_id, delta=delta))
    return adjustments


def normalize_rating_map(raw_value):
    """Parse a stored id -> float mapping, dropping non-finite entries."""
    if not isinstance(raw_value, dict):
        return {}
    parsed = {}
    for key, value in raw_value.items():
        try:
            numeric = float(value)
        except (TypeError, ValueError):
            continue
        if math.isfinite(numeric):
            parsed[str(key)] = numeric
    return parsed
