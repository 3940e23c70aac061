"""
Next-match recommendation for a group's present players.

- Candidates: present players ordered by rest priority
  (games_since_played desc, games_played asc, id asc), top 6 kept.
- Exactly 6 present: the strict six-player rotation engine decides.
- Otherwise every 4-subset of the candidate pool is scored:
      total = sit*5 - balance*1.5 - played*1 - partner_repeats*3
  The highest total wins; on equal totals the subset enumerated first wins,
  so the candidate ordering above is part of the result.
"""
from dataclasses import dataclass

from dinkers.services.errors import ErrorKind, MatchmakingError
from dinkers.services.matchups import (
    Recommendation,
    choose4,
    round2,
    sort_recent_matches,
)
from dinkers.services.rotation import recommend_six_player_match
from dinkers.services.teams import best_team_split

MIN_PLAYERS = 4
CANDIDATE_POOL_SIZE = 6
SIX_PLAYER_ROSTER = 6

SIT_WEIGHT = 5
BALANCE_WEIGHT = 1.5
PLAYED_WEIGHT = 1
PARTNER_REPEAT_WEIGHT = 3


@dataclass(frozen=True)
class _ScoredSet:
    player_ids: list
    team_a: list
    team_b: list
    sit_score: int
    play_penalty: int
    balance_diff: float
    partner_repeat_penalty: int
    total: float


def rest_priority_key(player):
    return (-player.games_since_played, player.games_played, player.id)


def select_candidates(present_players):
    """Order present players by rest priority and keep the top six."""
    ordered = sorted(present_players, key=rest_priority_key)
    return ordered[:min(CANDIDATE_POOL_SIZE, len(ordered))]


def _must_include(candidate_pool):
    max_sit = max(p.games_since_played for p in candidate_pool)
    if max_sit <= 0:
        return set()
    return {p.id for p in candidate_pool if p.games_since_played == max_sit}


def recommend_general(candidate_pool, recent_matches):
    """Brute-force 4-subset search; ``recent_matches`` must be newest-first."""
    if len(candidate_pool) < MIN_PLAYERS:
        raise MatchmakingError(
            ErrorKind.INSUFFICIENT_PRESENT_PLAYERS,
            'At least 4 present players are required',
        )

    player_by_id = {p.id: p for p in candidate_pool}
    must_include = _must_include(candidate_pool)

    best = None
    for ids in choose4([p.id for p in candidate_pool]):
        if len(must_include) <= 4 and not must_include.issubset(ids):
            continue

        players = [player_by_id[player_id] for player_id in ids]
        teams = best_team_split(players, recent_matches)
        sit_score = sum(p.games_since_played for p in players)
        play_penalty = sum(p.games_played for p in players)
        total = (
            sit_score * SIT_WEIGHT
            - teams.balance_diff * BALANCE_WEIGHT
            - play_penalty * PLAYED_WEIGHT
            - teams.partner_repeat_penalty * PARTNER_REPEAT_WEIGHT
        )

        if best is None or total > best.total:
            best = _ScoredSet(
                player_ids=ids,
                team_a=teams.team_a,
                team_b=teams.team_b,
                sit_score=sit_score,
                play_penalty=play_penalty,
                balance_diff=teams.balance_diff,
                partner_repeat_penalty=teams.partner_repeat_penalty,
                total=total,
            )

    if best is None:
        raise MatchmakingError(
            ErrorKind.NO_VALID_MATCHUP,
            'Could not find a valid match recommendation',
        )

    return Recommendation(
        player_ids=best.player_ids,
        team_a=best.team_a,
        team_b=best.team_b,
        balance_diff=round2(best.balance_diff),
        partner_repeat_penalty=best.partner_repeat_penalty,
        reasons=[
            f'Sat priority score: {best.sit_score}',
            f'Games played penalty: {best.play_penalty}',
            f'Balance difference: {round2(best.balance_diff)}',
            f'Partner repeat penalty: {best.partner_repeat_penalty} (lower is better)',
        ],
    )


def recommend(present_players, recent_matches=()):
    """Recommend the next 2v2 match.

    Args:
        present_players: PlayerSnapshot objects for every present player.
        recent_matches: RecentMatch objects (up to 12), in any order.

    Raises:
        MatchmakingError: INSUFFICIENT_PRESENT_PLAYERS or NO_VALID_MATCHUP.
    """
    if len(present_players) < MIN_PLAYERS:
        raise MatchmakingError(
            ErrorKind.INSUFFICIENT_PRESENT_PLAYERS,
            'At least 4 present players are required',
        )

    candidate_pool = select_candidates(present_players)
    ordered_matches = sort_recent_matches(recent_matches)

    if len(present_players) == SIX_PLAYER_ROSTER and len(candidate_pool) == SIX_PLAYER_ROSTER:
        return recommend_six_player_match(candidate_pool, ordered_matches)
    return recommend_general(candidate_pool, ordered_matches)
