"""Team splitter: best 2v2 partition of four players."""
from dataclasses import dataclass

from dinkers.services.matchups import (
    HARD_NO_REPEAT_WINDOW,
    count_exact_repeats,
    count_partner_repeats,
    is_exact_repeat,
    last_used_index,
    matchup_key,
    matchup_in_window,
)

PARTNER_REPEAT_WEIGHT = 1.25
EXACT_REPEAT_WEIGHT = 2


@dataclass(frozen=True)
class TeamOption:
    team_a: list
    team_b: list
    balance_diff: float
    partner_repeat_penalty: int
    exact_team_repeat_penalty: int
    immediate_exact_repeat: bool
    recent_exact_repeat: bool
    last_used_index: int
    score: float
    matchup_key: str


def _partitions(players):
    a, b, c, d = players
    return [
        ((a, b), (c, d)),
        ((a, c), (b, d)),
        ((a, d), (b, c)),
    ]


def build_team_options(players, recent_matches):
    """Score the three partitions of ``players`` against newest-first history."""
    if len(players) != 4:
        raise ValueError('Team split requires exactly 4 players')

    latest = recent_matches[0] if recent_matches else None
    options = []
    for side_a, side_b in _partitions(players):
        team_a = [p.id for p in side_a]
        team_b = [p.id for p in side_b]
        balance_diff = abs(sum(p.rating for p in side_a) - sum(p.rating for p in side_b))
        partner_repeats = count_partner_repeats(team_a, team_b, recent_matches)
        exact_repeats = count_exact_repeats(team_a, team_b, recent_matches)
        options.append(TeamOption(
            team_a=team_a,
            team_b=team_b,
            balance_diff=balance_diff,
            partner_repeat_penalty=partner_repeats,
            exact_team_repeat_penalty=exact_repeats,
            immediate_exact_repeat=is_exact_repeat(team_a, team_b, latest),
            recent_exact_repeat=matchup_in_window(
                team_a, team_b, recent_matches, HARD_NO_REPEAT_WINDOW
            ),
            last_used_index=last_used_index(team_a, team_b, recent_matches),
            score=(
                balance_diff
                + partner_repeats * PARTNER_REPEAT_WEIGHT
                + exact_repeats * EXACT_REPEAT_WEIGHT
            ),
            matchup_key=matchup_key(team_a, team_b),
        ))
    return options


def _keep_if_any(options, predicate):
    kept = [option for option in options if predicate(option)]
    return kept or options


def _split_sort_key(option):
    # Never-used matchups rank ahead of any used one, then the longest ago.
    recency = float('inf') if option.last_used_index < 0 else option.last_used_index
    return (option.score, -recency, option.matchup_key)


def best_team_split(players, recent_matches):
    options = build_team_options(players, recent_matches)
    pool = _keep_if_any(options, lambda option: not option.immediate_exact_repeat)
    pool = _keep_if_any(pool, lambda option: not option.recent_exact_repeat)
    return min(pool, key=_split_sort_key)
