"""Matchup keys, recency ordering and history counts shared by the recommenders.

A matchup key identifies a 2v2 pairing independent of team labels and of the
order of players inside a team: each pair is sorted into ``a:b`` and the two
pair keys are sorted and joined with ``|``.
"""
import math
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import cmp_to_key
from itertools import combinations

HARD_NO_REPEAT_WINDOW = 6
RECENT_MATCH_WINDOW = 12


@dataclass(frozen=True)
class PlayerSnapshot:
    """The fields of a present player the recommenders read."""
    id: str
    rating: float
    games_since_played: int = 0
    games_played: int = 0
    name: str = ''


@dataclass(frozen=True)
class RecentMatch:
    team_a: tuple
    team_b: tuple
    id: str = None
    created_at: object = None

    @property
    def participants(self):
        return tuple(self.team_a) + tuple(self.team_b)

    @property
    def key(self):
        return matchup_key(self.team_a, self.team_b)


@dataclass(frozen=True)
class Recommendation:
    player_ids: list
    team_a: list
    team_b: list
    balance_diff: float
    partner_repeat_penalty: int
    reasons: list = field(default_factory=list)

    def to_dict(self):
        return {
            'player_ids': list(self.player_ids),
            'team_a': list(self.team_a),
            'team_b': list(self.team_b),
            'balance_diff': self.balance_diff,
            'partner_repeat_penalty': self.partner_repeat_penalty,
            'reasons': list(self.reasons),
        }


def pair_key(a, b):
    return ':'.join(sorted((a, b)))


def matchup_key(team_a, team_b):
    left = pair_key(team_a[0], team_a[1])
    right = pair_key(team_b[0], team_b[1])
    return '|'.join(sorted((left, right)))


def opponent_pair_keys(team_a, team_b):
    return [pair_key(a, b) for a in team_a for b in team_b]


def choose4(ids):
    """All 4-element subsets in lexicographic index order over ``ids``."""
    return [list(combo) for combo in combinations(ids, 4)]


def round2(value):
    return math.floor(value * 100 + 0.5) / 100


def _match_time(match):
    raw = match.created_at
    if isinstance(raw, str):
        try:
            raw = datetime.fromisoformat(raw.strip().replace('Z', '+00:00'))
        except ValueError:
            return None
    if not isinstance(raw, datetime):
        return None
    if raw.tzinfo is None:
        raw = raw.replace(tzinfo=timezone.utc)
    return raw.timestamp()


def _compare_recency(a, b):
    a_time = _match_time(a)
    b_time = _match_time(b)
    if a_time is not None and b_time is not None:
        if a_time != b_time:
            return -1 if a_time > b_time else 1
        if a.id is not None and b.id is not None and a.id != b.id:
            return -1 if a.id > b.id else 1
        return 0
    if a_time is not None:
        return -1
    if b_time is not None:
        return 1
    return 0


def sort_recent_matches(recent_matches):
    """Newest-first by creation time, id desc on ties; undated matches last."""
    return sorted(recent_matches, key=cmp_to_key(_compare_recency))


def merge_recent_matches(*match_lists, limit=RECENT_MATCH_WINDOW):
    """Union of several recent-match reads, first occurrence of an id wins."""
    merged = {}
    for matches in match_lists:
        for match in matches:
            if match.id is not None and match.id not in merged:
                merged[match.id] = match
    return sort_recent_matches(merged.values())[:limit]


def is_exact_repeat(team_a, team_b, recent_match):
    if recent_match is None:
        return False
    return matchup_key(team_a, team_b) == recent_match.key


def matchup_in_window(team_a, team_b, recent_matches, window=HARD_NO_REPEAT_WINDOW):
    proposal_key = matchup_key(team_a, team_b)
    return any(match.key == proposal_key for match in recent_matches[:window])


def last_used_index(team_a, team_b, recent_matches):
    """Index of the newest match with this exact matchup, -1 if never used."""
    proposal_key = matchup_key(team_a, team_b)
    for index, match in enumerate(recent_matches):
        if match.key == proposal_key:
            return index
    return -1


def count_partner_repeats(team_a, team_b, recent_matches):
    key_a = pair_key(team_a[0], team_a[1])
    key_b = pair_key(team_b[0], team_b[1])
    repeats = 0
    for match in recent_matches[:RECENT_MATCH_WINDOW]:
        used = {pair_key(*match.team_a[:2]), pair_key(*match.team_b[:2])}
        if key_a in used:
            repeats += 1
        if key_b in used:
            repeats += 1
    return repeats


def count_exact_repeats(team_a, team_b, recent_matches):
    proposal_key = matchup_key(team_a, team_b)
    return sum(
        1 for match in recent_matches[:RECENT_MATCH_WINDOW] if match.key == proposal_key
    )


def build_history_counts(recent_matches):
    """Partner and opponent pair usage over every supplied match."""
    partner_counts = Counter()
    opponent_counts = Counter()
    for match in recent_matches:
        partner_counts[pair_key(*match.team_a[:2])] += 1
        partner_counts[pair_key(*match.team_b[:2])] += 1
        opponent_counts.update(opponent_pair_keys(match.team_a, match.team_b))
    return partner_counts, opponent_counts


def is_clean_round(match, roster_ids):
    """True when the match had 4 distinct players, all from ``roster_ids``."""
    played = set(match.participants)
    return len(played) == 4 and played <= set(roster_ids)
