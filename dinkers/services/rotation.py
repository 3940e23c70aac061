"""
Six-player rotation engine and submit-time repeat check.

With exactly six present players two sit out every game. The rotation engine
keeps that fair:

- Whoever sat out the last clean round (a match whose four players all belong
  to the current roster) must play next.
- Once four clean rounds are on record nobody may sit more than 2 of the
  trailing 5 rounds, nor play all 5 of them. Before that the caps are off.
- An exact matchup may not recur within the last HARD_NO_REPEAT_WINDOW games.

Every remaining proposal is ranked by sit fairness first, then partner and
opponent variety, then rest and games played, then rating balance.
"""
from dataclasses import dataclass

from dinkers.services.errors import ErrorKind, MatchmakingError
from dinkers.services.matchups import (
    HARD_NO_REPEAT_WINDOW,
    Recommendation,
    build_history_counts,
    choose4,
    is_clean_round,
    matchup_in_window,
    opponent_pair_keys,
    pair_key,
    round2,
    sort_recent_matches,
)
from dinkers.services.teams import build_team_options

ROSTER_SIZE = 6
SIT_WINDOW_SIZE = 5
SIT_LOOKBACK = SIT_WINDOW_SIZE - 1
MAX_SITS_IN_WINDOW = 2
MIN_SITS_IN_WINDOW = 1


@dataclass(frozen=True)
class SixPlayerProposal:
    player_ids: list
    team_a: list
    team_b: list
    sit_score: int
    play_penalty: int
    balance_diff: float
    partner_repeat_penalty: int
    partner_usage_max: int
    opponent_repeat_penalty: int
    opponent_usage_max: int
    play_count_spread_after: int
    sit_window_max_after: int
    sit_window_min_after: int
    sit_window_total_after: int
    violates_sit_cap: bool
    violates_play_cap: bool
    violates_repeat_window: bool
    matchup_key: str

    def sort_key(self):
        return (
            self.violates_repeat_window,
            self.violates_sit_cap,
            self.violates_play_cap,
            self.sit_window_max_after,
            -self.sit_window_min_after,
            self.sit_window_total_after,
            self.partner_usage_max,
            self.partner_repeat_penalty,
            self.opponent_usage_max,
            self.opponent_repeat_penalty,
            -self.sit_score,
            self.play_count_spread_after,
            self.play_penalty,
            self.balance_diff,
            self.matchup_key,
        )


@dataclass(frozen=True)
class SubmissionCheck:
    ok: bool
    reason: str = None
    kind: ErrorKind = None


def last_round_sitters(roster, recent_matches):
    """Roster members who sat out the newest clean round, in roster order."""
    if len(roster) != ROSTER_SIZE:
        return []
    roster_ids = [p.id for p in roster]
    for match in recent_matches:
        if is_clean_round(match, roster_ids):
            played = set(match.participants)
            return [player_id for player_id in roster_ids if player_id not in played]
    return []


def recent_sit_counts(roster_ids, recent_matches, lookback=SIT_LOOKBACK):
    """Sits per roster member over the clean rounds among the newest ``lookback`` matches."""
    counts = {player_id: 0 for player_id in roster_ids}
    rounds = 0
    for match in recent_matches[:lookback]:
        if not is_clean_round(match, roster_ids):
            continue
        rounds += 1
        played = set(match.participants)
        for player_id in roster_ids:
            if player_id not in played:
                counts[player_id] += 1
    return counts, rounds


def _sit_window_after(roster_ids, sit_counts, playing):
    after = [
        sit_counts.get(player_id, 0) + (0 if player_id in playing else 1)
        for player_id in roster_ids
    ]
    return max(after), min(after), sum(after)


def _games_played_spread_after(roster, playing):
    totals = [p.games_played + (1 if p.id in playing else 0) for p in roster]
    return max(totals) - min(totals)


def build_six_player_proposals(roster, recent_matches):
    """Return ``(must_play, proposals)`` for a six-player roster."""
    must_play = last_round_sitters(roster, recent_matches)
    player_by_id = {p.id: p for p in roster}
    roster_ids = [p.id for p in roster]
    partner_counts, opponent_counts = build_history_counts(recent_matches)
    sit_counts, clean_rounds = recent_sit_counts(roster_ids, recent_matches)
    enforce_caps = clean_rounds >= SIT_LOOKBACK

    proposals = []
    for ids in choose4(roster_ids):
        if not all(player_id in ids for player_id in must_play):
            continue

        players = [player_by_id[player_id] for player_id in ids]
        playing = set(ids)
        sit_score = sum(p.games_since_played for p in players)
        play_penalty = sum(p.games_played for p in players)
        spread_after = _games_played_spread_after(roster, playing)
        sit_max, sit_min, sit_total = _sit_window_after(roster_ids, sit_counts, playing)

        for option in build_team_options(players, recent_matches):
            partner_a = partner_counts[pair_key(*option.team_a)]
            partner_b = partner_counts[pair_key(*option.team_b)]
            opponents = [
                opponent_counts[key]
                for key in opponent_pair_keys(option.team_a, option.team_b)
            ]
            proposals.append(SixPlayerProposal(
                player_ids=ids,
                team_a=option.team_a,
                team_b=option.team_b,
                sit_score=sit_score,
                play_penalty=play_penalty,
                balance_diff=option.balance_diff,
                partner_repeat_penalty=partner_a + partner_b,
                partner_usage_max=max(partner_a, partner_b),
                opponent_repeat_penalty=sum(opponents),
                opponent_usage_max=max(opponents),
                play_count_spread_after=spread_after,
                sit_window_max_after=sit_max,
                sit_window_min_after=sit_min,
                sit_window_total_after=sit_total,
                violates_sit_cap=enforce_caps and sit_max > MAX_SITS_IN_WINDOW,
                violates_play_cap=enforce_caps and sit_min < MIN_SITS_IN_WINDOW,
                violates_repeat_window=matchup_in_window(
                    option.team_a, option.team_b, recent_matches, HARD_NO_REPEAT_WINDOW
                ),
                matchup_key=option.matchup_key,
            ))

    return must_play, proposals


def recommend_six_player_match(roster, recent_matches):
    """Strict rotation pick for exactly six players; history must be newest-first."""
    must_play, proposals = build_six_player_proposals(roster, recent_matches)
    if len(must_play) not in (0, 2):
        raise MatchmakingError(
            ErrorKind.INTERNAL_ERROR,
            f'Expected 0 or 2 previous sitters, found {len(must_play)}',
        )

    allowed = [
        proposal for proposal in proposals
        if not (
            proposal.violates_repeat_window
            or proposal.violates_sit_cap
            or proposal.violates_play_cap
        )
    ]
    if not allowed:
        raise MatchmakingError(
            ErrorKind.NO_VALID_MATCHUP,
            'No valid 6-player matchup satisfies no-repeat and sit/play fairness '
            'constraints. Adjust presence and try again.',
        )

    best = min(allowed, key=SixPlayerProposal.sort_key)
    if must_play:
        sitters_reason = '6-player mode: previous sitters are forced into the next game'
    else:
        sitters_reason = '6-player mode: round-robin pairing rotation'

    return Recommendation(
        player_ids=best.player_ids,
        team_a=best.team_a,
        team_b=best.team_b,
        balance_diff=round2(best.balance_diff),
        partner_repeat_penalty=best.partner_repeat_penalty,
        reasons=[
            sitters_reason,
            f'Hard no-repeat window: {HARD_NO_REPEAT_WINDOW}',
            f'5-match sit cap max after this game: {best.sit_window_max_after} '
            f'(target <= {MAX_SITS_IN_WINDOW})',
            f'5-match play cap max after this game: '
            f'{SIT_WINDOW_SIZE - best.sit_window_min_after} (target <= {SIT_WINDOW_SIZE - 1})',
            f'Sat priority score: {best.sit_score}',
            f'Partner pair repeat usage: max={best.partner_usage_max}, '
            f'sum={best.partner_repeat_penalty}',
            f'Opponent repeat usage: max={best.opponent_usage_max}, '
            f'sum={best.opponent_repeat_penalty}',
            f'Games played spread after this match: {best.play_count_spread_after}',
            f'Games played penalty: {best.play_penalty}',
            f'Balance difference: {round2(best.balance_diff)}',
        ],
    )


def repeated_matchup_reason():
    return (
        f'Matchup was used in the last {HARD_NO_REPEAT_WINDOW} games. '
        'Use a different matchup.'
    )


def validate_six_player_submission(present_players, recent_matches, team_a, team_b):
    """Reject a six-player submission that repeats a matchup inside the hard window.

    Sit and play caps are left to the recommender so a client racing a
    presence change is not rejected here.
    """
    if len(present_players) != ROSTER_SIZE:
        return SubmissionCheck(ok=True)

    ordered = sort_recent_matches(recent_matches)
    if matchup_in_window(team_a, team_b, ordered, HARD_NO_REPEAT_WINDOW):
        return SubmissionCheck(
            ok=False,
            reason=repeated_matchup_reason(),
            kind=ErrorKind.MATCHUP_REPEATED,
        )
    return SubmissionCheck(ok=True)
