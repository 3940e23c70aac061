"""
Group state orchestration: the only code that reads and writes storage.

Submissions and edits run as one unit under a per-group lock:
read present players + recent matches -> validate -> rate -> persist ->
recompute the next recommendation. The lock is an in-process mutex per group
plus SELECT ... FOR UPDATE on the group row for multi-process databases.
"""
import logging
import threading
import weakref
from contextlib import contextmanager
from dataclasses import dataclass

from dinkers.app import db
from dinkers.models import Group, GroupSession, Match, MatchPlayer, Player
from dinkers.services.debug_log import log_matchmaker_event, summarize_present_players
from dinkers.services.errors import ErrorKind, MatchmakingError
from dinkers.services.group_payloads import AddPlayer, SetPresence, UpdatePlayer
from dinkers.services.matchmaker import MIN_PLAYERS, recommend
from dinkers.services.matchups import (
    HARD_NO_REPEAT_WINDOW,
    RECENT_MATCH_WINDOW,
    matchup_in_window,
    matchup_key,
    merge_recent_matches,
    sort_recent_matches,
)
from dinkers.services.rating import (
    apply_match_rating,
    build_edit_adjustments,
    clamp_rating,
    round3,
)
from dinkers.services.rotation import (
    ROSTER_SIZE,
    repeated_matchup_reason,
    validate_six_player_submission,
)

logger = logging.getLogger(__name__)

_registry_lock = threading.Lock()
# Entries live only while some caller holds or waits on the group's lock.
_group_locks = weakref.WeakValueDictionary()


@dataclass(frozen=True)
class SubmitResult:
    match: Match
    next_recommendation: object
    present_players: list


class _GroupLock:
    """Weak-referenceable wrapper around a mutex."""

    def __init__(self):
        self._lock = threading.Lock()

    def __enter__(self):
        self._lock.acquire()
        return self

    def __exit__(self, *exc_info):
        self._lock.release()


def _lock_for(group_id):
    with _registry_lock:
        lock = _group_locks.get(group_id)
        if lock is None:
            lock = _GroupLock()
            _group_locks[group_id] = lock
        return lock


@contextmanager
def group_lock(group_id):
    """Serialize state changes for one group; rolls back on any error."""
    with _lock_for(group_id):
        try:
            db.session.query(Group).filter_by(id=group_id).with_for_update().one()
            yield
        except Exception:
            db.session.rollback()
            raise


# ── Reads ────────────────────────────────────────────────────────────────

def list_players(group_id):
    return Player.query.filter_by(group_id=group_id).order_by(Player.name.asc()).all()


def present_players(group_id):
    return Player.query.filter_by(group_id=group_id, is_present=True).order_by(
        Player.games_since_played.desc(),
        Player.games_played.asc(),
        Player.id.asc(),
    ).all()


def list_matches(group_id, limit):
    return Match.query.filter_by(group_id=group_id).order_by(
        Match.created_at.desc(),
        Match.id.desc(),
    ).limit(limit).all()


def recent_matches(group_id, limit=RECENT_MATCH_WINDOW):
    return [match.to_recent() for match in list_matches(group_id, limit)]


def recommend_for_group(group_id, limit=RECENT_MATCH_WINDOW):
    """Current recommendation for a group, with the inputs used to build it."""
    present = [row.to_snapshot() for row in present_players(group_id)]
    if len(present) < MIN_PLAYERS:
        raise MatchmakingError(
            ErrorKind.INSUFFICIENT_PRESENT_PLAYERS,
            'Need at least 4 present players',
        )
    recent = recent_matches(group_id, limit)
    recommendation = recommend(present, recent)
    return recommendation, present, recent


# ── Player mutations ─────────────────────────────────────────────────────

def _group_player(group_id, player_id):
    return Player.query.filter_by(id=player_id, group_id=group_id).first()


def apply_player_mutation(group_id, mutation):
    with group_lock(group_id):
        if isinstance(mutation, AddPlayer):
            db.session.add(Player(
                group_id=group_id,
                name=mutation.name,
                rating=mutation.rating,
                is_present=True,
            ))
        elif isinstance(mutation, SetPresence):
            for update in mutation.updates:
                player = _group_player(group_id, update.player_id)
                if not player:
                    continue
                player.is_present = update.is_present
                if update.is_present:
                    player.games_since_played = 0
        elif isinstance(mutation, UpdatePlayer):
            player = _group_player(group_id, mutation.player_id)
            if not player:
                raise MatchmakingError(ErrorKind.PLAYER_NOT_FOUND, 'Player not found')
            if mutation.name is not None:
                player.name = mutation.name
            if mutation.rating is not None:
                player.rating = mutation.rating
        else:
            raise TypeError(f'Unsupported player mutation: {type(mutation).__name__}')
        db.session.commit()


# ── Score submission ─────────────────────────────────────────────────────

def _current_session_id(group_id):
    session = GroupSession.query.filter_by(group_id=group_id).order_by(
        GroupSession.started_at.desc(),
        GroupSession.id.desc(),
    ).first()
    if not session:
        session = GroupSession(group_id=group_id)
        db.session.add(session)
        db.session.flush()
    return session.id


def _check_repeat_rules(present, recent, submission):
    check = validate_six_player_submission(
        present, recent, submission.team_a, submission.team_b,
    )
    if not check.ok:
        raise MatchmakingError(check.kind, check.reason)

    ordered = sort_recent_matches(recent)
    if (
        len(present) >= MIN_PLAYERS
        and len(present) != ROSTER_SIZE
        and matchup_in_window(submission.team_a, submission.team_b, ordered, HARD_NO_REPEAT_WINDOW)
    ):
        raise MatchmakingError(ErrorKind.MATCHUP_REPEATED, repeated_matchup_reason())


def _next_recommendation(present_rows, current_match, pre_insert_recent, limit):
    present = [row.to_snapshot() for row in present_rows if row.is_present]
    if len(present) < MIN_PLAYERS:
        return None, present

    merged = merge_recent_matches(
        [current_match.to_recent()],
        recent_matches(current_match.group_id, limit),
        pre_insert_recent,
        limit=limit,
    )
    try:
        return recommend(present, merged), present
    except MatchmakingError as exc:
        logger.warning(
            'No next recommendation for group %s after match %s: %s',
            current_match.group_id, current_match.id, exc.message,
        )
        return None, present


def save_match_and_update_state(group_id, submission, limit=RECENT_MATCH_WINDOW):
    """Validate, rate and record a submitted match. Returns a SubmitResult."""
    with group_lock(group_id):
        present_rows = present_players(group_id)
        present = [row.to_snapshot() for row in present_rows]
        recent = recent_matches(group_id, limit)

        _check_repeat_rules(present, recent, submission)

        participants = {
            row.id: row for row in present_rows if row.id in set(submission.player_ids)
        }
        if len(participants) != 4:
            raise MatchmakingError(
                ErrorKind.SUBMITTED_PLAYERS_NOT_PRESENT,
                'Submitted players must be present in group',
            )

        ratings_before = {player_id: row.rating for player_id, row in participants.items()}
        update = apply_match_rating(
            ratings_before,
            submission.team_a, submission.team_b,
            submission.score_a, submission.score_b,
        )

        match = Match(
            group_id=group_id,
            session_id=_current_session_id(group_id),
            score_a=submission.score_a,
            score_b=submission.score_b,
        )
        for team, team_ids in (('a', submission.team_a), ('b', submission.team_b)):
            for player_id in team_ids:
                match.players.append(MatchPlayer(
                    player_id=player_id,
                    team=team,
                    rating_before=ratings_before[player_id],
                    rating_change=update.deltas[player_id],
                ))
        db.session.add(match)

        for row in present_rows:
            if row.id in participants:
                row.rating = update.new_ratings[row.id]
                row.games_played += 1
                row.games_since_played = 0
            else:
                row.games_since_played += 1
        db.session.flush()

        next_recommendation, post_present = _next_recommendation(
            present_rows, match, recent, limit,
        )
        db.session.commit()

    return SubmitResult(
        match=match,
        next_recommendation=next_recommendation,
        present_players=post_present,
    )


def log_submission(debug_config, group, submission, result):
    next_rec = result.next_recommendation
    log_matchmaker_event(debug_config, 'submit_saved', {
        'group_id': group.id,
        'slug': group.slug,
        'match_id': result.match.id,
        'match_created_at': result.match.created_at,
        'submitted_players': sorted(submission.player_ids),
        'submitted_key': matchup_key(submission.team_a, submission.team_b),
        'score_a': submission.score_a,
        'score_b': submission.score_b,
        'next_recommendation_key': (
            matchup_key(next_rec.team_a, next_rec.team_b) if next_rec else None
        ),
        'post_submit_present_players': summarize_present_players(result.present_players),
    })


# ── Score edits ──────────────────────────────────────────────────────────

def edit_match_score(group_id, edit):
    """Re-rate a match from its pre-match snapshot and shift current ratings by the difference."""
    with group_lock(group_id):
        match = Match.query.filter_by(id=edit.match_id, group_id=group_id).first()
        if not match:
            raise MatchmakingError(ErrorKind.MATCH_NOT_FOUND, 'Match not found')

        pre_match_ratings = match.pre_match_ratings
        if not all(player_id in pre_match_ratings for player_id in match.player_ids):
            raise MatchmakingError(
                ErrorKind.MISSING_RATING_SNAPSHOT,
                'This match cannot be edited because pre-match rating snapshot is missing',
            )

        update = apply_match_rating(
            pre_match_ratings, match.team_a, match.team_b, edit.score_a, edit.score_b,
        )
        adjustments = build_edit_adjustments(
            match.player_ids, match.rating_deltas, update.deltas,
        )

        match.score_a = edit.score_a
        match.score_b = edit.score_b
        for mp in match.players:
            mp.rating_change = update.deltas[mp.player_id]

        players = {
            row.id: row for row in Player.query.filter(
                Player.group_id == group_id,
                Player.id.in_([adj.player_id for adj in adjustments]),
            ).all()
        } if adjustments else {}
        for adjustment in adjustments:
            player = players.get(adjustment.player_id)
            if player:
                player.rating = round3(clamp_rating(player.rating + adjustment.delta))

        db.session.commit()
    return match, adjustments
