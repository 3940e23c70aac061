"""
Structured matchmaker debug events.

Enabled through ``MatchmakerDebugConfig`` (built from the app config, never
from the environment here). Each event is one JSON line on the
``dinkers.matchmaker_debug`` logger, prefixed ``[matchmaker-debug]``.
"""
import json
import logging
import os
from dataclasses import dataclass
from urllib.parse import urlsplit

from dinkers.services.matchups import matchup_key
from dinkers.time_utils import utcnow_naive

logger = logging.getLogger('dinkers.matchmaker_debug')


@dataclass(frozen=True)
class MatchmakerDebugConfig:
    enabled: bool = False
    db_target: str = 'unknown'

    @classmethod
    def from_app_config(cls, app_config):
        return cls(
            enabled=bool(app_config.get('MATCHMAKER_DEBUG', False)),
            db_target=resolve_db_target(app_config.get('SQLALCHEMY_DATABASE_URI')),
        )


def resolve_db_target(raw_url):
    """host:port/dbname of a database URL, without credentials."""
    if not raw_url:
        return 'unknown'
    try:
        parsed = urlsplit(str(raw_url))
        port = parsed.port
    except ValueError:
        return 'invalid-url'
    if not parsed.scheme:
        return 'invalid-url'
    db_name = parsed.path.lstrip('/') or 'unknown'
    return f'{parsed.hostname or ""}:{port or 5432}/{db_name}'


def log_matchmaker_event(debug_config, event, payload):
    if debug_config is None or not debug_config.enabled:
        return
    envelope = {
        'ts': utcnow_naive().isoformat() + 'Z',
        'pid': os.getpid(),
        'db': debug_config.db_target,
        'event': event,
    }
    envelope.update(payload)
    logger.info('[matchmaker-debug] %s', json.dumps(envelope, default=str))


def summarize_recent_matches(recent_matches, limit=6):
    return [
        {
            'index': index,
            'id': match.id,
            'created_at': match.created_at,
            'key': matchup_key(match.team_a, match.team_b),
            'team_a': list(match.team_a),
            'team_b': list(match.team_b),
        }
        for index, match in enumerate(recent_matches[:limit])
    ]


def summarize_present_players(present_players):
    return [
        {
            'id': player.id,
            'name': player.name,
            'rating': player.rating,
            'games_since_played': player.games_since_played,
            'games_played': player.games_played,
        }
        for player in present_players
    ]
