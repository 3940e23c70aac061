import re
from flask import Blueprint, current_app, request, jsonify
from sqlalchemy.exc import IntegrityError
from dinkers.app import db
from dinkers.models import Group
from dinkers.auth_utils import hash_pin, verify_pin, sign_edit_token, editor_required
from dinkers.time_utils import isoformat_utc
from dinkers.services.debug_log import (
    log_matchmaker_event, summarize_present_players, summarize_recent_matches,
)
from dinkers.services.group_payloads import SLUG_MAX_LEN, parse_create_group, parse_pin
from dinkers.services.group_state import list_matches, list_players, recommend_for_group
from dinkers.services.matchups import matchup_key

groups_bp = Blueprint('groups', __name__)

MAX_SLUG_ATTEMPTS = 50
_NON_ALNUM_RE = re.compile(r'[^a-z0-9]+')


def slugify(raw_value):
    cleaned = _NON_ALNUM_RE.sub('-', str(raw_value or '').strip().lower()).strip('-')
    cleaned = cleaned[:SLUG_MAX_LEN].strip('-')
    return cleaned or 'group'


def _slug_candidates(base):
    yield base
    for suffix in range(2, MAX_SLUG_ATTEMPTS + 1):
        tail = f'-{suffix}'
        yield f'{base[:SLUG_MAX_LEN - len(tail)].rstrip("-")}{tail}'


def _group_or_404(slug):
    return Group.query.filter_by(slug=slug).first()


@groups_bp.route('', methods=['POST'])
def create_group():
    payload, error = parse_create_group(request.get_json(silent=True) or {})
    if error:
        return jsonify({'error': error}), 400

    pin_hash = hash_pin(payload.pin)
    base = slugify(payload.slug or payload.name)
    for candidate in _slug_candidates(base):
        if Group.query.filter_by(slug=candidate).first():
            continue
        group = Group(name=payload.name, slug=candidate, pin_hash=pin_hash)
        db.session.add(group)
        try:
            db.session.commit()
        except IntegrityError:
            # Another request claimed the slug between the check and the insert
            db.session.rollback()
            continue
        return jsonify({'group': group.to_dict(), 'group_url': f'/g/{group.slug}'}), 201

    return jsonify({'error': 'Could not allocate a unique group slug'}), 409


@groups_bp.route('/<slug>', methods=['GET'])
def get_group(slug):
    group = _group_or_404(slug)
    if not group:
        return jsonify({'error': 'Group not found'}), 404

    history_limit = current_app.config.get('HISTORY_LIMIT', 1000)
    return jsonify({
        'group': group.to_dict(),
        'players': [player.to_dict() for player in list_players(group.id)],
        'matches': [match.to_dict() for match in list_matches(group.id, history_limit)],
    })


@groups_bp.route('/<slug>/unlock', methods=['POST'])
def unlock_group(slug):
    group = _group_or_404(slug)
    if not group:
        return jsonify({'error': 'Group not found'}), 404

    pin, error = parse_pin(request.get_json(silent=True) or {})
    if error:
        return jsonify({'error': error}), 400
    if not verify_pin(pin, group.pin_hash):
        return jsonify({'error': 'Incorrect PIN'}), 401

    token, expires_at = sign_edit_token(group.id)
    return jsonify({'token': token, 'expires_at': isoformat_utc(expires_at.replace(tzinfo=None))})


@groups_bp.route('/<slug>/recommend', methods=['POST'])
@editor_required
def recommend_match(slug):
    group = request.current_group
    limit = current_app.config.get('RECENT_MATCH_LIMIT', 12)
    recommendation, present, recent = recommend_for_group(group.id, limit)

    log_matchmaker_event(current_app.extensions.get('matchmaker_debug'), 'recommend', {
        'group_id': group.id,
        'slug': group.slug,
        'present_players': summarize_present_players(present),
        'recent_matches': summarize_recent_matches(recent),
        'recommendation_key': matchup_key(recommendation.team_a, recommendation.team_b),
        'recommendation': recommendation.to_dict(),
    })
    return jsonify({'recommendation': recommendation.to_dict()})
