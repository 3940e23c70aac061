from flask import Blueprint, current_app, request, jsonify
from dinkers.auth_utils import editor_required
from dinkers.routes.players import _emit_group_update
from dinkers.services.debug_log import log_matchmaker_event
from dinkers.services.group_payloads import parse_score_edit, parse_score_submission
from dinkers.services.group_state import (
    edit_match_score, log_submission, save_match_and_update_state,
)

matches_bp = Blueprint('matches', __name__)


@matches_bp.route('/<slug>/submit_score', methods=['POST'])
@editor_required
def submit_score(slug):
    group = request.current_group
    submission, error = parse_score_submission(request.get_json(silent=True) or {})
    if error:
        return jsonify({'error': error}), 400

    limit = current_app.config.get('RECENT_MATCH_LIMIT', 12)
    result = save_match_and_update_state(group.id, submission, limit)
    log_submission(current_app.extensions.get('matchmaker_debug'), group, submission, result)
    _emit_group_update(group.id, 'match_submitted')

    next_recommendation = result.next_recommendation
    return jsonify({
        'match': result.match.to_dict(),
        'next_recommendation': next_recommendation.to_dict() if next_recommendation else None,
    }), 201


@matches_bp.route('/<slug>/edit_score', methods=['POST'])
@editor_required
def edit_score(slug):
    group = request.current_group
    edit, error = parse_score_edit(request.get_json(silent=True) or {})
    if error:
        return jsonify({'error': error}), 400

    match, adjustments = edit_match_score(group.id, edit)
    log_matchmaker_event(current_app.extensions.get('matchmaker_debug'), 'score_edited', {
        'group_id': group.id,
        'slug': group.slug,
        'match_id': match.id,
        'score_a': match.score_a,
        'score_b': match.score_b,
        'adjustments': [adjustment.to_dict() for adjustment in adjustments],
    })
    _emit_group_update(group.id, 'match_edited')
    return jsonify({'match': match.to_dict()})
