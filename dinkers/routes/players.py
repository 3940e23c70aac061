from flask import Blueprint, request, jsonify
from flask_socketio import emit, join_room, leave_room
from dinkers.app import socketio
from dinkers.auth_utils import editor_required
from dinkers.models import Group
from dinkers.time_utils import isoformat_utc, utcnow_naive
from dinkers.services.group_payloads import parse_player_mutation
from dinkers.services.group_state import apply_player_mutation, list_players

players_bp = Blueprint('players', __name__)


def group_room(group_id):
    return f'group_{group_id}'


def _emit_group_update(group_id, reason):
    socketio.emit('group_update', {
        'group_id': group_id,
        'reason': reason,
        'updated_at': isoformat_utc(utcnow_naive()),
    }, room=group_room(group_id))


@players_bp.route('/<slug>/players', methods=['POST'])
@editor_required
def mutate_players(slug):
    group = request.current_group
    mutation, error = parse_player_mutation(request.get_json(silent=True) or {})
    if error:
        return jsonify({'error': error}), 400

    apply_player_mutation(group.id, mutation)
    _emit_group_update(group.id, 'players')
    return jsonify({'players': [player.to_dict() for player in list_players(group.id)]})


# WebSocket event handlers
def _group_from_socket_payload(data):
    payload = data if isinstance(data, dict) else {}
    slug = str(payload.get('slug') or '').strip()
    if not slug:
        return None
    return Group.query.filter_by(slug=slug).first()


@socketio.on('join_group')
def on_join_group(data):
    group = _group_from_socket_payload(data)
    if not group:
        emit('status', {'error': 'Group not found'})
        return

    join_room(group_room(group.id))
    emit('status', {'message': f'Joined {group.slug}', 'group_id': group.id})


@socketio.on('leave_group')
def on_leave_group(data):
    group = _group_from_socket_payload(data)
    if group:
        leave_room(group_room(group.id))
