from datetime import datetime, timedelta, timezone
from functools import wraps
from flask import request, jsonify, current_app
import jwt
from werkzeug.security import generate_password_hash, check_password_hash
from dinkers.models import Group

TOKEN_ISSUER = 'pickleball-matchmaker'
TOKEN_AUDIENCE = 'group-editor'
EDITOR_ROLE = 'editor'


def hash_pin(pin):
    return generate_password_hash(pin)


def verify_pin(pin, pin_hash):
    return check_password_hash(pin_hash, pin)


def sign_edit_token(group_id):
    """Sign an editor token for a group. Returns (token, expires_at)."""
    expires_at = datetime.now(timezone.utc) + timedelta(
        hours=current_app.config.get('EDITOR_TOKEN_TTL_HOURS', 24 * 7)
    )
    payload = {
        'group_id': group_id,
        'role': EDITOR_ROLE,
        'iss': TOKEN_ISSUER,
        'aud': TOKEN_AUDIENCE,
        'iat': datetime.now(timezone.utc),
        'exp': expires_at,
    }
    token = jwt.encode(payload, current_app.config['JWT_SECRET'], algorithm='HS256')
    return token, expires_at


def _normalize_bearer_token(raw_header):
    header = str(raw_header or '').strip()
    scheme, _, token = header.partition(' ')
    if scheme != 'Bearer':
        return ''
    return token.strip()


def verify_edit_token(token):
    """Return the token's group id, or None if it is not a valid editor token."""
    try:
        payload = jwt.decode(
            token,
            current_app.config['JWT_SECRET'],
            algorithms=['HS256'],
            issuer=TOKEN_ISSUER,
            audience=TOKEN_AUDIENCE,
        )
    except jwt.InvalidTokenError:
        return None
    if payload.get('role') != EDITOR_ROLE or not payload.get('group_id'):
        return None
    return payload['group_id']


def editor_required(f):
    """Decorator for /<slug>/ routes: the caller must hold that group's editor token."""
    @wraps(f)
    def decorated(slug, *args, **kwargs):
        group = Group.query.filter_by(slug=slug).first()
        if not group:
            return jsonify({'error': 'Group not found'}), 404

        token = _normalize_bearer_token(request.headers.get('Authorization'))
        if not token:
            return jsonify({'error': 'Missing editor token'}), 401
        token_group_id = verify_edit_token(token)
        if token_group_id is None:
            return jsonify({'error': 'Invalid editor token'}), 401
        if token_group_id != group.id:
            return jsonify({'error': 'Token group mismatch'}), 403

        request.current_group = group
        return f(slug, *args, **kwargs)
    return decorated
