import logging
from functools import wraps

from flask import g, jsonify, request
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from werkzeug.security import check_password_hash, generate_password_hash

import config

logger = logging.getLogger(__name__)

TOKEN_SALT = 'auth-token'


class TokenError(Exception):
    """The bearer token is missing, malformed, tampered with or expired."""


def hash_password(password):
    return generate_password_hash(password)


def verify_password(password_hash, password):
    if not password_hash:
        return False
    return check_password_hash(password_hash, password)


def _serializer():
    return URLSafeTimedSerializer(config.SECRET_KEY, salt=TOKEN_SALT)


def generate_token(user_id):
    """Signed token carrying the user id; valid for TOKEN_MAX_AGE_SECONDS."""
    return _serializer().dumps({'id': user_id})


def decode_token(token):
    try:
        payload = _serializer().loads(token, max_age=config.TOKEN_MAX_AGE_SECONDS)
    except SignatureExpired:
        raise TokenError('token expired') from None
    except BadSignature:
        raise TokenError('invalid token') from None
    if not isinstance(payload, dict) or not payload.get('id'):
        raise TokenError('invalid token payload')
    return payload['id']


def token_required(f):
    """Reject the request with 401 unless it carries a valid bearer token."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        header = request.headers.get('Authorization', '')
        scheme, _, token = header.partition(' ')
        if scheme.lower() != 'bearer' or not token.strip():
            return jsonify({'message': 'Not authorized, no token'}), 401
        try:
            g.user_id = decode_token(token.strip())
        except TokenError as e:
            logger.info('rejected token: %s', e)
            return jsonify({'message': 'Not authorized, token failed'}), 401
        return f(*args, **kwargs)
    return decorated_function
