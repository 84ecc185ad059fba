"""
Back-office authentication for the REST API.

Dashboard managers and door staff sign in once and send a Bearer access
token with every request. Tokens carry the user's access level so the
scanner app can hide manager screens, but the level is always re-read from
the database before a route runs.
"""
from functools import wraps
from datetime import datetime, timedelta, timezone

import jwt
from flask import request, current_app

from boxoffice.extensions import db
from boxoffice.models.user import User, AccessLevel
from boxoffice.services.exceptions import BoxOfficeError

TOKEN_ALGORITHM = 'HS256'
ACCESS = 'access'
REFRESH = 'refresh'


class AuthenticationFailed(BoxOfficeError):
    code = 'invalid_token'
    status = 401

    def __init__(self, message, code=None):
        super().__init__(message)
        if code:
            self.code = code


class AccessDenied(BoxOfficeError):
    code = 'forbidden'
    status = 403


def _signing_key():
    return current_app.config.get('JWT_SECRET_KEY') or current_app.config['SECRET_KEY']


def _issue(user, token_type, lifetime):
    now = datetime.now(timezone.utc)
    claims = {
        'sub': str(user.id),
        'type': token_type,
        'level': user.access_level.value,
        'iat': now,
        'exp': now + lifetime,
    }
    return jwt.encode(claims, _signing_key(), algorithm=TOKEN_ALGORITHM)


def access_token_lifetime():
    return timedelta(minutes=current_app.config.get('JWT_ACCESS_TOKEN_MINUTES', 60))


def create_access_token(user):
    """Short-lived token sent on every back-office request."""
    return _issue(user, ACCESS, access_token_lifetime())


def create_refresh_token(user):
    """Long-lived token a scanner device keeps to stay signed in for a shift."""
    lifetime = timedelta(days=current_app.config.get('JWT_REFRESH_TOKEN_DAYS', 30))
    return _issue(user, REFRESH, lifetime)


def read_token(token, expected_type):
    """
    Verify a token and return the active user it was issued to.

    Raises:
        AuthenticationFailed: bad signature, expired, wrong type, or the
            account no longer exists or was deactivated
    """
    try:
        claims = jwt.decode(token, _signing_key(), algorithms=[TOKEN_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthenticationFailed('Session expired, sign in again.', code='token_expired')
    except jwt.InvalidTokenError:
        raise AuthenticationFailed('Token is invalid.')

    if claims.get('type') != expected_type:
        raise AuthenticationFailed(f'{expected_type.capitalize()} token required.', code='wrong_token_type')

    try:
        user_id = int(claims['sub'])
    except (KeyError, ValueError, TypeError):
        raise AuthenticationFailed('Token does not identify a user.')

    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        raise AuthenticationFailed('Account not found or deactivated.', code='user_not_found')
    return user


def current_api_user():
    """The back-office user behind the request's Bearer token."""
    auth_header = request.headers.get('Authorization', '')
    scheme, _, token = auth_header.partition(' ')
    if scheme != 'Bearer' or not token:
        raise AuthenticationFailed('Sign in required (Authorization: Bearer <token>).', code='missing_token')
    return read_token(token, ACCESS)


def requires_api_access(min_level):
    """Route decorator: signed-in user with at least min_level.

    The user is available to the view as request.api_user.
    """
    def decorator(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            user = current_api_user()
            if not user.has_access(min_level):
                raise AccessDenied(f'{user.access_level_label} accounts cannot do this.')
            request.api_user = user
            return f(*args, **kwargs)
        return decorated
    return decorator


# Door staff scan and look up tickets; managers run events and sales
door_staff_required = requires_api_access(AccessLevel.STAFF)
manager_required = requires_api_access(AccessLevel.MANAGER)
admin_required = requires_api_access(AccessLevel.ADMIN)
