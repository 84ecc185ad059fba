"""
API Authentication endpoints: back-office sign-in, token refresh and profile.
"""
import logging

from flask import request, current_app

from boxoffice.blueprints.api import api_bp
from boxoffice.blueprints.api.decorators import (
    REFRESH,
    access_token_lifetime,
    create_access_token,
    create_refresh_token,
    door_staff_required,
    read_token,
)
from boxoffice.blueprints.api.helpers import api_error, api_success, load_json
from boxoffice.blueprints.api.schemas import LoginSchema, RefreshSchema, UserSchema
from boxoffice.extensions import db, limiter
from boxoffice.models.user import User

logger = logging.getLogger(__name__)


def _token_response(user, include_refresh=True):
    body = {
        'access_token': create_access_token(user),
        'token_type': 'Bearer',
        'expires_in': int(access_token_lifetime().total_seconds()),
    }
    if include_refresh:
        body['refresh_token'] = create_refresh_token(user)
        body['user'] = UserSchema().dump(user)
    return body


@api_bp.route('/auth/login', methods=['POST'])
@limiter.limit('10 per minute')
def api_login():
    """Sign in a manager or door staff account.

    Request body:
        {"email": "...", "password": "..."}

    Returns:
        {"data": {"access_token", "refresh_token", "token_type", "expires_in", "user"}}
    """
    data = load_json(LoginSchema())
    email = data['email'].strip().lower()

    user = User.query.filter_by(email=email).first()

    if user and user.is_locked:
        logger.warning('Sign-in refused for locked account %s', email)
        return api_error(
            'account_locked',
            'Too many failed attempts. Try again later or ask a manager to reset your password.',
            429,
        )

    if user is None or not user.check_password(data['password']):
        if user:
            user.record_failed_login(
                max_attempts=current_app.config.get('MAX_LOGIN_ATTEMPTS', 5),
                lockout_minutes=current_app.config.get('LOCKOUT_DURATION_MINUTES', 15),
            )
            db.session.commit()
        return api_error('invalid_credentials', 'Invalid email or password.', 401)

    if not user.is_active:
        return api_error('account_inactive', 'This account has been deactivated.', 403)

    user.reset_failed_logins()
    db.session.commit()
    logger.info('%s signed in (%s)', user.email, user.access_level.value)

    return api_success(_token_response(user))


@api_bp.route('/auth/refresh', methods=['POST'])
@limiter.limit('20 per minute')
def api_refresh():
    """Swap a refresh token for a new access token.

    Scanner devices call this when an access token expires mid-shift.
    """
    data = load_json(RefreshSchema())
    user = read_token(data['refresh_token'], REFRESH)
    return api_success(_token_response(user, include_refresh=False))


@api_bp.route('/auth/me', methods=['GET'])
@door_staff_required
def api_me():
    """Profile of the signed-in account."""
    return api_success(UserSchema().dump(request.api_user))
