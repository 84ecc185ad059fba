"""
User model for back-office accounts (dashboard managers and door staff).
"""
from enum import Enum
from datetime import datetime, timedelta
from werkzeug.security import generate_password_hash, check_password_hash

from boxoffice.extensions import db


class AccessLevel(str, Enum):
    """
    Access levels for permission control.
    Determines what users can do in the back-office.
    """
    ADMIN = "admin"           # Full access, can manage users
    MANAGER = "manager"       # Events, tiers, orders, guestlists, affiliates
    STAFF = "staff"           # Door staff: scanning and ticket lookup


ACCESS_LEVEL_LABELS = {
    AccessLevel.ADMIN: "Administrator",
    AccessLevel.MANAGER: "Manager",
    AccessLevel.STAFF: "Door staff",
}

# Permission hierarchy (lower index = higher access)
ACCESS_HIERARCHY = [
    AccessLevel.ADMIN,
    AccessLevel.MANAGER,
    AccessLevel.STAFF,
]


class User(db.Model):
    """Back-office user authenticated through the API."""

    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    first_name = db.Column(db.String(50), nullable=False)
    last_name = db.Column(db.String(50), nullable=False)
    is_active = db.Column(db.Boolean, default=True)

    access_level = db.Column(
        db.Enum(AccessLevel),
        default=AccessLevel.STAFF,
        nullable=False
    )

    # Account lockout
    failed_login_attempts = db.Column(db.Integer, default=0)
    locked_until = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login = db.Column(db.DateTime, nullable=True)

    def __repr__(self):
        return f'<User {self.email}>'

    @property
    def full_name(self):
        """Return user's full name."""
        return f'{self.first_name} {self.last_name}'

    def set_password(self, password):
        """Hash and set user password."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Verify password against hash."""
        return check_password_hash(self.password_hash, password)

    def has_access(self, required_level):
        """
        Check if user has at least the required access level.
        Uses hierarchy: ADMIN > MANAGER > STAFF
        """
        if isinstance(required_level, str):
            required_level = AccessLevel(required_level.lower())
        user_index = ACCESS_HIERARCHY.index(self.access_level)
        required_index = ACCESS_HIERARCHY.index(required_level)
        return user_index <= required_index

    @property
    def access_level_label(self):
        return ACCESS_LEVEL_LABELS.get(self.access_level, str(self.access_level))

    @property
    def is_locked(self):
        """Check if account is currently locked."""
        if self.locked_until:
            return datetime.utcnow() < self.locked_until
        return False

    def record_failed_login(self, max_attempts=5, lockout_minutes=15):
        """Record a failed login attempt."""
        self.failed_login_attempts = (self.failed_login_attempts or 0) + 1
        if self.failed_login_attempts >= max_attempts:
            self.locked_until = datetime.utcnow() + timedelta(minutes=lockout_minutes)

    def reset_failed_logins(self):
        """Reset failed login counter on successful login."""
        self.failed_login_attempts = 0
        self.locked_until = None
        self.last_login = datetime.utcnow()
