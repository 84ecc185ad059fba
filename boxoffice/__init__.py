"""
BoxOffice Application Factory.
Creates and configures the Flask application instance.
"""
import os
import json
import logging
import uuid
from datetime import datetime, timezone

import click
from flask import Flask, request, g, jsonify

from boxoffice.config import config
from boxoffice.extensions import init_extensions, db


def create_app(config_name=None):
    """
    Application factory for creating Flask app instances.

    Args:
        config_name: Configuration to use (development, testing, production)

    Returns:
        Configured Flask application instance
    """
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    app = Flask(__name__)

    # Load configuration
    config_class = config[config_name]
    app.config.from_object(config_class)

    # Call init_app if available (production validation happens here)
    if hasattr(config_class, 'init_app'):
        config_class.init_app(app)

    # Initialize extensions
    init_extensions(app)

    # Initialize Stripe API key
    if app.config.get('STRIPE_SECRET_KEY'):
        import stripe
        stripe.api_key = app.config['STRIPE_SECRET_KEY']

    # Register blueprints
    register_blueprints(app)

    # Register error handlers
    register_error_handlers(app)

    # Register CLI commands
    register_cli_commands(app)

    # Register template filters (email templates)
    register_template_filters(app)

    # Configure logging
    configure_logging(app)

    # Add security headers
    register_security_headers(app)

    # Create database tables (development only)
    if config_name == 'development':
        with app.app_context():
            db.create_all()

    return app


def register_blueprints(app):
    """Register all application blueprints."""
    from boxoffice.blueprints.api import api_bp

    # REST API v1: JWT auth for back-office routes
    app.register_blueprint(api_bp, url_prefix='/api/v1')


def register_error_handlers(app):
    """Register JSON error handlers for common HTTP errors."""

    @app.errorhandler(403)
    def forbidden(error):
        return jsonify({'error': {'code': 'forbidden', 'message': 'Access denied.'}}), 403

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': {'code': 'not_found', 'message': 'Resource not found.'}}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': {'code': 'method_not_allowed', 'message': 'Method not allowed.'}}), 405

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        request_id = g.get('request_id', '-')
        app.logger.error('500 Internal Server Error: %s (request_id=%s)', type(error).__name__, request_id, exc_info=True)
        return jsonify({'error': {'code': 'internal_error', 'message': 'Internal server error.', 'request_id': request_id}}), 500

    @app.errorhandler(429)
    def ratelimit_error(error):
        return jsonify({'error': {'code': 'rate_limit_exceeded', 'message': 'Too many requests. Try again later.'}}), 429


def register_cli_commands(app):
    """Register custom CLI commands."""

    @app.cli.command('init-db')
    def init_db():
        """Create all database tables."""
        # Import models so every table is registered on the metadata
        import boxoffice.models  # noqa: F401

        db.create_all()
        print('[OK] Database tables created.')

    @app.cli.command('create-user')
    @click.option('--email', prompt='Email', help='User email', envvar='BOXOFFICE_USER_EMAIL')
    @click.option('--password', prompt='Password', hide_input=True, confirmation_prompt=True, help='User password', envvar='BOXOFFICE_USER_PASSWORD')
    @click.option('--first-name', default='Door', help='First name')
    @click.option('--last-name', default='Staff', help='Last name')
    @click.option('--access-level', type=click.Choice(['admin', 'manager', 'staff']), default='staff', help='Access level')
    def create_user(email, password, first_name, last_name, access_level):
        """Create (or update) a back-office account.

        Door staff accounts can scan tickets; managers run events, orders,
        guestlists and affiliates; admins can do everything.
        """
        from boxoffice.models.user import User, AccessLevel

        email = email.strip().lower()
        user = User.query.filter_by(email=email).first()
        if user:
            user.access_level = AccessLevel(access_level)
            user.is_active = True
            user.set_password(password)
            db.session.commit()
            print(f"[UPDATE] {email} -> {user.access_level_label}")
            return

        user = User(
            email=email,
            first_name=first_name,
            last_name=last_name,
            access_level=AccessLevel(access_level),
            is_active=True,
        )
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        print(f"[CREATED] {email} ({user.access_level_label})")


def register_template_filters(app):
    """Register Jinja filters used by the email templates."""
    from boxoffice.utils.email import format_amount

    @app.template_filter('money')
    def money_filter(amount, currency='gbp'):
        return format_amount(amount, currency)


class JSONFormatter(logging.Formatter):
    """JSON log formatter for production (cloud log aggregation)."""

    def format(self, record):
        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'message': record.getMessage(),
            'module': record.module,
            'line': record.lineno,
        }
        # Add request_id if available
        try:
            log_entry['request_id'] = g.get('request_id', '-')
        except RuntimeError:
            pass  # Outside request context
        # Add exception info
        if record.exc_info and record.exc_info[0]:
            log_entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(log_entry, ensure_ascii=False)


def configure_logging(app):
    """Configure application logging.

    Production: JSON to stdout (for cloud log aggregation).
    Development: plain text.
    """
    if app.testing:
        return

    # Request ID middleware
    @app.before_request
    def assign_request_id():
        g.request_id = request.headers.get('X-Request-ID', str(uuid.uuid4())[:8])

    @app.after_request
    def log_request(response):
        app.logger.info(
            '%s %s %s',
            request.method,
            request.path,
            response.status_code,
        )
        return response

    level = getattr(logging, os.environ.get('LOG_LEVEL', 'INFO').upper(), logging.INFO)

    if not app.debug:
        # Production: JSON to stdout
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(JSONFormatter())
        stream_handler.setLevel(level)

        # Clear existing handlers to avoid duplicates
        app.logger.handlers.clear()
        app.logger.addHandler(stream_handler)
        app.logger.setLevel(level)

        # Service modules log through the package logger
        package_logger = logging.getLogger('boxoffice')
        package_logger.handlers.clear()
        package_logger.addHandler(stream_handler)
        package_logger.setLevel(level)
        app.logger.info('BoxOffice startup (JSON logging)')
    else:
        # Development: plain text
        app.logger.setLevel(logging.DEBUG)
        logging.basicConfig(
            level=logging.DEBUG,
            format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
        )
        app.logger.info('BoxOffice startup (development)')


def register_security_headers(app):
    """Register security headers for all responses."""

    @app.after_request
    def add_security_headers(response):
        """Add security headers to every response."""
        # Prevent MIME type sniffing
        response.headers['X-Content-Type-Options'] = 'nosniff'

        # Clickjacking protection
        response.headers['X-Frame-Options'] = 'DENY'

        # Referrer policy
        response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'

        # HSTS - Force HTTPS (1 year, include subdomains)
        if not app.debug:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'

        # Prevent cross-domain policy loading
        response.headers['X-Permitted-Cross-Domain-Policies'] = 'none'

        return response
