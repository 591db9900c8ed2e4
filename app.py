import logging
import os
from datetime import datetime
from functools import wraps

import click
from flask import Flask, Blueprint, jsonify, request
from flask_login import LoginManager, login_user, logout_user, current_user
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from config import Config
from forms import (RegisterForm, LoginForm, PasswordUpdateForm, ContactForm,
                   PaletteForm, PaymentIntentForm)
from github_service import GitHubService
from logging_config import setup_logging
from models import db
from palette_service import PaletteService
from payment_service import PaymentService
from service_errors import ServiceError, ServiceUnavailable
from storage import DatabaseStorage, DuplicateKeyError
from traffic_tracker import TrafficTracker
from visitor_stats import VisitorStats, display_label

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 500


def envelope(success, message, data=None, status=200):
    body = {'success': success, 'message': message}
    if data is not None:
        body['data'] = data
    return jsonify(body), status


def admin_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            return envelope(False, 'Authentication required', status=401)
        if not current_user.is_admin:
            return envelope(False, 'Admin access required', status=403)
        return f(*args, **kwargs)
    return decorated_function


def create_api_blueprint(storage, tracker, stats, github, palettes, payments,
                         default_github_user='febrideveloper', page_size=100):
    """JSON API routes, bound to the collaborators they use"""
    api = Blueprint('api', __name__, url_prefix='/api')

    # Auth

    @api.route('/auth/register', methods=['POST'])
    def register():
        form = RegisterForm()
        if not form.validate():
            return envelope(False, form.first_error(), status=400)

        username = form.username.data
        email = form.email.data

        if storage.get_user_by_username(username):
            return envelope(False, 'Username already taken', status=409)
        if storage.get_user_by_email(email):
            return envelope(False, 'Email already registered', status=409)

        try:
            user = storage.create_user(username, email, form.password.data)
        except DuplicateKeyError as e:
            return envelope(False, str(e), status=409)

        logger.info("Registered user %s", user.username)
        return envelope(True, 'Registration successful', user.to_dict(), status=201)

    @api.route('/auth/login', methods=['POST'])
    def login():
        form = LoginForm()
        if not form.validate():
            return envelope(False, form.first_error(), status=400)

        user = storage.verify_user(form.username.data, form.password.data)
        if not user:
            logger.warning("Failed login for %s", form.username.data)
            return envelope(False, 'Invalid username or password', status=401)

        storage.update_last_login(user.id)
        login_user(user)
        return envelope(True, 'Login successful', user.to_dict())

    @api.route('/auth/logout', methods=['POST'])
    def logout():
        logout_user()
        return envelope(True, 'Logged out')

    @api.route('/auth/me')
    def me():
        if not current_user.is_authenticated:
            return envelope(False, 'Authentication required', status=401)
        return envelope(True, 'OK', current_user.to_dict())

    @api.route('/users/<int:user_id>/password', methods=['PUT'])
    def update_password(user_id):
        if not current_user.is_authenticated:
            return envelope(False, 'Authentication required', status=401)
        if current_user.id != user_id and not current_user.is_admin:
            return envelope(False, 'Not allowed to change this password', status=403)

        form = PasswordUpdateForm()
        if not form.validate():
            return envelope(False, form.first_error(), status=400)

        if not storage.update_user_password(user_id, form.password.data):
            return envelope(False, 'User not found', status=404)

        logger.info("Password changed for user %s", user_id)
        return envelope(True, 'Password updated')

    # Contact

    @api.route('/contact', methods=['POST'])
    def contact():
        form = ContactForm()
        if not form.validate():
            return envelope(False, form.first_error(), status=400)

        message = storage.create_message(
            name=form.name.data,
            email=form.email.data,
            subject=form.subject.data,
            message=form.message.data
        )
        return envelope(True, 'Message sent successfully', message.to_dict(), status=201)

    # Visitors

    @api.route('/visitors', methods=['POST'])
    def track_visit():
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            payload = {}
        observation = tracker.observation_from_request(request, payload)
        visitor = tracker.record_visit(observation)
        return envelope(True, 'Visit recorded', visitor.to_dict(), status=201)

    @api.route('/visitors', methods=['GET'])
    @admin_required
    def visitor_stats():
        summary = stats.get_visitor_stats()
        for name, field in VisitorStats.BREAKDOWNS.items():
            summary[name] = [
                {field: display_label(row[field]), 'count': row['count']}
                for row in summary[name]
            ]
        return envelope(True, 'OK', summary)

    @api.route('/visitors/list')
    @admin_required
    def list_visitors():
        limit = request.args.get('limit', page_size, type=int)
        offset = request.args.get('offset', 0, type=int)
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        offset = max(0, offset)
        rows = []
        for visitor in storage.get_visitors(limit=limit, offset=offset):
            row = visitor.to_dict()
            for field in VisitorStats.BREAKDOWNS.values():
                row[field] = display_label(row[field])
            rows.append(row)
        return envelope(True, 'OK', rows)

    # Admin listings

    @api.route('/admin/users')
    @admin_required
    def list_users():
        return envelope(True, 'OK', [u.to_dict() for u in storage.get_users()])

    @api.route('/admin/messages')
    @admin_required
    def list_messages():
        return envelope(True, 'OK', [m.to_dict() for m in storage.get_messages()])

    @api.route('/admin/messages/<int:message_id>')
    @admin_required
    def get_message(message_id):
        message = storage.get_message(message_id)
        if not message:
            return envelope(False, 'Message not found', status=404)
        return envelope(True, 'OK', message.to_dict())

    # Integrations

    @api.route('/github')
    def github_repos():
        username = request.args.get('username') or default_github_user
        try:
            repos = github.list_repos(username)
        except ServiceError as e:
            return envelope(False, str(e), status=502)
        return envelope(True, 'OK', repos)

    @api.route('/generate-palette', methods=['POST'])
    def generate_palette():
        form = PaletteForm()
        if not form.validate():
            return envelope(False, form.first_error(), status=400)

        try:
            colors = palettes.generate_palette(
                form.description.data,
                form.mood.data,
                form.numColors.data or 5
            )
        except ServiceUnavailable as e:
            return envelope(False, str(e), status=503)
        except ServiceError as e:
            return envelope(False, str(e), status=502)
        return envelope(True, 'Palette generated', {'colors': colors})

    @api.route('/create-payment-intent', methods=['POST'])
    def create_payment_intent():
        form = PaymentIntentForm()
        if not form.validate():
            return envelope(False, form.first_error(), status=400)

        try:
            client_secret = payments.create_payment_intent(
                float(form.amount.data),
                form.productId.data,
                form.productName.data or None
            )
        except ServiceUnavailable as e:
            return envelope(False, str(e), status=503)
        except ServiceError as e:
            return envelope(False, str(e), status=502)
        return envelope(True, 'Payment intent created', {'clientSecret': client_secret})

    return api


def register_error_handlers(app):
    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return envelope(False, e.description, status=e.code)

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(e):
        db.session.rollback()
        logger.exception("Database error: %s", e)
        return envelope(False, 'Internal server error', status=500)

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        db.session.rollback()
        logger.exception("Unexpected error: %s", e)
        return envelope(False, 'Internal server error', status=500)


def register_commands(app, storage):
    @app.cli.command('create-admin')
    @click.option('--username', default=lambda: os.getenv('ADMIN_USERNAME', 'admin'))
    @click.option('--email', default=lambda: os.getenv('ADMIN_EMAIL', 'admin@localhost.dev'))
    @click.option('--password', default=lambda: os.getenv('ADMIN_PASSWORD'))
    def create_admin(username, email, password):
        """Create an admin account"""
        if not password:
            raise click.UsageError('Provide --password or set ADMIN_PASSWORD')
        if storage.get_user_by_username(username) or storage.get_user_by_email(email):
            raise click.ClickException(f'User {username} or email {email} already exists')
        try:
            storage.create_user(username, email, password, role='admin')
        except DuplicateKeyError as e:
            raise click.ClickException(str(e))
        click.echo(f'Created admin {username}')


def create_app(config_object=None):
    app = Flask(__name__)
    app.config.from_object(config_object or Config)

    if not app.testing:
        setup_logging(app.config.get('LOG_LEVEL', 'INFO'))

    db.init_app(app)

    storage = DatabaseStorage(db)
    tracker = TrafficTracker(storage)
    stats = VisitorStats(db)
    timeout = app.config['HTTP_TIMEOUT']

    login_manager = LoginManager()
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id):
        return storage.get_user(int(user_id))

    app.register_blueprint(create_api_blueprint(
        storage=storage,
        tracker=tracker,
        stats=stats,
        github=GitHubService(token=app.config['GITHUB_TOKEN'], timeout=timeout),
        palettes=PaletteService(
            api_key=app.config['OPENAI_API_KEY'],
            base_url=app.config['OPENAI_API_BASE'],
            model=app.config['OPENAI_MODEL'],
            timeout=max(timeout, 30)
        ),
        payments=PaymentService(
            secret_key=app.config['STRIPE_SECRET_KEY'],
            currency=app.config['PAYMENT_CURRENCY']
        ),
        default_github_user=app.config['GITHUB_USERNAME'],
        page_size=app.config['VISITOR_PAGE_SIZE']
    ))

    @app.route('/health')
    def health_check():
        return {'status': 'healthy', 'timestamp': datetime.now().isoformat()}

    register_error_handlers(app)
    register_commands(app, storage)

    # Create database tables on startup
    with app.app_context():
        db.create_all()

    return app


if __name__ == '__main__':
    create_app().run(debug=True)
