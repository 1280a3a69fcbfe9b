"""Campus Attendance - Application Factory."""
import logging
import os
from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_jwt_extended import JWTManager
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from campus_attendance.services.notification_service import RealtimeNotifier

# Initialize extensions
db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["200 per day", "50 per hour"]
)
notifier = RealtimeNotifier()


def create_app(config_name: str = None) -> Flask:
    """Application factory pattern."""
    app = Flask(__name__)

    # Load configuration
    from campus_attendance.config import get_config
    config_class = get_config(config_name)
    app.config.from_object(config_class)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    limiter.init_app(app)
    notifier.init_app(app)

    # Configure CORS
    CORS(app, origins=app.config.get('CORS_ORIGINS', ["*"]))

    # Setup logging
    setup_logging(app)

    # Register blueprints
    register_blueprints(app)

    # Register error handlers
    register_error_handlers(app)

    # Setup database
    setup_database(app)

    # Add CLI commands
    register_commands(app)

    # Add health check
    @app.route('/health')
    def health_check():
        return jsonify({
            'status': 'healthy',
            'service': 'Campus Attendance',
            'version': '1.0.0'
        })

    return app


def register_blueprints(app: Flask) -> None:
    """Register all application blueprints."""
    from campus_attendance.api.auth import auth_bp
    from campus_attendance.api.attendance import attendance_bp
    from campus_attendance.api.wifi import wifi_bp
    from campus_attendance.api.face import face_bp
    from campus_attendance.api.events import events_bp

    # Auth
    app.register_blueprint(auth_bp, url_prefix='/api/auth')

    # Core Features
    app.register_blueprint(attendance_bp, url_prefix='/api/attendance')
    app.register_blueprint(wifi_bp, url_prefix='/api/wifi')
    app.register_blueprint(face_bp, url_prefix='/api/face')

    # Realtime
    app.register_blueprint(events_bp, url_prefix='/api/events')

    # Swagger UI
    from campus_attendance.utils.swagger import generate_swagger_spec, get_swagger_blueprint, SWAGGER_URL, API_URL

    @app.route(API_URL)
    def swagger_spec():
        """Serve Swagger/OpenAPI specification."""
        return jsonify(generate_swagger_spec())

    app.register_blueprint(get_swagger_blueprint(), url_prefix=SWAGGER_URL)


def register_error_handlers(app: Flask) -> None:
    """Register error handlers."""
    from campus_attendance.utils.helpers import handle_error, error_response
    from campus_attendance.utils.exceptions import AttendanceError
    from campus_attendance.utils.validators import ValidationError
    from werkzeug.exceptions import HTTPException

    @app.errorhandler(AttendanceError)
    def attendance_error(error):
        return error_response(error.message, error.status_code, code=error.code)

    @app.errorhandler(ValidationError)
    def validation_error(error):
        return error_response(str(error), 400, code='validation_error')

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return handle_error(error, 500)

    @app.errorhandler(HTTPException)
    def handle_exception(e):
        return handle_error(e.description, e.code)

    # JWT error handlers
    @jwt.expired_token_loader
    def expired_token_callback(jwt_header, jwt_payload):
        return error_response('Token has expired', 401)

    @jwt.invalid_token_loader
    def invalid_token_callback(error):
        return error_response('Invalid token', 401)

    @jwt.unauthorized_loader
    def missing_token_callback(error):
        return error_response('Authorization token required', 401)


def setup_logging(app: Flask) -> None:
    """Setup application logging."""
    app.logger.setLevel(getattr(logging, app.config.get('LOG_LEVEL', 'INFO'), logging.INFO))

    if not app.debug and not app.testing:
        log_file = app.config.get('LOG_FILE', 'logs/app.log')
        log_dir = os.path.dirname(log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)

        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)

        app.logger.info('Campus Attendance startup')


def setup_database(app: Flask) -> None:
    """Setup database connections."""
    with app.app_context():
        # Import all models
        from campus_attendance.models import (  # noqa: F401
            User, UserRole,
            Subject, Timetable,
            AttendanceSession, SessionStatus,
            AttendanceRecord, AttendanceStatus,
            WifiSession, ConnectedDevice
        )


def register_commands(app: Flask) -> None:
    """Register CLI commands."""
    import click

    @app.cli.command()
    @click.option('--drop', is_flag=True, help='Drop existing tables')
    def init_db(drop):
        """Initialize the database."""
        if drop:
            db.drop_all()
            click.echo('Dropped all tables.')

        db.create_all()
        click.echo('Created all tables.')

        # Create default admin
        from campus_attendance.models.user import User, UserRole

        admin = User.query.filter_by(email='admin@campus.edu').first()
        if not admin:
            admin = User(
                email='admin@campus.edu',
                name='System Admin',
                role=UserRole.ADMIN
            )
            admin.set_password('admin123456')
            db.session.add(admin)
            db.session.commit()
            click.echo('Created admin user: admin@campus.edu / admin123456')

    @app.cli.command()
    def seed_db():
        """Seed database with test data."""
        from campus_attendance.services.seed_service import SeedService

        try:
            SeedService.seed_all()
            click.echo('Database seeded successfully!')
        except Exception as e:
            db.session.rollback()
            click.echo(f'Error seeding database: {str(e)}')

    @app.cli.command()
    def create_admin():
        """Create admin user."""
        email = click.prompt('Admin email')
        name = click.prompt('Admin name')
        password = click.prompt('Password', hide_input=True)

        from campus_attendance.models.user import User, UserRole

        admin = User(
            email=email.lower().strip(),
            name=name,
            role=UserRole.ADMIN
        )
        admin.set_password(password)

        try:
            db.session.add(admin)
            db.session.commit()
            click.echo(f'Admin user created: {email}')
        except Exception as e:
            db.session.rollback()
            click.echo(f'Error creating admin: {str(e)}')
