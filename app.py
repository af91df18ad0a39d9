from flask import Flask, jsonify, request
from sqlalchemy.orm.exc import StaleDataError
from werkzeug.exceptions import HTTPException
import logging
import os

from errors import ConcurrentUpdate, TournamentError
from models import db, User, init_default_data
from blueprints.auth import auth_bp, load_current_user
from blueprints.organizer import organizer_bp
from blueprints.player import player_bp
from blueprints.public import public_bp

app = Flask(__name__)

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


def _env_flag(name: str, default: str = 'false') -> bool:
    return os.environ.get(name, default).strip().lower() in {'1', 'true', 'yes', 'on'}


# Configuration
app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'riftarena')
app.config['ELO_K_FACTOR'] = float(os.environ.get('ELO_K_FACTOR', 32))
app.config['STARTING_ELO'] = float(os.environ.get('STARTING_ELO', 1000))
app.config['AUTO_COMPLETE_TOURNAMENTS'] = _env_flag('AUTO_COMPLETE_TOURNAMENTS')
app.config['LOG_LEVEL'] = os.environ.get('LOG_LEVEL', 'INFO').upper()

logging.basicConfig(
    level=app.config['LOG_LEVEL'],
    format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
)
app.logger.setLevel(app.config['LOG_LEVEL'])

# Database configuration - supports both local SQLite and remote PostgreSQL
DATABASE_URL = os.environ.get('DATABASE_URL')

sqlite_path = None

if DATABASE_URL:
    # Heroku PostgreSQL URL fix (postgres:// → postgresql://)
    if DATABASE_URL.startswith('postgres://'):
        DATABASE_URL = DATABASE_URL.replace('postgres://', 'postgresql://', 1)
    app.config['SQLALCHEMY_DATABASE_URI'] = DATABASE_URL
else:
    # Fallback to SQLite for local development
    default_sqlite_dir = os.path.join(BASE_DIR, 'instance')
    os.makedirs(default_sqlite_dir, exist_ok=True)
    sqlite_path = os.environ.get('SQLITE_PATH', os.path.join(default_sqlite_dir, 'riftarena.db'))
    app.config['SQLALCHEMY_DATABASE_URI'] = f'sqlite:///{sqlite_path}'

app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
if not app.config['SQLALCHEMY_DATABASE_URI'].startswith('sqlite'):
    app.config['SQLALCHEMY_ENGINE_OPTIONS'] = {
        'pool_pre_ping': True,
        'pool_recycle': 300,
    }

db.init_app(app)

with app.app_context():
    is_new_db = False
    if sqlite_path:
        is_new_db = not os.path.exists(sqlite_path)

    db.create_all()

    # Seed defaults only if database was freshly created or critical records missing
    if is_new_db or not User.query.filter_by(username='admin').first():
        init_default_data()

    app.logger.info('Database ready at %s', app.config['SQLALCHEMY_DATABASE_URI'].split('@')[-1])

# Register blueprints
app.register_blueprint(auth_bp)
app.register_blueprint(organizer_bp)
app.register_blueprint(player_bp)
app.register_blueprint(public_bp)


@app.before_request
def before_request():
    """Load current user before every request to ANY route"""
    load_current_user()


@app.errorhandler(TournamentError)
def handle_tournament_error(exc):
    db.session.rollback()
    app.logger.warning('Rejected %s %s: %s (%s)', request.method, request.path, exc.code, exc.message)
    return jsonify(exc.to_dict()), exc.status_code


@app.errorhandler(StaleDataError)
def handle_stale_data(exc):
    db.session.rollback()
    error = ConcurrentUpdate()
    app.logger.warning('Concurrent update on %s %s', request.method, request.path)
    return jsonify(error.to_dict()), error.status_code


@app.errorhandler(ValueError)
def handle_value_error(exc):
    db.session.rollback()
    app.logger.warning('Invalid request %s %s: %s', request.method, request.path, exc)
    return jsonify({'error': 'invalid_request', 'message': str(exc)}), 400


@app.errorhandler(HTTPException)
def handle_http_error(exc):
    return jsonify({'error': exc.name.lower().replace(' ', '_'), 'message': exc.description}), exc.code


@app.route('/')
def index():
    return jsonify(
        {
            'name': 'Rift Arena',
            'endpoints': ['/auth', '/organizer', '/player', '/public'],
        }
    )


if __name__ == "__main__":
    app.run(debug=True, port=5000)
