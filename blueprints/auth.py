from flask import Blueprint, current_app, g, jsonify, request, session
from functools import wraps

from models import db, User, Role, current_time

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')


def json_body() -> dict:
    """Request payload from JSON, falling back to form fields."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def error_response(code: str, message: str, status: int):
    return jsonify({'error': code, 'message': message}), status


# Helper function - load current user
def load_current_user():
    """Load user into g.current_user for easy access"""
    if 'user_id' in session:
        g.current_user = db.session.get(User, session['user_id'])
    else:
        g.current_user = None


def login_required(f):
    """Require any logged-in user"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not getattr(g, 'current_user', None):
            return error_response('unauthorized', 'Please log in to continue.', 401)
        return f(*args, **kwargs)
    return decorated_function


def require_role(*roles):
    """Require one of ``roles``; admins always pass."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, 'current_user', None)
            if not user:
                return error_response('unauthorized', 'Please log in to continue.', 401)
            if not user.is_admin and not any(user.has_role(role) for role in roles):
                return error_response(
                    'forbidden', f"This action needs the {' or '.join(roles)} role.", 403
                )
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def check_user_uniqueness(username, email):
    """
    Check if username or email already exists in database.
    Returns list of errors. Requires Flask app context.
    """
    errors = []

    if User.query.filter_by(username=username).first():
        errors.append("Username already exists")

    if User.query.filter_by(email=email).first():
        errors.append("Email already registered")

    return errors


@auth_bp.route('/register', methods=['POST'])
def register():
    """Create a player account, optionally also an organizer or sponsor."""
    data = json_body()
    username = (data.get('username') or '').strip()
    email = (data.get('email') or '').strip()
    password = data.get('password') or ''
    roles = data.get('roles') or [Role.PLAYER.value]
    if isinstance(roles, str):
        roles = [roles]

    # Validate format (no DB queries)
    errors = User.validate_format(username, email, password, roles)

    # Check uniqueness (requires DB queries)
    if not errors:
        errors.extend(check_user_uniqueness(username, email))

    if errors:
        return jsonify({'error': 'validation_failed', 'messages': errors}), 400

    user = User(
        username=username,
        email=email,
        display_name=(data.get('display_name') or '').strip() or None,
        roles=sorted(set(roles) | {Role.PLAYER.value}),
    )
    user.set_password(password)
    db.session.add(user)
    db.session.commit()

    current_app.logger.info('Registered user %s with roles %s', user.username, user.roles)
    return jsonify(user.to_dict()), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    data = json_body()
    username = (data.get('username') or '').strip()
    password = data.get('password') or ''

    user = User.query.filter_by(username=username).first()
    if not user or not user.check_password(password):
        current_app.logger.warning('Failed login for %s', username or '<blank>')
        return error_response('invalid_credentials', 'Invalid username or password.', 401)

    # Set session data
    session.clear()
    session['user_id'] = user.id
    session['username'] = user.username
    session['logged_in_at'] = current_time().isoformat()
    session.modified = True

    return jsonify(user.to_dict())


@auth_bp.route('/logout', methods=['POST'])
def logout():
    session.clear()
    return jsonify({'message': 'You have been logged out.'})


@auth_bp.route('/me')
@login_required
def me():
    return jsonify(g.current_user.to_dict())
