# auth.py - registration, session login and the role checks used by every other blueprint

from functools import wraps

from flask import Blueprint, request, jsonify, current_app
from flask_login import LoginManager, login_user, logout_user, current_user
from sqlalchemy import func

from models import db, User, Role
from errors import AuthRequired, Forbidden, ValidationFailed, Conflict

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')

login_manager = LoginManager()


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, user_id)


def session_user():
    """Resolve the caller from the session, or raise AUTH_REQUIRED."""
    if not current_user.is_authenticated:
        raise AuthRequired()
    # unwrap the werkzeug proxy so handlers get a plain model instance
    return current_user._get_current_object()


def login_required_user(view):
    # resolves the caller once and hands it to the view as `user`
    @wraps(view)
    def wrapper(*args, **kwargs):
        return view(*args, user=session_user(), **kwargs)
    return wrapper


def admin_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        user = session_user()
        if not user.is_admin:
            raise Forbidden('Admin access required')
        return view(*args, user=user, **kwargs)
    return wrapper


def json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationFailed('Request body must be a JSON object')
    return data


def create_user(name, email, password, role=Role.BUYER):
    name = (name or '').strip()
    email = (email or '').strip().lower()
    if not name or not email or not password:
        raise ValidationFailed('Missing required fields')
    if '@' not in email:
        raise ValidationFailed('Invalid email address')
    if role not in Role.ALL:
        raise ValidationFailed('Invalid role')
    if User.query.filter(func.lower(User.email) == email).first():
        raise Conflict('User with this email already exists')

    user = User(name=name, email=email, role=role)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    current_app.logger.info('created %s account %s', role, email)
    return user


@auth_bp.route('/register', methods=['POST'])
def register():
    data = json_body()
    # public sign-up always creates buyers; admins come from the cli
    user = create_user(data.get('name'), data.get('email'), data.get('password'))
    return jsonify({'message': 'User created successfully', 'user': user.to_dict()}), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    data = json_body()
    email = (data.get('email') or '').strip().lower()
    user = User.query.filter(func.lower(User.email) == email).first()
    if not user or not user.check_password(data.get('password') or ''):
        current_app.logger.warning('failed login for %s', email)
        raise AuthRequired('Invalid email or password')
    login_user(user)
    return jsonify({'user': user.to_dict()})


@auth_bp.route('/logout', methods=['POST'])
@login_required_user
def logout(user):
    logout_user()
    return jsonify({'message': 'Logged out'})


@auth_bp.route('/me')
@login_required_user
def me(user):
    return jsonify({'user': user.to_dict()})
