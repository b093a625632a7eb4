# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every action must be attributable. Uses bcrypt for secure password
hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
"""

import bcrypt
import re
from ..extensions import db
from ..models import User
from ..permissions import is_valid_role, ALL_ROLES
from ..validation import ValidationError, ConflictError, NotFoundError
from . import session_service
from phoneshop.time_utils import utcnow


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str, rounds: int = 12) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database
        return False


def _validate_role(role: str) -> str:
    role = (role or "").strip().upper()
    if not is_valid_role(role):
        raise ValidationError(f"role must be one of {sorted(ALL_ROLES)}")
    return role


def create_user(username: str, password: str, role: str, *, bcrypt_rounds: int = 12) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        PasswordValidationError: weak password
        ValidationError: bad username or role
        ConflictError: username taken
    """
    username = (username or "").strip()
    if not username:
        raise ValidationError("username is required")
    if len(username) > 64:
        raise ValidationError("username exceeds max length 64")

    role = _validate_role(role)

    existing = db.session.query(User).filter_by(username=username).first()
    if existing:
        raise ConflictError(f"Username '{username}' already exists")

    user = User(
        username=username,
        password_hash=hash_password(password, rounds=bcrypt_rounds),
        role=role,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def update_user(user_id: int, *, role: str | None = None, is_active: bool | None = None,
                password: str | None = None, bcrypt_rounds: int = 12) -> User:
    user = db.session.query(User).filter_by(id=user_id).first()
    if not user:
        raise NotFoundError(f"User {user_id} not found")

    role_changed = False
    if role is not None:
        new_role = _validate_role(role)
        role_changed = new_role != user.role
        user.role = new_role
    if is_active is not None:
        role_changed = role_changed or (user.is_active and not is_active)
        user.is_active = bool(is_active)
    if password is not None:
        user.password_hash = hash_password(password, rounds=bcrypt_rounds)

    db.session.commit()

    # Sessions carry the role they logged in with
    if role_changed:
        session_service.revoke_all_user_sessions(user.id, reason="Role or status changed")
    return user


def list_users(include_inactive: bool = False) -> list[User]:
    query = db.session.query(User)
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))
    return query.order_by(User.username).all()


def authenticate(username: str, password: str) -> User | None:
    """
    Authenticate user by username and password.

    Returns User if credentials valid and account active, None otherwise.
    Updates last_login_at on success.
    """
    user = db.session.query(User).filter_by(username=(username or "").strip()).first()

    if not user or not user.is_active:
        return None

    if not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()

    return user
