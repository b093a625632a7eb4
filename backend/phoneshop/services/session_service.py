# Overview: Service-layer operations for session; encapsulates business logic and database work.

"""
Session Token Management Service

WHY: Secure session management with automatic timeout and revocation.
Tokens are cryptographically secure, hashed in database, and time-limited.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- Absolute timeout (SESSION_HOURS) and idle timeout (SESSION_IDLE_HOURS)
- Revocable on logout
- Role captured at login and immutable for the session lifetime
"""

import secrets
import hashlib
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app, has_app_context

from ..extensions import db
from ..models import SessionToken, User
from phoneshop.time_utils import utcnow


DEFAULT_SESSION_HOURS = 24
DEFAULT_SESSION_IDLE_HOURS = 2


@dataclass
class SessionContext:
    """Resolved identity for one request."""
    user: User
    session: SessionToken
    role: str


def _timeouts() -> tuple[timedelta, timedelta]:
    hours, idle_hours = DEFAULT_SESSION_HOURS, DEFAULT_SESSION_IDLE_HOURS
    if has_app_context():
        hours = current_app.config.get("SESSION_HOURS", hours)
        idle_hours = current_app.config.get("SESSION_IDLE_HOURS", idle_hours)
    return timedelta(hours=hours), timedelta(hours=idle_hours)


def generate_token() -> str:
    """
    Generate cryptographically secure random token.

    Returns 64-character hex string (32 bytes of entropy).
    This is the plaintext token sent to client (never stored).
    """
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    WHY SHA-256 not bcrypt: Tokens are already high-entropy (unlike passwords).
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    """
    Create new session token for user.

    Returns (session_record, plaintext_token).
    Client receives plaintext_token, database stores only the hash.
    """
    user = db.session.query(User).filter_by(id=user_id).first()
    if not user:
        raise ValueError("User not found")
    if not user.is_active:
        raise ValueError("User is not active")

    plaintext_token = generate_token()
    absolute_timeout, _ = _timeouts()
    now = utcnow()

    session = SessionToken(
        user_id=user.id,
        role=user.role,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + absolute_timeout,
        user_agent=(user_agent or "")[:512] or None,
        ip_address=ip_address,
        is_revoked=False,
    )

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()


def validate_session(token: str) -> SessionContext | None:
    """
    Validate session token and return SessionContext if valid.

    Returns None if:
    - Token is unknown, expired, idle too long, or revoked
    - User account is deactivated

    Updates last_used_at on successful validation (activity tracking).
    """
    if not token:
        return None

    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return None

    now = utcnow()
    _, idle_timeout = _timeouts()

    if session.expires_at < now:
        return None

    if now - session.last_used_at > idle_timeout:
        _revoke(session, "Idle timeout")
        return None

    user = session.user
    if not user or not user.is_active:
        _revoke(session, "User account deactivated")
        return None

    session.last_used_at = now
    db.session.commit()

    return SessionContext(user=user, session=session, role=session.role)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """
    Revoke session token.

    Returns True if session was revoked, False if not found.
    """
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return False

    _revoke(session, reason)
    return True


def revoke_all_user_sessions(user_id: int, reason: str = "Revoke all sessions") -> int:
    """
    Revoke all active sessions for a user.

    Returns count of sessions revoked. Used when an account is re-roled or
    deactivated so no session keeps a stale role.
    """
    now = utcnow()

    sessions = db.session.query(SessionToken).filter_by(
        user_id=user_id,
        is_revoked=False
    ).all()

    for session in sessions:
        session.is_revoked = True
        session.revoked_at = now
        session.revoked_reason = reason

    db.session.commit()
    return len(sessions)
