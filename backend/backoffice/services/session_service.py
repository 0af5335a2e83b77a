# Overview: Bearer session tokens for back-office users; issue, check, and revoke.

"""
Session tokens

The client holds a random 64-hex-char token; only its SHA-256 digest is
stored. A session ends at the first of:
- SESSION_ABSOLUTE_HOURS after it was issued
- SESSION_IDLE_MINUTES without a validated request
- logout, or deactivation of its user
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from backoffice.time_utils import utcnow

DEFAULT_ABSOLUTE_HOURS = 24
DEFAULT_IDLE_MINUTES = 120


@dataclass
class SessionContext:
    """Authenticated user plus the session record that vouched for them."""
    user: User
    session: SessionToken


def _absolute_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_ABSOLUTE_HOURS", DEFAULT_ABSOLUTE_HOURS))


def _idle_timeout() -> timedelta:
    return timedelta(minutes=current_app.config.get("SESSION_IDLE_MINUTES", DEFAULT_IDLE_MINUTES))


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    # Tokens are high-entropy already, a plain digest is enough (unlike passwords)
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _open_session_for(token: str) -> SessionToken | None:
    return db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token), is_revoked=False
    ).first()


def _mark_revoked(sessions, reason: str) -> int:
    now = utcnow()
    count = 0
    for s in sessions:
        s.is_revoked = True
        s.revoked_at = now
        s.revoked_reason = reason
        count += 1
    db.session.commit()
    return count


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Issue a session for an existing user.

    Returns (record, plaintext_token); the plaintext is never persisted.
    """
    if db.session.get(User, user_id) is None:
        raise ValueError("User not found")

    token = generate_token()
    issued = utcnow()
    record = SessionToken(
        user_id=user_id,
        token_hash=hash_token(token),
        created_at=issued,
        last_used_at=issued,
        expires_at=issued + _absolute_timeout(),
        user_agent=user_agent,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(record)
    db.session.commit()
    return record, token


def validate_session(token: str) -> SessionContext | None:
    """
    Resolve a bearer token to its user, or None.

    Idle sessions and sessions of deactivated users are revoked on the
    way out; a successful check refreshes last_used_at.
    """
    record = _open_session_for(token)
    if record is None:
        return None

    now = utcnow()
    if record.expires_at < now:
        return None
    if now - record.last_used_at > _idle_timeout():
        _mark_revoked([record], "Idle timeout")
        return None

    user = record.user
    if user is None or not user.is_active:
        _mark_revoked([record], "User account deactivated")
        return None

    record.last_used_at = now
    db.session.commit()
    return SessionContext(user=user, session=record)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    record = _open_session_for(token)
    if record is None:
        return False
    _mark_revoked([record], reason)
    return True


def revoke_all_user_sessions(user_id: int, reason: str = "Revoke all sessions") -> int:
    """Revoke every open session of a user; returns how many were open."""
    open_sessions = db.session.query(SessionToken).filter_by(user_id=user_id, is_revoked=False).all()
    return _mark_revoked(open_sessions, reason)
