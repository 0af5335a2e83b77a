# Overview: Back-office user accounts; password policy, bcrypt hashing, and login checks.

"""
User accounts

Every money-moving request is attributed to the user behind its session,
so accounts are created only by administrators (flask users create) and
passwords must pass validate_password_strength before they are hashed.
"""

import re

import bcrypt

from ..extensions import db
from ..models import User
from backoffice.time_utils import utcnow

MIN_PASSWORD_LENGTH = 8

# (pattern, message) pairs checked in order
PASSWORD_RULES = (
    (r"[A-Z]", "Password must contain at least one uppercase letter"),
    (r"[a-z]", "Password must contain at least one lowercase letter"),
    (r"\d", "Password must contain at least one digit"),
    (r"[!@#$%^&*(),.'\":{}|<>]", "Password must contain at least one special character"),
)


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )
    for pattern, message in PASSWORD_RULES:
        if not re.search(pattern, password):
            raise PasswordValidationError(message)


def hash_password(password: str, *, rounds: int = 12) -> str:
    """
    Validate, then bcrypt-hash a password.

    Tests pass a lower rounds value to keep fixtures fast.
    """
    validate_password_strength(password)
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Constant-time check; a malformed stored hash counts as a mismatch."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_user(username: str, email: str, password: str) -> User:
    """
    Raises:
        ValueError: username or email already taken
        PasswordValidationError: weak password
    """
    taken = db.session.query(User.id).filter(
        db.or_(User.username == username, User.email == email)
    ).first()
    if taken:
        raise ValueError("Username or email already exists")

    user = User(username=username, email=email, password_hash=hash_password(password))
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(login: str, password: str) -> User | None:
    """
    Active user matching `login` (username or email) and password, else None.

    Records last_login_at on success.
    """
    user = db.session.query(User).filter(
        db.or_(User.username == login, User.email == login),
        User.is_active.is_(True),
    ).first()
    if user is None or not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user
