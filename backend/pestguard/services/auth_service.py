# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Admins, employees and access owners log in with email + password.
One login endpoint serves all three; the account table that matches
decides the actor role.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Staff passwords must be 8+ chars with upper, lower, digit and special char
- One-time access owner codes are 6 digits and skip the strength check
"""

from __future__ import annotations

import re

import bcrypt
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Admin, Employee, AccessOwner
from ..validation import ValidationError, ConflictError
from .session_service import Actor
from pestguard.time_utils import utcnow


# Lookup order on login: the first table holding the email wins
_LOGIN_ORDER = (
    ("admin", Admin),
    ("employee", Employee),
    ("customer", AccessOwner),
)

_STAFF_MODELS = {
    "admin": Admin,
    "employee": Employee,
}


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str, *, rounds: int = 12) -> str:
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Malformed hashes verify as False rather than raising.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def normalize_email(email: str | None) -> str:
    return str(email or "").strip().lower()


def create_staff_account(kind: str, *, email: str, password: str, full_name: str | None = None):
    """Create an Admin or Employee account with a validated password."""
    model = _STAFF_MODELS.get(kind)
    if model is None:
        raise ValidationError("kind must be admin or employee")

    normalized = normalize_email(email)
    if not normalized:
        raise ValidationError("email is required")

    validate_password_strength(password)

    account = model(
        email=normalized,
        full_name=(full_name or "").strip() or None,
        password_hash=hash_password(password),
        is_active=True,
    )
    db.session.add(account)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"{kind.title()} with this email already exists") from None
    return account


def authenticate(email: str, password: str) -> Actor | None:
    """
    Return the Actor for valid credentials, None otherwise.

    Inactive accounts never authenticate.
    """
    normalized = normalize_email(email)
    if not normalized or not password:
        return None

    for role, model in _LOGIN_ORDER:
        account = db.session.query(model).filter_by(email=normalized).first()
        if account is not None:
            break
    else:
        return None

    if not account.is_active or not verify_password(password, account.password_hash):
        return None

    account.last_login_at = utcnow()
    db.session.commit()

    return Actor(id=account.id, role=role, display_name=account.display_name)
