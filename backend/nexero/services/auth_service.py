# Overview: Service-layer operations for auth; password hashing, user creation and login.

"""
Authentication Service with Multi-Tenant Support

Users belong to exactly one organization (org_id). Login is by email,
which is unique across the whole system so the tenant is derived from it.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, upper, lower, digit and special char required
- Session tokens managed separately (see session_service.py)
- Authentication fails for inactive users and inactive organizations
"""

from __future__ import annotations

import re

import bcrypt

from ..extensions import db
from ..models import User, Organization
from ..errors import ValidationError
from .permission_service import ROLES
from nexero.time_utils import utcnow


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    code = "WEAK_PASSWORD"


def validate_password_strength(password: str) -> None:
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


def hash_password(password: str) -> str:
    """Hash password using bcrypt with cost factor 12, after the strength check."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check. A malformed stored hash never matches."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(
    email: str,
    name: str,
    password: str,
    org_id: int,
    role: str = "SELLER",
) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        ValidationError: If org doesn't exist or is inactive, the email is
            taken or the role is unknown
        PasswordValidationError: If password doesn't meet requirements
    """
    org = db.session.query(Organization).filter_by(id=org_id).first()
    if not org:
        raise ValidationError("Organization not found")
    if not org.is_active:
        raise ValidationError("Organization is not active")

    role = (role or "").upper()
    if role not in ROLES:
        raise ValidationError(f"Unknown role: {role}", details={"allowed": list(ROLES)})

    email = (email or "").strip().lower()
    if not email:
        raise ValidationError("email is required")

    existing = db.session.query(User).filter(User.email == email).first()
    if existing:
        raise ValidationError("Email already exists")

    password_hash = hash_password(password)

    user = User(
        org_id=org_id,
        email=email,
        name=name or email,
        role=role,
        password_hash=password_hash,
    )

    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate user with email and password.

    Returns User if credentials are valid and the organization is active,
    None otherwise. Updates last_login_at on success.
    """
    user = db.session.query(User).filter(
        User.email == (email or "").strip().lower(),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    org = db.session.query(Organization).filter_by(id=user.org_id).first()
    if not org or not org.is_active:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None
