# Overview: Service-layer operations for auth; resolves the operator behind every sale and movement.

"""
Authentication Service

WHY: Every sale and stock movement must be attributable to an operator
with a role. Uses bcrypt for password hashing.

Roles are fixed for a single store:
- owner   -> catalogue management, reports, all notifications addressed to owners
- cashier -> cart and checkout (commit engine)
- checker -> stock movements (reconciler)
"""

import re
from dataclasses import dataclass

import bcrypt
from flask import current_app, has_app_context

from ..extensions import db
from ..models import User
from poscore.time_utils import utcnow
from .errors import AuthorizationError, ValidationError


ROLE_OWNER = "owner"
ROLE_CASHIER = "cashier"
ROLE_CHECKER = "checker"
VALID_ROLES = {ROLE_OWNER, ROLE_CASHIER, ROLE_CHECKER}


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    code = "weak_password"


@dataclass(frozen=True)
class Operator:
    """The acting user as seen by the core: identity, display name, role."""
    id: int
    name: str
    role: str

    @classmethod
    def from_user(cls, user: User) -> "Operator":
        return cls(id=user.id, name=user.name, role=user.role)


def require_role(operator: Operator | None, *roles: str) -> Operator:
    """Raise AuthorizationError unless operator holds one of roles."""
    if operator is None:
        raise AuthorizationError("No active operator session")
    if operator.role not in roles:
        raise AuthorizationError(
            f"Role '{operator.role}' may not perform this operation",
            details={"required_roles": sorted(roles), "role": operator.role},
        )
    return operator


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one letter
    - At least one digit
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Za-z]', password):
        raise PasswordValidationError("Password must contain at least one letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")


def _bcrypt_rounds() -> int:
    if has_app_context():
        return int(current_app.config.get("BCRYPT_ROUNDS", 12))
    return 12


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=_bcrypt_rounds())
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """Verify password against bcrypt hash (timing-safe via bcrypt.checkpw)."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database
        return False


def create_user(
    username: str,
    email: str,
    password: str,
    name: str,
    role: str,
) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        ValidationError: unknown role, or username/email already taken
        PasswordValidationError: password doesn't meet requirements
    """
    role = (role or "").strip().lower()
    if role not in VALID_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(sorted(VALID_ROLES))}")

    existing = db.session.query(User).filter(
        db.or_(User.username == username, User.email == email)
    ).first()
    if existing:
        raise ValidationError("Username or email already exists")

    user = User(
        username=username,
        email=email,
        name=name or username,
        role=role,
        password_hash=hash_password(password),
    )

    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Authenticate user with username (or email) and password.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    user = db.session.query(User).filter(
        db.or_(User.username == username, User.email == username),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None
