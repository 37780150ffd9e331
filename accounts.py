"""
User accounts: registration, login, and admin/self management.
"""

import logging
import re
from typing import List, Optional, Tuple

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    InfrastructureError,
    NotFoundError,
    ValidationError,
)
from models import User
from schemas import RegisterRequest, UserUpdateRequest
from security import Identity, create_access_token, hash_password, verify_password

logger = logging.getLogger(__name__)

USERNAME_RE = re.compile(r"^[a-zA-Z0-9_]+$")


def validate_username(username: str) -> Tuple[bool, str]:
    """Username rules: 3-30 chars, alphanumeric + underscores."""
    if len(username) < 3:
        return False, "Username must be at least 3 characters"
    if len(username) > 30:
        return False, "Username must be at most 30 characters"
    if not USERNAME_RE.match(username):
        return False, "Username may only contain letters, digits, and underscores"
    return True, ""


def validate_password(password: str) -> Tuple[bool, str]:
    if len(password) < 6:
        return False, "Password must be at least 6 characters"
    return True, ""


def _commit(db: Session, conflict_message: str) -> None:
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(conflict_message)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("user write failed")
        raise InfrastructureError("Could not save user") from exc


def _ensure_unique(db: Session, username: Optional[str], email: Optional[str], exclude_id: Optional[int] = None):
    clauses = []
    if username:
        clauses.append(User.username == username)
    if email:
        clauses.append(User.email == email)
    if not clauses:
        return
    stmt = select(User.id).where(or_(*clauses))
    if exclude_id is not None:
        stmt = stmt.where(User.id != exclude_id)
    if db.scalars(stmt).first() is not None:
        raise ConflictError("A user with this username or email already exists")


def register(db: Session, body: RegisterRequest, role: str = "customer") -> User:
    full_name = body.full_name.strip()
    username = body.username.strip()
    email = str(body.email).lower()
    if not full_name or not username or not body.password:
        raise ValidationError("All required fields must be filled in")
    for ok, msg in (validate_username(username), validate_password(body.password)):
        if not ok:
            raise ValidationError(msg)

    _ensure_unique(db, username, email)
    user = User(
        full_name=full_name,
        username=username,
        email=email,
        phone=(body.phone or "").strip() or None,
        password_hash=hash_password(body.password),
        role=role,
        status="active",
    )
    db.add(user)
    _commit(db, "A user with this username or email already exists")
    logger.info("registered user %s (%s)", user.id, username)
    return user


def authenticate(db: Session, email: str, password: str) -> Tuple[User, str]:
    user = db.scalars(select(User).where(User.email == email.lower())).first()
    if user is None or not verify_password(password, user.password_hash):
        logger.info("failed login for %s", email)
        raise AuthenticationError("Invalid email or password")
    if user.is_blocked:
        raise AuthorizationError("Account is blocked")
    return user, create_access_token(user)


def list_users(db: Session) -> List[User]:
    return list(db.scalars(select(User).order_by(User.id)))


def get_user(db: Session, identity: Identity, user_id: int) -> User:
    if not identity.can_access(user_id):
        raise AuthorizationError("Access denied")
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def update_user(db: Session, identity: Identity, user_id: int, body: UserUpdateRequest) -> User:
    user = get_user(db, identity, user_id)
    changes = body.model_dump(exclude_unset=True)

    # role and status are admin-only; silently ignored for everyone else
    if not identity.is_admin:
        changes.pop("role", None)
        changes.pop("status", None)

    if "username" in changes and changes["username"] is not None:
        changes["username"] = changes["username"].strip()
        ok, msg = validate_username(changes["username"])
        if not ok:
            raise ValidationError(msg)
    if changes.get("email") is not None:
        changes["email"] = str(changes["email"]).lower()
    if "full_name" in changes and not (changes["full_name"] or "").strip():
        raise ValidationError("Full name cannot be empty")

    _ensure_unique(db, changes.get("username"), changes.get("email"), exclude_id=user.id)
    for field, value in changes.items():
        if value is None and field != "phone":
            continue
        setattr(user, field, value)
    _commit(db, "A user with this username or email already exists")
    return user


def delete_user(db: Session, user_id: int) -> None:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    db.delete(user)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise InfrastructureError("Could not delete user") from exc
    logger.info("deleted user %s", user_id)
