"""
Credentials and bearer tokens.

Passwords are bcrypt hashes (passlib). Tokens are HS256 JWTs carrying the
user's id, username, email and role. Route handlers receive an explicit
``Identity`` built per request from a verified token.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from config import ACCESS_TOKEN_EXPIRE_MINUTES, BCRYPT_ROUNDS, JWT_ALG, JWT_SECRET
from database import get_db
from errors import AuthenticationError, AuthorizationError
from models import User

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/users/login", auto_error=False)


@dataclass(frozen=True)
class Identity:
    user_id: int
    username: str
    email: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def can_access(self, owner_id: int) -> bool:
        return self.is_admin or self.user_id == owner_id


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {
        "sub": str(user.id),
        "username": user.username,
        "email": user.email,
        "role": user.role,
        "exp": expire,
    }
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALG)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid token")


def verify(db: Session, token: Optional[str]) -> Identity:
    """Resolve a bearer token to the identity of an active user."""
    if not token:
        raise AuthenticationError("Not authenticated")
    payload = decode_token(token)
    try:
        uid = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise AuthenticationError("Invalid token")
    user = db.get(User, uid)
    if user is None:
        raise AuthenticationError("User not found")
    if user.is_blocked:
        logger.info("rejected token for blocked user %s", user.id)
        raise AuthorizationError("Account is blocked")
    # role comes from the row so demotions apply before the token expires
    return Identity(user_id=user.id, username=user.username, email=user.email, role=user.role)


def get_current_user(token: Optional[str] = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> Identity:
    return verify(db, token)


def get_current_admin(identity: Identity = Depends(get_current_user)) -> Identity:
    if not identity.is_admin:
        raise AuthorizationError("Admin access required")
    return identity
