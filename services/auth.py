"""
Authentication service: bcrypt password hashing, JWT issuing, and the
FastAPI dependencies that resolve a bearer token to a User.

Routes depend on get_current_user rather than decoding tokens themselves, so
tests (or another identity provider) can swap it via app.dependency_overrides.
"""

import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from fastapi import Depends, Header
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from database import get_db
from models import User
from services.errors import Conflict, Forbidden, Unauthenticated, ValidationError

logger = logging.getLogger(__name__)

JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
JWT_ALGORITHM = "HS256"
JWT_EXPIRE_DAYS = 7

# last_active_at is refreshed at most this often
ACTIVITY_REFRESH_SECONDS = 60

ROLES = ("collector", "employee")

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_token(user: User) -> str:
    """
    Issue an access token for a user.

    The token carries the user's current token_version; bumping it (logout)
    invalidates every token issued before.
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user.id),
        "email": user.email,
        "role": user.role,
        "session_version": user.token_version or 0,
        "iat": now,
        "exp": now + timedelta(days=JWT_EXPIRE_DAYS),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> Dict:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError:
        raise Unauthenticated()


def signup(db: Session, name: Optional[str], email: str, password: str, role: Optional[str] = None) -> User:
    """
    Create an account. Anyone not explicitly signing up as an employee is a collector.

    Raises:
        ValidationError: If email or password is missing
        Conflict: If the email is already registered
    """
    if not email or not password:
        raise ValidationError("Email and password are required")
    if db.query(User).filter(User.email == email).first():
        raise Conflict("Email already registered")

    now = datetime.utcnow()
    user = User(
        name=name,
        email=email,
        password_hash=hash_password(password),
        role="employee" if role == "employee" else "collector",
        settings={},
        last_login_at=now,
        last_active_at=now,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("New %s account %s", user.role, user.email)
    return user


def login(db: Session, email: str, password: str, role: Optional[str] = None) -> User:
    """
    Check credentials and stamp the login time.

    Raises:
        ValidationError: If email or password is missing
        Unauthenticated: On unknown email or wrong password
        Forbidden: If the caller asked for a role the account doesn't have
    """
    if not email or not password:
        raise ValidationError("Email and password are required")
    user = db.query(User).filter(User.email == email).first()
    if not user or not verify_password(password, user.password_hash):
        raise Unauthenticated("Invalid credentials")
    if role and role != user.role:
        raise Forbidden()

    now = datetime.utcnow()
    user.last_login_at = now
    user.last_active_at = now
    db.commit()
    db.refresh(user)
    return user


def logout(db: Session, user: User) -> None:
    """Invalidate every token issued to the user so far."""
    user.token_version = (user.token_version or 0) + 1
    db.commit()


def get_current_user(
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> User:
    """
    FastAPI dependency resolving the bearer token to a User.
    Fails closed: any problem with the header, token or user is Unauthenticated.
    """
    if not authorization:
        raise Unauthenticated()
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthenticated()

    payload = decode_token(token.strip())
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise Unauthenticated()

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise Unauthenticated()
    session_version = payload.get("session_version")
    if isinstance(session_version, int) and session_version != (user.token_version or 0):
        raise Unauthenticated("Session expired")

    now = datetime.utcnow()
    if not user.last_active_at or user.last_active_at < now - timedelta(seconds=ACTIVITY_REFRESH_SECONDS):
        user.last_active_at = now
        db.commit()
        db.refresh(user)
    return user


def require_employee(user: User = Depends(get_current_user)) -> User:
    """FastAPI dependency allowing only employees through."""
    if user.role != "employee":
        raise Forbidden()
    return user


def require_collector(user: User = Depends(get_current_user)) -> User:
    """FastAPI dependency allowing only collectors through."""
    if user.role != "collector":
        raise Forbidden()
    return user
