"""Username/password accounts backed by bcrypt hashes and cookie sessions."""
from __future__ import annotations

import logging

import bcrypt
from fastapi import Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from innovation.models import User

log = logging.getLogger(__name__)

SESSION_USER_KEY = "user_id"


class AuthError(Exception):
    """Signup or login rejected."""


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=10)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def get_user_by_name(session: Session, username: str) -> User | None:
    return session.execute(select(User).where(User.username == username)).scalars().first()


def create_user(session: Session, username: str, password: str) -> User:
    """Register a new account (caller must commit). Raises AuthError on a taken name."""
    username = username.strip()
    if get_user_by_name(session, username) is not None:
        raise AuthError("Username is already taken")
    user = User(username=username, password_hash=hash_password(password))
    session.add(user)
    session.flush()
    log.info("Created user %s", username)
    return user


def authenticate(session: Session, username: str, password: str) -> User:
    user = get_user_by_name(session, username.strip())
    if user is None:
        raise AuthError("User not found")
    if not verify_password(password, user.password_hash):
        raise AuthError("Incorrect password")
    return user


def login(request: Request, user: User) -> None:
    request.session[SESSION_USER_KEY] = user.id


def logout(request: Request) -> None:
    request.session.pop(SESSION_USER_KEY, None)


def current_user(request: Request, session: Session) -> User | None:
    """Resolve the session cookie to a User, or None when anonymous."""
    user_id = request.session.get(SESSION_USER_KEY)
    if user_id is None:
        return None
    return session.get(User, user_id)


def user_summary(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }
