"""
Learner accounts: registration, password login, and user id checks.

Passwords are hashed with bcrypt. Emails are compared trimmed and lower-cased,
so "Ada@Example.com " and "ada@example.com" are the same account.
"""

import logging
from datetime import datetime, timezone

import bcrypt
from sqlalchemy.orm import Session

from app import crud
from app.exceptions import EmailTakenError, InvalidCredentialsError, UnknownUserError

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def hash_password(plain: str) -> str:
    return bcrypt.hashpw(plain.encode(), bcrypt.gensalt()).decode()


def verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(plain.encode(), hashed.encode())


def register_user(db: Session, name: str, email: str, password: str) -> dict:
    """Create an account and its default rating row. Returns {id, name, email}."""
    email = normalize_email(email)
    if crud.get_user_by_email(db, email):
        raise EmailTakenError(f"Email {email} is already registered")

    now = datetime.now(timezone.utc)
    user = crud.create_user(db, name.strip(), email, hash_password(password), now)
    crud.init_user_rating(db, user["id"], now)
    logger.info(f"[Auth] Registered user {user['id']}")
    return user


def authenticate(db: Session, email: str, password: str) -> dict:
    """Return the user for a matching email / password, else raise InvalidCredentialsError."""
    user = crud.get_user_by_email(db, normalize_email(email))
    if not user or not verify_password(password, user["password_hash"]):
        raise InvalidCredentialsError("Invalid email or password")
    return {"id": user["id"], "name": user["name"], "email": user["email"]}


def require_user(db: Session, user_id: int | None) -> None:
    """Reject an attribution to a user id that has no account. None means anonymous."""
    if user_id is not None and crud.get_user_by_id(db, user_id) is None:
        raise UnknownUserError(user_id)
