"""
Auth router — accounts and anonymous session hand-over.
  POST /auth/register       → create an account (bcrypt password hash)
  POST /auth/login          → check email + password, return the user id
  POST /auth/claim-session  → attach this session's anonymous attempts and votes to a user

Identity is the returned user_id; practice and vote routes reject ids with no account.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app import crud
from app.db import get_db
from app.deps import get_session_hash, http_errors
from app.services.accounts import authenticate, register_user, require_user

logger = logging.getLogger(__name__)

router = APIRouter()


class RegisterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    email: str = Field(min_length=3, max_length=255, pattern=r"^\s*[^@\s]+@[^@\s]+\s*$")
    password: str = Field(min_length=8, max_length=72)


class LoginRequest(BaseModel):
    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=72)


class ClaimRequest(BaseModel):
    user_id: int


def _user_payload(user: dict) -> dict:
    return {"user_id": user["id"], "name": user["name"], "email": user["email"]}


@router.post("/register", status_code=201)
def register(body: RegisterRequest, db: Session = Depends(get_db)):
    with http_errors():
        user = register_user(db, body.name, body.email, body.password)
    return _user_payload(user)


@router.post("/login")
def login(body: LoginRequest, db: Session = Depends(get_db)):
    with http_errors():
        user = authenticate(db, body.email, body.password)
    return _user_payload(user)


@router.post("/claim-session")
def claim_session(
    body: ClaimRequest,
    db: Session = Depends(get_db),
    session_hash: str = Depends(get_session_hash),
):
    """Call right after login so work done before signing in counts for the user."""
    with http_errors():
        require_user(db, body.user_id)

    attempts, votes = crud.claim_session(db, body.user_id, session_hash)
    crud.init_user_rating(db, body.user_id, datetime.now(timezone.utc))
    logger.info(f"[Auth] User {body.user_id} claimed {attempts} attempts, {votes} votes")
    return {"success": True, "attempts_claimed": attempts, "votes_claimed": votes}
