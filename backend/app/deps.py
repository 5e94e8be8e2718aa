"""
Request-level dependencies shared by the routers: the problem corpus, the
practice session registry, session identity, admin auth, and the mapping
from domain errors to HTTP errors.
"""

import hmac
import logging
from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import Header, HTTPException, Request
from sqlalchemy.orm import Session

from app import crud
from app.config import settings
from app.exceptions import (
    EmailTakenError,
    InvalidCredentialsError,
    InvalidPairError,
    InvalidTransitionError,
    JobAlreadyRunningError,
    SessionNotFoundError,
    UnknownProblemError,
    UnknownUserError,
)
from app.services.corpus import ProblemRepository
from app.services.practice import difficulty_map
from app.services.sessions import SessionRegistry, hash_session, is_valid_token

logger = logging.getLogger(__name__)


def get_corpus(request: Request) -> ProblemRepository:
    return request.app.state.corpus


def get_sessions(request: Request) -> SessionRegistry:
    return request.app.state.sessions


def get_session_hash(x_session_token: str | None = Header(default=None)) -> str:
    """Hash of the anonymous session token sent in X-Session-Token."""
    if not is_valid_token(x_session_token):
        raise HTTPException(status_code=401, detail="Session required. Please refresh the page.")
    return hash_session(x_session_token)


def require_admin(authorization: str | None = Header(default=None)) -> None:
    if not settings.admin_token:
        logger.error("[Admin] ADMIN_TOKEN is not configured; admin endpoints disabled")
        raise HTTPException(status_code=401, detail="Unauthorized")
    expected = f"Bearer {settings.admin_token}"
    if not authorization or not hmac.compare_digest(authorization.encode(), expected.encode()):
        raise HTTPException(status_code=401, detail="Unauthorized")


def current_difficulty_map(db: Session, corpus: ProblemRepository) -> dict[str, int]:
    """Scheduler view of the corpus: live ratings where they exist, seeds otherwise."""
    return difficulty_map(corpus.all(), crud.get_all_problem_ratings(db))


@contextmanager
def http_errors() -> Iterator[None]:
    """Translate domain errors raised inside a route into HTTP errors."""
    try:
        yield
    except (UnknownProblemError, UnknownUserError, SessionNotFoundError) as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except (InvalidPairError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except InvalidCredentialsError as exc:
        raise HTTPException(status_code=401, detail=str(exc))
    except (InvalidTransitionError, JobAlreadyRunningError, EmailTakenError) as exc:
        raise HTTPException(status_code=409, detail=str(exc))
