"""
Session router — anonymous session identity.
  POST /session → fresh session token (send back as X-Session-Token) and its hash
"""

from fastapi import APIRouter

from app.services.sessions import hash_session, new_session_token

router = APIRouter()


@router.post("", status_code=201)
def create_session():
    token = new_session_token()
    return {"session_token": token, "session_hash": hash_session(token)}
