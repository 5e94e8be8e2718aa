"""
All database operations.
Uses raw SQL via SQLAlchemy text(); statements stay within the subset
PostgreSQL and SQLite share (ON CONFLICT upserts, RETURNING).

Functions that belong to a larger unit of work (the rating batch) do not
commit; the caller owns the transaction. Everything else commits itself.
"""

from datetime import datetime

from sqlalchemy import bindparam, text
from sqlalchemy.orm import Session

from app.services.elo import DEFAULT_RATING


# ── Users ──────────────────────────────────────────────────────────────────────

def create_user(db: Session, name: str, email: str, password_hash: str, now: datetime) -> dict:
    row = db.execute(
        text("""
            INSERT INTO users (name, email, password_hash, created_at)
            VALUES (:name, :email, :pw, :now)
            RETURNING id, name, email
        """),
        {"name": name, "email": email, "pw": password_hash, "now": now},
    ).fetchone()
    db.commit()
    return dict(row._mapping)


def get_user_by_email(db: Session, email: str) -> dict | None:
    row = db.execute(
        text("SELECT id, name, email, password_hash FROM users WHERE email = :e"),
        {"e": email},
    ).fetchone()
    return dict(row._mapping) if row else None


def get_user_by_id(db: Session, user_id: int) -> dict | None:
    row = db.execute(
        text("SELECT id, name, email FROM users WHERE id = :uid"),
        {"uid": user_id},
    ).fetchone()
    return dict(row._mapping) if row else None


# ── Problem ratings ────────────────────────────────────────────────────────────

def get_problem_ratings(db: Session, problem_ids: list[str]) -> dict[str, dict]:
    """Return {problem_id: {rating, n_votes, n_attempts}} for the ids that have a row."""
    if not problem_ids:
        return {}
    rows = db.execute(
        text("""
            SELECT problem_id, rating, n_votes, n_attempts
            FROM problem_ratings
            WHERE problem_id IN :ids
        """).bindparams(bindparam("ids", expanding=True)),
        {"ids": list(problem_ids)},
    ).fetchall()
    return {
        r.problem_id: {"rating": r.rating, "n_votes": r.n_votes, "n_attempts": r.n_attempts}
        for r in rows
    }


def get_all_problem_ratings(db: Session) -> dict[str, int]:
    """Return {problem_id: rating} for every rated problem."""
    rows = db.execute(text("SELECT problem_id, rating FROM problem_ratings")).fetchall()
    return {r[0]: int(r[1]) for r in rows}


def get_problem_rating_or_default(db: Session, problem_id: str, default: int = DEFAULT_RATING) -> int:
    """Live rating of a problem; `default` when the problem has never been rated."""
    row = db.execute(
        text("SELECT rating FROM problem_ratings WHERE problem_id = :p"),
        {"p": problem_id},
    ).fetchone()
    if row is None:
        return default
    return int(row[0])


def insert_default_problem_ratings(db: Session, problem_ids: list[str], now: datetime) -> None:
    """Create default rows for problems that have none. Does not commit."""
    for pid in problem_ids:
        db.execute(
            text("""
                INSERT INTO problem_ratings (problem_id, rating, n_votes, n_attempts, updated_at)
                VALUES (:p, :r, 0, 0, :now)
                ON CONFLICT (problem_id) DO NOTHING
            """),
            {"p": pid, "r": DEFAULT_RATING, "now": now},
        )


def update_problem_rating_if_unchanged(
    db: Session,
    problem_id: str,
    old_rating: int,
    old_n_votes: int,
    rating: int,
    n_votes: int,
    now: datetime,
) -> bool:
    """
    Compare-and-set write of a problem's rating and vote count. Does not commit.

    Returns False when the row no longer holds (old_rating, old_n_votes).
    """
    result = db.execute(
        text("""
            UPDATE problem_ratings
            SET rating = :r, n_votes = :n, updated_at = :now
            WHERE problem_id = :p AND rating = :old_r AND n_votes = :old_n
        """),
        {
            "p": problem_id, "r": rating, "n": n_votes, "now": now,
            "old_r": old_rating, "old_n": old_n_votes,
        },
    )
    return result.rowcount == 1


def increment_problem_attempts(db: Session, problem_id: str, n: int, now: datetime) -> None:
    """Add n to a problem's attempt counter. Does not commit."""
    db.execute(
        text("""
            UPDATE problem_ratings
            SET n_attempts = n_attempts + :n, updated_at = :now
            WHERE problem_id = :p
        """),
        {"p": problem_id, "n": n, "now": now},
    )


def upsert_seed_rating(db: Session, problem_id: str, rating: int, now: datetime) -> bool:
    """
    Set a problem's seed-derived rating unless live votes already moved it.
    Does not commit. Returns True when a row was written.
    """
    result = db.execute(
        text("""
            INSERT INTO problem_ratings (problem_id, rating, n_votes, n_attempts, updated_at)
            VALUES (:p, :r, 0, 0, :now)
            ON CONFLICT (problem_id) DO UPDATE
            SET rating = excluded.rating, updated_at = excluded.updated_at
            WHERE problem_ratings.n_votes = 0
        """),
        {"p": problem_id, "r": rating, "now": now},
    )
    return result.rowcount == 1


# ── Pairwise votes ─────────────────────────────────────────────────────────────

def upsert_vote(
    db: Session,
    session_hash: str,
    user_id: int | None,
    prev_problem_id: str,
    curr_problem_id: str,
    vote: str,
    now: datetime,
) -> int:
    """Insert a vote, or overwrite the vote value for the same (session, pair). Returns its id."""
    row = db.execute(
        text("""
            INSERT INTO pairwise_votes
              (session_hash, user_id, prev_problem_id, curr_problem_id, vote, created_at)
            VALUES (:s, :u, :prev, :curr, :v, :now)
            ON CONFLICT (session_hash, prev_problem_id, curr_problem_id)
            DO UPDATE SET vote = excluded.vote,
                          user_id = COALESCE(excluded.user_id, pairwise_votes.user_id)
            RETURNING id
        """),
        {
            "s": session_hash, "u": user_id, "prev": prev_problem_id,
            "curr": curr_problem_id, "v": vote, "now": now,
        },
    ).fetchone()
    db.commit()
    return row[0]


def fetch_pending_votes(db: Session, limit: int) -> list[dict]:
    """Oldest unprocessed votes first."""
    rows = db.execute(
        text("""
            SELECT id, prev_problem_id, curr_problem_id, vote
            FROM pairwise_votes
            WHERE processed_at IS NULL
            ORDER BY id ASC
            LIMIT :lim
        """),
        {"lim": limit},
    ).fetchall()
    return [dict(r._mapping) for r in rows]


def mark_votes_processed(db: Session, vote_ids: list[int], now: datetime) -> None:
    """Does not commit."""
    if not vote_ids:
        return
    db.execute(
        text("""
            UPDATE pairwise_votes SET processed_at = :now
            WHERE id IN :ids AND processed_at IS NULL
        """).bindparams(bindparam("ids", expanding=True)),
        {"ids": list(vote_ids), "now": now},
    )


def count_pending_votes(db: Session) -> int:
    row = db.execute(
        text("SELECT COUNT(*) FROM pairwise_votes WHERE processed_at IS NULL")
    ).fetchone()
    return int(row[0]) if row else 0


# ── Attempts ───────────────────────────────────────────────────────────────────

def record_attempt(
    db: Session,
    session_hash: str,
    user_id: int | None,
    problem_id: str,
    outcome: str,
    time_ms: int,
    now: datetime,
    client_version: str | None = None,
) -> int:
    row = db.execute(
        text("""
            INSERT INTO attempts
              (session_hash, user_id, problem_id, outcome, time_ms, client_version, created_at)
            VALUES (:s, :u, :p, :o, :t, :cv, :now)
            RETURNING id
        """),
        {
            "s": session_hash, "u": user_id, "p": problem_id, "o": outcome,
            "t": time_ms, "cv": client_version, "now": now,
        },
    ).fetchone()
    db.commit()
    return row[0]


def fetch_pending_attempts(db: Session, limit: int) -> list[dict]:
    rows = db.execute(
        text("""
            SELECT id, problem_id
            FROM attempts
            WHERE processed_at IS NULL
            ORDER BY id ASC
            LIMIT :lim
        """),
        {"lim": limit},
    ).fetchall()
    return [dict(r._mapping) for r in rows]


def mark_attempts_processed(db: Session, attempt_ids: list[int], now: datetime) -> None:
    """Does not commit."""
    if not attempt_ids:
        return
    db.execute(
        text("""
            UPDATE attempts SET processed_at = :now
            WHERE id IN :ids AND processed_at IS NULL
        """).bindparams(bindparam("ids", expanding=True)),
        {"ids": list(attempt_ids), "now": now},
    )


def count_attempts(db: Session, user_id: int) -> int:
    row = db.execute(
        text("SELECT COUNT(*) FROM attempts WHERE user_id = :u"),
        {"u": user_id},
    ).fetchone()
    return int(row[0]) if row else 0


def get_solved_problem_ids(db: Session, user_id: int) -> list[str]:
    """Distinct problems this user has answered correctly at least once."""
    rows = db.execute(
        text("""
            SELECT DISTINCT problem_id FROM attempts
            WHERE user_id = :u AND outcome = 'correct'
        """),
        {"u": user_id},
    ).fetchall()
    return [r[0] for r in rows]


def count_correct_attempts(db: Session, user_id: int) -> int:
    row = db.execute(
        text("SELECT COUNT(*) FROM attempts WHERE user_id = :u AND outcome = 'correct'"),
        {"u": user_id},
    ).fetchone()
    return int(row[0]) if row else 0


# ── User ratings ───────────────────────────────────────────────────────────────

def get_user_rating_or_default(db: Session, user_id: int) -> dict:
    """
    Return {rating, n_attempts, exists}. A user with no row yet is rated
    DEFAULT_RATING with zero attempts.
    """
    row = db.execute(
        text("SELECT rating, n_attempts FROM user_ratings WHERE user_id = :u"),
        {"u": user_id},
    ).fetchone()
    if row is None:
        return {"rating": DEFAULT_RATING, "n_attempts": 0, "exists": False}
    return {"rating": int(row[0]), "n_attempts": int(row[1]), "exists": True}


def init_user_rating(db: Session, user_id: int, now: datetime) -> None:
    db.execute(
        text("""
            INSERT INTO user_ratings (user_id, rating, n_attempts, updated_at)
            VALUES (:u, :r, 0, :now)
            ON CONFLICT (user_id) DO NOTHING
        """),
        {"u": user_id, "r": DEFAULT_RATING, "now": now},
    )
    db.commit()


def write_user_rating_if_unchanged(
    db: Session,
    user_id: int,
    existed: bool,
    old_n_attempts: int,
    rating: int,
    n_attempts: int,
    now: datetime,
) -> bool:
    """
    Compare-and-set write of a user's rating. Does not commit.

    Inserts when the row did not exist at read time, otherwise updates only if
    the attempt counter is still `old_n_attempts`. Returns False on a lost race.
    """
    if not existed:
        result = db.execute(
            text("""
                INSERT INTO user_ratings (user_id, rating, n_attempts, updated_at)
                VALUES (:u, :r, :n, :now)
                ON CONFLICT (user_id) DO NOTHING
            """),
            {"u": user_id, "r": rating, "n": n_attempts, "now": now},
        )
    else:
        result = db.execute(
            text("""
                UPDATE user_ratings
                SET rating = :r, n_attempts = :n, updated_at = :now
                WHERE user_id = :u AND n_attempts = :old_n
            """),
            {"u": user_id, "r": rating, "n": n_attempts, "now": now, "old_n": old_n_attempts},
        )
    return result.rowcount == 1


def append_rating_history(
    db: Session,
    user_id: int,
    rating: int,
    delta: int,
    problem_id: str,
    outcome: str,
    now: datetime,
) -> None:
    """Does not commit."""
    db.execute(
        text("""
            INSERT INTO user_rating_history (user_id, created_at, rating, delta, problem_id, outcome)
            VALUES (:u, :now, :r, :d, :p, :o)
        """),
        {"u": user_id, "now": now, "r": rating, "d": delta, "p": problem_id, "o": outcome},
    )


def get_rating_history(db: Session, user_id: int, n: int = 100) -> list[dict]:
    """Latest n history entries, oldest first."""
    rows = db.execute(
        text("""
            SELECT id, created_at, rating, delta, problem_id, outcome
            FROM user_rating_history
            WHERE user_id = :u
            ORDER BY id DESC
            LIMIT :n
        """),
        {"u": user_id, "n": n},
    ).fetchall()
    return [dict(r._mapping) for r in reversed(rows)]


# ── Anonymous session claim ────────────────────────────────────────────────────

def claim_session(db: Session, user_id: int, session_hash: str) -> tuple[int, int]:
    """Attach a session's anonymous attempts and votes to a user. Returns (attempts, votes)."""
    attempts = db.execute(
        text("""
            UPDATE attempts SET user_id = :u
            WHERE session_hash = :s AND user_id IS NULL
        """),
        {"u": user_id, "s": session_hash},
    ).rowcount
    votes = db.execute(
        text("""
            UPDATE pairwise_votes SET user_id = :u
            WHERE session_hash = :s AND user_id IS NULL
        """),
        {"u": user_id, "s": session_hash},
    ).rowcount
    db.commit()
    return attempts, votes


# ── Job leases ─────────────────────────────────────────────────────────────────

def try_acquire_lease(db: Session, name: str, holder: str, now_ts: int, ttl_seconds: int) -> bool:
    """Take the named lease if it is free or expired. Commits."""
    row = db.execute(
        text("""
            INSERT INTO job_leases (name, holder, expires_at)
            VALUES (:name, :holder, :exp)
            ON CONFLICT (name) DO UPDATE
            SET holder = excluded.holder, expires_at = excluded.expires_at
            WHERE job_leases.expires_at < :now
            RETURNING holder
        """),
        {"name": name, "holder": holder, "exp": now_ts + ttl_seconds, "now": now_ts},
    ).fetchone()
    db.commit()
    return row is not None and row[0] == holder


def release_lease(db: Session, name: str, holder: str) -> None:
    db.execute(
        text("DELETE FROM job_leases WHERE name = :name AND holder = :holder"),
        {"name": name, "holder": holder},
    )
    db.commit()
