import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.db import run_migrations
from app.routers import admin, auth, practice, problems, session, stats, votes
from app.services.corpus import ProblemRepository
from app.services.scheduler import start_scheduler, stop_scheduler
from app.services.sessions import SessionRegistry

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("[App] Starting up...")
    try:
        run_migrations()
    except Exception as e:
        logger.warning(f"[DB] Migration warning: {e}")
    if settings.scheduler_enabled:
        start_scheduler()
    yield
    # Shutdown
    stop_scheduler()
    logger.info("[App] Shutting down.")


app = FastAPI(
    title="Math Practice — Adaptive Rating Engine",
    version="0.1.0",
    description="Elo-rated math problems with adaptive practice sessions",
    lifespan=lifespan,
)

app.state.corpus = ProblemRepository(settings.problems_dir)
app.state.sessions = SessionRegistry(
    idle_seconds=settings.session_idle_minutes * 60,
    max_sessions=settings.max_sessions,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(session.router,  prefix="/session",  tags=["Session"])
app.include_router(problems.router, prefix="/problems", tags=["Problems"])
app.include_router(practice.router, prefix="/practice", tags=["Practice"])
app.include_router(votes.router,    prefix="/vote",     tags=["Votes"])
app.include_router(auth.router,     prefix="/auth",     tags=["Auth"])
app.include_router(stats.router,    prefix="/stats",    tags=["Stats"])
app.include_router(admin.router,    prefix="/admin",    tags=["Admin"])


@app.get("/", tags=["Health"])
def health():
    return {"status": "ok", "service": "Math Practice API v0.1.0", "problems": len(app.state.corpus)}
