# app.py: Echo Trainer API
# - Daily adaptive challenge, answer submission with streaks and XP
# - Echo Score (current / latest / save) and its history and progress views

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import BackgroundTasks, FastAPI, HTTPException

import challenge_bank
import db
from challenge_service import ChallengeService
from engines.models import Challenge
from engines.validation import (
    ChallengeNotFoundError,
    NoChallengeAvailableError,
    ValidationError,
)
from schemas import (
    ChallengeCreateBody,
    ContentItemBody,
    DailyChallengeResponse,
    EchoScoreResponse,
    ReadingBody,
    SubmitAnswerBody,
    SubmitAnswerResponse,
)

logger = logging.getLogger(__name__)


def _seed_challenges() -> None:
    path = Path(os.getenv("CHALLENGE_BANK_PATH", challenge_bank.DEFAULT_BANK_PATH))
    if not path.exists():
        logger.warning("Challenge bank %s not found; catalog left as stored", path)
        return
    seeded = challenge_bank.load_challenges(path)
    logger.info("Seeded %s challenges from %s", len(seeded), path)


@asynccontextmanager
async def _lifespan(_: FastAPI):
    try:
        # Validate environment variables first
        from env_validation import validate_environment
        validate_environment()

        db.init()
        _seed_challenges()
        logger.info("Echo Trainer ready (db=%s, timezone=%s)", db.DB_PATH, SERVICE.settings.timezone_name)
        yield
    except Exception as e:
        logger.error("Failed to initialize application: %s", str(e), exc_info=True)
        raise


app = FastAPI(title="Echo Trainer", version="1.0.0", lifespan=_lifespan)

SERVICE = ChallengeService()


def _require_user(user_id: Optional[str]) -> str:
    if not user_id or not user_id.strip():
        raise HTTPException(status_code=400, detail="user_id required")
    return user_id.strip()


@app.get("/")
def root():
    return {"status": "ok", "service": "echo-trainer"}


# ---------- Challenges ----------
@app.post("/challenge/{challenge_id}/submit", response_model=SubmitAnswerResponse)
def submit_challenge(challenge_id: int, body: SubmitAnswerBody, background_tasks: BackgroundTasks):
    try:
        result = SERVICE.submit_answer(
            body.user_id,
            challenge_id,
            body.answer,
            body.time_spent_seconds,
        )
    except ChallengeNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    background_tasks.add_task(SERVICE.run_challenge_trigger, body.user_id)
    return result


@app.get("/challenge/today", response_model=DailyChallengeResponse)
def challenge_today(user_id: str = ""):
    user_id = _require_user(user_id)
    try:
        return SERVICE.todays_challenge(user_id)
    except NoChallengeAvailableError as exc:
        raise HTTPException(status_code=404, detail="no challenge available") from exc


@app.get("/challenge/stats")
def challenge_stats(user_id: str = ""):
    return SERVICE.user_stats(_require_user(user_id))


@app.get("/challenge/history")
def challenge_history(user_id: str = "", page: int = 1, limit: int = 20):
    user_id = _require_user(user_id)
    try:
        return SERVICE.submission_history(user_id, page=page, limit=limit)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.get("/challenge/leaderboard")
def challenge_leaderboard(timeframe: str = "weekly"):
    try:
        return SERVICE.leaderboard(timeframe)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.get("/challenges")
def list_challenges(
    type: Optional[str] = None,
    difficulty: Optional[str] = None,
    is_active: Optional[bool] = None,
):
    try:
        catalog = challenge_bank.list_catalog(type=type, difficulty=difficulty, is_active=is_active)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    views = challenge_bank.iter_views(catalog)
    for view, challenge in zip(views, catalog):
        view["is_active"] = challenge.is_active
    return {"challenges": views, "count": len(views)}


@app.post("/challenges")
def create_challenge(body: ChallengeCreateBody):
    try:
        challenge: Challenge = challenge_bank.create_challenge(body.model_dump(exclude_none=True))
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    view = challenge.to_view()
    view["is_active"] = challenge.is_active
    return view


# ---------- Echo Score ----------
@app.get("/echo-score", response_model=EchoScoreResponse)
def echo_score(user_id: str = "", mode: str = "current"):
    user_id = _require_user(user_id)
    try:
        result = SERVICE.echo_score(user_id, mode)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if result is None:
        raise HTTPException(status_code=404, detail="no echo score stored")
    return result


@app.get("/echo-score/history")
def echo_score_history(user_id: str = "", days: int = 30):
    user_id = _require_user(user_id)
    try:
        scores = SERVICE.scores.history(user_id, days=days)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"user_id": user_id, "days": days, "scores": scores}


@app.get("/echo-score/progress")
def echo_score_progress(user_id: str = "", period: str = "daily"):
    user_id = _require_user(user_id)
    try:
        return SERVICE.scores.progress(user_id, period)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.get("/echo-score/weekly-summary")
def echo_score_weekly_summary(user_id: str = ""):
    user_id = _require_user(user_id)
    summary = SERVICE.scores.weekly_summary(user_id)
    if summary is None:
        raise HTTPException(status_code=404, detail="no echo scores in the last week")
    return summary


# ---------- Content ----------
@app.post("/content")
def register_content(body: ContentItemBody):
    try:
        return SERVICE.register_content(
            body.id,
            title=body.title,
            source=body.source,
            bias_rating=body.bias_rating,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.post("/content/read")
def content_read(body: ReadingBody, background_tasks: BackgroundTasks):
    try:
        result = SERVICE.record_reading(body.user_id, body.content_id)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    background_tasks.add_task(SERVICE.run_reading_trigger, body.user_id)
    return result
