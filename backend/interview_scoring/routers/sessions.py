# backend/interview_scoring/routers/sessions.py
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, TypeAdapter, ValidationError, field_validator

from ..bootstrap import Services
from ..services.conversation_events import ConversationEvent, SessionNotFoundError
from ..services.results import latest_score, transcript_entries, transcript_text
from ..services.session_store import SessionExistsError, is_terminal_status, status_label
from .deps import get_services

router = APIRouter()
log = logging.getLogger("interview_scoring.routers.sessions")

_event_adapter = TypeAdapter(ConversationEvent)


class StartSessionRequest(BaseModel):
    session_id: str
    rubric_id: str
    rubric_name: Optional[str] = None
    interview_type: Optional[str] = None
    email: Optional[str] = None
    user_name: Optional[str] = None

    @field_validator("session_id", "rubric_id")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v


async def _json_body(request: Request):
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise HTTPException(status_code=400, detail="Malformed JSON body")


def _validation_detail(e: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'body'}: {err['msg']}" for err in e.errors()
    )


# ---------------------------------------------------
# Start an interview session
# ---------------------------------------------------
@router.post("/start", status_code=201)
async def start_session(request: Request, services: Services = Depends(get_services)):
    body = await _json_body(request)
    try:
        req = StartSessionRequest.model_validate(body)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Missing or invalid fields: {_validation_detail(e)}")

    try:
        session = await services.sessions.create(
            session_id=req.session_id,
            rubric_id=req.rubric_id,
            rubric_name=req.rubric_name,
            interview_type=req.interview_type,
            email=req.email,
            user_name=req.user_name,
        )
    except SessionExistsError:
        raise HTTPException(status_code=409, detail="session already exists")

    return {
        "session_id": session.session_id,
        "status": session.status,
        "status_label": status_label(session.status),
        "started_at": session.started_at.isoformat(),
    }


# ---------------------------------------------------
# Status polled by the processing page
# ---------------------------------------------------
@router.get("/{session_id}/status")
async def get_session_status(
    session_id: str,
    include_error: bool = Query(False),
    services: Services = Depends(get_services),
):
    session = await services.sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="session not found")

    out = {
        "session_id": session.session_id,
        "status": session.status,
        "status_label": status_label(session.status),
        "status_updated_at": session.status_updated_at.isoformat() if session.status_updated_at else None,
        "rubric_name": session.rubric_name,
        "interview_type": session.interview_type,
        # pollers stop once this is true
        "is_terminal": is_terminal_status(session.status),
    }
    if include_error:
        out["status_error"] = session.status_error
    return out


# ---------------------------------------------------
# Stored feedback for the results page
# ---------------------------------------------------
@router.get("/{session_id}/results")
async def get_session_results(session_id: str, services: Services = Depends(get_services)):
    score = await latest_score(services.db, session_id)
    if score is None:
        raise HTTPException(status_code=404, detail="score not found for this session")

    entries = await transcript_entries(services.db, session_id)
    return {
        "session_id": session_id,
        "score": {
            "rubric_id": score.rubric_id,
            "rubric_name": score.rubric_name,
            "llm_response": score.llm_response,
            "model_used": score.model_used,
            "scored_at": score.scored_at.isoformat() if score.scored_at else None,
        },
        "transcript": [
            {"role": e.role, "content": e.content, "timestamp": e.timestamp.isoformat()}
            for e in entries
        ],
        "transcript_text": transcript_text(entries),
    }


# ---------------------------------------------------
# Voice client event channel
# ---------------------------------------------------
@router.post("/{session_id}/events")
async def post_session_event(session_id: str, request: Request, services: Services = Depends(get_services)):
    body = await _json_body(request)
    try:
        event = _event_adapter.validate_python(body)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid event: {_validation_detail(e)}")

    try:
        return await services.events.ingest(session_id, event)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="session not found")
