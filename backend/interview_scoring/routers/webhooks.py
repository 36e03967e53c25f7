# backend/interview_scoring/routers/webhooks.py
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ..bootstrap import Services
from .deps import get_services

router = APIRouter()


# ---------------------------------------------------
# End-of-call webhook from the voice platform
# ---------------------------------------------------
@router.post("/call-ended")
async def call_ended(request: Request, services: Services = Depends(get_services)):
    # the signature covers the exact bytes, so read them before any parsing
    raw_body = await request.body()
    result = await services.ingestion.handle(request.headers, raw_body)
    return JSONResponse(status_code=result.status_code, content=result.body)
