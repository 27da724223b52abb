"""
Water heater poll endpoint

The Energy Smart module posts its full state as form content to a fixed URL
and takes the JSON reply as its next command.
"""

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel
from typing import Optional
from urllib.parse import parse_qsl
import logging

from bridge.models import TelemetrySnapshot

logger = logging.getLogger(__name__)

# URL the module firmware posts to
POLL_PATH = "/~branecky/postAll.php"


class PollResponse(BaseModel):
    UpdateRate: Optional[str] = None
    Mode: Optional[str] = None
    SetPoint: Optional[str] = None


def create_poll_routes(poll_handler):
    """Create the device poll route"""
    router = APIRouter(tags=["poll"])

    @router.api_route(POLL_PATH, methods=["POST", "GET"], response_model=PollResponse,
                      response_model_exclude_none=True)
    async def post_all(request: Request):
        """Accept a poll, publish state, reply with at most one queued command"""
        body = await request.body()
        content = body.decode("utf-8", errors="replace") if body else request.url.query

        logger.debug(f"URL: {request.url.path}\n{content}")

        fields = dict(parse_qsl(content, keep_blank_values=True))
        try:
            snapshot = TelemetrySnapshot.from_form(fields)
        except ValueError as e:
            logger.warning(f"Rejected malformed poll from {request.client.host if request.client else '?'}: {e}")
            raise HTTPException(status_code=400, detail=str(e))

        try:
            command = poll_handler.handle_poll(snapshot)
        except Exception as e:
            logger.error(f"Error handling poll from {snapshot.device_id}: {e}")
            raise HTTPException(status_code=500, detail="Poll handling failed")

        return PollResponse(**command.to_response())

    return router
