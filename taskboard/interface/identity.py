"""Caller identity for HTTP and WebSocket endpoints.

Authentication happens at the identity provider; requests arrive carrying the
already-verified uid in a header.
"""

import logging
from typing import Annotated

from fastapi import Header, HTTPException, WebSocket, WebSocketException, status

from taskboard.core.config import constants


logger = logging.getLogger(__name__)


def _clean_uid(raw: str | None) -> str | None:
    if raw is None:
        return None
    uid = raw.strip()
    return uid or None


async def current_user_id(
    x_user_id: Annotated[str | None, Header(alias=constants.USER_ID_HEADER)] = None,
) -> str:
    """Resolve the caller's uid from the identity header.

    Raises:
        HTTPException: 401 if the header is missing or blank
    """
    uid = _clean_uid(x_user_id)
    if uid is None:
        logger.warning("Request without identity header")
        raise HTTPException(status_code=constants.HTTP_UNAUTHORIZED, detail="Missing user identity")
    return uid


async def websocket_user_id(websocket: WebSocket) -> str:
    """Resolve the caller's uid for a WebSocket, from the header or a `uid` query parameter."""
    uid = _clean_uid(websocket.headers.get(constants.USER_ID_HEADER)) or _clean_uid(
        websocket.query_params.get("uid"),
    )
    if uid is None:
        logger.warning("WebSocket without identity")
        raise WebSocketException(code=status.WS_1008_POLICY_VIOLATION, reason="Missing user identity")
    return uid
