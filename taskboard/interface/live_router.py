"""WebSocket endpoints pushing full snapshots of live queries."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, WebSocketException, status
from pydantic import BaseModel

from taskboard.core.errors import TaskboardError
from taskboard.core.live_query import LiveQuery
from taskboard.interface.identity import websocket_user_id
from taskboard.services import category_service, membership_service, task_service


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/live", tags=["live"])

WebSocketUserId = Annotated[str, Depends(websocket_user_id)]


def _sender(websocket: WebSocket):  # noqa: ANN202
    async def send(snapshot: list[BaseModel]) -> None:
        await websocket.send_json([item.model_dump(mode="json") for item in snapshot])

    return send


async def _stream(websocket: WebSocket, live: LiveQuery) -> None:
    """Hold the socket open until the client disconnects, then close the live query."""
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("Live socket disconnected", extra={"collection": live.collection})
    finally:
        await live.close()


@router.websocket("/categories")
async def live_personal_categories(websocket: WebSocket, user_id: WebSocketUserId) -> None:
    await websocket.accept()
    live = await category_service.subscribe_personal(user_id=user_id, on_snapshot=_sender(websocket))
    await _stream(websocket, live)


@router.websocket("/categories/shared")
async def live_shared_categories(websocket: WebSocket, user_id: WebSocketUserId) -> None:
    await websocket.accept()
    live = await category_service.subscribe_shared(user_id=user_id, on_snapshot=_sender(websocket))
    await _stream(websocket, live)


@router.websocket("/categories/{category_id}/tasks")
async def live_tasks(websocket: WebSocket, category_id: str, user_id: WebSocketUserId) -> None:
    """Tasks of one category: personal lists show the caller's tasks, shared lists everyone's."""
    try:
        category = await category_service.get_category(category_id=category_id)
        membership_service.assert_can_access(category, user_id)
    except TaskboardError as e:
        raise WebSocketException(code=status.WS_1008_POLICY_VIOLATION, reason=str(e)) from e

    await websocket.accept()
    live = await task_service.subscribe_to_tasks(
        category_id=category_id,
        on_snapshot=_sender(websocket),
        owner_id=task_service.owner_filter_for(category, user_id),
    )
    await _stream(websocket, live)
