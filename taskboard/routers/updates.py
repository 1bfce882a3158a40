# taskboard/routers/updates.py
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from taskboard.deps import resolve_connection

logger = logging.getLogger("taskboard.updates")

router = APIRouter(tags=["updates"])


@router.websocket("/updates")
async def updates(websocket: WebSocket):
    """
    Push channel: the full task list as a JSON array, once on connect and
    again after every committed mutation. Incoming frames are ignored.
    """
    await websocket.accept()
    identity = resolve_connection(websocket)
    logger.info("Push channel opened (%s)", identity.email if identity else "anonymous")

    broadcaster = websocket.app.state.broadcaster
    try:
        await broadcaster.subscribe(websocket)
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("Push channel closed")
    finally:
        broadcaster.unregister(websocket)
