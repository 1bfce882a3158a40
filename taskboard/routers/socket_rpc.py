"""Socket binding: task operations as acknowledged WebSocket events.

Frames from the client look like ``{"event": "tasks:create", "data": {...},
"ack": 7}``; every frame carrying an ``ack`` id gets exactly one reply
``{"ack": 7, "data": <result or {"status": code, "error": message}>}``.

The socket is also a push channel: it receives
``{"event": "tasks:changed", "data": [...]}`` on connect and after every
committed mutation, whichever binding performed it.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from taskboard.deps import require, resolve_connection
from taskboard.errors import InvalidInput, TaskboardError
from taskboard.schemas import CredentialsIn, TaskCreate, TaskUpdate
from taskboard.services.auth_service import Claim

logger = logging.getLogger("taskboard.socket")

router = APIRouter(tags=["socket"])

Handler = Callable[[dict[str, Any]], Awaitable[Any]]


def changed_frame(snapshot: list[dict[str, Any]]) -> dict[str, Any]:
    return {"event": "tasks:changed", "data": snapshot}


class SocketSession:
    """Per-connection state: the socket and the identity resolved for it.

    Identity comes from the handshake cookie. A successful ``register`` or
    ``login`` on the socket adopts the new identity; ``logout`` drops it.
    """

    def __init__(self, websocket: WebSocket, identity: Optional[Claim]) -> None:
        self.websocket = websocket
        self.identity = identity
        state = websocket.app.state
        self.credentials = state.credentials
        self.tokens = state.tokens
        self.store = state.task_store
        self.handlers: dict[str, Handler] = {
            "register": self.register,
            "login": self.login,
            "logout": self.logout,
            "me": self.me,
            "tasks:list": self.list_tasks,
            "tasks:create": self.create_task,
            "tasks:update": self.update_task,
            "tasks:delete": self.delete_task,
        }

    # ---- auth ----

    async def register(self, data: dict[str, Any]) -> dict[str, Any]:
        payload = CredentialsIn.model_validate(data)
        user = await self.credentials.register(payload.email, payload.password)
        return self._adopt(user.id, user.email)

    async def login(self, data: dict[str, Any]) -> dict[str, Any]:
        payload = CredentialsIn.model_validate(data)
        user = await self.credentials.verify(payload.email, payload.password)
        return self._adopt(user.id, user.email)

    def _adopt(self, user_id: str, email: str) -> dict[str, Any]:
        token = self.tokens.issue(user_id, email)
        self.identity = self.tokens.verify(token)
        return {"token": token}

    async def logout(self, data: dict[str, Any]) -> dict[str, Any]:
        self.identity = None
        return {"ok": True}

    async def me(self, data: dict[str, Any]) -> dict[str, Any]:
        return require(self.identity).public()

    # ---- tasks (all gated) ----

    async def list_tasks(self, data: dict[str, Any]) -> list[dict[str, Any]]:
        require(self.identity)
        return await self.store.snapshot()

    async def create_task(self, data: dict[str, Any]) -> dict[str, Any]:
        require(self.identity)
        payload = TaskCreate.model_validate(data)
        return await self.store.create(payload.title, payload.status, payload.dueDate, payload.file)

    async def update_task(self, data: dict[str, Any]) -> dict[str, Any]:
        require(self.identity)
        payload = TaskUpdate.model_validate(data)
        if not payload.id:
            raise InvalidInput("id required")
        return await self.store.update(payload.id, payload.changes(), payload.file)

    async def delete_task(self, data: dict[str, Any]) -> dict[str, str]:
        require(self.identity)
        task_id = data.get("id")
        if not task_id:
            raise InvalidInput("id required")
        return await self.store.delete(str(task_id))

    # ---- dispatch ----

    async def handle(self, frame: Any) -> Optional[dict[str, Any]]:
        """Run one client frame; returns the ack frame, or None when no ack was requested."""
        if not isinstance(frame, dict) or "ack" not in frame:
            return None
        ack_id = frame["ack"]
        event = frame.get("event")
        data = frame.get("data") or {}

        try:
            handler = self.handlers.get(event)
            if handler is None:
                raise InvalidInput("Unknown event")
            if not isinstance(data, dict):
                raise InvalidInput("Event data must be an object")
            result = await handler(data)
        except TaskboardError as exc:
            result = exc.to_dict()
        except ValidationError as exc:
            result = InvalidInput(f"Invalid payload: {exc.error_count()} error(s)").to_dict()
        except Exception:
            logger.exception("Socket event %s failed", event)
            result = {"status": 500, "error": "Internal error"}
        return {"ack": ack_id, "data": result}


@router.websocket("/socket")
async def socket_endpoint(websocket: WebSocket):
    await websocket.accept()
    session = SocketSession(websocket, resolve_connection(websocket))
    logger.info("Socket connected (%s)", session.identity.email if session.identity else "anonymous")

    broadcaster = websocket.app.state.broadcaster
    try:
        # the on-connect snapshot goes through the same ordered sender as later pushes
        await broadcaster.subscribe(websocket, changed_frame)
        while True:
            text = await websocket.receive_text()
            try:
                frame = json.loads(text)
            except ValueError:
                logger.warning("Ignoring malformed socket frame")
                continue
            reply = await session.handle(frame)
            if reply is not None:
                await websocket.send_json(reply)
    except WebSocketDisconnect:
        logger.info("Socket disconnected")
    finally:
        broadcaster.unregister(websocket)
