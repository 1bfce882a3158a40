# tests/test_socket.py

from __future__ import annotations

import base64
import itertools
from typing import Any

from fastapi.testclient import TestClient

from .fakes import bearer, register

_ack_ids = itertools.count(1)


def call(ws, event: str, data: Any = None) -> tuple[Any, list[Any]]:
    """Send one event and read until its ack; returns (ack data, pushes seen meanwhile)."""
    ack = next(_ack_ids)
    ws.send_json({"event": event, "data": data or {}, "ack": ack})
    pushes = []
    while True:
        frame = ws.receive_json()
        if frame.get("ack") == ack:
            return frame["data"], pushes
        pushes.append(frame)


def next_push(ws, pushes: list[Any]) -> Any:
    """Pushes are sent independently of acks, so one may arrive on either side of the reply."""
    return pushes.pop(0) if pushes else ws.receive_json()


def test_socket_scenario_with_second_client(client: TestClient) -> None:
    token = register(client)
    client.cookies.clear()

    with client.websocket_connect("/socket", headers=bearer(token)) as ws, \
            client.websocket_connect("/updates") as watcher:
        assert ws.receive_json() == {"event": "tasks:changed", "data": []}
        assert watcher.receive_json() == []

        assert call(ws, "me")[0]["email"] == "a@x.com"

        task, pushes = call(ws, "tasks:create", {"title": "buy milk"})
        assert task["title"] == "buy milk"
        assert task["status"] == "pending"
        assert task["attachments"] == []
        assert next_push(ws, pushes) == {"event": "tasks:changed", "data": [task]}
        assert watcher.receive_json() == [task]

        done, _ = call(ws, "tasks:update", {"id": task["id"], "status": "done"})
        assert done["status"] == "done"
        assert done["title"] == "buy milk"
        assert watcher.receive_json() == [done]

        assert call(ws, "tasks:delete", {"id": task["id"]})[0] == {"message": "deleted"}
        assert watcher.receive_json() == []
        assert call(ws, "tasks:list")[0] == []


def test_anonymous_socket_is_gated_until_login(client: TestClient) -> None:
    register(client)
    client.cookies.clear()

    with client.websocket_connect("/socket") as ws:
        ws.receive_json()
        for event, data in (("me", {}), ("tasks:list", {}), ("tasks:create", {"title": "x"})):
            result, pushes = call(ws, event, data)
            assert result == {"status": 401, "error": "Unauthorized"}
            assert pushes == []

        bad, _ = call(ws, "login", {"email": "a@x.com", "password": "wrong"})
        unknown, _ = call(ws, "login", {"email": "z@x.com", "password": "pw1"})
        assert bad == unknown == {"status": 401, "error": "Invalid credentials"}

        result, _ = call(ws, "login", {"email": "a@x.com", "password": "pw1"})
        assert result["token"]
        assert call(ws, "me")[0]["email"] == "a@x.com"

        assert call(ws, "logout")[0] == {"ok": True}
        assert call(ws, "tasks:list")[0]["status"] == 401


def test_socket_register_and_errors(client: TestClient) -> None:
    with client.websocket_connect("/socket") as ws:
        ws.receive_json()
        created, _ = call(ws, "register", {"email": "b@x.com", "password": "pw"})
        assert created["token"]

        dup, _ = call(ws, "register", {"email": "b@x.com", "password": "pw"})
        assert dup == {"status": 409, "error": "User exists"}
        assert call(ws, "register", {"email": "c@x.com"})[0]["status"] == 400

        assert call(ws, "tasks:create", {})[0]["status"] == 400
        assert call(ws, "tasks:update", {"title": "no id"})[0]["status"] == 400
        assert call(ws, "tasks:delete", {"id": "missing"})[0] == {"status": 404, "error": "not found"}
        assert call(ws, "tasks:explode")[0] == {"status": 400, "error": "Unknown event"}


def test_socket_attachment_download_over_http(client: TestClient) -> None:
    token = register(client)
    payload = {"title": "scan", "file": {"data": base64.b64encode(b"%PDF-1.7").decode(), "originalname": "scan.pdf"}}

    with client.websocket_connect("/socket", headers=bearer(token)) as ws:
        ws.receive_json()
        task, _ = call(ws, "tasks:create", payload)

    att = task["attachments"][0]
    assert att["originalname"] == "scan.pdf"
    dl = client.get(f"/api/tasks/{task['id']}/files/{att['filename']}", headers=bearer(token))
    assert dl.content == b"%PDF-1.7"


def test_frames_without_ack_are_ignored(client: TestClient) -> None:
    token = register(client)
    with client.websocket_connect("/socket", headers=bearer(token)) as ws:
        ws.receive_json()
        ws.send_text("not json")
        ws.send_json({"event": "tasks:list"})
        # the next frame we see answers this call, nothing was sent for the two above
        assert call(ws, "me")[0]["email"] == "a@x.com"
