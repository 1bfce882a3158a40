# tests/test_task_store.py

from __future__ import annotations

import base64

import pytest

from taskboard.errors import InvalidInput, NotFound
from taskboard.schemas import FileIn
from taskboard.utils.blobs import BlobDirectory


def _file(content: bytes, name: str | None = "notes.txt") -> FileIn:
    return FileIn(data=base64.b64encode(content).decode("ascii"), originalname=name)


@pytest.mark.asyncio
async def test_create_defaults(task_store) -> None:
    task = await task_store.create("buy milk")

    assert task["id"]
    assert task["title"] == "buy milk"
    assert task["status"] == "pending"
    assert task["dueDate"] is None
    assert task["attachments"] == []


@pytest.mark.asyncio
@pytest.mark.parametrize("title", [None, "", "   "])
async def test_create_requires_title(task_store, title) -> None:
    with pytest.raises(InvalidInput):
        await task_store.create(title)
    assert await task_store.snapshot() == []


@pytest.mark.asyncio
async def test_create_rejects_unknown_status(task_store) -> None:
    with pytest.raises(InvalidInput):
        await task_store.create("x", status="archived")


@pytest.mark.asyncio
async def test_list_reflects_net_effect_in_call_order(task_store) -> None:
    a = await task_store.create("a")
    b = await task_store.create("b", due_date="2026-11-01")
    c = await task_store.create("c")
    await task_store.update(b["id"], {"status": "done"})
    await task_store.delete(a["id"])
    await task_store.update(c["id"], {"title": "c2"})

    snapshot = await task_store.snapshot()
    assert [t["id"] for t in snapshot] == [b["id"], c["id"]]
    assert snapshot[0]["status"] == "done"
    assert snapshot[0]["dueDate"] == "2026-11-01"
    assert snapshot[1]["title"] == "c2"
    assert snapshot[1]["status"] == "pending"


@pytest.mark.asyncio
async def test_update_is_partial(task_store) -> None:
    task = await task_store.create("title", due_date="2026-12-24")

    updated = await task_store.update(task["id"], {"status": "done"})
    assert updated["title"] == "title"
    assert updated["dueDate"] == "2026-12-24"
    assert updated["status"] == "done"

    cleared = await task_store.update(task["id"], {"dueDate": None})
    assert cleared["dueDate"] is None
    assert cleared["status"] == "done"


@pytest.mark.asyncio
async def test_update_validates_before_writing(task_store) -> None:
    task = await task_store.create("title")
    with pytest.raises(InvalidInput):
        await task_store.update(task["id"], {"title": ""})
    with pytest.raises(InvalidInput):
        await task_store.update(task["id"], {"status": "nope"})
    assert (await task_store.snapshot())[0]["title"] == "title"


@pytest.mark.asyncio
async def test_update_and_delete_unknown_id(task_store) -> None:
    await task_store.create("keep me")
    before = await task_store.snapshot()

    with pytest.raises(NotFound):
        await task_store.update("missing", {"title": "x"})
    with pytest.raises(NotFound):
        await task_store.delete("missing")

    assert await task_store.snapshot() == before


@pytest.mark.asyncio
async def test_attachment_is_stored_and_appended(task_store, blobs: BlobDirectory) -> None:
    task = await task_store.create("with file", attachment=_file(b"hello", "my notes.txt"))

    assert len(task["attachments"]) == 1
    att = task["attachments"][0]
    assert att["originalname"] == "my notes.txt"
    assert att["filename"].endswith("-my_notes.txt")
    assert (blobs.root / att["filename"]).read_bytes() == b"hello"

    updated = await task_store.update(task["id"], {}, _file(b"second", "b.bin"))
    assert [a["originalname"] for a in updated["attachments"]] == ["my notes.txt", "b.bin"]
    assert updated["attachments"][0] == att

    path = await task_store.get_attachment(task["id"], updated["attachments"][1]["filename"])
    assert path.read_bytes() == b"second"


@pytest.mark.asyncio
async def test_attachment_without_name_uses_storage_name(task_store) -> None:
    task = await task_store.create("anon", attachment=_file(b"x", None))
    att = task["attachments"][0]
    assert att["originalname"] == att["filename"]
    assert att["filename"].endswith("-file")


@pytest.mark.asyncio
async def test_blob_is_written_before_task_is_committed(task_store, blobs: BlobDirectory, monkeypatch) -> None:
    seen_during_write = []
    real_write = blobs.write

    async def spy(filename: str, content: bytes) -> None:
        seen_during_write.append(await task_store.snapshot())
        await real_write(filename, content)

    monkeypatch.setattr(blobs, "write", spy)
    await task_store.create("ordered", attachment=_file(b"data"))

    assert seen_during_write == [[]]
    assert len(await task_store.snapshot()) == 1


@pytest.mark.asyncio
async def test_bad_base64_creates_nothing(task_store, blobs: BlobDirectory) -> None:
    with pytest.raises(InvalidInput):
        await task_store.create("bad", attachment=FileIn(data="%%% not base64 %%%", originalname="x"))
    assert await task_store.snapshot() == []
    assert [p for p in blobs.root.iterdir() if not p.name.startswith(".")] == []


@pytest.mark.asyncio
async def test_delete_leaves_blob_on_disk(task_store, blobs: BlobDirectory) -> None:
    task = await task_store.create("t", attachment=_file(b"keep"))
    filename = task["attachments"][0]["filename"]

    assert await task_store.delete(task["id"]) == {"message": "deleted"}
    assert await task_store.snapshot() == []
    assert (blobs.root / filename).exists()


@pytest.mark.asyncio
async def test_missing_attachment_is_not_found(task_store) -> None:
    task = await task_store.create("t")
    with pytest.raises(NotFound):
        await task_store.get_attachment(task["id"], "123-nothing.txt")
    with pytest.raises(NotFound):
        await task_store.get_attachment(task["id"], "../store.db")


@pytest.mark.asyncio
async def test_listeners_run_after_commit_and_only_on_success(task_store) -> None:
    observed = []

    async def listener() -> None:
        observed.append([t["title"] for t in await task_store.snapshot()])

    task_store.add_listener(listener)
    task = await task_store.create("first")
    await task_store.update(task["id"], {"title": "renamed"})

    with pytest.raises(NotFound):
        await task_store.delete("missing")
    with pytest.raises(InvalidInput):
        await task_store.create("")

    await task_store.delete(task["id"])
    assert observed == [["first"], ["renamed"], []]


@pytest.mark.asyncio
async def test_failing_listener_does_not_fail_the_mutation(task_store) -> None:
    async def broken() -> None:
        raise RuntimeError("boom")

    task_store.add_listener(broken)
    task = await task_store.create("still saved")
    assert (await task_store.snapshot())[0]["id"] == task["id"]


@pytest.mark.asyncio
async def test_create_without_file_is_persisted_and_announced(task_store) -> None:
    calls = []

    async def listener() -> None:
        calls.append(len(await task_store.snapshot()))

    task_store.add_listener(listener)
    task = await task_store.create("plain", due_date="2026-12-01")

    assert task["attachments"] == []
    assert task["dueDate"] == "2026-12-01"
    assert await task_store.snapshot() == [task]
    assert calls == [1]


@pytest.mark.asyncio
async def test_empty_file_payload_stores_no_blob(task_store, blobs: BlobDirectory) -> None:
    task = await task_store.create("x", attachment=FileIn(data="", originalname="empty.txt"))
    assert task["attachments"] == []

    updated = await task_store.update(task["id"], {}, FileIn(data=""))
    assert updated["attachments"] == []
    assert list(blobs.root.iterdir()) == []
