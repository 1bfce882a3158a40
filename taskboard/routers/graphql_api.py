"""Query-language binding: the same operations as a GraphQL schema at ``/graphql``.

Identity is resolved from the request (session cookie first, then the
Bearer header) when the context is built. Resolvers are thin: gate first,
then call the same stores the REST and socket bindings use, so pushes go
out after a GraphQL mutation exactly as after any other.

Errors surface as GraphQL errors whose ``message`` is the taskboard error
message and whose ``extensions.status`` carries the status code.
"""

import logging
from typing import Any, Dict, List, Optional

import strawberry
from fastapi import Request, Response
from graphql import GraphQLError
from strawberry.fastapi import GraphQLRouter
from strawberry.types import Info

from taskboard.deps import require, resolve_connection
from taskboard.errors import InvalidInput, TaskboardError
from taskboard.routers.auth import set_token_cookie
from taskboard.schemas import FileIn

logger = logging.getLogger("taskboard.graphql")


# ---------------------- TYPES ----------------------
@strawberry.type
class Attachment:
    filename: str
    originalname: str


@strawberry.type
class Task:
    id: strawberry.ID
    title: str
    status: str
    due_date: Optional[str]
    attachments: List[Attachment]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        return cls(
            id=strawberry.ID(data["id"]),
            title=data["title"],
            status=data["status"],
            due_date=data["dueDate"],
            attachments=[Attachment(**a) for a in data["attachments"]],
        )


@strawberry.type
class User:
    user_id: strawberry.ID
    email: str


@strawberry.type
class AuthPayload:
    token: str


@strawberry.type
class LogoutPayload:
    ok: bool


@strawberry.type
class DeletePayload:
    message: str


@strawberry.input
class FileInput:
    data: str
    originalname: Optional[str] = None


@strawberry.input
class CreateTaskInput:
    title: str
    status: Optional[str] = None
    due_date: Optional[str] = None
    file: Optional[FileInput] = None


@strawberry.input
class UpdateTaskInput:
    id: strawberry.ID
    title: Optional[str] = strawberry.UNSET
    status: Optional[str] = strawberry.UNSET
    due_date: Optional[str] = strawberry.UNSET
    file: Optional[FileInput] = None


# ---------------------- HELPERS ----------------------
def _file(value: Optional[FileInput]) -> Optional[FileIn]:
    if value is None:
        return None
    return FileIn(data=value.data, originalname=value.originalname)


def _fail(exc: TaskboardError) -> GraphQLError:
    return GraphQLError(exc.message, extensions={"status": exc.status_code})


def _state(info: Info):
    return info.context["request"].app.state


def _gate(info: Info):
    return require(info.context["identity"])


async def get_context(request: Request, response: Response) -> Dict[str, Any]:
    return {"request": request, "response": response, "identity": resolve_connection(request)}


# ---------------------- SCHEMA ----------------------
@strawberry.type
class Query:
    @strawberry.field
    async def me(self, info: Info) -> User:
        try:
            claim = _gate(info)
        except TaskboardError as exc:
            raise _fail(exc) from exc
        return User(user_id=strawberry.ID(claim.user_id), email=claim.email)

    @strawberry.field
    async def tasks(self, info: Info) -> List[Task]:
        try:
            _gate(info)
            snapshot = await _state(info).task_store.snapshot()
        except TaskboardError as exc:
            raise _fail(exc) from exc
        return [Task.from_dict(t) for t in snapshot]


@strawberry.type
class Mutation:
    @strawberry.mutation
    async def register(self, info: Info, email: str, password: str) -> AuthPayload:
        state = _state(info)
        try:
            user = await state.credentials.register(email, password)
        except TaskboardError as exc:
            raise _fail(exc) from exc
        return _issue(info, user.id, user.email)

    @strawberry.mutation
    async def login(self, info: Info, email: str, password: str) -> AuthPayload:
        state = _state(info)
        try:
            user = await state.credentials.verify(email, password)
        except TaskboardError as exc:
            raise _fail(exc) from exc
        logger.info("User logged in over GraphQL: %s", email)
        return _issue(info, user.id, user.email)

    @strawberry.mutation
    async def logout(self, info: Info) -> LogoutPayload:
        request = info.context["request"]
        info.context["response"].delete_cookie(request.app.state.settings.token_cookie)
        return LogoutPayload(ok=True)

    @strawberry.mutation
    async def create_task(self, info: Info, input: CreateTaskInput) -> Task:
        try:
            _gate(info)
            task = await _state(info).task_store.create(input.title, input.status, input.due_date, _file(input.file))
        except TaskboardError as exc:
            raise _fail(exc) from exc
        return Task.from_dict(task)

    @strawberry.mutation
    async def update_task(self, info: Info, input: UpdateTaskInput) -> Task:
        fields = {
            key: value
            for key, value in (("title", input.title), ("status", input.status), ("dueDate", input.due_date))
            if value is not strawberry.UNSET
        }
        try:
            _gate(info)
            if not input.id:
                raise InvalidInput("id required")
            task = await _state(info).task_store.update(str(input.id), fields, _file(input.file))
        except TaskboardError as exc:
            raise _fail(exc) from exc
        return Task.from_dict(task)

    @strawberry.mutation
    async def delete_task(self, info: Info, id: strawberry.ID) -> DeletePayload:
        try:
            _gate(info)
            result = await _state(info).task_store.delete(str(id))
        except TaskboardError as exc:
            raise _fail(exc) from exc
        return DeletePayload(message=result["message"])


def _issue(info: Info, user_id: str, email: str) -> AuthPayload:
    token = _state(info).tokens.issue(user_id, email)
    set_token_cookie(info.context["request"], info.context["response"], token)
    return AuthPayload(token=token)


schema = strawberry.Schema(query=Query, mutation=Mutation)

router = GraphQLRouter(schema, context_getter=get_context, graphql_ide=None)
