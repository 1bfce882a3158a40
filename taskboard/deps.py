# taskboard/deps.py
import logging
from typing import Mapping, Optional

from fastapi import Depends, Request
from starlette.requests import HTTPConnection

from taskboard.errors import Unauthorized
from taskboard.services.auth_service import Claim, TokenService
from taskboard.services.broadcaster import Broadcaster
from taskboard.services.credential_store import CredentialStore
from taskboard.services.task_store import TaskStore

logger = logging.getLogger("taskboard.auth")


# ---------------- TOKEN CARRIER ----------------

def extract_token(cookies: Mapping[str, str], headers: Mapping[str, str], cookie_name: str = "token") -> Optional[str]:
    """
    Pull the session token from its carrier: the session cookie first,
    then an "Authorization: Bearer <token>" header.
    """
    token = cookies.get(cookie_name)
    if token:
        return token
    authorization = headers.get("authorization")
    if authorization:
        parts = authorization.split()
        if len(parts) == 2 and parts[0].lower() == "bearer":
            return parts[1]
    return None


def resolve(tokens: TokenService, token: Optional[str]) -> Optional[Claim]:
    """Identity for a token, or None when it is absent or does not verify. Never raises."""
    if not token:
        return None
    try:
        return tokens.verify(token)
    except Unauthorized as exc:
        logger.info("Rejected session token: %s", exc.message)
        return None


def require(identity: Optional[Claim]) -> Claim:
    if identity is None:
        raise Unauthorized()
    return identity


def resolve_connection(conn: HTTPConnection) -> Optional[Claim]:
    """Resolve identity for an HTTP request or a WebSocket handshake."""
    settings = conn.app.state.settings
    token = extract_token(conn.cookies, conn.headers, settings.token_cookie)
    return resolve(conn.app.state.tokens, token)


# ---------------- FASTAPI DEPENDENCIES ----------------

def get_tokens(request: Request) -> TokenService:
    return request.app.state.tokens


def get_credentials(request: Request) -> CredentialStore:
    return request.app.state.credentials


def get_task_store(request: Request) -> TaskStore:
    return request.app.state.task_store


def get_broadcaster(request: Request) -> Broadcaster:
    return request.app.state.broadcaster


async def get_optional_identity(request: Request) -> Optional[Claim]:
    return resolve_connection(request)


async def get_current_identity(identity: Optional[Claim] = Depends(get_optional_identity)) -> Claim:
    """
    Gate for every task operation and "who am I".
    Raises Unauthorized before the route body (and so any store access) runs.
    """
    return require(identity)
