from fastapi import APIRouter, Depends, Request, Response
from taskboard.deps import get_credentials, get_tokens
from taskboard.schemas import CredentialsIn
from taskboard.services.auth_service import TokenService
from taskboard.services.credential_store import CredentialStore
import logging

router = APIRouter(prefix="/api/auth", tags=["auth"])

logger = logging.getLogger("taskboard.auth")


# ---------------------- HELPERS ----------------------
def set_token_cookie(request: Request, response: Response, token: str):
    """Attach the session token to the response as the carrier cookie."""
    settings = request.app.state.settings
    response.set_cookie(
        settings.token_cookie,
        token,
        max_age=settings.jwt_expire_minutes * 60,
        httponly=True,
        samesite="lax",
    )


# ---------------------- ROUTES ----------------------
@router.post("/register", status_code=201)
async def register(
    payload: CredentialsIn,
    request: Request,
    response: Response,
    credentials: CredentialStore = Depends(get_credentials),
    tokens: TokenService = Depends(get_tokens),
):
    logger.info(f"POST /register received for email: {payload.email}")
    user = await credentials.register(payload.email, payload.password)
    token = tokens.issue(user.id, user.email)
    set_token_cookie(request, response, token)
    return {"token": token}


@router.post("/login")
async def login(
    payload: CredentialsIn,
    request: Request,
    response: Response,
    credentials: CredentialStore = Depends(get_credentials),
    tokens: TokenService = Depends(get_tokens),
):
    logger.info(f"POST /login received for email: {payload.email}")
    user = await credentials.verify(payload.email, payload.password)
    token = tokens.issue(user.id, user.email)
    set_token_cookie(request, response, token)
    logger.info(f"User logged in: {payload.email}")
    return {"token": token}


# logout only drops the cookie; issued tokens stay valid until they expire
@router.post("/logout")
async def logout(request: Request, response: Response):
    response.delete_cookie(request.app.state.settings.token_cookie)
    return {"ok": True}
