# taskboard/routers/profile.py
from fastapi import APIRouter, Depends
from taskboard.deps import get_current_identity
from taskboard.services.auth_service import Claim

router = APIRouter(prefix="/api", tags=["profile"])

@router.get("/me")
async def me(identity: Claim = Depends(get_current_identity)):
    # identity comes straight from the verified token, no store lookup
    return identity.public()
