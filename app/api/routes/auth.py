"""
Auth API Routes
Passwordless login hand-off to the identity provider
"""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import BaseModel
from typing import Optional
import logging

from app.api.dependencies import bearer_scheme, get_engine, get_identity, get_identity_client
from app.domain.exceptions import AuthError, StoreError
from app.domain.models import Identity
from app.infrastructure.auth.identity_client import IdentityClient
from app.realtime.runtime import ValuationEngine

logger = logging.getLogger(__name__)
router = APIRouter()


class MagicLinkRequest(BaseModel):
    email: str


class VerifyRequest(BaseModel):
    email: str
    token: str


@router.post("/magic-link", status_code=202)
async def request_magic_link(
    payload: MagicLinkRequest,
    identity_client: IdentityClient = Depends(get_identity_client),
):
    email = payload.email.strip()
    if "@" not in email:
        raise HTTPException(status_code=400, detail="Enter a valid email address")
    try:
        await identity_client.send_magic_link(email)
    except AuthError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc))
    return {"status": "sent"}


@router.post("/verify")
async def verify_code(
    payload: VerifyRequest,
    identity_client: IdentityClient = Depends(get_identity_client),
    engine: ValuationEngine = Depends(get_engine),
):
    try:
        session_data = await identity_client.verify_otp(payload.email.strip(), payload.token.strip())
    except AuthError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc))

    identity: Identity = session_data["identity"]
    try:
        await engine.open_session(identity)
    except StoreError as exc:
        logger.error("Error loading portfolio for %s: %s", identity.user_id, exc)
        raise HTTPException(status_code=503, detail="Failed to load portfolio data")

    return {
        "access_token": session_data["access_token"],
        "refresh_token": session_data["refresh_token"],
        "expires_in": session_data["expires_in"],
        "user": {"id": identity.user_id, "email": identity.email},
    }


@router.post("/logout")
async def logout(
    identity: Identity = Depends(get_identity),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    identity_client: IdentityClient = Depends(get_identity_client),
    engine: ValuationEngine = Depends(get_engine),
):
    closed = engine.close_session(identity.user_id)
    try:
        await identity_client.sign_out(credentials.credentials)
    except AuthError as exc:
        logger.warning("Identity provider sign-out failed: %s", exc)
    return {"status": "signed_out", "session_closed": closed}
