"""
Shared FastAPI dependencies: engine access and identity resolution.
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.domain.exceptions import AuthError, StoreError
from app.domain.models import Identity
from app.infrastructure.auth.identity_client import IdentityClient
from app.realtime.runtime import PortfolioSession, ValuationEngine

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_engine(request: Request) -> ValuationEngine:
    engine = getattr(request.app.state, "valuation_engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Valuation engine not initialized")
    return engine


def get_identity_client(request: Request) -> IdentityClient:
    client = getattr(request.app.state, "identity_client", None)
    if client is None:
        raise HTTPException(status_code=503, detail="Identity provider not configured")
    return client


async def get_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    identity_client: IdentityClient = Depends(get_identity_client),
) -> Identity:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        return await identity_client.get_identity(credentials.credentials)
    except AuthError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc))


async def get_portfolio_session(
    identity: Identity = Depends(get_identity),
    engine: ValuationEngine = Depends(get_engine),
) -> PortfolioSession:
    try:
        return await engine.open_session(identity)
    except StoreError as exc:
        logger.error("Error loading portfolio for %s: %s", identity.user_id, exc)
        raise HTTPException(status_code=503, detail="Failed to load portfolio data")
