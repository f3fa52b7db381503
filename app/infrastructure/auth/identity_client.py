"""
Identity provider client (GoTrue-compatible passwordless auth).

The engine never issues sessions itself. It asks the provider to send a
magic link / OTP, exchanges the OTP for an access token, and resolves bearer
tokens to an Identity.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

import httpx

from app.domain.exceptions import AuthError
from app.domain.models import Identity

logger = logging.getLogger(__name__)


class IdentityClient:
    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        redirect_url: Optional[str] = None,
        timeout_seconds: float = 10.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = (api_key or "").strip() or None
        self.redirect_url = redirect_url
        self.timeout_seconds = timeout_seconds

    def _headers(self, access_token: Optional[str] = None) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[dict] = None,
        params: Optional[dict] = None,
        access_token: Optional[str] = None,
    ) -> dict:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.request(
                    method, url, json=json, params=params, headers=self._headers(access_token)
                )
        except httpx.HTTPError as exc:
            logger.warning("Identity provider unreachable: %s", exc.__class__.__name__)
            raise AuthError("Identity provider unavailable", status_code=503) from exc

        if response.status_code >= 400:
            logger.info("Identity provider %s %s -> %s", method, path, response.status_code)
            status = 401 if response.status_code in (401, 403) else 400
            if response.status_code >= 500:
                status = 503
            raise AuthError(f"Identity provider rejected {path}", status_code=status)

        if not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError as exc:
            raise AuthError("Identity provider returned malformed JSON", status_code=503) from exc
        return payload if isinstance(payload, dict) else {}

    async def send_magic_link(self, email: str) -> None:
        params = {"redirect_to": self.redirect_url} if self.redirect_url else None
        await self._request("POST", "/otp", json={"email": email, "create_user": True}, params=params)
        logger.info("Magic link requested")

    async def verify_otp(self, email: str, token: str) -> Dict[str, object]:
        """Exchange an emailed one-time code for a session."""
        payload = await self._request(
            "POST", "/verify", json={"email": email, "token": token, "type": "email"}
        )
        if not payload.get("access_token"):
            raise AuthError("No session returned")
        return {
            "access_token": payload["access_token"],
            "refresh_token": payload.get("refresh_token"),
            "expires_in": payload.get("expires_in"),
            "identity": self._to_identity(payload.get("user") or {}),
        }

    async def get_identity(self, access_token: str) -> Identity:
        payload = await self._request("GET", "/user", access_token=access_token)
        return self._to_identity(payload)

    async def sign_out(self, access_token: str) -> None:
        await self._request("POST", "/logout", access_token=access_token)

    @staticmethod
    def _to_identity(user: dict) -> Identity:
        user_id = user.get("id")
        if not user_id:
            raise AuthError("Identity provider returned no user")
        return Identity(user_id=str(user_id), email=user.get("email"))
