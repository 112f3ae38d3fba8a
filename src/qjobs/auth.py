from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import httpx

from qjobs.credentials import Credentials, CredentialStore
from qjobs.errors import AuthError

APIKEY_GRANT_TYPE = "urn:ibm:params:oauth:grant-type:apikey"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Token:
    value: str
    obtained_at: datetime
    expires_at: datetime | None = None

    def needs_refresh(self, now: datetime, *, margin: timedelta) -> bool:
        if self.expires_at is None:
            return False
        # Short-lived tokens would otherwise be stale as soon as they arrive.
        lifetime = max(self.expires_at - self.obtained_at, timedelta(0))
        margin = min(margin, lifetime / 2)
        return now >= self.expires_at - margin


def _expires_at(payload: dict[str, Any], obtained_at: datetime) -> datetime | None:
    expiration = payload.get("expiration")
    if isinstance(expiration, (int, float)) and not isinstance(expiration, bool):
        return datetime.fromtimestamp(expiration, tz=timezone.utc)
    expires_in = payload.get("expires_in")
    if isinstance(expires_in, (int, float)) and not isinstance(expires_in, bool):
        return obtained_at + timedelta(seconds=expires_in)
    return None


class TokenManager:
    """Exchanges the stored API key for an IAM bearer token and caches it.

    Refresh is proactive: a cached token is reused until it is within
    ``refresh_margin_seconds`` of its reported expiry. Concurrent callers of
    :meth:`get_token` share a single exchange.
    """

    def __init__(
        self,
        *,
        store: CredentialStore,
        token_url: str,
        http_client: httpx.AsyncClient,
        timeout_seconds: float = 30.0,
        refresh_margin_seconds: float = 60.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._token_url = token_url
        self._http = http_client
        self._timeout_seconds = timeout_seconds
        self._refresh_margin = timedelta(seconds=refresh_margin_seconds)
        self._clock = clock
        self._token: Token | None = None
        self._generation = 0
        self._lock = asyncio.Lock()

    @property
    def token_ready(self) -> bool:
        return self._token is not None and not self._token.needs_refresh(
            self._clock(), margin=timedelta(0)
        )

    def invalidate(self) -> None:
        self._token = None
        self._generation += 1

    def _cached(self) -> Token | None:
        token = self._token
        if token is None or token.needs_refresh(self._clock(), margin=self._refresh_margin):
            return None
        return token

    async def get_token(self) -> Token:
        cached = self._cached()
        if cached is not None:
            return cached

        async with self._lock:
            # Another caller may have finished the exchange while we waited.
            cached = self._cached()
            if cached is not None:
                return cached
            return await self.acquire_token(self._store.get())

    async def acquire_token(self, credentials: Credentials) -> Token:
        api_key = credentials.api_key.strip()
        if not api_key:
            raise AuthError("IBM Cloud API key is not configured")
        generation = self._generation

        try:
            response = await self._http.post(
                self._token_url,
                data={"grant_type": APIKEY_GRANT_TYPE, "apikey": api_key},
                headers={
                    "Accept": "application/json",
                    "Content-Type": "application/x-www-form-urlencoded",
                },
                timeout=self._timeout_seconds,
            )
        except httpx.HTTPError as exc:
            raise AuthError(f"IAM token request failed: {exc}") from exc

        if not response.is_success:
            raise AuthError(f"IAM token error: {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise AuthError("Invalid IAM token payload: body is not JSON") from exc

        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not isinstance(access_token, str) or not access_token:
            raise AuthError("Invalid IAM token payload: missing access_token")

        obtained_at = self._clock()
        token = Token(
            value=access_token,
            obtained_at=obtained_at,
            expires_at=_expires_at(payload, obtained_at),
        )
        # An invalidate() during the exchange means the key may have changed.
        if generation == self._generation:
            self._token = token
        return token
