from __future__ import annotations

from typing import Any

import httpx

from qjobs.auth import TokenManager
from qjobs.credentials import CredentialStore
from qjobs.errors import AuthError, HttpError


class ApiClient:
    def __init__(
        self,
        *,
        base_url: str,
        store: CredentialStore,
        tokens: TokenManager,
        http_client: httpx.AsyncClient,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._store = store
        self._tokens = tokens
        self._http = http_client
        self._timeout_seconds = timeout_seconds

    async def request(
        self,
        path: str,
        *,
        method: str = "GET",
        params: dict[str, Any] | None = None,
    ) -> Any:
        credentials = self._store.get()
        if not credentials.is_complete:
            raise AuthError("API key and service CRN are required before calling the API")

        token = await self._tokens.get_token()
        headers = {
            "Accept": "application/json",
            "Authorization": f"Bearer {token.value}",
        }
        if credentials.instance_crn:
            headers["Service-CRN"] = credentials.instance_crn

        try:
            response = await self._http.request(
                method,
                f"{self._base_url}{path}",
                params=params,
                headers=headers,
                timeout=self._timeout_seconds,
            )
        except httpx.HTTPError as exc:
            raise HttpError(None, path, f"{path} -> request failed: {exc}") from exc

        if response.status_code == 401:
            self._tokens.invalidate()
        if not response.is_success:
            raise HttpError(response.status_code, path)

        try:
            return response.json()
        except ValueError as exc:
            raise HttpError(response.status_code, path, f"{path} -> invalid JSON body") from exc
