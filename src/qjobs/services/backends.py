from __future__ import annotations

import asyncio
from typing import Any
from urllib.parse import quote

from qjobs.client import ApiClient
from qjobs.errors import PartialDataError, QuantumApiError
from qjobs.services.types import BackendStatus


def normalize_backend_names(payload: Any) -> list[str]:
    if isinstance(payload, list):
        items = payload
    elif isinstance(payload, dict) and isinstance(payload.get("backends"), list):
        items = payload["backends"]
    else:
        items = []

    names: list[str] = []
    for item in items:
        name = item if isinstance(item, str) else item.get("name") if isinstance(item, dict) else None
        if isinstance(name, str) and name.strip():
            names.append(name.strip())
    return names


def _pending_jobs(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


class BackendStatusFetcher:
    def __init__(
        self,
        client: ApiClient,
        *,
        limit: int = 24,
        concurrency: int = 1,
    ) -> None:
        self._client = client
        self._limit = limit
        self._concurrency = max(1, concurrency)

    async def list_backend_names(self) -> list[str]:
        return normalize_backend_names(await self._client.request("/backends"))

    async def _fetch_status(self, name: str) -> BackendStatus:
        try:
            payload = await self._client.request(f"/backends/{quote(name, safe='')}/status")
        except QuantumApiError as exc:
            raise PartialDataError(name, exc) from exc

        if not isinstance(payload, dict):
            return BackendStatus(name=name)
        operational = payload.get("operational")
        return BackendStatus(
            name=name,
            pending_jobs=_pending_jobs(payload.get("pending_jobs")),
            operational=operational if isinstance(operational, bool) else None,
        )

    async def _status_or_placeholder(self, name: str, semaphore: asyncio.Semaphore) -> BackendStatus:
        async with semaphore:
            try:
                return await self._fetch_status(name)
            except PartialDataError as exc:
                print(f"[backends] {exc}", flush=True)
                return BackendStatus(name=name)

    async def fetch_backend_statuses(self) -> list[BackendStatus]:
        names = (await self.list_backend_names())[: self._limit]
        semaphore = asyncio.Semaphore(self._concurrency)
        statuses = await asyncio.gather(
            *(self._status_or_placeholder(name, semaphore) for name in names)
        )
        return list(statuses)
