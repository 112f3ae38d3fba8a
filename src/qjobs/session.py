from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

import httpx

from qjobs.auth import TokenManager
from qjobs.client import ApiClient
from qjobs.config import Settings
from qjobs.credentials import (
    Credentials,
    CredentialStore,
    InMemoryCredentialStore,
    credentials_from_settings,
)
from qjobs.errors import AuthError, QuantumApiError
from qjobs.poller import PollScheduler, PollState
from qjobs.services.backends import BackendStatusFetcher
from qjobs.services.jobs import JobsFetcher
from qjobs.services.types import Snapshot


class MonitorSession:
    """Holds the latest jobs/backends snapshot and keeps it fresh.

    Refresh failures are logged and leave the last good snapshot in place.
    Backend statuses are only fetched when credentials are established or on
    an explicit :meth:`refresh_backends` call; the scheduler only polls jobs.
    """

    def __init__(
        self,
        *,
        store: CredentialStore,
        tokens: TokenManager,
        jobs_fetcher: JobsFetcher,
        backend_fetcher: BackendStatusFetcher,
        poll_seconds: float,
        scheduler_factory: Callable[..., PollScheduler] = PollScheduler,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._store = store
        self._tokens = tokens
        self._jobs_fetcher = jobs_fetcher
        self._backend_fetcher = backend_fetcher
        self._scheduler = scheduler_factory(self.refresh_jobs)
        self._poll_seconds = self._scheduler.clamp(poll_seconds)
        self._http_client = http_client
        self._snapshot = Snapshot()
        self._issued = {"jobs": 0, "backends": 0}
        self._applied = {"jobs": 0, "backends": 0}
        self._errors: dict[str, str] = {}

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def credentials(self) -> Credentials:
        return self._store.get()

    @property
    def token_ready(self) -> bool:
        return self._tokens.token_ready

    @property
    def polling_state(self) -> PollState:
        return self._scheduler.state

    @property
    def last_error(self) -> str | None:
        return "; ".join(self._errors.values()) or None

    @property
    def poll_seconds(self) -> float:
        return self._poll_seconds

    def _reset_snapshot(self) -> None:
        self._snapshot = Snapshot()
        # Refreshes still in flight were issued under the old credentials.
        for kind, issued in self._issued.items():
            self._applied[kind] = issued + 1

    def _issue(self, kind: str) -> int:
        self._issued[kind] += 1
        return self._issued[kind]

    def _accept(self, kind: str, sequence: int) -> bool:
        if sequence < self._applied[kind]:
            # A refresh issued later has already been applied, or the
            # credentials changed while this one was in flight.
            return False
        self._applied[kind] = sequence
        return True

    def _record_failure(self, action: str, exc: Exception) -> None:
        self._errors[action] = f"{action}: {exc}"
        print(f"[session] {action} failed error={exc}", flush=True)

    async def refresh_jobs(self) -> bool:
        sequence = self._issue("jobs")
        try:
            collection = await self._jobs_fetcher.fetch_jobs()
        except QuantumApiError as exc:
            self._record_failure("jobs refresh", exc)
            return False

        if not self._accept("jobs", sequence):
            return False
        self._snapshot.jobs = collection
        self._errors.pop("jobs refresh", None)
        print(
            f"[session] jobs refreshed pending={len(collection.pending)} other={len(collection.other)}",
            flush=True,
        )
        return True

    async def refresh_backends(self) -> bool:
        sequence = self._issue("backends")
        try:
            statuses = await self._backend_fetcher.fetch_backend_statuses()
        except QuantumApiError as exc:
            self._record_failure("backend refresh", exc)
            return False

        if not self._accept("backends", sequence):
            return False
        self._errors.pop("backend refresh", None)
        self._snapshot.backends = tuple(statuses)
        self._snapshot.backends_fetched_at = datetime.now(timezone.utc)
        print(f"[session] backends refreshed count={len(statuses)}", flush=True)
        return True

    async def establish(self) -> None:
        """Acquire a token, load jobs and backends, then (re)start polling.

        Raises :class:`AuthError` when the token exchange fails; polling is
        not started in that case.
        """
        try:
            await self._tokens.get_token()
        except AuthError as exc:
            self._record_failure("token exchange", exc)
            raise
        self._errors.pop("token exchange", None)

        await self.refresh_jobs()
        await self.refresh_backends()
        self._scheduler.restart(self._poll_seconds)

    async def start(self) -> None:
        if not self._store.get().is_complete:
            print("[session] credentials incomplete; waiting for configuration", flush=True)
            return
        try:
            await self.establish()
        except AuthError:
            return

    async def update_credentials(self, credentials: Credentials) -> None:
        previous = self._store.get()
        self._store.set(credentials)
        current = self._store.get()
        self._tokens.invalidate()

        if (previous.api_key, previous.instance_crn) != (current.api_key, current.instance_crn):
            self._reset_snapshot()

        if not current.is_complete:
            self._scheduler.stop()
            return
        await self.establish()

    def clear_credentials(self) -> None:
        self._scheduler.stop()
        self._store.clear()
        self._tokens.invalidate()
        self._reset_snapshot()
        self._errors.clear()

    def set_poll_interval(self, interval_seconds: float) -> float:
        if self._scheduler.state is PollState.POLLING:
            self._poll_seconds = self._scheduler.restart(interval_seconds)
        else:
            self._poll_seconds = self._scheduler.clamp(interval_seconds)
        return self._poll_seconds

    async def aclose(self) -> None:
        self._scheduler.stop()
        if self._http_client is not None:
            await self._http_client.aclose()


def build_session(
    settings: Settings,
    *,
    http_client: httpx.AsyncClient | None = None,
    store: CredentialStore | None = None,
) -> MonitorSession:
    client = http_client or httpx.AsyncClient()
    credential_store = store or InMemoryCredentialStore(credentials_from_settings(settings))
    tokens = TokenManager(
        store=credential_store,
        token_url=settings.iam_token_url,
        http_client=client,
        timeout_seconds=settings.http_timeout_seconds,
        refresh_margin_seconds=settings.token_refresh_margin_seconds,
    )
    api = ApiClient(
        base_url=settings.api_base_url,
        store=credential_store,
        tokens=tokens,
        http_client=client,
        timeout_seconds=settings.http_timeout_seconds,
    )
    return MonitorSession(
        store=credential_store,
        tokens=tokens,
        jobs_fetcher=JobsFetcher(api, limit=settings.jobs_limit),
        backend_fetcher=BackendStatusFetcher(
            api,
            limit=settings.backend_status_limit,
            concurrency=settings.backend_status_concurrency,
        ),
        poll_seconds=settings.poll_seconds,
        http_client=client,
    )
