from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from qjobs.client import ApiClient
from qjobs.services.types import Job, JobCollection, JobStatus

_STATUS_ALIASES = {
    "done": JobStatus.COMPLETED,
    "error": JobStatus.FAILED,
    "cancelled - ran too long": JobStatus.CANCELLED,
    "canceled": JobStatus.CANCELLED,
    "initializing": JobStatus.QUEUED,
    "validating": JobStatus.QUEUED,
}


def _status_from_text(value: str) -> JobStatus:
    normalized = value.strip().lower()
    for status in JobStatus:
        if status.value.lower() == normalized:
            return status
    return _STATUS_ALIASES.get(normalized, JobStatus.UNKNOWN)


def resolve_status(payload: dict[str, Any]) -> JobStatus:
    """Resolve a job's status from a provider payload.

    Precedence: the top-level ``status`` field, then ``state.status``, then
    ``Unknown``. Blank or non-string values are treated as absent.
    """
    direct = payload.get("status")
    if isinstance(direct, str) and direct.strip():
        return _status_from_text(direct)

    state = payload.get("state")
    nested = state.get("status") if isinstance(state, dict) else None
    if isinstance(nested, str) and nested.strip():
        return _status_from_text(nested)

    return JobStatus.UNKNOWN


def _parse_timestamp(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    normalized = value.strip()
    if normalized.endswith("Z"):
        normalized = f"{normalized[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _optional_number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _optional_str(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


def parse_job(payload: Any) -> Job | None:
    if not isinstance(payload, dict):
        return None
    job_id = payload.get("id")
    if not isinstance(job_id, str) or not job_id:
        return None

    program = payload.get("program")
    usage = payload.get("usage")
    state = payload.get("state")
    tags = payload.get("tags")
    is_private = payload.get("private")

    return Job(
        id=job_id,
        backend=str(payload.get("backend") or ""),
        status=resolve_status(payload),
        created_at=_parse_timestamp(payload.get("created")),
        program_id=_optional_str(program.get("id")) if isinstance(program, dict) else None,
        usage_seconds=_optional_number(usage.get("seconds")) if isinstance(usage, dict) else None,
        tags=frozenset(tag for tag in tags if isinstance(tag, str)) if isinstance(tags, list) else frozenset(),
        session_id=_optional_str(payload.get("session_id")),
        is_private=is_private if isinstance(is_private, bool) else None,
        cost=_optional_number(payload.get("cost")),
        reason=_optional_str(state.get("reason")) if isinstance(state, dict) else None,
    )


def parse_jobs(payload: Any) -> tuple[Job, ...]:
    records = payload.get("jobs") if isinstance(payload, dict) else None
    if not isinstance(records, list):
        return ()

    seen: set[str] = set()
    jobs: list[Job] = []
    for record in records:
        job = parse_job(record)
        if job is None or job.id in seen:
            continue
        seen.add(job.id)
        jobs.append(job)
    return tuple(jobs)


class JobsFetcher:
    def __init__(self, client: ApiClient, *, limit: int = 200) -> None:
        self._client = client
        self._limit = limit

    async def _fetch(self, *, pending: bool) -> tuple[Job, ...]:
        payload = await self._client.request(
            "/jobs",
            params={
                "pending": "true" if pending else "false",
                "limit": self._limit,
                "sort": "DESC",
            },
        )
        return parse_jobs(payload)[: self._limit]

    async def fetch_jobs(self) -> JobCollection:
        # Both requests must succeed; a failure in either discards the cycle.
        pending = await self._fetch(pending=True)
        other = await self._fetch(pending=False)
        return JobCollection(
            pending=pending,
            other=other,
            fetched_at=datetime.now(timezone.utc),
        )
