from datetime import datetime
from functools import lru_cache
from typing import Annotated, Any

from fastapi import Depends, FastAPI, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field

from qjobs.config import get_settings
from qjobs.credentials import DEFAULT_REGION, Credentials
from qjobs.errors import AuthError
from qjobs.services import (
    BackendQueue,
    BackendStatus,
    FilterCriteria,
    Job,
    distinct_backends,
    distinct_programs,
    filter_jobs,
    pending_chart_data,
    top_backends_by_queue_depth,
)
from qjobs.session import MonitorSession, build_session

app = FastAPI(title="Quantum Jobs Monitor API", version="0.1.0")


class CredentialsRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    api_key: str = Field(min_length=1)
    instance_crn: str = Field(min_length=1)
    region: str = DEFAULT_REGION


class PollingRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    interval_seconds: float = Field(gt=0)


@lru_cache
def get_monitor_session() -> MonitorSession:
    return build_session(get_settings())


@app.on_event("startup")
async def startup() -> None:
    if get_settings().autostart:
        await get_monitor_session().start()


@app.on_event("shutdown")
async def shutdown() -> None:
    await get_monitor_session().aclose()


SessionDep = Annotated[MonitorSession, Depends(get_monitor_session)]


def _to_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()


def _job_detail(job: Job) -> dict[str, Any]:
    settings = get_settings()
    return {
        "id": job.id,
        "backend": job.backend,
        "status": job.status.value,
        "reason": job.reason,
        "created_at": _to_iso(job.created_at),
        "program_id": job.program_id,
        "usage_seconds": job.usage_seconds,
        "tags": sorted(job.tags),
        "session_id": job.session_id,
        "private": job.is_private,
        "cost": job.cost,
        "view_url": f"{settings.job_view_base_url.rstrip('/')}/{job.id}",
        "api_url": f"{settings.api_base_url.rstrip('/')}/jobs/{job.id}",
    }


def _backend_detail(status: BackendStatus) -> dict[str, Any]:
    return {
        "name": status.name,
        "pending_jobs": status.pending_jobs,
        "operational": status.operational,
    }


def _queue_detail(queue: BackendQueue) -> dict[str, Any]:
    return {"name": queue.name, "count": queue.count}


def _status(session: MonitorSession) -> dict[str, Any]:
    credentials = session.credentials
    snapshot = session.snapshot
    return {
        "token_ready": session.token_ready,
        "polling": session.polling_state.value,
        "interval_seconds": session.poll_seconds,
        "credentials": {
            "configured": credentials.is_complete,
            "instance_crn": credentials.instance_crn or None,
            "region": credentials.region,
        },
        "jobs_refreshed_at": _to_iso(snapshot.jobs.fetched_at),
        "backends_refreshed_at": _to_iso(snapshot.backends_fetched_at),
        "last_error": session.last_error,
    }


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/status")
async def status(session: SessionDep) -> dict[str, Any]:
    return _status(session)


@app.put("/credentials")
async def update_credentials(request: CredentialsRequest, session: SessionDep) -> dict[str, Any]:
    try:
        await session.update_credentials(
            Credentials(
                api_key=request.api_key,
                instance_crn=request.instance_crn,
                region=request.region,
            )
        )
    except AuthError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    return _status(session)


@app.delete("/credentials")
async def clear_credentials(session: SessionDep) -> dict[str, Any]:
    session.clear_credentials()
    return _status(session)


@app.post("/refresh")
async def refresh_jobs(session: SessionDep) -> dict[str, bool]:
    return {"refreshed": await session.refresh_jobs()}


@app.post("/refresh/backends")
async def refresh_backends(session: SessionDep) -> dict[str, bool]:
    return {"refreshed": await session.refresh_backends()}


@app.put("/polling")
async def update_polling(request: PollingRequest, session: SessionDep) -> dict[str, Any]:
    effective = session.set_poll_interval(request.interval_seconds)
    return {"interval_seconds": effective, "polling": session.polling_state.value}


@app.get("/jobs")
async def list_jobs(
    session: SessionDep,
    text: str = Query(default=""),
    backend: str = Query(default="all"),
    program: str = Query(default="all"),
) -> dict[str, list[dict[str, Any]]]:
    criteria = FilterCriteria(text=text, backend=backend, program=program)
    jobs = session.snapshot.jobs
    return {
        "pending": [_job_detail(job) for job in filter_jobs(jobs.pending, criteria)],
        "other": [_job_detail(job) for job in filter_jobs(jobs.other, criteria)],
    }


@app.get("/filters")
async def list_filters(session: SessionDep) -> dict[str, list[str]]:
    snapshot = session.snapshot
    return {
        "backends": distinct_backends(
            snapshot.jobs.pending, snapshot.jobs.other, snapshot.backends
        ),
        "programs": distinct_programs(snapshot.jobs.pending, snapshot.jobs.other),
    }


@app.get("/backends")
async def list_backends(session: SessionDep) -> list[dict[str, Any]]:
    return [_backend_detail(status) for status in session.snapshot.backends]


@app.get("/summary")
async def summary(
    session: SessionDep,
    text: str = Query(default=""),
    backend: str = Query(default="all"),
    program: str = Query(default="all"),
    limit: int = Query(default=12, ge=1, le=50),
) -> dict[str, Any]:
    criteria = FilterCriteria(text=text, backend=backend, program=program)
    snapshot = session.snapshot
    return {
        "pending_count": len(filter_jobs(snapshot.jobs.pending, criteria)),
        "other_count": len(filter_jobs(snapshot.jobs.other, criteria)),
        "pending_by_backend": [_queue_detail(queue) for queue in pending_chart_data(snapshot.jobs.pending)],
        "queue_depth": [
            _queue_detail(queue)
            for queue in top_backends_by_queue_depth(snapshot.backends, limit=limit)
        ],
    }


def run() -> None:
    import uvicorn

    uvicorn.run("qjobs.main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    run()
