from __future__ import annotations

from collections.abc import Iterable, Sequence

from qjobs.services.types import BackendQueue, BackendStatus, FilterCriteria, Job

ALL = "all"


def _matches_text(job: Job, query: str) -> bool:
    if not query:
        return True
    return (
        query in job.id.lower()
        or query in job.backend.lower()
        or (job.program_id is not None and query in job.program_id.lower())
    )


def filter_jobs(jobs: Iterable[Job], criteria: FilterCriteria) -> list[Job]:
    query = criteria.text.strip().lower()
    return [
        job
        for job in jobs
        if (criteria.backend == ALL or job.backend == criteria.backend)
        and (criteria.program == ALL or job.program_id == criteria.program)
        and _matches_text(job, query)
    ]


def _with_all(values: Iterable[str | None]) -> list[str]:
    unique = {value for value in values if value and value != ALL}
    return [ALL, *sorted(unique)]


def distinct_backends(
    pending: Iterable[Job],
    other: Iterable[Job],
    statuses: Iterable[BackendStatus] = (),
) -> list[str]:
    names = [job.backend for job in pending]
    names.extend(job.backend for job in other)
    names.extend(status.name for status in statuses)
    return _with_all(names)


def distinct_programs(pending: Iterable[Job], other: Iterable[Job]) -> list[str]:
    programs = [job.program_id for job in pending]
    programs.extend(job.program_id for job in other)
    return _with_all(programs)


def pending_counts_by_backend(pending: Iterable[Job]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for job in pending:
        counts[job.backend] = counts.get(job.backend, 0) + 1
    return counts


def pending_chart_data(pending: Iterable[Job]) -> list[BackendQueue]:
    return [
        BackendQueue(name=name, count=count)
        for name, count in pending_counts_by_backend(pending).items()
    ]


def top_backends_by_queue_depth(
    statuses: Sequence[BackendStatus],
    limit: int = 12,
) -> list[BackendQueue]:
    known = [status for status in statuses if status.pending_jobs is not None]
    # sorted() is stable, so equal depths keep their listing order.
    ranked = sorted(known, key=lambda status: status.pending_jobs, reverse=True)
    return [
        BackendQueue(name=status.name, count=status.pending_jobs)
        for status in ranked[: max(0, limit)]
    ]
