from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class JobStatus(str, Enum):
    QUEUED = "Queued"
    RUNNING = "Running"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    FAILED = "Failed"
    UNKNOWN = "Unknown"

    @property
    def is_pending(self) -> bool:
        return self in (JobStatus.QUEUED, JobStatus.RUNNING)


@dataclass(frozen=True)
class Job:
    id: str
    backend: str
    status: JobStatus = JobStatus.UNKNOWN
    created_at: datetime | None = None
    program_id: str | None = None
    usage_seconds: float | None = None
    tags: frozenset[str] = frozenset()
    session_id: str | None = None
    is_private: bool | None = None
    cost: float | None = None
    reason: str | None = None


@dataclass(frozen=True)
class BackendStatus:
    name: str
    pending_jobs: int | None = None
    operational: bool | None = None


@dataclass(frozen=True)
class JobCollection:
    pending: tuple[Job, ...] = ()
    other: tuple[Job, ...] = ()
    fetched_at: datetime | None = None


@dataclass(frozen=True)
class FilterCriteria:
    text: str = ""
    backend: str = "all"
    program: str = "all"


@dataclass(frozen=True)
class BackendQueue:
    name: str
    count: int


@dataclass
class Snapshot:
    jobs: JobCollection = field(default_factory=JobCollection)
    backends: tuple[BackendStatus, ...] = ()
    backends_fetched_at: datetime | None = None
