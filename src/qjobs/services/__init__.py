from qjobs.services.backends import BackendStatusFetcher, normalize_backend_names
from qjobs.services.jobs import JobsFetcher, parse_job, resolve_status
from qjobs.services.types import (
    BackendQueue,
    BackendStatus,
    FilterCriteria,
    Job,
    JobCollection,
    JobStatus,
)
from qjobs.services.views import (
    distinct_backends,
    distinct_programs,
    filter_jobs,
    pending_chart_data,
    pending_counts_by_backend,
    top_backends_by_queue_depth,
)

__all__ = [
    "BackendQueue",
    "BackendStatus",
    "BackendStatusFetcher",
    "FilterCriteria",
    "Job",
    "JobCollection",
    "JobStatus",
    "JobsFetcher",
    "distinct_backends",
    "distinct_programs",
    "filter_jobs",
    "normalize_backend_names",
    "parse_job",
    "pending_chart_data",
    "pending_counts_by_backend",
    "resolve_status",
    "top_backends_by_queue_depth",
]
