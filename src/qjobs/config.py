from dataclasses import dataclass
from functools import lru_cache
import os


def _to_bool(value: str | None, *, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _to_int(value: str | None, *, default: int, minimum: int) -> int:
    if value is None:
        return default
    parsed = int(value)
    return max(minimum, parsed)


def _to_float(value: str | None, *, default: float, minimum: float) -> float:
    if value is None:
        return default
    parsed = float(value)
    return max(minimum, parsed)


MIN_POLL_SECONDS = 5.0


@dataclass(frozen=True)
class Settings:
    api_key: str
    instance_crn: str
    region: str
    iam_token_url: str
    api_base_url: str
    job_view_base_url: str
    poll_seconds: float
    jobs_limit: int
    backend_status_limit: int
    backend_status_concurrency: int
    http_timeout_seconds: float
    token_refresh_margin_seconds: float
    autostart: bool


@lru_cache
def get_settings() -> Settings:
    return Settings(
        api_key=os.getenv("IBM_CLOUD_API_KEY", ""),
        instance_crn=os.getenv("IBM_QUANTUM_INSTANCE_CRN", ""),
        region=os.getenv("IBM_QUANTUM_REGION", "us-east"),
        iam_token_url=os.getenv(
            "QJOBS_IAM_TOKEN_URL",
            "https://iam.cloud.ibm.com/identity/token",
        ),
        api_base_url=os.getenv("QJOBS_API_BASE_URL", "https://quantum.cloud.ibm.com/api/v1"),
        job_view_base_url=os.getenv(
            "QJOBS_JOB_VIEW_BASE_URL",
            "https://quantum-computing.ibm.com/jobs",
        ),
        poll_seconds=_to_float(
            os.getenv("QJOBS_POLL_SECONDS"), default=15.0, minimum=MIN_POLL_SECONDS
        ),
        jobs_limit=_to_int(os.getenv("QJOBS_JOBS_LIMIT"), default=200, minimum=1),
        backend_status_limit=_to_int(
            os.getenv("QJOBS_BACKEND_STATUS_LIMIT"), default=24, minimum=1
        ),
        backend_status_concurrency=_to_int(
            os.getenv("QJOBS_BACKEND_STATUS_CONCURRENCY"), default=1, minimum=1
        ),
        http_timeout_seconds=float(os.getenv("QJOBS_HTTP_TIMEOUT_SECONDS", "30")),
        token_refresh_margin_seconds=_to_float(
            os.getenv("QJOBS_TOKEN_REFRESH_MARGIN_SECONDS"), default=60.0, minimum=0.0
        ),
        autostart=_to_bool(os.getenv("QJOBS_AUTOSTART"), default=True),
    )
