import pytest

from qjobs.services.types import BackendQueue, BackendStatus, FilterCriteria, Job, JobStatus
from qjobs.services.views import (
    distinct_backends,
    distinct_programs,
    filter_jobs,
    pending_chart_data,
    pending_counts_by_backend,
    top_backends_by_queue_depth,
)

PENDING = [
    Job(id="j1", backend="ibm_brisbane", status=JobStatus.RUNNING, program_id="sampler"),
    Job(id="j2", backend="ibm_kyoto", status=JobStatus.QUEUED, program_id="estimator"),
    Job(id="j3", backend="ibm_kyoto", status=JobStatus.QUEUED),
    Job(id="KYOTO-7", backend="ibm_torino", status=JobStatus.QUEUED, program_id="sampler"),
]
OTHER = [
    Job(id="j0", backend="ibm_sherbrooke", status=JobStatus.COMPLETED, program_id="circuit-runner"),
    Job(id="j-1", backend="ibm_kyoto", status=JobStatus.FAILED, program_id="sampler"),
]

CRITERIA = [
    FilterCriteria(),
    FilterCriteria(text="kyoto"),
    FilterCriteria(text="  SAMPLER "),
    FilterCriteria(backend="ibm_kyoto"),
    FilterCriteria(program="sampler"),
    FilterCriteria(text="j", backend="ibm_kyoto", program="estimator"),
    FilterCriteria(text="nothing-matches"),
]


def test_text_filter_matches_backend_substring() -> None:
    jobs = [
        Job(id="j1", backend="ibm_brisbane", status=JobStatus.RUNNING),
        Job(id="j2", backend="ibm_kyoto", status=JobStatus.QUEUED),
    ]

    result = filter_jobs(jobs, FilterCriteria(text="kyoto", backend="all", program="all"))

    assert [job.id for job in result] == ["j2"]


def test_text_filter_is_case_insensitive_over_id_backend_and_program() -> None:
    assert [job.id for job in filter_jobs(PENDING, FilterCriteria(text="KyOtO"))] == ["j2", "j3", "KYOTO-7"]
    assert [job.id for job in filter_jobs(PENDING, FilterCriteria(text="ESTIM"))] == ["j2"]


def test_backend_and_program_filters_combine() -> None:
    criteria = FilterCriteria(backend="ibm_kyoto", program="estimator")

    assert [job.id for job in filter_jobs(PENDING, criteria)] == ["j2"]
    assert filter_jobs(PENDING, FilterCriteria(program="missing")) == []


@pytest.mark.parametrize("criteria", CRITERIA)
def test_filter_is_idempotent(criteria: FilterCriteria) -> None:
    jobs = PENDING + OTHER
    once = filter_jobs(jobs, criteria)

    assert filter_jobs(once, criteria) == once


def test_default_criteria_is_identity() -> None:
    jobs = PENDING + OTHER

    assert filter_jobs(jobs, FilterCriteria(text="", backend="all", program="all")) == jobs


def test_distinct_backends_include_status_names_sorted_after_all() -> None:
    statuses = [BackendStatus(name="ibm_fez"), BackendStatus(name="ibm_kyoto", pending_jobs=2)]

    assert distinct_backends(PENDING, OTHER, statuses) == [
        "all",
        "ibm_brisbane",
        "ibm_fez",
        "ibm_kyoto",
        "ibm_sherbrooke",
        "ibm_torino",
    ]


def test_distinct_programs_skip_jobs_without_program() -> None:
    assert distinct_programs(PENDING, OTHER) == ["all", "circuit-runner", "estimator", "sampler"]


def test_distinct_sets_never_duplicate_all() -> None:
    jobs = [Job(id="x", backend="all", program_id="all"), Job(id="y", backend="")]

    for values in (distinct_backends(jobs, [], []), distinct_programs(jobs, [])):
        assert values[0] == "all"
        assert len(values) == len(set(values))
    assert distinct_backends([], [], []) == ["all"]


def test_pending_counts_sum_to_number_of_pending_jobs() -> None:
    counts = pending_counts_by_backend(PENDING)

    assert counts == {"ibm_brisbane": 1, "ibm_kyoto": 2, "ibm_torino": 1}
    assert sum(counts.values()) == len(PENDING)
    assert pending_counts_by_backend([]) == {}


def test_pending_chart_data_keeps_first_seen_order() -> None:
    assert pending_chart_data(PENDING) == [
        BackendQueue(name="ibm_brisbane", count=1),
        BackendQueue(name="ibm_kyoto", count=2),
        BackendQueue(name="ibm_torino", count=1),
    ]


def test_top_backends_sorted_descending_with_stable_ties() -> None:
    statuses = [
        BackendStatus(name="a", pending_jobs=3),
        BackendStatus(name="b", pending_jobs=None),
        BackendStatus(name="c", pending_jobs=10),
        BackendStatus(name="d", pending_jobs=3),
        BackendStatus(name="e", pending_jobs=0),
    ]

    ranked = top_backends_by_queue_depth(statuses)

    assert [(queue.name, queue.count) for queue in ranked] == [("c", 10), ("a", 3), ("d", 3), ("e", 0)]


def test_top_backends_respects_limit() -> None:
    statuses = [BackendStatus(name=f"b{index}", pending_jobs=index % 5) for index in range(20)]

    ranked = top_backends_by_queue_depth(statuses, limit=12)

    assert len(ranked) == 12
    counts = [queue.count for queue in ranked]
    assert counts == sorted(counts, reverse=True)
    assert top_backends_by_queue_depth(statuses, limit=0) == []
