"""Consistency checks for stored period snapshots."""

from __future__ import annotations

from typing import Any

import numpy as np

from wip_engine.job_calculations import calculate_earned_revenue, sum_breakdown
from wip_engine.metrics import calculate_job_metrics
from wip_engine.models import JobStatus
from wip_engine.schema import normalize_jobs


def _finding(check: str, max_abs_delta: float, job: str, lhs_name: str, rhs_name: str) -> dict[str, Any]:
    return {
        "Check": check,
        "Max Abs Delta": float(max_abs_delta),
        "Job": job,
        "LHS": lhs_name,
        "RHS": rhs_name,
    }


def _check_identity(
    findings: list[dict[str, Any]],
    check_name: str,
    lhs_name: str,
    rhs_name: str,
    lhs,
    rhs,
    tol: float,
    labels: list[str] | None = None,
) -> None:
    delta = np.nan_to_num(np.atleast_1d(np.asarray(lhs, dtype=float) - np.asarray(rhs, dtype=float)), nan=0.0)
    if len(delta) == 0:
        return
    idx = int(np.argmax(np.abs(delta)))
    max_abs = float(np.abs(delta[idx]))
    if max_abs > float(tol):
        job = labels[idx] if labels and idx < len(labels) else ""
        findings.append(_finding(check_name, max_abs, job, lhs_name, rhs_name))


def run_snapshot_integrity_checks(row: dict[str, Any], tol: float = 1e-3) -> list[dict[str, Any]]:
    """Recompute a snapshot row from its job data; an empty list means the row is consistent."""
    if not isinstance(row, dict) or "snapshot_data" not in row:
        return [{"Check": "Snapshot not available", "Max Abs Delta": np.nan, "Job": "", "LHS": "", "RHS": ""}]

    jobs, _ = normalize_jobs(row.get("snapshot_data") or [])
    findings: list[dict[str, Any]] = []
    labels = [job.job_no or job.id for job in jobs]

    earned = [calculate_earned_revenue(job) for job in jobs]
    _check_identity(
        findings,
        "Earned revenue identity",
        "Earned Total",
        "Labor+Material+Other",
        [e.total for e in earned],
        [e.labor + e.material + e.other for e in earned],
        tol,
        labels,
    )

    metrics = calculate_job_metrics(jobs)
    totals = [
        ("Total earned revenue", "total_earned_revenue", metrics.total_earned_revenue),
        ("Total contract value", "total_contract_value", metrics.total_contract_value),
        ("Total costs to date", "total_costs_to_date", metrics.total_costs_to_date),
        ("Total invoiced", "total_invoiced", metrics.total_invoiced),
    ]
    is_monthly = "month" in row
    if is_monthly:
        totals += [
            ("Total over billing", "total_over_billing", metrics.total_over_billing),
            ("Total under billing", "total_under_billing", metrics.total_under_billing),
        ]
    for check, key, recomputed in totals:
        _check_identity(findings, check, key, "Recomputed from jobs", float(row.get(key) or 0.0), recomputed, tol)

    active = sum(1 for job in jobs if job.status == JobStatus.ACTIVE)
    _check_identity(findings, "Active job count", "active_job_count", "Active jobs", row.get("active_job_count") or 0, active, 0.5)

    if is_monthly:
        completed = sum(1 for job in jobs if job.status == JobStatus.COMPLETED)
        _check_identity(
            findings,
            "Completed job count",
            "completed_job_count",
            "Completed jobs",
            row.get("completed_job_count") or 0,
            completed,
            0.5,
        )
        # Over minus under billing nets to invoiced minus earned across jobs.
        _check_identity(
            findings,
            "Net billing identity",
            "Over-Under",
            "Invoiced-Earned",
            float(row.get("total_over_billing") or 0.0) - float(row.get("total_under_billing") or 0.0),
            sum(sum_breakdown(job.invoiced) for job in jobs) - sum(e.total for e in earned),
            tol,
        )

    return findings
