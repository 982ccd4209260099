"""Weekly and monthly WIP snapshots, period reports and per-job financial snapshots."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Iterable

from wip_engine.job_calculations import (
    calculate_billing_difference,
    calculate_earned_revenue,
    parse_job_date,
    sum_breakdown,
)
from wip_engine.metrics import calculate_job_metrics, margin_pct, percent_change
from wip_engine.models import MONTHLY, WEEKLY, Job, JobStatus, PeriodKey
from wip_engine.periods import DateLike, get_month_info, get_week_info, month_info_for, to_day
from wip_engine.runtime_logging import append_runtime_event, storage_operation
from wip_engine.schema import job_to_dict, normalize_jobs


AT_RISK_MARGIN_RATIO = 0.8


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _jobs_from_row(row: dict[str, Any]) -> tuple[Job, ...]:
    jobs, _ = normalize_jobs(row.get("snapshot_data") or [])
    return tuple(jobs)


@dataclass(frozen=True)
class WeeklySnapshot:
    company_id: str
    week_start: str
    week_end: str
    week_number: int
    year: int
    total_earned_revenue: float
    total_contract_value: float
    total_costs_to_date: float
    total_invoiced: float
    active_job_count: int
    jobs: tuple[Job, ...] = ()
    created_at: str | None = None

    @property
    def period_key(self) -> PeriodKey:
        return PeriodKey(WEEKLY, self.company_id, self.year, self.week_number)

    def to_row(self) -> dict[str, Any]:
        return {
            "company_id": self.company_id,
            "week_start": self.week_start,
            "week_end": self.week_end,
            "week_number": self.week_number,
            "year": self.year,
            "total_earned_revenue": self.total_earned_revenue,
            "total_contract_value": self.total_contract_value,
            "total_costs_to_date": self.total_costs_to_date,
            "total_invoiced": self.total_invoiced,
            "active_job_count": self.active_job_count,
            "snapshot_data": [job_to_dict(job) for job in self.jobs],
            "created_at": self.created_at,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "WeeklySnapshot":
        return cls(
            company_id=str(row["company_id"]),
            week_start=str(row.get("week_start", "")),
            week_end=str(row.get("week_end", "")),
            week_number=int(row["week_number"]),
            year=int(row["year"]),
            total_earned_revenue=float(row.get("total_earned_revenue") or 0.0),
            total_contract_value=float(row.get("total_contract_value") or 0.0),
            total_costs_to_date=float(row.get("total_costs_to_date") or 0.0),
            total_invoiced=float(row.get("total_invoiced") or 0.0),
            active_job_count=int(row.get("active_job_count") or 0),
            jobs=_jobs_from_row(row),
            created_at=row.get("created_at"),
        )


@dataclass(frozen=True)
class MonthlySnapshot:
    company_id: str
    month: int
    year: int
    month_start: str
    month_end: str
    total_earned_revenue: float
    total_contract_value: float
    total_costs_to_date: float
    total_invoiced: float
    total_over_billing: float
    total_under_billing: float
    active_job_count: int
    completed_job_count: int
    jobs: tuple[Job, ...] = ()
    created_at: str | None = None
    finalized_at: str | None = None

    @property
    def period_key(self) -> PeriodKey:
        return PeriodKey(MONTHLY, self.company_id, self.year, self.month)

    @property
    def is_finalized(self) -> bool:
        return self.finalized_at is not None

    def to_row(self) -> dict[str, Any]:
        return {
            "company_id": self.company_id,
            "month": self.month,
            "year": self.year,
            "month_start": self.month_start,
            "month_end": self.month_end,
            "total_earned_revenue": self.total_earned_revenue,
            "total_contract_value": self.total_contract_value,
            "total_costs_to_date": self.total_costs_to_date,
            "total_invoiced": self.total_invoiced,
            "total_over_billing": self.total_over_billing,
            "total_under_billing": self.total_under_billing,
            "active_job_count": self.active_job_count,
            "completed_job_count": self.completed_job_count,
            "snapshot_data": [job_to_dict(job) for job in self.jobs],
            "created_at": self.created_at,
            "finalized_at": self.finalized_at,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "MonthlySnapshot":
        return cls(
            company_id=str(row["company_id"]),
            month=int(row["month"]),
            year=int(row["year"]),
            month_start=str(row.get("month_start", "")),
            month_end=str(row.get("month_end", "")),
            total_earned_revenue=float(row.get("total_earned_revenue") or 0.0),
            total_contract_value=float(row.get("total_contract_value") or 0.0),
            total_costs_to_date=float(row.get("total_costs_to_date") or 0.0),
            total_invoiced=float(row.get("total_invoiced") or 0.0),
            total_over_billing=float(row.get("total_over_billing") or 0.0),
            total_under_billing=float(row.get("total_under_billing") or 0.0),
            active_job_count=int(row.get("active_job_count") or 0),
            completed_job_count=int(row.get("completed_job_count") or 0),
            jobs=_jobs_from_row(row),
            created_at=row.get("created_at"),
            finalized_at=row.get("finalized_at"),
        )


# Building


def _by_status(jobs: Iterable[Job], status: str) -> list[Job]:
    return [job for job in jobs if job.status == status]


def build_weekly_snapshot(company_id: str, jobs: Iterable[Job], as_of: DateLike) -> WeeklySnapshot:
    """Totals over Active jobs for the ISO week containing ``as_of``."""
    active = _by_status(jobs, JobStatus.ACTIVE)
    week = get_week_info(as_of)
    metrics = calculate_job_metrics(active)
    return WeeklySnapshot(
        company_id=company_id,
        week_start=week.week_start,
        week_end=week.week_end,
        week_number=week.week_number,
        year=week.year,
        total_earned_revenue=metrics.total_earned_revenue,
        total_contract_value=metrics.total_contract_value,
        total_costs_to_date=metrics.total_costs_to_date,
        total_invoiced=metrics.total_invoiced,
        active_job_count=len(active),
        jobs=tuple(active),
        created_at=_now_iso(),
    )


def build_monthly_snapshot(
    company_id: str,
    jobs: Iterable[Job],
    month: int | None = None,
    year: int | None = None,
    as_of: DateLike | None = None,
) -> MonthlySnapshot:
    """Totals over Active and Completed jobs for a month.

    The month is ``month``/``year`` when given, otherwise taken from ``as_of``
    (today when that is missing too).
    """
    anchor = to_day(as_of if as_of is not None else datetime.now())
    info = month_info_for(year or anchor.year, month or anchor.month)

    jobs = list(jobs)
    active = _by_status(jobs, JobStatus.ACTIVE)
    completed = _by_status(jobs, JobStatus.COMPLETED)
    relevant = active + completed
    metrics = calculate_job_metrics(relevant)
    return MonthlySnapshot(
        company_id=company_id,
        month=info.month,
        year=info.year,
        month_start=info.month_start,
        month_end=info.month_end,
        total_earned_revenue=metrics.total_earned_revenue,
        total_contract_value=metrics.total_contract_value,
        total_costs_to_date=metrics.total_costs_to_date,
        total_invoiced=metrics.total_invoiced,
        total_over_billing=metrics.total_over_billing,
        total_under_billing=metrics.total_under_billing,
        active_job_count=len(active),
        completed_job_count=len(completed),
        jobs=tuple(relevant),
        created_at=_now_iso(),
    )


# Store-backed operations


def create_weekly_snapshot(store, company_id: str, jobs: Iterable[Job], as_of: DateLike) -> WeeklySnapshot:
    """Build and upsert this week's snapshot; re-running in the same week replaces it."""
    snapshot = build_weekly_snapshot(company_id, jobs, as_of)
    context = {"company_id": company_id, "year": snapshot.year, "week_number": snapshot.week_number}
    with storage_operation("create_weekly_snapshot", context):
        store.upsert_snapshot(snapshot.period_key, snapshot.to_row())
    append_runtime_event(
        level="INFO",
        event="weekly_snapshot_saved",
        message=f"Saved week {snapshot.week_number} of {snapshot.year} ({snapshot.active_job_count} active jobs).",
        context={**context, "total_earned_revenue": snapshot.total_earned_revenue},
    )
    return snapshot


def create_monthly_snapshot(
    store,
    company_id: str,
    jobs: Iterable[Job],
    month: int | None = None,
    year: int | None = None,
    as_of: DateLike | None = None,
) -> MonthlySnapshot:
    """Build and upsert a month's snapshot. A finalized month keeps its finalized_at stamp."""
    snapshot = build_monthly_snapshot(company_id, jobs, month=month, year=year, as_of=as_of)
    context = {"company_id": company_id, "year": snapshot.year, "month": snapshot.month}
    with storage_operation("create_monthly_snapshot", context):
        existing = store.get_snapshot(snapshot.period_key)
        if existing and existing.get("finalized_at"):
            snapshot = replace(snapshot, finalized_at=existing["finalized_at"])
        store.upsert_snapshot(snapshot.period_key, snapshot.to_row())
    append_runtime_event(
        level="INFO",
        event="monthly_snapshot_saved",
        message=f"Saved {snapshot.year}-{snapshot.month:02d} snapshot.",
        context={**context, "total_earned_revenue": snapshot.total_earned_revenue},
    )
    return snapshot


def finalize_month(
    store,
    company_id: str,
    year: int,
    month: int,
    finalized_at: str | None = None,
) -> MonthlySnapshot:
    """Mark a stored month as closed. Raises KeyError when the month was never snapshotted."""
    key = PeriodKey(MONTHLY, company_id, int(year), int(month))
    context = {"company_id": company_id, "year": int(year), "month": int(month)}
    with storage_operation("finalize_month", context):
        row = store.get_snapshot(key)
    if row is None:
        raise KeyError(f"No monthly snapshot for {company_id} {int(year)}-{int(month):02d}")

    snapshot = replace(MonthlySnapshot.from_row(row), finalized_at=finalized_at or _now_iso())
    row["finalized_at"] = snapshot.finalized_at
    with storage_operation("finalize_month", context):
        store.upsert_snapshot(key, row)
    append_runtime_event(
        level="INFO",
        event="month_finalized",
        message=f"Finalized {int(year)}-{int(month):02d}.",
        context=context,
    )
    return snapshot


def load_weekly_snapshots(store, company_id: str, limit: int = 5) -> list[WeeklySnapshot]:
    with storage_operation("load_weekly_snapshots", {"company_id": company_id, "limit": limit}):
        rows = store.fetch_snapshots(company_id, WEEKLY, limit=limit)
    return [WeeklySnapshot.from_row(row) for row in rows]


def load_monthly_snapshots(store, company_id: str, limit: int = 12) -> list[MonthlySnapshot]:
    with storage_operation("load_monthly_snapshots", {"company_id": company_id, "limit": limit}):
        rows = store.fetch_snapshots(company_id, MONTHLY, limit=limit)
    return [MonthlySnapshot.from_row(row) for row in rows]


# Reports


@dataclass(frozen=True)
class WeeklyReport:
    week_start: str
    week_end: str
    week_number: int
    year: int
    total_earned_revenue: float
    earned_revenue_change: float
    earned_revenue_change_percent: float
    job_breakdown: list[dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class MonthEndReport:
    month: int
    year: int
    month_name: str
    total_earned_revenue: float
    total_contract_value: float
    total_costs_to_date: float
    total_invoiced: float
    total_over_billing: float
    total_under_billing: float
    net_billing_position: float
    jobs: list[dict[str, Any]] = field(default_factory=list)


def generate_weekly_report(snapshots: list[WeeklySnapshot], weeks: int = 5) -> list[WeeklyReport]:
    """Week-over-week earned revenue for the newest ``weeks`` snapshots.

    ``snapshots`` must be newest first. Each week is compared with the next
    older snapshot in the list; the oldest one compares against zero.
    """
    report: list[WeeklyReport] = []
    for i in range(min(int(weeks), len(snapshots))):
        current = snapshots[i]
        previous = snapshots[i + 1] if i + 1 < len(snapshots) else None

        previous_total = previous.total_earned_revenue if previous is not None else 0.0
        previous_jobs = {job.id: job for job in previous.jobs} if previous is not None else {}

        breakdown = []
        for job in current.jobs:
            earned = calculate_earned_revenue(job).total
            prev_job = previous_jobs.get(job.id)
            prev_earned = calculate_earned_revenue(prev_job).total if prev_job is not None else 0.0
            breakdown.append(
                {
                    "job_id": job.id,
                    "job_no": job.job_no,
                    "job_name": job.job_name,
                    "client": job.client,
                    "project_manager": job.project_manager,
                    "earned_revenue": earned,
                    "previous_earned_revenue": prev_earned,
                    "change": earned - prev_earned,
                }
            )
        breakdown.sort(key=lambda row: row["change"], reverse=True)

        report.append(
            WeeklyReport(
                week_start=current.week_start,
                week_end=current.week_end,
                week_number=current.week_number,
                year=current.year,
                total_earned_revenue=current.total_earned_revenue,
                earned_revenue_change=current.total_earned_revenue - previous_total,
                earned_revenue_change_percent=percent_change(current.total_earned_revenue, previous_total),
                job_breakdown=breakdown,
            )
        )
    return report


def _month_end_row(job: Job) -> dict[str, Any]:
    earned = calculate_earned_revenue(job)
    billing = calculate_billing_difference(job)
    contract = sum_breakdown(job.contract)
    costs = sum_breakdown(job.costs)
    budget = sum_breakdown(job.budget)
    forecasted_profit = contract - (costs + sum_breakdown(job.cost_to_complete))
    return {
        "job_id": job.id,
        "job_no": job.job_no,
        "job_name": job.job_name,
        "client": job.client,
        "project_manager": job.project_manager,
        "status": job.status,
        "contract_value": contract,
        "costs_to_date": costs,
        "percent_complete": costs / budget * 100 if budget > 0 else 0.0,
        "earned_revenue": earned.total,
        "invoiced": sum_breakdown(job.invoiced),
        "over_under_billing": billing.difference,
        "is_over_billed": billing.is_over_billed,
        "forecasted_profit": forecasted_profit,
        "profit_margin": margin_pct(forecasted_profit, contract),
    }


def generate_month_end_report(jobs: Iterable[Job], as_of: DateLike) -> MonthEndReport:
    """Month-end WIP schedule over Active and Completed jobs, largest billing exposure first."""
    relevant = [job for job in jobs if job.status in (JobStatus.ACTIVE, JobStatus.COMPLETED)]
    info = get_month_info(as_of)
    metrics = calculate_job_metrics(relevant)
    rows = sorted((_month_end_row(job) for job in relevant), key=lambda r: abs(r["over_under_billing"]), reverse=True)
    return MonthEndReport(
        month=info.month,
        year=info.year,
        month_name=info.month_name,
        total_earned_revenue=metrics.total_earned_revenue,
        total_contract_value=metrics.total_contract_value,
        total_costs_to_date=metrics.total_costs_to_date,
        total_invoiced=metrics.total_invoiced,
        total_over_billing=metrics.total_over_billing,
        total_under_billing=metrics.total_under_billing,
        net_billing_position=metrics.net_billing_position,
        jobs=rows,
    )


# Per-job history


def build_job_financial_snapshot(job: Job, snapshot_date: DateLike) -> dict[str, Any]:
    """Point-in-time financial record for one job, used for job history.

    Earned revenue here is whole-job cost-to-cost capped at 100% of contract,
    and forecast revenue is the contract value.
    """
    contract = sum_breakdown(job.contract)
    budget = sum_breakdown(job.budget)
    costs = sum_breakdown(job.costs)
    invoiced = sum_breakdown(job.invoiced)
    cost_to_complete = sum_breakdown(job.cost_to_complete)

    pct_complete = costs / budget if budget > 0 else 0.0
    earned = contract * min(pct_complete, 1.0)

    forecast_cost = costs + cost_to_complete
    forecast_profit = contract - forecast_cost
    forecast_margin = forecast_profit / contract if contract > 0 else 0.0

    original_profit = job.target_profit if job.target_profit is not None else contract - budget
    if job.target_margin is not None:
        original_margin = job.target_margin
    else:
        original_margin = original_profit / contract if contract > 0 else 0.0

    billing_position = invoiced - earned
    if billing_position > 0:
        label = "over-billed"
    elif billing_position < 0:
        label = "under-billed"
    else:
        label = "on-track"

    end = parse_job_date(job.end_date)
    target_end = parse_job_date(job.target_end_date)

    return {
        "company_id": job.company_id,
        "job_id": job.id,
        "snapshot_date": to_day(snapshot_date).strftime("%Y-%m-%d"),
        "contract_amount": contract,
        "original_budget_total": budget,
        "original_profit_target": original_profit,
        "original_margin_target": original_margin,
        "earned_to_date": earned,
        "invoiced_to_date": invoiced,
        "cost_labor_to_date": job.costs.labor,
        "cost_material_to_date": job.costs.material,
        "cost_other_to_date": job.costs.other,
        "total_cost_to_date": costs,
        "forecasted_cost_final": forecast_cost,
        "forecasted_revenue_final": contract,
        "forecasted_profit_final": forecast_profit,
        "forecasted_margin_final": forecast_margin,
        "billing_position_numeric": billing_position,
        "billing_position_label": label,
        "at_risk_margin": forecast_margin < original_margin * AT_RISK_MARGIN_RATIO,
        "behind_schedule": end is not None and target_end is not None and end > target_end,
    }
