"""Portfolio-level aggregates over a set of jobs."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Iterable

from wip_engine.job_calculations import calculate_billing_difference, calculate_earned_revenue, sum_breakdown
from wip_engine.models import Job


def _safe_div(a: float, b: float) -> float:
    return float(a / b) if b else 0.0


@dataclass(frozen=True)
class JobMetrics:
    total_earned_revenue: float = 0.0
    total_contract_value: float = 0.0
    total_costs_to_date: float = 0.0
    total_invoiced: float = 0.0
    total_over_billing: float = 0.0
    total_under_billing: float = 0.0

    @property
    def net_billing_position(self) -> float:
        return self.total_over_billing - self.total_under_billing

    def as_dict(self) -> dict[str, float]:
        return asdict(self)


def calculate_job_metrics(jobs: Iterable[Job]) -> JobMetrics:
    """Sum earned revenue, contract, costs and invoicing; split billing into over/under buckets."""
    earned = contract = costs = invoiced = over = under = 0.0
    for job in jobs:
        billing = calculate_billing_difference(job)
        earned += calculate_earned_revenue(job).total
        contract += sum_breakdown(job.contract)
        costs += sum_breakdown(job.costs)
        invoiced += sum_breakdown(job.invoiced)
        if billing.is_over_billed:
            over += billing.difference
        else:
            under += abs(billing.difference)
    return JobMetrics(
        total_earned_revenue=earned,
        total_contract_value=contract,
        total_costs_to_date=costs,
        total_invoiced=invoiced,
        total_over_billing=over,
        total_under_billing=under,
    )


def percent_change(current: float, previous: float) -> float:
    """Percent change from a positive baseline; 0 when there is no baseline."""
    if previous <= 0:
        return 0.0
    return _safe_div(current - previous, previous) * 100


def margin_pct(profit: float, revenue: float) -> float:
    return _safe_div(profit, revenue) * 100
