"""Per-job revenue recognition, billing position and schedule checks."""

from __future__ import annotations

import math
from typing import Iterable

import pandas as pd

from wip_engine.models import (
    LABOR_FIXED_RATE,
    TBD,
    BillingDifference,
    ChangeOrder,
    CostBreakdown,
    EarnedRevenue,
    FixedPriceJob,
    Job,
    ScheduleWarning,
    TimeMaterialJob,
)


MOBILIZATION_CRITICAL_DAYS = 14
BEHIND_TARGET_CRITICAL_DAYS = 30


def sum_breakdown(breakdown: CostBreakdown) -> float:
    return breakdown.labor + breakdown.material + breakdown.other


def add_breakdowns(a: CostBreakdown, b: CostBreakdown) -> CostBreakdown:
    return CostBreakdown(
        labor=a.labor + b.labor,
        material=a.material + b.material,
        other=a.other + b.other,
    )


def _component_pct(cost: float, budget: float) -> float:
    return cost / budget if budget > 0 else 0.0


def _earned_time_material(job: TimeMaterialJob) -> EarnedRevenue:
    tm = job.tm_settings
    if tm.labor_billing_type == LABOR_FIXED_RATE:
        labor = tm.labor_bill_rate * tm.labor_hours
    else:
        labor = job.costs.labor * tm.labor_markup
    material = job.costs.material * tm.material_markup
    other = job.costs.other * tm.other_markup
    return EarnedRevenue(labor=labor, material=material, other=other, total=labor + material + other)


def _earned_fixed_price(job: FixedPriceJob) -> EarnedRevenue:
    # Each component is recognised against its own budget; markups differ per
    # component, so a blended percent complete would misallocate revenue.
    labor = job.contract.labor * _component_pct(job.costs.labor, job.budget.labor)
    material = job.contract.material * _component_pct(job.costs.material, job.budget.material)
    other = job.contract.other * _component_pct(job.costs.other, job.budget.other)
    return EarnedRevenue(labor=labor, material=material, other=other, total=labor + material + other)


def calculate_earned_revenue(job: Job) -> EarnedRevenue:
    """Earned revenue to date.

    Fixed price: contract component x (cost component / budget component),
    computed separately for labor, material and other.
    Time & material: labor at bill rate x hours or cost x markup, material and
    other at cost x markup.
    """
    if isinstance(job, TimeMaterialJob):
        return _earned_time_material(job)
    if isinstance(job, FixedPriceJob):
        return _earned_fixed_price(job)
    raise TypeError(f"Unsupported job record: {type(job).__name__}")


def calculate_billing_difference(job: Job) -> BillingDifference:
    """Invoiced minus earned. Positive is over billed, anything else under billed."""
    earned = calculate_earned_revenue(job)
    difference = sum_breakdown(job.invoiced) - earned.total
    is_over = difference > 0
    return BillingDifference(
        difference=difference,
        is_over_billed=is_over,
        label="Over Billed" if is_over else "Under Billed",
    )


def calculate_forecasted_profit(job: Job) -> float:
    if isinstance(job, TimeMaterialJob):
        return calculate_earned_revenue(job).total - sum_breakdown(job.costs)
    return sum_breakdown(job.contract) - (sum_breakdown(job.costs) + sum_breakdown(job.cost_to_complete))


def calculate_percent_complete(job: Job) -> float:
    """Whole-job cost / budget percentage, for display only."""
    total_budget = sum_breakdown(job.budget)
    if total_budget == 0:
        return 0.0
    return sum_breakdown(job.costs) / total_budget * 100


# Change orders


def sum_approved_change_orders(change_orders: Iterable[ChangeOrder], field: str) -> CostBreakdown:
    """Sum one breakdown field over approved and completed change orders."""
    total = CostBreakdown()
    for co in change_orders:
        if co.is_approved:
            total = add_breakdowns(total, getattr(co, field))
    return total


def get_job_totals_with_change_orders(job: Job, change_orders: Iterable[ChangeOrder] = ()) -> dict:
    change_orders = list(change_orders)
    totals: dict = {}
    for field in ("contract", "costs", "budget", "invoiced", "cost_to_complete"):
        co_part = sum_approved_change_orders(change_orders, field)
        totals[field] = add_breakdowns(getattr(job, field), co_part)
        totals[f"co_{field}"] = co_part
    totals["has_approved_change_orders"] = any(co.is_approved for co in change_orders)
    return totals


def calculate_forecasted_profit_with_change_orders(job: Job, change_orders: Iterable[ChangeOrder] = ()) -> float:
    totals = get_job_totals_with_change_orders(job, change_orders)
    if isinstance(job, TimeMaterialJob):
        # Change orders on T&M jobs are taken at contract less cost.
        co_profit = sum_breakdown(totals["co_contract"]) - sum_breakdown(totals["co_costs"])
        return calculate_earned_revenue(job).total - sum_breakdown(job.costs) + co_profit
    return sum_breakdown(totals["contract"]) - (
        sum_breakdown(totals["costs"]) + sum_breakdown(totals["cost_to_complete"])
    )


# Schedule warnings


def parse_job_date(value: str | None) -> pd.Timestamp | None:
    """Parse an ISO date string; missing, blank or TBD dates return None."""
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.upper() == TBD:
        return None
    return pd.Timestamp(text)


def _days_between(later: pd.Timestamp, earlier: pd.Timestamp) -> int:
    return int(math.ceil((later - earlier) / pd.Timedelta(days=1)))


def _plural_days(days: int) -> str:
    return f"{days} day{'s' if days != 1 else ''}"


def get_mobilization_warnings(job: Job) -> list[ScheduleWarning]:
    """Flag enabled mobilization phases that run past the contract end date."""
    contract_end = parse_job_date(job.end_date)
    if contract_end is None:
        return []

    warnings: list[ScheduleWarning] = []
    for phase in job.mobilizations:
        if not phase.enabled:
            continue
        label = f"Phase {phase.id}" + (f" ({phase.description})" if phase.description else "")

        demob = parse_job_date(phase.demobilize_date)
        if demob is not None and demob > contract_end:
            days_over = _days_between(demob, contract_end)
            warnings.append(
                ScheduleWarning(
                    type="mobilization-past-contract",
                    phase_id=phase.id,
                    message=f"{label} demob is {_plural_days(days_over)} past contract end",
                    severity="critical" if days_over > MOBILIZATION_CRITICAL_DAYS else "warning",
                )
            )

        mob = parse_job_date(phase.mobilize_date)
        if mob is not None and mob > contract_end:
            warnings.append(
                ScheduleWarning(
                    type="mobilization-past-contract",
                    phase_id=phase.id,
                    message=f"{label} mobilization starts after contract end",
                    severity="critical",
                )
            )
    return warnings


def is_job_behind_target_date(job: Job) -> bool:
    target = parse_job_date(job.target_end_date)
    end = parse_job_date(job.end_date)
    if target is None or end is None:
        return False
    return end > target


def get_all_schedule_warnings(job: Job) -> list[ScheduleWarning]:
    """Mobilization warnings in phase order, followed by the behind-target warning."""
    warnings = get_mobilization_warnings(job)
    if is_job_behind_target_date(job):
        days_late = _days_between(parse_job_date(job.end_date), parse_job_date(job.target_end_date))
        warnings.append(
            ScheduleWarning(
                type="behind-target",
                message=f"Job is {_plural_days(days_late)} behind target completion",
                severity="critical" if days_late > BEHIND_TARGET_CRITICAL_DAYS else "warning",
            )
        )
    return warnings


def has_schedule_warnings(job: Job) -> bool:
    return bool(get_mobilization_warnings(job)) or is_job_behind_target_date(job)
