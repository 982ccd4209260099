"""Early-warning heuristics for underbilling, schedule drift and margin fade."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

import pandas as pd

from wip_engine.job_calculations import parse_job_date, sum_breakdown
from wip_engine.models import Job
from wip_engine.periods import to_day


class RiskLevel:
    NONE = "None"
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


UNDERBILLING_HIGH = -0.10
UNDERBILLING_MEDIUM = -0.05
DRIFT_THRESHOLD = 0.10
MARGIN_FADE_POINTS = 2.0


@dataclass(frozen=True)
class MarginFade:
    is_fading: bool
    fade_percent: float


@dataclass(frozen=True)
class JobRiskAnalysis:
    underbilling_risk: str
    schedule_drift_weeks: int
    margin_fade_percent: float
    is_margin_fading: bool


def calculate_underbilling_risk(job: Job) -> str:
    """Billing position as a share of contract; cost-to-cost earned revenue capped at 100%."""
    contract = sum_breakdown(job.contract)
    if contract == 0:
        return RiskLevel.NONE

    budget = sum_breakdown(job.budget)
    pct_complete = sum_breakdown(job.costs) / budget if budget > 0 else 0.0
    earned = contract * min(pct_complete, 1.0)
    position_pct = (sum_breakdown(job.invoiced) - earned) / contract

    if position_pct < UNDERBILLING_HIGH:
        return RiskLevel.HIGH
    if position_pct < UNDERBILLING_MEDIUM:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def calculate_schedule_drift(job: Job, as_of: date | datetime | str) -> int:
    """Estimated weeks behind, from elapsed time running ahead of cost progress."""
    start = parse_job_date(job.start_date)
    end = parse_job_date(job.end_date)
    if start is None or end is None:
        return 0

    now = to_day(as_of)
    duration = end - start
    if now < start or duration <= pd.Timedelta(0):
        return 0

    budget = sum_breakdown(job.budget)
    if budget == 0:
        return 0

    time_pct = (now - start) / duration
    drift_ratio = time_pct - sum_breakdown(job.costs) / budget
    if drift_ratio < DRIFT_THRESHOLD:
        return 0

    drift_weeks = round(drift_ratio * duration / pd.Timedelta(weeks=1))
    return max(0, int(drift_weeks))


def calculate_margin_fade(job: Job) -> MarginFade:
    """Margin points lost between the original budget and the current forecast."""
    contract = sum_breakdown(job.contract)
    if contract == 0:
        return MarginFade(is_fading=False, fade_percent=0.0)

    original_margin = (contract - sum_breakdown(job.budget)) / contract
    forecast_cost = sum_breakdown(job.costs) + sum_breakdown(job.cost_to_complete)
    forecast_margin = (contract - forecast_cost) / contract
    fade_points = (original_margin - forecast_margin) * 100
    return MarginFade(is_fading=fade_points > MARGIN_FADE_POINTS, fade_percent=round(fade_points, 1))


def analyze_job_risk(job: Job, as_of: date | datetime | str) -> JobRiskAnalysis:
    fade = calculate_margin_fade(job)
    return JobRiskAnalysis(
        underbilling_risk=calculate_underbilling_risk(job),
        schedule_drift_weeks=calculate_schedule_drift(job, as_of),
        margin_fade_percent=fade.fade_percent,
        is_margin_fading=fade.is_fading,
    )
