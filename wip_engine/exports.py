"""Tabular WIP schedule and report exports."""

from __future__ import annotations

from typing import Iterable

import pandas as pd

from wip_engine.job_calculations import (
    calculate_billing_difference,
    calculate_earned_revenue,
    calculate_forecasted_profit,
    parse_job_date,
    sum_breakdown,
)
from wip_engine.models import Job, TimeMaterialJob
from wip_engine.snapshots import MonthEndReport, WeeklyReport


WIP_SCHEDULE_COLUMNS = [
    "Job #",
    "Job Name",
    "Client",
    "Project Manager",
    "Estimator",
    "Job Type",
    "Status",
    "Start Date",
    "End Date",
    "Contract (Labor)",
    "Contract (Material)",
    "Contract (Other)",
    "Contract (Total)",
    "Cost to Date (Labor)",
    "Cost to Date (Material)",
    "Cost to Date (Other)",
    "Cost to Date (Total)",
    "Budget (Labor)",
    "Budget (Material)",
    "Budget (Other)",
    "Budget (Total)",
    "Invoiced (Total)",
    "Cost to Complete (Total)",
    "Forecasted Budget",
    "Original Profit",
    "Original Margin %",
    "Forecasted Profit",
    "Forecasted Margin %",
    "Profit Variance",
    "Earned Revenue",
    "Over/Under Billed",
    "Last Updated",
]

PERCENT_COLUMNS = ["Original Margin %", "Forecasted Margin %"]


def _display_date(value: str | None) -> str:
    ts = parse_job_date(value)
    if ts is None:
        return "TBD"
    return f"{ts.month}/{ts.day}/{ts.year}"


def _schedule_row(job: Job) -> dict:
    is_tm = isinstance(job, TimeMaterialJob)
    contract = sum_breakdown(job.contract)
    costs = sum_breakdown(job.costs)
    budget = sum_breakdown(job.budget)
    earned = calculate_earned_revenue(job)
    forecasted_profit = calculate_forecasted_profit(job)

    # T&M jobs have no fixed contract to measure an original profit against.
    original_profit = 0.0 if is_tm else contract - budget
    original_margin = 0.0 if is_tm or contract <= 0 else original_profit / contract * 100
    margin_base = earned.total if is_tm else contract
    forecasted_margin = forecasted_profit / margin_base * 100 if margin_base > 0 else 0.0

    return {
        "Job #": job.job_no,
        "Job Name": job.job_name,
        "Client": job.client,
        "Project Manager": job.project_manager,
        "Estimator": job.estimator,
        "Job Type": "T&M" if is_tm else "Fixed Price",
        "Status": job.status,
        "Start Date": _display_date(job.start_date),
        "End Date": _display_date(job.end_date),
        "Contract (Labor)": job.contract.labor,
        "Contract (Material)": job.contract.material,
        "Contract (Other)": job.contract.other,
        "Contract (Total)": contract,
        "Cost to Date (Labor)": job.costs.labor,
        "Cost to Date (Material)": job.costs.material,
        "Cost to Date (Other)": job.costs.other,
        "Cost to Date (Total)": costs,
        "Budget (Labor)": job.budget.labor,
        "Budget (Material)": job.budget.material,
        "Budget (Other)": job.budget.other,
        "Budget (Total)": budget,
        "Invoiced (Total)": sum_breakdown(job.invoiced),
        "Cost to Complete (Total)": sum_breakdown(job.cost_to_complete),
        "Forecasted Budget": costs + sum_breakdown(job.cost_to_complete),
        "Original Profit": original_profit,
        "Original Margin %": original_margin,
        "Forecasted Profit": forecasted_profit,
        "Forecasted Margin %": forecasted_margin,
        "Profit Variance": forecasted_profit if is_tm else forecasted_profit - original_profit,
        "Earned Revenue": earned.total,
        "Over/Under Billed": calculate_billing_difference(job).difference,
        "Last Updated": _display_date(job.last_updated),
    }


def wip_schedule_frame(jobs: Iterable[Job]) -> pd.DataFrame:
    """One row per job with contract, cost, budget, profit and billing columns."""
    return pd.DataFrame([_schedule_row(job) for job in jobs], columns=WIP_SCHEDULE_COLUMNS)


def jobs_to_csv(jobs: Iterable[Job]) -> str:
    df = wip_schedule_frame(jobs)
    if df.empty:
        return df.to_csv(index=False)
    money = [c for c in df.columns if pd.api.types.is_numeric_dtype(df[c]) and c not in PERCENT_COLUMNS]
    df[money] = df[money].round(2)
    df[PERCENT_COLUMNS] = df[PERCENT_COLUMNS].round(1)
    return df.to_csv(index=False)


def weekly_report_frame(report: list[WeeklyReport]) -> pd.DataFrame:
    """Week-over-week summary, newest week first."""
    rows = [
        {
            "Year": week.year,
            "Week": week.week_number,
            "Week Start": week.week_start,
            "Week End": week.week_end,
            "Earned Revenue": week.total_earned_revenue,
            "Change": week.earned_revenue_change,
            "Change %": week.earned_revenue_change_percent,
            "Jobs": len(week.job_breakdown),
        }
        for week in report
    ]
    return pd.DataFrame(
        rows,
        columns=["Year", "Week", "Week Start", "Week End", "Earned Revenue", "Change", "Change %", "Jobs"],
    )


MONTH_END_COLUMNS = {
    "job_no": "Job #",
    "job_name": "Job Name",
    "client": "Client",
    "project_manager": "Project Manager",
    "status": "Status",
    "contract_value": "Contract Value",
    "costs_to_date": "Costs to Date",
    "percent_complete": "% Complete",
    "earned_revenue": "Earned Revenue",
    "invoiced": "Invoiced",
    "over_under_billing": "Over/Under Billing",
    "forecasted_profit": "Forecasted Profit",
    "profit_margin": "Profit Margin %",
}


def month_end_report_frame(report: MonthEndReport) -> pd.DataFrame:
    """Month-end job table in report order (largest billing exposure first)."""
    df = pd.DataFrame(report.jobs, columns=list(MONTH_END_COLUMNS.keys()))
    return df.rename(columns=MONTH_END_COLUMNS)
