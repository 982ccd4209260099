from __future__ import annotations

from dataclasses import replace

from wip_engine.exports import (
    WIP_SCHEDULE_COLUMNS,
    jobs_to_csv,
    month_end_report_frame,
    weekly_report_frame,
    wip_schedule_frame,
)
from wip_engine.snapshots import build_weekly_snapshot, generate_month_end_report, generate_weekly_report


def test_wip_schedule_frame_columns_and_values(fixed_price_job, tm_job):
    df = wip_schedule_frame([replace(fixed_price_job, last_updated="2024-03-05T10:00:00Z"), tm_job])
    assert list(df.columns) == WIP_SCHEDULE_COLUMNS
    assert len(df) == 2

    fp = df.iloc[0]
    assert fp["Job Type"] == "Fixed Price"
    assert fp["Start Date"] == "1/1/2024"
    assert fp["Last Updated"] == "3/5/2024"
    assert abs(fp["Forecasted Budget"] - 80000.0) < 1e-9
    assert abs(fp["Original Profit"] - 20000.0) < 1e-9
    assert abs(fp["Profit Variance"] - 0.0) < 1e-9
    assert abs(fp["Over/Under Billed"] - (-10000.0)) < 1e-9

    tm = df.iloc[1]
    assert tm["Job Type"] == "T&M"
    assert tm["Start Date"] == "TBD"
    assert tm["Original Profit"] == 0.0
    assert abs(tm["Forecasted Profit"] - 610.0) < 1e-9
    assert abs(tm["Forecasted Margin %"] - 610.0 / 2110.0 * 100) < 1e-9
    assert abs(tm["Profit Variance"] - 610.0) < 1e-9


def test_jobs_to_csv(fixed_price_job):
    text = jobs_to_csv([fixed_price_job])
    lines = text.strip().splitlines()
    assert lines[0].startswith("Job #,Job Name,Client")
    assert "24-001" in lines[1]
    assert jobs_to_csv([]).strip() == ",".join(WIP_SCHEDULE_COLUMNS)


def test_report_frames(fixed_price_job, tm_job):
    weeks = [
        build_weekly_snapshot("co-1", [fixed_price_job, tm_job], "2024-01-10"),
        build_weekly_snapshot("co-1", [fixed_price_job], "2024-01-03"),
    ]
    weekly = weekly_report_frame(generate_weekly_report(weeks))
    assert list(weekly["Week"]) == [2, 1]
    assert abs(weekly.iloc[0]["Change"] - 2110.0) < 1e-9

    month = month_end_report_frame(generate_month_end_report([fixed_price_job, tm_job], "2024-03-31"))
    assert list(month["Job #"]) == ["24-001", "24-002"]
    assert "Over/Under Billing" in month.columns
