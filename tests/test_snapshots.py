from __future__ import annotations

from dataclasses import replace

import pytest

from wip_engine.models import MONTHLY, WEEKLY, CostBreakdown, PeriodKey
from wip_engine.runtime_logging import read_runtime_events
from wip_engine.snapshots import (
    MonthlySnapshot,
    WeeklySnapshot,
    build_job_financial_snapshot,
    build_monthly_snapshot,
    build_weekly_snapshot,
    create_monthly_snapshot,
    create_weekly_snapshot,
    finalize_month,
    generate_month_end_report,
    generate_weekly_report,
    load_monthly_snapshots,
    load_weekly_snapshots,
)


def _portfolio(fixed_price_job, tm_job):
    completed = replace(fixed_price_job, id="job-9", job_no="23-090", status="Completed")
    on_hold = replace(fixed_price_job, id="job-7", job_no="24-007", status="On Hold")
    return [fixed_price_job, tm_job, completed, on_hold]


def test_weekly_snapshot_counts_active_jobs_only(fixed_price_job, tm_job):
    snapshot = build_weekly_snapshot("co-1", _portfolio(fixed_price_job, tm_job), "2024-01-03")
    assert snapshot.active_job_count == 2
    assert (snapshot.year, snapshot.week_number) == (2024, 1)
    assert abs(snapshot.total_earned_revenue - 52110.0) < 1e-9
    assert {job.id for job in snapshot.jobs} == {"job-1", "job-2"}


def test_monthly_snapshot_includes_completed_jobs(fixed_price_job, tm_job):
    snapshot = build_monthly_snapshot("co-1", _portfolio(fixed_price_job, tm_job), month=3, year=2024)
    assert snapshot.active_job_count == 2
    assert snapshot.completed_job_count == 1
    assert snapshot.month_end == "2024-03-31"
    assert abs(snapshot.total_contract_value - 200000.0) < 1e-9
    assert abs(snapshot.total_under_billing - (10000.0 + 1110.0 + 10000.0)) < 1e-9


def test_snapshot_rows_round_trip(fixed_price_job, tm_job):
    weekly = build_weekly_snapshot("co-1", [fixed_price_job, tm_job], "2024-01-03")
    assert WeeklySnapshot.from_row(weekly.to_row()) == weekly
    monthly = build_monthly_snapshot("co-1", [fixed_price_job], as_of="2024-02-10")
    assert MonthlySnapshot.from_row(monthly.to_row()) == monthly


def test_rerunning_weekly_snapshot_keeps_one_row(store, event_log, fixed_price_job, tm_job):
    create_weekly_snapshot(store, "co-1", [fixed_price_job], "2024-01-02")
    create_weekly_snapshot(store, "co-1", [fixed_price_job, tm_job], "2024-01-05")

    rows = store.fetch_snapshots("co-1", WEEKLY)
    assert len(rows) == 1
    assert rows[0]["active_job_count"] == 2

    events = read_runtime_events(event="weekly_snapshot_saved")
    assert len(events) == 2
    assert events[-1]["context"]["week_number"] == 1


def test_load_snapshots_newest_first(store, event_log, fixed_price_job):
    for as_of in ("2024-01-03", "2024-01-10", "2024-01-17"):
        create_weekly_snapshot(store, "co-1", [fixed_price_job], as_of)
    create_weekly_snapshot(store, "co-2", [fixed_price_job], "2024-01-24")

    loaded = load_weekly_snapshots(store, "co-1", limit=2)
    assert [s.week_number for s in loaded] == [3, 2]


def test_finalize_month_stamps_the_stored_row(store, event_log, fixed_price_job):
    create_monthly_snapshot(store, "co-1", [fixed_price_job], month=1, year=2024)
    snapshot = finalize_month(store, "co-1", 2024, 1, finalized_at="2024-02-01T12:00:00+00:00")
    assert snapshot.is_finalized

    row = store.get_snapshot(PeriodKey(MONTHLY, "co-1", 2024, 1))
    assert row["finalized_at"] == "2024-02-01T12:00:00+00:00"
    assert load_monthly_snapshots(store, "co-1")[0].finalized_at == "2024-02-01T12:00:00+00:00"


def test_finalize_missing_month_raises(store, event_log):
    with pytest.raises(KeyError):
        finalize_month(store, "co-1", 2024, 5)


def test_recreating_a_finalized_month_keeps_its_stamp(store, event_log, fixed_price_job, tm_job):
    create_monthly_snapshot(store, "co-1", [fixed_price_job], month=1, year=2024)
    finalize_month(store, "co-1", 2024, 1, finalized_at="2024-02-01T00:00:00+00:00")

    recreated = create_monthly_snapshot(store, "co-1", [fixed_price_job, tm_job], month=1, year=2024)
    assert recreated.finalized_at == "2024-02-01T00:00:00+00:00"

    row = store.get_snapshot(PeriodKey(MONTHLY, "co-1", 2024, 1))
    assert row["finalized_at"] == "2024-02-01T00:00:00+00:00"
    assert row["active_job_count"] == 2


class _BrokenStore:
    def upsert_snapshot(self, period_key, row):
        raise OSError("disk full")


def test_store_failure_is_logged_and_raised(event_log, fixed_price_job):
    with pytest.raises(OSError):
        create_weekly_snapshot(_BrokenStore(), "co-1", [fixed_price_job], "2024-01-03")
    events = read_runtime_events(level="ERROR")
    assert len(events) == 1
    assert events[0]["event"] == "create_weekly_snapshot_failed"
    assert events[0]["exception_type"] == "OSError"


def test_weekly_report_compares_with_previous_week(fixed_price_job, tm_job):
    earlier_fp = replace(fixed_price_job, costs=CostBreakdown(labor=10000, material=4000, other=2000))
    week1 = build_weekly_snapshot("co-1", [earlier_fp], "2024-01-03")
    week2 = build_weekly_snapshot("co-1", [fixed_price_job, tm_job], "2024-01-10")

    report = generate_weekly_report([week2, week1], weeks=5)
    assert len(report) == 2

    latest = report[0]
    assert latest.week_number == 2
    assert abs(latest.earned_revenue_change - (52110.0 - 20000.0)) < 1e-9
    assert abs(latest.earned_revenue_change_percent - (32110.0 / 20000.0 * 100)) < 1e-9
    assert [row["job_id"] for row in latest.job_breakdown] == ["job-1", "job-2"]
    assert latest.job_breakdown[1]["previous_earned_revenue"] == 0.0

    oldest = report[1]
    assert oldest.earned_revenue_change_percent == 0.0
    assert abs(oldest.earned_revenue_change - 20000.0) < 1e-9


def test_month_end_report_orders_by_billing_exposure(fixed_price_job, tm_job):
    big = replace(fixed_price_job, id="job-5", invoiced=CostBreakdown(labor=90000, material=0, other=0))
    report = generate_month_end_report(_portfolio(fixed_price_job, tm_job) + [big], "2024-03-20")
    assert report.month_name == "March"
    assert [row["job_id"] for row in report.jobs][0] == "job-5"
    assert "job-7" not in {row["job_id"] for row in report.jobs}
    assert abs(report.net_billing_position - (report.total_over_billing - report.total_under_billing)) < 1e-9

    fp_row = next(row for row in report.jobs if row["job_id"] == "job-1")
    assert abs(fp_row["percent_complete"] - 50.0) < 1e-9
    assert abs(fp_row["forecasted_profit"] - 20000.0) < 1e-9
    assert abs(fp_row["profit_margin"] - 20.0) < 1e-9

    tm_row = next(row for row in report.jobs if row["job_id"] == "job-2")
    assert tm_row["profit_margin"] == 0.0


def test_job_financial_snapshot_flags(fixed_price_job):
    record = build_job_financial_snapshot(fixed_price_job, "2024-03-31")
    assert abs(record["earned_to_date"] - 50000.0) < 1e-9
    assert abs(record["original_margin_target"] - 0.2) < 1e-9
    assert abs(record["forecasted_margin_final"] - 0.2) < 1e-9
    assert record["billing_position_label"] == "under-billed"
    assert record["at_risk_margin"] is False
    assert record["behind_schedule"] is False

    overrun = replace(
        fixed_price_job,
        cost_to_complete=CostBreakdown(labor=40000, material=10000, other=5000),
        target_end_date="2024-05-31",
    )
    record = build_job_financial_snapshot(overrun, "2024-03-31")
    assert record["at_risk_margin"] is True
    assert record["behind_schedule"] is True
