from __future__ import annotations

from wip_engine.runtime_logging import read_runtime_events
from wip_engine.strategic_actions import (
    build_assessment,
    build_investment_plan,
    calculate_roi,
    estimate_cost_for_category,
    estimate_timeline_for_category,
    generate_recommendations,
    get_action_items_for_category,
    get_all_actions_for_category,
    save_assessment,
)
from wip_engine.value_drivers import ValueDriverScore, calculate_value_driver_scores


def _scores() -> list[ValueDriverScore]:
    answers = {
        "financial_margin": 1,
        "owner_involvement": -2,
        "management_team": -2,
        "documented_processes": -1,
        "recurring_revenue": 0,
        "competitive_advantage": 2,
        "technology_systems": -1,
        "customer_diversification": -1,
        "payment_cycles": 0,
    }
    return calculate_value_driver_scores(answers)


def test_action_ranges_are_half_open():
    assert get_action_items_for_category("ownerDependency", -1.0) == ["Document key processes"]
    assert get_action_items_for_category("ownerDependency", -1.01) == ["Build management team"]
    assert get_action_items_for_category("financial", 2.0) == []
    assert get_action_items_for_category("customerConcentration", 0.5) == []


def test_cost_and_timeline_tables():
    assert estimate_cost_for_category("operationalSystems") == 125000.0
    assert estimate_cost_for_category("cashFlow", "high") == 150000.0
    assert estimate_timeline_for_category("projectPortfolio") == "12+ months"


def test_roi_uses_company_ebitda_and_is_none_without_cost():
    assert abs(calculate_roi(0.1, 50000.0, 2_000_000.0) - 4.0) < 1e-9
    assert calculate_roi(0.1, 0.0, 2_000_000.0) is None


def test_recommendations_lowest_scores_first():
    recs = generate_recommendations(_scores(), ebitda=1_500_000.0)
    assert len(recs) == 5
    assert [r.current_score for r in recs] == sorted(r.current_score for r in recs)

    first = recs[0]
    assert first.category == "ownerDependency"
    assert first.priority == "high"
    assert abs(first.target_score - (first.current_score + 1)) < 1e-9
    assert abs(first.potential_value_impact - 1 * 0.15 * 0.5) < 1e-9
    assert first.estimated_cost == 150000.0
    assert abs(first.roi - 0.075 * 1_500_000.0 / 150000.0) < 1e-9
    assert first.action_items == ["Build management team"]

    priorities = {r.category: r.priority for r in recs}
    assert priorities["customerConcentration"] == "high"
    assert priorities["revenuePredictability"] == "low"


def test_target_score_is_capped_at_two():
    recs = generate_recommendations([ValueDriverScore("marketPosition", 1.5, 0.12, 0.09)], ebitda=1_000_000.0)
    assert recs[0].target_score == 2.0
    assert abs(recs[0].potential_value_impact - 0.5 * 0.12 * 0.5) < 1e-9


def test_investment_plan_ranks_by_roi():
    recs = generate_recommendations(_scores(), ebitda=1_000_000.0)
    plan = build_investment_plan(recs)
    assert plan is not None
    rois = [r.roi for r in plan.investments]
    assert rois == sorted(rois, reverse=True)
    assert abs(plan.total_cost - sum(r.estimated_cost for r in plan.investments)) < 1e-9
    assert abs(plan.overall_roi - plan.total_value_impact / plan.total_cost) < 1e-12

    # A category already at the top of the scale has nothing left to gain.
    maxed = generate_recommendations([ValueDriverScore("financial", 2.0, 0.2, 0.2)], ebitda=1_000_000.0)
    assert build_investment_plan(maxed) is None


def test_build_assessment_record():
    answers = {"owner_involvement": -2, "customer_diversification": 1, "safety_record": 2}
    record = build_assessment(answers, ebitda=800_000.0)
    assert record["answers"] == answers
    assert [s["category"] for s in record["scores"]] == ["ownerDependency", "customerConcentration", "safetyCompliance"]
    assert record["strengths"][0] == "safetyCompliance"
    assert record["weaknesses"][0] == "ownerDependency"
    assert record["recommendations"][0]["category"] == "ownerDependency"
    assert isinstance(record["overall_score"], float)


def test_all_actions_for_category():
    financial = get_all_actions_for_category("financial")
    assert len(financial) == 3
    assert financial[0].action == "Implement financial reporting system"
    assert get_all_actions_for_category("unknown") == []


def test_save_assessment(store, event_log):
    row = save_assessment(store, "co-1", {"owner_involvement": -2}, ebitda=500_000.0)
    assert store.latest_assessment("co-1")["id"] == row["id"]
    assert row["weaknesses"] == ["ownerDependency"]
    assert read_runtime_events()[-1]["event"] == "assessment_saved"
