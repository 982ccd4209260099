from __future__ import annotations

from dataclasses import replace
from itertools import product

from wip_engine.value_drivers import (
    CATEGORY_WEIGHTS,
    DEFAULT_SCORING_CONFIG,
    VALUE_DRIVER_QUESTIONS,
    ValueDriverScore,
    calculate_adjusted_multiple_range,
    calculate_overall_score,
    calculate_value_driver_scores,
    get_all_categories,
    get_category_name,
    get_questions_by_category,
    identify_strengths_and_weaknesses,
    validate_scoring_config,
)


BASE_RANGE = {"low": 2.0, "mid": 2.5, "high": 3.0}


def test_default_config_is_valid():
    assert abs(sum(CATEGORY_WEIGHTS.values()) - 1.0) < 1e-9
    assert validate_scoring_config(DEFAULT_SCORING_CONFIG) == []
    assert len(VALUE_DRIVER_QUESTIONS) == 29
    assert get_all_categories() == list(CATEGORY_WEIGHTS)


def test_validate_reports_bad_weights():
    config = replace(DEFAULT_SCORING_CONFIG, category_weights={**CATEGORY_WEIGHTS, "financial": 0.5})
    problems = validate_scoring_config(config)
    assert any("sum to" in p for p in problems)


def test_owner_dependency_impact_example():
    answers = {"owner_involvement": -1, "management_team": -1, "documented_processes": -1}
    scores = calculate_value_driver_scores(answers)
    assert len(scores) == 1
    assert scores[0].category == "ownerDependency"
    assert abs(scores[0].score - (-1.0)) < 1e-9
    assert abs(scores[0].impact - (-0.075)) < 1e-9


def test_category_score_is_weighted_over_answered_questions_only():
    # financial_margin weight 0.3 and financial_records weight 0.15.
    scores = calculate_value_driver_scores({"financial_margin": 2, "financial_records": -1})
    expected = (2 * 0.3 + -1 * 0.15) / (0.3 + 0.15)
    assert abs(scores[0].score - expected) < 1e-9


def test_unanswered_categories_are_omitted_and_order_follows_question_bank():
    scores = calculate_value_driver_scores({"bonding_capacity": 1, "financial_growth": 2, "ignored_question": 2})
    assert [s.category for s in scores] == ["financial", "safetyCompliance"]


def test_adjusted_range_is_clamped_and_floored():
    worst = {q.id: min(o.value for o in q.options) for q in VALUE_DRIVER_QUESTIONS}
    adjusted = calculate_adjusted_multiple_range(BASE_RANGE, worst)
    assert -1.5 <= adjusted.adjustment < 0
    assert adjusted.low >= 1.0
    assert adjusted.mid >= 1.5
    assert adjusted.high >= 2.0

    best = {q.id: 2 for q in VALUE_DRIVER_QUESTIONS}
    adjusted = calculate_adjusted_multiple_range(BASE_RANGE, best)
    # Every category at +2 gives 2 x 1.0 x 0.5 = 1.0.
    assert abs(adjusted.adjustment - 1.0) < 1e-9
    assert abs(adjusted.mid - 3.5) < 1e-9


def test_adjusted_range_respects_floors_for_any_answers():
    small = {"low": 0.5, "mid": 0.8, "high": 1.0}
    questions = [q for q in VALUE_DRIVER_QUESTIONS if q.category in ("financial", "ownerDependency")][:3]
    for values in product(*[[o.value for o in q.options] for q in questions]):
        answers = {q.id: v for q, v in zip(questions, values)}
        adjusted = calculate_adjusted_multiple_range(small, answers)
        assert adjusted.low >= 1.0 and adjusted.mid >= 1.5 and adjusted.high >= 2.0


def test_adjustment_limit_is_configurable():
    best = {q.id: 2 for q in VALUE_DRIVER_QUESTIONS}
    config = replace(DEFAULT_SCORING_CONFIG, adjustment_limit=0.25)
    assert calculate_adjusted_multiple_range(BASE_RANGE, best, config).adjustment == 0.25


def test_overall_score():
    assert calculate_overall_score({}) == 0.0
    answers = {"customer_diversification": 2, "safety_record": -1}
    expected = (2 * 0.08 + -1 * 0.02) / (0.08 + 0.02)
    assert abs(calculate_overall_score(answers) - expected) < 1e-9


def test_strengths_and_weaknesses():
    scores = [
        ValueDriverScore("financial", 1.0, 0.2, 0.1),
        ValueDriverScore("ownerDependency", -2.0, 0.15, -0.15),
        ValueDriverScore("cashFlow", 0.5, 0.04, 0.01),
        ValueDriverScore("marketPosition", 2.0, 0.12, 0.12),
        ValueDriverScore("safetyCompliance", -1.0, 0.02, -0.01),
    ]
    ranking = identify_strengths_and_weaknesses(scores)
    assert ranking["strengths"] == ["marketPosition", "financial", "cashFlow"]
    assert ranking["weaknesses"] == ["ownerDependency", "safetyCompliance", "cashFlow"]


def test_category_lookups():
    assert get_category_name("cashFlow") == "Cash Flow Management"
    assert [q.id for q in get_questions_by_category("managementDepth")] == ["succession_planning", "key_person_risk"]
