"""Improvement actions, cost estimates and ROI-ranked recommendations per value driver."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Iterable, Mapping

from wip_engine.runtime_logging import append_runtime_event, storage_operation
from wip_engine.value_drivers import (
    DEFAULT_SCORING_CONFIG,
    MAX_ANSWER,
    ScoringConfig,
    ValueDriverScore,
    calculate_overall_score,
    calculate_value_driver_scores,
    identify_strengths_and_weaknesses,
)


@dataclass(frozen=True)
class CategoryAction:
    category: str
    score_range: tuple[float, float]
    action: str
    description: str
    estimated_cost: str
    estimated_timeline: str
    value_impact: float


STRATEGIC_ACTIONS: tuple[CategoryAction, ...] = (
    CategoryAction("financial", (-2, -0.5), "Implement financial reporting system",
                   "Upgrade to professional accounting software with real-time dashboards", "medium", "3-6 months", 0.15),
    CategoryAction("financial", (-0.5, 0.5), "Improve profit margins through pricing optimization",
                   "Analyze project profitability and adjust pricing strategy", "low", "1-3 months", 0.10),
    CategoryAction("financial", (0.5, 2), "Maintain financial discipline and consistency",
                   "Continue strong financial practices and consider advanced reporting", "low", "Ongoing", 0.05),
    CategoryAction("ownerDependency", (-2, -1), "Build management team",
                   "Hire and train operations manager and key department heads", "high", "6-12 months", 0.25),
    CategoryAction("ownerDependency", (-1, 0), "Document key processes",
                   "Create SOPs for critical business operations", "low", "2-4 months", 0.12),
    CategoryAction("ownerDependency", (0, 1), "Delegation and empowerment",
                   "Increase delegation to management team and reduce owner involvement", "low", "3-6 months", 0.08),
    CategoryAction("revenuePredictability", (-2, -0.5), "Develop recurring revenue streams",
                   "Create maintenance/service contracts or retainer agreements", "medium", "3-6 months", 0.20),
    CategoryAction("revenuePredictability", (-0.5, 0.5), "Improve backlog visibility",
                   "Implement CRM and project pipeline tracking", "low", "1-2 months", 0.08),
    CategoryAction("revenuePredictability", (0.5, 2), "Expand recurring revenue base",
                   "Increase percentage of recurring revenue through new service offerings", "medium", "6-12 months", 0.12),
    CategoryAction("marketPosition", (-2, -0.5), "Develop competitive differentiation",
                   "Identify and market unique value propositions", "medium", "3-6 months", 0.15),
    CategoryAction("marketPosition", (-0.5, 0.5), "Build brand recognition",
                   "Invest in marketing and thought leadership", "medium", "6-12 months", 0.10),
    CategoryAction("marketPosition", (0.5, 2), "Strengthen market leadership",
                   "Expand market share and reinforce competitive position", "high", "12+ months", 0.12),
    CategoryAction("operationalSystems", (-2, -0.5), "Implement integrated technology systems",
                   "Deploy ERP, project management, and financial systems", "high", "6-12 months", 0.18),
    CategoryAction("operationalSystems", (-0.5, 0.5), "Upgrade project management tools",
                   "Implement advanced PM software with forecasting capabilities", "medium", "3-6 months", 0.10),
    CategoryAction("operationalSystems", (0.5, 2), "Optimize existing systems",
                   "Fine-tune processes and leverage advanced features", "low", "1-3 months", 0.05),
    CategoryAction("customerConcentration", (-2, -0.5), "Diversify customer base",
                   "Aggressively pursue new clients to reduce concentration risk", "medium", "6-12 months", 0.15),
    CategoryAction("customerConcentration", (-0.5, 0.5), "Expand client relationships",
                   "Develop relationships with additional clients in existing markets", "low", "3-6 months", 0.08),
    CategoryAction("projectPortfolio", (-2, -0.5), "Diversify project types",
                   "Expand into complementary project types and markets", "high", "12+ months", 0.12),
    CategoryAction("projectPortfolio", (-0.5, 0.5), "Optimize project mix",
                   "Balance project sizes and types for better risk management", "low", "3-6 months", 0.06),
    CategoryAction("managementDepth", (-2, -0.5), "Develop succession plan",
                   "Create formal succession plan and identify/train successors", "medium", "6-12 months", 0.15),
    CategoryAction("managementDepth", (-0.5, 0.5), "Reduce key person dependency",
                   "Cross-train team members and document critical knowledge", "low", "3-6 months", 0.08),
    CategoryAction("cashFlow", (-2, -0.5), "Improve payment terms and collections",
                   "Negotiate better payment terms and implement collection processes", "low", "1-3 months", 0.10),
    CategoryAction("cashFlow", (-0.5, 0.5), "Optimize working capital management",
                   "Improve cash flow forecasting and working capital efficiency", "low", "2-4 months", 0.05),
    CategoryAction("safetyCompliance", (-2, -0.5), "Implement comprehensive safety program",
                   "Develop formal safety protocols and training programs", "medium", "3-6 months", 0.08),
    CategoryAction("safetyCompliance", (-0.5, 0.5), "Enhance bonding capacity",
                   "Work with surety to increase bonding capacity", "low", "3-6 months", 0.05),
)

COST_LEVELS = {"low": 25_000.0, "medium": 75_000.0, "high": 150_000.0}

CATEGORY_COSTS = {
    "financial": 50_000.0,
    "ownerDependency": 150_000.0,
    "revenuePredictability": 75_000.0,
    "marketPosition": 100_000.0,
    "operationalSystems": 125_000.0,
    "customerConcentration": 50_000.0,
    "projectPortfolio": 75_000.0,
    "managementDepth": 100_000.0,
    "cashFlow": 25_000.0,
    "safetyCompliance": 40_000.0,
}

CATEGORY_TIMELINES = {
    "financial": "3-6 months",
    "ownerDependency": "6-12 months",
    "revenuePredictability": "3-6 months",
    "marketPosition": "6-12 months",
    "operationalSystems": "6-12 months",
    "customerConcentration": "6-12 months",
    "projectPortfolio": "12+ months",
    "managementDepth": "6-12 months",
    "cashFlow": "1-3 months",
    "safetyCompliance": "3-6 months",
}

HIGH_PRIORITY_BELOW = -0.5
MEDIUM_PRIORITY_BELOW = 0.0
INVESTMENT_PLAN_SIZE = 5


@dataclass(frozen=True)
class StrategicRecommendation:
    category: str
    priority: str
    current_score: float
    target_score: float
    potential_value_impact: float
    action_items: list[str] = field(default_factory=list)
    estimated_cost: float | None = None
    estimated_timeline: str = ""
    roi: float | None = None

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class InvestmentPlan:
    investments: list[StrategicRecommendation]
    total_cost: float
    total_value_impact: float
    overall_roi: float


def get_action_items_for_category(category: str, current_score: float) -> list[str]:
    """Actions whose half-open score range [lo, hi) contains the score."""
    return [
        a.action
        for a in STRATEGIC_ACTIONS
        if a.category == category and a.score_range[0] <= current_score < a.score_range[1]
    ]


def get_all_actions_for_category(category: str) -> list[CategoryAction]:
    return [a for a in STRATEGIC_ACTIONS if a.category == category]


def estimate_cost_for_category(category: str, cost_level: str | None = None) -> float:
    if cost_level:
        return COST_LEVELS[cost_level]
    return CATEGORY_COSTS[category]


def estimate_timeline_for_category(category: str) -> str:
    return CATEGORY_TIMELINES[category]


def calculate_roi(value_impact: float, cost: float, ebitda: float) -> float | None:
    """Dollar value added per dollar spent: multiple gain x EBITDA / cost. None when cost is 0."""
    if cost == 0:
        return None
    return value_impact * ebitda / cost


def _priority(score: float) -> str:
    if score < HIGH_PRIORITY_BELOW:
        return "high"
    if score < MEDIUM_PRIORITY_BELOW:
        return "medium"
    return "low"


def generate_recommendations(
    scores: Iterable[ValueDriverScore],
    ebitda: float,
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
    limit: int = 5,
) -> list[StrategicRecommendation]:
    """Recommendations for the weakest categories, lowest score first.

    Each aims one point above the current score (capped at the top of the
    scale). ``ebitda`` is the company's adjusted EBITDA and drives the ROI.
    """
    ranked = sorted(scores, key=lambda s: s.score)
    out: list[StrategicRecommendation] = []
    for s in ranked[: max(int(limit), 0)]:
        target = min(float(MAX_ANSWER), s.score + 1)
        impact = (target - s.score) * s.weight * config.impact_scale
        cost = estimate_cost_for_category(s.category)
        out.append(
            StrategicRecommendation(
                category=s.category,
                priority=_priority(s.score),
                current_score=s.score,
                target_score=target,
                potential_value_impact=impact,
                action_items=get_action_items_for_category(s.category, s.score),
                estimated_cost=cost,
                estimated_timeline=estimate_timeline_for_category(s.category),
                roi=calculate_roi(impact, cost, ebitda),
            )
        )
    return out


def build_investment_plan(
    recommendations: Iterable[StrategicRecommendation],
    limit: int = INVESTMENT_PLAN_SIZE,
) -> InvestmentPlan | None:
    """Top recommendations by ROI. None when no recommendation has a positive ROI."""
    ranked = sorted(
        (r for r in recommendations if r.roi is not None and r.roi > 0),
        key=lambda r: r.roi,
        reverse=True,
    )
    if not ranked:
        return None
    top = ranked[: max(int(limit), 0)]
    total_cost = sum(r.estimated_cost or 0.0 for r in top)
    total_impact = sum(r.potential_value_impact for r in top)
    return InvestmentPlan(
        investments=top,
        total_cost=total_cost,
        total_value_impact=total_impact,
        overall_roi=total_impact / total_cost if total_cost > 0 else 0.0,
    )


def build_assessment(
    answers: Mapping[str, float],
    ebitda: float,
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> dict:
    """Scores, ranking and recommendations for one questionnaire, shaped for storage."""
    scores = calculate_value_driver_scores(answers, config)
    ranking = identify_strengths_and_weaknesses(scores)
    return {
        "answers": dict(answers),
        "scores": [asdict(s) for s in scores],
        "overall_score": calculate_overall_score(answers, config),
        "strengths": ranking["strengths"],
        "weaknesses": ranking["weaknesses"],
        "recommendations": [r.as_dict() for r in generate_recommendations(scores, ebitda, config)],
    }


def save_assessment(
    store,
    company_id: str,
    answers: Mapping[str, float],
    ebitda: float,
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> dict:
    assessment = build_assessment(answers, ebitda, config)
    with storage_operation("save_assessment", {"company_id": company_id}):
        row = store.insert_assessment(company_id, assessment)
    append_runtime_event(
        level="INFO",
        event="assessment_saved",
        message=f"Saved value driver assessment (overall score {row['overall_score']:.2f}).",
        context={"company_id": company_id, "assessment_id": row["id"]},
    )
    return row
