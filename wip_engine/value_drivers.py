"""Value-driver questionnaire scoring for construction company multiples.

Each answer is a score from -2 to +2. Answers are averaged per category using
the question weights, and each category moves the valuation multiple by
``score x category weight x impact_scale``. The summed impact is clamped and
applied to a base multiple range.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Mapping


CATEGORY_WEIGHTS: dict[str, float] = {
    "financial": 0.20,
    "ownerDependency": 0.15,
    "revenuePredictability": 0.15,
    "marketPosition": 0.12,
    "operationalSystems": 0.10,
    "customerConcentration": 0.08,
    "projectPortfolio": 0.08,
    "managementDepth": 0.06,
    "cashFlow": 0.04,
    "safetyCompliance": 0.02,
}

CATEGORY_NAMES: dict[str, str] = {
    "financial": "Financial Performance",
    "ownerDependency": "Owner Dependency",
    "revenuePredictability": "Revenue Predictability",
    "marketPosition": "Market Position",
    "operationalSystems": "Operational Systems",
    "customerConcentration": "Customer Concentration",
    "projectPortfolio": "Project Portfolio",
    "managementDepth": "Management Depth",
    "cashFlow": "Cash Flow Management",
    "safetyCompliance": "Safety & Compliance",
}

MIN_ANSWER = -2
MAX_ANSWER = 2


@dataclass(frozen=True)
class QuestionOption:
    value: int
    label: str
    description: str = ""


@dataclass(frozen=True)
class Question:
    id: str
    category: str
    question: str
    options: tuple[QuestionOption, ...]
    weight: float
    tooltip: str | None = None


@dataclass(frozen=True)
class ValueDriverScore:
    category: str
    score: float
    weight: float
    impact: float


@dataclass(frozen=True)
class AdjustedMultipleRange:
    low: float
    mid: float
    high: float
    adjustment: float


def _q(qid: str, category: str, text: str, weight: float, options, tooltip: str | None = None) -> Question:
    return Question(
        id=qid,
        category=category,
        question=text,
        options=tuple(QuestionOption(v, label, desc) for v, label, desc in options),
        weight=weight,
        tooltip=tooltip,
    )


VALUE_DRIVER_QUESTIONS: tuple[Question, ...] = (
    # Financial performance
    _q(
        "financial_margin", "financial", "What is your average EBITDA margin over the last 3 years?", 0.3,
        [
            (-1, "Less than 5%", "Below industry average"),
            (0, "5-10%", "Industry average"),
            (1, "10-15%", "Above average"),
            (2, "15%+", "Exceptional margins"),
        ],
        tooltip="Higher margins indicate better pricing power and operational efficiency",
    ),
    _q(
        "financial_growth", "financial", "What has been your revenue growth rate over the last 3 years?", 0.25,
        [
            (-2, "Declining", "Revenue decreasing"),
            (-1, "Flat (0-5%)", "Stable but not growing"),
            (0, "Moderate (5-15%)", "Steady growth"),
            (1, "Strong (15-30%)", "Rapid growth"),
            (2, "Exceptional (30%+)", "Hypergrowth"),
        ],
    ),
    _q(
        "financial_records", "financial", "How would you describe your financial record-keeping?", 0.15,
        [
            (-1, "Basic/Informal", "Spreadsheets, minimal documentation"),
            (0, "Standard", "Accounting software, regular reports"),
            (1, "Professional", "Audited, detailed financials, KPIs"),
            (2, "Enterprise-grade", "Real-time dashboards, sophisticated reporting"),
        ],
    ),
    _q(
        "financial_consistency", "financial", "How consistent is your profitability year-over-year?", 0.3,
        [
            (-1, "Highly volatile", "Large swings in profit"),
            (0, "Some variation", "Moderate fluctuations"),
            (1, "Relatively stable", "Consistent margins"),
            (2, "Very predictable", "Steady, growing profits"),
        ],
    ),
    # Owner dependency
    _q(
        "owner_involvement", "ownerDependency", "How involved are you in day-to-day operations?", 0.3,
        [
            (-2, "Hands-on daily", "You make most decisions"),
            (-1, "Very involved", "You oversee most activities"),
            (0, "Moderately involved", "You manage key areas"),
            (1, "Strategic only", "You focus on big picture"),
            (2, "Minimal involvement", "Business runs without you"),
        ],
        tooltip="Lower owner dependency increases transferability and value",
    ),
    _q(
        "management_team", "ownerDependency", "Do you have a management team that can run the business without you?", 0.4,
        [
            (-2, "No management team", "You do everything"),
            (-1, "Weak team", "Team exists but needs oversight"),
            (0, "Capable team", "Team can handle most operations"),
            (1, "Strong team", "Team is highly capable"),
            (2, "Autonomous team", "Team runs business independently"),
        ],
    ),
    _q(
        "documented_processes", "ownerDependency", "How well documented are your key business processes?", 0.3,
        [
            (-1, "Not documented", "Everything is in your head"),
            (0, "Partially documented", "Some processes written down"),
            (1, "Well documented", "Most processes documented"),
            (2, "Fully documented", "Complete SOPs, training materials"),
        ],
    ),
    # Revenue predictability
    _q(
        "recurring_revenue", "revenuePredictability",
        "What percentage of revenue comes from repeat clients or long-term contracts?", 0.3,
        [
            (-1, "Less than 20%", "Mostly one-time projects"),
            (0, "20-40%", "Some repeat business"),
            (1, "40-60%", "Good repeat client base"),
            (2, "60%+", "Strong recurring revenue"),
        ],
    ),
    _q(
        "backlog_visibility", "revenuePredictability", "How far in advance can you see your revenue pipeline?", 0.25,
        [
            (-1, "Less than 3 months", "Short-term visibility"),
            (0, "3-6 months", "Moderate visibility"),
            (1, "6-12 months", "Good visibility"),
            (2, "12+ months", "Excellent visibility"),
        ],
    ),
    _q(
        "contract_types", "revenuePredictability", "What percentage of projects are fixed-price vs. cost-plus?", 0.2,
        [
            (-1, "Mostly cost-plus", "Less predictable margins"),
            (0, "Mixed", "Balance of both"),
            (1, "Mostly fixed-price", "More predictable margins"),
            (2, "All fixed-price", "Maximum predictability"),
        ],
    ),
    _q(
        "seasonality", "revenuePredictability", "How seasonal is your business?", 0.25,
        [
            (-1, "Highly seasonal", "Large seasonal swings"),
            (0, "Some seasonality", "Moderate variations"),
            (1, "Minimal seasonality", "Relatively steady"),
            (2, "No seasonality", "Year-round consistent"),
        ],
    ),
    # Market position
    _q(
        "competitive_advantage", "marketPosition", "What is your primary competitive advantage?", 0.3,
        [
            (-1, "Price only", "Competing on price"),
            (0, "Quality/service", "Standard differentiation"),
            (1, "Specialized expertise", "Unique capabilities"),
            (2, "Market leader", "Dominant position"),
        ],
    ),
    _q(
        "brand_recognition", "marketPosition", "How strong is your brand recognition in your market?", 0.25,
        [
            (-1, "Unknown", "No brand recognition"),
            (0, "Local recognition", "Known in local area"),
            (1, "Regional recognition", "Known regionally"),
            (2, "Industry leader", "Recognized industry-wide"),
        ],
    ),
    _q(
        "market_growth", "marketPosition", "Is your primary market segment growing?", 0.25,
        [
            (-1, "Declining", "Market shrinking"),
            (0, "Stable", "No growth"),
            (1, "Growing", "Market expanding"),
            (2, "Rapidly growing", "High growth market"),
        ],
    ),
    _q(
        "niche_specialization", "marketPosition", "Do you specialize in a high-value niche?", 0.2,
        [
            (-1, "General contractor", "Broad, competitive market"),
            (0, "Some specialization", "Focused but not unique"),
            (1, "Specialized", "Clear niche focus"),
            (2, "Highly specialized", "Unique, defensible niche"),
        ],
    ),
    # Operational systems
    _q(
        "technology_systems", "operationalSystems", "How sophisticated are your technology systems?", 0.3,
        [
            (-1, "Basic/Manual", "Spreadsheets, paper-based"),
            (0, "Standard software", "Basic construction software"),
            (1, "Integrated systems", "ERP, project management tools"),
            (2, "Advanced tech", "AI, automation, real-time data"),
        ],
    ),
    _q(
        "quality_control", "operationalSystems", "How formalized is your quality control process?", 0.25,
        [
            (-1, "Informal", "Ad-hoc quality checks"),
            (0, "Basic processes", "Some QC procedures"),
            (1, "Formal system", "Documented QC program"),
            (2, "Certified system", "ISO, Six Sigma, etc."),
        ],
    ),
    _q(
        "project_management", "operationalSystems", "How sophisticated is your project management approach?", 0.25,
        [
            (-1, "Reactive", "Fire-fighting mode"),
            (0, "Basic tracking", "Track progress, costs"),
            (1, "Proactive management", "Forecasting, risk management"),
            (2, "Advanced PM", "Predictive analytics, optimization"),
        ],
    ),
    _q(
        "scalability", "operationalSystems", "Can your operations scale without proportional cost increases?", 0.2,
        [
            (-1, "No scalability", "Linear cost growth"),
            (0, "Limited scalability", "Some efficiency gains"),
            (1, "Good scalability", "Efficient operations"),
            (2, "Highly scalable", "Strong operating leverage"),
        ],
    ),
    # Customer concentration
    _q(
        "customer_diversification", "customerConcentration",
        "What percentage of revenue comes from your top 3 customers?", 1.0,
        [
            (-2, "80%+", "High concentration risk"),
            (-1, "60-80%", "Moderate concentration"),
            (0, "40-60%", "Some diversification"),
            (1, "20-40%", "Well diversified"),
            (2, "Less than 20%", "Highly diversified"),
        ],
        tooltip="Lower concentration reduces risk and increases value",
    ),
    # Project portfolio
    _q(
        "project_size", "projectPortfolio", "What is your typical project size?", 0.3,
        [
            (-1, "Small projects", "Under $100K average"),
            (0, "Mid-size", "$100K-$1M average"),
            (1, "Large projects", "$1M-$10M average"),
            (2, "Enterprise projects", "$10M+ average"),
        ],
    ),
    _q(
        "project_diversification", "projectPortfolio", "How diversified is your project portfolio?", 0.3,
        [
            (-1, "Single type", "One project type only"),
            (0, "Limited types", "2-3 project types"),
            (1, "Diversified", "Multiple project types"),
            (2, "Highly diversified", "Broad portfolio"),
        ],
    ),
    _q(
        "geographic_diversification", "projectPortfolio", "How geographically diversified are your projects?", 0.4,
        [
            (-1, "Single location", "One market only"),
            (0, "Local/Regional", "Limited geography"),
            (1, "Multi-regional", "Multiple regions"),
            (2, "National/International", "Broad geography"),
        ],
    ),
    # Management depth
    _q(
        "succession_planning", "managementDepth", "Do you have a succession plan?", 0.4,
        [
            (-2, "No plan", "No succession planning"),
            (-1, "Informal plan", "Some thought but not documented"),
            (0, "Developing plan", "Plan in progress"),
            (1, "Formal plan", "Documented succession plan"),
            (2, "Executed plan", "Successor identified and trained"),
        ],
    ),
    _q(
        "key_person_risk", "managementDepth", "How dependent is the business on key individuals?", 0.6,
        [
            (-2, "Highly dependent", "Critical key person risk"),
            (-1, "Some dependency", "Moderate key person risk"),
            (0, "Limited dependency", "Low key person risk"),
            (1, "Minimal dependency", "Very low risk"),
            (2, "No dependency", "No key person risk"),
        ],
    ),
    # Cash flow management
    _q(
        "payment_cycles", "cashFlow", "What is your average payment cycle from clients?", 0.4,
        [
            (-1, "60+ days", "Slow payment"),
            (0, "30-60 days", "Standard terms"),
            (1, "15-30 days", "Fast payment"),
            (2, "Under 15 days", "Very fast payment"),
        ],
    ),
    _q(
        "working_capital", "cashFlow", "How well do you manage working capital?", 0.6,
        [
            (-1, "Struggles", "Frequent cash flow issues"),
            (0, "Adequate", "Manageable but tight"),
            (1, "Good", "Healthy working capital"),
            (2, "Excellent", "Strong cash position"),
        ],
    ),
    # Safety and compliance
    _q(
        "safety_record", "safetyCompliance", "What is your safety record (OSHA incident rate)?", 0.5,
        [
            (-1, "Above industry average", "Poor safety record"),
            (0, "Industry average", "Standard safety"),
            (1, "Below industry average", "Good safety record"),
            (2, "Exceptional", "Outstanding safety"),
        ],
    ),
    _q(
        "bonding_capacity", "safetyCompliance", "What is your bonding capacity relative to revenue?", 0.5,
        [
            (-1, "Limited bonding", "Less than 2x revenue"),
            (0, "Standard", "2-3x revenue"),
            (1, "Strong", "3-5x revenue"),
            (2, "Exceptional", "5x+ revenue"),
        ],
    ),
)


@dataclass(frozen=True)
class ScoringConfig:
    """Weights and limits used to turn answers into a multiple adjustment."""

    category_weights: Mapping[str, float] = field(default_factory=lambda: dict(CATEGORY_WEIGHTS))
    questions: tuple[Question, ...] = VALUE_DRIVER_QUESTIONS
    impact_scale: float = 0.5
    adjustment_limit: float = 1.5
    multiple_floors: tuple[float, float, float] = (1.0, 1.5, 2.0)


DEFAULT_SCORING_CONFIG = ScoringConfig()


def validate_scoring_config(config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> list[str]:
    """Problems with a scoring configuration; empty when it is usable."""
    problems: list[str] = []
    total = sum(config.category_weights.values())
    if abs(total - 1.0) > 1e-9:
        problems.append(f"Category weights sum to {total:.6f}, expected 1.0.")

    seen: set[str] = set()
    for q in config.questions:
        if q.id in seen:
            problems.append(f"Duplicate question id '{q.id}'.")
        seen.add(q.id)
        if q.category not in config.category_weights:
            problems.append(f"Question '{q.id}' uses category '{q.category}' with no weight.")
        if not 0 < q.weight <= 1:
            problems.append(f"Question '{q.id}' weight {q.weight} is outside (0, 1].")
        for opt in q.options:
            if not MIN_ANSWER <= opt.value <= MAX_ANSWER:
                problems.append(f"Question '{q.id}' option '{opt.label}' value {opt.value} is outside [-2, 2].")
    return problems


def calculate_value_driver_scores(
    answers: Mapping[str, float],
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> list[ValueDriverScore]:
    """Weighted average answer per category, for categories with at least one answer."""
    totals: dict[str, list[float]] = {}
    for q in config.questions:
        answer = answers.get(q.id)
        if answer is None:
            continue
        bucket = totals.setdefault(q.category, [0.0, 0.0])
        bucket[0] += float(answer) * q.weight
        bucket[1] += q.weight

    scores: list[ValueDriverScore] = []
    for category, (total_score, total_weight) in totals.items():
        score = total_score / total_weight if total_weight > 0 else 0.0
        weight = float(config.category_weights.get(category, 0.0))
        scores.append(
            ValueDriverScore(
                category=category,
                score=score,
                weight=weight,
                impact=score * weight * config.impact_scale,
            )
        )
    return scores


def calculate_adjusted_multiple_range(
    base_range: Mapping[str, float],
    answers: Mapping[str, float],
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> AdjustedMultipleRange:
    total = sum(s.impact for s in calculate_value_driver_scores(answers, config))
    limit = config.adjustment_limit
    adjustment = max(-limit, min(limit, total))
    low_floor, mid_floor, high_floor = config.multiple_floors
    return AdjustedMultipleRange(
        low=max(low_floor, float(base_range["low"]) + adjustment),
        mid=max(mid_floor, float(base_range["mid"]) + adjustment),
        high=max(high_floor, float(base_range["high"]) + adjustment),
        adjustment=adjustment,
    )


def calculate_overall_score(
    answers: Mapping[str, float],
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> float:
    scores = calculate_value_driver_scores(answers, config)
    total_weight = math.fsum(s.weight for s in scores)
    if total_weight <= 0:
        return 0.0
    return math.fsum(s.score * s.weight for s in scores) / total_weight


def identify_strengths_and_weaknesses(scores: list[ValueDriverScore]) -> dict[str, list[str]]:
    """Top three categories and bottom three (worst first)."""
    ranked = sorted(scores, key=lambda s: s.score, reverse=True)
    return {
        "strengths": [s.category for s in ranked[:3]],
        "weaknesses": [s.category for s in ranked[-3:][::-1]],
    }


def get_category_name(category: str) -> str:
    return CATEGORY_NAMES.get(category, category)


def get_questions_by_category(category: str, config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> list[Question]:
    return [q for q in config.questions if q.category == category]


def get_all_categories(config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> list[str]:
    return list(config.category_weights.keys())
