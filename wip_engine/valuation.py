"""Business valuation arithmetic: adjusted EBITDA, value, scenarios and growth."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Iterable, Mapping

import pandas as pd

from wip_engine.defaults import ADDBACK_CATEGORIES, MULTIPLE_CONFIG, MULTIPLE_RANGES, VALUATION_INPUT_FIELDS
from wip_engine.runtime_logging import append_runtime_event, storage_operation


SCENARIO_FIELDS = [
    ("annual_revenue", "Annual Revenue"),
    ("net_profit", "Net Profit"),
    ("owner_compensation", "Owner Compensation"),
    ("depreciation", "Depreciation"),
    ("interest_expense", "Interest Expense"),
    ("taxes", "Taxes"),
    ("other_addbacks", "Other Add-backs"),
    ("adjusted_ebitda", "Adjusted EBITDA"),
    ("multiple", "Multiple"),
    ("business_value", "Business Value"),
]


@dataclass(frozen=True)
class ValuationInputs:
    annual_revenue: float = 0.0
    net_profit: float = 0.0
    owner_compensation: float = 0.0
    depreciation: float = 0.0
    interest_expense: float = 0.0
    taxes: float = 0.0
    other_addbacks: float = 0.0
    multiple: float = 3.0

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ValuationInputs":
        """Build inputs from a valuation row; unknown keys are ignored, missing ones keep defaults."""
        values = {k: float(data[k]) for k in VALUATION_INPUT_FIELDS if data.get(k) is not None}
        return cls(**values)

    def as_dict(self) -> dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class ValuationResults:
    adjusted_ebitda: float
    business_value: float
    ebitda_margin: float
    value_to_revenue: float


@dataclass(frozen=True)
class ValueDelta:
    amount: float
    percent: float


@dataclass(frozen=True)
class ValueGrowth:
    amount: float
    percent: float
    period: str


def calculate_adjusted_ebitda(inputs: ValuationInputs) -> float:
    return inputs.net_profit + sum(getattr(inputs, c["key"]) for c in ADDBACK_CATEGORIES)


def clamp_multiple(multiple: float) -> float:
    """Snap a multiple onto the editor range, rounded to its step."""
    low, high, step = MULTIPLE_CONFIG["min"], MULTIPLE_CONFIG["max"], MULTIPLE_CONFIG["step"]
    bounded = min(max(float(multiple), low), high)
    return round(round(bounded / step) * step, 2)


def calculate_business_value(adjusted_ebitda: float, multiple: float) -> float:
    return adjusted_ebitda * multiple


def calculate_valuation(inputs: ValuationInputs) -> ValuationResults:
    adjusted_ebitda = calculate_adjusted_ebitda(inputs)
    business_value = calculate_business_value(adjusted_ebitda, inputs.multiple)
    revenue = inputs.annual_revenue
    return ValuationResults(
        adjusted_ebitda=adjusted_ebitda,
        business_value=business_value,
        ebitda_margin=adjusted_ebitda / revenue * 100 if revenue > 0 else 0.0,
        value_to_revenue=business_value / revenue * 100 if revenue > 0 else 0.0,
    )


def calculate_delta(current: float, previous: float) -> ValueDelta:
    amount = current - previous
    percent = amount / previous * 100 if previous > 0 else 0.0
    return ValueDelta(amount=amount, percent=percent)


def _scenario_frame(scenarios: list[Mapping[str, Any]]) -> pd.DataFrame:
    rows = []
    for scenario in scenarios:
        inputs = ValuationInputs.from_mapping(scenario)
        results = calculate_valuation(inputs)
        row = inputs.as_dict()
        row["adjusted_ebitda"] = float(scenario.get("adjusted_ebitda", results.adjusted_ebitda))
        row["business_value"] = float(scenario.get("business_value", results.business_value))
        rows.append(row)
    return pd.DataFrame(rows, columns=[key for key, _ in SCENARIO_FIELDS])


def compare_scenarios(scenarios: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Per-field values, min, max and spread across two or more valuation scenarios."""
    scenarios = list(scenarios)
    if len(scenarios) < 2:
        return []

    df = _scenario_frame(scenarios)
    out = []
    for key, label in SCENARIO_FIELDS:
        col = df[key]
        lo = float(col.min())
        hi = float(col.max())
        out.append(
            {
                "field": key,
                "label": label,
                "values": [float(v) for v in col.tolist()],
                "min": lo,
                "max": hi,
                "delta": hi - lo,
            }
        )
    return out


def scenario_comparison_frame(scenarios: Iterable[Mapping[str, Any]]) -> pd.DataFrame:
    """compare_scenarios as a table: one row per field, one column per scenario."""
    scenarios = list(scenarios)
    comparison = compare_scenarios(scenarios)
    if not comparison:
        return pd.DataFrame()
    names = [str(s.get("name") or f"Scenario {i}") for i, s in enumerate(scenarios, start=1)]
    rows = []
    for item in comparison:
        row = {"Field": item["label"]}
        row.update(dict(zip(names, item["values"])))
        row.update({"Min": item["min"], "Max": item["max"], "Delta": item["delta"]})
        rows.append(row)
    return pd.DataFrame(rows)


def calculate_value_growth(history: Iterable[Mapping[str, Any]], period_months: int = 12) -> ValueGrowth | None:
    """Change in business value from the start of the look-back window to the latest record.

    The baseline is the newest record at or before ``latest - period_months``;
    when the history does not reach that far back, the oldest record is used.
    Returns None when there is nothing to compare.
    """
    records = list(history)
    if len(records) < 2:
        return None

    dated = sorted(
        ((pd.Timestamp(r["recorded_at"]), i) for i, r in enumerate(records)),
        key=lambda item: item[0],
        reverse=True,
    )
    latest_ts, latest_idx = dated[0]
    cutoff = latest_ts - pd.DateOffset(months=int(period_months))

    baseline_idx = next((i for ts, i in dated if ts <= cutoff), dated[-1][1])
    if baseline_idx == latest_idx:
        return None

    delta = calculate_delta(
        float(records[latest_idx]["business_value"]),
        float(records[baseline_idx]["business_value"]),
    )
    return ValueGrowth(amount=delta.amount, percent=delta.percent, period=f"{int(period_months)}mo")


def get_suggested_multiple(revenue: float) -> dict[str, Any]:
    """Base multiple range for the revenue band; the smallest band when none matches."""
    for band in MULTIPLE_RANGES:
        if band["min_revenue"] <= revenue < band["max_revenue"]:
            return dict(band)
    return dict(MULTIPLE_RANGES[0])


def get_multiple_description(multiple: float) -> str:
    if multiple < 2.5:
        return "Small company, project-based work"
    if multiple < 3.5:
        return "Growing company, good systems"
    if multiple < 4.5:
        return "Established, repeat customers"
    if multiple < 5.5:
        return "Market leader, diversified revenue"
    return "Premium brand, exceptional growth"


def save_valuation(
    store,
    company_id: str,
    inputs: Mapping[str, Any],
    valuation_id: str | None = None,
    recorded_at: str | None = None,
) -> dict[str, Any]:
    """Insert or update a valuation and record the day's value history point."""
    context = {"company_id": company_id, "valuation_id": valuation_id}
    with storage_operation("save_valuation", context):
        if valuation_id is None:
            row = store.insert_valuation(company_id, dict(inputs))
        else:
            row = store.update_valuation(valuation_id, dict(inputs))
        store.record_value_history(company_id, row, recorded_at=recorded_at)
    append_runtime_event(
        level="INFO",
        event="valuation_saved",
        message=f"Saved valuation '{row.get('name', '')}' at {row['business_value']:,.0f}.",
        context={**context, "valuation_id": row["id"], "business_value": row["business_value"]},
    )
    return row
