"""Default values and reference tables for valuations and new jobs."""

from __future__ import annotations

import math


DEFAULT_TM_SETTINGS = {
    "labor_billing_type": "markup",
    "labor_markup": 1.5,
    "material_markup": 1.15,
    "other_markup": 1.10,
}

DEFAULT_VALUATION = {
    "name": "",
    "annual_revenue": 0.0,
    "net_profit": 0.0,
    "owner_compensation": 0.0,
    "depreciation": 0.0,
    "interest_expense": 0.0,
    "taxes": 0.0,
    "other_addbacks": 0.0,
    "multiple": 3.0,
    "notes": "",
    "is_current": False,
}

# Multiple ranges by company size (annual revenue).
MULTIPLE_RANGES = [
    {"min_revenue": 0.0, "max_revenue": 5_000_000.0, "low": 2.0, "mid": 2.5, "high": 3.0, "label": "Under $5M revenue"},
    {"min_revenue": 5_000_000.0, "max_revenue": 15_000_000.0, "low": 2.5, "mid": 3.25, "high": 4.0, "label": "$5M - $15M revenue"},
    {"min_revenue": 15_000_000.0, "max_revenue": 50_000_000.0, "low": 3.5, "mid": 4.25, "high": 5.0, "label": "$15M - $50M revenue"},
    {"min_revenue": 50_000_000.0, "max_revenue": math.inf, "low": 4.0, "mid": 5.0, "high": 6.0, "label": "Over $50M revenue"},
]

MULTIPLE_CONFIG = {"min": 1.5, "max": 7.0, "step": 0.1}

ADDBACK_CATEGORIES = [
    {
        "key": "owner_compensation",
        "label": "Owner Compensation Adjustments",
        "tooltip": "Excess salary above market rate, personal expenses run through business",
    },
    {
        "key": "depreciation",
        "label": "Depreciation & Amortization",
        "tooltip": "Non-cash expense from your tax return",
    },
    {
        "key": "interest_expense",
        "label": "Interest Expense",
        "tooltip": "Interest paid on loans and credit lines",
    },
    {
        "key": "taxes",
        "label": "Taxes Paid",
        "tooltip": "Income taxes paid by the business",
    },
    {
        "key": "other_addbacks",
        "label": "Other One-time/Discretionary",
        "tooltip": "One-time expenses, personal vehicles, family payroll, etc.",
    },
]

VALUATION_INPUT_FIELDS = (
    "annual_revenue",
    "net_profit",
    "owner_compensation",
    "depreciation",
    "interest_expense",
    "taxes",
    "other_addbacks",
    "multiple",
)
