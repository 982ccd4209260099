"""Job payload normalisation.

Jobs arrive either as app records (camelCase, nested breakdowns) or as flat
database rows (snake_case, ``contract_labor`` style columns, JSON columns for
T&M settings and mobilizations). Everything is normalised here, once, so the
calculation modules can assume fully populated values.
"""

from __future__ import annotations

import json
import math
from typing import Any, Iterable

from wip_engine.defaults import DEFAULT_TM_SETTINGS
from wip_engine.models import (
    FIXED_PRICE,
    JOB_STATUSES,
    JOB_TYPES,
    LABOR_BILLING_TYPES,
    LABOR_MARKUP,
    TBD,
    TIME_MATERIAL,
    ChangeOrder,
    CHANGE_ORDER_STATUSES,
    CostBreakdown,
    FixedPriceJob,
    Job,
    JobStatus,
    MobilizationPhase,
    TMSettings,
    TimeMaterialJob,
)


COMPONENTS = ("labor", "material", "other")

# field name -> (camelCase key, flat row column prefix)
BREAKDOWN_FIELDS = {
    "contract": ("contract", "contract"),
    "budget": ("budget", "budget"),
    "costs": ("costs", "cost"),
    "cost_to_complete": ("costToComplete", "cost_to_complete"),
    "invoiced": ("invoiced", "invoiced"),
}

TEXT_FIELDS = {
    "job_no": "jobNo",
    "job_name": "jobName",
    "client": "client",
    "project_manager": "projectManager",
    "estimator": "estimator",
}

DATE_FIELDS = {
    "start_date": "startDate",
    "end_date": "endDate",
    "target_end_date": "targetEndDate",
    "as_of_date": "asOfDate",
    "last_updated": "lastUpdated",
}

OPTIONAL_NUMBER_FIELDS = {
    "labor_cost_per_hour": "laborCostPerHour",
    "target_profit": "targetProfit",
    "target_margin": "targetMargin",
}

TM_FIELDS = {
    "labor_billing_type": "laborBillingType",
    "labor_bill_rate": "laborBillRate",
    "labor_hours": "laborHours",
    "labor_markup": "laborMarkup",
    "material_markup": "materialMarkup",
    "other_markup": "otherMarkup",
}


def _pick(payload: dict, snake: str, camel: str, default: Any = None) -> Any:
    if snake in payload and payload[snake] is not None:
        return payload[snake]
    if camel in payload and payload[camel] is not None:
        return payload[camel]
    return default


def _number(value: Any, default: float, key: str, warnings: list[str]) -> float:
    if value is None or value == "":
        return float(default)
    try:
        out = float(value)
    except (TypeError, ValueError):
        warnings.append(f"{key} invalid and reset to default.")
        return float(default)
    if math.isnan(out):
        warnings.append(f"{key} invalid and reset to default.")
        return float(default)
    return out


def _optional_number(value: Any, key: str, warnings: list[str]) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        warnings.append(f"{key} invalid and dropped.")
        return None


def _date_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if text.upper() == TBD:
        return TBD
    return text


def _json_value(value: Any, key: str, warnings: list[str]) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            warnings.append(f"{key} is not valid JSON and was ignored.")
            return None
    return value


def normalize_breakdown(payload: dict, field: str, warnings: list[str]) -> CostBreakdown:
    """Read one labor/material/other breakdown from nested or flat form."""
    camel, column_prefix = BREAKDOWN_FIELDS[field]
    nested = _pick(payload, field, camel)
    values = {}
    for comp in COMPONENTS:
        key = f"{field}.{comp}"
        if isinstance(nested, dict):
            raw = nested.get(comp)
        else:
            raw = payload.get(f"{column_prefix}_{comp}")
        values[comp] = _number(raw, 0.0, key, warnings)
    return CostBreakdown(**values)


def normalize_tm_settings(raw: Any, warnings: list[str]) -> TMSettings | None:
    raw = _json_value(raw, "tm_settings", warnings)
    if not isinstance(raw, dict):
        return None

    billing_type = str(_pick(raw, "labor_billing_type", "laborBillingType", LABOR_MARKUP))
    if billing_type not in LABOR_BILLING_TYPES:
        warnings.append("tm_settings.labor_billing_type invalid; reset to markup.")
        billing_type = LABOR_MARKUP

    values: dict[str, Any] = {"labor_billing_type": billing_type}
    for snake in ("labor_bill_rate", "labor_hours"):
        values[snake] = _number(_pick(raw, snake, TM_FIELDS[snake]), 0.0, f"tm_settings.{snake}", warnings)
    for snake in ("labor_markup", "material_markup", "other_markup"):
        markup = _number(_pick(raw, snake, TM_FIELDS[snake]), 1.0, f"tm_settings.{snake}", warnings)
        # A zero markup is treated as "not set", i.e. bill at cost.
        values[snake] = markup if markup else 1.0
    return TMSettings(**values)


def normalize_mobilizations(raw: Any, warnings: list[str]) -> tuple[MobilizationPhase, ...]:
    raw = _json_value(raw, "mobilizations", warnings)
    if not raw:
        return ()
    if not isinstance(raw, list):
        warnings.append("mobilizations is not a list and was ignored.")
        return ()

    phases = []
    for idx, item in enumerate(raw, start=1):
        if not isinstance(item, dict):
            warnings.append(f"mobilizations[{idx}] is not an object and was ignored.")
            continue
        try:
            phase_id = int(item.get("id", idx))
        except (TypeError, ValueError):
            phase_id = idx
        phases.append(
            MobilizationPhase(
                id=phase_id,
                enabled=bool(item.get("enabled", False)),
                mobilize_date=_date_text(_pick(item, "mobilize_date", "mobilizeDate")) or TBD,
                demobilize_date=_date_text(_pick(item, "demobilize_date", "demobilizeDate")) or TBD,
                description=str(item.get("description") or ""),
            )
        )
    return tuple(phases)


def normalize_job(payload: dict) -> tuple[Job, list[str]]:
    """Return a fully populated job and the list of normalisation warnings."""
    warnings: list[str] = []
    if not isinstance(payload, dict):
        raise TypeError("Job payload must be a dict.")

    job_id = str(payload.get("id") or "")
    if not job_id:
        warnings.append("id missing; job_no used as identifier.")
    job_no = str(_pick(payload, "job_no", "jobNo", "") or "")
    if not job_id:
        job_id = job_no

    status = str(payload.get("status") or JobStatus.ACTIVE)
    if status not in JOB_STATUSES:
        warnings.append(f"status {status!r} invalid; reset to {JobStatus.ACTIVE}.")
        status = JobStatus.ACTIVE

    job_type = str(_pick(payload, "job_type", "jobType", FIXED_PRICE))
    if job_type not in JOB_TYPES:
        warnings.append(f"job_type {job_type!r} invalid; reset to {FIXED_PRICE}.")
        job_type = FIXED_PRICE

    fields: dict[str, Any] = {"id": job_id, "job_no": job_no, "status": status}
    for snake, camel in TEXT_FIELDS.items():
        if snake == "job_no":
            continue
        fields[snake] = str(_pick(payload, snake, camel, "") or "")
    for snake, camel in DATE_FIELDS.items():
        fields[snake] = _date_text(_pick(payload, snake, camel))
    for snake, camel in OPTIONAL_NUMBER_FIELDS.items():
        fields[snake] = _optional_number(_pick(payload, snake, camel), snake, warnings)
    for field in BREAKDOWN_FIELDS:
        fields[field] = normalize_breakdown(payload, field, warnings)
    fields["mobilizations"] = normalize_mobilizations(payload.get("mobilizations"), warnings)
    company_id = _pick(payload, "company_id", "companyId")
    fields["company_id"] = str(company_id) if company_id is not None else None

    if job_type == TIME_MATERIAL:
        tm = normalize_tm_settings(_pick(payload, "tm_settings", "tmSettings"), warnings)
        if tm is None:
            warnings.append("time-material job has no tm_settings; billing at cost (markup 1.0).")
            tm = TMSettings()
        return TimeMaterialJob(tm_settings=tm, **fields), warnings
    return FixedPriceJob(**fields), warnings


def normalize_jobs(payloads: Iterable[dict]) -> tuple[list[Job], list[str]]:
    jobs: list[Job] = []
    warnings: list[str] = []
    for payload in payloads:
        job, job_warnings = normalize_job(payload)
        jobs.append(job)
        label = job.job_no or job.id
        warnings.extend(f"{label}: {w}" for w in job_warnings)
    return jobs, warnings


def normalize_change_order(payload: dict) -> tuple[ChangeOrder, list[str]]:
    warnings: list[str] = []
    status = str(payload.get("status") or "pending")
    if status not in CHANGE_ORDER_STATUSES:
        warnings.append(f"status {status!r} invalid; reset to pending.")
        status = "pending"
    co_type = str(_pick(payload, "co_type", "coType", FIXED_PRICE))
    if co_type not in JOB_TYPES:
        warnings.append(f"co_type {co_type!r} invalid; reset to {FIXED_PRICE}.")
        co_type = FIXED_PRICE
    try:
        co_number = int(_pick(payload, "co_number", "coNumber", 0))
    except (TypeError, ValueError):
        warnings.append("co_number invalid; reset to 0.")
        co_number = 0

    breakdowns = {field: normalize_breakdown(payload, field, warnings) for field in BREAKDOWN_FIELDS}
    change_order = ChangeOrder(
        id=str(payload.get("id") or ""),
        job_id=str(_pick(payload, "job_id", "jobId", "") or ""),
        co_number=co_number,
        status=status,
        co_type=co_type,
        description=str(payload.get("description") or ""),
        tm_settings=normalize_tm_settings(_pick(payload, "tm_settings", "tmSettings"), warnings),
        **breakdowns,
    )
    return change_order, warnings


def default_tm_settings() -> TMSettings:
    """T&M terms offered for new time-material jobs."""
    return TMSettings(**DEFAULT_TM_SETTINGS)


def _breakdown_dict(b: CostBreakdown) -> dict[str, float]:
    return {"labor": b.labor, "material": b.material, "other": b.other}


def job_to_dict(job: Job) -> dict[str, Any]:
    """Serialise a job to a JSON-ready camelCase record (used in snapshot_data)."""
    out: dict[str, Any] = {"id": job.id, "jobType": job.job_type, "status": job.status}
    for snake, camel in TEXT_FIELDS.items():
        out[camel] = getattr(job, snake)
    for snake, camel in DATE_FIELDS.items():
        value = getattr(job, snake)
        if value is not None:
            out[camel] = value
    for snake, camel in OPTIONAL_NUMBER_FIELDS.items():
        value = getattr(job, snake)
        if value is not None:
            out[camel] = value
    for field, (camel, _) in BREAKDOWN_FIELDS.items():
        out[camel] = _breakdown_dict(getattr(job, field))
    if job.company_id is not None:
        out["companyId"] = job.company_id
    if job.mobilizations:
        out["mobilizations"] = [
            {
                "id": m.id,
                "enabled": m.enabled,
                "mobilizeDate": m.mobilize_date,
                "demobilizeDate": m.demobilize_date,
                "description": m.description,
            }
            for m in job.mobilizations
        ]
    if isinstance(job, TimeMaterialJob):
        out["tmSettings"] = {camel: getattr(job.tm_settings, snake) for snake, camel in TM_FIELDS.items()}
    return out
