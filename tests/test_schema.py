from __future__ import annotations

import json

import pytest

from wip_engine.models import FixedPriceJob, TimeMaterialJob
from wip_engine.schema import default_tm_settings, job_to_dict, normalize_job, normalize_jobs


def test_flat_database_row_is_normalized():
    row = {
        "id": "abc",
        "job_no": "24-010",
        "job_name": "Warehouse",
        "job_type": "time-material",
        "status": "Active",
        "cost_labor": 200,
        "cost_material": "50",
        "invoiced_labor": 100,
        "tm_settings": json.dumps({"laborBillingType": "markup", "laborMarkup": 2, "materialMarkup": 0}),
        "mobilizations": json.dumps([{"id": 1, "enabled": True, "mobilizeDate": "2024-01-01", "demobilizeDate": ""}]),
    }
    job, warnings = normalize_job(row)
    assert isinstance(job, TimeMaterialJob)
    assert job.costs.labor == 200.0
    assert job.costs.material == 50.0
    assert job.costs.other == 0.0
    assert job.tm_settings.labor_markup == 2.0
    # Zero markup means no markup.
    assert job.tm_settings.material_markup == 1.0
    assert job.mobilizations[0].demobilize_date == "TBD"
    assert warnings == []


def test_invalid_values_are_reset_with_warnings(fixed_price_payload):
    payload = dict(fixed_price_payload)
    payload["status"] = "Someday"
    payload["jobType"] = "cost-plus"
    payload["contract"] = {"labor": "lots", "material": 30000, "other": 10000}
    job, warnings = normalize_job(payload)
    assert isinstance(job, FixedPriceJob)
    assert job.status == "Active"
    assert job.contract.labor == 0.0
    assert any("status" in w for w in warnings)
    assert any("job_type" in w for w in warnings)
    assert any("contract.labor" in w for w in warnings)


def test_time_material_job_without_settings_bills_at_cost(tm_payload):
    payload = dict(tm_payload)
    del payload["tmSettings"]
    job, warnings = normalize_job(payload)
    assert isinstance(job, TimeMaterialJob)
    assert job.tm_settings.labor_markup == 1.0
    assert job.tm_settings.material_markup == 1.0
    assert any("tm_settings" in w for w in warnings)


def test_non_dict_payload_is_rejected():
    with pytest.raises(TypeError):
        normalize_job(["not", "a", "job"])


def test_job_to_dict_normalizes_back_to_the_same_job(fixed_price_job, tm_job):
    for job in (fixed_price_job, tm_job):
        again, warnings = normalize_job(job_to_dict(job))
        assert again == job
        assert warnings == []


def test_normalize_jobs_prefixes_warnings_with_job_label(fixed_price_payload):
    payload = dict(fixed_price_payload)
    payload["status"] = "bogus"
    jobs, warnings = normalize_jobs([payload])
    assert len(jobs) == 1
    assert warnings and warnings[0].startswith("24-001: ")


def test_default_tm_settings_for_new_jobs():
    settings = default_tm_settings()
    assert settings.labor_billing_type == "markup"
    assert settings.labor_markup == 1.5
    assert settings.material_markup == 1.15
    assert settings.other_markup == 1.10
