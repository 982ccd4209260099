from __future__ import annotations

from copy import deepcopy
from pathlib import Path

import pytest

import wip_engine.runtime_logging as runtime_logging
from wip_engine.persistence import LocalStore
from wip_engine.schema import normalize_job


FIXED_PRICE_PAYLOAD = {
    "id": "job-1",
    "jobNo": "24-001",
    "jobName": "North Clinic Rooftop Units",
    "client": "North Health",
    "projectManager": "R. Diaz",
    "jobType": "fixed-price",
    "status": "Active",
    "startDate": "2024-01-01",
    "endDate": "2024-06-30",
    "contract": {"labor": 60000, "material": 30000, "other": 10000},
    "budget": {"labor": 50000, "material": 20000, "other": 10000},
    "costs": {"labor": 25000, "material": 10000, "other": 5000},
    "costToComplete": {"labor": 25000, "material": 10000, "other": 5000},
    "invoiced": {"labor": 30000, "material": 10000, "other": 0},
}

TM_PAYLOAD = {
    "id": "job-2",
    "jobNo": "24-002",
    "jobName": "Service Call Block",
    "client": "Eastside Mall",
    "projectManager": "K. Lowe",
    "jobType": "time-material",
    "status": "Active",
    "costs": {"labor": 1000, "material": 400, "other": 100},
    "invoiced": {"labor": 1000, "material": 0, "other": 0},
    "tmSettings": {"laborBillingType": "markup", "laborMarkup": 1.5, "materialMarkup": 1.25, "otherMarkup": 1.1},
}


@pytest.fixture
def fixed_price_payload() -> dict:
    return deepcopy(FIXED_PRICE_PAYLOAD)


@pytest.fixture
def tm_payload() -> dict:
    return deepcopy(TM_PAYLOAD)


@pytest.fixture
def fixed_price_job(fixed_price_payload):
    job, _ = normalize_job(fixed_price_payload)
    return job


@pytest.fixture
def tm_job(tm_payload):
    job, _ = normalize_job(tm_payload)
    return job


@pytest.fixture
def store(tmp_path) -> LocalStore:
    return LocalStore(tmp_path / "store")


@pytest.fixture
def event_log(tmp_path, monkeypatch) -> Path:
    log_file = Path(tmp_path) / "runtime_events.jsonl"
    monkeypatch.setattr(runtime_logging, "LOG_DIR", Path(tmp_path))
    monkeypatch.setattr(runtime_logging, "RUNTIME_EVENTS_LOG_FILE", log_file)
    return log_file
