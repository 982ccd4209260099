"""JSON-file store for jobs, period snapshots, valuations and assessments."""

from __future__ import annotations

import json
import os
import uuid
from copy import deepcopy
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

from wip_engine.defaults import DEFAULT_VALUATION, VALUATION_INPUT_FIELDS
from wip_engine.models import MONTHLY, SNAPSHOT_KINDS, WEEKLY, Job, PeriodKey
from wip_engine.schema import job_to_dict, normalize_jobs
from wip_engine.valuation import ValuationInputs, calculate_valuation


STORE_DIR = Path(".local_store")

_DEFAULT_STORE_DIR = Path(".local_store")
_STORAGE_ENV_VAR = "WIP_STORAGE_ROOT"

JOBS_FILE = "jobs.json"
VALUATIONS_FILE = "valuations.json"
VALUE_HISTORY_FILE = "value_history.json"
ASSESSMENTS_FILE = "assessments.json"
SNAPSHOT_FILES = {
    WEEKLY: "weekly_snapshots.json",
    MONTHLY: "monthly_snapshots.json",
}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _expand_storage_root(path_value: str | Path | None) -> Path:
    if path_value is None:
        return _DEFAULT_STORE_DIR
    text = str(path_value).strip()
    if not text:
        return _DEFAULT_STORE_DIR
    return Path(os.path.expandvars(os.path.expanduser(text)))


def configure_storage_root(path_value: str | Path | None) -> Path:
    """Set the directory used by stores created without an explicit root."""
    global STORE_DIR
    STORE_DIR = _expand_storage_root(path_value)
    return STORE_DIR


def storage_root_from_env() -> Path:
    return _expand_storage_root(os.getenv(_STORAGE_ENV_VAR, ""))


def _snapshot_file(kind: str) -> str:
    if kind not in SNAPSHOT_KINDS:
        raise ValueError(f"Unsupported snapshot kind: {kind}")
    return SNAPSHOT_FILES[kind]


def _with_derived_values(row: dict[str, Any]) -> dict[str, Any]:
    results = calculate_valuation(ValuationInputs.from_mapping(row))
    row["adjusted_ebitda"] = results.adjusted_ebitda
    row["business_value"] = results.business_value
    return row


class LocalStore:
    """Storage collaborator backed by one JSON document per table.

    Writes go to a temp file that replaces the target, so a crash mid-write
    leaves the previous document intact. There is no locking: concurrent
    writers to the same table are last-write-wins.
    """

    def __init__(self, root: str | Path | None = None):
        self.root = _expand_storage_root(root) if root is not None else STORE_DIR

    def root_path(self) -> str:
        return str(self.root.resolve())

    def _load(self, filename: str) -> dict:
        p = self.root / filename
        if not p.exists():
            return {}
        try:
            data = json.loads(p.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, filename: str, data: dict) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        p = self.root / filename
        tmp = p.with_suffix(f"{p.suffix}.tmp")
        tmp.write_text(json.dumps(data, indent=2, default=str), encoding="utf-8")
        tmp.replace(p)

    # Jobs

    def fetch_jobs(self, company_id: str) -> list[Job]:
        """Jobs saved for a company, normalised. Normalisation warnings are dropped."""
        rows = self._load(JOBS_FILE).get(company_id, [])
        jobs, _ = normalize_jobs(rows)
        return jobs

    def save_jobs(self, company_id: str, jobs: Iterable[Job]) -> None:
        data = self._load(JOBS_FILE)
        data[company_id] = [job_to_dict(job) for job in jobs]
        self._save(JOBS_FILE, data)

    # Period snapshots

    def upsert_snapshot(self, period_key: PeriodKey, row: dict[str, Any]) -> dict[str, Any]:
        """Insert or replace the snapshot stored under the period's natural key."""
        filename = _snapshot_file(period_key.kind)
        data = self._load(filename)
        data[period_key.storage_key()] = deepcopy(row)
        self._save(filename, data)
        return deepcopy(row)

    def get_snapshot(self, period_key: PeriodKey) -> dict[str, Any] | None:
        data = self._load(_snapshot_file(period_key.kind))
        return deepcopy(data.get(period_key.storage_key()))

    def fetch_snapshots(
        self,
        company_id: str,
        kind: str,
        limit: int | None = None,
        order_by_period_desc: bool = True,
    ) -> list[dict[str, Any]]:
        period_field = "week_number" if kind == WEEKLY else "month"
        rows = [
            row
            for row in self._load(_snapshot_file(kind)).values()
            if row.get("company_id") == company_id
        ]
        rows.sort(
            key=lambda r: (int(r.get("year", 0)), int(r.get(period_field, 0))),
            reverse=order_by_period_desc,
        )
        if limit is not None:
            rows = rows[: max(int(limit), 0)]
        return deepcopy(rows)

    # Valuations

    def insert_valuation(self, company_id: str, inputs: dict[str, Any]) -> dict[str, Any]:
        """Store a valuation with derived EBITDA and value; one current valuation per company."""
        now = _now_iso()
        row = deepcopy(DEFAULT_VALUATION)
        row.update(deepcopy(inputs))
        row.update(
            {
                "id": str(uuid.uuid4()),
                "company_id": company_id,
                "created_at": now,
                "updated_at": now,
            }
        )
        _with_derived_values(row)

        data = self._load(VALUATIONS_FILE)
        if row.get("is_current"):
            self._clear_current(data, company_id)
        data[row["id"]] = row
        self._save(VALUATIONS_FILE, data)
        return deepcopy(row)

    def update_valuation(self, valuation_id: str, partial_inputs: dict[str, Any]) -> dict[str, Any]:
        data = self._load(VALUATIONS_FILE)
        if valuation_id not in data:
            raise KeyError(f"Unknown valuation id: {valuation_id}")
        row = data[valuation_id]
        for key, value in partial_inputs.items():
            if key in ("id", "company_id", "created_at"):
                continue
            row[key] = value
        row["updated_at"] = _now_iso()
        _with_derived_values(row)
        if row.get("is_current"):
            self._clear_current(data, row["company_id"], keep=valuation_id)
        self._save(VALUATIONS_FILE, data)
        return deepcopy(row)

    @staticmethod
    def _clear_current(data: dict, company_id: str, keep: str | None = None) -> None:
        for vid, other in data.items():
            if vid != keep and other.get("company_id") == company_id:
                other["is_current"] = False

    def fetch_valuations(self, company_id: str) -> list[dict[str, Any]]:
        """Valuations for a company, newest first."""
        rows = [r for r in self._load(VALUATIONS_FILE).values() if r.get("company_id") == company_id]
        rows.sort(key=lambda r: str(r.get("created_at", "")), reverse=True)
        return deepcopy(rows)

    def current_valuation(self, company_id: str) -> dict[str, Any] | None:
        return next((r for r in self.fetch_valuations(company_id) if r.get("is_current")), None)

    # Value history

    def record_value_history(
        self,
        company_id: str,
        valuation: dict[str, Any],
        recorded_at: str | None = None,
    ) -> dict[str, Any]:
        """Record the valuation's figures for a day; a second record on the same day replaces the first."""
        recorded = str(recorded_at or _now_iso())[:10]
        row = {"company_id": company_id, "recorded_at": recorded, "valuation_id": valuation.get("id")}
        for key in VALUATION_INPUT_FIELDS + ("adjusted_ebitda", "business_value"):
            row[key] = valuation.get(key, 0.0)

        data = self._load(VALUE_HISTORY_FILE)
        data[f"{company_id}:{recorded}"] = row
        self._save(VALUE_HISTORY_FILE, data)
        return deepcopy(row)

    def fetch_value_history(self, company_id: str) -> list[dict[str, Any]]:
        """Value history for a company, oldest first."""
        rows = [r for r in self._load(VALUE_HISTORY_FILE).values() if r.get("company_id") == company_id]
        rows.sort(key=lambda r: str(r.get("recorded_at", "")))
        return deepcopy(rows)

    # Assessments

    def insert_assessment(self, company_id: str, assessment: dict[str, Any]) -> dict[str, Any]:
        row = deepcopy(assessment)
        row.update({"id": str(uuid.uuid4()), "company_id": company_id, "created_at": _now_iso()})
        data = self._load(ASSESSMENTS_FILE)
        data[row["id"]] = row
        self._save(ASSESSMENTS_FILE, data)
        return deepcopy(row)

    def latest_assessment(self, company_id: str) -> dict[str, Any] | None:
        rows = [r for r in self._load(ASSESSMENTS_FILE).values() if r.get("company_id") == company_id]
        if not rows:
            return None
        _, latest = max(enumerate(rows), key=lambda item: (str(item[1].get("created_at", "")), item[0]))
        return deepcopy(latest)


configure_storage_root(storage_root_from_env())
