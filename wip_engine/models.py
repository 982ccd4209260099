"""Job, cost and result records shared by the calculation modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union


FIXED_PRICE = "fixed-price"
TIME_MATERIAL = "time-material"
JOB_TYPES = (FIXED_PRICE, TIME_MATERIAL)

LABOR_FIXED_RATE = "fixed-rate"
LABOR_MARKUP = "markup"
LABOR_BILLING_TYPES = (LABOR_FIXED_RATE, LABOR_MARKUP)

TBD = "TBD"


class JobStatus:
    DRAFT = "Draft"
    FUTURE = "Future"
    ACTIVE = "Active"
    ON_HOLD = "On Hold"
    COMPLETED = "Completed"
    ARCHIVED = "Archived"


JOB_STATUSES = (
    JobStatus.DRAFT,
    JobStatus.FUTURE,
    JobStatus.ACTIVE,
    JobStatus.ON_HOLD,
    JobStatus.COMPLETED,
    JobStatus.ARCHIVED,
)

CHANGE_ORDER_STATUSES = ("pending", "approved", "rejected", "completed")
APPROVED_CHANGE_ORDER_STATUSES = ("approved", "completed")


@dataclass(frozen=True)
class CostBreakdown:
    labor: float = 0.0
    material: float = 0.0
    other: float = 0.0

    def total(self) -> float:
        return self.labor + self.material + self.other


ZERO_BREAKDOWN = CostBreakdown()


@dataclass(frozen=True)
class TMSettings:
    """Time-and-material billing terms. Markups are multipliers (1.5 = 50% markup)."""

    labor_billing_type: str = LABOR_MARKUP
    labor_bill_rate: float = 0.0
    labor_hours: float = 0.0
    labor_markup: float = 1.0
    material_markup: float = 1.0
    other_markup: float = 1.0


@dataclass(frozen=True)
class MobilizationPhase:
    id: int
    enabled: bool
    mobilize_date: str | None = None
    demobilize_date: str | None = None
    description: str = ""


@dataclass(frozen=True)
class ChangeOrder:
    id: str
    job_id: str
    co_number: int
    status: str
    co_type: str = FIXED_PRICE
    description: str = ""
    contract: CostBreakdown = ZERO_BREAKDOWN
    budget: CostBreakdown = ZERO_BREAKDOWN
    costs: CostBreakdown = ZERO_BREAKDOWN
    invoiced: CostBreakdown = ZERO_BREAKDOWN
    cost_to_complete: CostBreakdown = ZERO_BREAKDOWN
    tm_settings: TMSettings | None = None

    @property
    def is_approved(self) -> bool:
        return self.status in APPROVED_CHANGE_ORDER_STATUSES


@dataclass(frozen=True)
class _JobBase:
    id: str
    job_no: str
    job_name: str = ""
    client: str = ""
    project_manager: str = ""
    estimator: str = ""
    status: str = JobStatus.ACTIVE
    start_date: str | None = None
    end_date: str | None = None
    target_end_date: str | None = None
    contract: CostBreakdown = ZERO_BREAKDOWN
    budget: CostBreakdown = ZERO_BREAKDOWN
    costs: CostBreakdown = ZERO_BREAKDOWN
    cost_to_complete: CostBreakdown = ZERO_BREAKDOWN
    invoiced: CostBreakdown = ZERO_BREAKDOWN
    mobilizations: tuple[MobilizationPhase, ...] = ()
    labor_cost_per_hour: float | None = None
    as_of_date: str | None = None
    last_updated: str | None = None
    target_profit: float | None = None
    target_margin: float | None = None
    company_id: str | None = None


@dataclass(frozen=True)
class FixedPriceJob(_JobBase):
    @property
    def job_type(self) -> str:
        return FIXED_PRICE


@dataclass(frozen=True)
class TimeMaterialJob(_JobBase):
    tm_settings: TMSettings = field(default_factory=TMSettings)

    @property
    def job_type(self) -> str:
        return TIME_MATERIAL


Job = Union[FixedPriceJob, TimeMaterialJob]


@dataclass(frozen=True)
class EarnedRevenue:
    labor: float
    material: float
    other: float
    total: float


@dataclass(frozen=True)
class BillingDifference:
    difference: float
    is_over_billed: bool
    label: str


@dataclass(frozen=True)
class ScheduleWarning:
    type: str
    message: str
    severity: str
    phase_id: int | None = None


WEEKLY = "weekly"
MONTHLY = "monthly"
SNAPSHOT_KINDS = (WEEKLY, MONTHLY)


@dataclass(frozen=True)
class PeriodKey:
    """Natural key of a period snapshot: one row per company, year and week/month."""

    kind: str
    company_id: str
    year: int
    period_number: int

    def storage_key(self) -> str:
        return f"{self.company_id}:{self.year:04d}:{self.period_number:02d}"
