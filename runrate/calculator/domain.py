# ==============================================================================
# runrate/calculator/domain.py
# ------------------------------------------------------------------------------
# Plain, immutable records the calculation engine works on. They are copied
# out of the database by store.take_snapshot() so that a single calculation
# never observes a half-applied write.
# ==============================================================================

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional, Tuple

GRAND_TOTAL_AMT = 'GRAND TOTAL AMT'
GRAND_TOTAL_AC = 'GRAND TOTAL AC'
TOTAL_AMOUNTS = 'TOTAL AMOUNTS'
TOTAL_ACCOUNTS = 'TOTAL ACCOUNTS'
NEW_SS_AGENT = 'NEW-SS/AGNT'

DERIVED_TOTAL_FIELDS = (TOTAL_ACCOUNTS, TOTAL_AMOUNTS, GRAND_TOTAL_AC, GRAND_TOTAL_AMT)

PERIOD_TYPES = ('monthly', 'mtd', 'ytd')

DESIGNATIONS = (
    'ASSISTANT BRANCH MANAGER',
    'AREA SALES MANAGER',
    'BRANCH CREDIT MANAGER',
    'BUSINESS DEVELOPMENT EXECUTIVE',
    'BUSINESS DEVELOPMENT OFFICER',
    'BRANCH MANAGER',
    'SENIOR BRANCH MANAGER',
    'BRANCH OFFICER',
    'BRANCH OPERATIONS MANAGER',
    'BRANCH SALES MANAGER',
    'CUSTOMER SERVICE OFFICER',
    'RO-CASA',
    'ZONAL MANAGER',
    'DISTRICT HEAD',
    'SENIOR DISTRICT HEAD',
    'ASSISTANT DISTRICT HEAD',
    'SALES MANAGER-CASA',
    'SALES MANAGER-DDS',
    'SALES MANAGER-SMBG',
    'TL-CASA',
    'TL-DDS',
    'TL-SMBG',
    'ADMINISTRATOR',
)


@dataclass(frozen=True)
class StaffMember:
    employee_code: str
    employee_name: str
    designation: str
    branch_name: Optional[str] = None
    district_name: Optional[str] = None
    region: Optional[str] = None
    zone: Optional[str] = None
    reports_to: Optional[str] = None
    managed_zones: Tuple[str, ...] = ()
    managed_branches: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Branch:
    branch_name: str
    zone: Optional[str] = None
    region: Optional[str] = None
    district_name: Optional[str] = None
    manager_code: Optional[str] = None


@dataclass(frozen=True)
class ProductMetric:
    name: str
    category: str
    kind: str  # 'Amount', 'Account' or 'Other'
    unit_of_measure: str = ''
    contributes_to_overall_goals: bool = True


@dataclass(frozen=True)
class Target:
    employee_code: str
    metric: str
    target: float
    period_type: str
    period: str


@dataclass(frozen=True)
class BranchTarget:
    branch_name: str
    metric: str
    target: float
    month: str


@dataclass(frozen=True)
class PlanEntry:
    """A projection or a demand for one staff member, metric and day."""
    employee_code: str
    date: str  # YYYY-MM-DD
    metric: str
    value: float
    source: Optional[str] = None


@dataclass(frozen=True)
class Scope:
    """The employee codes and branch names an aggregation runs over."""
    employee_codes: FrozenSet[str] = frozenset()
    branch_names: FrozenSet[str] = frozenset()
    level: str = 'individual'  # 'admin', 'zone', 'district', 'branch' or 'individual'
    is_global: bool = False

    @property
    def is_multi_unit(self):
        return self.level in ('zone', 'district')

    def is_empty(self):
        return not self.is_global and not self.employee_codes and not self.branch_names


@dataclass(frozen=True)
class TargetTotals:
    amount: float = 0.0
    account: float = 0.0


@dataclass(frozen=True)
class AchievementTotals:
    mtd_amount: float = 0.0
    mtd_account: float = 0.0
    # 'YYYY-MM-DD' -> (amount, account)
    by_date: Dict[str, Tuple[float, float]] = field(default_factory=dict)
