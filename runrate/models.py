# ==============================================================================
# runrate/models.py
# ------------------------------------------------------------------------------
# Defines the database schema using SQLAlchemy ORM models.
# ==============================================================================

from datetime import datetime
import json
from runrate import db
from runrate.calculator import domain


def _load_list(raw):
    return tuple(json.loads(raw)) if raw else ()


class Staff(db.Model):
    """
    A staff member. `reports_to` is a back-reference by employee code; the
    managed_* columns hold JSON lists granting multi-unit roles their scope.
    """
    __tablename__ = 'staff'
    id = db.Column(db.Integer, primary_key=True)
    employee_code = db.Column(db.String(32), unique=True, nullable=False, index=True)
    employee_name = db.Column(db.String(128), nullable=False, index=True)
    designation = db.Column(db.String(64), nullable=False)
    branch_name = db.Column(db.String(128), index=True)
    district_name = db.Column(db.String(128))
    region = db.Column(db.String(64))
    zone = db.Column(db.String(64))
    contact_number = db.Column(db.String(32))
    reports_to = db.Column(db.String(32), index=True)
    managed_zones_json = db.Column(db.Text, nullable=True)
    managed_branches_json = db.Column(db.Text, nullable=True)

    @property
    def managed_zones(self):
        return list(_load_list(self.managed_zones_json))

    @managed_zones.setter
    def managed_zones(self, zones):
        self.managed_zones_json = json.dumps(list(zones or []), ensure_ascii=False)

    @property
    def managed_branches(self):
        return list(_load_list(self.managed_branches_json))

    @managed_branches.setter
    def managed_branches(self, branches):
        self.managed_branches_json = json.dumps(list(branches or []), ensure_ascii=False)

    def to_domain(self):
        return domain.StaffMember(
            employee_code=self.employee_code, employee_name=self.employee_name,
            designation=self.designation, branch_name=self.branch_name,
            district_name=self.district_name, region=self.region, zone=self.zone,
            reports_to=self.reports_to,
            managed_zones=_load_list(self.managed_zones_json),
            managed_branches=_load_list(self.managed_branches_json),
        )

    def to_dict(self):
        return {
            'employee_code': self.employee_code, 'employee_name': self.employee_name,
            'designation': self.designation, 'branch_name': self.branch_name,
            'district_name': self.district_name, 'region': self.region, 'zone': self.zone,
            'contact_number': self.contact_number, 'reports_to': self.reports_to,
            'managed_zones': self.managed_zones, 'managed_branches': self.managed_branches,
        }

    def __repr__(self):
        return f'<Staff {self.employee_code}: {self.employee_name}>'


class Branch(db.Model):
    """
    A branch. The manager columns are derived from the staff table by
    store.sync_branch_managers() and are not authoritative.
    """
    __tablename__ = 'branch'
    id = db.Column(db.Integer, primary_key=True)
    branch_name = db.Column(db.String(128), unique=True, nullable=False, index=True)
    zone = db.Column(db.String(64))
    region = db.Column(db.String(64))
    district_name = db.Column(db.String(128))
    manager_code = db.Column(db.String(32))
    manager_name = db.Column(db.String(128))
    mobile_number = db.Column(db.String(32))

    def to_domain(self):
        return domain.Branch(
            branch_name=self.branch_name, zone=self.zone, region=self.region,
            district_name=self.district_name, manager_code=self.manager_code,
        )

    def __repr__(self):
        return f'<Branch {self.branch_name}>'


class ProductMetric(db.Model):
    """One entry of the admin-configurable metric catalog."""
    __tablename__ = 'product_metric'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), unique=True, nullable=False, index=True)
    category = db.Column(db.String(64), nullable=False)
    kind = db.Column(db.String(16), nullable=False)  # 'Amount', 'Account' or 'Other'
    unit_of_measure = db.Column(db.String(16), default='')
    contributes_to_overall_goals = db.Column(db.Boolean, default=True, nullable=False)

    def to_domain(self):
        return domain.ProductMetric(
            name=self.name, category=self.category, kind=self.kind,
            unit_of_measure=self.unit_of_measure or '',
            contributes_to_overall_goals=bool(self.contributes_to_overall_goals),
        )

    def __repr__(self):
        return f'<ProductMetric {self.name} ({self.kind})>'


class Target(db.Model):
    """An individual KRA: one staff member, one metric, one period."""
    __tablename__ = 'target'
    id = db.Column(db.Integer, primary_key=True)
    employee_code = db.Column(db.String(32), nullable=False, index=True)
    metric = db.Column(db.String(64), nullable=False)
    target = db.Column(db.Float, nullable=False, default=0)
    period_type = db.Column(db.String(16), nullable=False, default='monthly')
    period = db.Column(db.String(7), nullable=False, index=True)  # YYYY-MM or YYYY
    due_date = db.Column(db.Date, nullable=True)

    __table_args__ = (
        db.UniqueConstraint('employee_code', 'metric', 'period', 'period_type', name='_target_uc'),
    )

    def to_domain(self):
        return domain.Target(
            employee_code=self.employee_code, metric=self.metric, target=float(self.target or 0),
            period_type=self.period_type, period=self.period,
        )

    def to_dict(self):
        return {
            'id': self.id, 'employee_code': self.employee_code, 'metric': self.metric,
            'target': self.target, 'period_type': self.period_type, 'period': self.period,
            'due_date': self.due_date.isoformat() if self.due_date else None,
        }

    def __repr__(self):
        return f'<Target {self.employee_code} {self.metric} {self.period_type}:{self.period}>'


class BranchTarget(db.Model):
    """A monthly target set for a whole branch."""
    __tablename__ = 'branch_target'
    id = db.Column(db.Integer, primary_key=True)
    branch_name = db.Column(db.String(128), nullable=False, index=True)
    metric = db.Column(db.String(64), nullable=False)
    target = db.Column(db.Float, nullable=False, default=0)
    month = db.Column(db.String(7), nullable=False, index=True)  # YYYY-MM
    due_date = db.Column(db.Date, nullable=True)

    __table_args__ = (db.UniqueConstraint('branch_name', 'metric', 'month', name='_branch_target_uc'),)

    def to_domain(self):
        return domain.BranchTarget(
            branch_name=self.branch_name, metric=self.metric,
            target=float(self.target or 0), month=self.month,
        )

    def to_dict(self):
        return {
            'id': self.id, 'branch_name': self.branch_name, 'metric': self.metric,
            'target': self.target, 'month': self.month,
            'due_date': self.due_date.isoformat() if self.due_date else None,
        }

    def __repr__(self):
        return f'<BranchTarget {self.branch_name} {self.metric} {self.month}>'


class DailyAchievementRecord(db.Model):
    """
    One staff member's figures for one day. Metric values are stored as a
    JSON mapping; the total columns are recomputed on every write.
    """
    __tablename__ = 'daily_achievement_record'
    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.Date, nullable=False, index=True)
    staff_name = db.Column(db.String(128), nullable=False, index=True)
    branch_name = db.Column(db.String(128), index=True)
    values_json = db.Column(db.Text, nullable=False, default='{}')
    total_accounts = db.Column(db.Float, default=0)
    total_amounts = db.Column(db.Float, default=0)
    grand_total_ac = db.Column(db.Float, default=0)
    grand_total_amt = db.Column(db.Float, default=0)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (db.UniqueConstraint('date', 'staff_name', name='_date_staff_uc'),)

    @property
    def values(self):
        return json.loads(self.values_json or '{}')

    def to_row(self):
        """The record in report-row shape, as consumed by the aggregation engine."""
        row = {
            'DATE': self.date.strftime('%d/%m/%Y'),
            'STAFF NAME': self.staff_name,
            'BRANCH NAME': self.branch_name,
        }
        row.update(self.values)
        row.update({
            domain.TOTAL_ACCOUNTS: self.total_accounts or 0,
            domain.TOTAL_AMOUNTS: self.total_amounts or 0,
            domain.GRAND_TOTAL_AC: self.grand_total_ac or 0,
            domain.GRAND_TOTAL_AMT: self.grand_total_amt or 0,
        })
        return row

    def __repr__(self):
        return f'<DailyAchievementRecord {self.date} {self.staff_name}>'


class Projection(db.Model):
    """What a staff member expects to book on one metric on one day."""
    __tablename__ = 'projection'
    id = db.Column(db.Integer, primary_key=True)
    employee_code = db.Column(db.String(32), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False, index=True)
    metric = db.Column(db.String(64), nullable=False)
    value = db.Column(db.Float, nullable=False, default=0)

    __table_args__ = (db.UniqueConstraint('employee_code', 'date', 'metric', name='_projection_uc'),)

    def to_domain(self):
        return domain.PlanEntry(employee_code=self.employee_code, date=self.date.isoformat(),
                                metric=self.metric, value=float(self.value or 0))

    def to_dict(self):
        return {'id': self.id, 'employee_code': self.employee_code, 'date': self.date.isoformat(),
                'metric': self.metric, 'value': self.value}

    def __repr__(self):
        return f'<Projection {self.employee_code} {self.date} {self.metric}>'


class Demand(db.Model):
    """
    A demand raised against a staff member for one metric on one day.
    `source` says where it came from ('Target', 'Manual Input', ...).
    """
    __tablename__ = 'demand'
    id = db.Column(db.Integer, primary_key=True)
    employee_code = db.Column(db.String(32), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False, index=True)
    metric = db.Column(db.String(64), nullable=False)
    value = db.Column(db.Float, nullable=False, default=0)
    source = db.Column(db.String(64), nullable=False)

    __table_args__ = (db.UniqueConstraint('employee_code', 'date', 'metric', name='_demand_uc'),)

    def to_domain(self):
        return domain.PlanEntry(employee_code=self.employee_code, date=self.date.isoformat(),
                                metric=self.metric, value=float(self.value or 0), source=self.source)

    def to_dict(self):
        return {'id': self.id, 'employee_code': self.employee_code, 'date': self.date.isoformat(),
                'metric': self.metric, 'value': self.value, 'source': self.source}

    def __repr__(self):
        return f'<Demand {self.employee_code} {self.date} {self.metric}>'


class DesignationTarget(db.Model):
    """Which metrics are assigned as KRAs to a designation."""
    __tablename__ = 'designation_target'
    id = db.Column(db.Integer, primary_key=True)
    designation = db.Column(db.String(64), unique=True, nullable=False)
    metrics_json = db.Column(db.Text, nullable=False, default='[]')

    @property
    def metrics(self):
        return json.loads(self.metrics_json or '[]')

    def __repr__(self):
        return f'<DesignationTarget {self.designation}>'


class AppSetting(db.Model):
    """
    Stores key-value pairs for the engine's business rules so that they can
    be changed without a deployment.
    """
    __tablename__ = 'app_setting'
    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(128), unique=True, nullable=False, index=True)
    value = db.Column(db.String(256), nullable=False)
    description = db.Column(db.String(512))
    value_type = db.Column(db.String(32), default='string') # e.g., 'float', 'int', 'string', 'json'

    def __repr__(self):
        return f'<AppSetting {self.key}: {self.value}>'

    def get_value(self):
        """Casts the string value to its correct Python type."""
        if self.value_type == 'float':
            return float(self.value)
        if self.value_type == 'int':
            return int(self.value)
        if self.value_type == 'json':
            return json.loads(self.value)
        return self.value
