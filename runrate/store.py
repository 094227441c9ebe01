# ==============================================================================
# runrate/store.py
# ------------------------------------------------------------------------------
# The persistence boundary. Reads for a calculation go through take_snapshot();
# every write is validated here before it reaches the database.
# ==============================================================================

import json
import logging
import re
from datetime import date

from sqlalchemy import func

from runrate import db
from runrate.models import (Staff, Branch, ProductMetric, Target, BranchTarget,
                            DailyAchievementRecord, DesignationTarget, Projection, Demand)
from runrate.calculator import domain
from runrate.calculator.achievements import parse_display_date
from runrate.calculator.catalog import MetricCatalog, METRIC_KINDS, parse_number
from runrate.calculator.projections import plan_metrics
from runrate.calculator.hierarchy import (is_zone_role, is_district_role, would_create_cycle,
                                          NO_BRANCH)

BRANCH_MANAGER = 'BRANCH MANAGER'
BRANCH_OFFICER = 'BRANCH OFFICER'
DEFAULT_DEMAND_SOURCE = 'Manual Input'

PERIOD_FORMATS = {
    'monthly': re.compile(r'^\d{4}-(0[1-9]|1[0-2])$'),
    'mtd': re.compile(r'^\d{4}-(0[1-9]|1[0-2])$'),
    'ytd': re.compile(r'^\d{4}$'),
}


# --- Errors ---

class StoreError(ValueError):
    """Base class for rejected writes."""


class DuplicateTargetError(StoreError):
    pass


class DuplicateEntryError(StoreError):
    """A second projection or demand for the same staff member, day and metric."""


class HierarchyError(StoreError):
    pass


class BranchDeletionError(StoreError):
    pass


# --- Snapshot ---

class Snapshot:
    """
    An immutable copy of the directory, target and achievement tables, read
    in one transaction. The calculation engine only ever reads from one of
    these.
    """

    def __init__(self, staff, branches, metrics, targets, branch_targets, achievements=()):
        self._staff = tuple(staff)
        self._branches = tuple(branches)
        self._metrics = tuple(metrics)
        self._kras = {}
        for target in targets:
            key = (target.employee_code, target.period_type, target.period)
            self._kras.setdefault(key, []).append(target)
        self._branch_targets = tuple(branch_targets)
        self._achievements = tuple(achievements)

    def get_all_staff(self):
        return self._staff

    def get_branches(self):
        return self._branches

    def get_product_metrics(self):
        return self._metrics

    def get_kras_for_staff(self, employee_code, period_type, period):
        return tuple(self._kras.get((employee_code, period_type, period), ()))

    def get_branch_targets(self, branch_name=None, month=None):
        return tuple(
            t for t in self._branch_targets
            if (branch_name is None or t.branch_name == branch_name)
            and (month is None or t.month == month)
        )

    def get_achievement_rows(self):
        """Achievement records in report-row shape (copies, safe to mutate)."""
        return [dict(row) for row in self._achievements]

    def find_staff(self, employee_code):
        return next((s for s in self._staff if s.employee_code == employee_code), None)


# Servers whose default isolation lets each SELECT see newer commits.
SNAPSHOT_ISOLATION = {'postgresql': 'REPEATABLE READ', 'mysql': 'REPEATABLE READ'}


def take_snapshot(month=None):
    """
    Copies everything one calculation reads inside a single read transaction,
    so a write committed halfway through is either wholly seen or not at all.
    Achievement rows of `month` ('YYYY-MM') are included when one is given.

    When the session already has a transaction open, the reads join it.
    """
    started = not db.session().in_transaction()
    if started:
        level = SNAPSHOT_ISOLATION.get(db.engine.dialect.name)
        db.session.connection(execution_options={'isolation_level': level} if level else None)
    try:
        snapshot = Snapshot(
            staff=[s.to_domain() for s in Staff.query.order_by(Staff.id).all()],
            branches=[b.to_domain() for b in Branch.query.order_by(Branch.branch_name).all()],
            metrics=[m.to_domain() for m in ProductMetric.query.order_by(ProductMetric.id).all()],
            targets=[t.to_domain() for t in Target.query.all()],
            branch_targets=[t.to_domain() for t in BranchTarget.query.all()],
            achievements=achievement_rows(month) if month else (),
        )
    except Exception:
        if started:
            db.session.rollback()
        raise
    if started:
        # Nothing was written; this only ends the read transaction.
        db.session.commit()
    return snapshot


def load_catalog():
    return MetricCatalog(m.to_domain() for m in ProductMetric.query.order_by(ProductMetric.id).all())


# --- Staff and branches ---

def _clean_list(values):
    return [v.strip() for v in (values or []) if v and v.strip()]


def _validate_staff(data, employee_code):
    designation = (data.get('designation') or '').strip().upper()
    if designation not in domain.DESIGNATIONS:
        raise StoreError(f"Unknown designation '{data.get('designation')}'.")

    candidate = domain.StaffMember(
        employee_code=employee_code, employee_name=data.get('employee_name', ''),
        designation=designation,
    )
    if is_zone_role(candidate) and not _clean_list(data.get('managed_zones')):
        raise StoreError('A ZONAL MANAGER must manage at least one zone.')
    if is_district_role(candidate) and not _clean_list(data.get('managed_branches')):
        raise StoreError(f'A {designation} must manage at least one branch.')

    reports_to = (data.get('reports_to') or '').strip() or None
    if reports_to:
        all_staff = [s.to_domain() for s in Staff.query.all()]
        if would_create_cycle(employee_code, reports_to, all_staff):
            raise HierarchyError(
                f"{employee_code} cannot report to {reports_to}: the reporting line would loop."
            )
    return designation, reports_to


def _ensure_branch(staff):
    name = (staff.branch_name or '').strip()
    if name.upper() in NO_BRANCH:
        return
    if Branch.query.filter(func.upper(Branch.branch_name) == name.upper()).first():
        return
    db.session.add(Branch(branch_name=name, zone=staff.zone, region=staff.region,
                          district_name=staff.district_name))
    logging.info(f"Created branch '{name}' for staff {staff.employee_code}.")


def _apply_staff_fields(staff, data, designation, reports_to):
    staff.employee_name = data['employee_name'].strip()
    staff.designation = designation
    staff.branch_name = (data.get('branch_name') or 'N/A').strip()
    staff.district_name = data.get('district_name')
    staff.region = data.get('region')
    staff.zone = data.get('zone')
    staff.contact_number = data.get('contact_number')
    staff.reports_to = reports_to
    staff.managed_zones = _clean_list(data.get('managed_zones'))
    staff.managed_branches = _clean_list(data.get('managed_branches'))


def add_staff(data):
    """Creates a staff member from a dict of Staff column values."""
    employee_code = (data.get('employee_code') or '').strip()
    if not employee_code or not (data.get('employee_name') or '').strip():
        raise StoreError('Employee code and name are required.')
    if Staff.query.filter_by(employee_code=employee_code).first():
        raise StoreError(f'Employee code {employee_code} already exists.')

    designation, reports_to = _validate_staff(data, employee_code)
    staff = Staff(employee_code=employee_code)
    _apply_staff_fields(staff, data, designation, reports_to)
    db.session.add(staff)
    _ensure_branch(staff)
    db.session.flush()
    sync_branch_managers()
    db.session.commit()
    logging.info(f"Added staff {employee_code} ({designation}).")
    return staff


def update_staff(employee_code, data):
    staff = Staff.query.filter_by(employee_code=employee_code).first()
    if staff is None:
        raise StoreError(f'No staff member with code {employee_code}.')
    merged = staff.to_dict()
    merged.update(data)
    designation, reports_to = _validate_staff(merged, employee_code)
    _apply_staff_fields(staff, merged, designation, reports_to)
    _ensure_branch(staff)
    db.session.flush()
    sync_branch_managers()
    db.session.commit()
    return staff


def remove_staff(employee_code):
    """Deletes a staff member, their KRAs, projections and demands, and any reporting lines pointing at them."""
    staff = Staff.query.filter_by(employee_code=employee_code).first()
    if staff is None:
        raise StoreError(f'No staff member with code {employee_code}.')
    Staff.query.filter_by(reports_to=employee_code).update({'reports_to': None})
    removed_kras = Target.query.filter_by(employee_code=employee_code).delete()
    Projection.query.filter_by(employee_code=employee_code).delete()
    Demand.query.filter_by(employee_code=employee_code).delete()
    db.session.delete(staff)
    db.session.flush()
    sync_branch_managers()
    db.session.commit()
    logging.info(f"Removed staff {employee_code} and {removed_kras} KRA(s).")


def sync_branch_managers():
    """
    Keeps one BRANCH MANAGER per branch. The earliest-added manager keeps the
    role; any others are demoted to BRANCH OFFICER. Does not commit.
    """
    managers = {}
    for staff in Staff.query.filter_by(designation=BRANCH_MANAGER).order_by(Staff.id).all():
        key = (staff.branch_name or '').strip().upper()
        if key in NO_BRANCH:
            continue
        if key in managers:
            logging.warning(
                f"Branch '{staff.branch_name}' already has manager {managers[key].employee_code}; "
                f"demoting {staff.employee_code} to {BRANCH_OFFICER}."
            )
            staff.designation = BRANCH_OFFICER
        else:
            managers[key] = staff

    for branch in Branch.query.all():
        manager = managers.get(branch.branch_name.upper())
        branch.manager_code = manager.employee_code if manager else None
        branch.manager_name = manager.employee_name if manager else None
        branch.mobile_number = manager.contact_number if manager else None


def add_branch(data):
    name = (data.get('branch_name') or '').strip()
    if not name or name.upper() in NO_BRANCH:
        raise StoreError('Branch name is required.')
    if Branch.query.filter(func.upper(Branch.branch_name) == name.upper()).first():
        raise StoreError(f"Branch '{name}' already exists.")
    branch = Branch(branch_name=name, zone=data.get('zone'), region=data.get('region'),
                    district_name=data.get('district_name'))
    db.session.add(branch)
    db.session.flush()
    sync_branch_managers()
    db.session.commit()
    return branch


def remove_branch(branch_name):
    """
    Deletes a branch and its branch targets. A branch that still has staff is
    kept unless its manager is the only one left, who is removed with it.
    """
    branch = Branch.query.filter(func.upper(Branch.branch_name) == branch_name.strip().upper()).first()
    if branch is None:
        raise StoreError(f"No branch named '{branch_name}'.")
    assigned = Staff.query.filter(func.upper(Staff.branch_name) == branch.branch_name.upper()).all()
    only_manager = len(assigned) == 1 and assigned[0].employee_code == branch.manager_code
    if assigned and not only_manager:
        raise BranchDeletionError(
            f"Branch '{branch.branch_name}' still has {len(assigned)} staff member(s) assigned."
        )
    try:
        if only_manager:
            code = assigned[0].employee_code
            Staff.query.filter_by(reports_to=code).update({'reports_to': None})
            Target.query.filter_by(employee_code=code).delete()
            db.session.delete(assigned[0])
        BranchTarget.query.filter_by(branch_name=branch.branch_name).delete()
        db.session.delete(branch)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logging.info(f"Removed branch '{branch_name}'.")


# --- Metric catalog ---

def add_metric(name, category, kind, unit_of_measure='', contributes_to_overall_goals=True):
    name = (name or '').strip()
    if not name:
        raise StoreError('Metric name is required.')
    if kind not in METRIC_KINDS:
        raise StoreError(f"Metric kind must be one of {', '.join(METRIC_KINDS)}.")
    if ProductMetric.query.filter(func.upper(ProductMetric.name) == name.upper()).first():
        raise StoreError(f"Metric '{name}' already exists.")
    metric = ProductMetric(name=name, category=category, kind=kind, unit_of_measure=unit_of_measure,
                           contributes_to_overall_goals=contributes_to_overall_goals)
    db.session.add(metric)
    db.session.commit()
    return metric


def remove_metric(name):
    """Deletes a metric together with every target and branch target set on it."""
    metric = ProductMetric.query.filter_by(name=name).first()
    if metric is None:
        raise StoreError(f"No metric named '{name}'.")
    removed = Target.query.filter_by(metric=name).delete()
    removed += BranchTarget.query.filter_by(metric=name).delete()
    db.session.delete(metric)
    db.session.commit()
    logging.info(f"Removed metric '{name}' and {removed} target(s) on it.")


def set_designation_metrics(designation, metric_names):
    """Assigns the KRA metrics that apply to a designation."""
    catalog = load_catalog()
    unknown = [n for n in metric_names if n not in catalog]
    if unknown:
        raise StoreError(f"Unknown metric(s): {', '.join(unknown)}")
    record = DesignationTarget.query.filter_by(designation=designation).first()
    if record is None:
        record = DesignationTarget(designation=designation)
        db.session.add(record)
    record.metrics_json = json.dumps(list(metric_names), ensure_ascii=False)
    db.session.commit()
    return record


# --- Targets ---

def _validate_target(metric, target, period_type=None, period=None):
    if metric not in load_catalog():
        raise StoreError(f"Unknown metric '{metric}'.")
    if target is None or parse_number(target) < 0:
        raise StoreError('Target must be a non-negative number.')
    if period_type is not None:
        pattern = PERIOD_FORMATS.get(period_type)
        if pattern is None:
            raise StoreError(f"Period type must be one of {', '.join(domain.PERIOD_TYPES)}.")
        if not pattern.match(period or ''):
            expected = 'YYYY' if period_type == 'ytd' else 'YYYY-MM'
            raise StoreError(f"Period '{period}' must be {expected} for {period_type} targets.")


def save_target(employee_code, metric, target, period_type, period, due_date=None):
    """Adds a KRA. A second KRA for the same staff, metric and period is rejected."""
    if not Staff.query.filter_by(employee_code=employee_code).first():
        raise StoreError(f'No staff member with code {employee_code}.')
    _validate_target(metric, target, period_type, period)
    existing = Target.query.filter_by(employee_code=employee_code, metric=metric,
                                      period_type=period_type, period=period).first()
    if existing:
        raise DuplicateTargetError(
            f"{employee_code} already has a {period_type} target for {metric} in {period}."
        )
    record = Target(employee_code=employee_code, metric=metric, target=parse_number(target),
                    period_type=period_type, period=period, due_date=due_date)
    db.session.add(record)
    db.session.commit()
    return record


def delete_target(target_id):
    record = db.session.get(Target, target_id)
    if record is None:
        raise StoreError(f'No target with id {target_id}.')
    db.session.delete(record)
    db.session.commit()


def save_branch_target(branch_name, metric, target, month, due_date=None):
    branch = Branch.query.filter(func.upper(Branch.branch_name) == (branch_name or '').strip().upper()).first()
    if branch is None:
        raise StoreError(f"No branch named '{branch_name}'.")
    _validate_target(metric, target, 'monthly', month)
    existing = BranchTarget.query.filter_by(branch_name=branch.branch_name, metric=metric, month=month).first()
    if existing:
        raise DuplicateTargetError(f"{branch.branch_name} already has a target for {metric} in {month}.")
    record = BranchTarget(branch_name=branch.branch_name, metric=metric, target=parse_number(target),
                          month=month, due_date=due_date)
    db.session.add(record)
    db.session.commit()
    return record


def delete_branch_target(target_id):
    record = db.session.get(BranchTarget, target_id)
    if record is None:
        raise StoreError(f'No branch target with id {target_id}.')
    db.session.delete(record)
    db.session.commit()


# --- Daily achievements ---

def _write_achievement(catalog, record_date, staff_name, branch_name, values):
    """Upserts one record without committing. Returns True when a new row was added."""
    clean = catalog.validate_values(values)
    totals = catalog.recompute_totals(clean)

    record = DailyAchievementRecord.query.filter_by(date=record_date, staff_name=staff_name).first()
    created = record is None
    if created:
        record = DailyAchievementRecord(date=record_date, staff_name=staff_name)
        db.session.add(record)
    record.branch_name = branch_name
    record.values_json = json.dumps(clean, ensure_ascii=False)
    record.total_accounts = totals[domain.TOTAL_ACCOUNTS]
    record.total_amounts = totals[domain.TOTAL_AMOUNTS]
    record.grand_total_ac = totals[domain.GRAND_TOTAL_AC]
    record.grand_total_amt = totals[domain.GRAND_TOTAL_AMT]
    return created


def upsert_achievement(record_date, staff_name, branch_name, values):
    """
    Saves one staff member's figures for a day, replacing any earlier
    submission for the same day. Totals are recomputed from the line items.

    Returns:
        tuple: (DailyAchievementRecord, bool created)
    """
    staff_name = (staff_name or '').strip()
    if not staff_name:
        raise StoreError('Staff name is required.')
    if not isinstance(record_date, date):
        record_date = date.fromisoformat(str(record_date))
    created = _write_achievement(load_catalog(), record_date, staff_name, branch_name, values)
    db.session.commit()
    record = DailyAchievementRecord.query.filter_by(date=record_date, staff_name=staff_name).first()
    return record, created


def bulk_import_achievements(rows):
    """
    Upserts report rows (DATE in DD/MM/YYYY) in one transaction. Rows with a
    malformed date or no staff name are skipped; columns that are not catalog
    metrics are ignored.

    Returns:
        tuple: (added, updated, skipped)
    """
    catalog = load_catalog()
    line_items = set(catalog.line_item_names())
    added = updated = skipped = 0
    try:
        for row in rows:
            record_date = parse_display_date(row.get('DATE'))
            staff_name = str(row.get('STAFF NAME') or '').strip()
            if record_date is None or not staff_name:
                skipped += 1
                continue
            values = {k: v for k, v in row.items() if k in line_items}
            branch_name = str(row.get('BRANCH NAME') or '').strip() or None
            if _write_achievement(catalog, record_date, staff_name, branch_name, values):
                added += 1
            else:
                updated += 1
            db.session.flush()
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logging.info(f"Achievement import: {added} added, {updated} updated, {skipped} skipped.")
    return added, updated, skipped


def achievement_rows(month=None):
    """Persisted records in report-row shape, optionally limited to one 'YYYY-MM' month."""
    query = DailyAchievementRecord.query.order_by(DailyAchievementRecord.date)
    if month:
        year, month_number = (int(part) for part in month.split('-'))
        start = date(year, month_number, 1)
        end = date(year + 1, 1, 1) if month_number == 12 else date(year, month_number + 1, 1)
        query = query.filter(DailyAchievementRecord.date >= start, DailyAchievementRecord.date < end)
    return [record.to_row() for record in query.all()]


# --- Projections and demands ---

def _validate_plan_entry(employee_code, metric, value):
    if not Staff.query.filter_by(employee_code=employee_code).first():
        raise StoreError(f'No staff member with code {employee_code}.')
    if metric not in plan_metrics(load_catalog()):
        raise StoreError(f"'{metric}' is not a metric that can be projected.")
    if value is None or parse_number(value) < 0:
        raise StoreError('Value must be a non-negative number.')


def _save_plan_entry(model, label, employee_code, entry_date, metric, value, **extra):
    if not isinstance(entry_date, date):
        entry_date = date.fromisoformat(str(entry_date))
    _validate_plan_entry(employee_code, metric, value)
    if model.query.filter_by(employee_code=employee_code, date=entry_date, metric=metric).first():
        raise DuplicateEntryError(
            f'A {label} for "{metric}" already exists for this date. Please edit the existing one.'
        )
    record = model(employee_code=employee_code, date=entry_date, metric=metric,
                   value=parse_number(value), **extra)
    db.session.add(record)
    db.session.commit()
    return record


def _get_plan_entry(model, label, entry_id):
    record = db.session.get(model, entry_id)
    if record is None:
        raise StoreError(f'No {label} with id {entry_id}.')
    return record


def _plan_entries(model, employee_codes=None, start=None, end=None):
    query = model.query
    if employee_codes is not None:
        query = query.filter(model.employee_code.in_(list(employee_codes)))
    if start is not None:
        query = query.filter(model.date >= start)
    if end is not None:
        query = query.filter(model.date <= end)
    return query.order_by(model.date, model.employee_code, model.metric).all()


def save_projection(employee_code, entry_date, metric, value):
    """Adds a projection. One per staff member, day and metric."""
    return _save_plan_entry(Projection, 'projection', employee_code, entry_date, metric, value)


def update_projection(entry_id, value):
    record = _get_plan_entry(Projection, 'projection', entry_id)
    if value is None or parse_number(value) < 0:
        raise StoreError('Value must be a non-negative number.')
    record.value = parse_number(value)
    db.session.commit()
    return record


def delete_projection(entry_id):
    db.session.delete(_get_plan_entry(Projection, 'projection', entry_id))
    db.session.commit()


def projections_for(employee_codes=None, start=None, end=None):
    """Projections ordered by date, optionally limited to some staff and a date range (inclusive)."""
    return _plan_entries(Projection, employee_codes, start, end)


def save_demand(employee_code, entry_date, metric, value, source=None):
    """Adds a demand. One per staff member, day and metric."""
    return _save_plan_entry(Demand, 'demand', employee_code, entry_date, metric, value,
                            source=(source or '').strip() or DEFAULT_DEMAND_SOURCE)


def update_demand(entry_id, value, source=None):
    record = _get_plan_entry(Demand, 'demand', entry_id)
    if value is None or parse_number(value) < 0:
        raise StoreError('Value must be a non-negative number.')
    record.value = parse_number(value)
    if source and source.strip():
        record.source = source.strip()
    db.session.commit()
    return record


def delete_demand(entry_id):
    db.session.delete(_get_plan_entry(Demand, 'demand', entry_id))
    db.session.commit()


def demands_for(employee_codes=None, start=None, end=None):
    return _plan_entries(Demand, employee_codes, start, end)
