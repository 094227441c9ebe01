# ==============================================================================
# runrate/calculator/achievements.py
# ------------------------------------------------------------------------------
# Month-to-date aggregation of raw achievement rows for a scope.
# Rows use the report shape: DATE (DD/MM/YYYY), STAFF NAME, BRANCH NAME and
# one column per metric, with GRAND TOTAL AMT / GRAND TOTAL AC reconciled
# at write time.
# ==============================================================================

import logging
import re
from datetime import date

from .catalog import parse_number
from .domain import GRAND_TOTAL_AMT, GRAND_TOTAL_AC, AchievementTotals

DISPLAY_DATE_RE = re.compile(r'^(\d{2})/(\d{2})/(\d{4})$')
MONTH_RE = re.compile(r'^\d{4}-\d{2}$')
# Codes may carry '-' or '/' ('EMP-001', 'NGP/0042').
_TOKEN_RE = re.compile(r'[A-Z0-9]+(?:[-/][A-Z0-9]+)*')


def parse_display_date(value):
    """Parses 'DD/MM/YYYY' into a date. Anything else returns None."""
    if not isinstance(value, str):
        return None
    match = DISPLAY_DATE_RE.match(value.strip())
    if not match:
        return None
    day, month, year = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        return None


def to_display_date(iso_date):
    """'YYYY-MM-DD' (or a date) -> 'DD/MM/YYYY'."""
    if isinstance(iso_date, str):
        iso_date = date.fromisoformat(iso_date)
    return iso_date.strftime('%d/%m/%Y')


def normalize(text):
    return ' '.join(str(text or '').upper().split())


class StaffIndex:
    """
    Maps the free-text STAFF NAME of a report row to an employee code.

    A row matches a staff member when its normalized text equals the member's
    name or code, or when one of its tokens is exactly a known employee code
    (report exports write names like 'PANKAJ MEHAKAR (3937)').

    `codes` adds employee codes that match by code only, for callers that
    have a scope but no staff directory.
    """

    def __init__(self, all_staff=(), codes=()):
        self._codes = {normalize(code): code for code in codes if code}
        self._by_name = {}
        for member in all_staff:
            if not member.employee_code:
                continue
            self._codes[normalize(member.employee_code)] = member.employee_code
            name = normalize(member.employee_name)
            if not name:
                continue
            if name in self._by_name and self._by_name[name] != member.employee_code:
                logging.warning(
                    f"Staff {self._by_name[name]} and {member.employee_code} share the name '{name}'; "
                    f"rows under that name are credited to {self._by_name[name]}."
                )
                continue
            self._by_name[name] = member.employee_code

    def resolve(self, staff_name):
        text = normalize(staff_name)
        if not text:
            return None
        if text in self._codes:
            return self._codes[text]
        if text in self._by_name:
            return self._by_name[text]
        for token in _TOKEN_RE.findall(text):
            if token in self._codes:
                return self._codes[token]
        return None


def _in_window(row_date, month, as_of):
    return row_date is not None and row_date.strftime('%Y-%m') == month and row_date <= as_of


def _row_in_scope(row, scope, staff_index, branch_names):
    if scope.is_global:
        return True
    code = staff_index.resolve(row.get('STAFF NAME'))
    if code is not None and code in scope.employee_codes:
        return True
    return normalize(row.get('BRANCH NAME')) in branch_names


def aggregate_achievements(scope, records, month, as_of, staff_index=None, all_staff=()):
    """
    Sums month-to-date achievements of a scope.

    Args:
        scope (Scope): Employee codes and branch names to include.
        records (iterable of dict): Raw report rows.
        month (str): 'YYYY-MM'.
        as_of (date): Rows dated after this day are ignored.
        staff_index (StaffIndex): Prebuilt name index. When omitted one is
            built from all_staff plus the scope's own employee codes.
        all_staff: Staff directory used to build the index.

    Returns:
        AchievementTotals: zeros for empty input or an empty scope.
    """
    if not MONTH_RE.match(month or '') or scope.is_empty():
        return AchievementTotals()

    if staff_index is None:
        staff_index = StaffIndex(all_staff, codes=scope.employee_codes)
    branch_names = {normalize(name) for name in scope.branch_names}

    mtd_amount = mtd_account = 0.0
    by_date = {}
    skipped_dates = 0

    for row in records:
        row_date = parse_display_date(row.get('DATE'))
        if row_date is None:
            skipped_dates += 1
            continue
        if not _in_window(row_date, month, as_of):
            continue
        if not _row_in_scope(row, scope, staff_index, branch_names):
            continue

        amount = parse_number(row.get(GRAND_TOTAL_AMT))
        account = parse_number(row.get(GRAND_TOTAL_AC))
        mtd_amount += amount
        mtd_account += account
        day_key = row_date.isoformat()
        day_amount, day_account = by_date.get(day_key, (0.0, 0.0))
        by_date[day_key] = (day_amount + amount, day_account + account)

    if skipped_dates:
        logging.debug(f"Excluded {skipped_dates} achievement row(s) with a malformed DATE.")

    return AchievementTotals(mtd_amount=mtd_amount, mtd_account=mtd_account, by_date=by_date)


def sum_metric_columns(scope, records, month, as_of, metric_names, staff_index=None):
    """Per-metric MTD sums over the same rows aggregate_achievements includes."""
    totals = {name: 0.0 for name in metric_names}
    if not MONTH_RE.match(month or '') or scope.is_empty():
        return totals
    if staff_index is None:
        staff_index = StaffIndex(codes=scope.employee_codes)
    branch_names = {normalize(name) for name in scope.branch_names}
    for row in records:
        if not _in_window(parse_display_date(row.get('DATE')), month, as_of):
            continue
        if not _row_in_scope(row, scope, staff_index, branch_names):
            continue
        for name in metric_names:
            totals[name] += parse_number(row.get(name))
    return totals
