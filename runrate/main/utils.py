# ==============================================================================
# runrate/main/utils.py
# ------------------------------------------------------------------------------
# Shapes engine output into the JSON payloads served by the dashboard routes.
# ==============================================================================

import re
from datetime import date

MONTH_RE = re.compile(r'^\d{4}-(0[1-9]|1[0-2])$')
NO_TARGETS_MESSAGE = 'No targets configured'


def current_month(today=None):
    return (today or date.today()).strftime('%Y-%m')


def parse_month_arg(value, today=None):
    """Returns a 'YYYY-MM' month, defaulting to the current one. Raises ValueError on junk."""
    if not value:
        return current_month(today)
    if not MONTH_RE.match(value):
        raise ValueError(f"Invalid month '{value}', expected YYYY-MM.")
    return value


def parse_as_of_arg(value):
    """Returns the as-of date, defaulting to today. Raises ValueError on junk."""
    if not value:
        return date.today()
    return date.fromisoformat(value)


def scope_payload(scope):
    return {
        'level': scope.level,
        'is_global': scope.is_global,
        'employee_codes': sorted(scope.employee_codes),
        'branch_names': sorted(scope.branch_names),
    }


def run_rate_payload(result, month, as_of, scope=None, staff=None):
    """
    The run-rate card for one user or for the whole organisation. When no
    target is configured the numbers are all zero and a message says why.
    """
    payload = {
        'month': month,
        'as_of': as_of.isoformat(),
        'run_rate': result.to_dict(),
        'message': None,
    }
    if result.monthly_target_amount == 0 and result.monthly_target_account == 0:
        payload['message'] = NO_TARGETS_MESSAGE
    if staff is not None:
        payload['staff'] = {
            'employee_code': staff.employee_code,
            'employee_name': staff.employee_name,
            'designation': staff.designation,
        }
    if scope is not None:
        payload['scope'] = scope_payload(scope)
    return payload


def parse_date_arg(value, name='date'):
    """Returns a date from 'YYYY-MM-DD', or None when absent. Raises ValueError on junk."""
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValueError(f"Invalid {name} '{value}', expected YYYY-MM-DD.")


def plan_report_payload(records, summary, staff_names):
    """Projection or demand rows with staff names, plus their totals."""
    rows = []
    for record in records:
        row = record.to_dict()
        row['staff_name'] = staff_names.get(record.employee_code, 'N/A')
        rows.append(row)
    return {'status': 'ok', 'entries': rows, 'summary': summary}
