# ==============================================================================
# runrate/calculator/hierarchy.py
# ------------------------------------------------------------------------------
# Works out which staff and branches a user is responsible for, from the
# reporting forest and the explicit zone/branch grants of multi-unit roles.
# ==============================================================================

from collections import defaultdict, deque

from .domain import Scope

ADMIN_DESIGNATION = 'ADMINISTRATOR'
ZONE_DESIGNATIONS = {'ZONAL MANAGER'}
DISTRICT_DESIGNATIONS = {'DISTRICT HEAD', 'SENIOR DISTRICT HEAD', 'ASSISTANT DISTRICT HEAD'}
BRANCH_DESIGNATIONS = {
    'BRANCH MANAGER', 'SENIOR BRANCH MANAGER', 'ASSISTANT BRANCH MANAGER',
    'BRANCH OPERATIONS MANAGER', 'BRANCH SALES MANAGER',
}
NO_BRANCH = {'', 'N/A'}


def _designation(staff):
    return (staff.designation or '').strip().upper()


def is_admin(staff):
    return _designation(staff) == ADMIN_DESIGNATION


def is_zone_role(staff):
    return _designation(staff) in ZONE_DESIGNATIONS


def is_district_role(staff):
    """District heads and team leads manage an explicit list of branches."""
    designation = _designation(staff)
    return designation in DISTRICT_DESIGNATIONS or designation.startswith('TL-')


def has_branch_responsibility(staff):
    return _designation(staff) in BRANCH_DESIGNATIONS


def scope_level(staff):
    if is_admin(staff):
        return 'admin'
    if is_zone_role(staff):
        return 'zone'
    if is_district_role(staff):
        return 'district'
    if has_branch_responsibility(staff):
        return 'branch'
    return 'individual'


def _has_branch(staff):
    return (staff.branch_name or '').strip() not in NO_BRANCH


def build_reporting_graph(all_staff):
    """Adjacency map: manager code -> codes of direct reports. Self-references are dropped."""
    graph = defaultdict(list)
    for member in all_staff:
        manager = member.reports_to
        if manager and manager != member.employee_code:
            graph[manager].append(member.employee_code)
    return graph


def subordinate_codes(employee_code, all_staff, graph=None):
    """
    All direct and indirect reports of employee_code, excluding the code itself.
    Breadth-first with a visited set, so cycles in the data terminate.
    """
    if graph is None:
        graph = build_reporting_graph(all_staff)
    visited = {employee_code}
    found = set()
    queue = deque(graph.get(employee_code, ()))
    while queue:
        code = queue.popleft()
        if code in visited:
            continue
        visited.add(code)
        found.add(code)
        queue.extend(graph.get(code, ()))
    return found


def would_create_cycle(employee_code, new_manager_code, all_staff):
    """True when making employee_code report to new_manager_code closes a loop."""
    if not new_manager_code:
        return False
    if new_manager_code == employee_code:
        return True
    return new_manager_code in subordinate_codes(employee_code, all_staff)


def resolve_scope(staff, all_staff, all_branches):
    """
    Resolves the aggregation scope for a staff member.

    Args:
        staff: The StaffMember whose view is being computed.
        all_staff: Every StaffMember in the directory.
        all_branches: Every Branch in the directory.

    Returns:
        Scope: employee codes and branch names in scope. Administrators get a
        global scope with both sets fully materialized.
    """
    level = scope_level(staff)

    if level == 'admin':
        return Scope(
            employee_codes=frozenset(s.employee_code for s in all_staff if s.employee_code),
            branch_names=frozenset(b.branch_name for b in all_branches),
            level=level,
            is_global=True,
        )

    by_code = {s.employee_code: s for s in all_staff}
    codes = set()
    branches = set()

    if staff.employee_code:
        codes.add(staff.employee_code)
    if has_branch_responsibility(staff) and _has_branch(staff):
        branches.add(staff.branch_name)

    for code in subordinate_codes(staff.employee_code, all_staff):
        codes.add(code)
        member = by_code.get(code)
        if member is not None and has_branch_responsibility(member) and _has_branch(member):
            branches.add(member.branch_name)

    if level == 'zone' and staff.managed_zones:
        zones = set(staff.managed_zones)
        branches.update(b.branch_name for b in all_branches if b.zone in zones)
    elif level == 'district' and staff.managed_branches:
        branches.update(staff.managed_branches)

    for member in all_staff:
        if member.employee_code and _has_branch(member) and member.branch_name in branches:
            codes.add(member.employee_code)

    return Scope(employee_codes=frozenset(codes), branch_names=frozenset(branches), level=level)
