# ==============================================================================
# runrate/calculator/projections.py
# ------------------------------------------------------------------------------
# Totals for daily projections and demands. Entries are split into amounts
# and accounts through the metric catalog, the same way targets are.
# ==============================================================================

def plan_metrics(catalog):
    """Metrics a projection or demand may be entered against: the line items that roll up into a total."""
    return catalog.amount_metrics() | catalog.account_metrics()


def summarize_plan_entries(entries, catalog):
    """
    Sums a list of PlanEntry records.

    Returns:
        dict: total_amount, total_accounts, average_daily_amount (over the days
            that have at least one entry), entries, and by_date mapping
            'YYYY-MM-DD' to the amount planned for that day.
    """
    amount_names = catalog.amount_metrics()
    account_names = catalog.account_metrics()

    total_amount = total_accounts = 0.0
    by_date = {}
    for entry in entries:
        if entry.metric in amount_names:
            total_amount += entry.value
            by_date[entry.date] = by_date.get(entry.date, 0.0) + entry.value
        elif entry.metric in account_names:
            total_accounts += entry.value
            by_date.setdefault(entry.date, 0.0)

    return {
        'total_amount': total_amount,
        'total_accounts': total_accounts,
        'average_daily_amount': total_amount / len(by_date) if by_date else 0.0,
        'entries': len(entries),
        'by_date': dict(sorted(by_date.items())),
    }
