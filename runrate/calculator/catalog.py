# ==============================================================================
# runrate/calculator/catalog.py
# ------------------------------------------------------------------------------
# The product metric catalog: which metrics exist, what kind of number each
# one carries and whether it rolls up into the overall totals.
# ==============================================================================

import logging
import pandas as pd

from .domain import (GRAND_TOTAL_AMT, GRAND_TOTAL_AC, TOTAL_AMOUNTS, TOTAL_ACCOUNTS,
                     NEW_SS_AGENT, DERIVED_TOTAL_FIELDS)

AMOUNT = 'Amount'
ACCOUNT = 'Account'
OTHER = 'Other'
METRIC_KINDS = (AMOUNT, ACCOUNT, OTHER)


class UnknownMetricError(ValueError):
    """Raised when submitted values name a metric that is not in the catalog."""

    def __init__(self, names):
        self.names = sorted(names)
        super().__init__(f"Unknown metric(s): {', '.join(self.names)}")


def parse_number(value):
    """Coerces a cell value to float, treating blanks and junk as zero."""
    if value is None:
        return 0.0
    if isinstance(value, str):
        value = value.replace(',', '').strip()
        if not value:
            return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if pd.isna(number) or number in (float('inf'), float('-inf')):
        return 0.0
    return number


class MetricCatalog:
    """
    Lookup wrapper around the configured ProductMetric records.

    Metric kinds are always looked up here. The only names known in code are
    the two grand-total overrides and NEW-SS/AGNT, which counts as an account
    but is catalogued as 'Other'.
    """

    def __init__(self, metrics):
        self._metrics = {m.name: m for m in metrics}

    def __contains__(self, name):
        return name in self._metrics

    def __iter__(self):
        return iter(self._metrics.values())

    def __len__(self):
        return len(self._metrics)

    def get(self, name):
        return self._metrics.get(name)

    def kind_of(self, name):
        metric = self._metrics.get(name)
        return metric.kind if metric else None

    def amount_metrics(self):
        """Line-item amount metrics that roll up into the amount total."""
        return {
            m.name for m in self._metrics.values()
            if m.kind == AMOUNT and m.name != GRAND_TOTAL_AMT and m.contributes_to_overall_goals
        }

    def account_metrics(self):
        """Line-item account metrics that roll up into the account total, NEW-SS/AGNT included."""
        names = {
            m.name for m in self._metrics.values()
            if m.kind == ACCOUNT and m.name not in (GRAND_TOTAL_AC, NEW_SS_AGENT)
            and m.contributes_to_overall_goals
        }
        agent = self._metrics.get(NEW_SS_AGENT)
        if agent and agent.kind == OTHER and agent.contributes_to_overall_goals:
            names.add(NEW_SS_AGENT)
        return names

    def line_item_names(self):
        """Every metric a staff member can report directly (derived totals excluded)."""
        return [name for name in self._metrics if name not in DERIVED_TOTAL_FIELDS]

    def validate_values(self, values):
        """
        Validates a submitted metric -> value mapping against the catalog.

        Derived total fields are accepted but discarded since they are always
        recomputed. Returns a new dict holding one float per line-item metric.
        """
        unknown = {name for name in values if name not in self._metrics and name not in DERIVED_TOTAL_FIELDS}
        if unknown:
            raise UnknownMetricError(unknown)
        clean = {name: 0.0 for name in self.line_item_names()}
        for name, value in values.items():
            if name in DERIVED_TOTAL_FIELDS:
                continue
            clean[name] = parse_number(value)
        return clean

    def recompute_totals(self, values):
        """
        Derives the four total fields from line-item values.
        Whatever totals the caller supplied are ignored.
        """
        amount_names = self.amount_metrics()
        account_names = self.account_metrics()
        total_amount = sum(parse_number(v) for k, v in values.items() if k in amount_names)
        total_account = sum(parse_number(v) for k, v in values.items() if k in account_names)
        logging.debug(f"Recomputed totals: amount={total_amount:,.0f}, accounts={total_account:,.0f}")
        return {
            TOTAL_ACCOUNTS: total_account,
            TOTAL_AMOUNTS: total_amount,
            GRAND_TOTAL_AC: total_account,
            GRAND_TOTAL_AMT: total_amount,
        }

    def categories(self):
        seen = []
        for metric in self._metrics.values():
            if metric.category not in seen:
                seen.append(metric.category)
        return seen
