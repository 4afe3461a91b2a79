"""
YNAB Reconcile - find transactions missing from a YNAB budget or a bank export.

This package provides functionality to:
- Read a YNAB register export and a bank export (CSV)
- Normalize both into Transactions with signed Decimal amounts
- Merge YNAB split transactions back into the original transaction
- Group both sides by exact amount and compare the groups
- Pair up transactions in mismatched groups by nearest date
- Print a report and optionally save it as CSV

Amounts are negative for outflows/debits and positive for inflows/credits.
"""

from .models import (
    Transaction,
    ReconcileOptions,
    ReconciliationReport,
    ConfigurationError,
    SplitMergeError
)
from .reconcile import (
    parse_dollar_string,
    process_bank_format,
    process_ynab_format,
    merge_splits,
    filter_by_date,
    bucket_by_amount,
    compare_buckets,
    match_bucket,
    reconcile_transactions,
    reconcile
)
from .report import print_report, save_reconciliation_report

__all__ = [
    'Transaction',
    'ReconcileOptions',
    'ReconciliationReport',
    'ConfigurationError',
    'SplitMergeError',
    'parse_dollar_string',
    'process_bank_format',
    'process_ynab_format',
    'merge_splits',
    'filter_by_date',
    'bucket_by_amount',
    'compare_buckets',
    'match_bucket',
    'reconcile_transactions',
    'reconcile',
    'print_report',
    'save_reconciliation_report'
]
