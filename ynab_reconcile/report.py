"""
Reporting for reconciliation results.

The engine only builds a ReconciliationReport; this module turns it into the
console listing and, optionally, a CSV file.
"""

import csv
import logging
import sys
from decimal import ROUND_HALF_UP, Decimal

import pandas as pd

from ynab_reconcile.utils import resolve_output_path

logger = logging.getLogger(__name__)

REPORT_COLUMNS = ['Section', 'Bucket', 'Source', 'Date', 'Payee', 'Amount', 'Matched With']


def format_amount(amount):
    """Format an amount as currency, e.g. -$1,234.56. NaN amounts print as 'NaN'.

    Cents are rounded half up, so 0.125 prints as $0.13.
    """
    if not isinstance(amount, Decimal):
        amount = Decimal(str(amount))
    if amount.is_nan():
        return 'NaN'
    if amount.is_finite():
        amount = amount.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
    sign = '-' if amount < 0 else ''
    return f"{sign}${abs(amount):,.2f}"


def format_transaction(transaction):
    """Format one transaction as 'source | MM/DD/YYYY | payee | amount'."""
    return (f"{transaction.source} | {transaction.date.strftime('%m/%d/%Y')} | "
            f"{transaction.payee} | {format_amount(transaction.amount)}")


def log_transactions(transactions, out=None):
    if out is None:
        out = sys.stdout
    for transaction in transactions:
        print(format_transaction(transaction), file=out)


def print_report(report, out=None):
    """Print a reconciliation report.

    Args:
        report (ReconciliationReport): Report to print
        out (file-like, optional): Destination. Defaults to stdout.

    Sections, each printed only when it has content:
    - every YNAB transaction for the account (when requested)
    - transactions whose amount is only on one side
    - mismatched buckets with their likely matches and probable mismatches
    """
    if out is None:
        out = sys.stdout

    if report.ynab_transactions is not None:
        log_transactions(report.ynab_transactions, out)

    if report.only_in_one_side:
        print(report.only_in_one_side_title, file=out)
        log_transactions(report.only_in_one_side, out)

    if report.mismatches:
        print('Found mismatched lengths for the following', file=out)
        for mismatch in report.mismatches:
            print('\nMismatch:', file=out)
            print('Likely Matches:', file=out)
            for likely_match in mismatch.likely_matches:
                print('', file=out)
                log_transactions(likely_match, out)

            print('\nProbable mismatches', file=out)
            log_transactions(mismatch.probable_mismatches, out)


def _report_row(section, bucket, transaction, matched_with=None):
    return {
        'Section': section,
        'Bucket': str(bucket),
        'Source': transaction.source,
        'Date': transaction.date.strftime('%Y-%m-%d'),
        'Payee': transaction.payee,
        'Amount': str(transaction.amount),
        'Matched With': format_transaction(matched_with) if matched_with is not None else ''
    }


def report_to_dataframe(report):
    """Flatten a report into one row per reported transaction."""
    rows = [
        _report_row('only_in_one_side', transaction.amount, transaction)
        for transaction in report.only_in_one_side
    ]
    for mismatch in report.mismatches:
        for transaction, matched in mismatch.likely_matches:
            rows.append(_report_row('likely_match', mismatch.amount, transaction, matched))
        for transaction in mismatch.probable_mismatches:
            rows.append(_report_row('probable_mismatch', mismatch.amount, transaction))

    if not rows:
        return pd.DataFrame(columns=REPORT_COLUMNS)
    return pd.DataFrame(rows, columns=REPORT_COLUMNS)


def save_reconciliation_report(report, output_path):
    """Save a reconciliation report as CSV.

    Args:
        report (ReconciliationReport): Report to save
        output_path (str or pathlib.Path): File path, or a directory to write
            reconciliation_report.csv into

    Returns:
        pathlib.Path: The file that was written
    """
    output_path = resolve_output_path(output_path, 'reconciliation_report.csv')
    result = report_to_dataframe(report)
    logger.debug(f"Writing {len(result)} report rows to {output_path}")
    result.to_csv(output_path, index=False, quoting=csv.QUOTE_NONNUMERIC)
    return output_path
