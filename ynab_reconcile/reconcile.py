"""
YNAB / Bank Reconciliation

Compares a YNAB register export against a bank export for one account and
reports transactions that appear on only one side.

Pipeline:
1. Normalize: bank rows and YNAB rows become Transaction records with a signed
   Decimal amount (negative for debits/outflows, positive for credits/inflows)
2. Merge splits: YNAB rows whose memo reads "Split (k/n)" with k > 1 are summed
   back into the transaction emitted before them
3. Filter and sort: drop transactions dated before the earliest date
4. Bucket: group each side by exact amount
5. Compare: amounts found on one side only, and shared amounts whose counts differ
6. Match: within a mismatched bucket, pair every transaction of the shorter side
   with the nearest-dated transaction of the longer side; whatever is left over
   is a probable mismatch

Known limitations:
- Buckets with equal counts are assumed to match item for item
- Nearest-date matching is greedy, so one transaction may be the nearest match
  for several others
"""

import argparse
import logging
import os
import re
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from functools import reduce

import numpy as np
import pandas as pd

from ynab_reconcile.models import (
    BANK,
    YNAB,
    BucketComparison,
    BucketMismatch,
    BucketPair,
    ConfigurationError,
    ReconcileOptions,
    ReconciliationReport,
    SplitMergeError,
    Transaction,
)
from ynab_reconcile.report import print_report, save_reconciliation_report
from ynab_reconcile.utils import setup_logging

logger = logging.getLogger(__name__)

SPLIT_REGEX = re.compile(r'Split \((\d+)/(\d+)\)')

# Every NaN amount lands in this bucket so unparseable rows still line up
NAN_BUCKET = 'NaN'

DATE_FORMATS = [
    '%m/%d/%Y',  # US (YNAB and most bank exports)
    '%Y-%m-%d',  # ISO
    '%Y-%m-%d %H:%M:%S',  # ISO with time
    '%Y-%m-%dT%H:%M:%S',  # ISO 8601
    '%Y-%m-%dT%H:%M:%S%z',  # ISO 8601 with offset, e.g. 2024-10-19T17:53:00-07:00
    '%Y-%m-%dT%H:%M:%S.%f%z',
    '%m-%d-%Y',  # US with dashes
    '%m/%d/%y',  # Short year
    '%Y/%m/%d'
]

CSV_ENCODINGS = ['utf-8-sig', 'cp1252']


def parse_dollar_string(value):
    """Parse a dollar string into a Decimal.

    Args:
        value (str or None): Raw cell value, e.g. '$1,234.56', '-$5.00' or '(5.00)'

    Returns:
        Decimal: Parsed amount, or Decimal('NaN') when the value is empty,
        missing or not a number

    Notes:
        - Never raises; sparse debit/credit columns are expected
        - Callers decide what a NaN means for their column
    """
    if value is None:
        return Decimal('NaN')
    if isinstance(value, Decimal):
        return value if value.is_finite() else Decimal('NaN')
    if isinstance(value, (int, float)):
        if pd.isna(value):
            return Decimal('NaN')
        return Decimal(str(value))
    if not isinstance(value, str):
        return Decimal('NaN')

    cleaned = value.strip().strip('"\'')
    if cleaned.startswith('(') and cleaned.endswith(')'):
        cleaned = '-' + cleaned[1:-1]
    cleaned = re.sub(r'[$,\s]', '', cleaned)

    try:
        result = Decimal(cleaned)
    except InvalidOperation:
        return Decimal('NaN')
    if not result.is_finite():
        return Decimal('NaN')
    return result


def _has_value(amount):
    """An optional amount counts as present only when it is a finite, non-zero number."""
    return amount.is_finite() and amount != 0


def to_naive_local(timestamp):
    """Drop the timezone of an aware Timestamp after converting it to local time."""
    if timestamp.tzinfo is None:
        return timestamp
    return pd.Timestamp(timestamp.to_pydatetime().astimezone().replace(tzinfo=None))


def parse_date(date_str):
    """
    Parse a date from either export into a pandas Timestamp.

    Args:
        date_str (str, datetime, date or Timestamp): Date to parse

    Returns:
        pd.Timestamp: Parsed date. Timezone-aware input is converted to local
        time and made naive, so it compares with the naive export dates.

    Raises:
        ValueError: If date is null, empty or in an unknown format
    """
    if isinstance(date_str, (pd.Timestamp, datetime, date)):
        return to_naive_local(pd.Timestamp(date_str))

    if date_str is None or (not isinstance(date_str, str) and pd.isna(date_str)):
        raise ValueError("Date cannot be null")

    if not isinstance(date_str, str):
        raise ValueError(f"Date must be a string, got {type(date_str)}")

    date_str = date_str.strip().strip('"\'')
    if not date_str:
        raise ValueError("Date cannot be empty")

    for fmt in DATE_FORMATS:
        try:
            return to_naive_local(pd.Timestamp(datetime.strptime(date_str, fmt)))
        except ValueError:
            continue

    raise ValueError(f"Invalid date format: {date_str}")


def standardize_description(description):
    """Collapse newlines in a payee/description cell; missing values become ''."""
    if description is None or (not isinstance(description, str) and pd.isna(description)):
        return ''
    return str(description).replace('\n', ' ').strip()


def resolve_bank_amount(row):
    """Resolve the signed amount of a bank row.

    Resolution order:
    1. Amount, when it holds a non-zero number
    2. Debit, negated, when it holds a non-zero number
    3. Credit, or 0 when it is missing or unparseable
    """
    amount = parse_dollar_string(row.get('Amount'))
    if _has_value(amount):
        return amount

    debit = parse_dollar_string(row.get('Debit'))
    if _has_value(debit):
        return -debit

    credit = parse_dollar_string(row.get('Credit'))
    if credit.is_nan():
        return Decimal('0')
    return credit


def resolve_ynab_amount(row):
    """Outflow (negated) when it holds a non-zero number, otherwise Inflow.

    Inflow is returned as parsed, so an unparseable inflow stays NaN.
    """
    outflow = parse_dollar_string(row.get('Outflow'))
    if _has_value(outflow):
        return -outflow
    return parse_dollar_string(row.get('Inflow'))


def process_bank_format(df: pd.DataFrame) -> list:
    """Process bank export rows into Transactions.

    Args:
        df (pd.DataFrame): Raw bank rows (all columns as strings)

    Returns:
        list: Transactions in file order, source 'Bank'

    Raises:
        ValueError: If required columns are missing or a date is invalid
    """
    required_columns = ['Transaction Date', 'Description']
    missing_columns = [col for col in required_columns if col not in df.columns]
    if missing_columns:
        raise ValueError(f"Missing required columns: {missing_columns}")

    amount_columns = ['Amount', 'Debit', 'Credit']
    if not any(col in df.columns for col in amount_columns):
        raise ValueError(f"Bank file needs at least one of {amount_columns}")

    transactions = []
    for _, row in df.iterrows():
        transactions.append(Transaction(
            id=uuid.uuid4().hex,
            date=parse_date(row['Transaction Date']),
            payee=standardize_description(row['Description']),
            amount=resolve_bank_amount(row),
            source=BANK
        ))

    logger.debug(f"Normalized {len(transactions)} bank transactions")
    return transactions


def find_account_column(columns):
    """Return the first column whose header contains 'Account'.

    YNAB exports the header with stray quotes and a byte-order mark, so only
    the substring is reliable.

    Raises:
        ConfigurationError: If no header contains 'Account'
    """
    for column in columns:
        if 'Account' in str(column):
            return column
    raise ConfigurationError(f"No account column found in YNAB columns: {list(columns)}")


def account_matches(account, account_name):
    """Case-insensitive equality for strings, pattern search for compiled regexes."""
    if isinstance(account_name, str):
        return account.lower() == account_name.lower()
    return bool(account_name.search(account))


def is_mergeable_split(memo):
    """True for memos like 'Split (2/3)'; the first part of a split is never merged."""
    if not isinstance(memo, str):
        return False
    match = SPLIT_REGEX.search(memo)
    if not match:
        return False
    return int(match.group(1)) > 1


def _merge_step(merged, item):
    transaction, merge_with_previous = item
    if not merge_with_previous:
        return merged + [transaction]
    if not merged:
        raise SplitMergeError(
            f"Said to merge with previous but no previous transaction found: {transaction}"
        )
    previous = merged[-1]
    logger.debug(f"Merging split {transaction.amount} into {previous.payee} ({previous.amount})")
    return merged[:-1] + [replace(previous, amount=previous.amount + transaction.amount)]


def merge_splits(transactions, split_flags):
    """
    Collapse split transactions into the transaction emitted before them.

    Args:
        transactions (list): YNAB transactions in file order
        split_flags (list): One bool per transaction, True when it should be
            merged into the last transaction already emitted

    Returns:
        list: New list of transactions; merged amounts are exact Decimal sums

    Raises:
        SplitMergeError: If a split has nothing before it to merge into
    """
    return reduce(_merge_step, zip(transactions, split_flags), [])


def process_ynab_format(df: pd.DataFrame, account_name) -> list:
    """Process YNAB register rows for one account into Transactions.

    Args:
        df (pd.DataFrame): Raw YNAB rows (all columns as strings)
        account_name (str or re.Pattern): Account selector; strings compare
            case-insensitively, patterns are searched

    Returns:
        list: Transactions for the account with splits merged, source 'Ynab'

    Raises:
        ValueError: If required columns are missing or a date is invalid
        ConfigurationError: If there is no account column or a row has no account
        SplitMergeError: If a split has no preceding transaction
    """
    required_columns = ['Date', 'Payee', 'Outflow', 'Inflow']
    missing_columns = [col for col in required_columns if col not in df.columns]
    if missing_columns:
        raise ValueError(f"Missing required columns: {missing_columns}")

    account_column = find_account_column(df.columns)
    logger.debug(f"Using YNAB account column {account_column!r}")

    transactions = []
    split_flags = []
    for index, row in df.iterrows():
        account = row[account_column]
        if account is None or (not isinstance(account, str) and pd.isna(account)) or str(account).strip() == '':
            raise ConfigurationError(f"YNAB row {index} has no value in {account_column!r}")
        if not account_matches(str(account).strip(), account_name):
            continue

        transaction = Transaction(
            id=uuid.uuid4().hex,
            date=parse_date(row['Date']),
            payee=standardize_description(row['Payee']),
            amount=resolve_ynab_amount(row),
            source=YNAB
        )
        if transaction.amount.is_nan():
            logger.warning(f"YNAB transaction has no parseable amount: {transaction}")
        transactions.append(transaction)
        split_flags.append(is_mergeable_split(row.get('Memo', '')))

    merged = merge_splits(transactions, split_flags)
    logger.debug(f"Normalized {len(transactions)} YNAB transactions for {account_name!r}, "
                 f"{len(merged)} after merging splits")
    return merged


def default_earliest_date(now=None):
    """One year before now."""
    now = pd.Timestamp.now() if now is None else pd.Timestamp(now)
    return now - pd.DateOffset(years=1)


def resolve_earliest_date(earliest_date=None):
    if earliest_date is None:
        return default_earliest_date()
    return parse_date(earliest_date)


def sort_by_date(transactions):
    return sorted(transactions, key=lambda transaction: transaction.date)


def filter_by_date(transactions, earliest_date):
    """Transactions dated on or after earliest_date, oldest first."""
    earliest_date = parse_date(earliest_date)
    return [t for t in sort_by_date(transactions) if not t.date < earliest_date]


def amount_key(amount):
    if amount.is_nan():
        return NAN_BUCKET
    return amount


def bucket_by_amount(transactions):
    """Group transactions by exact amount, keeping input order within each bucket."""
    buckets = {}
    for transaction in transactions:
        buckets.setdefault(amount_key(transaction.amount), []).append(transaction)
    return buckets


def compare_buckets(bank_buckets, ynab_buckets, find_in_ynab_not_in_bank=False):
    """Compare bank and YNAB buckets.

    Args:
        bank_buckets (dict): Amount key -> bank transactions
        ynab_buckets (dict): Amount key -> YNAB transactions
        find_in_ynab_not_in_bank (bool): When True a shared amount is flagged
            only if YNAB has more entries; otherwise only if the bank has more

    Returns:
        BucketComparison: Shared and one-sided amount keys plus flagged pairs
    """
    both_amounts = [amount for amount in ynab_buckets if amount in bank_buckets]
    only_ynab_amounts = [amount for amount in ynab_buckets if amount not in bank_buckets]
    only_bank_amounts = [amount for amount in bank_buckets if amount not in ynab_buckets]

    mismatches = []
    for amount in both_amounts:
        bank = bank_buckets[amount]
        ynab = ynab_buckets[amount]
        if find_in_ynab_not_in_bank and len(ynab) <= len(bank):
            continue
        if not find_in_ynab_not_in_bank and len(bank) <= len(ynab):
            continue
        mismatches.append(BucketPair(amount=amount, bank=bank, ynab=ynab))

    return BucketComparison(
        both_amounts=both_amounts,
        only_bank_amounts=only_bank_amounts,
        only_ynab_amounts=only_ynab_amounts,
        mismatches=mismatches
    )


def only_in_one_side(comparison, bank_buckets, ynab_buckets, find_in_ynab_not_in_bank=False):
    """Transactions whose amount never appears on the other side, for the active mode."""
    if find_in_ynab_not_in_bank:
        amounts, buckets = comparison.only_ynab_amounts, ynab_buckets
    else:
        amounts, buckets = comparison.only_bank_amounts, bank_buckets
    return [transaction for amount in amounts for transaction in buckets[amount]]


def find_nearest(transaction, candidates):
    """
    Find the candidate dated closest to transaction.

    Distances are integer nanoseconds held as Python ints, so they neither
    round nor overflow across the full Timestamp range. On a tie the earliest
    candidate in list order wins.

    Raises:
        ValueError: If there are no candidates
    """
    if not candidates:
        raise ValueError("No candidates to match against")
    offsets = np.array([candidate.date.value for candidate in candidates], dtype=object)
    distances = np.abs(offsets - transaction.date.value)
    return candidates[int(np.argmin(distances))]


def match_bucket(pair):
    """Pair each transaction of the shorter side with its nearest-dated counterpart.

    Longer-side transactions nobody picked are returned as probable mismatches.
    The assignment is greedy per transaction, not a one-to-one matching.
    """
    if len(pair.bank) > len(pair.ynab):
        longer, shorter = pair.bank, pair.ynab
    else:
        longer, shorter = pair.ynab, pair.bank

    likely_matches = [(transaction, find_nearest(transaction, longer)) for transaction in shorter]
    matched_ids = {matched.id for _, matched in likely_matches}
    probable_mismatches = [transaction for transaction in longer if transaction.id not in matched_ids]

    return BucketMismatch(
        amount=pair.amount,
        bank=pair.bank,
        ynab=pair.ynab,
        likely_matches=likely_matches,
        probable_mismatches=probable_mismatches
    )


def reconcile_transactions(ynab_transactions, bank_transactions, options=None):
    """Reconcile normalized YNAB and bank transactions.

    Args:
        ynab_transactions (list): YNAB transactions for one account, splits merged
        bank_transactions (list): Bank transactions
        options (ReconcileOptions, optional): Run options. Defaults to ReconcileOptions().

    Returns:
        ReconciliationReport: Structured report; nothing is printed
    """
    options = options or ReconcileOptions()
    earliest_date = resolve_earliest_date(options.earliest_date)
    mode = options.find_in_ynab_not_in_bank

    bank = filter_by_date(bank_transactions, earliest_date)
    ynab = filter_by_date(ynab_transactions, earliest_date)
    logger.info(f"Comparing {len(bank)} bank and {len(ynab)} YNAB transactions "
                f"since {earliest_date:%Y-%m-%d}")

    bank_buckets = bucket_by_amount(bank)
    ynab_buckets = bucket_by_amount(ynab)
    comparison = compare_buckets(bank_buckets, ynab_buckets, mode)
    logger.debug(f"Amounts on both sides: {len(comparison.both_amounts)}, "
                 f"bank only: {len(comparison.only_bank_amounts)}, "
                 f"YNAB only: {len(comparison.only_ynab_amounts)}, "
                 f"mismatched counts: {len(comparison.mismatches)}")

    return ReconciliationReport(
        find_in_ynab_not_in_bank=mode,
        only_in_one_side=only_in_one_side(comparison, bank_buckets, ynab_buckets, mode),
        mismatches=[match_bucket(pair) for pair in comparison.mismatches],
        ynab_transactions=ynab if options.log_ynab_transactions_for_account else None
    )


def standardize_header(column):
    """Strip whitespace, a byte-order mark and wrapping quotes from a header name."""
    return str(column).replace('\ufeff', '').strip().strip('"').strip()


def read_transactions_file(file_path):
    """Read an export into a DataFrame of strings.

    Args:
        file_path (str or Path): Path to the CSV file

    Returns:
        pd.DataFrame: Raw rows with stripped header names; empty cells are ''

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the path is a directory, the file is empty, or no
            supported encoding can read it
    """
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"File not found: {file_path}")

    if os.path.isdir(file_path):
        raise ValueError(f"Path is a directory: {file_path}")

    if os.path.getsize(file_path) == 0:
        raise ValueError(f"File is empty: {file_path}")

    logger.debug(f"Reading file: {file_path}")
    for encoding in CSV_ENCODINGS:
        try:
            df = pd.read_csv(
                file_path,
                header=0,
                dtype=str,
                keep_default_na=False,
                skipinitialspace=True,
                encoding=encoding
            )
        except UnicodeDecodeError:
            continue
        except pd.errors.EmptyDataError:
            raise ValueError(f"No data in file: {file_path}")
        logger.debug(f"Read {len(df)} rows from {file_path} with encoding {encoding}")
        df.columns = [standardize_header(col) for col in df.columns]
        return df

    raise ValueError(f"Could not read {file_path} with any supported encoding")


def load_sources(ynab_csv_path, bank_csv_path):
    """Read both exports concurrently; returns (ynab_df, bank_df) once both are done."""
    with ThreadPoolExecutor(max_workers=2) as executor:
        ynab_future = executor.submit(read_transactions_file, ynab_csv_path)
        bank_future = executor.submit(read_transactions_file, bank_csv_path)
        return ynab_future.result(), bank_future.result()


def reconcile(ynab_csv_path, bank_csv_path, account_name, options=None, out=None):
    """Reconcile a YNAB export against a bank export and print the report.

    Args:
        ynab_csv_path (str or Path): YNAB register export
        bank_csv_path (str or Path): Bank export
        account_name (str or re.Pattern): YNAB account selector
        options (ReconcileOptions, optional): Run options
        out (file-like, optional): Report destination. Defaults to stdout.

    Returns:
        ReconciliationReport: The report that was printed
    """
    options = options or ReconcileOptions()
    ynab_df, bank_df = load_sources(ynab_csv_path, bank_csv_path)

    bank_transactions = process_bank_format(bank_df)
    ynab_transactions = process_ynab_format(ynab_df, account_name)

    report = reconcile_transactions(ynab_transactions, bank_transactions, options)
    print_report(report, out=out)
    return report


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Reconcile a YNAB export against a bank export')
    parser.add_argument('ynab_csv', help='Path to the YNAB register export')
    parser.add_argument('bank_csv', help='Path to the bank export')
    parser.add_argument('account', help='YNAB account name (or pattern with --regex)')
    parser.add_argument('--regex', action='store_true',
                        help='Treat account as a case-insensitive regular expression')
    parser.add_argument('--find-in-ynab-not-in-bank', action='store_true',
                        help='Report YNAB entries missing from the bank instead of the reverse')
    parser.add_argument('--log-ynab', action='store_true',
                        help='Print every YNAB transaction for the account before comparing')
    parser.add_argument('--earliest-date', type=str, default=None,
                        help='Ignore transactions before this date (default: one year ago)')
    parser.add_argument('--output', type=str, default=None,
                        help='Also write the report as CSV to this path')
    parser.add_argument('--debug', action='store_true',
                        help='Enable debug logging')
    parser.add_argument('--log-level', type=str, default='info',
                        help='Log level when --debug is not set')
    parser.add_argument('--log-file', type=str, default=None,
                        help='Log file path (default: LOG_FILE environment variable, then ynab_reconcile.log)')
    return parser.parse_args(argv)


def main(argv=None):
    """Main execution function."""
    args = parse_args(argv)
    setup_logging(debug=args.debug, log_level=args.log_level, log_file=args.log_file)
    try:
        logger.info("Starting reconciliation process")
        account_name = re.compile(args.account, re.IGNORECASE) if args.regex else args.account
        options = ReconcileOptions(
            find_in_ynab_not_in_bank=args.find_in_ynab_not_in_bank,
            log_ynab_transactions_for_account=args.log_ynab,
            earliest_date=args.earliest_date
        )
        report = reconcile(args.ynab_csv, args.bank_csv, account_name, options)

        if args.output:
            output_path = save_reconciliation_report(report, args.output)
            logger.info(f"Saved report to {output_path}")

        return report
    except Exception as e:
        logger.error(f"Error during reconciliation: {str(e)}")
        raise


if __name__ == '__main__':
    main()
