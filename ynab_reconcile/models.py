"""
Data structures shared by the reconciliation engine and the reporters.

A Transaction is the canonical record both ledgers are normalized into:
- id: uuid4 hex assigned at normalization time (identity only)
- date: pandas Timestamp of the transaction day
- payee: free-text description
- amount: signed Decimal (negative for outflows/debits, positive for inflows/credits)
- source: 'Bank' or 'Ynab' (reporting only)
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional, Tuple, Union

import pandas as pd

BANK = 'Bank'
YNAB = 'Ynab'


class ReconcileError(ValueError):
    """Base class for fatal reconciliation errors."""


class ConfigurationError(ReconcileError):
    """Raised when a YNAB export has no usable account column."""


class SplitMergeError(ReconcileError):
    """Raised when a split transaction has nothing to merge into."""


@dataclass(frozen=True)
class Transaction:
    id: str
    date: pd.Timestamp
    payee: str
    amount: Decimal
    source: str


@dataclass
class ReconcileOptions:
    """Options for a reconciliation run.

    Attributes:
        find_in_ynab_not_in_bank (bool): Report entries missing from the bank
            instead of entries missing from YNAB.
        log_ynab_transactions_for_account (bool): Print every filtered YNAB
            transaction before the comparison sections.
        earliest_date (Timestamp, datetime, date or str): Transactions dated
            before this are ignored. Timezone-aware values are compared in
            local time. Defaults to one year before now.
    """
    find_in_ynab_not_in_bank: bool = False
    log_ynab_transactions_for_account: bool = False
    earliest_date: Optional[Union[pd.Timestamp, datetime, date, str]] = None


@dataclass
class BucketPair:
    amount: object
    bank: List[Transaction]
    ynab: List[Transaction]


@dataclass
class BucketComparison:
    """Amount keys split by side, plus the pairs whose counts disagree."""
    both_amounts: list
    only_bank_amounts: list
    only_ynab_amounts: list
    mismatches: List[BucketPair] = field(default_factory=list)


@dataclass
class BucketMismatch:
    """A bucket pair with differing counts and its nearest-date matches."""
    amount: object
    bank: List[Transaction]
    ynab: List[Transaction]
    likely_matches: List[Tuple[Transaction, Transaction]] = field(default_factory=list)
    probable_mismatches: List[Transaction] = field(default_factory=list)


@dataclass
class ReconciliationReport:
    find_in_ynab_not_in_bank: bool
    only_in_one_side: List[Transaction] = field(default_factory=list)
    mismatches: List[BucketMismatch] = field(default_factory=list)
    ynab_transactions: Optional[List[Transaction]] = None

    @property
    def only_in_one_side_title(self) -> str:
        if self.find_in_ynab_not_in_bank:
            return 'In Ynab but not in Bank'
        return 'In Bank but not in Ynab'
