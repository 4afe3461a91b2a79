import uuid
from decimal import Decimal

import pytest
import pandas as pd

from ynab_reconcile.models import Transaction

# Sample data for each format
bank_debit_credit_sample_data = {
    'Transaction Date': ['2025-03-01', '2025-03-02', '2025-03-03'],
    'Posted Date': ['2025-03-02', '2025-03-03', '2025-03-04'],
    'Card No.': ['1234', '1234', '1234'],
    'Description': ['GROCERY STORE', 'PAYROLL', 'COFFEE SHOP'],
    'Category': ['Groceries', 'Income', 'Dining'],
    'Debit': ['42.00', '', '$4.50'],  # Positive for debits
    'Credit': ['', '1,500.00', '']  # Empty for debit transactions
}

bank_amount_sample_data = {
    'Transaction Date': ['03/01/2025', '03/02/2025'],
    'Description': ['GROCERY STORE', 'REFUND'],
    'Amount': ['-42.00', '10.25'],  # Negative for debits
    'Debit': ['', ''],
    'Credit': ['', '']
}

ynab_sample_data = {
    'Account': ['Checking', 'Checking', 'Savings', 'Checking'],
    'Flag': ['', '', '', ''],
    'Date': ['03/01/2025', '03/02/2025', '03/02/2025', '03/04/2025'],
    'Payee': ['Grocery Store', 'Employer', 'Transfer', 'Coffee Shop'],
    'Category Group/Category': ['Food: Groceries', 'Inflow: Ready to Assign', '', 'Food: Dining'],
    'Memo': ['', '', '', ''],
    'Outflow': ['$42.00', '$0.00', '$100.00', '$4.50'],
    'Inflow': ['$0.00', '$1,500.00', '$0.00', '$0.00'],
    'Cleared': ['Cleared', 'Cleared', 'Cleared', 'Uncleared']
}

ynab_split_sample_data = {
    'Account': ['Checking', 'Checking', 'Checking', 'Checking'],
    'Date': ['03/05/2025', '03/05/2025', '03/05/2025', '03/06/2025'],
    'Payee': ['Big Box Store', 'Big Box Store', 'Big Box Store', 'Gas Station'],
    'Memo': ['Split (1/3) household', 'Split (2/3) food', 'Split (3/3)', ''],
    'Outflow': ['$10.10', '$5.05', '$0.03', '$30.00'],
    'Inflow': ['$0.00', '$0.00', '$0.00', '$0.00']
}


@pytest.fixture
def create_test_df():
    """Helper fixture to create raw DataFrames for each export format"""
    def _create_df(format_name):
        sample_data = {
            'bank_debit_credit': bank_debit_credit_sample_data,
            'bank_amount': bank_amount_sample_data,
            'ynab': ynab_sample_data,
            'ynab_split': ynab_split_sample_data
        }
        if format_name not in sample_data:
            raise ValueError(f"Unknown format: {format_name}")
        return pd.DataFrame(sample_data[format_name])
    return _create_df


@pytest.fixture
def make_transaction():
    """Helper fixture to build normalized Transactions with fresh ids"""
    def _make(date, amount, payee='TEST TRANSACTION', source='Bank'):
        return Transaction(
            id=uuid.uuid4().hex,
            date=pd.Timestamp(date),
            payee=payee,
            amount=Decimal(amount),
            source=source
        )
    return _make


@pytest.fixture
def write_csv(tmp_path):
    """Helper fixture to write sample data to a CSV file in tmp_path"""
    def _write(name, data):
        file_path = tmp_path / name
        pd.DataFrame(data).to_csv(file_path, index=False)
        return file_path
    return _write


@pytest.fixture
def e2e_bank_data():
    """Bank export with two unique amounts, one of them duplicated"""
    return {
        'Transaction Date': ['03/01/2025', '03/05/2025', '03/07/2025'],
        'Description': ['PARKING', 'PARKING', 'BOOKSTORE'],
        'Debit': ['20.00', '20.00', '35.00'],
        'Credit': ['', '', '']
    }


@pytest.fixture
def e2e_ynab_data():
    """YNAB export with one amount matching the bank and one the bank never saw"""
    return {
        'Account': ['Checking', 'Checking'],
        'Date': ['03/07/2025', '03/09/2025'],
        'Payee': ['Bookstore', 'Concert Tickets'],
        'Memo': ['', ''],
        'Outflow': ['$35.00', '$77.00'],
        'Inflow': ['$0.00', '$0.00']
    }
