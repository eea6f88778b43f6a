# tests/conftest.py

import copy

import pytest

BASE_FILE = 'SCH1.csv'
HIERARCHY_FILE = 'MH_DEC24.csv'
BASE_COLUMNS = ['TxnID', 'AgentCode', 'Amount', 'TxnDate', 'Product', 'Region']
HIERARCHY_COLUMNS = ['AgentID', 'Level', 'ManagerID', 'ReportsFrom', 'ReportsToEnd']

_BASE_SCHEME = {
    'name': 'Q4 Direct Sales',
    'SchemeID': 'SCH1',
    'effectiveFrom': '2024-10-01',
    'effectiveTo': '2024-12-31',
    'baseMapping': {
        'sourceFile': BASE_FILE,
        'agentField': 'AgentCode',
        'amountField': 'Amount',
        'txnID': 'TxnID',
        'transactionDateField': 'TxnDate',
    },
    'kpiConfig': {
        'baseData': [
            {'name': 'Product', 'sourceField': 'Product', 'dataType': 'String'},
            {'name': 'Region', 'sourceField': 'Region', 'dataType': 'String'},
            {'name': 'Sale Date', 'sourceField': 'TxnDate', 'dataType': 'Date'},
            {'name': 'Sale Amount', 'sourceField': 'Amount', 'dataType': 'Number'},
        ],
        'qualificationFields': [
            {'name': 'Total Sales', 'sourceField': 'Amount', 'dataType': 'Number',
             'evaluationLevel': 'Agent', 'aggregation': 'Sum'},
            {'name': 'Deal Count', 'sourceField': 'TxnID', 'dataType': 'Number',
             'evaluationLevel': 'Agent', 'aggregation': 'Count'},
            {'name': 'Average Sale', 'sourceField': 'Amount', 'dataType': 'Number',
             'evaluationLevel': 'Agent', 'aggregation': 'Avg'},
        ],
    },
    'qualificationRules': [],
    'exclusionRules': [],
    'adjustmentRules': [],
    'creditRules': [],
    'customRules': [],
    'payoutTiers': [{'id': 'T1', 'from': 0, 'to': None, 'rate': 10}],
    'creditSplits': [],
    'creditHierarchyFile': None,
}


def sale(txn, agent, amount, txn_date, product='Widget', region='North'):
    return {'TxnID': txn, 'AgentCode': agent, 'Amount': amount, 'TxnDate': txn_date,
            'Product': product, 'Region': region}


def reports(agent, level, manager, reports_from, reports_to=''):
    return {'AgentID': agent, 'Level': level, 'ManagerID': manager,
            'ReportsFrom': reports_from, 'ReportsToEnd': reports_to}


@pytest.fixture
def make_scheme():
    """Returns a factory building a scheme dict with top-level keys overridden."""
    def _make(**overrides):
        scheme = copy.deepcopy(_BASE_SCHEME)
        scheme.update(copy.deepcopy(overrides))
        return scheme
    return _make


@pytest.fixture
def sales_rows():
    """Two agents inside the Q4 window: A1 sells 1000 + 2000, A2 sells 500."""
    return [
        sale('T1', 'A1', 1000, '2024-10-05', 'Widget', 'North'),
        sale('T2', 'A1', 2000, '2024-11-10', 'Gadget', 'South'),
        sale('T3', 'A2', 500, '2024-12-01', 'Widget', 'North'),
    ]


@pytest.fixture
def hierarchy_rows():
    """A1 and A2 report to M1, M1 reports to M2, M2 reports to M3."""
    return [
        reports('A1', 'L2', 'M1', '2024-01-01'),
        reports('A2', 'L2', 'M1', '2024-01-01', '2025-06-30'),
        reports('M1', 'L2', 'M2', '2023-01-01'),
        reports('M2', 'L2', 'M3', '2023-01-01'),
    ]


@pytest.fixture
def make_files():
    """Returns a factory building the uploaded-file table."""
    def _make(rows, hierarchy=None, columns=None):
        files = {BASE_FILE: {'data': copy.deepcopy(rows), 'columns': list(columns or BASE_COLUMNS)}}
        if hierarchy is not None:
            files[HIERARCHY_FILE] = {'data': copy.deepcopy(hierarchy), 'columns': list(HIERARCHY_COLUMNS)}
        return files
    return _make
