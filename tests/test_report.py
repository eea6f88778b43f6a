# tests/test_report.py

from decimal import Decimal
from io import StringIO

import pandas as pd
from conftest import BASE_FILE, HIERARCHY_FILE

from incentive import run_scheme, summarize_results, summary_dataframe
from incentive.calculator.loader import build_uploaded_files, normalize_uploaded_file, rows_from_dataframe

SALES_CSV = """TxnID,AgentCode,Amount,TxnDate,Product,Region
T1,A1,1000,2024-10-05,Widget,North
T2,A1,2000,2024-11-10,Gadget,
T3,A2,500,2024-12-01,Widget,North
"""

HIERARCHY_CSV = """AgentID,Level,ManagerID,ReportsFrom,ReportsToEnd
A1,L2,M1,2024-01-01,
A2,L2,A1,2024-01-01,2025-06-30
"""


def _frames():
    return {
        BASE_FILE: pd.read_csv(StringIO(SALES_CSV)),
        HIERARCHY_FILE: pd.read_csv(StringIO(HIERARCHY_CSV)),
    }


def test_empty_cells_become_none():
    rows = rows_from_dataframe(_frames()[BASE_FILE])
    assert rows[1]['Region'] is None
    assert rows[0]['TxnID'] == 'T1'


def test_build_uploaded_files_keeps_column_order():
    files = build_uploaded_files(_frames())
    assert files[BASE_FILE]['columns'] == ['TxnID', 'AgentCode', 'Amount', 'TxnDate', 'Product', 'Region']
    assert len(files[HIERARCHY_FILE]['data']) == 2


def test_normalize_accepts_dataframes_and_bare_lists():
    df = _frames()[BASE_FILE]
    rows, columns = normalize_uploaded_file(df)
    assert len(rows) == 3 and columns[0] == 'TxnID'

    rows, columns = normalize_uploaded_file([{'a': 1}])
    assert columns == ['a']

    assert normalize_uploaded_file({'data': 'not rows'}) is None


def test_run_from_dataframes_and_summarize(make_scheme):
    scheme = make_scheme(creditSplits=[{'id': 'S1', 'role': 'L2', 'percentage': 20}],
                         creditHierarchyFile=HIERARCHY_FILE)
    result = run_scheme(scheme, _frames(), '2024-12-31')

    assert result.agent_payouts == {'A1': '300.00', 'A2': '50.00'}

    summary = summarize_results(result)
    assert summary['A1']['base_payout'] == Decimal(300)
    assert summary['A1']['credit_paid_out'] == Decimal(60)
    assert summary['A1']['credit_received'] == Decimal(10)
    assert summary['A1']['net_payout'] == Decimal(310)
    assert summary['M1']['record_count'] == 0
    assert summary['M1']['net_payout'] == Decimal(60)

    df = summary_dataframe(result)
    assert list(df['agent_id']) == ['A1', 'A2', 'M1']
    assert df.loc[df['agent_id'] == 'A2', 'base_payout'].iloc[0] == 50.0
    assert df['qualified'].tolist() == [True, True, False]


def test_numeric_agent_ids_survive_a_blank_cell(make_scheme):
    """A blank agent cell makes pandas read the column as float; ids must still match the hierarchy."""
    sales = pd.DataFrame({
        'TxnID': ['T1', 'T2', 'T3'],
        'AgentCode': [101, 101, None],
        'Amount': [1000, 2000, 500],
        'TxnDate': ['2024-10-05', '2024-11-10', '2024-12-01'],
    })
    hierarchy = pd.DataFrame({
        'AgentID': [101], 'Level': ['L2'], 'ManagerID': [900],
        'ReportsFrom': ['2024-01-01'], 'ReportsToEnd': [None],
    })
    assert [row['AgentCode'] for row in rows_from_dataframe(sales)] == [101, 101, None]

    scheme = make_scheme(creditSplits=[{'id': 'S1', 'role': 'L2', 'percentage': 20}],
                         creditHierarchyFile=HIERARCHY_FILE)
    output = run_scheme(scheme, {BASE_FILE: sales, HIERARCHY_FILE: hierarchy}, '2024-12-31').to_dict()

    assert output['agentPayouts'] == {'101': '300.00'}
    assert [d['amount'] for d in output['creditDistributions']['900']] == ['60.00']
    assert len(output['unassignedRecords']) == 1


def test_fractional_float_columns_are_left_alone():
    rows = rows_from_dataframe(pd.DataFrame({'Amount': [10.5, None]}))
    assert rows == [{'Amount': 10.5}, {'Amount': None}]
