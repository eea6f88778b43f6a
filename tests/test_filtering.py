# tests/test_filtering.py

from datetime import date

from conftest import sale

from incentive.calculator.audit import RunLog
from incentive.calculator.filtering import filter_and_group_records
from incentive.calculator.schema import RuleType
from incentive.models import BaseMapping

BASE = BaseMapping.from_dict({
    'sourceFile': 'SCH1.csv', 'agentField': 'AgentCode', 'amountField': 'Amount',
    'txnID': 'TxnID', 'transactionDateField': 'TxnDate',
})


def test_window_bounds_are_inclusive_and_groups_keep_first_seen_order():
    rows = [
        sale('T1', 'B7', 10, '2024-10-01'),
        sale('T2', 'A1', 20, '2024-12-31'),
        sale('T3', 'B7', 30, '2024-09-30'),
        sale('T4', 'A1', 40, '2025-01-01'),
        sale('T5', 'B7', 50, '2024-11-15 13:45:00'),
    ]
    log = RunLog()
    result = filter_and_group_records(rows, BASE, date(2024, 10, 1), date(2024, 12, 31), log)

    assert list(result.groups) == ['B7', 'A1']
    assert [r.transaction_id for r in result.groups['B7']] == ['T1', 'T5']
    assert [r.record_id for r in result.groups['A1']] == ['SCH1.csv-1']
    assert result.out_of_range == 2
    assert result.record_count == 3
    assert len(log) == 0


def test_undated_rows_are_dropped_with_a_warning():
    rows = [sale('T1', 'A1', 10, 'soon'), sale('T2', 'A1', 10, None)]
    log = RunLog()
    result = filter_and_group_records(rows, BASE, date(2024, 10, 1), date(2024, 12, 31), log)

    assert result.groups == {}
    assert result.undated == 2
    assert [e.rule_type for e in log] == [RuleType.WARNING, RuleType.WARNING]
    assert log.entries[0].transaction_id == 'T1'


def test_rows_without_agent_go_to_the_unassigned_bucket():
    rows = [sale('T1', '  ', 10, '2024-10-02'), sale('T2', None, 10, '2024-10-02'),
            sale('T3', ' A1 ', 10, '2024-10-02')]
    log = RunLog()
    result = filter_and_group_records(rows, BASE, date(2024, 10, 1), date(2024, 12, 31), log)

    assert [r.record_id for r in result.unassigned] == ['SCH1.csv-0', 'SCH1.csv-1']
    assert list(result.groups) == ['A1']
    assert len(log.of_type(RuleType.WARNING)) == 2
