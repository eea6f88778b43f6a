# tests/test_validator.py

import pytest
from conftest import BASE_FILE

from incentive.calculator.validator import SchemeExecutionError, check_run_inputs, validate_scheme
from incentive.models import Scheme


def test_a_well_formed_scheme_has_no_errors(make_scheme):
    errors, warnings = validate_scheme(make_scheme(
        qualificationRules=[{'id': 'Q1', 'field': 'Total Sales', 'operator': '>=', 'value': 1000}],
    ))
    assert errors == []
    assert warnings == []


def test_missing_qualification_rules_is_only_a_warning(make_scheme):
    errors, warnings = validate_scheme(make_scheme())
    assert errors == []
    assert any('No qualification rules' in w for w in warnings)


def test_structural_errors_are_collected(make_scheme):
    scheme = make_scheme(
        exclusionRules={'id': 'EX1'},
        adjustmentRules=[{'id': 'ADJ1', 'condition': {'field': 'Product', 'operator': '='}, 'adjustment': {}}],
        payoutTiers=[{'from': 0, 'to': 1000, 'rate': 5}, {'from': 500, 'to': None, 'rate': 10}],
        creditSplits=[{'id': 'S1', 'role': 'L2', 'percentage': 120}],
        effectiveFrom='01/10/2024',
    )
    scheme['baseMapping'].pop('txnID')
    errors, _ = validate_scheme(scheme)

    assert "baseMapping is missing: txnID" in errors
    assert "'exclusionRules' must be a list." in errors
    assert any('adjustment must have target, type, and value' in e for e in errors)
    assert any('overlap' in e for e in errors)
    assert any('between 0 and 100' in e for e in errors)
    assert any('effectiveFrom' in e for e in errors)


def test_tier_gaps_and_split_totals_are_warnings(make_scheme):
    errors, warnings = validate_scheme(make_scheme(
        payoutTiers=[{'from': 0, 'to': 1000, 'rate': 5}, {'from': 2000, 'to': None, 'rate': 10}],
        creditSplits=[{'id': 'S1', 'role': 'L2', 'percentage': 70}, {'id': 'S2', 'role': 'L3', 'percentage': 40}],
    ))

    assert errors == []
    assert any('Gap between payout tiers' in w for w in warnings)
    assert any('more than 100%' in w for w in warnings)
    assert any('no creditHierarchyFile' in w for w in warnings)


def test_operator_that_cannot_apply_to_the_field_type_is_a_warning(make_scheme):
    errors, warnings = validate_scheme(make_scheme(exclusionRules=[
        {'id': 'EX1', 'field': 'Sale Amount', 'operator': 'CONTAINS', 'value': '9'},
        {'id': 'EX2', 'field': 'Region', 'operator': 'NOT IN', 'value': 'North,South'},
    ]))
    assert errors == []
    assert [w for w in warnings if 'never match' in w] == [
        "Rule EX1 in exclusionRules: operator 'CONTAINS' cannot be applied to Number field "
        "'Sale Amount'; it will never match."]


def test_unbounded_tier_must_be_last(make_scheme):
    errors, _ = validate_scheme(make_scheme(payoutTiers=[
        {'from': 0, 'to': None, 'rate': 5}, {'from': 1000, 'to': 2000, 'rate': 10}]))
    assert any('unbounded' in e for e in errors)


def test_effective_to_must_not_precede_effective_from(make_scheme):
    errors, _ = validate_scheme(make_scheme(effectiveFrom='2024-10-01', effectiveTo='2024-09-30'))
    assert errors == ["effectiveFrom must be before effectiveTo."]


def test_non_dict_scheme():
    errors, _ = validate_scheme(['not', 'a', 'scheme'])
    assert errors == ["Scheme must be a JSON object."]


@pytest.mark.parametrize("key", ['qualificationRules', 'exclusionRules', 'adjustmentRules', 'payoutTiers',
                                 'creditSplits'])
def test_list_sections_of_the_wrong_shape_are_errors_not_crashes(make_scheme, key):
    errors, _ = validate_scheme(make_scheme(**{key: 5}))
    assert f"'{key}' must be a list." in errors


def test_malformed_kpi_config_is_reported(make_scheme):
    scheme = make_scheme()
    scheme['kpiConfig']['baseData'].append('Region')
    errors, _ = validate_scheme(scheme)
    assert errors == ["Invalid field definition in kpiConfig.baseData: 'Region' is not an object."]

    errors, _ = validate_scheme(make_scheme(kpiConfig='Region'))
    assert errors == ["'kpiConfig' must be an object."]


# --- check_run_inputs ---

def test_run_inputs_are_returned_as_dates(make_scheme, make_files, sales_rows):
    rows, columns, effective_from, as_of = check_run_inputs(
        Scheme.from_dict(make_scheme()), make_files(sales_rows), '2024-12-31')
    assert len(rows) == 3
    assert 'TxnID' in columns
    assert (effective_from.isoformat(), as_of.isoformat()) == ('2024-10-01', '2024-12-31')


@pytest.mark.parametrize("breakage, message", [
    (lambda s, f: s['baseMapping'].pop('agentField'), 'agentField'),
    (lambda s, f: f.pop(BASE_FILE), 'not found in uploadedFiles'),
    (lambda s, f: f[BASE_FILE].update(data='oops'), 'data is not an array'),
    (lambda s, f: [row.pop('TxnID') for row in f[BASE_FILE]['data']], "Missing column 'TxnID'"),
    (lambda s, f: s.update(effectiveFrom='last tuesday'), 'Use YYYY-MM-DD'),
])
def test_fatal_input_problems_raise(make_scheme, make_files, sales_rows, breakage, message):
    scheme, files = make_scheme(), make_files(sales_rows)
    breakage(scheme, files)
    with pytest.raises(SchemeExecutionError, match=message):
        check_run_inputs(Scheme.from_dict(scheme), files, '2024-12-31')


def test_empty_base_file_is_accepted_when_columns_name_the_txn_id(make_scheme, make_files):
    rows, _, _, _ = check_run_inputs(Scheme.from_dict(make_scheme()), make_files([]), '2024-12-31')
    assert rows == []

    with pytest.raises(SchemeExecutionError):
        check_run_inputs(Scheme.from_dict(make_scheme()), make_files([], columns=['AgentCode']), '2024-12-31')


def test_bad_run_date_raises(make_scheme, make_files, sales_rows):
    with pytest.raises(SchemeExecutionError, match='runAsOfDate'):
        check_run_inputs(Scheme.from_dict(make_scheme()), make_files(sales_rows), '31/12/2024')
