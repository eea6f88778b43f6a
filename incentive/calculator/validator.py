# ==============================================================================
# incentive/calculator/validator.py
# ------------------------------------------------------------------------------
# Handles the validation of a scheme configuration and of the inputs of a run.
# validate_scheme() collects human-readable problems for an editor to show;
# check_run_inputs() raises on anything that makes a run impossible.
# ==============================================================================

from incentive.calculator.errors import SchemeExecutionError
from incentive.calculator.loader import normalize_uploaded_file
from incentive.calculator.schema import (
    AdjustmentTarget, AdjustmentType, DataType, KPI_FIELD_SECTIONS, Operator,
    REQUIRED_BASE_MAPPING_KEYS, RULE_LIST_KEYS, SUPPORTED_OPERATORS,
)
from incentive.calculator.values import parse_date, parse_decimal

__all__ = ['SchemeExecutionError', 'validate_scheme', 'check_run_inputs']


def _list_of(container, key):
    # Values of the wrong shape are reported once by the caller and read as empty here.
    value = container.get(key) if isinstance(container, dict) else None
    return value if isinstance(value, list) else []


def _kpi_entries(scheme):
    for section in KPI_FIELD_SECTIONS:
        for entry in _list_of(scheme.get('kpiConfig'), section):
            yield section, entry


def _catalog_types(scheme):
    # Later kpiConfig sections override earlier ones, as in the engine.
    types = {}
    for _, entry in _kpi_entries(scheme):
        if isinstance(entry, dict) and entry.get('name'):
            types[entry['name']] = DataType.parse(entry.get('dataType'), DataType.STRING)
    return {name: data_type for name, data_type in types.items() if data_type is not None}


def _validate_rules(scheme, errors, warnings):
    for key in RULE_LIST_KEYS:
        if key in scheme and scheme[key] is not None and not isinstance(scheme[key], list):
            errors.append(f"'{key}' must be a list.")

    qualification_rules = scheme.get('qualificationRules')
    if not qualification_rules:
        warnings.append("No qualification rules defined. Every agent with a positive credited amount qualifies.")

    field_types = _catalog_types(scheme)
    for key in ('qualificationRules', 'exclusionRules', 'creditRules'):
        for index, rule in enumerate(_list_of(scheme, key)):
            if not isinstance(rule, dict) or not rule.get('field') or not rule.get('operator'):
                errors.append(f"Invalid rule at {key}[{index}]: field and operator are required.")
                continue
            operator = Operator.parse(rule.get('operator'))
            data_type = field_types.get(rule['field'])
            if operator is None:
                warnings.append(f"Rule {rule.get('id')} in {key} uses unknown operator '{rule.get('operator')}'.")
            elif data_type is not None and operator not in SUPPORTED_OPERATORS[data_type]:
                warnings.append(f"Rule {rule.get('id')} in {key}: operator '{operator}' cannot be applied to "
                                f"{data_type} field '{rule['field']}'; it will never match.")

    for index, rule in enumerate(_list_of(scheme, 'adjustmentRules')):
        if not isinstance(rule, dict):
            errors.append(f"Invalid adjustment rule at index {index}.")
            continue
        # Handle both the nested and the older flat format
        condition = rule.get('condition') or {
            'field': rule.get('field'), 'operator': rule.get('operator'), 'value': rule.get('value'),
        }
        adjustment = rule.get('adjustment') or {
            'target': rule.get('adjustmentTarget'), 'type': rule.get('adjustmentType'),
            'value': rule.get('adjustmentValue'),
        }
        if not condition.get('field') or not condition.get('operator'):
            errors.append(f"Invalid adjustment rule condition at index {index}: "
                          f"condition must have field, operator, and value.")
        if not adjustment.get('target') or not adjustment.get('type') or adjustment.get('value') is None:
            errors.append(f"Invalid adjustment rule adjustment at index {index}: "
                          f"adjustment must have target, type, and value.")
        elif AdjustmentTarget.parse(adjustment['target']) is None or AdjustmentType.parse(adjustment['type']) is None:
            warnings.append(f"Adjustment rule {rule.get('id')} has unsupported target/type "
                            f"{adjustment['target']}/{adjustment['type']}; it will have no effect.")


def _validate_tiers(scheme, errors, warnings):
    tiers = _list_of(scheme, 'payoutTiers')
    if not tiers:
        warnings.append("No payout tiers defined. Every payout will be zero.")
        return

    bounds = []
    for index, tier in enumerate(tiers):
        if not isinstance(tier, dict):
            errors.append(f"Payout tier at index {index} must be an object.")
            continue
        lower = parse_decimal(tier.get('from') or 0)
        upper_raw = tier.get('to')
        upper = None if upper_raw in (None, '') else parse_decimal(upper_raw)
        rate = parse_decimal(tier.get('rate') or 0)
        if lower is None or rate is None or (upper_raw not in (None, '') and upper is None):
            errors.append(f"Payout tier at index {index} has a non-numeric from/to/rate.")
            continue
        if upper is not None and upper <= lower:
            errors.append(f"Payout tier at index {index}: 'to' must be greater than 'from'.")
            continue
        bounds.append((lower, upper, index))

    bounds.sort(key=lambda b: b[0])
    for (lower, upper, index), (next_lower, _, next_index) in zip(bounds, bounds[1:]):
        if upper is None:
            errors.append(f"Payout tier at index {index} is unbounded but is followed by tier {next_index}.")
        elif next_lower < upper:
            errors.append(f"Payout tiers at index {index} and {next_index} overlap.")
        elif next_lower > upper:
            warnings.append(f"Gap between payout tiers at index {index} and {next_index}.")


def _validate_splits(scheme, errors, warnings):
    splits = _list_of(scheme, 'creditSplits')
    total = 0
    for index, split in enumerate(splits):
        if not isinstance(split, dict):
            errors.append(f"Credit split at index {index} must be an object.")
            continue
        percentage = parse_decimal(split.get('percentage'))
        if not split.get('role'):
            errors.append(f"Credit split at index {index} has no role.")
        if percentage is None or percentage < 0 or percentage > 100:
            errors.append(f"Credit split at index {index} must have a percentage between 0 and 100.")
            continue
        total += percentage
    if total > 100:
        warnings.append(f"Credit split percentages add up to {total}%, more than 100%.")
    if splits and not scheme.get('creditHierarchyFile'):
        warnings.append("Credit splits are defined but no creditHierarchyFile is set.")


def validate_scheme(scheme):
    """
    Validates the structure of a scheme configuration dict.

    Args:
        scheme (dict): The scheme as produced by the scheme designer.

    Returns:
        tuple: A tuple containing:
            - list: Error messages. A scheme with errors should not be run.
            - list: Warning messages.
    """
    errors, warnings = [], []
    if not isinstance(scheme, dict):
        return ["Scheme must be a JSON object."], warnings

    base_mapping = scheme.get('baseMapping')
    if not isinstance(base_mapping, dict):
        base_mapping = {}
    missing = [key for key in REQUIRED_BASE_MAPPING_KEYS if not base_mapping.get(key)]
    if missing:
        errors.append(f"baseMapping is missing: {', '.join(missing)}")
    if not base_mapping.get('transactionDateField'):
        errors.append("baseMapping is missing: transactionDateField")

    effective_from = parse_date(scheme.get('effectiveFrom'))
    effective_to = parse_date(scheme.get('effectiveTo'))
    if effective_from is None:
        errors.append(f"Invalid effectiveFrom {scheme.get('effectiveFrom')!r}. Use YYYY-MM-DD.")
    if scheme.get('effectiveTo') and effective_to is None:
        errors.append(f"Invalid effectiveTo {scheme.get('effectiveTo')!r}. Use YYYY-MM-DD.")
    elif effective_from and effective_to and effective_to < effective_from:
        errors.append("effectiveFrom must be before effectiveTo.")

    _validate_rules(scheme, errors, warnings)
    _validate_tiers(scheme, errors, warnings)
    _validate_splits(scheme, errors, warnings)

    kpi_config = scheme.get('kpiConfig')
    if kpi_config is not None and not isinstance(kpi_config, dict):
        errors.append("'kpiConfig' must be an object.")
    for section, entry in _kpi_entries(scheme):
        if not isinstance(entry, dict):
            errors.append(f"Invalid field definition in kpiConfig.{section}: {entry!r} is not an object.")
        elif entry.get('dataType') and DataType.parse(entry['dataType']) is None:
            warnings.append(f"Field '{entry.get('name')}' has unknown dataType '{entry['dataType']}'; "
                            f"it will be compared as String.")

    if scheme.get('quotaAmount') not in (None, '') and parse_decimal(scheme.get('quotaAmount')) is None:
        errors.append(f"quotaAmount {scheme.get('quotaAmount')!r} is not a number.")

    return errors, warnings


def check_run_inputs(scheme, uploaded_files, run_as_of_date):
    """
    Performs the checks without which a run cannot start.

    Args:
        scheme (Scheme): The parsed scheme.
        uploaded_files (dict): filename -> {'data': rows, 'columns': [...]}.
        run_as_of_date (str): YYYY-MM-DD.

    Returns:
        tuple: (base rows, base columns, effective-from date, as-of date)

    Raises:
        SchemeExecutionError: Naming the missing or invalid artifact.
    """
    base = scheme.base_mapping
    missing = [key for key, value in (('sourceFile', base.source_file), ('agentField', base.agent_field),
                                      ('amountField', base.amount_field), ('txnID', base.txn_id_field))
               if not value]
    if missing:
        raise SchemeExecutionError(
            f"Scheme is missing essential baseMapping configuration: {', '.join(missing)}.")

    entry = (uploaded_files or {}).get(base.source_file)
    table = normalize_uploaded_file(entry) if entry is not None else None
    if table is None:
        raise SchemeExecutionError(
            f'Base data file "{base.source_file}" not found in uploadedFiles or data is not an array.')
    rows, columns = table

    first_columns = set(rows[0].keys()) if rows else set(columns or [])
    if base.txn_id_field not in first_columns:
        raise SchemeExecutionError(
            f"Missing column '{base.txn_id_field}' required as txnID in input file.")

    effective_from = parse_date(scheme.effective_from)
    as_of = parse_date(run_as_of_date)
    if effective_from is None or as_of is None:
        raise SchemeExecutionError(
            f"Invalid runAsOfDate ({run_as_of_date!r}) or scheme.effectiveFrom "
            f"({scheme.effective_from!r}) date format. Use YYYY-MM-DD.")

    return rows, columns, effective_from, as_of
