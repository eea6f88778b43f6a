# ==============================================================================
# incentive/calculator/conditions.py
# ------------------------------------------------------------------------------
# Typed comparison of a record (or aggregate) value against a rule literal.
# Every (data type, operator) pair the engine understands is listed in one
# dispatch table; anything else evaluates to False with a Warning.
# ==============================================================================

import operator as op

from config import Config
from incentive.calculator.schema import DataType, Operator
from incentive.calculator.values import is_missing, parse_date, parse_decimal


def _string_members(rule_value, delimiter):
    if isinstance(rule_value, (list, tuple, set, frozenset)):
        items = rule_value
    else:
        items = str(rule_value).split(delimiter)
    return {str(item).strip().lower() for item in items if not is_missing(item)}


_ORDERED = {
    Operator.EQ: op.eq,
    Operator.NE: op.ne,
    Operator.GT: op.gt,
    Operator.GE: op.ge,
    Operator.LT: op.lt,
    Operator.LE: op.le,
}

_TEXT = {
    Operator.EQ: op.eq,
    Operator.NE: op.ne,
    Operator.CONTAINS: lambda value, literal: literal in value,
    Operator.NOT_CONTAINS: lambda value, literal: literal not in value,
    Operator.STARTSWITH: lambda value, literal: value.startswith(literal),
    Operator.ENDSWITH: lambda value, literal: value.endswith(literal),
    Operator.IN: lambda value, members: value in members,
    Operator.NOT_IN: lambda value, members: value not in members,
}

DISPATCH = {}
DISPATCH.update({(DataType.NUMBER, operator): fn for operator, fn in _ORDERED.items()})
DISPATCH.update({(DataType.DATE, operator): fn for operator, fn in _ORDERED.items()})
DISPATCH.update({(DataType.STRING, operator): fn for operator, fn in _TEXT.items()})


class ConditionEvaluator:
    """
    Evaluates rule conditions and reports unparseable values and unsupported
    operators to a RunLog instead of raising.
    """

    def __init__(self, log=None, in_list_delimiter=None):
        self.log = log
        self.in_list_delimiter = in_list_delimiter or Config.IN_LIST_DELIMITER

    def _report(self, kind, message, rule_id, record, **details):
        if self.log is None:
            return
        if kind == 'data':
            self.log.data_error(message, rule_id=rule_id, record=record, **details)
        else:
            self.log.warning(message, rule_id=rule_id, record=record, **details)

    def evaluate(self, record_value, operator, rule_value, data_type=DataType.STRING,
                 rule_id=None, record=None):
        """
        Compares record_value against rule_value with the given operator.

        Args:
            record_value: Value taken from the record or an aggregate.
            operator (str | Operator): One of the supported operators.
            rule_value: The rule's literal.
            data_type (str | DataType): Number, String or Date.
            rule_id (str): Rule id, used only for log entries.
            record (TransactionRecord): Record being evaluated, used only for log entries.

        Returns:
            bool: Whether the condition holds. Never raises.
        """
        parsed_operator = Operator.parse(operator)
        if parsed_operator is None:
            self._report('warning', f"Unsupported operator '{operator}'.",
                         rule_id, record, operator=str(operator))
            return False

        if is_missing(record_value):
            return parsed_operator is Operator.EQ and (
                is_missing(rule_value) or str(rule_value).strip() == '')

        dtype = DataType.parse(data_type, DataType.STRING)
        if dtype is None:
            self._report('warning', f"Unknown data type '{data_type}', comparing as String.",
                         rule_id, record, dataType=str(data_type))
            dtype = DataType.STRING

        comparison = DISPATCH.get((dtype, parsed_operator))
        if comparison is None:
            self._report('warning', f"Unsupported operator '{operator}' for {dtype} comparison.",
                         rule_id, record, operator=str(operator), dataType=str(dtype))
            return False

        if dtype is DataType.NUMBER:
            left, right = parse_decimal(record_value), parse_decimal(rule_value)
        elif dtype is DataType.DATE:
            left, right = parse_date(record_value), parse_date(rule_value)
        else:
            left = str(record_value).strip().lower()
            if parsed_operator in (Operator.IN, Operator.NOT_IN):
                right = _string_members('' if is_missing(rule_value) else rule_value,
                                        self.in_list_delimiter)
            else:
                right = '' if is_missing(rule_value) else str(rule_value).strip().lower()

        if left is None or right is None:
            self._report('data',
                         f"Cannot compare {record_value!r} {operator} {rule_value!r} as {dtype}.",
                         rule_id, record, recordValue=str(record_value), ruleValue=str(rule_value),
                         dataType=str(dtype))
            return False

        return comparison(left, right)


def evaluate_condition(record_value, operator, rule_value, data_type=DataType.STRING):
    """Stand-alone evaluate() without a log sink."""
    return ConditionEvaluator().evaluate(record_value, operator, rule_value, data_type)
