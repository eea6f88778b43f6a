# ==============================================================================
# incentive/calculator/schema.py
# ------------------------------------------------------------------------------
# Defines the expected structure of a scheme configuration and the closed sets
# of labels (data types, operators, levels, aggregations) the engine accepts.
# This module is the single source of truth for the validator and the engine.
# ==============================================================================

from enum import Enum

# baseMapping keys without which a run cannot start.
REQUIRED_BASE_MAPPING_KEYS = ['sourceFile', 'agentField', 'amountField', 'txnID']

# kpiConfig sections, in the order they are merged into the field map.
KPI_FIELD_SECTIONS = [
    'baseData',
    'qualificationFields',
    'adjustmentFields',
    'exclusionFields',
    'creditFields',
]

# Scheme keys that must hold lists when present.
RULE_LIST_KEYS = [
    'qualificationRules',
    'exclusionRules',
    'adjustmentRules',
    'creditRules',
    'customRules',
    'payoutTiers',
    'creditSplits',
]

# Logical names under which the base mapping columns are always resolvable.
IMPLICIT_AGENT_FIELD = 'Agent'
IMPLICIT_AMOUNT_FIELD = 'Amount'


def _normalize_label(value):
    return ''.join(str(value).split()).replace('_', '').lower()


class _LabelEnum(Enum):
    """Enum whose members can be looked up from loosely written labels."""

    @classmethod
    def parse(cls, value, default=None):
        if value is None or (isinstance(value, str) and value.strip() == ''):
            return default
        if isinstance(value, cls):
            return value
        wanted = _normalize_label(value)
        for member in cls:
            if _normalize_label(member.value) == wanted or member.name.lower() == wanted:
                return member
        return None

    def __str__(self):
        return self.value


class DataType(_LabelEnum):
    NUMBER = 'Number'
    STRING = 'String'
    DATE = 'Date'


class Operator(_LabelEnum):
    EQ = '='
    NE = '!='
    GT = '>'
    GE = '>='
    LT = '<'
    LE = '<='
    CONTAINS = 'CONTAINS'
    NOT_CONTAINS = 'NOT CONTAINS'
    STARTSWITH = 'STARTSWITH'
    ENDSWITH = 'ENDSWITH'
    IN = 'IN'
    NOT_IN = 'NOT IN'

    @classmethod
    def parse(cls, value, default=None):
        if isinstance(value, str):
            # Symbols are matched verbatim, word operators tolerate spacing.
            for member in cls:
                if value.strip() == member.value:
                    return member
            return super().parse(' '.join(value.split()).upper(), default)
        return super().parse(value, default)


class EvaluationLevel(_LabelEnum):
    PER_RECORD = 'PerRecord'
    AGENT = 'Agent'


class Aggregation(_LabelEnum):
    SUM = 'Sum'
    COUNT = 'Count'
    AVG = 'Avg'
    MIN = 'Min'
    MAX = 'Max'
    NOT_APPLICABLE = 'NotApplicable'


class AdjustmentTarget(_LabelEnum):
    AMOUNT = 'Amount'
    RATE = 'Rate'


class AdjustmentType(_LabelEnum):
    PERCENTAGE = 'percentage'
    FIXED = 'fixed'


class RuleType(_LabelEnum):
    QUALIFICATION = 'Qualification'
    EXCLUSION = 'Exclusion'
    ADJUSTMENT = 'Adjustment'
    CREDIT_SPLIT = 'CreditSplit'
    CUSTOM = 'Custom'
    DATA_ERROR = 'DataError'
    WARNING = 'Warning'
    ERROR = 'Error'
    QUOTA = 'Quota'
    PAYOUT = 'Payout'


class LogLevel(_LabelEnum):
    INFO = 'Info'
    WARNING = 'Warning'
    ERROR = 'Error'


# Operators each data type understands; anything else is "unsupported".
NUMERIC_OPERATORS = frozenset([
    Operator.EQ, Operator.NE, Operator.GT, Operator.GE, Operator.LT, Operator.LE,
])
STRING_OPERATORS = frozenset([
    Operator.EQ, Operator.NE, Operator.CONTAINS, Operator.NOT_CONTAINS,
    Operator.STARTSWITH, Operator.ENDSWITH, Operator.IN, Operator.NOT_IN,
])
SUPPORTED_OPERATORS = {
    DataType.NUMBER: NUMERIC_OPERATORS,
    DataType.DATE: NUMERIC_OPERATORS,
    DataType.STRING: STRING_OPERATORS,
}
