# ==============================================================================
# incentive/models.py
# ------------------------------------------------------------------------------
# Defines the in-memory data model of a scheme run as dataclasses.
# All monetary values are Decimal; every object lives for one run only.
# ==============================================================================

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Mapping

from config import Config
from incentive.calculator.errors import SchemeExecutionError
from incentive.calculator.schema import (
    Aggregation, DataType, EvaluationLevel, KPI_FIELD_SECTIONS, LogLevel, RuleType,
)
from incentive.calculator.values import ZERO, format_decimal, is_missing, parse_decimal


def utc_timestamp():
    return datetime.now(timezone.utc).isoformat()


def _text(value):
    if value is None:
        return None
    return str(value)


def _required_decimal(value, what, default=ZERO):
    if value is None or (isinstance(value, str) and value.strip() == ''):
        return default
    parsed = parse_decimal(value)
    if parsed is None:
        raise SchemeExecutionError(f"Invalid numeric value {value!r} for {what}.")
    return parsed


# =============================================================================
# SCHEME CONFIGURATION
# =============================================================================


@dataclass
class FieldMapping:
    """A logical field of the scheme and where its values come from."""

    name: str
    source_field: str
    data_type: DataType = DataType.STRING
    evaluation_level: EvaluationLevel = EvaluationLevel.PER_RECORD
    aggregation: Aggregation = Aggregation.NOT_APPLICABLE
    source_file: str | None = None

    @classmethod
    def from_dict(cls, data: dict):
        return cls(
            name=data.get('name'),
            source_field=data.get('sourceField'),
            data_type=DataType.parse(data.get('dataType'), DataType.STRING) or DataType.STRING,
            evaluation_level=(EvaluationLevel.parse(data.get('evaluationLevel'), EvaluationLevel.PER_RECORD)
                              or EvaluationLevel.PER_RECORD),
            aggregation=(Aggregation.parse(data.get('aggregation'), Aggregation.NOT_APPLICABLE)
                         or Aggregation.NOT_APPLICABLE),
            source_file=data.get('sourceFile') or None,
        )


@dataclass
class Rule:
    """A single field/operator/value condition (qualification, exclusion, credit)."""

    id: str
    field: str
    operator: str
    value: Any

    @classmethod
    def from_dict(cls, data: dict):
        return cls(
            id=_text(data.get('id')),
            field=data.get('field'),
            operator=data.get('operator'),
            value=data.get('value'),
        )

    def describe(self):
        return f"{self.field} {self.operator} {self.value}"


@dataclass
class AdjustmentRule:
    """A condition plus the change it applies to a record's amount or rate."""

    id: str
    field: str
    operator: str
    value: Any
    target: str
    type: str
    adjustment_value: Any

    @classmethod
    def from_dict(cls, data: dict):
        # Older schemes store the condition and action flat on the rule.
        condition = data.get('condition') or {
            'field': data.get('field'),
            'operator': data.get('operator'),
            'value': data.get('value'),
        }
        adjustment = data.get('adjustment') or {
            'target': data.get('adjustmentTarget'),
            'type': data.get('adjustmentType'),
            'value': data.get('adjustmentValue'),
        }
        return cls(
            id=_text(data.get('id')),
            field=condition.get('field'),
            operator=condition.get('operator'),
            value=condition.get('value'),
            target=adjustment.get('target'),
            type=adjustment.get('type'),
            adjustment_value=adjustment.get('value'),
        )

    def describe(self):
        return f"{self.field} {self.operator} {self.value}"


@dataclass
class CustomRule:
    """Declared custom rule. Only handed to the custom-rule hook."""

    id: str
    evaluation_level: str | None = None
    metric: str | None = None
    period: str | None = None
    threshold: Any = None
    group_by: str | None = None
    raw: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict):
        return cls(
            id=_text(data.get('id')),
            evaluation_level=data.get('evaluationLevel'),
            metric=data.get('metric'),
            period=data.get('period'),
            threshold=data.get('threshold'),
            group_by=data.get('groupBy'),
            raw=dict(data),
        )


@dataclass
class PayoutTier:
    """A marginal payout band; upper_bound None means unbounded."""

    id: str | None
    lower_bound: Decimal
    upper_bound: Decimal | None
    rate: Decimal
    is_percentage: bool = True

    @classmethod
    def from_dict(cls, data: dict):
        upper = data.get('to')
        return cls(
            id=_text(data.get('id')),
            lower_bound=_required_decimal(data.get('from'), 'payout tier "from"'),
            upper_bound=_required_decimal(upper, 'payout tier "to"', default=None),
            rate=_required_decimal(data.get('rate'), 'payout tier "rate"'),
            is_percentage=data.get('isPercentage') is not False,
        )

    def describe(self):
        upper = 'inf' if self.upper_bound is None else f'{self.upper_bound}'
        suffix = '%' if self.is_percentage else ''
        return f"[{self.lower_bound}-{upper}]@{self.rate}{suffix}"


@dataclass
class CreditSplit:
    """Share of an agent's payout credited to the manager at a hierarchy role."""

    id: str | None
    role: str
    percentage: Decimal

    @classmethod
    def from_dict(cls, data: dict):
        return cls(
            id=_text(data.get('id')),
            role=str(data.get('role') or '').strip(),
            percentage=_required_decimal(data.get('percentage'), 'credit split percentage'),
        )


@dataclass
class BaseMapping:
    source_file: str | None
    agent_field: str | None
    amount_field: str | None
    txn_id_field: str | None
    transaction_date_field: str | None

    @classmethod
    def from_dict(cls, data: dict):
        data = data or {}
        return cls(
            source_file=data.get('sourceFile'),
            agent_field=data.get('agentField'),
            amount_field=data.get('amountField'),
            txn_id_field=data.get('txnID'),
            transaction_date_field=data.get('transactionDateField'),
        )


@dataclass
class HierarchyMapping:
    """Column names of the credit hierarchy file."""

    agent_field: str
    level_field: str
    manager_field: str
    from_field: str
    to_field: str

    @classmethod
    def from_dict(cls, data: dict | None, config=Config):
        merged = dict(config.HIERARCHY_COLUMNS)
        merged.update({k: v for k, v in (data or {}).items() if v})
        return cls(
            agent_field=merged['agentField'],
            level_field=merged['levelField'],
            manager_field=merged['managerField'],
            from_field=merged['fromField'],
            to_field=merged['toField'],
        )


@dataclass
class Scheme:
    """A parsed scheme configuration."""

    name: str | None
    scheme_id: str | None
    effective_from: Any
    effective_to: Any
    base_mapping: BaseMapping
    qualification_rules: list[Rule] = field(default_factory=list)
    exclusion_rules: list[Rule] = field(default_factory=list)
    adjustment_rules: list[AdjustmentRule] = field(default_factory=list)
    custom_rules: list[CustomRule] = field(default_factory=list)
    payout_tiers: list[PayoutTier] = field(default_factory=list)
    credit_splits: list[CreditSplit] = field(default_factory=list)
    credit_hierarchy_file: str | None = None
    hierarchy_mapping: HierarchyMapping | None = None
    quota_amount: Decimal = ZERO
    field_catalog: dict[str, list[FieldMapping]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict, config=Config):
        kpi_config = data.get('kpiConfig') or {}
        catalog = {
            section: [FieldMapping.from_dict(f) for f in (kpi_config.get(section) or [])]
            for section in KPI_FIELD_SECTIONS
        }
        return cls(
            name=data.get('name'),
            scheme_id=_text(data.get('SchemeID')),
            effective_from=data.get('effectiveFrom'),
            effective_to=data.get('effectiveTo'),
            base_mapping=BaseMapping.from_dict(data.get('baseMapping')),
            qualification_rules=[Rule.from_dict(r) for r in data.get('qualificationRules') or []],
            exclusion_rules=[Rule.from_dict(r) for r in data.get('exclusionRules') or []],
            adjustment_rules=[AdjustmentRule.from_dict(r) for r in data.get('adjustmentRules') or []],
            custom_rules=[CustomRule.from_dict(r) for r in data.get('customRules') or []],
            payout_tiers=[PayoutTier.from_dict(t) for t in data.get('payoutTiers') or []],
            credit_splits=[CreditSplit.from_dict(s) for s in data.get('creditSplits') or []],
            credit_hierarchy_file=data.get('creditHierarchyFile') or None,
            hierarchy_mapping=HierarchyMapping.from_dict(data.get('hierarchyMapping'), config),
            quota_amount=_required_decimal(data.get('quotaAmount'), 'quotaAmount'),
            field_catalog=catalog,
        )


# =============================================================================
# RUN DATA
# =============================================================================


@dataclass(frozen=True)
class TransactionRecord:
    """One base-file row, read-only, with its synthetic record id."""

    record_id: str
    index: int
    agent_id: str | None
    transaction_id: Any
    fields: Mapping[str, Any]

    @classmethod
    def from_row(cls, row: dict, index: int, base_mapping: BaseMapping):
        agent_value = row.get(base_mapping.agent_field)
        agent_id = None if is_missing(agent_value) else str(agent_value).strip()
        return cls(
            record_id=f"{base_mapping.source_file}-{index}",
            index=index,
            agent_id=agent_id or None,
            transaction_id=row.get(base_mapping.txn_id_field),
            fields=MappingProxyType(dict(row)),
        )

    def get(self, column, default=None):
        return self.fields.get(column, default)


@dataclass(frozen=True)
class HierarchyRecord:
    agent_id: str
    level: str
    manager_id: str | None
    reports_from: date | None
    reports_to_end: date | None
    row_index: int


@dataclass
class LogEntry:
    """A structured audit entry; the run's only diagnostic channel to callers."""

    rule_type: RuleType
    message: str
    agent_id: str | None = None
    rule_id: str | None = None
    record_id: str | None = None
    transaction_id: Any = None
    level: LogLevel = LogLevel.INFO
    details: dict = field(default_factory=dict)
    timestamp: str = field(default_factory=utc_timestamp)

    def to_dict(self):
        entry = {
            'ruleType': str(self.rule_type),
            'level': str(self.level),
            'ruleId': self.rule_id,
            'agentId': self.agent_id,
            'message': self.message,
            'timestamp': self.timestamp,
            'details': dict(self.details),
        }
        if self.record_id is not None:
            entry['recordId'] = self.record_id
            entry['transactionId'] = self.transaction_id
        return entry


@dataclass
class ProcessedRecord:
    """A record after exclusion, adjustment and custom-rule processing."""

    record: TransactionRecord
    original_amount: Decimal | None
    rate_multiplier: Decimal
    adjusted_amount: Decimal
    is_excluded: bool = False
    exclusion_reason: str | None = None
    exclusion_rule_id: str | None = None
    adjustments_applied: list[str] = field(default_factory=list)
    custom_rule_applied: str | None = None

    @property
    def record_id(self):
        return self.record.record_id

    @property
    def agent_id(self):
        return self.record.agent_id

    def to_dict(self, places=2, rate_places=4):
        row = dict(self.record.fields)
        row.update({
            '_recordId': self.record.record_id,
            '_originalIndex': self.record.index,
            'agentId': self.record.agent_id,
            'transactionId': self.record.transaction_id,
            'originalAmount': (None if self.original_amount is None
                               else format_decimal(self.original_amount, places)),
            'rateMultiplier': format_decimal(self.rate_multiplier, rate_places),
            'adjustedAmount': format_decimal(self.adjusted_amount, places),
            'isExcluded': self.is_excluded,
            'exclusionReason': self.exclusion_reason,
            'adjustmentApplied': list(self.adjustments_applied),
            'customRuleApplied': self.custom_rule_applied,
        })
        return row


@dataclass
class DistributionRecord:
    """A share of one agent's payout credited to a manager."""

    from_agent: str
    to_agent: str
    role: str
    split_rule_id: str | None
    percentage: Decimal
    amount: Decimal
    base_payout: Decimal
    valid_from: Any = None
    valid_to: Any = None
    resolved_using: str | None = None
    hierarchy_row: int | None = None
    timestamp: str = field(default_factory=utc_timestamp)

    def to_dict(self, places=2, rate_places=4):
        return {
            'fromAgent': self.from_agent,
            'toAgent': self.to_agent,
            'role': self.role,
            'splitRuleId': self.split_rule_id,
            'percentage': format_decimal(self.percentage, rate_places),
            'amount': format_decimal(self.amount, places),
            'basePayout': format_decimal(self.base_payout, places),
            'validFrom': None if self.valid_from is None else str(self.valid_from),
            'validTo': None if self.valid_to is None else str(self.valid_to),
            'resolvedUsing': self.resolved_using,
            'hierarchyRow': self.hierarchy_row,
            'timestamp': self.timestamp,
        }


@dataclass
class AgentResult:
    agent_id: str
    records: list[ProcessedRecord] = field(default_factory=list)
    total_base_amount: Decimal = ZERO
    total_adjusted_amount: Decimal = ZERO
    custom_delta: Decimal = ZERO
    qualified: bool = False
    base_payout: Decimal = ZERO
    logs: list[LogEntry] = field(default_factory=list)
    distributions_initiated: list[DistributionRecord] = field(default_factory=list)
    distributions_received: list[DistributionRecord] = field(default_factory=list)

    @property
    def credited_records(self):
        return [r for r in self.records if not r.is_excluded]


@dataclass
class SchemeResult:
    """Everything a run produces. to_dict() gives the caller-facing shape."""

    agents: dict[str, AgentResult]
    agent_payouts: dict[str, str]
    rule_hit_logs: dict[str, list[LogEntry]]
    credit_distributions: dict[str, list[DistributionRecord]]
    raw_record_level_data: list[ProcessedRecord]
    run_logs: list[LogEntry] = field(default_factory=list)
    unassigned_records: list[TransactionRecord] = field(default_factory=list)
    decimal_places: int = 2
    rate_decimal_places: int = 4

    def to_dict(self):
        places, rate_places = self.decimal_places, self.rate_decimal_places
        return {
            'agentPayouts': dict(self.agent_payouts),
            'ruleHitLogs': {
                agent_id: [entry.to_dict() for entry in entries]
                for agent_id, entries in self.rule_hit_logs.items()
            },
            'creditDistributions': {
                manager_id: [record.to_dict(places, rate_places) for record in records]
                for manager_id, records in self.credit_distributions.items()
            },
            'rawRecordLevelData': [r.to_dict(places, rate_places) for r in self.raw_record_level_data],
            'runLogs': [entry.to_dict() for entry in self.run_logs],
            'unassignedRecords': [r.record_id for r in self.unassigned_records],
        }
