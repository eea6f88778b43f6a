# ==============================================================================
# incentive/calculator/qualification.py
# ------------------------------------------------------------------------------
# Agent-level qualification: decides whether an agent gets any payout at all.
# ==============================================================================

from config import Config
from incentive.calculator.conditions import ConditionEvaluator
from incentive.calculator.schema import Aggregation, DataType, EvaluationLevel, LogLevel, RuleType
from incentive.calculator.values import ZERO, format_decimal, parse_decimal


class QualificationEngine:
    """
    Evaluates the scheme's qualification rules in declared order.

    PerRecord rules pass when at least one credited record satisfies them.
    Agent rules aggregate a field over the credited records (Sum or Count)
    and compare the aggregate once. The first failing rule disqualifies.
    """

    def __init__(self, scheme, field_mapper, config=Config):
        self.scheme = scheme
        self.config = config
        self.field_mapper = field_mapper
        self.amount_field = scheme.base_mapping.amount_field

    def evaluate(self, agent, log):
        if agent.total_adjusted_amount <= ZERO:
            log.log(RuleType.QUALIFICATION,
                    f"Skipping payout calculation (zero credited amount "
                    f"{format_decimal(agent.total_adjusted_amount)}).",
                    matched=False, zeroCredit=True)
            return False

        evaluator = ConditionEvaluator(log, self.config.IN_LIST_DELIMITER)
        credited = agent.credited_records

        for rule in self.scheme.qualification_rules:
            mapping = self.field_mapper.resolve(rule.field)
            if mapping is None:
                log.warning(f"Skipping qualification rule {rule.id}: Cannot find source field for '{rule.field}'.",
                            rule_id=rule.id, field=rule.field)
                continue

            if mapping.evaluation_level is EvaluationLevel.PER_RECORD:
                matched = any(
                    evaluator.evaluate(p.record.get(mapping.source_field), rule.operator, rule.value,
                                       mapping.data_type, rule_id=rule.id, record=p.record)
                    for p in credited
                )
                evaluation = f"At least one record matched {rule.describe()}: {matched}"
                evaluated_value = str(matched)
            else:
                aggregate = self._aggregate(mapping, rule, agent, log)
                if aggregate is None:
                    continue
                matched = evaluator.evaluate(aggregate, rule.operator, rule.value, DataType.NUMBER,
                                             rule_id=rule.id)
                evaluation = f"{mapping.aggregation} of {mapping.source_field} = {aggregate}"
                evaluated_value = str(aggregate)

            log.log(RuleType.QUALIFICATION,
                    f"Qualification rule {rule.id} {'passed' if matched else 'failed'}: {evaluation}",
                    rule_id=rule.id, matched=matched, condition=rule.describe(),
                    evaluation=evaluation, evaluatedValue=evaluated_value)

            if not matched:
                log.log(RuleType.QUALIFICATION, f"Agent disqualified by rule {rule.id}.",
                        rule_id=rule.id, matched=False)
                return False

        return True

    def _aggregate(self, mapping, rule, agent, log):
        credited = agent.credited_records
        if mapping.aggregation is Aggregation.COUNT:
            return len(credited)

        if mapping.aggregation is not Aggregation.SUM:
            log.error(f"Unsupported aggregation {mapping.aggregation} for qualification rule {rule.id}; rule skipped.",
                      rule_id=rule.id, aggregation=str(mapping.aggregation))
            return None

        # The credited total already carries adjustments and the custom-rule delta.
        if mapping.source_field == self.amount_field:
            return agent.total_adjusted_amount

        total = ZERO
        for processed in credited:
            raw = processed.record.get(mapping.source_field)
            value = parse_decimal(raw)
            if value is None:
                log.data_error(f"Could not sum value {raw!r} for record {processed.record_id}",
                               rule_id=rule.id, record=processed.record)
                continue
            total += value
        return total

    def check_quota(self, agent, log):
        """Quota gate: with quotaAmount > 0 the credited total must reach it."""
        quota = self.scheme.quota_amount
        if quota <= ZERO:
            return True
        met = agent.total_adjusted_amount >= quota
        verdict = 'meets' if met else 'is less than'
        log.log(RuleType.QUOTA,
                f"Total adjusted amount {format_decimal(agent.total_adjusted_amount)} {verdict} "
                f"quota {format_decimal(quota)}.{'' if met else ' No payout.'}",
                level=LogLevel.INFO, matched=met, quota=format_decimal(quota))
        return met
