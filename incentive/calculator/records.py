# ==============================================================================
# incentive/calculator/records.py
# ------------------------------------------------------------------------------
# Record-level processing: amount parsing, exclusion rules, adjustment rules
# and the custom-rule hook. Produces ProcessedRecord copies; the input records
# are never modified.
# ==============================================================================

import logging

from config import Config
from incentive.calculator.conditions import ConditionEvaluator
from incentive.calculator.schema import AdjustmentTarget, AdjustmentType, RuleType
from incentive.calculator.values import HUNDRED, ONE, ZERO, format_decimal, parse_decimal
from incentive.models import AgentResult, ProcessedRecord


def noop_custom_rule_hook(records, custom_rules):
    """
    Default custom-rule hook.

    A hook receives the agent's credited records and the scheme's custom rules
    and returns a Decimal delta that is added to the agent's credited amount.
    """
    return ZERO


class RecordProcessor:
    """
    Applies a scheme's exclusion and adjustment rules to an agent's records.

    Args:
        scheme (Scheme): The parsed scheme.
        field_mapper (FieldMapper): Resolves rule fields to columns.
        config (class): Engine configuration.
        custom_rule_hook (callable): See noop_custom_rule_hook.
    """

    def __init__(self, scheme, field_mapper, config=Config, custom_rule_hook=None):
        self.scheme = scheme
        self.config = config
        self.amount_field = scheme.base_mapping.amount_field
        self.custom_rule_hook = custom_rule_hook or noop_custom_rule_hook
        self.exclusion_rules = [(rule, field_mapper.resolve(rule.field)) for rule in scheme.exclusion_rules]
        self.adjustment_rules = [(rule, field_mapper.resolve(rule.field)) for rule in scheme.adjustment_rules]

    def _warn_unresolved(self, log):
        for kind, rules in (('exclusion', self.exclusion_rules), ('adjustment', self.adjustment_rules)):
            for rule, mapping in rules:
                if mapping is None:
                    log.warning(f"Skipping {kind} rule {rule.id}: Cannot find source field for '{rule.field}'.",
                                rule_id=rule.id, field=rule.field)

    def process_agent(self, agent_id, records, log):
        """
        Processes every record of one agent.

        Returns:
            AgentResult: With records and base/adjusted totals filled in. The
            custom-rule delta is already included in total_adjusted_amount.
        """
        agent = AgentResult(agent_id=agent_id)
        self._warn_unresolved(log)
        evaluator = ConditionEvaluator(log, self.config.IN_LIST_DELIMITER)

        for record in records:
            processed = self.process_record(record, log, evaluator)
            agent.records.append(processed)
            if processed.original_amount is not None:
                agent.total_base_amount += processed.original_amount
            agent.total_adjusted_amount += processed.adjusted_amount

        if self.scheme.custom_rules:
            agent.custom_delta = self._run_custom_hook(agent, log)
            agent.total_adjusted_amount += agent.custom_delta

        logging.info(f"Agent {agent_id}: {len(agent.credited_records)}/{len(agent.records)} records credited, "
                     f"base={format_decimal(agent.total_base_amount)}, "
                     f"credited={format_decimal(agent.total_adjusted_amount)}")
        return agent

    def process_record(self, record, log, evaluator=None):
        """Runs one record through amount parsing, exclusions and adjustments."""
        if evaluator is None:
            evaluator = ConditionEvaluator(log, self.config.IN_LIST_DELIMITER)

        raw_amount = record.get(self.amount_field)
        original_amount = parse_decimal(raw_amount)
        if original_amount is None:
            reason = f"Invalid amount value: {raw_amount!r}"
            log.data_error(reason, record=record, amountField=self.amount_field)
            return ProcessedRecord(record=record, original_amount=None, rate_multiplier=ONE,
                                   adjusted_amount=ZERO, is_excluded=True, exclusion_reason=reason)

        # --- Exclusions: the first matching rule wins ---
        for rule, mapping in self.exclusion_rules:
            if mapping is None:
                continue
            record_value = record.get(mapping.source_field)
            if evaluator.evaluate(record_value, rule.operator, rule.value, mapping.data_type,
                                  rule_id=rule.id, record=record):
                reason = f"Excluded by rule {rule.id} ({rule.field} {rule.operator} {rule.value})"
                log.log(RuleType.EXCLUSION, reason, rule_id=rule.id, record=record,
                        recordValue=str(record_value))
                return ProcessedRecord(record=record, original_amount=original_amount, rate_multiplier=ONE,
                                       adjusted_amount=ZERO, is_excluded=True, exclusion_reason=reason,
                                       exclusion_rule_id=rule.id)

        # --- Adjustments: conditions see the original fields, effects compose ---
        current_amount = original_amount
        rate_multiplier = ONE
        applied = []
        for rule, mapping in self.adjustment_rules:
            if mapping is None:
                continue
            record_value = record.get(mapping.source_field)
            if not evaluator.evaluate(record_value, rule.operator, rule.value, mapping.data_type,
                                      rule_id=rule.id, record=record):
                continue

            value = parse_decimal(rule.adjustment_value)
            if value is None:
                log.data_error(f"Adjustment rule {rule.id} has a non-numeric value {rule.adjustment_value!r}.",
                               rule_id=rule.id, record=record)
                continue

            target = AdjustmentTarget.parse(rule.target)
            kind = AdjustmentType.parse(rule.type)
            before_amount, before_multiplier = current_amount, rate_multiplier

            if target is AdjustmentTarget.AMOUNT and kind is AdjustmentType.PERCENTAGE:
                current_amount = current_amount + current_amount * value / HUNDRED
                message = f"Amount adjusted by {value}% to {format_decimal(current_amount)}"
            elif target is AdjustmentTarget.AMOUNT and kind is AdjustmentType.FIXED:
                current_amount = current_amount + value
                message = f"Amount adjusted by fixed {format_decimal(value)} to {format_decimal(current_amount)}"
            elif target is AdjustmentTarget.RATE and kind is AdjustmentType.PERCENTAGE:
                rate_multiplier = rate_multiplier * value / HUNDRED
                message = (f"Rate multiplier changed by {value}% to "
                           f"{format_decimal(rate_multiplier, self.config.RATE_DECIMAL_PLACES)}")
            elif target is AdjustmentTarget.RATE and kind is AdjustmentType.FIXED:
                rate_multiplier = rate_multiplier * value
                message = (f"Rate multiplier adjusted by factor {value} to "
                           f"{format_decimal(rate_multiplier, self.config.RATE_DECIMAL_PLACES)}")
            else:
                log.warning(f"Adjustment rule {rule.id}: unknown adjustment target/type {rule.target}/{rule.type}",
                            rule_id=rule.id, record=record, target=str(rule.target), type=str(rule.type))
                continue

            applied.append(rule.id)
            log.log(RuleType.ADJUSTMENT, f"Adjustment Rule {rule.id} triggered: {message}",
                    rule_id=rule.id, record=record,
                    amountBefore=format_decimal(before_amount), amountAfter=format_decimal(current_amount),
                    multiplierBefore=format_decimal(before_multiplier, self.config.RATE_DECIMAL_PLACES),
                    multiplierAfter=format_decimal(rate_multiplier, self.config.RATE_DECIMAL_PLACES))

        adjusted_amount = current_amount * rate_multiplier
        logging.debug("\n".join([
            f"--- Audit Log for Record {record.record_id} (txn {record.transaction_id}) ---",
            f"  - Original Amount : {format_decimal(original_amount)}",
            f"  - Adjustments     : {', '.join(str(a) for a in applied) or 'none'}",
            f"  - Rate Multiplier : {format_decimal(rate_multiplier, self.config.RATE_DECIMAL_PLACES)}",
            f"  - Adjusted Amount : {format_decimal(adjusted_amount)}",
        ]))

        return ProcessedRecord(
            record=record,
            original_amount=original_amount,
            rate_multiplier=rate_multiplier,
            adjusted_amount=adjusted_amount,
            adjustments_applied=applied,
            custom_rule_applied=('Custom rules evaluated by the custom rule hook.'
                                 if self.scheme.custom_rules else None),
        )

    def _run_custom_hook(self, agent, log):
        credited = [p.record for p in agent.credited_records]
        raw_delta = self.custom_rule_hook(credited, list(self.scheme.custom_rules))
        delta = parse_decimal(raw_delta)
        if delta is None:
            log.data_error(f"Custom rule hook returned a non-numeric delta {raw_delta!r}; using 0.")
            delta = ZERO
        log.log(RuleType.CUSTOM,
                f"Custom rule hook executed for {len(self.scheme.custom_rules)} rule(s), "
                f"delta {format_decimal(delta)}.",
                ruleIds=[rule.id for rule in self.scheme.custom_rules],
                recordCount=len(credited), delta=format_decimal(delta))
        return delta
