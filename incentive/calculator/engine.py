# ==============================================================================
# incentive/calculator/engine.py
# ------------------------------------------------------------------------------
# Orchestrates one scheme run:
#   Pass 1  select the base rows inside the run window and group them by agent
#   Pass 2  per agent: exclusions/adjustments, qualification, tiered payout and
#           credit splits
#   Pass 3  merge credit distributions into the managers' ledgers and assemble
#           the result
# ==============================================================================

import logging
from concurrent.futures import ThreadPoolExecutor

from config import Config
from incentive.calculator.audit import RunLog
from incentive.calculator.credits import CreditDistributor
from incentive.calculator.fields import FieldMapper
from incentive.calculator.filtering import filter_and_group_records
from incentive.calculator.hierarchy import HierarchyResolver
from incentive.calculator.loader import normalize_uploaded_file
from incentive.calculator.qualification import QualificationEngine
from incentive.calculator.records import RecordProcessor
from incentive.calculator.schema import RuleType
from incentive.calculator.tiers import calculate_tiered_payout
from incentive.calculator.validator import check_run_inputs
from incentive.calculator.values import format_decimal, parse_date
from incentive.models import Scheme, SchemeResult


class RunContext:
    """
    Everything one run owns. Built by run_scheme, handed to each stage and
    dropped when the result has been assembled.
    """

    def __init__(self, scheme, config, effective_from, as_of, columns, custom_rule_hook=None):
        self.scheme = scheme
        self.config = config
        self.effective_from = effective_from
        self.as_of = as_of
        self.run_log = RunLog()
        self.field_mapper = FieldMapper(scheme, columns)
        self.processor = RecordProcessor(scheme, self.field_mapper, config, custom_rule_hook)
        self.qualification = QualificationEngine(scheme, self.field_mapper, config)
        self.resolver = None
        self.distributor = None

    def load_hierarchy(self, uploaded_files):
        hierarchy_file = self.scheme.credit_hierarchy_file
        if hierarchy_file:
            entry = (uploaded_files or {}).get(hierarchy_file)
            table = normalize_uploaded_file(entry) if entry is not None else None
            if table is None:
                self.run_log.warning(f'Credit hierarchy file "{hierarchy_file}" specified but not found in '
                                     f'uploadedFiles. Credit splits may fail.', hierarchyFile=hierarchy_file)
            else:
                self.resolver = HierarchyResolver.from_rows(table[0], self.scheme.hierarchy_mapping,
                                                            self.effective_from, self.as_of, self.run_log)
        self.distributor = CreditDistributor(self.scheme, self.resolver, self.config)

    def process_agent(self, agent_id, records):
        """
        Pass 2 for one agent. Touches nothing outside its own AgentResult.

        Returns:
            tuple: (AgentResult, list of (target agent id, DistributionRecord))
        """
        log = RunLog(agent_id=agent_id)
        agent, distributions = self._run_agent(agent_id, records, log)
        agent.logs = log.entries
        return agent, distributions

    def _run_agent(self, agent_id, records, log):
        agent = self.processor.process_agent(agent_id, records, log)

        qualified = self.qualification.evaluate(agent, log)
        if qualified:
            qualified = self.qualification.check_quota(agent, log)
        agent.qualified = qualified

        if not qualified:
            logging.info(f"Agent {agent_id}: No payout due to qualification failure or zero amount.")
            return agent, []

        agent.base_payout = calculate_tiered_payout(agent.total_adjusted_amount, self.scheme.payout_tiers)
        places = self.config.DECIMAL_PLACES
        log.log(RuleType.PAYOUT,
                f"Base payout {format_decimal(agent.base_payout, places)} on credited amount "
                f"{format_decimal(agent.total_adjusted_amount, places)}.",
                baseAmount=format_decimal(agent.total_adjusted_amount, places),
                payoutAmount=format_decimal(agent.base_payout, places),
                tiersUsed=', '.join(t.describe() for t in self.scheme.payout_tiers))
        logging.info(f"Agent {agent_id}: Base payout calculated = {format_decimal(agent.base_payout, places)}")

        return agent, self.distributor.distribute(agent, log)


def run_scheme(scheme, uploaded_files, run_as_of_date, config_class=Config, custom_rule_hook=None):
    """
    Executes an incentive scheme over a fixed dataset.

    Args:
        scheme (dict | Scheme): The scheme configuration.
        uploaded_files (dict): filename -> {'data': rows, 'columns': [...]}
            (a DataFrame is accepted in place of the rows).
        run_as_of_date (str): YYYY-MM-DD, inclusive upper bound of the run window.
        config_class (class): Engine configuration.
        custom_rule_hook (callable): Receives (records, custom_rules), returns a
            Decimal delta. Defaults to a hook that changes nothing.

    Returns:
        SchemeResult: Payouts, audit logs, credit distributions and processed records.

    Raises:
        SchemeExecutionError: When the scheme or the inputs make a run impossible.
    """
    logging.info("=" * 80)
    logging.info("STARTING SCHEME EXECUTION")
    logging.info("=" * 80)

    if not isinstance(scheme, Scheme):
        scheme = Scheme.from_dict(scheme or {}, config_class)
    rows, columns, effective_from, as_of = check_run_inputs(scheme, uploaded_files, run_as_of_date)
    logging.info(f"Running scheme {scheme.name or scheme.scheme_id or '(unnamed)'} as of {as_of} "
                 f"(effective from {effective_from}), {len(rows)} base rows.")

    known_columns = set(columns)
    if rows:
        known_columns.update(rows[0].keys())
    context = RunContext(scheme, config_class, effective_from, as_of, known_columns, custom_rule_hook)
    run_log = context.run_log

    date_field = scheme.base_mapping.transaction_date_field
    if not date_field or date_field not in known_columns:
        run_log.warning(f"Cannot find transaction date field '{date_field}' in {scheme.base_mapping.source_file}. "
                        f"Records without a readable date are dropped.", dateField=date_field)
    if not scheme.payout_tiers:
        run_log.warning("Scheme has no payoutTiers defined. All payouts will be zero.")
    effective_to = parse_date(scheme.effective_to)
    if effective_to is not None and as_of > effective_to:
        run_log.warning(f"Run date {as_of} is after the scheme's effectiveTo {effective_to}; "
                        f"records up to the run date are still included.", effectiveTo=str(effective_to))

    context.load_hierarchy(uploaded_files)

    logging.info("--- Starting Pass 1: Selecting records and grouping by agent. ---")
    filtered = filter_and_group_records(rows, scheme.base_mapping, effective_from, as_of, run_log)
    logging.info("--- Pass 1 Finished. ---")

    logging.info("--- Starting Pass 2: Processing agents... ---")
    groups = list(filtered.groups.items())
    workers = max(1, int(config_class.MAX_WORKERS or 1))
    if workers > 1 and len(groups) > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            outcomes = list(pool.map(lambda item: context.process_agent(*item), groups))
    else:
        outcomes = [context.process_agent(agent_id, records) for agent_id, records in groups]
    logging.info("--- Pass 2 Finished. ---")

    logging.info("--- Starting Pass 3: Merging credit distributions... ---")
    result = _assemble_result(outcomes, run_log, filtered.unassigned, config_class)
    logging.info("--- Pass 3 Finished. ---")
    logging.info(f"Scheme processing complete: {len(result.agents)} agents, "
                 f"{sum(1 for a in result.agents.values() if a.qualified)} qualified.")
    return result


def _assemble_result(outcomes, run_log, unassigned, config):
    places = config.DECIMAL_PLACES
    agents = [agent for agent, _ in outcomes]
    by_id = {agent.agent_id: agent for agent in agents}
    agent_payouts, rule_hit_logs, credit_distributions, raw_records = {}, {}, {}, []

    for agent in agents:
        agent_payouts[agent.agent_id] = format_decimal(agent.base_payout, places)
        if agent.logs:
            rule_hit_logs[agent.agent_id] = agent.logs
        raw_records.extend(agent.records)

    # Distributions are merged here, in agent order, so the managers' ledgers
    # only ever have one writer.
    for _, distributions in outcomes:
        for target, distribution in distributions:
            credit_distributions.setdefault(target, []).append(distribution)
            if target in by_id:
                by_id[target].distributions_received.append(distribution)

    return SchemeResult(
        agents=by_id,
        agent_payouts=agent_payouts,
        rule_hit_logs=rule_hit_logs,
        credit_distributions=credit_distributions,
        raw_record_level_data=raw_records,
        run_logs=run_log.entries,
        unassigned_records=list(unassigned),
        decimal_places=places,
        rate_decimal_places=config.RATE_DECIMAL_PLACES,
    )
