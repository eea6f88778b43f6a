# ==============================================================================
# incentive/calculator/credits.py
# ------------------------------------------------------------------------------
# Splits a qualified agent's base payout across managers up the hierarchy.
# The distributor never writes to another agent's ledger itself: it returns
# (target agent, DistributionRecord) pairs for the engine to merge.
# ==============================================================================

import re

from config import Config
from incentive.calculator.schema import LogLevel, RuleType
from incentive.calculator.values import HUNDRED, ZERO, format_decimal
from incentive.models import DistributionRecord

_DEPTH_ROLE = re.compile(r'^([A-Za-z]+)(\d+)$')

# Depth of the immediate-manager role, e.g. "L2" for the "L" prefix.
IMMEDIATE_MANAGER_DEPTH = 2


class CreditDistributor:
    """
    Args:
        scheme (Scheme): Supplies the credit splits and hierarchy file name.
        resolver (HierarchyResolver): None when the run has no hierarchy data.
        config (class): Engine configuration.
    """

    def __init__(self, scheme, resolver, config=Config):
        self.scheme = scheme
        self.resolver = resolver
        self.config = config

    def resolve_role(self, agent_id, role, log, split_id=None):
        """
        Finds the hierarchy record of the manager holding `role` for agent_id.

        A record declared for (agent, role) is used directly. Otherwise a
        depth role such as "L3" is reached by resolving "L2" and then that
        manager's own immediate manager.

        Returns:
            tuple: (HierarchyRecord or None, failure message or None)
        """
        if self.resolver is None:
            return None, f"No hierarchy data available to resolve role {role}."

        lookup = self.resolver.lookup(agent_id, role)
        if lookup.record is not None:
            if lookup.is_ambiguous:
                managers = [c.manager_id for c in lookup.candidates]
                log.warning(f"Multiple valid {role} managers for agent {agent_id} ({', '.join(managers)}); "
                            f"using the first listed, {lookup.manager_id}.",
                            rule_id=split_id, candidates=managers, role=role,
                            hierarchyRows=[c.row_index for c in lookup.candidates])
            return lookup.record, None

        match = _DEPTH_ROLE.match(role or '')
        if match and int(match.group(2)) > IMMEDIATE_MANAGER_DEPTH:
            prefix, depth = match.group(1), int(match.group(2))
            parent, failure = self.resolve_role(agent_id, f"{prefix}{depth - 1}", log, split_id)
            if parent is None:
                return None, failure
            immediate = f"{prefix}{IMMEDIATE_MANAGER_DEPTH}"
            step = self.resolver.lookup(parent.manager_id, immediate)
            if step.record is None:
                return None, (f"Could not find {immediate} manager of {parent.manager_id} "
                              f"while resolving role {role} for agent {agent_id}.")
            return step.record, None

        return None, f"Could not find valid Manager for role {role} of agent {agent_id}."

    def distribute(self, agent, log):
        """
        Computes the credit splits of one agent.

        Returns:
            list: (target agent id, DistributionRecord) pairs in split order.
        """
        base_payout = agent.base_payout
        if not agent.qualified or base_payout <= ZERO or not self.scheme.credit_splits:
            return []

        places, rate_places = self.config.DECIMAL_PLACES, self.config.RATE_DECIMAL_PLACES
        distributions = []
        for split in self.scheme.credit_splits:
            if split.percentage <= ZERO:
                continue

            record, failure = self.resolve_role(agent.agent_id, split.role, log, split.id)
            if record is None:
                log.log(RuleType.CREDIT_SPLIT,
                        f"{failure} Credit split {split.id} skipped.",
                        level=LogLevel.WARNING, rule_id=split.id, role=split.role)
                continue

            amount = base_payout * split.percentage / HUNDRED
            if amount <= ZERO:
                continue

            distribution = DistributionRecord(
                from_agent=agent.agent_id,
                to_agent=record.manager_id,
                role=split.role,
                split_rule_id=split.id,
                percentage=split.percentage,
                amount=amount,
                base_payout=base_payout,
                valid_from=record.reports_from,
                valid_to=record.reports_to_end,
                resolved_using=self.scheme.credit_hierarchy_file,
                hierarchy_row=record.row_index,
            )
            distributions.append((record.manager_id, distribution))
            agent.distributions_initiated.append(distribution)
            log.log(RuleType.CREDIT_SPLIT,
                    f"Distributed {format_decimal(amount, places)} ({split.percentage}%) "
                    f"to {split.role} Manager {record.manager_id}",
                    rule_id=split.id, **distribution.to_dict(places, rate_places))
        return distributions
