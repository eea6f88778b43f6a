# ==============================================================================
# incentive/calculator/filtering.py
# ------------------------------------------------------------------------------
# Selects the base-file rows that fall inside the run window and groups them
# by agent.
# ==============================================================================

import logging
from dataclasses import dataclass, field

from incentive.calculator.values import parse_date
from incentive.models import TransactionRecord


@dataclass
class FilteredRecords:
    groups: dict = field(default_factory=dict)
    unassigned: list = field(default_factory=list)
    out_of_range: int = 0
    undated: int = 0

    @property
    def record_count(self):
        return sum(len(records) for records in self.groups.values())


def filter_and_group_records(rows, base_mapping, effective_from, as_of, log):
    """
    Keeps rows dated within [effective_from, as_of] and groups them by agent id.

    Args:
        rows (list): Base-file rows as dicts, in file order.
        base_mapping (BaseMapping): Names the date and agent columns.
        effective_from (date): Inclusive lower bound.
        as_of (date): Inclusive upper bound.
        log (RunLog): Run-level sink for dropped rows.

    Returns:
        FilteredRecords: Agent groups in first-seen order plus the unassigned bucket.
    """
    result = FilteredRecords()
    date_field = base_mapping.transaction_date_field

    for index, row in enumerate(rows):
        record = TransactionRecord.from_row(row, index, base_mapping)
        raw_date = row.get(date_field) if date_field else None
        txn_date = parse_date(raw_date)

        if txn_date is None:
            result.undated += 1
            log.warning(f"Skipping record due to unparseable or missing date: {raw_date!r}",
                        record=record, dateField=date_field)
            continue

        if txn_date < effective_from or txn_date > as_of:
            result.out_of_range += 1
            continue

        if record.agent_id is None:
            result.unassigned.append(record)
            log.warning(f"Record missing agent ID in field '{base_mapping.agent_field}'",
                        record=record, agentField=base_mapping.agent_field)
            continue

        result.groups.setdefault(record.agent_id, []).append(record)

    logging.info(f"Found {result.record_count} records within {effective_from}..{as_of} "
                 f"for {len(result.groups)} agents "
                 f"({result.out_of_range} out of range, {result.undated} undated, "
                 f"{len(result.unassigned)} unassigned).")
    return result
