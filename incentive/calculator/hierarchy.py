# ==============================================================================
# incentive/calculator/hierarchy.py
# ------------------------------------------------------------------------------
# Looks up an agent's manager at a hierarchy level, valid for the run window.
# ==============================================================================

import logging
from dataclasses import dataclass, field

from incentive.calculator.values import is_missing, parse_date
from incentive.models import HierarchyMapping, HierarchyRecord


def _key(agent_id, level):
    return str(agent_id).strip().lower(), str(level).strip().upper()


def _blank(value):
    return is_missing(value) or str(value).strip() == ''


@dataclass
class ManagerLookup:
    """Outcome of one lookup: the chosen record and every valid candidate."""

    record: HierarchyRecord | None = None
    candidates: list = field(default_factory=list)

    @property
    def manager_id(self):
        return self.record.manager_id if self.record is not None else None

    @property
    def is_ambiguous(self):
        return len({c.manager_id for c in self.candidates}) > 1


def build_hierarchy_records(rows, mapping, log=None):
    """
    Reads hierarchy rows into HierarchyRecord objects, in input order.

    Rows without an agent, level, manager or a readable start date are
    skipped. A blank end date means the reporting line is open-ended; an end
    date that is present but unreadable skips the row.
    """
    records = []
    for index, row in enumerate(rows or []):
        agent_id = row.get(mapping.agent_field)
        level = row.get(mapping.level_field)
        manager_id = row.get(mapping.manager_field)
        raw_from, raw_to = row.get(mapping.from_field), row.get(mapping.to_field)
        reports_from = parse_date(raw_from)
        reports_to_end = None if _blank(raw_to) else parse_date(raw_to)

        problem = None
        if _blank(agent_id) or _blank(level) or _blank(manager_id):
            problem = 'missing agent, level or manager'
        elif reports_from is None:
            problem = f"unreadable start date {raw_from!r}"
        elif not _blank(raw_to) and reports_to_end is None:
            problem = f"unreadable end date {raw_to!r}"

        if problem:
            if log is not None:
                log.warning(f"Skipping hierarchy row {index}: {problem}.", hierarchyRow=index)
            continue

        records.append(HierarchyRecord(
            agent_id=str(agent_id).strip(),
            level=str(level).strip(),
            manager_id=str(manager_id).strip(),
            reports_from=reports_from,
            reports_to_end=reports_to_end,
            row_index=index,
        ))
    return records


class HierarchyResolver:
    """
    Indexes hierarchy records by (agent, level) for the run window
    [effective_from, as_of].
    """

    def __init__(self, records, effective_from, as_of):
        self.effective_from = parse_date(effective_from)
        self.as_of = parse_date(as_of)
        self._index = {}
        for record in records:
            self._index.setdefault(_key(record.agent_id, record.level), []).append(record)

    @classmethod
    def from_rows(cls, rows, mapping, effective_from, as_of, log=None):
        records = build_hierarchy_records(rows, mapping, log)
        logging.info(f"Loaded {len(records)} hierarchy records.")
        return cls(records, effective_from, as_of)

    def _overlaps(self, record):
        # The reporting line must be valid during some part of the run window.
        if record.reports_from > self.as_of:
            return False
        return record.reports_to_end is None or record.reports_to_end >= self.effective_from

    def lookup(self, agent_id, level):
        if _blank(agent_id) or _blank(level):
            return ManagerLookup()
        candidates = [r for r in self._index.get(_key(agent_id, level), []) if self._overlaps(r)]
        return ManagerLookup(record=candidates[0] if candidates else None, candidates=candidates)

    def find_manager(self, agent_id, level):
        return self.lookup(agent_id, level).manager_id


def find_manager(agent_id, level, hierarchy_records, effective_from, as_of):
    """
    Manager id of agent_id at level, valid for [effective_from, as_of], or None.

    hierarchy_records may be HierarchyRecord objects or raw rows using the
    default column names. The first valid match in input order wins.
    """
    records = list(hierarchy_records or [])
    if records and not isinstance(records[0], HierarchyRecord):
        records = build_hierarchy_records(records, HierarchyMapping.from_dict(None))
    return HierarchyResolver(records, effective_from, as_of).find_manager(agent_id, level)
