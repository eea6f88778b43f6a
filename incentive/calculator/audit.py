# ==============================================================================
# incentive/calculator/audit.py
# ------------------------------------------------------------------------------
# Structured, append-only log sinks. Every stage writes its audit trail here
# instead of printing; the entries are returned to the caller with the result.
# Each entry is also mirrored to the standard logger.
# ==============================================================================

import logging

from incentive.calculator.schema import LogLevel, RuleType
from incentive.models import LogEntry

_PY_LEVELS = {
    LogLevel.INFO: logging.DEBUG,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


class RunLog:
    """An ordered list of LogEntry objects with a few bound defaults."""

    def __init__(self, agent_id=None, entries=None):
        self.agent_id = agent_id
        self.entries = entries if entries is not None else []

    def __len__(self):
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def log(self, rule_type, message, level=LogLevel.INFO, rule_id=None, record=None,
            agent_id=None, **details):
        """
        Appends an entry and mirrors it to the standard logger.

        Args:
            rule_type (RuleType): What kind of rule or anomaly produced the entry.
            message (str): Human-readable description.
            level (LogLevel): Severity.
            rule_id (str): Id of the rule involved, if any.
            record (TransactionRecord): Record the entry is about, if any.
            agent_id (str): Overrides the sink's default agent id.
            **details: Free-form structured payload.

        Returns:
            LogEntry: The appended entry.
        """
        if agent_id is None:
            agent_id = self.agent_id
            if agent_id is None and record is not None:
                agent_id = record.agent_id
        entry = LogEntry(
            rule_type=rule_type,
            message=message,
            agent_id=agent_id,
            rule_id=rule_id,
            record_id=record.record_id if record is not None else None,
            transaction_id=record.transaction_id if record is not None else None,
            level=level,
            details=details,
        )
        self.entries.append(entry)
        logging.log(_PY_LEVELS.get(level, logging.INFO), f"[{rule_type}] {agent_id or '-'}: {message}")
        return entry

    def warning(self, message, **kwargs):
        return self.log(RuleType.WARNING, message, level=LogLevel.WARNING, **kwargs)

    def data_error(self, message, **kwargs):
        return self.log(RuleType.DATA_ERROR, message, level=LogLevel.ERROR, **kwargs)

    def error(self, message, **kwargs):
        return self.log(RuleType.ERROR, message, level=LogLevel.ERROR, **kwargs)

    def of_type(self, rule_type):
        return [e for e in self.entries if e.rule_type == rule_type]
