# ==============================================================================
# incentive/calculator/report.py
# ------------------------------------------------------------------------------
# Per-agent summaries of a finished run, as dicts or as a pandas DataFrame.
# ==============================================================================

import logging

import pandas as pd

from incentive.calculator.schema import LogLevel
from incentive.calculator.values import ZERO

MONEY_COLUMNS = [
    'total_base_amount',
    'total_adjusted_amount',
    'base_payout',
    'credit_paid_out',
    'credit_received',
    'net_payout',
]


def summarize_results(result):
    """
    Builds one summary per agent of a SchemeResult.

    Managers that only received credit (no records of their own) get a row
    too, with zero amounts.

    Args:
        result (SchemeResult): The output of run_scheme.

    Returns:
        dict: agent id -> summary dict. Amounts are Decimals.
    """
    summary = {}
    for agent_id, agent in result.agents.items():
        paid_out = sum((d.amount for d in agent.distributions_initiated), ZERO)
        summary[agent_id] = {
            'agent_id': agent_id,
            'record_count': len(agent.records),
            'credited_record_count': len(agent.credited_records),
            'total_base_amount': agent.total_base_amount,
            'total_adjusted_amount': agent.total_adjusted_amount,
            'qualified': agent.qualified,
            'base_payout': agent.base_payout,
            'credit_paid_out': paid_out,
            'credit_received': ZERO,
            'warning_count': sum(1 for e in agent.logs if e.level is LogLevel.WARNING),
            'error_count': sum(1 for e in agent.logs if e.level is LogLevel.ERROR),
        }

    for manager_id, distributions in result.credit_distributions.items():
        manager_summary = summary.setdefault(manager_id, {
            'agent_id': manager_id,
            'record_count': 0,
            'credited_record_count': 0,
            'total_base_amount': ZERO,
            'total_adjusted_amount': ZERO,
            'qualified': False,
            'base_payout': ZERO,
            'credit_paid_out': ZERO,
            'credit_received': ZERO,
            'warning_count': 0,
            'error_count': 0,
        })
        manager_summary['credit_received'] = sum((d.amount for d in distributions), ZERO)

    # Splits are credited to managers on top of the agent's own payout.
    for data in summary.values():
        data['net_payout'] = data['base_payout'] + data['credit_received']

    logging.info(f"--- Summarization complete. Generated summary for {len(summary)} agents. ---")
    return summary


def summary_dataframe(result):
    """Same as summarize_results, as a DataFrame sorted by agent id with float amounts."""
    rows = list(summarize_results(result).values())
    df = pd.DataFrame(rows, columns=[
        'agent_id', 'record_count', 'credited_record_count', *MONEY_COLUMNS[:3],
        'qualified', *MONEY_COLUMNS[3:], 'warning_count', 'error_count',
    ])
    places = result.decimal_places
    for column in MONEY_COLUMNS:
        df[column] = df[column].map(lambda value: round(float(value), places))
    return df.sort_values('agent_id').reset_index(drop=True)
