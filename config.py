# ==============================================================================
# config.py
# ------------------------------------------------------------------------------
# Configuration settings for the scheme execution engine.
# Values can be overridden through environment variables or a .env file.
# ==============================================================================

import os
from dotenv import load_dotenv

# Determine the absolute path of the project directory
basedir = os.path.abspath(os.path.dirname(__file__))

# Load environment variables from a .env file located in the project root
load_dotenv(os.path.join(basedir, '.env'))


def _env_int(key, default):
    value = os.environ.get(key)
    if value is None or value.strip() == '':
        return default
    return int(value)


class Config:
    """
    Base configuration class. Contains default settings that can be overridden
    by environment-specific configurations.
    """
    # --- Logging ---
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'
    LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'

    # --- Number formatting ---
    # Monetary values in the result are rendered with this many decimals.
    DECIMAL_PLACES = _env_int('DECIMAL_PLACES', 2)
    # Rate multipliers and split percentages use a finer precision.
    RATE_DECIMAL_PLACES = _env_int('RATE_DECIMAL_PLACES', 4)

    # --- Rule evaluation ---
    # Separator for the literal set of IN / NOT IN string rules.
    IN_LIST_DELIMITER = os.environ.get('IN_LIST_DELIMITER') or ','

    # --- Execution ---
    # 1 runs agents sequentially; more spreads per-agent work over threads.
    MAX_WORKERS = _env_int('MAX_WORKERS', 1)

    # --- Credit hierarchy ---
    # Default column names of the hierarchy file. A scheme can override them
    # with its own 'hierarchyMapping' block.
    HIERARCHY_COLUMNS = {
        'agentField': os.environ.get('HIERARCHY_AGENT_FIELD') or 'AgentID',
        'levelField': os.environ.get('HIERARCHY_LEVEL_FIELD') or 'Level',
        'managerField': os.environ.get('HIERARCHY_MANAGER_FIELD') or 'ManagerID',
        'fromField': os.environ.get('HIERARCHY_FROM_FIELD') or 'ReportsFrom',
        'toField': os.environ.get('HIERARCHY_TO_FIELD') or 'ReportsToEnd',
    }
