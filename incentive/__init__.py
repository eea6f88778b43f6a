# ==============================================================================
# incentive/__init__.py
# ------------------------------------------------------------------------------
# Package entry point: logging setup and the public engine functions.
# ==============================================================================

import logging
from config import Config


def configure_logging(config_class=Config):
    """
    Configures the root logger the engine writes its progress lines to.

    Args:
        config_class (class): The configuration class to use.

    Returns:
        class: The configuration class, for chaining into run_scheme.
    """
    logging.basicConfig(level=config_class.LOG_LEVEL,
                        format=config_class.LOG_FORMAT)
    logging.info('Incentive scheme engine logging configured')
    return config_class


from incentive.calculator.engine import run_scheme  # noqa: E402
from incentive.calculator.report import summarize_results, summary_dataframe  # noqa: E402
from incentive.calculator.validator import SchemeExecutionError, validate_scheme  # noqa: E402

__all__ = [
    'configure_logging',
    'run_scheme',
    'summarize_results',
    'summary_dataframe',
    'SchemeExecutionError',
    'validate_scheme',
]
